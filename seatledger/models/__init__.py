from .account import Owner
from .catalog import Platform, Plan
from .subscription import Subscription, Client, ClientSubscription
from .ledger import RenewalLog, PlatformRenewal

__all__ = [
    'Owner', 'Platform', 'Plan',
    'Subscription', 'Client', 'ClientSubscription',
    'RenewalLog', 'PlatformRenewal'
]
