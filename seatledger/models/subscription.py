from seatledger import db
from datetime import datetime, date
import uuid

SUBSCRIPTION_STATUSES = ('active', 'cancelled', 'expired')
SEAT_STATUSES = ('active', 'cancelled')


class Subscription(db.Model):
    """The owner's own paid instance of a plan.

    `active_until` is only ever advanced by the renewal engine or the autopay
    sweep, one PlatformRenewal row per advance.
    """
    __tablename__ = 'subscriptions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = db.Column(db.String(36), db.ForeignKey('owners.id'), nullable=False, index=True)
    plan_id = db.Column(db.String(36), db.ForeignKey('plans.id'), nullable=False)
    label = db.Column(db.String(255), nullable=False)
    start_date = db.Column(db.Date, nullable=False, default=date.today)
    active_until = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), default='active', nullable=False)  # 'active', 'cancelled', 'expired'
    is_autopayable = db.Column(db.Boolean, default=False, nullable=False)
    # Seat used by the owner themselves, if any (no FK: seats reference subscriptions)
    owner_seat_id = db.Column(db.String(36), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    owner = db.relationship('Owner', backref='subscriptions')
    plan = db.relationship('Plan', backref='subscriptions')


class Client(db.Model):
    __tablename__ = 'clients'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = db.Column(db.String(36), db.ForeignKey('owners.id'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ClientSubscription(db.Model):
    """A seat: one client's assignment to a subscription, resold at `custom_price`."""
    __tablename__ = 'client_subscriptions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subscription_id = db.Column(db.String(36), db.ForeignKey('subscriptions.id'), nullable=False, index=True)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=False, index=True)
    custom_price = db.Column(db.Numeric(12, 2), nullable=False)
    start_date = db.Column(db.Date, nullable=False, default=date.today)
    active_until = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), default='active', nullable=False)  # 'active', 'cancelled'
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    subscription = db.relationship('Subscription', backref='seats')
    client = db.relationship('Client', backref='seats')
