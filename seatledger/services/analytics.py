"""Read-only profitability and receivables views derived from the ledger.

Nothing here is stored: revenue, cost, net and weights are recomputed from
RenewalLog and PlatformRenewal rows on every call.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, func
from sqlalchemy.orm import joinedload

from seatledger import db
from seatledger.models import (
    Platform, Plan, Subscription, Client, ClientSubscription, RenewalLog, PlatformRenewal
)
from seatledger.utils.dates import today_or, days_between

CENT = Decimal('0.01')
ZERO = Decimal('0')
TREND_SCALES = ('monthly', 'weekly', 'daily')
HISTORY_TYPES = ('all', 'income', 'cost')
MAX_PAGE_SIZE = 100


def _money(value):
    if value is None:
        return ZERO.quantize(CENT)
    return Decimal(str(value)).quantize(CENT)


# ------------------ BREAK-EVEN ------------------
@dataclass
class BreakEvenRow:
    subscription_id: str
    label: str
    platform: str
    plan: str
    revenue: Decimal
    cost: Decimal
    active_seats: int

    @property
    def net(self):
        return self.revenue - self.cost

    @property
    def profitable(self):
        return self.net >= 0

    def to_dict(self):
        return {
            'subscriptionId': self.subscription_id,
            'label': self.label,
            'platform': self.platform,
            'plan': self.plan,
            'revenue': float(self.revenue),
            'cost': float(self.cost),
            'net': float(self.net),
            'profitable': self.profitable,
            'activeSeats': self.active_seats,
        }


def break_even(owner_id):
    """Per-subscription revenue vs. cost, least profitable first."""
    revenue = dict(db.session.execute(
        select(ClientSubscription.subscription_id, func.sum(RenewalLog.amount_paid))
        .select_from(ClientSubscription)
        .join(RenewalLog, RenewalLog.client_subscription_id == ClientSubscription.id)
        .join(Subscription, Subscription.id == ClientSubscription.subscription_id)
        .where(Subscription.owner_id == owner_id)
        .group_by(ClientSubscription.subscription_id)
    ).all())

    cost = dict(db.session.execute(
        select(PlatformRenewal.subscription_id, func.sum(PlatformRenewal.amount_paid))
        .select_from(PlatformRenewal)
        .join(Subscription, Subscription.id == PlatformRenewal.subscription_id)
        .where(Subscription.owner_id == owner_id)
        .group_by(PlatformRenewal.subscription_id)
    ).all())

    active_seats = dict(db.session.execute(
        select(ClientSubscription.subscription_id, func.count(ClientSubscription.id))
        .select_from(ClientSubscription)
        .join(Subscription, Subscription.id == ClientSubscription.subscription_id)
        .where(Subscription.owner_id == owner_id, ClientSubscription.status == 'active')
        .group_by(ClientSubscription.subscription_id)
    ).all())

    subscriptions = (
        Subscription.query
        .options(joinedload(Subscription.plan).joinedload(Plan.platform))
        .filter(Subscription.owner_id == owner_id)
        .all()
    )

    rows = [
        BreakEvenRow(
            subscription_id=sub.id,
            label=sub.label,
            platform=sub.plan.platform.name,
            plan=sub.plan.name,
            revenue=_money(revenue.get(sub.id)),
            cost=_money(cost.get(sub.id)),
            active_seats=active_seats.get(sub.id, 0),
        )
        for sub in subscriptions
    ]
    # Unprofitable first, then by net ascending
    rows.sort(key=lambda r: (r.profitable, r.net, r.label))
    return rows


# ------------------ CLIENT RANKING ------------------
@dataclass
class ClientValue:
    client_id: str
    client_name: str
    total_paid: Decimal
    renewal_count: int
    weight: float = 0.0

    def to_dict(self):
        return {
            'clientId': self.client_id,
            'clientName': self.client_name,
            'totalPaid': float(self.total_paid),
            'renewalCount': self.renewal_count,
            'weight': self.weight,
        }


def client_ranking(owner_id):
    """Lifetime value per client across all of their seats, highest first.

    Returns (clients, total_revenue); each client's weight is its share of
    total revenue in percent.
    """
    grouped = db.session.execute(
        select(
            Client.id,
            Client.name,
            func.sum(RenewalLog.amount_paid),
            func.count(RenewalLog.id)
        )
        .select_from(Client)
        .join(ClientSubscription, ClientSubscription.client_id == Client.id)
        .join(RenewalLog, RenewalLog.client_subscription_id == ClientSubscription.id)
        .join(Subscription, Subscription.id == ClientSubscription.subscription_id)
        .where(Subscription.owner_id == owner_id)
        .group_by(Client.id, Client.name)
    ).all()

    clients = [
        ClientValue(client_id=cid, client_name=name, total_paid=_money(total), renewal_count=count)
        for cid, name, total, count in grouped
    ]
    total_revenue = sum((c.total_paid for c in clients), ZERO)

    for c in clients:
        c.weight = float(c.total_paid / total_revenue * 100) if total_revenue > 0 else 0.0

    clients.sort(key=lambda c: (-c.total_paid, c.client_name))
    return clients, total_revenue


# ------------------ RECEIVABLES ------------------
def _seat_context(seat):
    subscription = seat.subscription
    return {
        'id': seat.id,
        'clientId': seat.client.id,
        'clientName': seat.client.name,
        'clientPhone': seat.client.phone,
        'customPrice': float(seat.custom_price),
        'activeUntil': seat.active_until.isoformat(),
        'platform': subscription.plan.platform.name,
        'plan': subscription.plan.name,
        'subscriptionLabel': subscription.label,
        'subscriptionId': subscription.id,
    }


def receivables(owner_id, lookahead_days=3, today=None):
    """Active seats that are overdue, or expire within `lookahead_days` of `today`."""
    today = today_or(today)
    seats = (
        ClientSubscription.query
        .join(Subscription, Subscription.id == ClientSubscription.subscription_id)
        .options(
            joinedload(ClientSubscription.client),
            joinedload(ClientSubscription.subscription)
            .joinedload(Subscription.plan)
            .joinedload(Plan.platform)
        )
        .filter(Subscription.owner_id == owner_id, ClientSubscription.status == 'active')
        .order_by(ClientSubscription.active_until)
        .all()
    )

    overdue, expiring = [], []
    for seat in seats:
        days_left = days_between(today, seat.active_until)
        if days_left < 0:
            entry = _seat_context(seat)
            entry['daysOverdue'] = -days_left
            overdue.append(entry)
        elif days_left <= lookahead_days:
            entry = _seat_context(seat)
            entry['daysLeft'] = days_left
            expiring.append(entry)

    overdue.sort(key=lambda e: -e['daysOverdue'])
    return {'overdue': overdue, 'expiringSoon': expiring, 'lookaheadDays': lookahead_days}


# ------------------ SUMMARY ------------------
def _revenue_scope(stmt, owner_id):
    return (
        stmt.select_from(RenewalLog)
        .join(ClientSubscription, ClientSubscription.id == RenewalLog.client_subscription_id)
        .join(Subscription, Subscription.id == ClientSubscription.subscription_id)
        .where(Subscription.owner_id == owner_id)
    )


def summary(owner_id):
    total_revenue = _money(db.session.execute(
        _revenue_scope(select(func.sum(RenewalLog.amount_paid)), owner_id)
    ).scalar())
    total_cost = _money(db.session.execute(
        select(func.sum(PlatformRenewal.amount_paid))
        .select_from(PlatformRenewal)
        .join(Subscription, Subscription.id == PlatformRenewal.subscription_id)
        .where(Subscription.owner_id == owner_id)
    ).scalar())
    total_payments = db.session.execute(
        _revenue_scope(select(func.count(RenewalLog.id)), owner_id)
    ).scalar_one()
    on_time = db.session.execute(
        _revenue_scope(select(func.count(RenewalLog.id)), owner_id)
        .where(RenewalLog.paid_on <= RenewalLog.due_on)
    ).scalar_one()
    unique_clients = db.session.execute(
        _revenue_scope(select(func.count(func.distinct(ClientSubscription.client_id))), owner_id)
    ).scalar_one()

    arpu = total_revenue / unique_clients if unique_clients else ZERO
    return {
        'totalRevenue': float(total_revenue),
        'totalCost': float(total_cost),
        'netMargin': float(total_revenue - total_cost),
        'arpu': float(arpu.quantize(CENT)),
        'onTimeRate': (on_time / total_payments * 100) if total_payments else 100.0,
        'totalPayments': total_payments,
        'onTimeCount': on_time,
        'lateCount': total_payments - on_time,
        'uniqueClientCount': unique_clients,
    }


# ------------------ TRENDS ------------------
def _bucket_start(day, scale):
    if scale == 'monthly':
        return day.replace(day=1)
    if scale == 'weekly':
        return day - timedelta(days=day.weekday())
    return day


def _bucket_key(day, scale):
    start = _bucket_start(day, scale)
    if scale == 'monthly':
        return start.strftime('%Y-%m')
    if scale == 'weekly':
        year, week, _ = start.isocalendar()
        return f'{year}-W{week:02d}'
    return start.isoformat()


def _bucket_starts(scale, today):
    current = _bucket_start(today, scale)
    if scale == 'monthly':
        return [current - relativedelta(months=i) for i in range(11, -1, -1)]
    if scale == 'weekly':
        return [current - timedelta(weeks=i) for i in range(11, -1, -1)]
    return [current - timedelta(days=i) for i in range(29, -1, -1)]


def trends(owner_id, scale='monthly', today=None):
    """Revenue vs. cost per period: 12 months, 12 ISO weeks or 30 days, oldest first."""
    if scale not in TREND_SCALES:
        scale = 'monthly'
    today = today_or(today)
    starts = _bucket_starts(scale, today)
    buckets = {_bucket_key(s, scale): {'period': _bucket_key(s, scale), 'revenue': ZERO, 'cost': ZERO}
               for s in starts}
    lookback = starts[0]

    income = db.session.execute(
        _revenue_scope(select(RenewalLog.paid_on, RenewalLog.amount_paid), owner_id)
        .where(RenewalLog.paid_on >= lookback, RenewalLog.paid_on <= today)
    ).all()
    costs = db.session.execute(
        select(PlatformRenewal.paid_on, PlatformRenewal.amount_paid)
        .select_from(PlatformRenewal)
        .join(Subscription, Subscription.id == PlatformRenewal.subscription_id)
        .where(
            Subscription.owner_id == owner_id,
            PlatformRenewal.paid_on >= lookback,
            PlatformRenewal.paid_on <= today
        )
    ).all()

    for paid_on, amount in income:
        bucket = buckets.get(_bucket_key(paid_on, scale))
        if bucket:
            bucket['revenue'] += _money(amount)
    for paid_on, amount in costs:
        bucket = buckets.get(_bucket_key(paid_on, scale))
        if bucket:
            bucket['cost'] += _money(amount)

    return [
        {'period': b['period'], 'revenue': float(b['revenue']), 'cost': float(b['cost'])}
        for b in buckets.values()
    ]


# ------------------ PAYMENT DISCIPLINE ------------------
def discipline(owner_id, plan_id=None, subscription_id=None, client_id=None):
    """On-time vs. late client payments; a payment is late when paid after its due date."""
    stmt = _revenue_scope(select(RenewalLog.paid_on, RenewalLog.due_on), owner_id)
    if plan_id:
        stmt = stmt.where(Subscription.plan_id == plan_id)
    if subscription_id:
        stmt = stmt.where(ClientSubscription.subscription_id == subscription_id)
    if client_id:
        stmt = stmt.where(ClientSubscription.client_id == client_id)
    payments = db.session.execute(stmt).all()

    if not payments:
        return {'totalPayments': 0, 'onTimeCount': 0, 'lateCount': 0, 'onTimeRate': 100.0, 'avgDaysLate': 0.0}

    late_days = [days_between(due_on, paid_on) for paid_on, due_on in payments]
    late_days = [d for d in late_days if d > 0]
    on_time = len(payments) - len(late_days)

    return {
        'totalPayments': len(payments),
        'onTimeCount': on_time,
        'lateCount': len(late_days),
        'onTimeRate': on_time / len(payments) * 100,
        'avgDaysLate': round(sum(late_days) / len(late_days), 1) if late_days else 0.0,
    }


# ------------------ LEDGER HISTORY ------------------
def _history_filters(stmt, platform_id, plan_id, subscription_id, date_from, date_to, paid_on):
    if platform_id:
        stmt = stmt.where(Plan.platform_id == platform_id)
    if plan_id:
        stmt = stmt.where(Subscription.plan_id == plan_id)
    if subscription_id:
        stmt = stmt.where(Subscription.id == subscription_id)
    if date_from:
        stmt = stmt.where(paid_on >= date_from)
    if date_to:
        stmt = stmt.where(paid_on <= date_to)
    return stmt


def _income_rows(owner_id, client_id, **filters):
    stmt = (
        select(
            RenewalLog.id, RenewalLog.amount_paid, RenewalLog.paid_on,
            RenewalLog.period_start, RenewalLog.period_end, RenewalLog.notes, RenewalLog.created_at,
            Platform.name.label('platform'), Plan.name.label('plan'),
            Subscription.label.label('subscription_label'), Subscription.id.label('subscription_id'),
            Client.name.label('client_name')
        )
        .select_from(RenewalLog)
        .join(ClientSubscription, ClientSubscription.id == RenewalLog.client_subscription_id)
        .join(Client, Client.id == ClientSubscription.client_id)
        .join(Subscription, Subscription.id == ClientSubscription.subscription_id)
        .join(Plan, Plan.id == Subscription.plan_id)
        .join(Platform, Platform.id == Plan.platform_id)
        .where(Subscription.owner_id == owner_id)
    )
    if client_id:
        stmt = stmt.where(ClientSubscription.client_id == client_id)
    stmt = _history_filters(stmt, paid_on=RenewalLog.paid_on, **filters)
    return [_history_row('income', row, row.client_name) for row in db.session.execute(stmt)]


def _cost_rows(owner_id, **filters):
    stmt = (
        select(
            PlatformRenewal.id, PlatformRenewal.amount_paid, PlatformRenewal.paid_on,
            PlatformRenewal.period_start, PlatformRenewal.period_end, PlatformRenewal.notes,
            PlatformRenewal.created_at,
            Platform.name.label('platform'), Plan.name.label('plan'),
            Subscription.label.label('subscription_label'), Subscription.id.label('subscription_id')
        )
        .select_from(PlatformRenewal)
        .join(Subscription, Subscription.id == PlatformRenewal.subscription_id)
        .join(Plan, Plan.id == Subscription.plan_id)
        .join(Platform, Platform.id == Plan.platform_id)
        .where(Subscription.owner_id == owner_id)
    )
    stmt = _history_filters(stmt, paid_on=PlatformRenewal.paid_on, **filters)
    return [_history_row('cost', row, None) for row in db.session.execute(stmt)]


def _history_row(kind, row, client_name):
    """(sort key, payload) for one ledger row."""
    sort_key = (row.paid_on, row.created_at or datetime.min, row.id)
    return sort_key, {
        'id': row.id,
        'type': kind,
        'amount': float(row.amount_paid),
        'paidOn': row.paid_on.isoformat(),
        'periodStart': row.period_start.isoformat(),
        'periodEnd': row.period_end.isoformat(),
        'platform': row.platform,
        'plan': row.plan,
        'subscriptionLabel': row.subscription_label,
        'subscriptionId': row.subscription_id,
        'clientName': client_name,
        'notes': row.notes,
    }


def history(owner_id, page=1, page_size=20, kind='all', platform_id=None, plan_id=None,
            subscription_id=None, client_id=None, date_from=None, date_to=None):
    """Client payments (income) and platform payments (cost) as one list, newest first.

    Cost rows carry no client, so filtering by `client_id` leaves only income.
    """
    if kind not in HISTORY_TYPES:
        kind = 'all'
    page = max(1, page)
    page_size = min(MAX_PAGE_SIZE, max(1, page_size))
    filters = dict(
        platform_id=platform_id, plan_id=plan_id, subscription_id=subscription_id,
        date_from=date_from, date_to=date_to
    )

    entries = []
    if kind in ('all', 'income'):
        entries.extend(_income_rows(owner_id, client_id, **filters))
    if kind in ('all', 'cost') and not client_id:
        entries.extend(_cost_rows(owner_id, **filters))

    entries.sort(key=lambda entry: entry[0], reverse=True)
    rows = [payload for _, payload in entries]

    total = len(rows)
    start = (page - 1) * page_size
    return {
        'rows': rows[start:start + page_size],
        'totalCount': total,
        'page': page,
        'pageSize': page_size,
        'totalPages': math.ceil(total / page_size),
    }
