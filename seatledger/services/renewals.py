"""Renewal engine.

Every renewal is one transaction: a locked re-read of the parent row, a
conditional UPDATE that only lands if `active_until` still holds the value
just read, and the insert of the matching ledger row. A miss on the
conditional UPDATE means another writer got there first; the transaction is
rolled back and replayed from a fresh read, up to RENEWAL_MAX_ATTEMPTS.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import select, update, func
from sqlalchemy.orm import aliased
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from seatledger import db
from seatledger.errors import (
    LedgerError, InvalidInput, NotFound, ConcurrencyConflict, StorageFailure, SeatLimitExceeded, AutopayNotDue
)
from seatledger.models import Plan, Subscription, ClientSubscription, RenewalLog, PlatformRenewal
from seatledger.utils.dates import add_months, today_or

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
# Largest value a Numeric(12, 2) money column holds
MAX_AMOUNT = Decimal('9999999999.99')
DEFAULT_MAX_ATTEMPTS = 3
# SQLSTATE serialization_failure / deadlock_detected
_RETRYABLE_SQLSTATES = {'40001', '40P01'}


@dataclass
class SeatRenewal:
    seat: ClientSubscription
    log: RenewalLog


@dataclass
class SubscriptionRenewal:
    subscription: Subscription
    log: PlatformRenewal


@dataclass
class BulkItemOutcome:
    seat_id: str
    renewal: SeatRenewal = None
    error: LedgerError = None

    @property
    def ok(self):
        return self.error is None


@dataclass
class BulkRenewalResult:
    outcomes: list = field(default_factory=list)

    @property
    def total(self):
        return len(self.outcomes)

    @property
    def renewed(self):
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self):
        return self.total - self.renewed


# ------------------ VALIDATION ------------------
def _validate_amount(amount, field_name='amountPaid'):
    if isinstance(amount, bool):
        raise InvalidInput(fields={field_name: ['Not a valid amount.']})
    try:
        value = Decimal(str(amount)).quantize(CENT)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(fields={field_name: ['Not a valid amount.']})
    if not value.is_finite():
        raise InvalidInput(fields={field_name: ['Not a valid amount.']})
    if value <= 0:
        raise InvalidInput(fields={field_name: ['Amount must be greater than 0']})
    if value > MAX_AMOUNT:
        raise InvalidInput(fields={field_name: [f'Amount must be at most {MAX_AMOUNT}']})
    return value


def _validate_months(months, field_name='months'):
    if isinstance(months, bool) or not isinstance(months, int):
        raise InvalidInput(fields={field_name: ['Months must be a whole number.']})
    if months < 1:
        raise InvalidInput(fields={field_name: ['Months must be at least 1']})
    return months


def _validate_id(value, field_name):
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(fields={field_name: ['Not a valid identifier.']})
    return value.strip()


# ------------------ TRANSACTION HELPERS ------------------
def _is_retryable(exc):
    orig = getattr(exc, 'orig', None)
    sqlstate = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    return sqlstate in _RETRYABLE_SQLSTATES


def _max_attempts():
    return max(1, int(current_app.config.get('RENEWAL_MAX_ATTEMPTS', DEFAULT_MAX_ATTEMPTS)))


def _in_transaction(work, entity, entity_id):
    """Run `work` and commit, replaying it on concurrency conflicts."""
    attempts = _max_attempts()
    for attempt in range(1, attempts + 1):
        try:
            result = work()
            db.session.commit()
            return result
        except ConcurrencyConflict:
            db.session.rollback()
            logger.warning('Concurrent update on %s %s (attempt %d/%d)', entity, entity_id, attempt, attempts)
        except LedgerError:
            db.session.rollback()
            raise
        except DBAPIError as e:
            db.session.rollback()
            if _is_retryable(e):
                logger.warning('Serialization failure on %s %s (attempt %d/%d)', entity, entity_id, attempt, attempts)
                continue
            logger.exception('Storage failure while renewing %s %s', entity, entity_id)
            raise StorageFailure(entity=entity, entity_id=entity_id) from e
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception('Storage failure while renewing %s %s', entity, entity_id)
            raise StorageFailure(entity=entity, entity_id=entity_id) from e

    logger.error('Giving up on %s %s after %d attempts', entity, entity_id, attempts)
    raise ConcurrencyConflict(entity=entity, entity_id=entity_id)


def _locked(model, entity_id):
    """Re-read a row inside the current transaction, bypassing the identity map."""
    stmt = (
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def _swap_expiry(model, entity_id, expected, new_until, *guards, **values):
    """Move `active_until` from `expected` to `new_until`; False if the row moved meanwhile."""
    stmt = (
        update(model)
        .where(model.id == entity_id, model.active_until == expected, *guards)
        .values(active_until=new_until, **values)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def _ensure_free_seat(seat):
    """Check the plan still has room for `seat` and return the matching UPDATE guards.

    The plan row is locked first so concurrent reactivations on the same plan
    queue up behind each other. The count is repeated inside the conditional
    UPDATE, which also covers backends without row locks.
    """
    plan = seat.subscription.plan
    if plan.max_seats is None:
        return ()
    _locked(Plan, plan.id)

    other = aliased(ClientSubscription)
    active_elsewhere = (
        select(func.count(other.id))
        .join(Subscription, other.subscription_id == Subscription.id)
        .where(
            Subscription.plan_id == plan.id,
            other.status == 'active',
            other.id != seat.id
        )
    )
    active_seats = db.session.execute(active_elsewhere).scalar_one()
    if active_seats >= plan.max_seats:
        raise SeatLimitExceeded(
            f'Plan {plan.name} already has {active_seats} of {plan.max_seats} seats in use',
            fields={'seatId': ['Plan has no free seats left']}
        )
    return (active_elsewhere.scalar_subquery() < plan.max_seats,)


# ------------------ CLIENT SEATS ------------------
def _renew_seat_once(seat_id, amount_paid, months, notes, today, owner_id):
    seat = _locked(ClientSubscription, seat_id)
    if seat is None or (owner_id is not None and seat.subscription.owner_id != owner_id):
        raise NotFound(f'Seat {seat_id} not found', seat_id=seat_id)

    if seat.subscription.status == 'cancelled':
        raise InvalidInput(
            'Cannot renew a seat on a cancelled subscription',
            fields={'seatId': ['Subscription is cancelled']}
        )
    guards = ()
    if seat.status == 'cancelled':
        guards = _ensure_free_seat(seat)

    expected_amount = (Decimal(seat.custom_price) * months).quantize(CENT)
    paid = amount_paid if amount_paid is not None else _validate_amount(expected_amount)

    current = seat.active_until
    new_until = add_months(current, months)
    if not _swap_expiry(ClientSubscription, seat.id, current, new_until, *guards, status='active'):
        raise ConcurrencyConflict(seat_id=seat_id)

    log = RenewalLog(
        client_subscription_id=seat.id,
        amount_paid=paid,
        expected_amount=expected_amount,
        period_start=current,
        period_end=new_until,
        paid_on=today,
        due_on=current,
        months_renewed=months,
        notes=notes
    )
    db.session.add(log)
    db.session.flush()
    db.session.refresh(seat)

    logger.info('Renewed seat %s: %s -> %s (%s month(s), paid %s)', seat.id, current, new_until, months, paid)
    return SeatRenewal(seat=seat, log=log)


def renew_client_subscription(seat_id, amount_paid=None, months=1, notes=None, today=None, owner_id=None):
    """Extend a seat by `months` calendar months and record the client's payment.

    `amount_paid` defaults to the seat's custom price times `months`. When
    `owner_id` is given the seat must belong to one of that owner's
    subscriptions, otherwise it is reported as not found.
    """
    seat_id = _validate_id(seat_id, 'seatId')
    months = _validate_months(months)
    if amount_paid is not None:
        amount_paid = _validate_amount(amount_paid)
    today = today_or(today)

    return _in_transaction(
        lambda: _renew_seat_once(seat_id, amount_paid, months, notes, today, owner_id),
        'seat', seat_id
    )


def renew_bulk_client_subscriptions(items, months=1, today=None, owner_id=None):
    """Renew several seats, each in its own transaction.

    `items` is a list of dicts with `seat_id` and optional `amount_paid`,
    `notes` and `months` (overriding the batch-wide `months`). A failing item
    is reported in its slot and never affects the others.
    """
    if not items:
        raise InvalidInput(fields={'items': ['Select at least one seat to renew']})
    months = _validate_months(months)
    today = today_or(today)

    result = BulkRenewalResult()
    for item in items:
        seat_id = item.get('seat_id') if isinstance(item, dict) else None
        try:
            if not isinstance(item, dict):
                raise InvalidInput(fields={'items': ['Each item must be an object with a seatId']})
            item_months = item.get('months')
            if item_months is None:
                item_months = months
            notes = item.get('notes') or f'[BULK] Renewed {item_months} month(s)'
            renewal = renew_client_subscription(
                seat_id,
                amount_paid=item.get('amount_paid'),
                months=item_months,
                notes=notes,
                today=today,
                owner_id=owner_id
            )
        except LedgerError as e:
            logger.warning('Bulk renewal of seat %s failed: %s', seat_id, e.message)
            result.outcomes.append(BulkItemOutcome(seat_id=seat_id, error=e))
        else:
            result.outcomes.append(BulkItemOutcome(seat_id=seat_id, renewal=renewal))

    logger.info('Bulk renewal finished: %d renewed, %d failed', result.renewed, result.failed)
    return result


# ------------------ PLATFORM SUBSCRIPTIONS ------------------
def _renew_subscription_once(subscription_id, amount_paid, notes, today, owner_id, autopay=False):
    subscription = _locked(Subscription, subscription_id)
    if subscription is None or (owner_id is not None and subscription.owner_id != owner_id):
        raise NotFound(f'Subscription {subscription_id} not found', subscription_id=subscription_id)

    guards = ()
    if autopay:
        if not (subscription.is_autopayable and subscription.status == 'active'
                and subscription.active_until <= today):
            raise AutopayNotDue(subscription_id=subscription_id)
        guards = (
            Subscription.active_until <= today,
            Subscription.status == 'active',
            Subscription.is_autopayable.is_(True),
        )
    elif subscription.status == 'cancelled':
        raise InvalidInput(
            'Cannot renew a cancelled subscription',
            fields={'subscriptionId': ['Subscription is cancelled']}
        )

    paid = amount_paid if amount_paid is not None else _validate_amount(subscription.plan.cost)

    current = subscription.active_until
    new_until = add_months(current, 1)
    if not _swap_expiry(Subscription, subscription.id, current, new_until, *guards, status='active'):
        raise ConcurrencyConflict(subscription_id=subscription_id)

    log = PlatformRenewal(
        subscription_id=subscription.id,
        amount_paid=paid,
        period_start=current,
        period_end=new_until,
        paid_on=today,
        notes=notes
    )
    db.session.add(log)
    db.session.flush()
    db.session.refresh(subscription)

    logger.info('Renewed subscription %s: %s -> %s (paid %s%s)',
                subscription.id, current, new_until, paid, ', autopay' if autopay else '')
    return SubscriptionRenewal(subscription=subscription, log=log)


def renew_platform_subscription(subscription_id, amount_paid=None, notes=None, today=None, owner_id=None):
    """Extend a platform subscription by exactly one month and record the owner's payment.

    `amount_paid` defaults to the plan cost.
    """
    subscription_id = _validate_id(subscription_id, 'subscriptionId')
    if amount_paid is not None:
        amount_paid = _validate_amount(amount_paid)
    today = today_or(today)

    return _in_transaction(
        lambda: _renew_subscription_once(subscription_id, amount_paid, notes, today, owner_id),
        'subscription', subscription_id
    )


def autopay_subscription(subscription_id, today=None):
    """One unattended renewal at plan cost, only while the subscription is still due.

    Raises AutopayNotDue when the subscription was already advanced past
    `today` (e.g. by an overlapping sweep).
    """
    today = today_or(today)
    return _in_transaction(
        lambda: _renew_subscription_once(subscription_id, None, None, today, None, autopay=True),
        'subscription', subscription_id
    )
