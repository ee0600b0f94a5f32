# seatledger/tasks.py

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select

from . import db
from .errors import LedgerError, AutopayNotDue
from .models import Subscription
from .services.renewals import autopay_subscription
from .utils.dates import today_or

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    date: date
    renewals: list = field(default_factory=list)
    failures: list = field(default_factory=list)
    skipped: list = field(default_factory=list)

    @property
    def processed(self):
        return len(self.renewals)

    def to_dict(self):
        return {
            'date': self.date.isoformat(),
            'processed': self.processed,
            'renewals': self.renewals,
            'failures': self.failures,
            'skipped': self.skipped,
        }


def find_due_subscriptions(today):
    """Autopayable, active subscriptions whose validity ended on or before `today`."""
    return db.session.execute(
        select(Subscription.id, Subscription.label)
        .where(
            Subscription.is_autopayable.is_(True),
            Subscription.status == 'active',
            Subscription.active_until <= today
        )
        .order_by(Subscription.active_until, Subscription.id)
    ).all()


def run_autopay_sweep(today=None):
    """
    A scheduled task that renews every due autopay subscription by one month at plan cost.

    Eligibility is re-checked inside each renewal transaction, so overlapping
    runs never renew the same subscription twice for the same period.
    """
    today = today_or(today)
    logger.info('Running autopay sweep on %s...', today)

    due = find_due_subscriptions(today)
    # Release the read snapshot before the per-subscription transactions
    db.session.rollback()

    report = SweepReport(date=today)
    if not due:
        logger.info('No subscriptions are due for autopay today.')
        return report

    for subscription_id, label in due:
        try:
            renewal = autopay_subscription(subscription_id, today=today)
        except AutopayNotDue:
            logger.info('Subscription %s was already renewed, skipping.', subscription_id)
            report.skipped.append(subscription_id)
            continue
        except LedgerError as e:
            logger.warning('Autopay failed for subscription %s: %s', subscription_id, e.message)
            report.failures.append({'subscriptionId': subscription_id, 'label': label, 'error': e.message})
            continue
        except Exception:
            db.session.rollback()
            logger.exception('Unexpected error during autopay of subscription %s', subscription_id)
            report.failures.append({'subscriptionId': subscription_id, 'label': label, 'error': 'Unexpected error'})
            continue

        report.renewals.append({
            'subscriptionId': subscription_id,
            'label': label,
            'newExpiry': renewal.subscription.active_until.isoformat(),
            'renewalId': renewal.log.id,
        })

    logger.info('Autopay sweep finished: %d renewed, %d failed, %d skipped.',
                report.processed, len(report.failures), len(report.skipped))
    return report
