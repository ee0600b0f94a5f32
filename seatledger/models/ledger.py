from seatledger import db
from datetime import datetime, date
import uuid

from sqlalchemy import event


class RenewalLog(db.Model):
    """A client payment against a seat. Append-only."""
    __tablename__ = 'renewal_logs'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_subscription_id = db.Column(
        db.String(36), db.ForeignKey('client_subscriptions.id'), nullable=False, index=True
    )
    amount_paid = db.Column(db.Numeric(12, 2), nullable=False)
    expected_amount = db.Column(db.Numeric(12, 2))  # custom_price x months at the time of payment
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    paid_on = db.Column(db.Date, nullable=False, default=date.today)
    due_on = db.Column(db.Date, nullable=False)
    months_renewed = db.Column(db.Integer, nullable=False, default=1)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    client_subscription = db.relationship(
        'ClientSubscription',
        backref=db.backref('renewal_logs', order_by='RenewalLog.created_at')
    )


class PlatformRenewal(db.Model):
    """The owner's payment to a platform against a subscription. Append-only."""
    __tablename__ = 'platform_renewals'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subscription_id = db.Column(db.String(36), db.ForeignKey('subscriptions.id'), nullable=False, index=True)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=False)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    paid_on = db.Column(db.Date, nullable=False, default=date.today)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    subscription = db.relationship(
        'Subscription',
        backref=db.backref('platform_renewals', order_by='PlatformRenewal.created_at')
    )


class AppendOnlyViolation(RuntimeError):
    pass


def _reject_mutation(mapper, connection, target):
    raise AppendOnlyViolation(
        f'{type(target).__name__} rows are append-only and cannot be changed (id={target.id})'
    )


for _model in (RenewalLog, PlatformRenewal):
    event.listen(_model, 'before_update', _reject_mutation)
    event.listen(_model, 'before_delete', _reject_mutation)
