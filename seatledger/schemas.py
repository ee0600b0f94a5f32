from marshmallow import EXCLUDE, fields, validate

from seatledger import ma
from seatledger.services.renewals import MAX_AMOUNT

_positive_amount = [
    validate.Range(min=0, min_inclusive=False, error='Amount must be greater than 0'),
    validate.Range(max=MAX_AMOUNT, error='Amount must be at most {max}'),
]
_months = validate.Range(min=1, error='Months must be at least 1')


# ------------------ REQUEST SCHEMAS ------------------
class RenewSeatSchema(ma.Schema):
    amount_paid = fields.Decimal(data_key='amountPaid', allow_none=True, load_default=None,
                                 places=2, validate=_positive_amount)
    months = fields.Integer(strict=True, load_default=1, validate=_months)
    notes = fields.String(allow_none=True, load_default=None, validate=validate.Length(max=2000))


class BulkRenewItemSchema(ma.Schema):
    seat_id = fields.String(data_key='seatId', required=True, validate=validate.Length(min=1))
    amount_paid = fields.Decimal(data_key='amountPaid', allow_none=True, load_default=None,
                                 places=2, validate=_positive_amount)
    months = fields.Integer(strict=True, allow_none=True, load_default=None, validate=_months)
    notes = fields.String(allow_none=True, load_default=None, validate=validate.Length(max=2000))


class BulkRenewSchema(ma.Schema):
    items = fields.List(
        fields.Nested(BulkRenewItemSchema),
        required=True,
        validate=validate.Length(min=1, error='Select at least one seat to renew')
    )
    months = fields.Integer(strict=True, load_default=1, validate=_months)


class RenewPlatformSchema(ma.Schema):
    amount_paid = fields.Decimal(data_key='amountPaid', allow_none=True, load_default=None,
                                 places=2, validate=_positive_amount)
    notes = fields.String(allow_none=True, load_default=None, validate=validate.Length(max=2000))


class RegisterSchema(ma.Schema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=8))


class LoginSchema(ma.Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)


class HistoryQuerySchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    page_size = fields.Integer(data_key='pageSize', load_default=20, validate=validate.Range(min=1, max=100))
    kind = fields.String(data_key='type', load_default='all',
                         validate=validate.OneOf(('all', 'income', 'cost')))
    platform_id = fields.String(data_key='platformId', load_default=None)
    plan_id = fields.String(data_key='planId', load_default=None)
    subscription_id = fields.String(data_key='subscriptionId', load_default=None)
    client_id = fields.String(data_key='clientId', load_default=None)
    date_from = fields.Date(data_key='dateFrom', load_default=None)
    date_to = fields.Date(data_key='dateTo', load_default=None)


# ------------------ RESPONSE SCHEMAS ------------------
class SeatSchema(ma.Schema):
    id = fields.String()
    subscription_id = fields.String(data_key='subscriptionId')
    client_id = fields.String(data_key='clientId')
    custom_price = fields.Float(data_key='customPrice')
    start_date = fields.Date(data_key='startDate')
    active_until = fields.Date(data_key='activeUntil')
    status = fields.String()


class RenewalLogSchema(ma.Schema):
    id = fields.String()
    client_subscription_id = fields.String(data_key='clientSubscriptionId')
    amount_paid = fields.Float(data_key='amountPaid')
    expected_amount = fields.Float(data_key='expectedAmount')
    period_start = fields.Date(data_key='periodStart')
    period_end = fields.Date(data_key='periodEnd')
    paid_on = fields.Date(data_key='paidOn')
    due_on = fields.Date(data_key='dueOn')
    months_renewed = fields.Integer(data_key='monthsRenewed')
    notes = fields.String(allow_none=True)


class SubscriptionSchema(ma.Schema):
    id = fields.String()
    plan_id = fields.String(data_key='planId')
    label = fields.String()
    start_date = fields.Date(data_key='startDate')
    active_until = fields.Date(data_key='activeUntil')
    status = fields.String()
    is_autopayable = fields.Boolean(data_key='isAutopayable')


class PlatformRenewalSchema(ma.Schema):
    id = fields.String()
    subscription_id = fields.String(data_key='subscriptionId')
    amount_paid = fields.Float(data_key='amountPaid')
    period_start = fields.Date(data_key='periodStart')
    period_end = fields.Date(data_key='periodEnd')
    paid_on = fields.Date(data_key='paidOn')
    notes = fields.String(allow_none=True)


class OwnerSchema(ma.Schema):
    id = fields.String()
    name = fields.String()
    email = fields.String()


renew_seat_schema = RenewSeatSchema()
bulk_renew_schema = BulkRenewSchema()
renew_platform_schema = RenewPlatformSchema()
register_schema = RegisterSchema()
login_schema = LoginSchema()
history_query_schema = HistoryQuerySchema()

seat_schema = SeatSchema()
renewal_log_schema = RenewalLogSchema()
subscription_schema = SubscriptionSchema()
platform_renewal_schema = PlatformRenewalSchema()
owner_schema = OwnerSchema()
