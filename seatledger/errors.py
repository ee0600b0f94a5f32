class LedgerError(Exception):
    """Base class for failures raised by the renewal engine and analytics."""

    status_code = 500
    code = 'ledger_error'
    message = 'Something went wrong on the server.'

    def __init__(self, message=None, **context):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.context = context

    def to_dict(self):
        return {'code': self.code, 'message': self.message}


class InvalidInput(LedgerError):
    status_code = 422
    code = 'invalid_input'
    message = 'Validation error'

    def __init__(self, message=None, fields=None, **context):
        super().__init__(message, **context)
        self.fields = fields or {}

    def to_dict(self):
        data = super().to_dict()
        if self.fields:
            data['fields'] = self.fields
        return data


class SeatLimitExceeded(InvalidInput):
    code = 'seat_limit_exceeded'
    message = 'Plan has no free seats left'


class NotFound(LedgerError):
    status_code = 404
    code = 'not_found'
    message = 'Resource not found'


class ConcurrencyConflict(LedgerError):
    status_code = 409
    code = 'concurrency_conflict'
    message = 'The record was modified concurrently, please retry.'


class StorageFailure(LedgerError):
    status_code = 500
    code = 'storage_failure'
    message = 'Something went wrong on the server.'


class AutopayNotDue(LedgerError):
    """The subscription no longer matches the autopay predicate (renewed elsewhere)."""
    status_code = 409
    code = 'not_due'
    message = 'Subscription is not due for autopay renewal'
