from datetime import date, datetime
from dateutil.relativedelta import relativedelta


def add_months(start, months):
    """Calendar-month addition; the day clamps to the end of a shorter month.

    add_months(date(2025, 1, 31), 1) -> date(2025, 2, 28)
    """
    return start + relativedelta(months=months)


def as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def today_or(value=None):
    return as_date(value) if value is not None else date.today()


def days_between(earlier, later):
    return (as_date(later) - as_date(earlier)).days
