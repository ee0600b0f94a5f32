from datetime import date, datetime

import pytest

from seatledger.utils.dates import add_months, days_between, today_or


@pytest.mark.parametrize('start, months, expected', [
    (date(2025, 3, 31), 1, date(2025, 4, 30)),
    (date(2025, 1, 31), 1, date(2025, 2, 28)),
    (date(2024, 1, 31), 1, date(2024, 2, 29)),
    (date(2025, 12, 15), 1, date(2026, 1, 15)),
    (date(2025, 1, 31), 2, date(2025, 3, 31)),
    (date(2025, 5, 10), 12, date(2026, 5, 10)),
])
def test_add_months_follows_calendar(start, months, expected):
    assert add_months(start, months) == expected


def test_month_end_clamping_is_not_remembered():
    # Jan 31 -> Feb 28 -> Mar 28: the clamped day carries forward
    feb = add_months(date(2025, 1, 31), 1)
    assert add_months(feb, 1) == date(2025, 3, 28)
    # ...whereas one two-month step lands on the 31st
    assert add_months(date(2025, 1, 31), 2) == date(2025, 3, 31)


def test_days_between_accepts_datetimes():
    assert days_between(date(2025, 3, 1), datetime(2025, 3, 4, 23, 59)) == 3
    assert days_between(date(2025, 3, 4), date(2025, 3, 1)) == -3


def test_today_or():
    assert today_or(date(2020, 2, 2)) == date(2020, 2, 2)
    assert today_or(datetime(2020, 2, 2, 10, 0)) == date(2020, 2, 2)
    assert today_or() == date.today()
