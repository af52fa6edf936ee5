"""Tests for date parsing with relative dates."""

from datetime import date, datetime, timedelta, timezone

import pytest
from dateutil.relativedelta import relativedelta

from pocketledger.utils.date_parser import get_date_range, parse_date, parse_datetime, to_naive_local

NOW = datetime(2024, 3, 15, 12, 30)


def test_parse_absolute_date():
    assert parse_date("2024-01-15") == date(2024, 1, 15)
    assert parse_date("January 15, 2024") == date(2024, 1, 15)


def test_parse_relative_days():
    today = date.today()
    assert parse_date("today") == today
    assert parse_date("Yesterday") == today - timedelta(days=1)
    assert parse_date("tomorrow") == today + timedelta(days=1)


def test_parse_last_month():
    """'last month' is the first day of the previous month."""
    assert parse_date("last month") == (date.today() - relativedelta(months=1)).replace(day=1)


def test_parse_last_week_is_monday():
    result = parse_date("last week")
    assert result.weekday() == 0
    assert date.today() - result >= timedelta(days=7)


def test_parse_invalid():
    with pytest.raises(ValueError):
        parse_date("last invalid")


def test_parse_datetime_now_keeps_time():
    assert parse_datetime("now", now=NOW) == NOW
    assert parse_datetime("today", now=NOW) == NOW


def test_parse_datetime_relative_is_midnight():
    assert parse_datetime("yesterday", now=NOW) == datetime(2024, 3, 14)
    assert parse_datetime("this month", now=NOW) == datetime(2024, 3, 1)


def test_parse_datetime_absolute():
    assert parse_datetime("2024-01-15", now=NOW) == datetime(2024, 1, 15)
    assert parse_datetime("2024-01-15 09:45", now=NOW) == datetime(2024, 1, 15, 9, 45)


def test_parse_datetime_drops_timezone():
    parsed = parse_datetime("2024-01-15 09:45:00 +00:00", now=NOW)
    assert parsed.tzinfo is None
    expected = datetime(2024, 1, 15, 9, 45, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert parsed == expected


def test_parse_datetime_invalid():
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_datetime("not a date", now=NOW)


def test_get_date_range_last_month():
    today = date.today()
    start, end = get_date_range("last-month")
    assert start == (today - relativedelta(months=1)).replace(day=1)
    assert end == today.replace(day=1) - timedelta(days=1)


def test_get_date_range_last_year():
    today = date.today()
    assert get_date_range("last-year") == (date(today.year - 1, 1, 1), date(today.year - 1, 12, 31))


def test_get_date_range_this_week():
    start, end = get_date_range("this-week")
    assert start.weekday() == 0
    assert end == date.today()


def test_get_date_range_invalid_period():
    with pytest.raises(ValueError, match="Unknown period"):
        get_date_range("invalid-period")


@pytest.mark.parametrize(
    "period, expected",
    [
        ("this-month", (date(2024, 3, 1), date(2024, 3, 15))),
        ("last-month", (date(2024, 2, 1), date(2024, 2, 29))),
        ("last-week", (date(2024, 3, 4), date(2024, 3, 10))),
        ("this-year", (date(2024, 1, 1), date(2024, 3, 15))),
    ],
)
def test_get_date_range_fixed_today(period, expected):
    assert get_date_range(period, today=date(2024, 3, 15)) == expected


def test_to_naive_local():
    naive = datetime(2024, 1, 15, 9, 45)
    assert to_naive_local(naive) is naive
    aware = datetime(2024, 1, 15, 9, 45, tzinfo=timezone.utc)
    assert to_naive_local(aware) == aware.astimezone().replace(tzinfo=None)
