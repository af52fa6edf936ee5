"""Date parsing utilities."""

from datetime import date, datetime, time, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

PERIODS = ["this-month", "this-year", "this-week", "last-month", "last-year", "last-week"]


def _relative_date(date_str: str, today: date) -> Optional[date]:
    """Resolve relative expressions such as "yesterday" or "last month"."""
    fixed = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if date_str in fixed:
        return fixed[date_str]

    prefix, _, period = date_str.partition(" ")
    if prefix == "last":
        if period == "month":
            return (today - relativedelta(months=1)).replace(day=1)
        if period == "year":
            return today.replace(month=1, day=1) - relativedelta(years=1)
        if period == "week":
            # Monday of last week
            return today - timedelta(days=today.weekday() + 7)
        if period in WEEKDAYS:
            days_ago = (today.weekday() - WEEKDAYS.index(period)) % 7 or 7
            return today - timedelta(days=days_ago)
    elif prefix == "this":
        if period == "month":
            return today.replace(day=1)
        if period == "year":
            return today.replace(month=1, day=1)
        if period == "week":
            return today - timedelta(days=today.weekday())
    elif prefix == "next":
        if period == "month":
            return (today + relativedelta(months=1)).replace(day=1)
        if period == "year":
            return today.replace(month=1, day=1) + relativedelta(years=1)
        if period == "week":
            return today + timedelta(days=7 - today.weekday())
    return None


def parse_date(date_str: str) -> date:
    """Parse an absolute ("2024-01-15", "January 15, 2024") or relative
    ("yesterday", "last month", "last friday") date.

    Raises:
        ValueError: If the string is not a recognizable date
    """
    date_str = date_str.strip().lower()
    relative = _relative_date(date_str, date.today())
    if relative is not None:
        return relative

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_datetime(value: str, now: Optional[datetime] = None) -> datetime:
    """Parse a journal timestamp.

    "now" and "today" mean the current moment. Other relative words resolve
    to midnight of the day they name. Absolute values keep their time of day
    when one is given ("2024-01-15 09:30").

    Raises:
        ValueError: If the value cannot be parsed
    """
    now = now or datetime.now()
    text = value.strip().lower()
    if text in ("now", "today"):
        return now

    relative = _relative_date(text, now.date())
    if relative is not None:
        return datetime.combine(relative, time.min)

    try:
        parsed = date_parser.parse(text, default=datetime.combine(now.date(), time.min))
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{value}': {e}")
    return to_naive_local(parsed)


def to_naive_local(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through.

    Stored timestamps are naive local time.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Return the inclusive (start, end) days of a named period.

    "this-*" periods end today; "last-*" periods end the day before the
    current one starts.

    Raises:
        ValueError: If the period is not one of PERIODS
    """
    today = today or date.today()
    scope, _, unit = period.strip().lower().partition("-")
    if scope not in ("this", "last") or unit not in ("week", "month", "year"):
        raise ValueError(f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}")

    start = _relative_date(f"{scope} {unit}", today)
    if scope == "this":
        return start, today
    return start, _relative_date(f"this {unit}", today) - timedelta(days=1)
