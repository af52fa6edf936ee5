"""Shared helpers for CLI commands: errors, account lookup and dates."""

from __future__ import annotations

from datetime import datetime, time
from typing import Optional

import click

from pocketledger.domain.account import AccountService
from pocketledger.utils.date_parser import get_date_range, parse_date, parse_datetime


def fail(ctx: click.Context, error: Exception | str) -> None:
    """Print ``Error: <message>`` on stderr and exit with status 1."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def resolve_account_or_exit(
    ctx: click.Context, account_service: AccountService, account: str | int
) -> int:
    """Resolve account name or ID, or exit with a CLI error."""
    try:
        return account_service.resolve(account)
    except ValueError as exc:
        fail(ctx, exc)


def parse_datetime_or_exit(ctx: click.Context, value: Optional[str], label: str = "date") -> Optional[datetime]:
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError as e:
        fail(ctx, f"Invalid {label}: {e}")


def resolve_date_range(
    ctx: click.Context,
    *,
    period: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Resolve ``--period`` or ``--start``/``--end`` into an inclusive datetime range.

    The end of the range covers the whole of its last day.
    """
    if period and (start_date or end_date):
        fail(ctx, "--period cannot be combined with --start or --end.")

    try:
        if period:
            start_day, end_day = get_date_range(period)
        else:
            start_day = parse_date(start_date) if start_date else None
            end_day = parse_date(end_date) if end_date else None
    except ValueError as e:
        fail(ctx, e)

    start = datetime.combine(start_day, time.min) if start_day else None
    end = datetime.combine(end_day, time.max) if end_day else None
    return start, end
