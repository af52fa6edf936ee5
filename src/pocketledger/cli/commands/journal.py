"""Journal commands."""

from dataclasses import replace

import click
from pocketledger.cli.context import Ledger, get_ledger
from pocketledger.cli.helpers import (
    fail,
    parse_datetime_or_exit,
    resolve_account_or_exit,
    resolve_date_range,
)
from pocketledger.domain.constants import TransactionType
from pocketledger.domain.entry import EntryLine
from pocketledger.utils.date_parser import PERIODS

LINE_HELP = "Journal line as ACCOUNT:DEBIT|CREDIT:AMOUNT[:RATE] (repeat for each line)"


def parse_line(ctx: click.Context, ledger: Ledger, value: str) -> EntryLine:
    """Parse ``ACCOUNT:TYPE:AMOUNT[:RATE]``.

    The account part may itself contain colons; the last DEBIT/CREDIT token
    splits it from the amount.
    """
    parts = value.split(":")
    type_index = None
    for i in range(len(parts) - 1, 0, -1):
        if parts[i].strip().upper() in (TransactionType.DEBIT.value, TransactionType.CREDIT.value):
            type_index = i
            break
    rest = parts[type_index + 1 :] if type_index is not None else []
    if type_index is None or len(rest) not in (1, 2):
        fail(ctx, f"Invalid line '{value}'. Expected ACCOUNT:DEBIT|CREDIT:AMOUNT[:RATE]")

    account_id = resolve_account_or_exit(ctx, ledger.accounts, ":".join(parts[:type_index]).strip())
    return EntryLine(
        account_id=account_id,
        amount=rest[0],
        transaction_type=TransactionType(parts[type_index].strip().upper()),
        exchange_rate=rest[1] if len(rest) == 2 else None,
    )


def _submit(ctx, ledger: Ledger, lines, description, date_str, currency, journal_id=None):
    entry_lines = [parse_line(ctx, ledger, line) for line in lines]
    journal_date = parse_datetime_or_exit(ctx, date_str or "now")
    preferences = ledger.preferences
    if currency:
        preferences = replace(preferences, default_currency=currency.upper())

    result = ledger.entries.submit_journal_entry(
        entry_lines, description or "", journal_date, preferences, journal_id=journal_id
    )
    if not result.success:
        fail(ctx, result.error)

    ledger.flush_rebuilds()
    journal = result.journal
    click.echo(
        f"Journal {journal.id} {result.action}: "
        f"{ledger.format_amount(journal.total_amount, journal.currency_code)} "
        f"({journal.display_type.value.lower()})"
    )


@click.group()
def journal_group():
    """Record and manage journals."""
    pass


@journal_group.command("add")
@click.option("--line", "lines", multiple=True, required=True, help=LINE_HELP)
@click.option("--description", "-d", required=True, help="Journal description")
@click.option("--date", "date_str", help="Journal date (default: now)")
@click.option("--currency", help="Journal currency (default: configured default currency)")
@click.pass_context
def add_journal(ctx, lines, description: str, date_str: str | None, currency: str | None):
    """Add a multi-line journal.

    Debits and credits must balance after applying each line's exchange rate.

    Examples:
        pocketledger journal add -d "Paycheck" --line "Checking:DEBIT:900" \\
            --line "Taxes:DEBIT:100" --line "Salary:CREDIT:1000"
        pocketledger journal add -d "Card payment" --date yesterday \\
            --line "Visa:DEBIT:250" --line "Checking:CREDIT:250"
    """
    ledger = get_ledger(ctx)
    _submit(ctx, ledger, lines, description, date_str, currency)


@journal_group.command("edit")
@click.argument("journal_id", type=int)
@click.option("--line", "lines", multiple=True, required=True, help=LINE_HELP)
@click.option("--description", "-d", help="Journal description (default: unchanged)")
@click.option("--date", "date_str", help="Journal date (default: unchanged)")
@click.option("--currency", help="Journal currency (default: unchanged)")
@click.pass_context
def edit_journal(ctx, journal_id: int, lines, description, date_str, currency):
    """Replace a journal's lines and details.

    All lines must be given again; the previous ones are removed.
    """
    ledger = get_ledger(ctx)
    try:
        existing = ledger.journals.require_journal(journal_id)
    except ValueError as e:
        fail(ctx, e)

    _submit(
        ctx,
        ledger,
        lines,
        description if description is not None else existing.description,
        date_str or existing.journal_date.isoformat(),
        currency or existing.currency_code,
        journal_id=journal_id,
    )


@journal_group.command("list")
@click.option("--period", type=click.Choice(PERIODS), help="Limit to a period")
@click.option("--start", "start_date", help="Start date (YYYY-MM-DD or relative like 'last month')")
@click.option("--end", "end_date", help="End date (YYYY-MM-DD)")
@click.option("--limit", type=int, help="Show at most this many journals")
@click.option("--hide-reversed", is_flag=True, help="Hide journals that were reversed")
@click.pass_context
def list_journals(ctx, period, start_date, end_date, limit, hide_reversed: bool):
    """List journals, newest first."""
    ledger = get_ledger(ctx)
    start, end = resolve_date_range(ctx, period=period, start_date=start_date, end_date=end_date)

    journals = ledger.journals.list_journals(
        start=start, end=end, limit=limit, include_reversed=not hide_reversed
    )
    if not journals:
        click.echo("No journals found.")
        return

    click.echo(f"\nFound {len(journals)} journal(s):")
    click.echo("-" * 100)
    click.echo(f"{'ID':<6} {'Date':<17} {'Type':<9} {'Amount':>18}  {'Status':<9} {'Description':<30}")
    click.echo("-" * 100)
    for journal in journals:
        amount = ledger.format_amount(journal.total_amount, journal.currency_code)
        click.echo(
            f"{journal.id:<6} {journal.journal_date:%Y-%m-%d %H:%M} {journal.display_type.value:<9} "
            f"{amount:>18}  {journal.status.value:<9} {(journal.description or '')[:30]:<30}"
        )


@journal_group.command("show")
@click.argument("journal_id", type=int)
@click.pass_context
def show_journal(ctx, journal_id: int):
    """Show a journal and its lines."""
    ledger = get_ledger(ctx)
    try:
        journal = ledger.journals.require_journal(journal_id)
    except ValueError as e:
        fail(ctx, e)

    accounts = {a.id: a.name for a in ledger.accounts.list_accounts(include_deleted=True)}
    click.echo(f"\nJournal ID: {journal.id}")
    click.echo(f"  Date: {journal.journal_date:%Y-%m-%d %H:%M}")
    click.echo(f"  Description: {journal.description or ''}")
    click.echo(f"  Total: {ledger.format_amount(journal.total_amount, journal.currency_code)}")
    click.echo(f"  Type: {journal.display_type.value}")
    click.echo(f"  Status: {journal.status.value}")
    if journal.reversal_of_journal_id:
        click.echo(f"  Reverses: {journal.reversal_of_journal_id}")
    if journal.reversed_by_journal_id:
        click.echo(f"  Reversed by: {journal.reversed_by_journal_id}")

    click.echo("-" * 90)
    for txn in ledger.journals.get_journal_transactions(journal_id):
        running = (
            "pending"
            if txn.running_balance is None
            else ledger.format_amount(txn.running_balance, txn.currency_code)
        )
        rate = "" if txn.exchange_rate == 1 else f" @ {txn.exchange_rate.normalize()}"
        click.echo(
            f"  {txn.transaction_type.value:<6} {accounts.get(txn.account_id, 'Unknown'):<25} "
            f"{ledger.format_amount(txn.amount, txn.currency_code):>18}{rate}  balance: {running}"
        )
        if txn.notes:
            click.echo(f"         {txn.notes}")


@journal_group.command("delete")
@click.argument("journal_id", type=int)
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete_journal(ctx, journal_id: int, yes: bool):
    """Delete a journal and its lines."""
    ledger = get_ledger(ctx)
    journal = ledger.journals.get_journal(journal_id)
    if journal is None:
        fail(ctx, f"Journal {journal_id} not found")

    if not yes and not click.confirm(f"Delete journal {journal_id} ({journal.description or 'no description'})?"):
        click.echo("Cancelled.")
        return

    ledger.journals.delete_journal(journal_id)
    ledger.flush_rebuilds()
    click.echo(f"Deleted journal {journal_id}")


@journal_group.command("reverse")
@click.argument("journal_id", type=int)
@click.option("--reason", default="Reversal", show_default=True, help="Reason recorded on the reversal")
@click.pass_context
def reverse_journal(ctx, journal_id: int, reason: str):
    """Post a journal that cancels out an existing one."""
    ledger = get_ledger(ctx)
    try:
        reversal = ledger.journals.create_reversal_journal(journal_id, reason=reason)
    except ValueError as e:
        fail(ctx, e)
    ledger.flush_rebuilds()
    click.echo(f"Journal {journal_id} reversed by journal {reversal.id}")


@journal_group.command("duplicate")
@click.argument("journal_id", type=int)
@click.pass_context
def duplicate_journal(ctx, journal_id: int):
    """Copy a journal to today's date."""
    ledger = get_ledger(ctx)
    try:
        copy = ledger.journals.duplicate_journal(journal_id)
    except ValueError as e:
        fail(ctx, e)
    ledger.flush_rebuilds()
    click.echo(f"Journal {journal_id} duplicated as journal {copy.id}")


def register_commands(cli):
    """Register journal commands with main CLI."""
    cli.add_command(journal_group, name="journal")
