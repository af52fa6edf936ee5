"""Simple expense, income and transfer commands."""

import asyncio

import click
from pocketledger.cli.context import get_ledger
from pocketledger.cli.helpers import fail, parse_datetime_or_exit, resolve_account_or_exit
from pocketledger.domain.constants import EntryType
from pocketledger.domain.entry import SimpleEntry
from pocketledger.utils.amount_parser import parse_amount, parse_rate


def _record(ctx, entry_type: EntryType, amount: str, source: str, destination: str, date_str, description, rate):
    ledger = get_ledger(ctx)
    source_id = resolve_account_or_exit(ctx, ledger.accounts, source)
    destination_id = resolve_account_or_exit(ctx, ledger.accounts, destination)
    journal_date = parse_datetime_or_exit(ctx, date_str or "now")

    try:
        entry = SimpleEntry(
            entry_type=entry_type,
            amount=parse_amount(amount),
            journal_date=journal_date,
            description=description,
            source_account_id=source_id,
            destination_account_id=destination_id,
            exchange_rate=parse_rate(rate) if rate is not None else None,
        )
    except ValueError as e:
        fail(ctx, e)

    result = asyncio.run(ledger.entries.save_simple_entry(entry, ledger.preferences))
    if not result.success:
        fail(ctx, result.error)

    ledger.flush_rebuilds()
    journal = result.journal
    click.echo(
        f"Recorded {entry_type.value.lower()} of "
        f"{ledger.format_amount(journal.total_amount, journal.currency_code)} (journal {journal.id})"
    )


def _entry_options(func):
    func = click.pass_context(func)
    func = click.option("--rate", help="Exchange rate from the source to the destination currency")(func)
    func = click.option("--description", "-d", help="Description")(func)
    func = click.option("--date", "date_str", help="Date (default: now)")(func)
    func = click.option("--to", "destination", required=True, help="Destination account name or ID")(func)
    func = click.option("--from", "source", required=True, help="Source account name or ID")(func)
    func = click.argument("amount")(func)
    return func


@click.command("expense")
@_entry_options
def record_expense(ctx, amount, source, destination, date_str, description, rate):
    """Record money spent from an account into an expense account.

    Examples:
        pocketledger expense 42.50 --from Checking --to Groceries
        pocketledger expense 12 --from Wallet --to Coffee --date yesterday -d "Latte"
    """
    _record(ctx, EntryType.EXPENSE, amount, source, destination, date_str, description, rate)


@click.command("income")
@_entry_options
def record_income(ctx, amount, source, destination, date_str, description, rate):
    """Record income from an income account into an account.

    Examples:
        pocketledger income 3000 --from Salary --to Checking -d "March salary"
    """
    _record(ctx, EntryType.INCOME, amount, source, destination, date_str, description, rate)


@click.command("transfer")
@_entry_options
def record_transfer(ctx, amount, source, destination, date_str, description, rate):
    """Move money between asset or liability accounts.

    When the accounts use different currencies the amount is converted with
    --rate, or with the current market rate if --rate is not given.

    Examples:
        pocketledger transfer 100 --from "Checking USD" --to "Savings EUR"
        pocketledger transfer 100 --from "Checking USD" --to "Savings EUR" --rate 0.85
    """
    _record(ctx, EntryType.TRANSFER, amount, source, destination, date_str, description, rate)


def register_commands(cli):
    """Register entry commands with main CLI."""
    cli.add_command(record_expense)
    cli.add_command(record_income)
    cli.add_command(record_transfer)
