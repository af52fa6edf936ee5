"""Maintenance commands: rebuilds, integrity checks, rates and history."""

import asyncio
import json

import click
from pocketledger.cli.context import get_ledger
from pocketledger.cli.helpers import fail, parse_datetime_or_exit, resolve_account_or_exit
from pocketledger.domain.constants import AuditEntityType


@click.command("rebuild")
@click.argument("account", required=False)
@click.option("--from", "from_date", help="Rebuild from this date (default: from the first transaction)")
@click.pass_context
def rebuild_balances(ctx, account: str | None, from_date: str | None):
    """Recompute stored running balances.

    Rebuilds a single account when ACCOUNT is given, otherwise every account.
    """
    ledger = get_ledger(ctx)
    start = parse_datetime_or_exit(ctx, from_date, "from date")

    if account is not None:
        account_ids = [resolve_account_or_exit(ctx, ledger.accounts, account)]
    else:
        account_ids = [a.id for a in ledger.accounts.list_accounts()]

    ledger.rebuild_queue.enqueue_many(account_ids, start)
    asyncio.run(ledger.rebuild_queue.flush())
    click.echo(f"Rebuilt running balances for {len(account_ids)} account(s)")


@click.command("check")
@click.pass_context
def check_integrity(ctx):
    """Verify stored balances and repair accounts that disagree."""
    ledger = get_ledger(ctx)
    ledger.flush_rebuilds()
    report = ledger.integrity.run_startup_check()

    click.echo(f"Checked {report.accounts_checked} of {report.total_accounts} account(s)")
    for result in report.results:
        if result.matches:
            continue
        code = ledger.accounts.get_account(result.account_id).currency_code
        cached = "missing" if result.cached_balance is None else ledger.format_amount(result.cached_balance, code)
        computed = ledger.format_amount(result.computed_balance, code)
        click.echo(f"  {result.account_name}: stored {cached}, computed {computed}")
    click.echo(
        f"Discrepancies: {report.discrepancies_found}, "
        f"repaired: {report.repairs_successful}/{report.repairs_attempted}"
    )
    if report.repairs_successful < report.repairs_attempted:
        ctx.exit(1)


@click.command("rate")
@click.argument("from_currency")
@click.argument("to_currency")
@click.option("--amount", type=str, help="Also convert this amount")
@click.pass_context
def show_rate(ctx, from_currency: str, to_currency: str, amount: str | None):
    """Show the exchange rate between two currencies.

    Examples:
        pocketledger rate USD EUR
        pocketledger rate GBP JPY --amount 250
    """
    ledger = get_ledger(ctx)
    try:
        if amount is None:
            rate = asyncio.run(ledger.resolver.get_rate(from_currency, to_currency))
            click.echo(f"1 {from_currency.upper()} = {rate} {to_currency.upper()}")
        else:
            conversion = asyncio.run(ledger.resolver.convert(amount, from_currency, to_currency))
            converted = ledger.format_amount(conversion.converted_amount, to_currency.upper())
            click.echo(f"{amount} {from_currency.upper()} = {converted} (rate {conversion.rate})")
    except ValueError as e:
        fail(ctx, e)


@click.command("history")
@click.argument("entity_type", type=click.Choice([t.value for t in AuditEntityType]))
@click.argument("entity_id", type=int)
@click.pass_context
def show_history(ctx, entity_type: str, entity_id: int):
    """Show the audit trail of an account or journal."""
    ledger = get_ledger(ctx)
    entries = ledger.audit.find(entity_type, entity_id)
    if not entries:
        click.echo("No history found.")
        return

    for entry in entries:
        click.echo(f"{entry.timestamp:%Y-%m-%d %H:%M:%S} {entry.action.value}")
        click.echo("  " + json.dumps(entry.changes, sort_keys=True, default=str))


def register_commands(cli):
    """Register maintenance commands with main CLI."""
    cli.add_command(rebuild_balances)
    cli.add_command(check_integrity)
    cli.add_command(show_rate)
    cli.add_command(show_history)
