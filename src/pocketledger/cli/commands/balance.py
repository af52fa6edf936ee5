"""Balance reporting commands."""

import asyncio

import click
from pocketledger.cli.context import get_ledger
from pocketledger.cli.helpers import fail, parse_datetime_or_exit


@click.command("balance")
@click.option("--as-of", "as_of", help="Report balances as of this date (default: now)")
@click.option("--currency", help="Currency for mixed-currency roll-ups (default: configured)")
@click.option("--breakdown", is_flag=True, help="Show per-currency subtotals of mixed roll-ups")
@click.pass_context
def show_balances(ctx, as_of: str | None, currency: str | None, breakdown: bool):
    """Show account balances rolled up through the account tree.

    A parent's balance includes all of its descendants. Subtrees that mix
    currencies are converted into the default currency.

    Examples:
        pocketledger balance
        pocketledger balance --as-of "last month" --currency EUR --breakdown
    """
    ledger = get_ledger(ctx)
    as_of_date = parse_datetime_or_exit(ctx, as_of)
    ledger.flush_rebuilds()

    tree = ledger.accounts.get_account_tree()
    if not tree:
        click.echo("No accounts found.")
        return

    try:
        balances = asyncio.run(
            ledger.balances.get_account_balances(as_of_date, currency.upper() if currency else None)
        )
    except ValueError as e:
        fail(ctx, e)
    by_id = {b.account_id: b for b in balances}

    click.echo("\nBalances:")
    click.echo("-" * 70)
    for account, depth in tree:
        balance = by_id[account.id]
        label = "  " * depth + account.name
        amount = ledger.format_amount(balance.balance, balance.currency_code)
        click.echo(f"{label:40s} {amount:>24s}")
        if breakdown and len(balance.child_balances) > 1:
            for sub in balance.child_balances:
                sub_amount = ledger.format_amount(sub.balance, sub.currency_code)
                click.echo(f"{'  ' * (depth + 1)}{'':38s} {sub_amount:>24s}")


@click.command("networth")
@click.option("--as-of", "as_of", help="Report as of this date (default: now)")
@click.option("--currency", help="Report currency (default: configured)")
@click.pass_context
def show_net_worth(ctx, as_of: str | None, currency: str | None):
    """Show net worth with the totals of each account type."""
    ledger = get_ledger(ctx)
    as_of_date = parse_datetime_or_exit(ctx, as_of)
    ledger.flush_rebuilds()

    try:
        worth = asyncio.run(
            ledger.balances.get_net_worth(as_of_date, currency.upper() if currency else None)
        )
    except ValueError as e:
        fail(ctx, e)

    click.echo(f"Assets:      {ledger.format_amount(worth.assets, worth.currency_code):>24s}")
    click.echo(f"Liabilities: {ledger.format_amount(worth.liabilities, worth.currency_code):>24s}")
    click.echo("-" * 37)
    click.echo(f"Net worth:   {ledger.format_amount(worth.net_worth, worth.currency_code):>24s}")
    click.echo()
    click.echo(f"Equity:      {ledger.format_amount(worth.equity, worth.currency_code):>24s}")
    click.echo(f"Income:      {ledger.format_amount(worth.income, worth.currency_code):>24s}")
    click.echo(f"Expenses:    {ledger.format_amount(worth.expenses, worth.currency_code):>24s}")


def register_commands(cli):
    """Register balance commands with main CLI."""
    cli.add_command(show_balances)
    cli.add_command(show_net_worth)
