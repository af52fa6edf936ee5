"""Account management commands."""

import click
from pocketledger.cli.context import get_ledger
from pocketledger.cli.helpers import fail, parse_datetime_or_exit, resolve_account_or_exit
from pocketledger.domain.constants import AccountType
from pocketledger.utils.amount_parser import parse_amount

ACCOUNT_TYPES = [t.value for t in AccountType]


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option(
    "--type",
    "account_type",
    required=True,
    type=click.Choice(ACCOUNT_TYPES, case_sensitive=False),
    help="Account type",
)
@click.option("--currency", help="Currency code (defaults to the configured default currency)")
@click.option("--parent", help="Parent account name or ID (must have the same type)")
@click.option("--icon", help="Icon name")
@click.option("--description", help="Free text description")
@click.option("--initial-balance", help="Opening balance, posted against 'Opening Balances'")
@click.pass_context
def create_account(
    ctx,
    name: str,
    account_type: str,
    currency: str | None,
    parent: str | None,
    icon: str | None,
    description: str | None,
    initial_balance: str | None,
):
    """Create a new account.

    Examples:
        pocketledger account create "Checking" --type asset --currency USD
        pocketledger account create "Groceries" --type expense --parent "Food"
        pocketledger account create "Savings" --type asset --initial-balance 1500
    """
    ledger = get_ledger(ctx)
    parent_id = None
    if parent is not None:
        parent_id = resolve_account_or_exit(ctx, ledger.accounts, parent)

    try:
        opening = parse_amount(initial_balance) if initial_balance is not None else None
        account_id = ledger.accounts.create_account(
            name=name,
            account_type=account_type,
            currency_code=currency or ledger.settings.default_currency,
            parent_account_id=parent_id,
            icon=icon,
            description=description,
            initial_balance=opening,
        )
    except ValueError as e:
        fail(ctx, e)

    ledger.flush_rebuilds()
    click.echo(f"Created account '{name}' (ID: {account_id})")


@account_group.command("list")
@click.option("--all", "show_deleted", is_flag=True, help="Include deleted accounts")
@click.pass_context
def list_accounts(ctx, show_deleted: bool):
    """List accounts as a tree."""
    ledger = get_ledger(ctx)

    if show_deleted:
        accounts = [(a, 0) for a in ledger.accounts.list_accounts(include_deleted=True)]
    else:
        accounts = ledger.accounts.get_account_tree()
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 70)
    for acc, depth in accounts:
        label = "  " * depth + acc.name
        deleted = " (deleted)" if acc.is_deleted else ""
        click.echo(
            f"ID: {acc.id:3d} | {label:30s} | {acc.account_type.value:9s} | {acc.currency_code}{deleted}"
        )


@account_group.command("update")
@click.argument("account", metavar="ACCOUNT")
@click.option("--name", help="New account name")
@click.option("--type", "account_type", type=click.Choice(ACCOUNT_TYPES, case_sensitive=False))
@click.option("--currency", help="New currency code")
@click.option("--parent", help="New parent account name or ID")
@click.option("--root", "make_root", is_flag=True, help="Detach the account from its parent")
@click.option("--icon", help="Icon name")
@click.option("--description", help="Free text description")
@click.option("--order", "order_num", type=int, help="Position among siblings")
@click.pass_context
def update_account(
    ctx,
    account: str,
    name: str | None,
    account_type: str | None,
    currency: str | None,
    parent: str | None,
    make_root: bool,
    icon: str | None,
    description: str | None,
    order_num: int | None,
):
    """Update an account.

    Type and currency can only change while the account has no transactions.

    Examples:
        pocketledger account update "Checking" --name "Main Checking"
        pocketledger account update "Groceries" --parent "Food"
        pocketledger account update 7 --root
    """
    ledger = get_ledger(ctx)
    account_id = resolve_account_or_exit(ctx, ledger.accounts, account)

    if parent is not None and make_root:
        fail(ctx, "--parent cannot be combined with --root.")

    changes = {}
    if name is not None:
        changes["name"] = name
    if account_type is not None:
        changes["account_type"] = account_type
    if currency is not None:
        changes["currency_code"] = currency
    if parent is not None:
        changes["parent_account_id"] = resolve_account_or_exit(ctx, ledger.accounts, parent)
    if make_root:
        changes["parent_account_id"] = None
    if icon is not None:
        changes["icon"] = icon
    if description is not None:
        changes["description"] = description
    if order_num is not None:
        changes["order_num"] = order_num

    if not changes:
        fail(ctx, "No changes given.")

    try:
        updated = ledger.accounts.update_account(account_id, **changes)
    except ValueError as e:
        fail(ctx, e)
    click.echo(f"Updated account '{updated.name}' (ID: {updated.id})")


@account_group.command("delete")
@click.argument("account", metavar="ACCOUNT")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete_account(ctx, account: str, yes: bool):
    """Delete an account.

    Accounts with active child accounts cannot be deleted. Deleted accounts
    can be brought back with 'account recover'.
    """
    ledger = get_ledger(ctx)
    account_id = resolve_account_or_exit(ctx, ledger.accounts, account)
    acc = ledger.accounts.get_account(account_id)

    if not yes and not click.confirm(f"Delete account '{acc.name}'?"):
        click.echo("Cancelled.")
        return

    try:
        ledger.accounts.delete_account(account_id)
    except ValueError as e:
        fail(ctx, e)
    click.echo(f"Deleted account '{acc.name}' (ID: {account_id})")


@account_group.command("recover")
@click.argument("account_id", type=int)
@click.pass_context
def recover_account(ctx, account_id: int):
    """Restore a deleted account."""
    ledger = get_ledger(ctx)
    try:
        acc = ledger.accounts.recover_account(account_id)
    except ValueError as e:
        fail(ctx, e)
    click.echo(f"Recovered account '{acc.name}' (ID: {acc.id})")


@account_group.command("adjust")
@click.argument("account", metavar="ACCOUNT")
@click.argument("target", metavar="TARGET_BALANCE")
@click.option("--date", "date_str", help="Date of the correction (default: now)")
@click.pass_context
def adjust_account(ctx, account: str, target: str, date_str: str | None):
    """Set an account's balance by posting a correction.

    The difference is booked against the 'Balance Corrections' equity account.

    Examples:
        pocketledger account adjust "Checking" 1234.56
        pocketledger account adjust "Wallet" 0 --date yesterday
    """
    ledger = get_ledger(ctx)
    account_id = resolve_account_or_exit(ctx, ledger.accounts, account)
    journal_date = parse_datetime_or_exit(ctx, date_str)

    try:
        journal = ledger.accounts.adjust_balance(account_id, parse_amount(target), journal_date)
    except ValueError as e:
        fail(ctx, e)

    ledger.flush_rebuilds()
    if journal is None:
        click.echo("Balance already matches; nothing to adjust.")
    else:
        amount = ledger.format_amount(journal.total_amount, journal.currency_code)
        click.echo(f"Posted correction journal {journal.id} ({amount})")


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
