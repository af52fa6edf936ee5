"""Main CLI entry point."""

import click
from pocketledger.config import get_settings
from pocketledger.database.factories import create_sqlite_database
from pocketledger.logging_config import configure_logging

# Import and register all commands at module level
from pocketledger.cli.commands import (
    account,
    journal,
    entry,
    balance,
    maintenance,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides POCKETLEDGER_DB_PATH environment variable)",
    envvar="POCKETLEDGER_DB_PATH",
)
@click.pass_context
def cli(ctx, db_path: str | None):
    """pocketledger - personal double-entry bookkeeping.

    Record expenses, income, transfers and free-form journals across
    accounts in several currencies, and see balances rolled up through
    your account hierarchy.
    """
    ctx.ensure_object(dict)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
journal.register_commands(cli)
entry.register_commands(cli)
balance.register_commands(cli)
maintenance.register_commands(cli)


def main():
    """Main entry point for CLI."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    cli()


if __name__ == "__main__":
    main()
