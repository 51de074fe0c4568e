"""Main CLI entry point."""

import logging
import os

import click
from freightdesk.database.factories import create_database
from freightdesk.domain.entities import Actor

# Import and register all commands at module level
from freightdesk.cli.commands import (
    audit,
    bkk,
    drawing,
    equipment,
    hse,
    invoice,
    job,
    overhead,
    payroll,
    report,
    terms,
    vendor,
)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_LEVEL_ENV = "FREIGHTDESK_LOG_LEVEL"


def configure_logging(verbose: bool = False) -> None:
    """Configure the root logger from --verbose or FREIGHTDESK_LOG_LEVEL."""
    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, os.environ.get(LOG_LEVEL_ENV, "WARNING").upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to SQLite database file (overrides FREIGHTDESK_DB_PATH environment variable)",
    envvar="FREIGHTDESK_DB_PATH",
)
@click.option(
    "--user",
    "user_email",
    help="Email of the user performing the command, recorded in audit logs",
    envvar="FREIGHTDESK_USER",
)
@click.option(
    "--role",
    default="admin",
    show_default=True,
    help="Role of the user performing the command",
    envvar="FREIGHTDESK_ROLE",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db_path: str | None, user_email: str | None, role: str, verbose: bool):
    """Freightdesk - job order, invoicing and cost control for freight forwarding.

    Tracks job orders with their invoice terms, invoices, overhead and
    profitability, cash disbursements (BKK), vendors, engineering drawings,
    HSE incidents, equipment utilization and an audit trail of every change.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose)

    # Only open the database when a command actually runs (not for --help)
    if ctx.invoked_subcommand is not None:
        db = create_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["actor"] = Actor(email=user_email, role=role, user_id=user_email)
        ctx.call_on_close(db.disconnect)


job.register_commands(cli)
terms.register_commands(cli)
overhead.register_commands(cli)
bkk.register_commands(cli)
drawing.register_commands(cli)
report.register_commands(cli)
audit.register_commands(cli)
payroll.register_commands(cli)
invoice.register_commands(cli)
vendor.register_commands(cli)
hse.register_commands(cli)
equipment.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
