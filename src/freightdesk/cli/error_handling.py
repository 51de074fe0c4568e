"""CLI error handling helpers."""

import logging

import click

from freightdesk.domain.errors import DomainError
from freightdesk.utils.amount_parser import parse_amount

logger = logging.getLogger(__name__)


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    logger.debug("Command failed: %r", error)
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def parse_amount_option(ctx: click.Context, value: str | None, label: str):
    """Parse an amount option, exiting with an error when it is malformed."""
    if value is None:
        return None
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)
