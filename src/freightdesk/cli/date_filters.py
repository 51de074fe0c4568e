"""CLI helpers for date range options."""

from datetime import date

import click

from freightdesk.utils.date_parser import SUPPORTED_PERIODS, get_date_range, parse_date


def period_options(func):
    """Add --start-date/--end-date and one boolean flag per named period.

    The period flags reach the command as keyword arguments such as
    ``this_month``.
    """
    for period in reversed(SUPPORTED_PERIODS):
        func = click.option(
            f"--{period}", is_flag=True, help=f"Limit to {period.replace('-', ' ')}"
        )(func)
    func = click.option("--end-date", help="End date (inclusive)")(func)
    func = click.option("--start-date", help="Start date (inclusive)")(func)
    return func


def resolve_cli_date_range(
    ctx: click.Context,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
) -> tuple[date | None, date | None]:
    """Turn period flags or explicit dates into an inclusive date range.

    Exits with status 1 when more than one period is given, when a period
    is mixed with explicit dates, or when a date cannot be parsed.
    """
    chosen = [name.replace("_", "-") for name, is_set in period_flags.items() if is_set]
    if len(chosen) > 1:
        flags = ", ".join(f"--{p}" for p in SUPPORTED_PERIODS)
        click.echo(f"Error: Only one period option ({flags}) can be specified at a time.", err=True)
        ctx.exit(1)
    if chosen and (start_date or end_date):
        click.echo(
            "Error: Period options cannot be combined with --start-date or --end-date.", err=True
        )
        ctx.exit(1)

    if chosen:
        return get_date_range(chosen[0])

    start = end = None
    if start_date:
        try:
            start = parse_date(start_date)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)
    if end_date:
        try:
            end = parse_date(end_date)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)
    return start, end
