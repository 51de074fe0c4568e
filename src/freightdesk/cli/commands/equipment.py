"""Equipment and utilization commands."""

import click
from freightdesk.cli.date_filters import period_options, resolve_cli_date_range
from freightdesk.cli.error_handling import handle_domain_error, parse_amount_option
from freightdesk.domain.entities import DailyLogStatus
from freightdesk.domain.utilization import ASSET_STATUSES, UtilizationService
from freightdesk.utils.amount_parser import format_idr
from freightdesk.utils.date_parser import parse_date


@click.group()
def equipment_group():
    """Manage equipment and its daily usage."""
    pass


@equipment_group.command("add")
@click.argument("asset_code")
@click.argument("name")
@click.option("--daily-rate", default="0", help="Rental rate charged per operating day")
@click.pass_context
def add_asset(ctx, asset_code, name, daily_rate):
    """Register an equipment asset.

    Examples:
        freightdesk equipment add TRK-01 "Hino 500 prime mover" --daily-rate 1.250.000
    """
    rate = parse_amount_option(ctx, daily_rate, "daily rate")
    try:
        asset = UtilizationService(ctx.obj["db"]).register_asset(
            asset_code, name, rate, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Registered {asset.asset_code} {asset.name} at {format_idr(asset.daily_rate)}/day")


@equipment_group.command("list")
@click.option("--as-of", "as_of", default="today", show_default=True, help="Date to check availability on")
@click.pass_context
def list_assets(ctx, as_of):
    """List equipment with its availability."""
    try:
        on_date = parse_date(as_of)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)
    service = UtilizationService(ctx.obj["db"])
    assets = service.list_assets()
    if not assets:
        click.echo("No equipment found.")
        return

    click.echo(f"{'Code':10s} {'Name':28s} {'Status':12s} {'Availability':12s} {'Daily rate':>14s}")
    click.echo("-" * 80)
    for a in assets:
        click.echo(
            f"{a.asset_code:10s} {a.name[:28]:28s} {a.status:12s} "
            f"{service.availability(a.asset_code, on_date):12s} {format_idr(a.daily_rate):>14s}"
        )


@equipment_group.command("status")
@click.argument("asset_code")
@click.argument("status", type=click.Choice(ASSET_STATUSES))
@click.pass_context
def set_status(ctx, asset_code, status):
    """Change the status of an asset."""
    try:
        asset = UtilizationService(ctx.obj["db"]).set_status(
            asset_code, status, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{asset.asset_code} is now {asset.status}")


@equipment_group.command("log")
@click.argument("asset_code")
@click.argument("status", type=click.Choice([s.value for s in DailyLogStatus]))
@click.option("--date", "log_date", default="today", show_default=True, help="Day being logged")
@click.option("--km", help="Odometer readings as START-END, e.g. 12000-12250")
@click.option("--hours", help="Hour meter readings as START-END")
@click.option("--fuel", help="Fuel used in litres")
@click.option("--job", "jo_number", help="Job order the asset worked on")
@click.pass_context
def log_day(ctx, asset_code, status, log_date, km, hours, fuel, jo_number):
    """Log one day of an asset's use.

    Examples:
        freightdesk equipment log TRK-01 operating --km 12000-12250 --fuel 60 \\
            --job JO-0001/CARGO/I/2025
    """
    try:
        parsed_date = parse_date(log_date)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)
    start_km, end_km = _parse_reading_range(ctx, km, "odometer readings")
    start_hours, end_hours = _parse_reading_range(ctx, hours, "hour meter readings")
    try:
        UtilizationService(ctx.obj["db"]).log_day(
            asset_code,
            parsed_date,
            status,
            start_km=start_km,
            end_km=end_km,
            start_hours=start_hours,
            end_hours=end_hours,
            fuel_liters=parse_amount_option(ctx, fuel, "fuel"),
            jo_number=jo_number,
            actor=ctx.obj["actor"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Logged {asset_code.upper()} {status} on {parsed_date.isoformat()}")


def _parse_reading_range(ctx, value, label):
    if value is None:
        return None, None
    start, sep, end = value.partition("-")
    if not sep:
        click.echo(f"Error: Invalid {label}: expected START-END, got '{value}'", err=True)
        ctx.exit(1)
    return parse_amount_option(ctx, start, label), parse_amount_option(ctx, end, label)


@equipment_group.command("utilization")
@period_options
@click.pass_context
def utilization(ctx, start_date, end_date, **period_flags):
    """Utilization of each asset over a period.

    Examples:
        freightdesk equipment utilization --this-month
    """
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )
    summaries, stats = UtilizationService(ctx.obj["db"]).summarize(start, end)
    if not summaries:
        click.echo("No equipment found.")
        return

    click.echo(
        f"{'Code':10s} {'Days':>5s} {'Oper.':>5s} {'Util.':>7s} {'Category':9s} "
        f"{'Km':>9s} {'Km/l':>7s} {'Cost':>16s}"
    )
    click.echo("-" * 76)
    for s in summaries:
        efficiency = f"{s.fuel_efficiency}" if s.fuel_efficiency is not None else "-"
        click.echo(
            f"{s.asset_code:10s} {s.total_days:>5d} {s.operating_days:>5d} "
            f"{s.utilization_rate:>6}% {s.category:9s} {s.total_km.normalize():>9f} "
            f"{efficiency:>7s} {format_idr(s.equipment_cost):>16s}"
        )
    click.echo("-" * 76)
    click.echo(f"Average utilization: {stats.average_utilization_rate}%")
    click.echo(
        f"Assets: {stats.total_assets} ({stats.operating_count} well used, "
        f"{stats.idle_count} mostly idle, {stats.maintenance_count} with maintenance days)"
    )


def register_commands(cli):
    """Register equipment commands with main CLI."""
    cli.add_command(equipment_group, name="equipment")
