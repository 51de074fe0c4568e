"""Report commands."""

import click
from freightdesk.cli.date_filters import period_options, resolve_cli_date_range
from freightdesk.cli.error_handling import handle_domain_error, parse_amount_option
from freightdesk.domain.profitability import ProfitabilityFilters, ProfitabilityService
from freightdesk.utils.amount_parser import format_compact, format_idr


@click.group()
def report_group():
    """Generate reports."""
    pass


@report_group.command("profitability")
@period_options
@click.option("--min-margin", help="Lowest net margin to include, in percent")
@click.option("--max-margin", help="Highest net margin to include, in percent")
@click.option("--compact", is_flag=True, help="Show amounts as e.g. Rp 185.5M")
@click.pass_context
def profitability(ctx, start_date, end_date, min_margin, max_margin, compact, **period_flags):
    """Job profitability, highest net margin first.

    Net profit is revenue less direct, equipment and overhead cost.
    Cancelled job orders are left out.

    Examples:
        freightdesk report profitability --this-year
        freightdesk report profitability --start-date 2025-01-01 --min-margin 10
    """
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )
    filters = ProfitabilityFilters(
        date_from=start,
        date_to=end,
        min_margin=parse_amount_option(ctx, min_margin, "minimum margin"),
        max_margin=parse_amount_option(ctx, max_margin, "maximum margin"),
    )
    try:
        report = ProfitabilityService(ctx.obj["db"]).build_report(filters)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not report.jobs:
        click.echo("No job orders in range.")
        return

    money = format_compact if compact else format_idr
    click.echo(
        f"{'Job order':26s} {'Customer':18s} {'Revenue':>16s} {'Overhead':>14s} "
        f"{'Net profit':>16s} {'Margin':>8s}"
    )
    click.echo("-" * 104)
    for job in report.jobs:
        click.echo(
            f"{job.jo_number:26s} {job.customer_name[:18]:18s} {money(job.revenue):>16s} "
            f"{money(job.overhead):>14s} {money(job.net_profit):>16s} {job.net_margin:>7.2f}%"
        )

    summary = report.summary
    click.echo("-" * 104)
    click.echo(f"Jobs:            {summary.total_jobs}")
    click.echo(f"Total revenue:   {money(summary.total_revenue)}")
    click.echo(
        f"Total cost:      {money(summary.total_direct_cost + summary.total_equipment_cost)}"
        f" + overhead {money(summary.total_overhead)}"
    )
    click.echo(f"Net profit:      {money(summary.total_net_profit)}")
    click.echo(f"Average margin:  {summary.average_margin:.2f}%")


def register_commands(cli):
    """Register report commands with main CLI."""
    cli.add_command(report_group, name="report")
