"""Job order commands."""

import click
from freightdesk.cli.date_filters import period_options, resolve_cli_date_range
from freightdesk.cli.error_handling import handle_domain_error, parse_amount_option
from freightdesk.domain.entities import JobOrderStatus
from freightdesk.domain.job_order import JobOrderService
from freightdesk.domain.profitability import to_profitability
from freightdesk.utils.amount_parser import format_idr
from freightdesk.utils.date_parser import parse_date


@click.group()
def job_group():
    """Manage job orders."""
    pass


@job_group.command("create")
@click.option("--customer", required=True, help="Customer name (created if new)")
@click.option("--date", "order_date", default="today", show_default=True, help="Order date")
@click.option("--project", help="Project name")
@click.option("--revenue", default="0", help="Final revenue, e.g. 'Rp 15.000.000'")
@click.option("--direct-cost", default="0", help="Direct cost")
@click.option("--equipment-cost", default="0", help="Equipment cost")
@click.pass_context
def create_job(ctx, customer, order_date, project, revenue, direct_cost, equipment_cost):
    """Create a job order.

    The number is assigned per order month, e.g. JO-0001/CARGO/III/2025.

    Examples:
        freightdesk job create --customer "PT Maju" --revenue 15000000
        freightdesk job create --customer "PT Maju" --date 2025-03-01 --direct-cost "9.500.000"
    """
    service = JobOrderService(ctx.obj["db"])
    try:
        parsed_date = parse_date(order_date)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)

    amounts = {
        "revenue": parse_amount_option(ctx, revenue, "revenue"),
        "direct_cost": parse_amount_option(ctx, direct_cost, "direct cost"),
        "equipment_cost": parse_amount_option(ctx, equipment_cost, "equipment cost"),
    }
    try:
        job = service.create_job_order(
            customer_name=customer,
            order_date=parsed_date,
            project_name=project,
            actor=ctx.obj["actor"],
            **amounts,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created job order {job.jo_number} (ID: {job.id})")


@job_group.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in JobOrderStatus]),
    help="Only job orders in this status",
)
@period_options
@click.pass_context
def list_jobs(ctx, status, start_date, end_date, **period_flags):
    """List job orders."""
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )
    jobs = JobOrderService(ctx.obj["db"]).list_job_orders(start, end, status)
    if not jobs:
        click.echo("No job orders found.")
        return

    click.echo(f"{'Number':26s} {'Date':10s} {'Customer':20s} {'Status':20s} {'Revenue':>16s}")
    click.echo("-" * 96)
    for j in jobs:
        click.echo(
            f"{j.jo_number:26s} {j.order_date.isoformat():10s} {j.customer_name[:20]:20s} "
            f"{j.status.value:20s} {format_idr(j.revenue):>16s}"
        )


@job_group.command("show")
@click.argument("jo_number")
@click.pass_context
def show_job(ctx, jo_number):
    """Show a job order with its profit."""
    try:
        job = JobOrderService(ctx.obj["db"]).get_job_order(jo_number)
    except ValueError as e:
        handle_domain_error(ctx, e)

    profit = to_profitability(job)
    click.echo(f"Job order:      {job.jo_number}")
    click.echo(f"Customer:       {job.customer_name}")
    if job.project_name:
        click.echo(f"Project:        {job.project_name}")
    click.echo(f"Order date:     {job.order_date.isoformat()}")
    click.echo(f"Status:         {job.status.value}")
    click.echo(f"Surat Jalan:    {'yes' if job.has_surat_jalan else 'no'}")
    click.echo(f"Berita Acara:   {'yes' if job.has_berita_acara else 'no'}")
    click.echo(f"Revenue:        {format_idr(profit.revenue)}")
    click.echo(f"Direct cost:    {format_idr(profit.direct_cost)}")
    click.echo(f"Equipment cost: {format_idr(profit.equipment_cost)}")
    click.echo(f"Overhead:       {format_idr(profit.overhead)}")
    click.echo(f"Net profit:     {format_idr(profit.net_profit)}")
    click.echo(f"Net margin:     {profit.net_margin:.2f}%")


@job_group.command("status")
@click.argument("jo_number")
@click.argument("new_status", type=click.Choice([s.value for s in JobOrderStatus]))
@click.pass_context
def change_status(ctx, jo_number, new_status):
    """Move a job order to a new status.

    Allowed: active -> completed -> submitted_to_finance -> invoiced ->
    closed, and active -> cancelled.
    """
    try:
        job = JobOrderService(ctx.obj["db"]).transition_status(
            jo_number, new_status, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{job.jo_number} is now {job.status.value}")


@job_group.command("financials")
@click.argument("jo_number")
@click.option("--revenue", help="New final revenue")
@click.option("--direct-cost", help="New direct cost")
@click.option("--equipment-cost", help="New equipment cost")
@click.option("--surat-jalan/--no-surat-jalan", default=None, help="Delivery note issued")
@click.option("--berita-acara/--no-berita-acara", default=None, help="Handover report signed")
@click.pass_context
def update_financials(
    ctx, jo_number, revenue, direct_cost, equipment_cost, surat_jalan, berita_acara
):
    """Update the financial figures and delivery documents of a job order.

    Examples:
        freightdesk job financials JO-0001/CARGO/I/2025 --revenue 20000000
        freightdesk job financials JO-0001/CARGO/I/2025 --surat-jalan
    """
    service = JobOrderService(ctx.obj["db"])
    actor = ctx.obj["actor"]
    try:
        job = service.update_financials(
            jo_number,
            revenue=parse_amount_option(ctx, revenue, "revenue"),
            direct_cost=parse_amount_option(ctx, direct_cost, "direct cost"),
            equipment_cost=parse_amount_option(ctx, equipment_cost, "equipment cost"),
            actor=actor,
        )
        job = service.set_documents(
            jo_number,
            has_surat_jalan=surat_jalan,
            has_berita_acara=berita_acara,
            actor=actor,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Updated {job.jo_number}")
    click.echo(
        f"Revenue {format_idr(job.revenue)} | Direct {format_idr(job.direct_cost)} | "
        f"Equipment {format_idr(job.equipment_cost)}"
    )


def register_commands(cli):
    """Register job order commands with main CLI."""
    cli.add_command(job_group, name="job")
