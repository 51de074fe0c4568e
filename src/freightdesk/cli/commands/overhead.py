"""Overhead category and allocation commands."""

import click
from freightdesk.cli.error_handling import handle_domain_error, parse_amount_option
from freightdesk.domain.entities import AllocationMethod
from freightdesk.domain.overhead import OverheadService, total_overhead
from freightdesk.utils.amount_parser import format_idr


@click.group()
def overhead_group():
    """Manage overhead categories and job allocations."""
    pass


@overhead_group.command("add-category")
@click.argument("code")
@click.argument("name")
@click.option(
    "--method",
    type=click.Choice([m.value for m in AllocationMethod]),
    default=AllocationMethod.REVENUE_PERCENTAGE.value,
    show_default=True,
    help="How the category is apportioned to job orders",
)
@click.option("--rate", default="0", help="Percentage of revenue (revenue_percentage)")
@click.option("--fixed-amount", default="0", help="Amount per job (fixed_per_job)")
@click.pass_context
def add_category(ctx, code, name, method, rate, fixed_amount):
    """Add an overhead category.

    Examples:
        freightdesk overhead add-category ADM "Administration" --rate 2.5
        freightdesk overhead add-category INS "Insurance" --method fixed_per_job --fixed-amount 250000
    """
    try:
        category_id = OverheadService(ctx.obj["db"]).create_category(
            code=code,
            name=name,
            allocation_method=method,
            rate=parse_amount_option(ctx, rate, "rate"),
            fixed_amount=parse_amount_option(ctx, fixed_amount, "fixed amount"),
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created overhead category {code} (ID: {category_id})")


@overhead_group.command("list")
@click.option("--active-only", is_flag=True, help="Hide inactive categories")
@click.pass_context
def list_categories(ctx, active_only):
    """List overhead categories."""
    categories = OverheadService(ctx.obj["db"]).list_categories(active_only=active_only)
    if not categories:
        click.echo("No overhead categories found.")
        return

    click.echo(f"{'Code':8s} {'Name':24s} {'Method':20s} {'Rate':>8s} {'Fixed':>14s}")
    click.echo("-" * 78)
    for c in categories:
        suffix = "" if c.is_active else "  (inactive)"
        click.echo(
            f"{c.code:8s} {c.name[:24]:24s} {c.allocation_method.value:20s} "
            f"{c.rate:>7}% {format_idr(c.fixed_amount):>14s}{suffix}"
        )


@overhead_group.command("allocate")
@click.argument("jo_number")
@click.pass_context
def allocate(ctx, jo_number):
    """Recompute the overhead of a job order from the active categories."""
    try:
        allocations = OverheadService(ctx.obj["db"]).allocate_to_job(
            jo_number, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    for a in allocations:
        click.echo(f"  {a.category_code:8s} {a.category_name[:24]:24s} {format_idr(a.amount):>16s}")
    click.echo(f"Total overhead for {jo_number}: {format_idr(total_overhead(allocations))}")


def register_commands(cli):
    """Register overhead commands with main CLI."""
    cli.add_command(overhead_group, name="overhead")
