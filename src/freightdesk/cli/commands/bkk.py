"""Cash disbursement voucher (BKK) commands."""

import click
from freightdesk.cli.error_handling import handle_domain_error, parse_amount_option
from freightdesk.domain.bkk import RELEASE_METHODS, BkkService, calculate_bkk_summary
from freightdesk.domain.entities import BkkStatus
from freightdesk.utils.amount_parser import format_idr


@click.group()
def bkk_group():
    """Manage cash disbursement vouchers (BKK)."""
    pass


def _echo_bkk(bkk):
    click.echo(f"{bkk.bkk_number} (ID: {bkk.id}) is {bkk.status.value}")


@bkk_group.command("request")
@click.argument("jo_number")
@click.option("--purpose", required=True, help="What the cash is for")
@click.option("--amount", required=True, help="Amount requested")
@click.option("--budget", help="Budget to draw from (default: the job's direct cost)")
@click.option("--vendor", "vendor_code", help="Vendor code the cash is paid to")
@click.pass_context
def request_bkk(ctx, jo_number, purpose, amount, budget, vendor_code):
    """Request cash against a job order's budget.

    Examples:
        freightdesk --user ops@example.com --role ops bkk request JO-0001/CARGO/I/2025 \\
            --purpose "Fuel" --amount 1500000
    """
    try:
        bkk = BkkService(ctx.obj["db"]).request(
            jo_number,
            purpose=purpose,
            amount=parse_amount_option(ctx, amount, "amount"),
            budget_amount=parse_amount_option(ctx, budget, "budget"),
            actor=ctx.obj["actor"],
            vendor_code=vendor_code,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Requested {bkk.bkk_number} (ID: {bkk.id}) for {format_idr(bkk.amount_requested)}")


@bkk_group.command("approve")
@click.argument("bkk_id", type=int)
@click.pass_context
def approve_bkk(ctx, bkk_id):
    """Approve a pending BKK."""
    try:
        bkk = BkkService(ctx.obj["db"]).approve(bkk_id, actor=ctx.obj["actor"])
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_bkk(bkk)


@bkk_group.command("reject")
@click.argument("bkk_id", type=int)
@click.option("--reason", required=True, help="Why the request is rejected")
@click.pass_context
def reject_bkk(ctx, bkk_id, reason):
    """Reject a pending BKK."""
    try:
        bkk = BkkService(ctx.obj["db"]).reject(bkk_id, reason, actor=ctx.obj["actor"])
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_bkk(bkk)


@bkk_group.command("release")
@click.argument("bkk_id", type=int)
@click.option("--method", "release_method", type=click.Choice(RELEASE_METHODS), required=True)
@click.pass_context
def release_bkk(ctx, bkk_id, release_method):
    """Release the cash of an approved BKK."""
    try:
        bkk = BkkService(ctx.obj["db"]).release(bkk_id, release_method, actor=ctx.obj["actor"])
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_bkk(bkk)


@bkk_group.command("settle")
@click.argument("bkk_id", type=int)
@click.option("--spent", required=True, help="Amount actually spent")
@click.pass_context
def settle_bkk(ctx, bkk_id, spent):
    """Settle a released BKK with the amount actually spent."""
    try:
        bkk = BkkService(ctx.obj["db"]).settle(
            bkk_id, parse_amount_option(ctx, spent, "amount spent"), actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_bkk(bkk)
    if bkk.amount_returned:
        click.echo(f"To be returned: {format_idr(bkk.amount_returned)}")


@bkk_group.command("cancel")
@click.argument("bkk_id", type=int)
@click.pass_context
def cancel_bkk(ctx, bkk_id):
    """Cancel a pending BKK (requester only)."""
    try:
        bkk = BkkService(ctx.obj["db"]).cancel(bkk_id, actor=ctx.obj["actor"])
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_bkk(bkk)


@bkk_group.command("list")
@click.option("--job", "jo_number", help="Only vouchers of this job order")
@click.option("--status", type=click.Choice([s.value for s in BkkStatus]))
@click.pass_context
def list_bkks(ctx, jo_number, status):
    """List BKKs with their totals."""
    service = BkkService(ctx.obj["db"])
    try:
        bkks = service.list_bkks(jo_number=jo_number, status=status)
        budget = service.get_available_budget(jo_number) if jo_number else None
    except ValueError as e:
        handle_domain_error(ctx, e)
    if not bkks:
        click.echo("No BKKs found.")
    else:
        click.echo(f"{'ID':>4s} {'Number':14s} {'Status':10s} {'Requested':>16s} {'Spent':>16s}  Purpose")
        click.echo("-" * 90)
        for b in bkks:
            spent = format_idr(b.amount_spent) if b.amount_spent is not None else "-"
            click.echo(
                f"{b.id:>4d} {b.bkk_number:14s} {b.status.value:10s} "
                f"{format_idr(b.amount_requested):>16s} {spent:>16s}  {b.purpose}"
            )
        summary = calculate_bkk_summary(bkks)
        click.echo("-" * 90)
        click.echo(f"Requested:      {format_idr(summary.total_requested)}")
        click.echo(f"Released:       {format_idr(summary.total_released)}")
        click.echo(f"Settled:        {format_idr(summary.total_settled)}")
        click.echo(f"Pending return: {format_idr(summary.pending_return)}")

    if budget is not None:
        click.echo(
            f"Budget {format_idr(budget.budget_amount)}, available {format_idr(budget.available)}"
        )


def register_commands(cli):
    """Register BKK commands with main CLI."""
    cli.add_command(bkk_group, name="bkk")
