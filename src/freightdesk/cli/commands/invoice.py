"""Customer invoice commands."""

import click
from freightdesk.cli.error_handling import handle_domain_error
from freightdesk.domain.entities import InvoiceStatus
from freightdesk.domain.invoice import DEFAULT_PAYMENT_DAYS, InvoiceService, LineItemInput
from freightdesk.utils.amount_parser import format_idr, parse_amount
from freightdesk.utils.date_parser import parse_date


@click.group()
def invoice_group():
    """Raise and follow up customer invoices."""
    pass


def parse_line_spec(spec: str) -> LineItemInput:
    """Parse a line given as ``description:quantity:unit_price[:unit]``.

    The description may itself contain colons; the numbers are taken
    from the end.

    Raises:
        ValueError: If the line is malformed
    """
    parts = spec.rsplit(":", 3)
    unit = None
    if len(parts) == 4:
        try:
            parse_amount(parts[3])
        except ValueError:
            unit = parts[3].strip() or None
            parts = parts[:3]
        else:
            parts = [":".join(parts[:2])] + parts[2:]
    if len(parts) != 3:
        raise ValueError(f"Expected description:quantity:unit_price, got '{spec}'")
    description, quantity, unit_price = (p.strip() for p in parts)
    try:
        return LineItemInput(description, parse_amount(quantity), parse_amount(unit_price), unit)
    except ValueError as e:
        raise ValueError(f"Invalid line '{spec}': {e}")


def _echo_invoice(invoice):
    click.echo(
        f"{invoice.invoice_number} is {invoice.status.value}, "
        f"total {format_idr(invoice.total_amount)} due {invoice.due_date.isoformat()}"
    )


@invoice_group.command("create")
@click.argument("jo_number")
@click.option(
    "--line",
    "line_specs",
    multiple=True,
    help="Line item as description:quantity:unit_price[:unit] (default: one line for the revenue)",
)
@click.option("--date", "invoice_date", default="today", show_default=True, help="Invoice date")
@click.option(
    "--payment-days",
    type=int,
    default=DEFAULT_PAYMENT_DAYS,
    show_default=True,
    help="Days until payment is due",
)
@click.option("--notes", help="Notes printed on the invoice")
@click.pass_context
def create_invoice(ctx, jo_number, line_specs, invoice_date, payment_days, notes):
    """Raise a draft invoice for a job order submitted to finance.

    Examples:
        freightdesk invoice create JO-0001/CARGO/I/2025
        freightdesk invoice create JO-0001/CARGO/I/2025 \\
            --line "Trucking Jakarta-Surabaya:2:4.500.000:trip" --line "Handling:1:750000"
    """
    try:
        parsed_date = parse_date(invoice_date)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)
    try:
        lines = [parse_line_spec(spec) for spec in line_specs] or None
        invoice = InvoiceService(ctx.obj["db"]).create_from_job_order(
            jo_number,
            line_items=lines,
            invoice_date=parsed_date,
            payment_days=payment_days,
            notes=notes,
            actor=ctx.obj["actor"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created invoice {invoice.invoice_number} for {jo_number}")
    click.echo(f"  Subtotal: {format_idr(invoice.subtotal)}")
    click.echo(f"  VAT:      {format_idr(invoice.vat_amount)}")
    click.echo(f"  Total:    {format_idr(invoice.total_amount)}")


@invoice_group.command("list")
@click.option("--job", "jo_number", help="Only invoices of this job order")
@click.option("--status", type=click.Choice([s.value for s in InvoiceStatus]))
@click.pass_context
def list_invoices(ctx, jo_number, status):
    """List invoices, newest first."""
    try:
        invoices = InvoiceService(ctx.obj["db"]).list_invoices(jo_number=jo_number, status=status)
    except ValueError as e:
        handle_domain_error(ctx, e)
    if not invoices:
        click.echo("No invoices found.")
        return

    click.echo(f"{'Number':14s} {'Date':10s} {'Due':10s} {'Status':10s} {'Total':>18s}")
    click.echo("-" * 66)
    for inv in invoices:
        click.echo(
            f"{inv.invoice_number:14s} {inv.invoice_date.isoformat():10s} "
            f"{inv.due_date.isoformat():10s} {inv.status.value:10s} {format_idr(inv.total_amount):>18s}"
        )


@invoice_group.command("show")
@click.argument("invoice_number")
@click.pass_context
def show_invoice(ctx, invoice_number):
    """Show an invoice with its line items."""
    try:
        invoice = InvoiceService(ctx.obj["db"]).get_invoice(invoice_number)
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_invoice(invoice)
    click.echo(f"Invoice date: {invoice.invoice_date.isoformat()}")
    for item in invoice.line_items:
        unit = f" {item.unit}" if item.unit else ""
        click.echo(
            f"  {item.line_number:>2d}. {item.description} "
            f"({item.quantity.normalize():f}{unit} x {format_idr(item.unit_price)}) "
            f"{format_idr(item.subtotal)}"
        )
    click.echo(f"Subtotal: {format_idr(invoice.subtotal)}")
    click.echo(f"VAT:      {format_idr(invoice.vat_amount)}")
    click.echo(f"Total:    {format_idr(invoice.total_amount)}")
    if invoice.notes:
        click.echo(f"Notes: {invoice.notes}")


@invoice_group.command("send")
@click.argument("invoice_number")
@click.pass_context
def send_invoice(ctx, invoice_number):
    """Mark a draft invoice as sent to the customer."""
    try:
        invoice = InvoiceService(ctx.obj["db"]).send(invoice_number, actor=ctx.obj["actor"])
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_invoice(invoice)


@invoice_group.command("pay")
@click.argument("invoice_number")
@click.pass_context
def pay_invoice(ctx, invoice_number):
    """Record full payment; the job order is closed."""
    try:
        invoice = InvoiceService(ctx.obj["db"]).record_payment(
            invoice_number, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_invoice(invoice)


@invoice_group.command("cancel")
@click.argument("invoice_number")
@click.pass_context
def cancel_invoice(ctx, invoice_number):
    """Cancel an unpaid invoice; the job order goes back to finance."""
    try:
        invoice = InvoiceService(ctx.obj["db"]).cancel(invoice_number, actor=ctx.obj["actor"])
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_invoice(invoice)


@invoice_group.command("mark-overdue")
@click.option("--as-of", "as_of", default="today", show_default=True, help="Reference date")
@click.pass_context
def mark_overdue(ctx, as_of):
    """Flag sent invoices past their due date as overdue."""
    try:
        today = parse_date(as_of)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)
    flagged = InvoiceService(ctx.obj["db"]).mark_overdue(today, actor=ctx.obj["actor"])
    if not flagged:
        click.echo("No invoices are overdue.")
        return
    for invoice in flagged:
        click.echo(f"{invoice.invoice_number} overdue since {invoice.due_date.isoformat()}")


def register_commands(cli):
    """Register invoice commands with main CLI."""
    cli.add_command(invoice_group, name="invoice")
