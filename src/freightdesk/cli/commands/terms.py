"""Invoice term commands."""

from decimal import InvalidOperation

import click
from freightdesk.cli.error_handling import handle_domain_error
from freightdesk.domain.entities import InvoiceTerm, PresetType, TriggerType
from freightdesk.domain.invoice_terms import InvoiceTermService
from freightdesk.utils.amount_parser import format_idr, to_decimal


@click.group()
def terms_group():
    """Manage invoice terms of job orders."""
    pass


def parse_term_spec(spec: str) -> InvoiceTerm:
    """Parse a term given as ``name:percentage:trigger[:description]``.

    Raises:
        ValueError: If the term is malformed
    """
    parts = spec.split(":", 3)
    if len(parts) < 3:
        raise ValueError(f"Expected name:percentage:trigger, got '{spec}'")
    name, percentage, trigger = (p.strip() for p in parts[:3])
    description = parts[3].strip() if len(parts) == 4 else ""
    if not name:
        raise ValueError(f"Term name is missing in '{spec}'")
    try:
        trigger_type = TriggerType(trigger)
    except ValueError:
        valid = ", ".join(t.value for t in TriggerType)
        raise ValueError(f"Unknown trigger '{trigger}' (valid: {valid})")
    try:
        pct = to_decimal(percentage)
    except InvalidOperation:
        raise ValueError(f"Invalid percentage '{percentage}' for term '{name}'")
    if not pct.is_finite():
        raise ValueError(f"Invalid percentage '{percentage}' for term '{name}'")
    return InvoiceTerm(
        term=name,
        percentage=pct,
        description=description,
        trigger=trigger_type,
    )


@terms_group.command("preset")
@click.argument("jo_number")
@click.argument(
    "preset",
    type=click.Choice([p.value for p in PresetType if p != PresetType.CUSTOM]),
)
@click.pass_context
def apply_preset(ctx, jo_number, preset):
    """Apply a preset term split to a job order.

    Examples:
        freightdesk terms preset JO-0001/CARGO/I/2025 dp_final
    """
    try:
        terms = InvoiceTermService(ctx.obj["db"]).apply_preset(
            jo_number, preset, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Applied {preset} terms to {jo_number}: " + ", ".join(
        f"{t.term} {t.percentage}%" for t in terms
    ))


@terms_group.command("set")
@click.argument("jo_number")
@click.option(
    "--term",
    "term_specs",
    multiple=True,
    required=True,
    help="Term as name:percentage:trigger[:description] (repeatable)",
)
@click.pass_context
def set_terms(ctx, jo_number, term_specs):
    """Set custom invoice terms on a job order.

    Percentages must total 100.

    Examples:
        freightdesk terms set JO-0001/CARGO/I/2025 \\
            --term dp:40:jo_created:"Down payment" --term final:60:delivery
    """
    try:
        terms = [parse_term_spec(spec) for spec in term_specs]
        InvoiceTermService(ctx.obj["db"]).set_terms(jo_number, terms, actor=ctx.obj["actor"])
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Set {len(terms)} invoice terms on {jo_number}")


@terms_group.command("show")
@click.argument("jo_number")
@click.pass_context
def show_terms(ctx, jo_number):
    """Show invoice terms with their amounts and status."""
    try:
        views = InvoiceTermService(ctx.obj["db"]).list_terms(jo_number)
    except ValueError as e:
        handle_domain_error(ctx, e)
    if not views:
        click.echo(f"No invoice terms on {jo_number}.")
        return

    click.echo(f"{'Term':12s} {'%':>7s} {'Subtotal':>16s} {'VAT':>14s} {'Total':>16s}  Status")
    click.echo("-" * 86)
    for view in views:
        status = view.status_label
        if view.locked_reason:
            status += f" ({view.locked_reason})"
        if view.term.invoice_number:
            status += f" [{view.term.invoice_number}]"
        click.echo(
            f"{view.term.term[:12]:12s} {view.term.percentage:>7} "
            f"{format_idr(view.totals.subtotal):>16s} {format_idr(view.totals.vat_amount):>14s} "
            f"{format_idr(view.totals.total):>16s}  {status}"
        )
    summary = InvoiceTermService(ctx.obj["db"]).get_invoicing_summary(jo_number)
    click.echo(
        f"\nInvoiced:   {format_idr(summary.invoiced_total)} "
        f"of {format_idr(summary.invoiceable_total)} incl. VAT"
    )
    click.echo(f"Ready now:  {format_idr(summary.ready_amount)} before VAT")
    click.echo(
        f"Uninvoiced: {summary.uninvoiced.percent}% of revenue "
        f"({format_idr(summary.uninvoiced.amount)})"
    )


@terms_group.command("invoice")
@click.argument("jo_number")
@click.argument("term_name")
@click.option("--invoice-number", required=True, help="Number of the issued invoice")
@click.pass_context
def invoice_term(ctx, jo_number, term_name, invoice_number):
    """Record that a ready term has been invoiced."""
    try:
        view = InvoiceTermService(ctx.obj["db"]).mark_invoiced(
            jo_number, term_name, invoice_number, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(
        f"Invoiced {term_name} of {jo_number} as {invoice_number}: "
        f"{format_idr(view.totals.total)} incl. VAT"
    )


def register_commands(cli):
    """Register invoice term commands with main CLI."""
    cli.add_command(terms_group, name="terms")
