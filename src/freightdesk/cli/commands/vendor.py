"""Vendor commands."""

import click
from freightdesk.cli.error_handling import handle_domain_error
from freightdesk.domain.entities import VendorDocumentType, VendorType
from freightdesk.domain.vendor import (
    COST_CATEGORY_VENDOR_TYPES,
    VendorService,
    get_document_type_label,
    get_vendor_type_label,
    map_cost_category_to_vendor_type,
)
from freightdesk.utils.amount_parser import format_idr
from freightdesk.utils.date_parser import parse_date


@click.group()
def vendor_group():
    """Manage vendors, their documents and ratings."""
    pass


def _flags(vendor) -> str:
    marks = []
    if vendor.is_preferred:
        marks.append("preferred")
    if vendor.is_verified:
        marks.append("verified")
    if not vendor.is_active:
        marks.append("inactive")
    return ", ".join(marks)


@vendor_group.command("add")
@click.argument("vendor_name")
@click.option("--type", "vendor_type", type=click.Choice([t.value for t in VendorType]), required=True)
@click.option("--contact", "contact_person", help="Contact person")
@click.option("--phone", help="Phone number")
@click.option("--email", help="Email address")
@click.option("--preferred", is_flag=True, help="Mark as a preferred vendor")
@click.pass_context
def add_vendor(ctx, vendor_name, vendor_type, contact_person, phone, email, preferred):
    """Register a vendor; it starts unverified.

    Examples:
        freightdesk vendor add "PT Truk Andal" --type trucking --email ops@trukandal.co.id
    """
    try:
        vendor = VendorService(ctx.obj["db"]).register(
            vendor_name,
            vendor_type,
            contact_person=contact_person,
            phone=phone,
            email=email,
            is_preferred=preferred,
            actor=ctx.obj["actor"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Registered vendor {vendor.vendor_code} {vendor.vendor_name}")


@vendor_group.command("list")
@click.option("--search", help="Text to find in code or name")
@click.option("--type", "vendor_type", type=click.Choice([t.value for t in VendorType]))
@click.option(
    "--for-cost",
    "cost_category",
    type=click.Choice(list(COST_CATEGORY_VENDOR_TYPES)),
    help="Only vendors of the type paid for this job cost category",
)
@click.option("--active", "active_only", is_flag=True, help="Only active vendors")
@click.option("--dropdown", is_flag=True, help="Active vendors, preferred and best rated first")
@click.pass_context
def list_vendors(ctx, search, vendor_type, cost_category, active_only, dropdown):
    """List vendors in code order."""
    service = VendorService(ctx.obj["db"])
    if cost_category:
        vendor_type = map_cost_category_to_vendor_type(cost_category)
    if dropdown:
        vendors = service.dropdown(vendor_type=vendor_type)
    else:
        vendors = service.list_vendors(search=search, vendor_type=vendor_type, active_only=active_only)
    if not vendors:
        click.echo("No vendors found.")
        return

    click.echo(f"{'Code':8s} {'Name':28s} {'Type':22s} Flags")
    click.echo("-" * 76)
    for v in vendors:
        click.echo(
            f"{v.vendor_code:8s} {v.vendor_name[:28]:28s} "
            f"{get_vendor_type_label(v.vendor_type):22s} {_flags(v)}"
        )
    if not dropdown:
        stats = service.summary_stats()
        click.echo("-" * 76)
        click.echo(
            f"Total {stats.total}, active {stats.active}, preferred {stats.preferred}, "
            f"pending verification {stats.pending_verification}"
        )


def _set_flag(ctx, vendor_code, **flags):
    try:
        vendor = VendorService(ctx.obj["db"]).update_flags(
            vendor_code, actor=ctx.obj["actor"], **flags
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{vendor.vendor_code} {vendor.vendor_name}: {_flags(vendor) or 'active'}")


@vendor_group.command("verify")
@click.argument("vendor_code")
@click.pass_context
def verify_vendor(ctx, vendor_code):
    """Mark a vendor as verified."""
    _set_flag(ctx, vendor_code, is_verified=True)


@vendor_group.command("activate")
@click.argument("vendor_code")
@click.option("--off", is_flag=True, help="Deactivate instead")
@click.pass_context
def activate_vendor(ctx, vendor_code, off):
    """Activate or deactivate a vendor."""
    _set_flag(ctx, vendor_code, is_active=not off)


@vendor_group.command("preferred")
@click.argument("vendor_code")
@click.option("--off", is_flag=True, help="Remove the preferred mark")
@click.pass_context
def prefer_vendor(ctx, vendor_code, off):
    """Mark or unmark a vendor as preferred."""
    _set_flag(ctx, vendor_code, is_preferred=not off)


@vendor_group.command("rate")
@click.argument("vendor_code")
@click.argument("rating", type=int)
@click.option("--on-time/--late", "was_on_time", default=None, help="Whether the work was on time")
@click.option("--issues", "had_issues", is_flag=True, help="There were issues with the work")
@click.option("--job", "jo_number", help="Job order the rating is for")
@click.option("--comments", help="Comments")
@click.pass_context
def rate_vendor(ctx, vendor_code, rating, was_on_time, had_issues, jo_number, comments):
    """Rate a vendor from 1 to 5 stars.

    Examples:
        freightdesk vendor rate VND-001 4 --on-time --job JO-0001/CARGO/I/2025
    """
    try:
        VendorService(ctx.obj["db"]).rate(
            vendor_code,
            rating,
            was_on_time=was_on_time,
            had_issues=had_issues,
            jo_number=jo_number,
            comments=comments,
            actor=ctx.obj["actor"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Rated {vendor_code.upper()} {rating}/5")


@vendor_group.command("add-document")
@click.argument("vendor_code")
@click.argument("document_type", type=click.Choice([d.value for d in VendorDocumentType]))
@click.option("--expires", "expiry_date", help="Expiry date")
@click.option("--file", "file_name", help="Scanned document file")
@click.pass_context
def add_document(ctx, vendor_code, document_type, expiry_date, file_name):
    """Attach a legal or insurance document to a vendor."""
    expiry = None
    if expiry_date:
        try:
            expiry = parse_date(expiry_date)
        except ValueError as e:
            click.echo(f"Error: Invalid expiry date: {e}", err=True)
            ctx.exit(1)
    try:
        VendorService(ctx.obj["db"]).add_document(
            vendor_code, document_type, expiry_date=expiry, file_name=file_name, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    until = f" valid until {expiry.isoformat()}" if expiry else ""
    click.echo(f"Added {get_document_type_label(document_type)} to {vendor_code.upper()}{until}")


@vendor_group.command("alerts")
@click.option("--as-of", "as_of", default="today", show_default=True, help="Reference date")
@click.pass_context
def document_alerts(ctx, as_of):
    """Vendor documents that are expired or expire within 30 days."""
    try:
        today = parse_date(as_of)
    except ValueError as e:
        click.echo(f"Error: Invalid date: {e}", err=True)
        ctx.exit(1)
    alerts = VendorService(ctx.obj["db"]).document_alerts(today)
    if not alerts:
        click.echo("No document alerts.")
        return
    for alert in alerts:
        status = "EXPIRED" if alert.expiry_status == "expired" else "expiring soon"
        click.echo(
            f"{alert.vendor_code:8s} {alert.vendor_name[:28]:28s} "
            f"{get_document_type_label(alert.document.document_type):22s} "
            f"{alert.document.expiry_date.isoformat()} {status}"
        )


@vendor_group.command("show")
@click.argument("vendor_code")
@click.pass_context
def show_vendor(ctx, vendor_code):
    """Show a vendor with its performance."""
    service = VendorService(ctx.obj["db"])
    try:
        vendor = service.get_vendor(vendor_code)
        performance = service.get_performance(vendor_code)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"{vendor.vendor_code} {vendor.vendor_name}")
    click.echo(f"Type:     {get_vendor_type_label(vendor.vendor_type)}")
    if vendor.contact_person or vendor.phone or vendor.email:
        contact = ", ".join(x for x in (vendor.contact_person, vendor.phone, vendor.email) if x)
        click.echo(f"Contact:  {contact}")
    click.echo(f"Flags:    {_flags(vendor) or 'active'}")
    rating = (
        f"{performance.average_rating}/5 from {performance.rating_count} rating(s)"
        if performance.average_rating is not None
        else "not rated"
    )
    click.echo(f"Rating:   {rating}")
    if performance.on_time_rate is not None:
        click.echo(f"On time:  {performance.on_time_rate}%")
    click.echo(f"Settled:  {performance.total_jobs} BKK(s), {format_idr(performance.total_value)}")


def register_commands(cli):
    """Register vendor commands with main CLI."""
    cli.add_command(vendor_group, name="vendor")
