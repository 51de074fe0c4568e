"""Engineering drawing and transmittal commands."""

import click
from freightdesk.cli.error_handling import handle_domain_error
from freightdesk.domain.drawing import DrawingService
from freightdesk.domain.entities import DrawingStatus, TransmittalPurpose, TransmittalStatus


@click.group()
def drawing_group():
    """Manage engineering drawings and transmittals."""
    pass


@drawing_group.command("create")
@click.argument("category_prefix")
@click.argument("title")
@click.option("--file", "file_name", help="Drawing file (DWG, PDF or DXF)")
@click.option("--job", "jo_number", help="Job order the drawing belongs to")
@click.pass_context
def create_drawing(ctx, category_prefix, title, file_name, jo_number):
    """Register a drawing as a draft at revision A.

    Examples:
        freightdesk drawing create GA "General arrangement" --file ga-01.dwg
    """
    try:
        drawing = DrawingService(ctx.obj["db"]).create_drawing(
            category_prefix, title, file_name=file_name, jo_number=jo_number, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(
        f"Created drawing {drawing.drawing_number} rev {drawing.current_revision} (ID: {drawing.id})"
    )


@drawing_group.command("revise")
@click.argument("drawing_id", type=int)
@click.option("--description", "change_description", required=True, help="What changed")
@click.option("--file", "file_name", help="File of the new revision")
@click.pass_context
def revise_drawing(ctx, drawing_id, change_description, file_name):
    """Start the next revision of a drawing."""
    try:
        drawing = DrawingService(ctx.obj["db"]).revise(
            drawing_id, change_description, file_name=file_name, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{drawing.drawing_number} is now at rev {drawing.current_revision} (draft)")


@drawing_group.command("status")
@click.argument("drawing_id", type=int)
@click.argument("new_status", type=click.Choice([s.value for s in DrawingStatus]))
@click.pass_context
def change_status(ctx, drawing_id, new_status):
    """Move a drawing along the review workflow."""
    try:
        drawing = DrawingService(ctx.obj["db"]).change_status(
            drawing_id, new_status, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{drawing.drawing_number} is now {drawing.status.value}")


@drawing_group.command("list")
@click.option("--category", "category_prefix", help="Only this category prefix")
@click.option("--status", type=click.Choice([s.value for s in DrawingStatus]))
@click.option("--search", help="Text to find in number or title")
@click.option("--revisions", is_flag=True, help="Show the revision history of each drawing")
@click.pass_context
def list_drawings(ctx, category_prefix, status, search, revisions):
    """List drawings in number order."""
    service = DrawingService(ctx.obj["db"])
    drawings = service.list_drawings(category_prefix=category_prefix, status=status, search=search)
    if not drawings:
        click.echo("No drawings found.")
        return

    click.echo(f"{'ID':>4s} {'Number':16s} {'Rev':4s} {'Status':13s} Title")
    click.echo("-" * 70)
    for d in drawings:
        click.echo(f"{d.id:>4d} {d.drawing_number:16s} {d.current_revision:4s} {d.status.value:13s} {d.title}")
        if revisions:
            for rev in service.list_revisions(d.id):
                marker = "*" if rev.is_current else " "
                click.echo(f"       {marker} {rev.revision_number:4s} {rev.change_description}")


@drawing_group.command("transmit")
@click.argument("drawing_ids", type=int, nargs=-1, required=True)
@click.option("--to", "recipient_company", required=True, help="Receiving company")
@click.option(
    "--purpose",
    type=click.Choice([p.value for p in TransmittalPurpose]),
    required=True,
)
@click.option("--notes", help="Cover notes")
@click.pass_context
def transmit(ctx, drawing_ids, recipient_company, purpose, notes):
    """Send drawings to a recipient under a transmittal.

    Examples:
        freightdesk drawing transmit 1 2 --to "PT Client" --purpose for_approval
    """
    try:
        transmittal = DrawingService(ctx.obj["db"]).create_transmittal(
            recipient_company, purpose, list(drawing_ids), notes=notes, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(
        f"Created draft transmittal {transmittal.transmittal_number} with "
        f"{len(transmittal.drawing_ids)} drawing(s) to {transmittal.recipient_company}"
    )


@drawing_group.command("transmittals")
@click.option("--status", type=click.Choice([s.value for s in TransmittalStatus]))
@click.pass_context
def list_transmittals(ctx, status):
    """List transmittals."""
    transmittals = DrawingService(ctx.obj["db"]).list_transmittals(status=status)
    if not transmittals:
        click.echo("No transmittals found.")
        return

    click.echo(f"{'ID':>4s} {'Number':14s} {'Status':13s} {'Purpose':17s} {'Drawings':>8s} Recipient")
    click.echo("-" * 78)
    for t in transmittals:
        click.echo(
            f"{t.id:>4d} {t.transmittal_number:14s} {t.status.value:13s} "
            f"{t.purpose.value:17s} {len(t.drawing_ids):>8d} {t.recipient_company}"
        )


@drawing_group.command("send")
@click.argument("transmittal_id", type=int)
@click.pass_context
def send_transmittal(ctx, transmittal_id):
    """Mark a draft transmittal as sent."""
    try:
        transmittal = DrawingService(ctx.obj["db"]).send_transmittal(
            transmittal_id, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Sent transmittal {transmittal.transmittal_number} to {transmittal.recipient_company}")


@drawing_group.command("acknowledge")
@click.argument("transmittal_id", type=int)
@click.pass_context
def acknowledge_transmittal(ctx, transmittal_id):
    """Record that the recipient acknowledged a transmittal."""
    try:
        transmittal = DrawingService(ctx.obj["db"]).acknowledge_transmittal(
            transmittal_id, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Transmittal {transmittal.transmittal_number} acknowledged")


def register_commands(cli):
    """Register drawing commands with main CLI."""
    cli.add_command(drawing_group, name="drawing")
