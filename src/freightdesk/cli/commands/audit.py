"""Audit log commands."""

import click
from freightdesk.cli.date_filters import period_options, resolve_cli_date_range
from freightdesk.domain.audit import (
    ACTION_LABELS,
    DEFAULT_PAGE_SIZE,
    MODULE_LABELS,
    AuditLogFilters,
    AuditService,
    format_audit_log_description,
)


@click.group()
def audit_group():
    """Inspect the audit trail."""
    pass


def _echo_entry(entry):
    formatted = format_audit_log_description(entry)
    stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S")
    user = entry.user_email or "system"
    line = f"{stamp}  {user:24s} {formatted.description}"
    if entry.status != "success":
        line += f"  [{entry.status}]"
    click.echo(line)
    if formatted.changed_fields_summary:
        click.echo(f"{'':21s}{formatted.changed_fields_summary}")


def _build_filters(ctx, user, action, module, entity_type, status, search, start_date, end_date, period_flags):
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )
    return AuditLogFilters(
        user_email=user,
        action=list(action) or None,
        module=list(module) or None,
        entity_type=list(entity_type) or None,
        status=status,
        start_date=start,
        end_date=end,
        search=search,
    )


def filter_options(func):
    """Add the audit log filter options shared by list and export."""
    options = (
        click.option("--user", help="Part of the user's email"),
        click.option("--action", multiple=True, type=click.Choice(sorted(ACTION_LABELS))),
        click.option("--module", multiple=True, type=click.Choice(sorted(MODULE_LABELS))),
        click.option("--entity-type", multiple=True, help="e.g. job_order, bkk, drawing"),
        click.option("--status", type=click.Choice(["success", "failure"])),
        click.option("--search", help="Text in description, reference or user"),
    )
    for option in reversed(options):
        func = option(func)
    return period_options(func)


@audit_group.command("history")
@click.argument("entity_type")
@click.argument("entity_id")
@click.pass_context
def history(ctx, entity_type, entity_id):
    """Show every recorded change of one entity, newest first.

    Examples:
        freightdesk audit history job_order 1
    """
    entries = AuditService(ctx.obj["db"]).entity_history(entity_type, entity_id)
    if not entries:
        click.echo(f"No audit history for {entity_type} {entity_id}.")
        return
    for entry in entries:
        _echo_entry(entry)


@audit_group.command("list")
@filter_options
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--page-size", type=int, default=DEFAULT_PAGE_SIZE, show_default=True)
@click.pass_context
def list_logs(
    ctx, user, action, module, entity_type, status, search, start_date, end_date, page, page_size,
    **period_flags,
):
    """List audit log entries, newest first."""
    filters = _build_filters(
        ctx, user, action, module, entity_type, status, search, start_date, end_date, period_flags
    )
    result = AuditService(ctx.obj["db"]).query(filters, page=page, page_size=page_size)
    if not result.entries:
        click.echo("No audit log entries found.")
        return

    for entry in result.entries:
        _echo_entry(entry)
    click.echo(f"\nPage {result.page} of {result.total_pages} ({result.total} entries)")


@audit_group.command("export")
@filter_options
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), help="CSV file (default: stdout)")
@click.pass_context
def export(
    ctx, user, action, module, entity_type, status, search, start_date, end_date, output,
    **period_flags,
):
    """Export audit log entries as CSV."""
    filters = _build_filters(
        ctx, user, action, module, entity_type, status, search, start_date, end_date, period_flags
    )
    csv_text = AuditService(ctx.obj["db"]).export(filters)
    if output:
        with open(output, "w", encoding="utf-8", newline="") as f:
            f.write(csv_text)
        click.echo(f"Exported audit log to {output}")
    else:
        click.echo(csv_text, nl=False)


def register_commands(cli):
    """Register audit commands with main CLI."""
    cli.add_command(audit_group, name="audit")
