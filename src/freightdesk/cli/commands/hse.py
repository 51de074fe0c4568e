"""HSE incident commands."""

import click
from freightdesk.cli.date_filters import period_options, resolve_cli_date_range
from freightdesk.cli.error_handling import handle_domain_error
from freightdesk.domain.entities import (
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    LocationType,
    PersonType,
)
from freightdesk.domain.incident import ACTION_KINDS, IncidentService, get_pending_actions_count
from freightdesk.utils.date_parser import parse_date


@click.group()
def hse_group():
    """Report and follow up HSE incidents."""
    pass


def _parse_date_option(ctx, value, label):
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def _echo_incident(incident):
    click.echo(f"{incident.incident_number} is {incident.status.value}")


@hse_group.command("report")
@click.argument("title")
@click.option("--severity", type=click.Choice([s.value for s in IncidentSeverity]), required=True)
@click.option("--type", "incident_type", type=click.Choice([t.value for t in IncidentType]), required=True)
@click.option(
    "--location",
    "location_type",
    type=click.Choice([loc.value for loc in LocationType]),
    required=True,
)
@click.option("--place", "location_name", help="Name of the place")
@click.option("--description", required=True, help="What happened")
@click.option("--date", "incident_date", default="today", show_default=True, help="Incident date")
@click.option("--job", "jo_number", help="Job order the incident happened on")
@click.option(
    "--no-investigation",
    is_flag=True,
    help="Close without a root-cause investigation",
)
@click.pass_context
def report_incident(
    ctx,
    title,
    severity,
    incident_type,
    location_type,
    location_name,
    description,
    incident_date,
    jo_number,
    no_investigation,
):
    """Report an incident.

    Examples:
        freightdesk hse report "Forklift tipped over" --severity high --type accident \\
            --location warehouse --description "Forklift tipped while loading container"
    """
    parsed_date = _parse_date_option(ctx, incident_date, "date")
    try:
        incident = IncidentService(ctx.obj["db"]).report(
            severity,
            incident_type,
            parsed_date,
            location_type,
            title,
            description,
            location_name=location_name,
            jo_number=jo_number,
            investigation_required=not no_investigation,
            actor=ctx.obj["actor"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Reported incident {incident.incident_number} ({incident.severity.value})")


@hse_group.command("list")
@click.option("--status", type=click.Choice([s.value for s in IncidentStatus]))
@period_options
@click.pass_context
def list_incidents(ctx, status, start_date, end_date, **period_flags):
    """List incidents, newest first."""
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )
    incidents = IncidentService(ctx.obj["db"]).list_incidents(status, start, end)
    if not incidents:
        click.echo("No incidents found.")
        return

    click.echo(f"{'Number':15s} {'Date':10s} {'Severity':8s} {'Type':11s} {'Status':19s} Title")
    click.echo("-" * 90)
    for i in incidents:
        click.echo(
            f"{i.incident_number:15s} {i.incident_date.isoformat():10s} {i.severity.value:8s} "
            f"{i.incident_type.value:11s} {i.status.value:19s} {i.title}"
        )


@hse_group.command("show")
@click.argument("incident_number")
@click.pass_context
def show_incident(ctx, incident_number):
    """Show an incident with its people and actions."""
    try:
        incident = IncidentService(ctx.obj["db"]).get_incident(incident_number)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{incident.incident_number}: {incident.title}")
    click.echo(
        f"{incident.incident_date.isoformat()} {incident.severity.value} "
        f"{incident.incident_type.value} at {incident.location_name or incident.location_type.value}"
    )
    click.echo(f"Status: {incident.status.value}")
    click.echo(incident.description)
    if incident.root_cause:
        click.echo(f"Root cause: {incident.root_cause}")
    for person in incident.persons:
        lost = f", {person.days_lost} day(s) lost" if person.days_lost else ""
        click.echo(f"  {person.person_type.value}: {person.name}{lost}")
    for action in incident.actions:
        click.echo(
            f"  [{action.id}] {action.kind} {action.status.value} due "
            f"{action.due_date.isoformat()} ({action.responsible}): {action.description}"
        )
    if incident.closure_notes:
        click.echo(f"Closure: {incident.closure_notes}")


@hse_group.command("add-person")
@click.argument("incident_number")
@click.argument("name")
@click.option("--as", "person_type", type=click.Choice([p.value for p in PersonType]), required=True)
@click.option("--days-lost", type=int, default=0, show_default=True, help="Work days lost")
@click.option("--injury", "injury_description", help="Nature of the injury")
@click.pass_context
def add_person(ctx, incident_number, name, person_type, days_lost, injury_description):
    """Record a person involved in an incident."""
    try:
        IncidentService(ctx.obj["db"]).add_person(
            incident_number,
            person_type,
            name,
            days_lost=days_lost,
            injury_description=injury_description,
            actor=ctx.obj["actor"],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Added {person_type} {name} to {incident_number}")


@hse_group.command("investigate")
@click.argument("incident_number")
@click.pass_context
def start_investigation(ctx, incident_number):
    """Start investigating a reported incident."""
    try:
        incident = IncidentService(ctx.obj["db"]).start_investigation(
            incident_number, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_incident(incident)


@hse_group.command("root-cause")
@click.argument("incident_number")
@click.argument("root_cause")
@click.pass_context
def record_root_cause(ctx, incident_number, root_cause):
    """Document the root cause found by the investigation."""
    try:
        IncidentService(ctx.obj["db"]).record_root_cause(
            incident_number, root_cause, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Recorded root cause of {incident_number}")


@hse_group.command("complete-investigation")
@click.argument("incident_number")
@click.pass_context
def complete_investigation(ctx, incident_number):
    """Finish the investigation; the incident waits on its actions."""
    try:
        incident = IncidentService(ctx.obj["db"]).complete_investigation(
            incident_number, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_incident(incident)


@hse_group.command("add-action")
@click.argument("incident_number")
@click.argument("description")
@click.option("--kind", type=click.Choice(ACTION_KINDS), default="corrective", show_default=True)
@click.option("--responsible", required=True, help="Person responsible for the action")
@click.option("--due", "due_date", required=True, help="Due date")
@click.pass_context
def add_action(ctx, incident_number, description, kind, responsible, due_date):
    """Raise a corrective or preventive action.

    Examples:
        freightdesk hse add-action INC-2025-00001 "Retrain forklift drivers" \\
            --responsible "Budi" --due 2025-04-30
    """
    due = _parse_date_option(ctx, due_date, "due date")
    try:
        action = IncidentService(ctx.obj["db"]).add_action(
            incident_number, kind, description, responsible, due, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Added {kind} action {action.id} to {incident_number}, due {due.isoformat()}")


@hse_group.command("complete-action")
@click.argument("incident_number")
@click.argument("action_id", type=int)
@click.pass_context
def complete_action(ctx, incident_number, action_id):
    """Mark an action as completed."""
    try:
        IncidentService(ctx.obj["db"]).complete_action(
            incident_number, action_id, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Completed action {action_id} of {incident_number}")


@hse_group.command("close")
@click.argument("incident_number")
@click.option("--notes", "closure_notes", required=True, help="Closure notes")
@click.pass_context
def close_incident(ctx, incident_number, closure_notes):
    """Close an incident once its actions are done."""
    try:
        incident = IncidentService(ctx.obj["db"]).close(
            incident_number, closure_notes, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_incident(incident)


@hse_group.command("reject")
@click.argument("incident_number")
@click.option("--reason", required=True, help="Why the report is not an incident")
@click.pass_context
def reject_incident(ctx, incident_number, reason):
    """Reject a reported incident."""
    try:
        incident = IncidentService(ctx.obj["db"]).reject(
            incident_number, reason, actor=ctx.obj["actor"]
        )
    except ValueError as e:
        handle_domain_error(ctx, e)
    _echo_incident(incident)


@hse_group.command("dashboard")
@period_options
@click.option("--months", type=int, default=6, show_default=True, help="Months in the trend")
@click.option("--as-of", "as_of", default="today", show_default=True, help="Reference date")
@click.pass_context
def dashboard(ctx, start_date, end_date, months, as_of, **period_flags):
    """Safety statistics with a monthly incident trend.

    Overdue actions are flagged before the figures are computed.
    """
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, period_flags=period_flags
    )
    today = _parse_date_option(ctx, as_of, "date")
    service = IncidentService(ctx.obj["db"])
    service.refresh_overdue_actions(today)
    summary = service.safety_summary(start, end, today)

    click.echo(f"Days since last LTI:  {summary.days_since_last_lti}")
    click.echo(f"Incidents:            {summary.total_incidents}")
    click.echo(
        "By severity:          "
        + ", ".join(f"{name} {count}" for name, count in summary.by_severity.items())
    )
    click.echo(f"Days lost:            {summary.total_days_lost}")
    click.echo(f"Open investigations:  {summary.open_investigations}")
    click.echo(f"Open actions:         {summary.pending_actions}")

    click.echo("")
    click.echo(f"{'Month':9s} {'Total':>6s} {'Near miss':>10s} {'Injuries':>9s}")
    for row in service.monthly_trend(months, today):
        click.echo(f"{row.month:9s} {row.total:>6d} {row.near_misses:>10d} {row.injuries:>9d}")

    open_incidents = [
        i
        for i in service.list_incidents()
        if get_pending_actions_count(i) and i.status != IncidentStatus.CLOSED
    ]
    if open_incidents:
        click.echo("")
        click.echo("Incidents waiting on actions:")
        for i in open_incidents:
            click.echo(f"  {i.incident_number} {get_pending_actions_count(i)} open action(s)")


def register_commands(cli):
    """Register HSE commands with main CLI."""
    cli.add_command(hse_group, name="hse")
