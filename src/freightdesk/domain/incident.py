"""HSE incident reporting, investigation, follow-up actions and safety statistics."""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from typing import Iterable, Optional, Sequence

from dateutil.relativedelta import relativedelta

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import (
    ActionStatus,
    Actor,
    Incident,
    IncidentAction,
    IncidentPerson,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    LocationType,
    PersonType,
    ValidationResult,
)
from freightdesk.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    invalid_transition,
    not_found,
)

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MIN_DESCRIPTION_LENGTH = 10
ACTION_KINDS = ("corrective", "preventive")
OPEN_ACTION_STATUSES = frozenset(
    {ActionStatus.PENDING, ActionStatus.IN_PROGRESS, ActionStatus.OVERDUE}
)
OPEN_INCIDENT_STATUSES = frozenset(
    {IncidentStatus.REPORTED, IncidentStatus.UNDER_INVESTIGATION, IncidentStatus.PENDING_ACTIONS}
)

VALID_STATUS_TRANSITIONS: dict[IncidentStatus, tuple[IncidentStatus, ...]] = {
    IncidentStatus.REPORTED: (
        IncidentStatus.UNDER_INVESTIGATION,
        IncidentStatus.CLOSED,
        IncidentStatus.REJECTED,
    ),
    IncidentStatus.UNDER_INVESTIGATION: (IncidentStatus.PENDING_ACTIONS, IncidentStatus.CLOSED),
    IncidentStatus.PENDING_ACTIONS: (IncidentStatus.CLOSED,),
    IncidentStatus.CLOSED: (),
    IncidentStatus.REJECTED: (),
}


@dataclass(frozen=True)
class MonthlyTrend:
    month: str
    total: int
    near_misses: int
    injuries: int


@dataclass(frozen=True)
class SafetySummary:
    total_incidents: int
    by_severity: dict[str, int]
    total_days_lost: int
    open_investigations: int
    pending_actions: int
    days_since_last_lti: int


def format_incident_number(year: int, sequence: int) -> str:
    """Format an incident number, e.g. INC-2025-00001."""
    return f"INC-{year}-{sequence:05d}"


def is_valid_status_transition(
    current: IncidentStatus | str, target: IncidentStatus | str
) -> bool:
    return target in VALID_STATUS_TRANSITIONS.get(IncidentStatus(current), ())


def validate_incident_input(
    severity: Optional[str],
    incident_type: Optional[str],
    incident_date: Optional[date],
    location_type: Optional[str],
    title: Optional[str],
    description: Optional[str],
    today: Optional[date] = None,
) -> ValidationResult:
    """Check a new report; stops at the first problem found."""
    today = today or date.today()
    if severity not in {s.value for s in IncidentSeverity}:
        return ValidationResult.from_errors(["Severity is required"])
    if incident_type not in {t.value for t in IncidentType}:
        return ValidationResult.from_errors(["Incident type is required"])
    if incident_date is None:
        return ValidationResult.from_errors(["Incident date is required"])
    if incident_date > today:
        return ValidationResult.from_errors(["Incident date cannot be in the future"])
    if location_type not in {loc.value for loc in LocationType}:
        return ValidationResult.from_errors(["Location type is required"])
    if not title or not title.strip():
        return ValidationResult.from_errors(["Title is required"])
    if len(title) > MAX_TITLE_LENGTH:
        return ValidationResult.from_errors([f"Title must be at most {MAX_TITLE_LENGTH} characters"])
    if not description or not description.strip():
        return ValidationResult.from_errors(["Description is required"])
    if len(description) < MIN_DESCRIPTION_LENGTH:
        return ValidationResult.from_errors(
            [f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters"]
        )
    return ValidationResult(valid=True)


def get_pending_actions_count(incident: Incident) -> int:
    return sum(1 for a in incident.actions if a.status in OPEN_ACTION_STATUSES)


def can_close_incident(incident: Incident) -> ValidationResult:
    """An incident closes once its actions are done and any investigation has a root cause."""
    if incident.status == IncidentStatus.CLOSED:
        return ValidationResult.from_errors(["Incident is already closed"])
    if incident.status == IncidentStatus.REJECTED:
        return ValidationResult.from_errors(["Incident has been rejected"])
    pending = get_pending_actions_count(incident)
    if pending > 0:
        return ValidationResult.from_errors([f"{pending} action(s) are still open"])
    if (
        incident.investigation_required
        and incident.investigation_completed_at is None
        and not incident.root_cause
    ):
        return ValidationResult.from_errors(
            ["Investigation is not complete: root cause has not been documented"]
        )
    return ValidationResult(valid=True)


def update_action_statuses(
    actions: Sequence[IncidentAction], today: Optional[date] = None
) -> list[IncidentAction]:
    """Mark open actions past their due date as overdue."""
    today = today or date.today()
    return [
        replace(a, status=ActionStatus.OVERDUE)
        if a.status in (ActionStatus.PENDING, ActionStatus.IN_PROGRESS) and a.due_date < today
        else a
        for a in actions
    ]


def is_lost_time_injury(incident: Incident) -> bool:
    return incident.incident_type == IncidentType.ACCIDENT and any(
        p.person_type == PersonType.INJURED and p.days_lost > 0 for p in incident.persons
    )


def calculate_days_since_last_lti(
    incidents: Iterable[Incident], today: Optional[date] = None
) -> int:
    """Days since the latest lost-time injury.

    Without one, counts from 1 January of the current year, capped at 365.
    """
    today = today or date.today()
    lti_dates = [i.incident_date for i in incidents if is_lost_time_injury(i)]
    if not lti_dates:
        return min((today - date(today.year, 1, 1)).days, 365)
    return max(0, (today - max(lti_dates)).days)


def calculate_monthly_trend(
    incidents: Iterable[Incident], months: int = 6, today: Optional[date] = None
) -> list[MonthlyTrend]:
    """Incident counts for each of the last ``months`` calendar months, oldest first."""
    today = today or date.today()
    incidents = list(incidents)
    trend = []
    for back in range(months - 1, -1, -1):
        start = today.replace(day=1) - relativedelta(months=back)
        end = start + relativedelta(months=1)
        in_month = [i for i in incidents if start <= i.incident_date < end]
        trend.append(
            MonthlyTrend(
                month=start.strftime("%b %Y"),
                total=len(in_month),
                near_misses=sum(1 for i in in_month if i.incident_type == IncidentType.NEAR_MISS),
                injuries=sum(
                    1
                    for i in in_month
                    if i.incident_type == IncidentType.ACCIDENT
                    and any(p.person_type == PersonType.INJURED for p in i.persons)
                ),
            )
        )
    return trend


def count_by_severity(incidents: Iterable[Incident]) -> dict[str, int]:
    counts = {s.value: 0 for s in IncidentSeverity}
    for incident in incidents:
        counts[incident.severity.value] += 1
    return counts


def calculate_total_days_lost(incidents: Iterable[Incident]) -> int:
    return sum(
        p.days_lost
        for incident in incidents
        for p in incident.persons
        if p.person_type == PersonType.INJURED
    )


def get_open_investigations_count(incidents: Iterable[Incident]) -> int:
    return sum(
        1
        for i in incidents
        if i.investigation_required and i.status == IncidentStatus.UNDER_INVESTIGATION
    )


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.valid:
        raise ValidationError("; ".join(result.errors))


class IncidentService:
    """Service for HSE incident reports and their follow-up."""

    def __init__(self, db: Database):
        """Initialize incident service.

        Args:
            db: Database instance
        """
        self.db = db
        self.audit = AuditService(db)

    def get_incident(self, incident_number: str) -> Incident:
        incident = self.db.get_incident_by_number(incident_number)
        if incident is None:
            raise NotFoundError(not_found("Incident", incident_number))
        return incident

    def list_incidents(
        self,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Incident]:
        return self.db.list_incidents(status=status, start_date=start_date, end_date=end_date)

    def report(
        self,
        severity: IncidentSeverity | str,
        incident_type: IncidentType | str,
        incident_date: date,
        location_type: LocationType | str,
        title: str,
        description: str,
        location_name: Optional[str] = None,
        jo_number: Optional[str] = None,
        investigation_required: bool = True,
        actor: Optional[Actor] = None,
        today: Optional[date] = None,
    ) -> Incident:
        """Report a new incident.

        Args:
            severity: low, medium, high or critical
            incident_type: accident, near_miss, observation or violation
            incident_date: When it happened; cannot be in the future
            location_type: Kind of place it happened
            title: Short title
            description: What happened, at least 10 characters
            location_name: Optional place name
            jo_number: Optional job order the incident happened on
            investigation_required: Whether a root cause must be found before closing
            actor: Reporting user
            today: Reference date for the future-date check

        Returns:
            The reported incident

        Raises:
            ValidationError: If the report is incomplete
            NotFoundError: If the job order doesn't exist
        """
        _raise_if_invalid(
            validate_incident_input(
                severity, incident_type, incident_date, location_type, title, description, today
            )
        )
        job_order_id = None
        if jo_number:
            job = self.db.get_job_order_by_number(jo_number)
            if job is None:
                raise NotFoundError(not_found("Job order", jo_number))
            job_order_id = job.id

        actor = actor or Actor()
        year = incident_date.year
        number = format_incident_number(year, self.db.count_incidents_for_year(year) + 1)
        incident_id = self.db.create_incident(
            incident_number=number,
            severity=IncidentSeverity(severity).value,
            incident_type=IncidentType(incident_type).value,
            incident_date=incident_date,
            location_type=LocationType(location_type).value,
            title=title.strip(),
            description=description.strip(),
            investigation_required=investigation_required,
            reported_by=actor.email,
            location_name=location_name,
            job_order_id=job_order_id,
        )
        self.audit.log(
            "create",
            "hse",
            "incident",
            entity_id=incident_id,
            entity_reference=number,
            new_values={
                "severity": severity,
                "incident_type": incident_type,
                "title": title.strip(),
                "status": IncidentStatus.REPORTED,
            },
            actor=actor,
        )
        if IncidentSeverity(severity) in (IncidentSeverity.HIGH, IncidentSeverity.CRITICAL):
            logger.warning("%s incident %s reported: %s", severity, number, title.strip())
        else:
            logger.info("Incident %s reported", number)
        return self.get_incident(number)

    def add_person(
        self,
        incident_number: str,
        person_type: PersonType | str,
        name: str,
        days_lost: int = 0,
        injury_description: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> IncidentPerson:
        try:
            person_type = PersonType(person_type)
        except ValueError:
            raise ValidationError(f"Unknown person type '{person_type}'")
        if not name or not name.strip():
            raise ValidationError("Person name is required")
        if days_lost < 0:
            raise ValidationError("Days lost cannot be negative")
        incident = self.get_incident(incident_number)

        person_id = self.db.add_incident_person(
            incident.id, person_type.value, name.strip(), days_lost, injury_description
        )
        self.audit.log(
            "update",
            "hse",
            "incident",
            entity_id=incident.id,
            entity_reference=incident_number,
            new_values={"person": name.strip(), "person_type": person_type, "days_lost": days_lost},
            actor=actor,
        )
        return next(p for p in self.get_incident(incident_number).persons if p.id == person_id)

    def start_investigation(self, incident_number: str, actor: Optional[Actor] = None) -> Incident:
        return self._move(
            incident_number,
            IncidentStatus.UNDER_INVESTIGATION,
            actor,
            investigation_started_at=datetime.now(UTC),
        )

    def record_root_cause(
        self, incident_number: str, root_cause: str, actor: Optional[Actor] = None
    ) -> Incident:
        if not root_cause or not root_cause.strip():
            raise ValidationError("Root cause is required")
        incident = self.get_incident(incident_number)
        if incident.status not in OPEN_INCIDENT_STATUSES:
            raise ValidationError(f"Incident {incident_number} is {incident.status.value}")

        self.db.update_incident(incident.id, root_cause=root_cause.strip())
        self.audit.log(
            "update",
            "hse",
            "incident",
            entity_id=incident.id,
            entity_reference=incident_number,
            old_values={"root_cause": incident.root_cause},
            new_values={"root_cause": root_cause.strip()},
            actor=actor,
        )
        return self.get_incident(incident_number)

    def complete_investigation(
        self, incident_number: str, actor: Optional[Actor] = None
    ) -> Incident:
        """Finish the investigation; the incident waits on its actions.

        Raises:
            ValidationError: If no root cause has been recorded
        """
        incident = self.get_incident(incident_number)
        if not incident.root_cause:
            raise ValidationError(
                "Root cause must be documented before completing the investigation"
            )
        return self._move(
            incident_number,
            IncidentStatus.PENDING_ACTIONS,
            actor,
            investigation_completed_at=datetime.now(UTC),
        )

    def add_action(
        self,
        incident_number: str,
        kind: str,
        description: str,
        responsible: str,
        due_date: date,
        actor: Optional[Actor] = None,
    ) -> IncidentAction:
        """Raise a corrective or preventive action with a due date."""
        if kind not in ACTION_KINDS:
            raise ValidationError(f"Action kind must be one of: {', '.join(ACTION_KINDS)}")
        if not description or not description.strip():
            raise ValidationError("Action description is required")
        if not responsible or not responsible.strip():
            raise ValidationError("Responsible person is required")
        incident = self.get_incident(incident_number)
        if incident.status not in OPEN_INCIDENT_STATUSES:
            raise ValidationError(f"Incident {incident_number} is {incident.status.value}")

        action_id = self.db.add_incident_action(
            incident.id, kind, description.strip(), responsible.strip(), due_date
        )
        self.audit.log(
            "update",
            "hse",
            "incident",
            entity_id=incident.id,
            entity_reference=incident_number,
            new_values={"action": description.strip(), "kind": kind, "due_date": due_date},
            actor=actor,
        )
        return self._find_action(incident_number, action_id)

    def complete_action(
        self, incident_number: str, action_id: int, actor: Optional[Actor] = None
    ) -> IncidentAction:
        action = self._find_action(incident_number, action_id)
        if action.status == ActionStatus.COMPLETED:
            raise ValidationError(f"Action {action_id} is already completed")

        self.db.update_incident_action(
            action.id, status=ActionStatus.COMPLETED.value, completed_at=datetime.now(UTC)
        )
        self.audit.log(
            "update",
            "hse",
            "incident_action",
            entity_id=action.id,
            entity_reference=incident_number,
            old_values={"status": action.status},
            new_values={"status": ActionStatus.COMPLETED},
            actor=actor,
        )
        return self._find_action(incident_number, action_id)

    def refresh_overdue_actions(self, today: Optional[date] = None) -> int:
        """Flag past-due actions of open incidents as overdue; returns how many changed."""
        changed = 0
        for incident in self.db.list_incidents():
            if incident.status not in OPEN_INCIDENT_STATUSES:
                continue
            for before, after in zip(incident.actions, update_action_statuses(incident.actions, today)):
                if before.status != after.status:
                    self.db.update_incident_action(after.id, status=after.status.value)
                    changed += 1
        if changed:
            logger.info("Flagged %d incident action(s) as overdue", changed)
        return changed

    def close(
        self, incident_number: str, closure_notes: str, actor: Optional[Actor] = None
    ) -> Incident:
        """Close an incident whose actions are complete.

        Raises:
            ValidationError: If notes are missing or the incident cannot close yet
        """
        if not closure_notes or not closure_notes.strip():
            raise ValidationError("Closure notes are required")
        incident = self.get_incident(incident_number)
        _raise_if_invalid(can_close_incident(incident))
        return self._move(
            incident_number,
            IncidentStatus.CLOSED,
            actor,
            closed_at=datetime.now(UTC),
            closure_notes=closure_notes.strip(),
        )

    def reject(self, incident_number: str, reason: str, actor: Optional[Actor] = None) -> Incident:
        """Reject a report that is not an incident; only reported ones can be rejected."""
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")
        return self._move(
            incident_number,
            IncidentStatus.REJECTED,
            actor,
            closed_at=datetime.now(UTC),
            closure_notes=reason.strip(),
        )

    def safety_summary(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> SafetySummary:
        """Safety statistics over a period; days since LTI looks at all incidents."""
        in_period = [
            i
            for i in self.db.list_incidents(start_date=start_date, end_date=end_date)
            if i.status != IncidentStatus.REJECTED
        ]
        everything = [
            i for i in self.db.list_incidents() if i.status != IncidentStatus.REJECTED
        ]
        return SafetySummary(
            total_incidents=len(in_period),
            by_severity=count_by_severity(in_period),
            total_days_lost=calculate_total_days_lost(in_period),
            open_investigations=get_open_investigations_count(in_period),
            pending_actions=sum(get_pending_actions_count(i) for i in in_period),
            days_since_last_lti=calculate_days_since_last_lti(everything, today),
        )

    def monthly_trend(self, months: int = 6, today: Optional[date] = None) -> list[MonthlyTrend]:
        incidents = [i for i in self.db.list_incidents() if i.status != IncidentStatus.REJECTED]
        return calculate_monthly_trend(incidents, months, today)

    def _find_action(self, incident_number: str, action_id: int) -> IncidentAction:
        for action in self.get_incident(incident_number).actions:
            if action.id == action_id:
                return action
        raise NotFoundError(not_found("Action", f"{action_id} on {incident_number}"))

    def _move(
        self, incident_number: str, target: IncidentStatus, actor: Optional[Actor], **fields
    ) -> Incident:
        incident = self.get_incident(incident_number)
        if not is_valid_status_transition(incident.status, target):
            logger.warning(
                "Rejected %s transition %s -> %s", incident_number, incident.status, target
            )
            raise InvalidTransitionError(
                invalid_transition(incident_number, incident.status.value, target.value)
            )

        self.db.update_incident(incident.id, status=target.value, **fields)
        action = {IncidentStatus.CLOSED: "approve", IncidentStatus.REJECTED: "reject"}.get(
            target, "update"
        )
        self.audit.log(
            action,
            "hse",
            "incident",
            entity_id=incident.id,
            entity_reference=incident_number,
            old_values={"status": incident.status},
            new_values={"status": target},
            actor=actor,
        )
        logger.info("Incident %s is now %s", incident_number, target)
        return self.get_incident(incident_number)
