"""Tests for HSE incident reporting and statistics."""

from datetime import date, datetime

import pytest

from freightdesk.domain.entities import (
    ActionStatus,
    Incident,
    IncidentAction,
    IncidentPerson,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    LocationType,
    PersonType,
)
from freightdesk.domain.errors import InvalidTransitionError, NotFoundError, ValidationError
from freightdesk.domain.incident import (
    calculate_days_since_last_lti,
    calculate_monthly_trend,
    calculate_total_days_lost,
    can_close_incident,
    count_by_severity,
    format_incident_number,
    get_open_investigations_count,
    get_pending_actions_count,
    is_valid_status_transition,
    update_action_statuses,
    validate_incident_input,
)

TODAY = date(2025, 6, 15)


def _incident(
    incident_date=date(2025, 6, 1),
    incident_type=IncidentType.ACCIDENT,
    severity=IncidentSeverity.MEDIUM,
    status=IncidentStatus.REPORTED,
    investigation_required=True,
    **fields,
):
    return Incident(
        id=1,
        incident_number="INC-2025-00001",
        severity=severity,
        incident_type=incident_type,
        incident_date=incident_date,
        location_type=LocationType.WAREHOUSE,
        title="Forklift tipped over",
        description="Forklift tipped while loading a container",
        status=status,
        investigation_required=investigation_required,
        reported_by="hse@example.com",
        created_at=datetime(2025, 6, 1),
        **fields,
    )


def _person(person_type=PersonType.INJURED, days_lost=0):
    return IncidentPerson(id=1, incident_id=1, person_type=person_type, name="Budi", days_lost=days_lost)


def _action(status=ActionStatus.PENDING, due_date=date(2025, 6, 30)):
    return IncidentAction(
        id=1,
        incident_id=1,
        kind="corrective",
        description="Retrain drivers",
        responsible="Sari",
        due_date=due_date,
        status=status,
    )


class TestRules:
    def test_number(self):
        assert format_incident_number(2025, 1) == "INC-2025-00001"
        assert format_incident_number(2025, 123456) == "INC-2025-123456"

    @pytest.mark.parametrize(
        "current,target",
        [
            ("reported", "under_investigation"),
            ("reported", "closed"),
            ("reported", "rejected"),
            ("under_investigation", "pending_actions"),
            ("under_investigation", "closed"),
            ("pending_actions", "closed"),
        ],
    )
    def test_allowed_transitions(self, current, target):
        assert is_valid_status_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [("closed", "reported"), ("rejected", "under_investigation"), ("pending_actions", "rejected")],
    )
    def test_rejected_transitions(self, current, target):
        assert not is_valid_status_transition(current, target)

    def test_validate_input(self):
        args = ("high", "accident", date(2025, 6, 1), "warehouse", "Forklift", "Forklift tipped over")
        assert validate_incident_input(*args, today=TODAY).valid

    @pytest.mark.parametrize(
        "index,value,message",
        [
            (0, "extreme", "Severity is required"),
            (1, None, "Incident type is required"),
            (2, None, "Incident date is required"),
            (2, date(2025, 6, 16), "Incident date cannot be in the future"),
            (3, "moon", "Location type is required"),
            (4, "  ", "Title is required"),
            (4, "x" * 201, "Title must be at most 200 characters"),
            (5, "Too short", "Description must be at least 10 characters"),
        ],
    )
    def test_validate_input_errors(self, index, value, message):
        args = ["high", "accident", date(2025, 6, 1), "warehouse", "Forklift", "Forklift tipped over"]
        args[index] = value
        assert validate_incident_input(*args, today=TODAY).error == message


class TestClosing:
    def test_pending_actions_count(self):
        incident = _incident(
            actions=(
                _action(ActionStatus.PENDING),
                _action(ActionStatus.IN_PROGRESS),
                _action(ActionStatus.OVERDUE),
                _action(ActionStatus.COMPLETED),
            )
        )
        assert get_pending_actions_count(incident) == 3

    def test_can_close(self):
        assert can_close_incident(_incident(root_cause="Overloaded pallet")).valid
        assert can_close_incident(_incident(investigation_required=False)).valid

    def test_cannot_close_twice(self):
        assert can_close_incident(_incident(status=IncidentStatus.CLOSED)).error == "Incident is already closed"
        assert can_close_incident(_incident(status=IncidentStatus.REJECTED)).error == "Incident has been rejected"

    def test_open_actions_block_closing(self):
        result = can_close_incident(_incident(root_cause="x", actions=(_action(),)))
        assert result.error == "1 action(s) are still open"

    def test_root_cause_required(self):
        result = can_close_incident(_incident())
        assert "root cause has not been documented" in result.error
        completed = _incident(investigation_completed_at=datetime(2025, 6, 5))
        assert can_close_incident(completed).valid

    def test_update_action_statuses(self):
        actions = [
            _action(ActionStatus.PENDING, date(2025, 6, 14)),
            _action(ActionStatus.IN_PROGRESS, date(2025, 6, 1)),
            _action(ActionStatus.PENDING, date(2025, 6, 15)),
            _action(ActionStatus.COMPLETED, date(2025, 6, 1)),
        ]
        statuses = [a.status for a in update_action_statuses(actions, TODAY)]
        assert statuses == [
            ActionStatus.OVERDUE,
            ActionStatus.OVERDUE,
            ActionStatus.PENDING,
            ActionStatus.COMPLETED,
        ]


class TestStatistics:
    def test_days_since_last_lti(self):
        incidents = [
            _incident(date(2025, 5, 16), persons=(_person(days_lost=3),)),
            _incident(date(2025, 6, 10), persons=(_person(days_lost=0),)),
            _incident(date(2025, 6, 12), IncidentType.NEAR_MISS, persons=(_person(days_lost=2),)),
        ]
        assert calculate_days_since_last_lti(incidents, TODAY) == 30

    def test_days_since_last_lti_without_one(self):
        assert calculate_days_since_last_lti([], TODAY) == 165
        assert calculate_days_since_last_lti([], date(2024, 12, 31)) == 365

    def test_witness_days_are_not_lost_time(self):
        incident = _incident(persons=(_person(PersonType.WITNESS, days_lost=5),))
        assert calculate_days_since_last_lti([incident], TODAY) == 165
        assert calculate_total_days_lost([incident]) == 0

    def test_total_days_lost(self):
        incidents = [
            _incident(persons=(_person(days_lost=3), _person(days_lost=2))),
            _incident(persons=(_person(days_lost=4),)),
        ]
        assert calculate_total_days_lost(incidents) == 9

    def test_count_by_severity(self):
        counts = count_by_severity(
            [_incident(severity=IncidentSeverity.HIGH), _incident(severity=IncidentSeverity.HIGH), _incident()]
        )
        assert counts == {"low": 0, "medium": 1, "high": 2, "critical": 0}

    def test_open_investigations(self):
        incidents = [
            _incident(status=IncidentStatus.UNDER_INVESTIGATION),
            _incident(status=IncidentStatus.UNDER_INVESTIGATION, investigation_required=False),
            _incident(status=IncidentStatus.REPORTED),
        ]
        assert get_open_investigations_count(incidents) == 1

    def test_monthly_trend(self):
        incidents = [
            _incident(date(2025, 6, 2), persons=(_person(),)),
            _incident(date(2025, 6, 3), IncidentType.NEAR_MISS),
            _incident(date(2025, 4, 30)),
            _incident(date(2024, 12, 31)),
        ]
        trend = calculate_monthly_trend(incidents, months=3, today=TODAY)
        assert [t.month for t in trend] == ["Apr 2025", "May 2025", "Jun 2025"]
        assert [t.total for t in trend] == [1, 0, 2]
        assert trend[2].near_misses == 1
        assert trend[2].injuries == 1


def _report(incident_service, admin, **overrides):
    fields = dict(
        severity="high",
        incident_type="accident",
        incident_date=date(2025, 6, 1),
        location_type="warehouse",
        title="Forklift tipped over",
        description="Forklift tipped while loading a container",
        actor=admin,
        today=TODAY,
    )
    fields.update(overrides)
    return incident_service.report(**fields)


class TestIncidentService:
    def test_report(self, incident_service, sample_job, admin):
        incident = _report(incident_service, admin, jo_number=sample_job.jo_number, location_name="Gudang Cakung")
        assert incident.incident_number == "INC-2025-00001"
        assert incident.status == IncidentStatus.REPORTED
        assert incident.reported_by == "admin@example.com"
        assert incident.job_order_id == sample_job.id
        assert _report(incident_service, admin).incident_number == "INC-2025-00002"

    def test_report_invalid(self, incident_service, admin):
        with pytest.raises(ValidationError, match="cannot be in the future"):
            _report(incident_service, admin, incident_date=date(2025, 7, 1))

    def test_report_unknown_job(self, incident_service, admin):
        with pytest.raises(NotFoundError):
            _report(incident_service, admin, jo_number="JO-9999/CARGO/I/2025")

    def test_full_workflow(self, incident_service, audit_service, admin):
        incident = _report(incident_service, admin)
        number = incident.incident_number
        incident_service.add_person(number, "injured", "Budi", days_lost=2, injury_description="Sprained ankle")

        incident = incident_service.start_investigation(number, actor=admin)
        assert incident.status == IncidentStatus.UNDER_INVESTIGATION
        assert incident.investigation_started_at is not None

        with pytest.raises(ValidationError, match="Root cause must be documented"):
            incident_service.complete_investigation(number, actor=admin)
        incident_service.record_root_cause(number, "Pallet above rated load", actor=admin)
        incident = incident_service.complete_investigation(number, actor=admin)
        assert incident.status == IncidentStatus.PENDING_ACTIONS

        action = incident_service.add_action(number, "corrective", "Retrain drivers", "Sari", date(2025, 6, 30))
        with pytest.raises(ValidationError, match="still open"):
            incident_service.close(number, "Done", actor=admin)

        completed = incident_service.complete_action(number, action.id, actor=admin)
        assert completed.status == ActionStatus.COMPLETED
        assert completed.completed_at is not None

        incident = incident_service.close(number, "Drivers retrained", actor=admin)
        assert incident.status == IncidentStatus.CLOSED
        assert incident.closure_notes == "Drivers retrained"
        assert incident.persons[0].days_lost == 2

        history = audit_service.entity_history("incident", incident.id)
        assert all(e.module == "hse" for e in history)
        assert "approve" in [e.action for e in history]

    def test_close_without_investigation(self, incident_service, admin):
        incident = _report(incident_service, admin, investigation_required=False)
        incident = incident_service.close(incident.incident_number, "Minor, no follow-up", actor=admin)
        assert incident.status == IncidentStatus.CLOSED

    def test_close_needs_notes(self, incident_service, admin):
        incident = _report(incident_service, admin, investigation_required=False)
        with pytest.raises(ValidationError, match="Closure notes"):
            incident_service.close(incident.incident_number, " ", actor=admin)

    def test_reject_only_when_reported(self, incident_service, admin):
        first = _report(incident_service, admin)
        rejected = incident_service.reject(first.incident_number, "Duplicate of INC-2025-00002", actor=admin)
        assert rejected.status == IncidentStatus.REJECTED

        second = _report(incident_service, admin)
        incident_service.start_investigation(second.incident_number, actor=admin)
        with pytest.raises(InvalidTransitionError, match="from under_investigation to rejected"):
            incident_service.reject(second.incident_number, "Not an incident", actor=admin)

    def test_add_action_checks(self, incident_service, admin):
        incident = _report(incident_service, admin)
        with pytest.raises(ValidationError, match="Action kind"):
            incident_service.add_action(incident.incident_number, "punitive", "x", "y", TODAY)
        with pytest.raises(NotFoundError):
            incident_service.complete_action(incident.incident_number, 99)

    def test_add_person_checks(self, incident_service, admin):
        incident = _report(incident_service, admin)
        with pytest.raises(ValidationError, match="Unknown person type"):
            incident_service.add_person(incident.incident_number, "bystander", "Budi")
        with pytest.raises(ValidationError, match="Days lost"):
            incident_service.add_person(incident.incident_number, "injured", "Budi", days_lost=-1)

    def test_refresh_overdue_actions(self, incident_service, admin):
        incident = _report(incident_service, admin)
        incident_service.add_action(incident.incident_number, "preventive", "Add mirrors", "Sari", date(2025, 6, 10))
        incident_service.add_action(incident.incident_number, "corrective", "Retrain", "Sari", date(2025, 6, 20))

        assert incident_service.refresh_overdue_actions(TODAY) == 1
        assert incident_service.refresh_overdue_actions(TODAY) == 0
        statuses = [a.status for a in incident_service.get_incident(incident.incident_number).actions]
        assert sorted(statuses) == [ActionStatus.OVERDUE, ActionStatus.PENDING]

    def test_safety_summary(self, incident_service, admin):
        lti = _report(incident_service, admin, incident_date=date(2025, 5, 16))
        incident_service.add_person(lti.incident_number, "injured", "Budi", days_lost=3)
        near_miss = _report(incident_service, admin, severity="low", incident_type="near_miss")
        incident_service.start_investigation(near_miss.incident_number, actor=admin)
        rejected = _report(incident_service, admin, severity="critical")
        incident_service.reject(rejected.incident_number, "Duplicate report", actor=admin)

        summary = incident_service.safety_summary(today=TODAY)
        assert summary.total_incidents == 2
        assert summary.by_severity == {"low": 1, "medium": 0, "high": 1, "critical": 0}
        assert summary.total_days_lost == 3
        assert summary.open_investigations == 1
        assert summary.days_since_last_lti == 30

        june = incident_service.safety_summary(date(2025, 6, 1), date(2025, 6, 30), today=TODAY)
        assert june.total_incidents == 1
        assert june.days_since_last_lti == 30

        trend = incident_service.monthly_trend(2, TODAY)
        assert [(t.month, t.total) for t in trend] == [("May 2025", 1), ("Jun 2025", 1)]

    def test_unknown_incident(self, incident_service):
        with pytest.raises(NotFoundError):
            incident_service.get_incident("INC-2025-99999")

