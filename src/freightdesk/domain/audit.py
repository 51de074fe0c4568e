"""Audit log diffing, filtering, reporting and the audit service."""

import csv
import io
import logging
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Union

from freightdesk.database.base import Database
from freightdesk.domain.entities import Actor, AuditLogEntry, ValidationResult
from freightdesk.domain.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

ACTION_LABELS = {
    "create": "Created",
    "INSERT": "Created",
    "update": "Updated",
    "UPDATE": "Updated",
    "delete": "Deleted",
    "DELETE": "Deleted",
    "view": "Viewed",
    "export": "Exported",
    "approve": "Approved",
    "reject": "Rejected",
    "submit": "Submitted",
    "cancel": "Cancelled",
}

MODULE_LABELS = {
    "customers": "Customers",
    "projects": "Projects",
    "quotations": "Quotations",
    "pjo": "Proforma Job Orders",
    "job_orders": "Job Orders",
    "invoices": "Invoices",
    "employees": "Employees",
    "vendors": "Vendors",
    "equipment": "Equipment",
    "hse": "HSE",
    "settings": "Settings",
    "users": "Users",
    "public": "System",
}

CSV_HEADERS = (
    "Timestamp",
    "User Email",
    "User Role",
    "Action",
    "Module",
    "Entity Type",
    "Entity ID",
    "Entity Reference",
    "Description",
    "Changed Fields",
    "Status",
    "IP Address",
)

StrOrList = Union[str, Sequence[str], None]


@dataclass(frozen=True)
class AuditLogFilters:
    """Criteria for narrowing a list of audit log entries.

    Fields left as None do not filter. ``action``, ``module``,
    ``entity_type`` and ``status`` accept a single value or a list.
    """

    user_id: Optional[str] = None
    user_email: Optional[str] = None
    action: StrOrList = None
    module: StrOrList = None
    entity_type: StrOrList = None
    entity_id: Optional[str] = None
    status: StrOrList = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class FormattedDescription:
    action: str
    module: str
    description: str
    summary: str
    changed_fields_summary: Optional[str] = None


@dataclass(frozen=True)
class AuditPage:
    """One page of audit log entries."""

    entries: list[AuditLogEntry]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_more: bool


def _deep_equal(a: Any, b: Any) -> bool:
    if type(a) is bool or type(b) is bool:
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(_deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(_deep_equal(x, y) for x, y in zip(a, b))
    return a == b


def calculate_changed_fields(
    old_values: Optional[dict[str, Any]], new_values: Optional[dict[str, Any]]
) -> list[str]:
    """Return the sorted keys whose values differ between two snapshots.

    When one side is missing, every key of the other side counts as changed.
    """
    if old_values is None and new_values is None:
        return []
    if old_values is None:
        return sorted(new_values)
    if new_values is None:
        return sorted(old_values)

    keys = set(old_values) | set(new_values)
    return sorted(
        key
        for key in keys
        if key not in old_values
        or key not in new_values
        or not _deep_equal(old_values[key], new_values[key])
    )


def get_changed_field_details(
    old_values: Optional[dict[str, Any]], new_values: Optional[dict[str, Any]]
) -> list[FieldChange]:
    """Return old and new values for each changed field."""
    old_values = old_values or {}
    new_values = new_values or {}
    return [
        FieldChange(name, old_values.get(name), new_values.get(name))
        for name in calculate_changed_fields(old_values, new_values)
    ]


def _humanize(value: str) -> str:
    return value.replace("_", " ").title()


def format_action(action: str) -> str:
    return ACTION_LABELS.get(action) or _humanize(action)


def format_module(module: str) -> str:
    return MODULE_LABELS.get(module) or _humanize(module)


def format_audit_log_description(entry: AuditLogEntry) -> FormattedDescription:
    """Build display strings for an entry.

    The summary names the action and entity, e.g. "Updated job_order
    (JO-0001/CARGO/I/2025)". The changed-fields line lists at most three
    fields. A stored description replaces the summary as the description.
    """
    summary = f"{format_action(entry.action)} {entry.entity_type or ''}"
    if entry.entity_reference:
        summary += f" ({entry.entity_reference})"

    fields = list(entry.changed_fields)
    changed = None
    if fields:
        if len(fields) <= 3:
            changed = f"Changed: {', '.join(fields)}"
        else:
            changed = f"Changed {len(fields)} fields: {', '.join(fields[:3])}..."

    return FormattedDescription(
        action=format_action(entry.action),
        module=format_module(entry.module),
        description=entry.description or summary,
        summary=summary,
        changed_fields_summary=changed,
    )


def _matches(value: Optional[str], wanted: StrOrList) -> bool:
    if wanted is None:
        return True
    if isinstance(wanted, str):
        return value == wanted
    return not wanted or value in wanted


def filter_audit_logs(
    entries: Iterable[AuditLogEntry], filters: AuditLogFilters
) -> list[AuditLogEntry]:
    """Return entries matching every criterion in ``filters``.

    The date range covers whole days at both ends.
    """
    start = datetime.combine(filters.start_date, time.min) if filters.start_date else None
    end = datetime.combine(filters.end_date, time.max) if filters.end_date else None
    email = filters.user_email.lower() if filters.user_email else None
    search = filters.search.lower() if filters.search else None

    result = []
    for entry in entries:
        if filters.user_id is not None and entry.user_id != filters.user_id:
            continue
        if email and email not in (entry.user_email or "").lower():
            continue
        if not _matches(entry.action, filters.action):
            continue
        if not _matches(entry.module, filters.module):
            continue
        if not _matches(entry.entity_type, filters.entity_type):
            continue
        if not _matches(entry.status, filters.status):
            continue
        if filters.entity_id is not None and entry.entity_id != filters.entity_id:
            continue

        stamp = entry.timestamp.replace(tzinfo=None)
        if start and stamp < start:
            continue
        if end and stamp > end:
            continue

        if search:
            haystack = (
                entry.description,
                entry.entity_reference,
                entry.user_email,
                entry.entity_type,
                entry.action,
            )
            if not any(search in (text or "").lower() for text in haystack):
                continue
        result.append(entry)
    return result


def sort_audit_logs(
    entries: Iterable[AuditLogEntry], field: str = "timestamp", direction: str = "desc"
) -> list[AuditLogEntry]:
    """Sort entries by an attribute without touching the input.

    Missing values sort first in ascending order and last in descending order.
    """
    reverse = direction == "desc"

    def key(entry):
        value = getattr(entry, field, None)
        if isinstance(value, datetime):
            value = value.replace(tzinfo=None)
        return (value is not None, value if value is not None else 0)

    return sorted(entries, key=key, reverse=reverse)


def paginate_audit_logs(
    entries: Sequence[AuditLogEntry], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
) -> AuditPage:
    """Slice entries into a page; page and page size are clamped to valid ranges."""
    page = max(1, page)
    page_size = min(MAX_PAGE_SIZE, max(1, page_size))
    total = len(entries)
    total_pages = math.ceil(total / page_size) if total else 0
    offset = (page - 1) * page_size
    return AuditPage(
        entries=list(entries[offset : offset + page_size]),
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_more=page < total_pages,
    )


def get_entity_audit_history(
    entries: Iterable[AuditLogEntry], entity_type: str, entity_id: str
) -> list[AuditLogEntry]:
    """Return entries for one entity, newest first."""
    matching = [
        e for e in entries if e.entity_type == entity_type and e.entity_id == entity_id
    ]
    return sort_audit_logs(matching, "timestamp", "desc")


def to_audit_value(value: Any) -> Any:
    """Convert a value into something a JSON column can store."""
    if isinstance(value, dict):
        return {str(k): to_audit_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_audit_value(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def create_audit_log_input(
    action: str,
    module: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    entity_reference: Optional[str] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    actor: Optional[Actor] = None,
    description: Optional[str] = None,
    status: str = "success",
    error_message: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> AuditLogEntry:
    """Build an unsaved audit log entry with its changed fields computed."""
    old_values = to_audit_value(old_values) if old_values is not None else None
    new_values = to_audit_value(new_values) if new_values is not None else None
    actor = actor or Actor()
    return AuditLogEntry(
        id=None,
        timestamp=datetime.now(UTC),
        action=action,
        module=module,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        entity_reference=entity_reference,
        description=description,
        user_id=actor.user_id,
        user_email=actor.email,
        user_role=actor.role,
        old_values=old_values,
        new_values=new_values,
        changed_fields=tuple(calculate_changed_fields(old_values, new_values)),
        status=status,
        error_message=error_message,
        metadata=dict(metadata or {}),
    )


def validate_audit_log_input(entry: AuditLogEntry) -> ValidationResult:
    errors = []
    if not entry.action:
        errors.append("Action is required")
    if not entry.module:
        errors.append("Module is required")
    if not entry.entity_type:
        errors.append("Entity type is required")
    return ValidationResult.from_errors(errors)


def _count_by(entries: Iterable[AuditLogEntry], attr: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for entry in entries:
        key = getattr(entry, attr) or "unknown"
        counts[key] = counts.get(key, 0) + 1
    return counts


def count_by_action(entries: Iterable[AuditLogEntry]) -> dict[str, int]:
    return _count_by(entries, "action")


def count_by_module(entries: Iterable[AuditLogEntry]) -> dict[str, int]:
    return _count_by(entries, "module")


def count_by_entity_type(entries: Iterable[AuditLogEntry]) -> dict[str, int]:
    return _count_by(entries, "entity_type")


def get_unique_users(entries: Iterable[AuditLogEntry]) -> list[tuple[str, int]]:
    """Return (user email, entry count) pairs, busiest user first."""
    counts: dict[str, int] = {}
    for entry in entries:
        if entry.user_email:
            counts[entry.user_email] = counts.get(entry.user_email, 0) + 1
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def calculate_failure_rate(entries: Sequence[AuditLogEntry]) -> float:
    """Percentage of entries whose status is "failure"."""
    if not entries:
        return 0.0
    failures = sum(1 for e in entries if e.status == "failure")
    return failures / len(entries) * 100


def export_to_csv(entries: Iterable[AuditLogEntry]) -> str:
    """Render entries as CSV with every field quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for entry in entries:
        writer.writerow(
            [
                entry.timestamp.isoformat(),
                entry.user_email or "",
                entry.user_role or "",
                entry.action,
                entry.module,
                entry.entity_type,
                entry.entity_id or "",
                entry.entity_reference or "",
                format_audit_log_description(entry).description,
                ", ".join(entry.changed_fields),
                entry.status,
                entry.metadata.get("ip_address", ""),
            ]
        )
    return buffer.getvalue()


class AuditService:
    """Service for recording and querying audit logs."""

    def __init__(self, db: Database):
        """Initialize audit service.

        Args:
            db: Database instance
        """
        self.db = db

    def record(self, entry: AuditLogEntry) -> int:
        """Persist an audit log entry.

        Args:
            entry: Entry built with create_audit_log_input

        Returns:
            Audit log ID

        Raises:
            ValidationError: If action, module or entity type is missing
        """
        result = validate_audit_log_input(entry)
        if not result.valid:
            raise ValidationError(result.error)

        entry_id = self.db.create_audit_log(entry)
        logger.debug(
            "Audit %s %s %s (%s)",
            entry.action,
            entry.entity_type,
            entry.entity_id,
            ", ".join(entry.changed_fields),
        )
        return entry_id

    def log(self, action: str, module: str, entity_type: str, **kwargs: Any) -> int:
        """Build and persist an entry in one call."""
        return self.record(create_audit_log_input(action, module, entity_type, **kwargs))

    def entity_history(self, entity_type: str, entity_id: int | str) -> list[AuditLogEntry]:
        """Return the audit trail of one entity, newest first."""
        entries = self.db.list_audit_logs(entity_type=entity_type, entity_id=str(entity_id))
        return get_entity_audit_history(entries, entity_type, str(entity_id))

    def query(
        self,
        filters: Optional[AuditLogFilters] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort_field: str = "timestamp",
        sort_direction: str = "desc",
    ) -> AuditPage:
        """Filter, sort and paginate stored audit logs."""
        entries = filter_audit_logs(self.db.list_audit_logs(), filters or AuditLogFilters())
        entries = sort_audit_logs(entries, sort_field, sort_direction)
        return paginate_audit_logs(entries, page, page_size)

    def export(self, filters: Optional[AuditLogFilters] = None) -> str:
        """Export filtered audit logs as CSV, newest first."""
        entries = filter_audit_logs(self.db.list_audit_logs(), filters or AuditLogFilters())
        return export_to_csv(sort_audit_logs(entries))
