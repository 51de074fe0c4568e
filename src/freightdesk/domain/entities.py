"""Domain model entities for freightdesk.

These are pure data classes representing business concepts, independent of
database schema. Rows are mapped into these shapes for a single request and
carry no behaviour of their own.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import StrEnum
from typing import Any, Optional


class JobOrderStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    SUBMITTED_TO_FINANCE = "submitted_to_finance"
    INVOICED = "invoiced"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class TriggerType(StrEnum):
    JO_CREATED = "jo_created"
    SURAT_JALAN = "surat_jalan"
    BERITA_ACARA = "berita_acara"
    DELIVERY = "delivery"


class PresetType(StrEnum):
    SINGLE = "single"
    DP_FINAL = "dp_final"
    DP_DELIVERY_FINAL = "dp_delivery_final"
    CUSTOM = "custom"


class TermStatus(StrEnum):
    PENDING = "pending"
    READY = "ready"
    LOCKED = "locked"
    INVOICED = "invoiced"


class BkkStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RELEASED = "released"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class DrawingStatus(StrEnum):
    DRAFT = "draft"
    FOR_REVIEW = "for_review"
    FOR_APPROVAL = "for_approval"
    APPROVED = "approved"
    ISSUED = "issued"
    SUPERSEDED = "superseded"


class TransmittalPurpose(StrEnum):
    FOR_APPROVAL = "for_approval"
    FOR_CONSTRUCTION = "for_construction"
    FOR_INFORMATION = "for_information"
    FOR_REVIEW = "for_review"
    AS_BUILT = "as_built"


class TransmittalStatus(StrEnum):
    DRAFT = "draft"
    SENT = "sent"
    ACKNOWLEDGED = "acknowledged"


class AllocationMethod(StrEnum):
    REVENUE_PERCENTAGE = "revenue_percentage"
    FIXED_PER_JOB = "fixed_per_job"
    NONE = "none"


class InvoiceStatus(StrEnum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class VendorType(StrEnum):
    TRUCKING = "trucking"
    SHIPPING = "shipping"
    PORT = "port"
    HANDLING = "handling"
    FORWARDING = "forwarding"
    DOCUMENTATION = "documentation"
    OTHER = "other"


class VendorDocumentType(StrEnum):
    NPWP = "npwp"
    SIUP = "siup"
    NIB = "nib"
    INSURANCE = "insurance"
    CONTRACT = "contract"
    OTHER = "other"


class IncidentSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentType(StrEnum):
    ACCIDENT = "accident"
    NEAR_MISS = "near_miss"
    OBSERVATION = "observation"
    VIOLATION = "violation"


class IncidentStatus(StrEnum):
    REPORTED = "reported"
    UNDER_INVESTIGATION = "under_investigation"
    PENDING_ACTIONS = "pending_actions"
    CLOSED = "closed"
    REJECTED = "rejected"


class LocationType(StrEnum):
    OFFICE = "office"
    WAREHOUSE = "warehouse"
    ROAD = "road"
    CUSTOMER_SITE = "customer_site"
    PORT = "port"
    OTHER = "other"


class PersonType(StrEnum):
    INJURED = "injured"
    WITNESS = "witness"
    INVOLVED = "involved"
    FIRST_RESPONDER = "first_responder"


class ActionStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class DailyLogStatus(StrEnum):
    OPERATING = "operating"
    IDLE = "idle"
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    STANDBY = "standby"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a form-style input check."""

    valid: bool
    errors: tuple[str, ...] = ()

    @property
    def error(self) -> Optional[str]:
        return self.errors[0] if self.errors else None

    @classmethod
    def from_errors(cls, errors: list[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=tuple(errors))


@dataclass(frozen=True)
class Actor:
    """User performing an operation, as recorded in audit logs."""

    email: Optional[str] = None
    role: str = "admin"
    user_id: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    """Customer domain entity."""

    id: int
    name: str
    created_at: datetime


@dataclass(frozen=True)
class JobOrder:
    """Job order domain entity with its final financial figures."""

    id: int
    jo_number: str
    customer_id: int
    customer_name: str
    project_name: Optional[str]
    order_date: date
    status: JobOrderStatus
    revenue: Decimal
    direct_cost: Decimal
    equipment_cost: Decimal
    overhead_total: Decimal
    has_surat_jalan: bool
    has_berita_acara: bool
    created_at: datetime


@dataclass(frozen=True)
class RevenueItem:
    """Proforma revenue line."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    subtotal: Optional[Decimal] = None


@dataclass(frozen=True)
class CostItem:
    """Proforma cost line with its confirmed actual amount, if any."""

    category: str
    description: str
    estimated_amount: Decimal
    actual_amount: Optional[Decimal] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class InvoiceTerm:
    """One split of a job order's revenue into an invoice."""

    term: str
    percentage: Decimal
    description: str
    trigger: TriggerType
    invoiced: bool = False
    invoice_number: Optional[str] = None


@dataclass(frozen=True)
class OverheadCategory:
    """Overhead cost pool and how it is apportioned to jobs."""

    id: int
    code: str
    name: str
    allocation_method: AllocationMethod
    rate: Decimal
    fixed_amount: Decimal
    is_active: bool


@dataclass(frozen=True)
class OverheadAllocation:
    """Overhead apportioned to a single job order from one category."""

    category_code: str
    category_name: str
    allocation_method: AllocationMethod
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Bkk:
    """Cash disbursement voucher (Bukti Kas Keluar)."""

    id: int
    bkk_number: str
    job_order_id: int
    purpose: str
    amount_requested: Decimal
    budget_amount: Decimal
    status: BkkStatus
    requested_by: Optional[str]
    release_method: Optional[str]
    amount_spent: Optional[Decimal]
    amount_returned: Optional[Decimal]
    rejection_reason: Optional[str]
    created_at: datetime
    vendor_id: Optional[int] = None


@dataclass(frozen=True)
class Drawing:
    """Engineering drawing under revision control."""

    id: int
    drawing_number: str
    category_prefix: str
    title: str
    status: DrawingStatus
    current_revision: str
    revision_count: int
    file_name: Optional[str]
    job_order_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class DrawingRevision:
    """Single revision of a drawing."""

    id: int
    drawing_id: int
    revision_number: str
    change_description: str
    file_name: Optional[str]
    is_current: bool
    created_at: datetime


@dataclass(frozen=True)
class Transmittal:
    """Formal hand-over of a set of drawings to a recipient."""

    id: int
    transmittal_number: str
    recipient_company: str
    purpose: TransmittalPurpose
    drawing_ids: tuple[int, ...]
    notes: Optional[str]
    created_at: datetime
    status: TransmittalStatus = TransmittalStatus.DRAFT
    sent_at: Optional[datetime] = None
    sent_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None


@dataclass(frozen=True)
class InvoiceLineItem:
    """Billed line of an invoice, numbered from 1."""

    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal
    unit: Optional[str] = None


@dataclass(frozen=True)
class Invoice:
    """Customer invoice raised from a job order."""

    id: int
    invoice_number: str
    job_order_id: int
    invoice_date: date
    due_date: date
    status: InvoiceStatus
    subtotal: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    line_items: tuple[InvoiceLineItem, ...]
    notes: Optional[str]
    created_at: datetime
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


@dataclass(frozen=True)
class Vendor:
    """Subcontractor or supplier that job costs are paid to."""

    id: int
    vendor_code: str
    vendor_name: str
    vendor_type: VendorType
    contact_person: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    is_active: bool
    is_preferred: bool
    is_verified: bool
    created_at: datetime


@dataclass(frozen=True)
class VendorRating:
    """Performance rating of a vendor after a job."""

    id: int
    vendor_id: int
    overall_rating: int
    was_on_time: Optional[bool]
    had_issues: bool
    job_order_id: Optional[int]
    comments: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class VendorDocument:
    """Legal or insurance document held for a vendor."""

    id: int
    vendor_id: int
    document_type: VendorDocumentType
    expiry_date: Optional[date]
    file_name: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class IncidentPerson:
    """Person injured, involved in or witnessing an incident."""

    id: int
    incident_id: int
    person_type: PersonType
    name: str
    days_lost: int = 0
    injury_description: Optional[str] = None


@dataclass(frozen=True)
class IncidentAction:
    """Corrective or preventive action raised from an incident."""

    id: int
    incident_id: int
    kind: str
    description: str
    responsible: str
    due_date: date
    status: ActionStatus
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class Incident:
    """HSE incident report and its investigation."""

    id: int
    incident_number: str
    severity: IncidentSeverity
    incident_type: IncidentType
    incident_date: date
    location_type: LocationType
    title: str
    description: str
    status: IncidentStatus
    investigation_required: bool
    reported_by: Optional[str]
    created_at: datetime
    location_name: Optional[str] = None
    job_order_id: Optional[int] = None
    root_cause: Optional[str] = None
    investigation_started_at: Optional[datetime] = None
    investigation_completed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closure_notes: Optional[str] = None
    persons: tuple[IncidentPerson, ...] = ()
    actions: tuple[IncidentAction, ...] = ()


@dataclass(frozen=True)
class EquipmentAsset:
    """Owned equipment whose daily use is logged."""

    id: int
    asset_code: str
    name: str
    status: str
    daily_rate: Decimal
    created_at: datetime


@dataclass(frozen=True)
class EquipmentDailyLog:
    """One day of an asset's use with its meter readings."""

    id: int
    asset_id: int
    log_date: date
    status: DailyLogStatus
    start_km: Optional[Decimal] = None
    end_km: Optional[Decimal] = None
    start_hours: Optional[Decimal] = None
    end_hours: Optional[Decimal] = None
    fuel_liters: Optional[Decimal] = None
    job_order_id: Optional[int] = None


@dataclass(frozen=True)
class AuditLogEntry:
    """Recorded change or action against a business entity."""

    id: Optional[int]
    timestamp: datetime
    action: str
    module: str
    entity_type: str
    entity_id: Optional[str] = None
    entity_reference: Optional[str] = None
    description: Optional[str] = None
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    user_role: Optional[str] = None
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    changed_fields: tuple[str, ...] = ()
    status: str = "success"
    error_message: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
