"""Vendor register: codes, documents, ratings and performance."""

import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import (
    Actor,
    Bkk,
    BkkStatus,
    ValidationResult,
    Vendor,
    VendorDocument,
    VendorDocumentType,
    VendorRating,
    VendorType,
)
from freightdesk.domain.errors import NotFoundError, ValidationError, not_found
from freightdesk.utils.amount_parser import to_decimal

logger = logging.getLogger(__name__)

HUNDREDTHS = Decimal("0.01")
EXPIRY_WARNING_DAYS = 30
VENDOR_CODE_PATTERN = re.compile(r"^VND-\d{3,}$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

VENDOR_TYPE_LABELS = {
    VendorType.TRUCKING: "Trucking / Transport",
    VendorType.SHIPPING: "Shipping Line",
    VendorType.PORT: "Port Agent",
    VendorType.HANDLING: "Handling / Stevedoring",
    VendorType.FORWARDING: "Freight Forwarder",
    VendorType.DOCUMENTATION: "Documentation / Customs",
    VendorType.OTHER: "Other",
}

DOCUMENT_TYPE_LABELS = {
    VendorDocumentType.NPWP: "NPWP",
    VendorDocumentType.SIUP: "SIUP",
    VendorDocumentType.NIB: "NIB",
    VendorDocumentType.INSURANCE: "Insurance",
    VendorDocumentType.CONTRACT: "Contract",
    VendorDocumentType.OTHER: "Other",
}

# Job cost categories and the kind of vendor that is paid for them
COST_CATEGORY_VENDOR_TYPES = {
    "trucking": VendorType.TRUCKING,
    "shipping": VendorType.SHIPPING,
    "port_charges": VendorType.PORT,
    "handling": VendorType.HANDLING,
    "documentation": VendorType.DOCUMENTATION,
    "customs": VendorType.DOCUMENTATION,
}


@dataclass(frozen=True)
class VendorSummaryStats:
    total: int
    active: int
    preferred: int
    pending_verification: int


@dataclass(frozen=True)
class VendorPerformance:
    rating_count: int
    average_rating: Optional[Decimal]
    on_time_rate: Optional[Decimal]
    total_jobs: int
    total_value: Decimal


@dataclass(frozen=True)
class DocumentAlert:
    vendor_code: str
    vendor_name: str
    document: VendorDocument
    expiry_status: str


def generate_vendor_code(existing_count: int) -> str:
    """Code of the next vendor: VND-001 for the first, VND-1000 past 999."""
    return f"VND-{existing_count + 1:03d}"


def is_valid_vendor_code(code: str) -> bool:
    return bool(VENDOR_CODE_PATTERN.match(code or ""))


def is_valid_rating(value) -> bool:
    """Ratings are whole stars from 1 to 5."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    if isinstance(value, float) and not value.is_integer():
        return False
    if isinstance(value, Decimal) and (not value.is_finite() or value != value.to_integral_value()):
        return False
    return 1 <= value <= 5


def is_document_expired(expiry_date: Optional[date], today: Optional[date] = None) -> bool:
    if expiry_date is None:
        return False
    return expiry_date < (today or date.today())


def is_document_expiring_soon(expiry_date: Optional[date], today: Optional[date] = None) -> bool:
    """True within the 30 days before expiry, but not once expired."""
    if expiry_date is None:
        return False
    today = today or date.today()
    return today <= expiry_date <= today + timedelta(days=EXPIRY_WARNING_DAYS)


def get_document_expiry_status(expiry_date: Optional[date], today: Optional[date] = None) -> str:
    if is_document_expired(expiry_date, today):
        return "expired"
    if is_document_expiring_soon(expiry_date, today):
        return "expiring_soon"
    return "valid"


def calculate_average_rating(ratings: Sequence[VendorRating]) -> Optional[Decimal]:
    """Mean overall rating to two decimals, or None without ratings."""
    if not ratings:
        return None
    total = sum(Decimal(r.overall_rating) for r in ratings)
    return (total / len(ratings)).quantize(HUNDREDTHS, rounding=ROUND_HALF_UP)


def calculate_on_time_rate(ratings: Sequence[VendorRating]) -> Optional[Decimal]:
    """Percentage of rated jobs delivered on time, or None without ratings."""
    if not ratings:
        return None
    on_time = sum(1 for r in ratings if r.was_on_time)
    rate = Decimal(on_time) / Decimal(len(ratings)) * Decimal("100")
    return rate.quantize(HUNDREDTHS, rounding=ROUND_HALF_UP)


def calculate_vendor_summary_stats(vendors: Iterable[Vendor]) -> VendorSummaryStats:
    vendors = list(vendors)
    return VendorSummaryStats(
        total=len(vendors),
        active=sum(1 for v in vendors if v.is_active),
        preferred=sum(1 for v in vendors if v.is_preferred),
        pending_verification=sum(1 for v in vendors if not v.is_verified),
    )


def calculate_settled_totals(bkks: Iterable[Bkk]) -> tuple[int, Decimal]:
    """Number of settled vouchers and the cash actually spent on them."""
    settled = [b for b in bkks if b.status == BkkStatus.SETTLED]
    return len(settled), sum((to_decimal(b.amount_spent) for b in settled), Decimal("0"))


def sort_vendors_for_dropdown(
    vendors: Iterable[Vendor], ratings: dict[int, Optional[Decimal]]
) -> list[Vendor]:
    """Preferred vendors first, then by average rating, unrated last."""

    def key(vendor: Vendor):
        rating = ratings.get(vendor.id)
        return (
            not vendor.is_preferred,
            rating is None,
            -(rating or Decimal("0")),
            vendor.vendor_name.lower(),
        )

    return sorted(vendors, key=key)


def filter_vendors_by_search(vendors: Iterable[Vendor], search: Optional[str]) -> list[Vendor]:
    """Case-insensitive match on vendor name or code; blank search keeps all."""
    if not search or not search.strip():
        return list(vendors)
    needle = search.strip().lower()
    return [
        v for v in vendors if needle in v.vendor_name.lower() or needle in v.vendor_code.lower()
    ]


def map_cost_category_to_vendor_type(category: str) -> Optional[VendorType]:
    return COST_CATEGORY_VENDOR_TYPES.get(category)


def get_vendor_type_label(vendor_type: VendorType | str) -> str:
    return VENDOR_TYPE_LABELS.get(vendor_type, str(vendor_type))


def get_document_type_label(document_type: VendorDocumentType | str) -> str:
    return DOCUMENT_TYPE_LABELS.get(document_type, str(document_type))


def validate_vendor_input(
    vendor_name: Optional[str], vendor_type: Optional[str], email: Optional[str] = None
) -> ValidationResult:
    errors = []
    if not vendor_name or not vendor_name.strip():
        errors.append("Vendor name is required")
    if vendor_type not in {t.value for t in VendorType}:
        errors.append("Invalid vendor type")
    if email and not _EMAIL.match(email.strip()):
        errors.append("Invalid email")
    return ValidationResult.from_errors(errors)


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.valid:
        raise ValidationError("; ".join(result.errors))


class VendorService:
    """Service for the vendor register and vendor performance."""

    def __init__(self, db: Database):
        self.db = db
        self.audit = AuditService(db)

    def get_vendor(self, vendor_code: str) -> Vendor:
        vendor = self.db.get_vendor_by_code(vendor_code.strip().upper())
        if vendor is None:
            raise NotFoundError(not_found("Vendor", vendor_code))
        return vendor

    def list_vendors(
        self,
        search: Optional[str] = None,
        vendor_type: Optional[str] = None,
        active_only: bool = False,
    ) -> list[Vendor]:
        vendors = filter_vendors_by_search(self.db.list_vendors(), search)
        return [
            v
            for v in vendors
            if (vendor_type is None or v.vendor_type == vendor_type)
            and (not active_only or v.is_active)
        ]

    def dropdown(self, vendor_type: Optional[str] = None) -> list[Vendor]:
        """Active vendors in the order they are offered for selection."""
        vendors = self.list_vendors(vendor_type=vendor_type, active_only=True)
        ratings = {
            v.id: calculate_average_rating(self.db.list_vendor_ratings(v.id)) for v in vendors
        }
        return sort_vendors_for_dropdown(vendors, ratings)

    def summary_stats(self) -> VendorSummaryStats:
        return calculate_vendor_summary_stats(self.db.list_vendors())

    def register(
        self,
        vendor_name: str,
        vendor_type: VendorType | str,
        contact_person: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        is_preferred: bool = False,
        actor: Optional[Actor] = None,
    ) -> Vendor:
        """Register an unverified vendor under the next VND code.

        Raises:
            ValidationError: If the name, type or email is invalid
        """
        _raise_if_invalid(validate_vendor_input(vendor_name, vendor_type, email))
        code = generate_vendor_code(self.db.count_vendors())
        vendor_id = self.db.create_vendor(
            vendor_code=code,
            vendor_name=vendor_name.strip(),
            vendor_type=VendorType(vendor_type).value,
            contact_person=contact_person,
            phone=phone,
            email=email.strip() if email else None,
            is_preferred=is_preferred,
        )
        self.audit.log(
            "create",
            "vendors",
            "vendor",
            entity_id=vendor_id,
            entity_reference=code,
            new_values={"vendor_name": vendor_name.strip(), "vendor_type": vendor_type},
            actor=actor,
        )
        logger.info("Registered vendor %s (%s)", code, vendor_name.strip())
        return self.db.get_vendor(vendor_id)

    def update_flags(self, vendor_code: str, actor: Optional[Actor] = None, **flags: bool) -> Vendor:
        """Set is_active, is_preferred or is_verified on a vendor."""
        unknown = set(flags) - {"is_active", "is_preferred", "is_verified"}
        if unknown:
            raise ValidationError(f"Unknown vendor flag(s): {', '.join(sorted(unknown))}")
        vendor = self.get_vendor(vendor_code)
        if not flags:
            return vendor

        self.db.update_vendor(vendor.id, **flags)
        self.audit.log(
            "approve" if flags.get("is_verified") else "update",
            "vendors",
            "vendor",
            entity_id=vendor.id,
            entity_reference=vendor.vendor_code,
            old_values={name: getattr(vendor, name) for name in flags},
            new_values=dict(flags),
            actor=actor,
        )
        return self.db.get_vendor(vendor.id)

    def rate(
        self,
        vendor_code: str,
        overall_rating: int,
        was_on_time: Optional[bool] = None,
        had_issues: bool = False,
        jo_number: Optional[str] = None,
        comments: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> VendorRating:
        """Rate a vendor's work, optionally on a specific job order.

        Raises:
            ValidationError: If the rating is not a whole number from 1 to 5
            NotFoundError: If the vendor or job order doesn't exist
        """
        if not is_valid_rating(overall_rating):
            raise ValidationError("Rating must be a whole number from 1 to 5")
        vendor = self.get_vendor(vendor_code)

        job_order_id = None
        if jo_number:
            job = self.db.get_job_order_by_number(jo_number)
            if job is None:
                raise NotFoundError(not_found("Job order", jo_number))
            job_order_id = job.id

        rating_id = self.db.add_vendor_rating(
            vendor.id,
            int(overall_rating),
            was_on_time=was_on_time,
            had_issues=had_issues,
            job_order_id=job_order_id,
            comments=comments,
        )
        self.audit.log(
            "create",
            "vendors",
            "vendor_rating",
            entity_id=rating_id,
            entity_reference=vendor.vendor_code,
            new_values={
                "overall_rating": int(overall_rating),
                "was_on_time": was_on_time,
                "had_issues": had_issues,
            },
            actor=actor,
        )
        return next(r for r in self.db.list_vendor_ratings(vendor.id) if r.id == rating_id)

    def add_document(
        self,
        vendor_code: str,
        document_type: VendorDocumentType | str,
        expiry_date: Optional[date] = None,
        file_name: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> VendorDocument:
        try:
            document_type = VendorDocumentType(document_type)
        except ValueError:
            raise ValidationError(f"Unknown document type '{document_type}'")
        vendor = self.get_vendor(vendor_code)
        document_id = self.db.add_vendor_document(
            vendor.id, document_type.value, expiry_date=expiry_date, file_name=file_name
        )
        self.audit.log(
            "create",
            "vendors",
            "vendor_document",
            entity_id=document_id,
            entity_reference=vendor.vendor_code,
            new_values={"document_type": document_type, "expiry_date": expiry_date},
            actor=actor,
        )
        return next(d for d in self.db.list_vendor_documents(vendor.id) if d.id == document_id)

    def document_alerts(self, today: Optional[date] = None) -> list[DocumentAlert]:
        """Documents of active vendors that are expired or expire within 30 days."""
        today = today or date.today()
        vendors = {v.id: v for v in self.db.list_vendors() if v.is_active}
        alerts = []
        for document in self.db.list_vendor_documents():
            vendor = vendors.get(document.vendor_id)
            if vendor is None:
                continue
            status = get_document_expiry_status(document.expiry_date, today)
            if status != "valid":
                alerts.append(DocumentAlert(vendor.vendor_code, vendor.vendor_name, document, status))
        return sorted(alerts, key=lambda a: a.document.expiry_date)

    def get_performance(self, vendor_code: str) -> VendorPerformance:
        """Ratings together with the jobs and cash settled against the vendor."""
        vendor = self.get_vendor(vendor_code)
        ratings = self.db.list_vendor_ratings(vendor.id)
        total_jobs, total_value = calculate_settled_totals(self.db.list_bkks(vendor_id=vendor.id))
        return VendorPerformance(
            rating_count=len(ratings),
            average_rating=calculate_average_rating(ratings),
            on_time_rate=calculate_on_time_rate(ratings),
            total_jobs=total_jobs,
            total_value=total_value,
        )
