"""Job order numbering, cost tracking rules and the job order service."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import (
    Actor,
    CostItem,
    JobOrder,
    JobOrderStatus,
    RevenueItem,
    ValidationResult,
)
from freightdesk.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    invalid_transition,
    not_found,
)
from freightdesk.utils.amount_parser import format_idr, to_decimal
from freightdesk.utils.date_parser import to_roman_month

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
AT_RISK_THRESHOLD = Decimal("0.9")
COST_EDITOR_ROLES = frozenset({"ops", "admin"})

JOB_ORDER_TRANSITIONS: dict[JobOrderStatus, tuple[JobOrderStatus, ...]] = {
    JobOrderStatus.ACTIVE: (JobOrderStatus.COMPLETED, JobOrderStatus.CANCELLED),
    JobOrderStatus.COMPLETED: (JobOrderStatus.SUBMITTED_TO_FINANCE,),
    JobOrderStatus.SUBMITTED_TO_FINANCE: (JobOrderStatus.INVOICED,),
    JobOrderStatus.INVOICED: (JobOrderStatus.CLOSED,),
    JobOrderStatus.CLOSED: (),
    JobOrderStatus.CANCELLED: (),
}

FINANCIAL_FIELDS = ("revenue", "direct_cost", "equipment_cost")


@dataclass(frozen=True)
class CostStatus:
    status: str
    variance: Decimal
    variance_pct: Decimal


@dataclass(frozen=True)
class BudgetAnalysis:
    total_estimated: Decimal
    total_actual: Decimal
    total_variance: Decimal
    variance_pct: Decimal
    items_confirmed: int
    items_pending: int
    items_over_budget: int
    items_under_budget: int
    all_confirmed: bool
    has_overruns: bool


def generate_jo_number(sequence: int, order_date: date) -> str:
    """Format a job order number, e.g. JO-0007/CARGO/III/2025."""
    return f"JO-{sequence:04d}/CARGO/{to_roman_month(order_date.month)}/{order_date.year}"


def calculate_profit(revenue: Decimal, expenses: Decimal) -> Decimal:
    return to_decimal(revenue) - to_decimal(expenses)


def calculate_margin(revenue: Decimal, expenses: Decimal) -> Decimal:
    """Profit as a percentage of revenue; 0 when there is no revenue."""
    revenue = to_decimal(revenue)
    if revenue == 0:
        return Decimal("0")
    return calculate_profit(revenue, expenses) / revenue * HUNDRED


def calculate_revenue_total(items: Iterable[RevenueItem]) -> Decimal:
    total = Decimal("0")
    for item in items:
        if item.subtotal:
            total += to_decimal(item.subtotal)
        else:
            total += to_decimal(item.quantity) * to_decimal(item.unit_price)
    return total


def calculate_cost_total(items: Iterable[CostItem], kind: str = "estimated") -> Decimal:
    """Sum estimated or actual amounts; items without an actual count as 0."""
    if kind == "estimated":
        return sum((to_decimal(i.estimated_amount) for i in items), Decimal("0"))
    return sum((to_decimal(i.actual_amount) for i in items), Decimal("0"))


def calculate_variance(estimated: Decimal, actual: Decimal) -> tuple[Decimal, Decimal]:
    estimated = to_decimal(estimated)
    variance = to_decimal(actual) - estimated
    variance_pct = variance / estimated * HUNDRED if estimated > 0 else Decimal("0")
    return variance, variance_pct


def calculate_cost_status(estimated: Decimal, actual: Decimal) -> CostStatus:
    """Classify an actual cost against its estimate.

    Up to 90% of the estimate is ``confirmed``, up to the full estimate is
    ``at_risk`` and anything above is ``exceeded``.
    """
    estimated = to_decimal(estimated)
    actual = to_decimal(actual)
    variance, variance_pct = calculate_variance(estimated, actual)
    if actual <= estimated * AT_RISK_THRESHOLD:
        status = "confirmed"
    elif actual <= estimated:
        status = "at_risk"
    else:
        status = "exceeded"
    return CostStatus(status=status, variance=variance, variance_pct=variance_pct)


def analyze_budget(cost_items: Sequence[CostItem]) -> BudgetAnalysis:
    total_estimated = calculate_cost_total(cost_items, "estimated")
    confirmed = [i for i in cost_items if i.actual_amount is not None]
    total_actual = calculate_cost_total(confirmed, "actual")
    total_variance, variance_pct = calculate_variance(total_estimated, total_actual)
    over_budget = sum(1 for i in cost_items if i.status == "exceeded")
    pending = len(cost_items) - len(confirmed)
    return BudgetAnalysis(
        total_estimated=total_estimated,
        total_actual=total_actual,
        total_variance=total_variance,
        variance_pct=variance_pct,
        items_confirmed=len(confirmed),
        items_pending=pending,
        items_over_budget=over_budget,
        items_under_budget=sum(1 for i in cost_items if i.status == "under_budget"),
        all_confirmed=pending == 0 and len(cost_items) > 0,
        has_overruns=over_budget > 0,
    )


def budget_warning_level(estimated: Decimal, actual: Decimal) -> str:
    """Return 'safe' below 90% of budget, 'warning' up to 100%, else 'exceeded'."""
    estimated = to_decimal(estimated)
    actual = to_decimal(actual)
    if actual > estimated:
        return "exceeded"
    if actual >= estimated * AT_RISK_THRESHOLD:
        return "warning"
    return "safe"


def budget_usage_percent(estimated: Decimal, actual: Decimal) -> Decimal:
    estimated = to_decimal(estimated)
    if estimated == 0:
        return Decimal("0")
    return to_decimal(actual) / estimated * HUNDRED


def validate_positive_margin(total_revenue: Decimal, total_cost: Decimal) -> ValidationResult:
    total_revenue = to_decimal(total_revenue)
    total_cost = to_decimal(total_cost)
    if total_cost < total_revenue:
        return ValidationResult(valid=True)

    if total_revenue > 0:
        margin = f"{(total_revenue - total_cost) / total_revenue * HUNDRED:.2f}"
    else:
        margin = "0.00"
    return ValidationResult.from_errors(
        [
            f"Cannot submit: Estimated cost ({format_idr(total_cost)}) exceeds or equals "
            f"revenue ({format_idr(total_revenue)}). Current margin: {margin}%"
        ]
    )


def validate_date_order(etd: Optional[date], eta: Optional[date]) -> ValidationResult:
    if etd and eta and eta < etd:
        return ValidationResult.from_errors(["ETA must be on or after ETD"])
    return ValidationResult(valid=True)


def can_edit_cost_items(role: str, pjo_status: str, converted_to_jo: Optional[bool]) -> bool:
    return role in COST_EDITOR_ROLES and pjo_status == "approved" and not converted_to_jo


def can_transition_job_order(current: JobOrderStatus | str, target: JobOrderStatus | str) -> bool:
    return target in JOB_ORDER_TRANSITIONS.get(JobOrderStatus(current), ())


def _financial_snapshot(job: JobOrder) -> dict:
    return {name: getattr(job, name) for name in FINANCIAL_FIELDS}


class JobOrderService:
    """Service for managing job orders."""

    def __init__(self, db: Database):
        """Initialize job order service.

        Args:
            db: Database instance
        """
        self.db = db
        self.audit = AuditService(db)

    def get_or_create_customer(self, name: str) -> int:
        """Return the ID of a customer, creating it when new."""
        name = name.strip()
        if not name:
            raise ValidationError("Customer name is required")
        customer = self.db.get_customer_by_name(name)
        if customer is not None:
            return customer.id
        logger.info("Creating customer %s", name)
        return self.db.create_customer(name)

    def create_job_order(
        self,
        customer_name: str,
        order_date: date,
        project_name: Optional[str] = None,
        revenue: Decimal = Decimal("0"),
        direct_cost: Decimal = Decimal("0"),
        equipment_cost: Decimal = Decimal("0"),
        actor: Optional[Actor] = None,
    ) -> JobOrder:
        """Create a job order numbered within its order month.

        Args:
            customer_name: Customer name; created if unknown
            order_date: Order date, which also fixes the number's month
            project_name: Optional project name
            revenue: Final revenue
            direct_cost: Direct cost
            equipment_cost: Equipment cost

        Returns:
            The new job order

        Raises:
            ValidationError: If the customer name is blank or an amount is negative
        """
        for label, value in (
            ("Revenue", revenue),
            ("Direct cost", direct_cost),
            ("Equipment cost", equipment_cost),
        ):
            if to_decimal(value) < 0:
                raise ValidationError(f"{label} cannot be negative")

        customer_id = self.get_or_create_customer(customer_name)
        sequence = self.db.count_job_orders_for_month(order_date.year, order_date.month) + 1
        jo_number = generate_jo_number(sequence, order_date)

        job_id = self.db.create_job_order(
            jo_number=jo_number,
            customer_id=customer_id,
            order_date=order_date,
            project_name=project_name,
            revenue=to_decimal(revenue),
            direct_cost=to_decimal(direct_cost),
            equipment_cost=to_decimal(equipment_cost),
        )
        job = self.db.get_job_order(job_id)
        self.audit.log(
            "create",
            "job_orders",
            "job_order",
            entity_id=job.id,
            entity_reference=jo_number,
            new_values=_financial_snapshot(job),
            actor=actor,
        )
        logger.info("Created job order %s for %s", jo_number, customer_name)
        return job

    def get_job_order(self, jo_number: str) -> JobOrder:
        """Get a job order by number.

        Raises:
            NotFoundError: If the job order doesn't exist
        """
        job = self.db.get_job_order_by_number(jo_number)
        if job is None:
            raise NotFoundError(not_found("Job order", jo_number))
        return job

    def list_job_orders(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[JobOrder]:
        return self.db.list_job_orders(start_date=start_date, end_date=end_date, status=status)

    def update_financials(
        self,
        jo_number: str,
        revenue: Optional[Decimal] = None,
        direct_cost: Optional[Decimal] = None,
        equipment_cost: Optional[Decimal] = None,
        actor: Optional[Actor] = None,
    ) -> JobOrder:
        """Update the final financial figures of a job order.

        Only the given amounts change. The audit entry lists the fields
        whose values actually differ.

        Raises:
            NotFoundError: If the job order doesn't exist
            ValidationError: If an amount is negative or the job is closed
        """
        job = self.get_job_order(jo_number)
        if job.status in (JobOrderStatus.CLOSED, JobOrderStatus.CANCELLED):
            raise ValidationError(f"Job order {jo_number} is {job.status} and cannot be changed")

        updates = {}
        for name, value in (
            ("revenue", revenue),
            ("direct_cost", direct_cost),
            ("equipment_cost", equipment_cost),
        ):
            if value is None:
                continue
            value = to_decimal(value)
            if value < 0:
                raise ValidationError(f"{name.replace('_', ' ').capitalize()} cannot be negative")
            updates[name] = value

        if not updates:
            return job

        self.db.update_job_order(job.id, **updates)
        updated = self.db.get_job_order(job.id)
        self.audit.log(
            "update",
            "job_orders",
            "job_order",
            entity_id=job.id,
            entity_reference=jo_number,
            old_values=_financial_snapshot(job),
            new_values=_financial_snapshot(updated),
            actor=actor,
        )
        logger.info("Updated financials of %s: %s", jo_number, ", ".join(sorted(updates)))
        return updated

    def set_documents(
        self,
        jo_number: str,
        has_surat_jalan: Optional[bool] = None,
        has_berita_acara: Optional[bool] = None,
        actor: Optional[Actor] = None,
    ) -> JobOrder:
        """Record that delivery documents have been issued or signed."""
        job = self.get_job_order(jo_number)
        updates = {}
        if has_surat_jalan is not None:
            updates["has_surat_jalan"] = has_surat_jalan
        if has_berita_acara is not None:
            updates["has_berita_acara"] = has_berita_acara
        if not updates:
            return job

        self.db.update_job_order(job.id, **updates)
        self.audit.log(
            "update",
            "job_orders",
            "job_order",
            entity_id=job.id,
            entity_reference=jo_number,
            old_values={k: getattr(job, k) for k in updates},
            new_values=updates,
            actor=actor,
        )
        return self.db.get_job_order(job.id)

    def transition_status(
        self, jo_number: str, target: JobOrderStatus | str, actor: Optional[Actor] = None
    ) -> JobOrder:
        """Move a job order along its workflow.

        Raises:
            NotFoundError: If the job order doesn't exist
            InvalidTransitionError: If the workflow doesn't allow the move
        """
        job = self.get_job_order(jo_number)
        try:
            target = JobOrderStatus(target)
        except ValueError:
            raise ValidationError(f"Unknown job order status '{target}'")

        if not can_transition_job_order(job.status, target):
            logger.warning("Rejected %s transition %s -> %s", jo_number, job.status, target)
            raise InvalidTransitionError(
                invalid_transition("job order", job.status.value, target.value)
            )

        self.db.update_job_order(job.id, status=target.value)
        self.audit.log(
            "cancel" if target == JobOrderStatus.CANCELLED else "update",
            "job_orders",
            "job_order",
            entity_id=job.id,
            entity_reference=jo_number,
            old_values={"status": job.status},
            new_values={"status": target},
            actor=actor,
        )
        logger.info("Job order %s moved to %s", jo_number, target)
        return self.db.get_job_order(job.id)
