"""Overhead categories and their allocation to job orders."""

import logging
from decimal import Decimal
from typing import Iterable, Optional

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import (
    Actor,
    AllocationMethod,
    OverheadAllocation,
    OverheadCategory,
)
from freightdesk.domain.errors import ConflictError, NotFoundError, ValidationError, not_found
from freightdesk.utils.amount_parser import round_rupiah, to_decimal

logger = logging.getLogger(__name__)


def allocate_overhead(
    revenue: Decimal, categories: Iterable[OverheadCategory]
) -> list[OverheadAllocation]:
    """Apportion overhead to one job order.

    Revenue-percentage categories take ``revenue * rate / 100``; fixed
    categories take their fixed amount. Inactive categories and categories
    allocated by ``none`` produce no line. Amounts are whole rupiah.
    """
    revenue = to_decimal(revenue)
    allocations = []
    for category in categories:
        if not category.is_active:
            continue
        if category.allocation_method == AllocationMethod.REVENUE_PERCENTAGE:
            amount = revenue * to_decimal(category.rate) / Decimal("100")
        elif category.allocation_method == AllocationMethod.FIXED_PER_JOB:
            amount = to_decimal(category.fixed_amount)
        else:
            continue
        allocations.append(
            OverheadAllocation(
                category_code=category.code,
                category_name=category.name,
                allocation_method=category.allocation_method,
                rate=to_decimal(category.rate),
                amount=round_rupiah(amount),
            )
        )
    return allocations


def total_overhead(allocations: Iterable[OverheadAllocation]) -> Decimal:
    return sum((a.amount for a in allocations), Decimal("0"))


class OverheadService:
    """Service for managing overhead categories and job allocations."""

    def __init__(self, db: Database):
        """Initialize overhead service.

        Args:
            db: Database instance
        """
        self.db = db
        self.audit = AuditService(db)

    def create_category(
        self,
        code: str,
        name: str,
        allocation_method: AllocationMethod | str = AllocationMethod.REVENUE_PERCENTAGE,
        rate: Decimal = Decimal("0"),
        fixed_amount: Decimal = Decimal("0"),
    ) -> int:
        """Create an overhead category.

        Args:
            code: Short unique code (e.g. "ADM")
            name: Display name
            allocation_method: How the category is apportioned to jobs
            rate: Percentage of revenue, for revenue_percentage
            fixed_amount: Amount per job, for fixed_per_job

        Returns:
            Category ID

        Raises:
            ValidationError: If the rate or amount is out of range
            ConflictError: If the code is already used
        """
        try:
            method = AllocationMethod(allocation_method)
        except ValueError:
            raise ValidationError(f"Unknown allocation method '{allocation_method}'")

        rate = to_decimal(rate)
        fixed_amount = to_decimal(fixed_amount)
        if method == AllocationMethod.REVENUE_PERCENTAGE and not (0 <= rate <= 100):
            raise ValidationError("Overhead rate must be between 0 and 100")
        if method == AllocationMethod.FIXED_PER_JOB and fixed_amount < 0:
            raise ValidationError("Fixed overhead amount cannot be negative")

        if self.db.get_overhead_category_by_code(code) is not None:
            raise ConflictError(f"Overhead category '{code}' already exists")

        category_id = self.db.create_overhead_category(
            code=code,
            name=name,
            allocation_method=method.value,
            rate=rate,
            fixed_amount=fixed_amount,
        )
        logger.info("Created overhead category %s (%s)", code, method.value)
        return category_id

    def list_categories(self, active_only: bool = False) -> list[OverheadCategory]:
        return self.db.list_overhead_categories(active_only=active_only)

    def allocate_to_job(
        self, jo_number: str, actor: Optional[Actor] = None
    ) -> list[OverheadAllocation]:
        """Recompute a job order's overhead from the active categories.

        Previous allocations are replaced and the job order's overhead total
        is updated to their sum.

        Raises:
            NotFoundError: If the job order doesn't exist
        """
        job = self.db.get_job_order_by_number(jo_number)
        if job is None:
            raise NotFoundError(not_found("Job order", jo_number))

        allocations = allocate_overhead(
            job.revenue, self.db.list_overhead_categories(active_only=True)
        )
        total = total_overhead(allocations)
        self.db.replace_job_overhead_allocations(job.id, allocations)
        self.db.update_job_order(job.id, overhead_total=total)

        self.audit.log(
            "update",
            "job_orders",
            "job_order",
            entity_id=job.id,
            entity_reference=job.jo_number,
            old_values={"overhead_total": job.overhead_total},
            new_values={"overhead_total": total},
            actor=actor,
        )
        logger.info("Allocated overhead %s to %s", total, jo_number)
        return allocations

    def get_breakdown(self, jo_number: str) -> list[OverheadAllocation]:
        job = self.db.get_job_order_by_number(jo_number)
        if job is None:
            raise NotFoundError(not_found("Job order", jo_number))
        return self.db.list_job_overhead_allocations(job.id)
