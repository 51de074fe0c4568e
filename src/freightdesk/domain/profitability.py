"""Job profitability calculations and the profitability report."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from freightdesk.database.base import Database
from freightdesk.domain.entities import JobOrder, ValidationResult
from freightdesk.domain.errors import ValidationError
from freightdesk.utils.amount_parser import to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class JobProfitability:
    """Profit view of a single job order."""

    job_order_id: int
    jo_number: str
    customer_name: str
    order_date: date
    revenue: Decimal
    direct_cost: Decimal
    equipment_cost: Decimal
    overhead: Decimal
    net_profit: Decimal
    net_margin: Decimal


@dataclass(frozen=True)
class ProfitabilityFilters:
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_margin: Optional[Decimal] = None
    max_margin: Optional[Decimal] = None


@dataclass(frozen=True)
class ProfitabilitySummary:
    total_revenue: Decimal
    total_direct_cost: Decimal
    total_equipment_cost: Decimal
    total_overhead: Decimal
    total_net_profit: Decimal
    total_jobs: int
    average_margin: Decimal


@dataclass(frozen=True)
class ProfitabilityReport:
    jobs: list[JobProfitability]
    summary: ProfitabilitySummary


def calculate_net_profit(
    revenue: Decimal,
    direct_cost: Decimal,
    equipment_cost: Optional[Decimal] = None,
    overhead: Optional[Decimal] = None,
) -> Decimal:
    """Revenue less direct, equipment and overhead cost."""
    return (
        to_decimal(revenue)
        - to_decimal(direct_cost)
        - to_decimal(equipment_cost)
        - to_decimal(overhead)
    )


def calculate_net_margin(net_profit: Decimal, revenue: Decimal) -> Decimal:
    """Net profit as a percentage of revenue; 0 when revenue is 0."""
    revenue = to_decimal(revenue)
    if revenue == 0:
        return ZERO
    return to_decimal(net_profit) / revenue * Decimal("100")


def to_profitability(job: JobOrder, overhead: Optional[Decimal] = None) -> JobProfitability:
    """Build the profit view of a job order.

    Args:
        job: Job order
        overhead: Overhead to charge; defaults to the job's stored total

    Returns:
        JobProfitability with missing costs counted as zero
    """
    if overhead is None:
        overhead = job.overhead_total
    net_profit = calculate_net_profit(job.revenue, job.direct_cost, job.equipment_cost, overhead)
    return JobProfitability(
        job_order_id=job.id,
        jo_number=job.jo_number,
        customer_name=job.customer_name,
        order_date=job.order_date,
        revenue=to_decimal(job.revenue),
        direct_cost=to_decimal(job.direct_cost),
        equipment_cost=to_decimal(job.equipment_cost),
        overhead=to_decimal(overhead),
        net_profit=net_profit,
        net_margin=calculate_net_margin(net_profit, job.revenue),
    )


def filter_jobs_by_date_range(
    jobs: Iterable[JobProfitability],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list[JobProfitability]:
    """Keep jobs ordered within the range, both ends inclusive."""
    return [
        job
        for job in jobs
        if (date_from is None or job.order_date >= date_from)
        and (date_to is None or job.order_date <= date_to)
    ]


def filter_jobs_by_margin_range(
    jobs: Iterable[JobProfitability],
    min_margin: Optional[Decimal] = None,
    max_margin: Optional[Decimal] = None,
) -> list[JobProfitability]:
    """Keep jobs whose net margin is within the range, both ends inclusive."""
    return [
        job
        for job in jobs
        if (min_margin is None or job.net_margin >= to_decimal(min_margin))
        and (max_margin is None or job.net_margin <= to_decimal(max_margin))
    ]


def calculate_profitability_summary(jobs: Sequence[JobProfitability]) -> ProfitabilitySummary:
    def total(attr):
        return sum((getattr(job, attr) for job in jobs), ZERO)

    average_margin = total("net_margin") / len(jobs) if jobs else ZERO
    return ProfitabilitySummary(
        total_revenue=total("revenue"),
        total_direct_cost=total("direct_cost"),
        total_equipment_cost=total("equipment_cost"),
        total_overhead=total("overhead"),
        total_net_profit=total("net_profit"),
        total_jobs=len(jobs),
        average_margin=average_margin,
    )


def sort_jobs_by_margin(jobs: Iterable[JobProfitability]) -> list[JobProfitability]:
    """Return jobs ordered from highest to lowest margin."""
    return sorted(jobs, key=lambda job: job.net_margin, reverse=True)


def validate_profitability_filters(filters: ProfitabilityFilters) -> ValidationResult:
    errors = []
    if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
        errors.append("Start date must be on or before end date")
    if (
        filters.min_margin is not None
        and filters.max_margin is not None
        and to_decimal(filters.min_margin) > to_decimal(filters.max_margin)
    ):
        errors.append("Minimum margin must not exceed maximum margin")
    return ValidationResult.from_errors(errors)


class ProfitabilityService:
    """Service for building profitability reports over stored job orders."""

    def __init__(self, db: Database):
        self.db = db

    def build_report(self, filters: Optional[ProfitabilityFilters] = None) -> ProfitabilityReport:
        """Build a margin-sorted profitability report.

        Args:
            filters: Optional date and margin ranges

        Returns:
            Matching jobs, highest margin first, with their summary

        Raises:
            ValidationError: If a range has its bounds reversed
        """
        filters = filters or ProfitabilityFilters()
        result = validate_profitability_filters(filters)
        if not result.valid:
            raise ValidationError("; ".join(result.errors))

        jobs = [
            to_profitability(job)
            for job in self.db.list_job_orders(
                start_date=filters.date_from, end_date=filters.date_to
            )
            if job.status != "cancelled"
        ]
        jobs = filter_jobs_by_date_range(jobs, filters.date_from, filters.date_to)
        jobs = filter_jobs_by_margin_range(jobs, filters.min_margin, filters.max_margin)
        jobs = sort_jobs_by_margin(jobs)
        logger.debug("Profitability report over %d job orders", len(jobs))
        return ProfitabilityReport(jobs=jobs, summary=calculate_profitability_summary(jobs))
