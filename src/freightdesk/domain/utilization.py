"""Equipment utilization metrics and daily usage logging."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import (
    Actor,
    DailyLogStatus,
    EquipmentAsset,
    EquipmentDailyLog,
    ValidationResult,
)
from freightdesk.domain.errors import NotFoundError, ValidationError, not_found
from freightdesk.utils.amount_parser import round_rupiah, to_decimal

logger = logging.getLogger(__name__)

HUNDREDTHS = Decimal("0.01")
TENTHS = Decimal("0.1")
ASSET_STATUSES = ("active", "maintenance", "disposed")
DOWN_STATUSES = frozenset({DailyLogStatus.MAINTENANCE, DailyLogStatus.REPAIR})


@dataclass(frozen=True)
class UtilizationSummary:
    asset_code: str
    utilization_rate: Decimal
    maintenance_days: int = 0
    operating_days: int = 0
    total_days: int = 0
    total_km: Decimal = Decimal("0")
    total_hours: Decimal = Decimal("0")
    fuel_liters: Decimal = Decimal("0")
    fuel_efficiency: Optional[Decimal] = None
    category: str = "very_low"
    equipment_cost: Decimal = Decimal("0")


@dataclass(frozen=True)
class DashboardStats:
    average_utilization_rate: Decimal
    operating_count: int
    idle_count: int
    maintenance_count: int
    total_assets: int


def get_utilization_category(rate) -> str:
    rate = to_decimal(rate)
    if rate >= 75:
        return "high"
    if rate >= 50:
        return "normal"
    if rate >= 25:
        return "low"
    return "very_low"


def calculate_km_used(start_km=None, end_km=None) -> Optional[Decimal]:
    """Distance between odometer readings; None if a reading is missing or runs backwards."""
    if start_km is None or end_km is None:
        return None
    start_km, end_km = to_decimal(start_km), to_decimal(end_km)
    if end_km < start_km:
        return None
    return end_km - start_km


def calculate_hours_used(start_hours=None, end_hours=None) -> Optional[Decimal]:
    if start_hours is None or end_hours is None:
        return None
    start_hours, end_hours = to_decimal(start_hours), to_decimal(end_hours)
    if end_hours < start_hours:
        return None
    return (end_hours - start_hours).quantize(HUNDREDTHS, rounding=ROUND_HALF_UP)


def calculate_fuel_efficiency(total_km, total_fuel_liters) -> Optional[Decimal]:
    """Kilometres per litre to two decimals, or None without distance or fuel."""
    total_km, total_fuel_liters = to_decimal(total_km), to_decimal(total_fuel_liters)
    if total_fuel_liters <= 0 or total_km <= 0:
        return None
    return (total_km / total_fuel_liters).quantize(HUNDREDTHS, rounding=ROUND_HALF_UP)


def calculate_utilization_rate(operating_days, total_days) -> Decimal:
    """Operating days as a percentage of logged days, one decimal."""
    total_days = to_decimal(total_days)
    if total_days <= 0:
        return Decimal("0")
    rate = to_decimal(operating_days) / total_days * Decimal("100")
    return rate.quantize(TENTHS, rounding=ROUND_HALF_UP)


def derive_availability_status(asset_status: str, has_open_assignment: bool) -> str:
    if asset_status != "active":
        return "unavailable"
    if has_open_assignment:
        return "assigned"
    return "available"


def validate_assignment(asset_status: str, has_open_assignment: bool) -> ValidationResult:
    if asset_status != "active":
        return ValidationResult.from_errors(["Asset is not active and cannot be assigned"])
    if has_open_assignment:
        return ValidationResult.from_errors(["Asset already has an open assignment"])
    return ValidationResult(valid=True)


def validate_meter_readings(
    start_km=None, end_km=None, start_hours=None, end_hours=None
) -> ValidationResult:
    if start_km is not None and end_km is not None and to_decimal(end_km) < to_decimal(start_km):
        return ValidationResult.from_errors(["End odometer cannot be less than start odometer"])
    if (
        start_hours is not None
        and end_hours is not None
        and to_decimal(end_hours) < to_decimal(start_hours)
    ):
        return ValidationResult.from_errors(
            ["End hour meter cannot be less than start hour meter"]
        )
    return ValidationResult(valid=True)


def calculate_dashboard_stats(summaries: Sequence[UtilizationSummary]) -> DashboardStats:
    if not summaries:
        return DashboardStats(Decimal("0"), 0, 0, 0, 0)
    total_rate = sum((to_decimal(s.utilization_rate) for s in summaries), Decimal("0"))
    return DashboardStats(
        average_utilization_rate=(total_rate / len(summaries)).quantize(
            TENTHS, rounding=ROUND_HALF_UP
        ),
        operating_count=sum(1 for s in summaries if s.utilization_rate >= 50),
        idle_count=sum(1 for s in summaries if s.utilization_rate < 25),
        maintenance_count=sum(1 for s in summaries if s.maintenance_days > 0),
        total_assets=len(summaries),
    )


def calculate_equipment_cost(daily_rate, days) -> Decimal:
    """Rental cost of equipment for a number of days, whole rupiah."""
    days = to_decimal(days)
    if days <= 0:
        return Decimal("0")
    return round_rupiah(to_decimal(daily_rate) * days)


def summarize_daily_logs(
    asset: EquipmentAsset, logs: Iterable[EquipmentDailyLog]
) -> UtilizationSummary:
    """Roll an asset's daily logs up into its utilization figures.

    Every logged day counts towards the total; maintenance and repair
    days both count as maintenance. The cost charges the daily rate for
    operating days only.
    """
    logs = list(logs)
    operating_days = sum(1 for log in logs if log.status == DailyLogStatus.OPERATING)
    total_km = sum(
        (calculate_km_used(log.start_km, log.end_km) or Decimal("0") for log in logs), Decimal("0")
    )
    total_hours = sum(
        (calculate_hours_used(log.start_hours, log.end_hours) or Decimal("0") for log in logs),
        Decimal("0"),
    )
    fuel = sum((to_decimal(log.fuel_liters) for log in logs), Decimal("0"))
    rate = calculate_utilization_rate(operating_days, len(logs))
    return UtilizationSummary(
        asset_code=asset.asset_code,
        utilization_rate=rate,
        maintenance_days=sum(1 for log in logs if log.status in DOWN_STATUSES),
        operating_days=operating_days,
        total_days=len(logs),
        total_km=total_km,
        total_hours=total_hours,
        fuel_liters=fuel,
        fuel_efficiency=calculate_fuel_efficiency(total_km, fuel),
        category=get_utilization_category(rate),
        equipment_cost=calculate_equipment_cost(asset.daily_rate, operating_days),
    )


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.valid:
        raise ValidationError("; ".join(result.errors))


class UtilizationService:
    """Service for equipment assets and their daily usage logs."""

    def __init__(self, db: Database):
        self.db = db
        self.audit = AuditService(db)

    def get_asset(self, asset_code: str) -> EquipmentAsset:
        asset = self.db.get_equipment_asset_by_code(asset_code.strip().upper())
        if asset is None:
            raise NotFoundError(not_found("Equipment", asset_code))
        return asset

    def list_assets(self) -> list[EquipmentAsset]:
        return self.db.list_equipment_assets()

    def register_asset(
        self,
        asset_code: str,
        name: str,
        daily_rate: Decimal = Decimal("0"),
        actor: Optional[Actor] = None,
    ) -> EquipmentAsset:
        """Register an active asset.

        Raises:
            ValidationError: If the code or name is blank or the rate is negative
            ConflictError: If the code is taken
        """
        if not asset_code or not asset_code.strip():
            raise ValidationError("Asset code is required")
        if not name or not name.strip():
            raise ValidationError("Asset name is required")
        daily_rate = to_decimal(daily_rate)
        if daily_rate < 0:
            raise ValidationError("Daily rate cannot be negative")

        code = asset_code.strip().upper()
        asset_id = self.db.create_equipment_asset(code, name.strip(), daily_rate)
        self.audit.log(
            "create",
            "equipment",
            "equipment_asset",
            entity_id=asset_id,
            entity_reference=code,
            new_values={"name": name.strip(), "daily_rate": daily_rate},
            actor=actor,
        )
        logger.info("Registered equipment %s", code)
        return self.get_asset(code)

    def set_status(self, asset_code: str, status: str, actor: Optional[Actor] = None) -> EquipmentAsset:
        if status not in ASSET_STATUSES:
            raise ValidationError(f"Asset status must be one of: {', '.join(ASSET_STATUSES)}")
        asset = self.get_asset(asset_code)
        if asset.status == status:
            return asset

        self.db.update_equipment_asset(asset.id, status=status)
        self.audit.log(
            "update",
            "equipment",
            "equipment_asset",
            entity_id=asset.id,
            entity_reference=asset.asset_code,
            old_values={"status": asset.status},
            new_values={"status": status},
            actor=actor,
        )
        return self.get_asset(asset_code)

    def availability(self, asset_code: str, on_date: Optional[date] = None) -> str:
        """available, assigned (operating on a job that day) or unavailable."""
        asset = self.get_asset(asset_code)
        on_date = on_date or date.today()
        logs = self.db.list_equipment_daily_logs(asset.id, on_date, on_date)
        return derive_availability_status(asset.status, self._has_assignment(logs))

    def log_day(
        self,
        asset_code: str,
        log_date: date,
        status: DailyLogStatus | str,
        start_km=None,
        end_km=None,
        start_hours=None,
        end_hours=None,
        fuel_liters=None,
        jo_number: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> EquipmentDailyLog:
        """Record one day of an asset's use.

        A day worked on a job order is an assignment, which needs an
        active asset.

        Raises:
            ValidationError: On an unknown status, meters running backwards
                or negative fuel
            NotFoundError: If the asset or job order doesn't exist
            ConflictError: If the day is already logged
        """
        try:
            status = DailyLogStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown daily log status '{status}'")
        _raise_if_invalid(validate_meter_readings(start_km, end_km, start_hours, end_hours))
        if fuel_liters is not None and to_decimal(fuel_liters) < 0:
            raise ValidationError("Fuel cannot be negative")
        asset = self.get_asset(asset_code)

        job_order_id = None
        if jo_number:
            job = self.db.get_job_order_by_number(jo_number)
            if job is None:
                raise NotFoundError(not_found("Job order", jo_number))
            job_order_id = job.id
            existing = self.db.list_equipment_daily_logs(asset.id, log_date, log_date)
            _raise_if_invalid(validate_assignment(asset.status, self._has_assignment(existing)))

        def optional(value):
            return None if value is None else to_decimal(value)

        log_id = self.db.create_equipment_daily_log(
            asset_id=asset.id,
            log_date=log_date,
            status=status.value,
            start_km=optional(start_km),
            end_km=optional(end_km),
            start_hours=optional(start_hours),
            end_hours=optional(end_hours),
            fuel_liters=optional(fuel_liters),
            job_order_id=job_order_id,
        )
        self.audit.log(
            "create",
            "equipment",
            "equipment_daily_log",
            entity_id=log_id,
            entity_reference=f"{asset.asset_code} {log_date.isoformat()}",
            new_values={"status": status, "job_order": jo_number},
            actor=actor,
        )
        return next(
            log
            for log in self.db.list_equipment_daily_logs(asset.id, log_date, log_date)
            if log.id == log_id
        )

    def summarize(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> tuple[list[UtilizationSummary], DashboardStats]:
        """Per-asset utilization over a period with fleet-wide stats.

        Disposed assets are left out.
        """
        summaries = [
            summarize_daily_logs(
                asset, self.db.list_equipment_daily_logs(asset.id, start_date, end_date)
            )
            for asset in self.db.list_equipment_assets()
            if asset.status != "disposed"
        ]
        return summaries, calculate_dashboard_stats(summaries)

    @staticmethod
    def _has_assignment(logs: Iterable[EquipmentDailyLog]) -> bool:
        return any(
            log.job_order_id is not None and log.status == DailyLogStatus.OPERATING for log in logs
        )
