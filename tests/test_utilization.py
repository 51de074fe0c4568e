"""Tests for equipment utilization metrics."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from freightdesk.domain.entities import DailyLogStatus, EquipmentAsset, EquipmentDailyLog
from freightdesk.domain.errors import ConflictError, NotFoundError, ValidationError
from freightdesk.domain.utilization import (
    UtilizationSummary,
    calculate_dashboard_stats,
    calculate_equipment_cost,
    calculate_fuel_efficiency,
    calculate_hours_used,
    calculate_km_used,
    calculate_utilization_rate,
    derive_availability_status,
    get_utilization_category,
    summarize_daily_logs,
    validate_assignment,
    validate_meter_readings,
)


@pytest.mark.parametrize(
    "rate,category",
    [(90, "high"), (75, "high"), ("74.9", "normal"), (50, "normal"), (25, "low"), (0, "very_low")],
)
def test_utilization_category(rate, category):
    assert get_utilization_category(rate) == category


def test_meter_differences():
    assert calculate_km_used(1000, 1250) == Decimal("250")
    assert calculate_km_used(None, 1250) is None
    assert calculate_km_used(1250, 1000) is None
    assert calculate_hours_used("10.5", "12.755") == Decimal("2.26")
    assert calculate_hours_used(5, 4) is None


def test_fuel_efficiency():
    assert calculate_fuel_efficiency(500, 60) == Decimal("8.33")
    assert calculate_fuel_efficiency(500, 0) is None
    assert calculate_fuel_efficiency(0, 60) is None


def test_utilization_rate():
    assert calculate_utilization_rate(20, 30) == Decimal("66.7")
    assert calculate_utilization_rate(5, 0) == Decimal("0")


def test_availability():
    assert derive_availability_status("active", False) == "available"
    assert derive_availability_status("active", True) == "assigned"
    assert derive_availability_status("maintenance", False) == "unavailable"


def test_validate_assignment():
    assert validate_assignment("active", False).valid
    assert validate_assignment("disposed", False).error == "Asset is not active and cannot be assigned"
    assert validate_assignment("active", True).error == "Asset already has an open assignment"


def test_validate_meter_readings():
    assert validate_meter_readings(100, 200, 1, 2).valid
    assert validate_meter_readings(start_km=200, end_km=100).error == (
        "End odometer cannot be less than start odometer"
    )
    assert validate_meter_readings(start_hours=3, end_hours=2).error == (
        "End hour meter cannot be less than start hour meter"
    )


def test_dashboard_stats():
    stats = calculate_dashboard_stats(
        [
            UtilizationSummary("TRK-01", Decimal("80")),
            UtilizationSummary("TRK-02", Decimal("10"), maintenance_days=3),
            UtilizationSummary("CRN-01", Decimal("55")),
        ]
    )
    assert stats.average_utilization_rate == Decimal("48.3")
    assert (stats.operating_count, stats.idle_count, stats.maintenance_count) == (2, 1, 1)
    assert stats.total_assets == 3


def test_dashboard_stats_empty():
    assert calculate_dashboard_stats([]).total_assets == 0


def test_equipment_cost():
    assert calculate_equipment_cost(Decimal("1250000"), 3) == Decimal("3750000")
    assert calculate_equipment_cost(Decimal("333333.5"), 1) == Decimal("333334")
    assert calculate_equipment_cost(Decimal("1000"), 0) == Decimal("0")


def _log(day, status, start_km=None, end_km=None, fuel=None):
    return EquipmentDailyLog(
        id=day,
        asset_id=1,
        log_date=date(2025, 3, day),
        status=DailyLogStatus(status),
        start_km=start_km,
        end_km=end_km,
        fuel_liters=fuel,
    )


def test_summarize_daily_logs():
    asset = EquipmentAsset(1, "TRK-01", "Prime mover", "active", Decimal("1000000"), datetime(2025, 1, 1))
    logs = [
        _log(1, "operating", Decimal("100"), Decimal("350"), Decimal("30")),
        _log(2, "operating", Decimal("350"), Decimal("600"), Decimal("30")),
        _log(3, "idle"),
        _log(4, "maintenance"),
        _log(5, "repair"),
    ]
    summary = summarize_daily_logs(asset, logs)
    assert (summary.total_days, summary.operating_days, summary.maintenance_days) == (5, 2, 2)
    assert summary.utilization_rate == Decimal("40.0")
    assert summary.category == "low"
    assert summary.total_km == Decimal("500")
    assert summary.fuel_efficiency == Decimal("8.33")
    assert summary.equipment_cost == Decimal("2000000")


def test_summarize_without_logs():
    asset = EquipmentAsset(1, "TRK-01", "Prime mover", "active", Decimal("1000000"), datetime(2025, 1, 1))
    summary = summarize_daily_logs(asset, [])
    assert summary.utilization_rate == Decimal("0")
    assert summary.fuel_efficiency is None
    assert summary.equipment_cost == Decimal("0")


class TestUtilizationService:
    def test_register_asset(self, utilization_service, audit_service, admin):
        asset = utilization_service.register_asset("trk-01", "Hino 500", Decimal("1250000"), actor=admin)
        assert asset.asset_code == "TRK-01"
        assert asset.status == "active"
        assert [e.module for e in audit_service.entity_history("equipment_asset", asset.id)] == ["equipment"]
        with pytest.raises(ConflictError):
            utilization_service.register_asset("TRK-01", "Another")

    def test_register_invalid(self, utilization_service):
        with pytest.raises(ValidationError, match="Daily rate cannot be negative"):
            utilization_service.register_asset("TRK-01", "Hino", Decimal("-1"))
        with pytest.raises(ValidationError, match="Asset name is required"):
            utilization_service.register_asset("TRK-01", " ")

    def test_log_day(self, utilization_service, sample_job, admin):
        utilization_service.register_asset("TRK-01", "Hino 500", actor=admin)
        log = utilization_service.log_day(
            "TRK-01", date(2025, 3, 14), "operating", start_km=100, end_km=350, fuel_liters=30,
            jo_number=sample_job.jo_number, actor=admin,
        )
        assert log.status == DailyLogStatus.OPERATING
        assert log.end_km == Decimal("350")
        assert log.job_order_id == sample_job.id
        assert utilization_service.availability("TRK-01", date(2025, 3, 14)) == "assigned"
        assert utilization_service.availability("TRK-01", date(2025, 3, 15)) == "available"

    def test_log_day_twice(self, utilization_service, admin):
        utilization_service.register_asset("TRK-01", "Hino 500", actor=admin)
        utilization_service.log_day("TRK-01", date(2025, 3, 14), "idle")
        with pytest.raises(ConflictError):
            utilization_service.log_day("TRK-01", date(2025, 3, 14), "operating")

    def test_log_day_checks(self, utilization_service, admin):
        utilization_service.register_asset("TRK-01", "Hino 500", actor=admin)
        with pytest.raises(ValidationError, match="Unknown daily log status"):
            utilization_service.log_day("TRK-01", date(2025, 3, 14), "parked")
        with pytest.raises(ValidationError, match="End odometer"):
            utilization_service.log_day("TRK-01", date(2025, 3, 14), "operating", start_km=200, end_km=100)
        with pytest.raises(ValidationError, match="Fuel cannot be negative"):
            utilization_service.log_day("TRK-01", date(2025, 3, 14), "operating", fuel_liters=-5)
        with pytest.raises(NotFoundError):
            utilization_service.log_day("CRN-09", date(2025, 3, 14), "idle")

    def test_inactive_asset_cannot_work_a_job(self, utilization_service, sample_job, admin):
        utilization_service.register_asset("TRK-01", "Hino 500", actor=admin)
        utilization_service.set_status("TRK-01", "maintenance", actor=admin)
        assert utilization_service.availability("TRK-01") == "unavailable"
        with pytest.raises(ValidationError, match="not active"):
            utilization_service.log_day(
                "TRK-01", date(2025, 3, 14), "operating", jo_number=sample_job.jo_number
            )
        utilization_service.log_day("TRK-01", date(2025, 3, 14), "maintenance")

    def test_set_status_unknown(self, utilization_service, admin):
        utilization_service.register_asset("TRK-01", "Hino 500", actor=admin)
        with pytest.raises(ValidationError, match="Asset status must be one of"):
            utilization_service.set_status("TRK-01", "sold")

    def test_summarize(self, utilization_service, admin):
        utilization_service.register_asset("TRK-01", "Hino 500", Decimal("1000000"), actor=admin)
        utilization_service.register_asset("TRK-02", "Fuso", Decimal("800000"), actor=admin)
        utilization_service.register_asset("TRK-03", "Old truck", actor=admin)
        utilization_service.set_status("TRK-03", "disposed", actor=admin)
        for day in range(1, 5):
            utilization_service.log_day("TRK-01", date(2025, 3, day), "operating")
        utilization_service.log_day("TRK-02", date(2025, 3, 1), "operating")
        utilization_service.log_day("TRK-02", date(2025, 3, 2), "repair")
        utilization_service.log_day("TRK-02", date(2025, 3, 3), "idle")
        utilization_service.log_day("TRK-02", date(2025, 3, 4), "idle")
        utilization_service.log_day("TRK-01", date(2025, 4, 1), "idle")

        summaries, stats = utilization_service.summarize(date(2025, 3, 1), date(2025, 3, 31))
        assert [s.asset_code for s in summaries] == ["TRK-01", "TRK-02"]
        assert [s.utilization_rate for s in summaries] == [Decimal("100.0"), Decimal("25.0")]
        assert summaries[0].equipment_cost == Decimal("4000000")
        assert summaries[1].maintenance_days == 1
        assert stats.average_utilization_rate == Decimal("62.5")
        assert (stats.operating_count, stats.idle_count, stats.maintenance_count) == (1, 0, 1)
