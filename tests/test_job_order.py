"""Tests for job order rules and the job order service."""

from datetime import date
from decimal import Decimal

import pytest

from freightdesk.domain.entities import CostItem, JobOrderStatus, RevenueItem
from freightdesk.domain.errors import InvalidTransitionError, NotFoundError, ValidationError
from freightdesk.domain.job_order import (
    analyze_budget,
    budget_usage_percent,
    budget_warning_level,
    calculate_cost_status,
    calculate_cost_total,
    calculate_margin,
    calculate_revenue_total,
    can_edit_cost_items,
    can_transition_job_order,
    generate_jo_number,
    validate_date_order,
    validate_positive_margin,
)


def test_jo_number_uses_roman_month():
    assert generate_jo_number(7, date(2025, 3, 1)) == "JO-0007/CARGO/III/2025"
    assert generate_jo_number(12, date(2024, 12, 31)) == "JO-0012/CARGO/XII/2024"


def test_margin():
    assert calculate_margin(Decimal("1000"), Decimal("750")) == Decimal("25")
    assert calculate_margin(Decimal("0"), Decimal("100")) == Decimal("0")
    assert calculate_margin(Decimal("1000"), Decimal("1200")) == Decimal("-20")


def test_margin_on_negative_revenue_is_not_clamped():
    assert calculate_margin(Decimal("-1000"), Decimal("-1500")) == Decimal("-50")


def test_revenue_total_prefers_subtotal():
    items = [
        RevenueItem("Trucking", Decimal("2"), Decimal("1500000")),
        RevenueItem("Handling", Decimal("1"), Decimal("999"), subtotal=Decimal("500000")),
    ]
    assert calculate_revenue_total(items) == Decimal("3500000")


def test_revenue_total_falls_back_when_subtotal_is_zero():
    items = [RevenueItem("Trucking", Decimal("2"), Decimal("1500000"), subtotal=Decimal("0"))]
    assert calculate_revenue_total(items) == Decimal("3000000")


def test_cost_totals():
    items = [
        CostItem("trucking", "Truck", Decimal("1000"), Decimal("900")),
        CostItem("port", "THC", Decimal("500")),
    ]
    assert calculate_cost_total(items) == Decimal("1500")
    assert calculate_cost_total(items, "actual") == Decimal("900")


class TestCostStatus:
    @pytest.mark.parametrize(
        "actual,status",
        [("900", "confirmed"), ("950", "at_risk"), ("1000", "at_risk"), ("1001", "exceeded")],
    )
    def test_thresholds(self, actual, status):
        assert calculate_cost_status(Decimal("1000"), Decimal(actual)).status == status

    def test_variance(self):
        result = calculate_cost_status(Decimal("1000"), Decimal("1100"))
        assert result.variance == Decimal("100")
        assert result.variance_pct == Decimal("10")

    def test_zero_estimate(self):
        assert calculate_cost_status(Decimal("0"), Decimal("10")).variance_pct == Decimal("0")


def test_analyze_budget():
    items = [
        CostItem("trucking", "Truck", Decimal("1000"), Decimal("1200"), status="exceeded"),
        CostItem("port", "THC", Decimal("500"), Decimal("400"), status="under_budget"),
        CostItem("docs", "Permits", Decimal("100")),
    ]
    analysis = analyze_budget(items)
    assert analysis.total_estimated == Decimal("1600")
    assert analysis.total_actual == Decimal("1600")
    assert (analysis.items_confirmed, analysis.items_pending) == (2, 1)
    assert analysis.items_over_budget == 1
    assert analysis.items_under_budget == 1
    assert analysis.has_overruns
    assert not analysis.all_confirmed


def test_analyze_empty_budget():
    analysis = analyze_budget([])
    assert not analysis.all_confirmed
    assert analysis.variance_pct == Decimal("0")


def test_budget_warning():
    assert budget_warning_level(Decimal("100"), Decimal("89")) == "safe"
    assert budget_warning_level(Decimal("100"), Decimal("90")) == "warning"
    assert budget_warning_level(Decimal("100"), Decimal("101")) == "exceeded"
    assert budget_usage_percent(Decimal("0"), Decimal("5")) == Decimal("0")
    assert budget_usage_percent(Decimal("200"), Decimal("50")) == Decimal("25")


def test_positive_margin():
    assert validate_positive_margin(Decimal("1000"), Decimal("999")).valid
    result = validate_positive_margin(Decimal("1000000"), Decimal("1200000"))
    assert result.error == (
        "Cannot submit: Estimated cost (Rp 1.200.000) exceeds or equals "
        "revenue (Rp 1.000.000). Current margin: -20.00%"
    )
    assert "Current margin: 0.00%" in validate_positive_margin(Decimal("0"), Decimal("0")).error


def test_date_order():
    assert validate_date_order(date(2025, 1, 2), date(2025, 1, 2)).valid
    assert validate_date_order(None, date(2025, 1, 1)).valid
    assert validate_date_order(date(2025, 1, 2), date(2025, 1, 1)).error == "ETA must be on or after ETD"


def test_can_edit_cost_items():
    assert can_edit_cost_items("ops", "approved", False)
    assert can_edit_cost_items("admin", "approved", None)
    assert not can_edit_cost_items("finance", "approved", False)
    assert not can_edit_cost_items("ops", "draft", False)
    assert not can_edit_cost_items("ops", "approved", True)


def test_workflow():
    assert can_transition_job_order("active", "completed")
    assert can_transition_job_order("active", "cancelled")
    assert can_transition_job_order("invoiced", "closed")
    assert not can_transition_job_order("active", "invoiced")
    assert not can_transition_job_order("closed", "active")


class TestJobOrderService:
    def test_create_numbers_per_month(self, job_service, sample_job):
        assert sample_job.jo_number == "JO-0001/CARGO/III/2025"
        second = job_service.create_job_order("PT Maju Jaya", date(2025, 3, 20))
        other_month = job_service.create_job_order("PT Lain", date(2025, 4, 1))
        assert second.jo_number == "JO-0002/CARGO/III/2025"
        assert other_month.jo_number == "JO-0001/CARGO/IV/2025"
        assert second.customer_id == sample_job.customer_id

    def test_create_defaults(self, sample_job):
        assert sample_job.status == JobOrderStatus.ACTIVE
        assert sample_job.revenue == Decimal("10000000")
        assert sample_job.overhead_total == Decimal("0")

    def test_create_rejects_negative_amount(self, job_service):
        with pytest.raises(ValidationError, match="Direct cost cannot be negative"):
            job_service.create_job_order("PT A", date(2025, 1, 1), direct_cost=Decimal("-1"))

    def test_create_requires_customer(self, job_service):
        with pytest.raises(ValidationError, match="Customer name is required"):
            job_service.create_job_order("  ", date(2025, 1, 1))

    def test_get_unknown(self, job_service):
        with pytest.raises(NotFoundError, match="JO-9999/CARGO/I/2025 not found"):
            job_service.get_job_order("JO-9999/CARGO/I/2025")

    def test_list_filters(self, job_service, sample_job):
        job_service.create_job_order("PT B", date(2025, 5, 1))
        in_march = job_service.list_job_orders(start_date=date(2025, 3, 1), end_date=date(2025, 3, 31))
        assert [j.jo_number for j in in_march] == [sample_job.jo_number]
        assert job_service.list_job_orders(status="completed") == []

    def test_update_financials(self, job_service, audit_service, sample_job, finance_user):
        updated = job_service.update_financials(
            sample_job.jo_number, revenue=Decimal("12000000"), direct_cost=Decimal("6000000"), actor=finance_user
        )
        assert updated.revenue == Decimal("12000000")
        update = next(e for e in audit_service.entity_history("job_order", sample_job.id) if e.action == "update")
        assert update.changed_fields == ("revenue",)
        assert update.old_values["revenue"] == "10000000"
        assert update.user_role == "finance"

    def test_update_without_changes(self, job_service, sample_job):
        assert job_service.update_financials(sample_job.jo_number).revenue == sample_job.revenue

    def test_documents(self, job_service, sample_job):
        job = job_service.set_documents(sample_job.jo_number, has_surat_jalan=True)
        assert job.has_surat_jalan
        assert not job.has_berita_acara

    def test_workflow_to_closed(self, job_service, sample_job):
        for status in ("completed", "submitted_to_finance", "invoiced", "closed"):
            job = job_service.transition_status(sample_job.jo_number, status)
        assert job.status == JobOrderStatus.CLOSED
        with pytest.raises(ValidationError, match="cannot be changed"):
            job_service.update_financials(sample_job.jo_number, revenue=Decimal("1"))

    def test_invalid_transition(self, job_service, sample_job):
        with pytest.raises(InvalidTransitionError, match="from active to invoiced"):
            job_service.transition_status(sample_job.jo_number, "invoiced")

    def test_unknown_status(self, job_service, sample_job):
        with pytest.raises(ValidationError, match="Unknown job order status"):
            job_service.transition_status(sample_job.jo_number, "paused")

    def test_cancel_is_audited(self, job_service, audit_service, sample_job):
        job_service.transition_status(sample_job.jo_number, "cancelled")
        actions = sorted(e.action for e in audit_service.entity_history("job_order", sample_job.id))
        assert actions == ["cancel", "create"]
