"""Tests for the vendor register."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from freightdesk.domain.entities import Vendor, VendorRating, VendorType
from freightdesk.domain.errors import NotFoundError, ValidationError
from freightdesk.domain.vendor import (
    calculate_average_rating,
    calculate_on_time_rate,
    calculate_vendor_summary_stats,
    filter_vendors_by_search,
    generate_vendor_code,
    get_document_expiry_status,
    get_document_type_label,
    get_vendor_type_label,
    is_document_expired,
    is_document_expiring_soon,
    is_valid_rating,
    is_valid_vendor_code,
    map_cost_category_to_vendor_type,
    sort_vendors_for_dropdown,
    validate_vendor_input,
)


def _vendor(vendor_id, name, preferred=False, active=True, verified=False):
    return Vendor(
        id=vendor_id,
        vendor_code=generate_vendor_code(vendor_id - 1),
        vendor_name=name,
        vendor_type=VendorType.TRUCKING,
        contact_person=None,
        phone=None,
        email=None,
        is_active=active,
        is_preferred=preferred,
        is_verified=verified,
        created_at=datetime(2025, 1, 1),
    )


def _rating(value, on_time=None):
    return VendorRating(
        id=1,
        vendor_id=1,
        overall_rating=value,
        was_on_time=on_time,
        had_issues=False,
        job_order_id=None,
        comments=None,
        created_at=datetime(2025, 1, 1),
    )


class TestCodes:
    def test_generate(self):
        assert generate_vendor_code(0) == "VND-001"
        assert generate_vendor_code(41) == "VND-042"
        assert generate_vendor_code(999) == "VND-1000"

    def test_is_valid(self):
        assert is_valid_vendor_code("VND-001")
        assert is_valid_vendor_code("VND-1234")
        assert not is_valid_vendor_code("VND-01")
        assert not is_valid_vendor_code("vnd-001")
        assert not is_valid_vendor_code("")


class TestRatings:
    @pytest.mark.parametrize("value", [1, 3, 5, 4.0, Decimal("2")])
    def test_valid_ratings(self, value):
        assert is_valid_rating(value)

    @pytest.mark.parametrize(
        "value", [0, 6, 3.5, True, "4", None, Decimal("NaN"), float("inf"), Decimal("2.5")]
    )
    def test_invalid_ratings(self, value):
        assert not is_valid_rating(value)

    def test_average_and_on_time(self):
        ratings = [_rating(5, True), _rating(4, False), _rating(4, True)]
        assert calculate_average_rating(ratings) == Decimal("4.33")
        assert calculate_on_time_rate(ratings) == Decimal("66.67")

    def test_no_ratings(self):
        assert calculate_average_rating([]) is None
        assert calculate_on_time_rate([]) is None


class TestDocuments:
    today = date(2025, 6, 1)

    def test_expired(self):
        assert is_document_expired(date(2025, 5, 31), self.today)
        assert not is_document_expired(date(2025, 6, 1), self.today)
        assert not is_document_expired(None, self.today)

    def test_expiring_soon(self):
        assert is_document_expiring_soon(date(2025, 6, 1), self.today)
        assert is_document_expiring_soon(date(2025, 7, 1), self.today)
        assert not is_document_expiring_soon(date(2025, 7, 2), self.today)
        assert not is_document_expiring_soon(date(2025, 5, 31), self.today)

    def test_status(self):
        assert get_document_expiry_status(date(2025, 1, 1), self.today) == "expired"
        assert get_document_expiry_status(date(2025, 6, 15), self.today) == "expiring_soon"
        assert get_document_expiry_status(date(2026, 1, 1), self.today) == "valid"
        assert get_document_expiry_status(None, self.today) == "valid"


class TestHelpers:
    def test_summary_stats(self):
        stats = calculate_vendor_summary_stats(
            [_vendor(1, "A", preferred=True, verified=True), _vendor(2, "B", active=False), _vendor(3, "C")]
        )
        assert (stats.total, stats.active, stats.preferred, stats.pending_verification) == (3, 2, 1, 2)

    def test_dropdown_order(self):
        vendors = [_vendor(1, "Unrated"), _vendor(2, "Good"), _vendor(3, "Preferred", preferred=True), _vendor(4, "Best")]
        ratings = {1: None, 2: Decimal("3.5"), 3: Decimal("2"), 4: Decimal("4.8")}
        ordered = sort_vendors_for_dropdown(vendors, ratings)
        assert [v.vendor_name for v in ordered] == ["Preferred", "Best", "Good", "Unrated"]

    def test_search(self):
        vendors = [_vendor(1, "PT Truk Andal"), _vendor(2, "CV Kapal Laut")]
        assert [v.id for v in filter_vendors_by_search(vendors, "truk")] == [1]
        assert [v.id for v in filter_vendors_by_search(vendors, "vnd-002")] == [2]
        assert len(filter_vendors_by_search(vendors, "  ")) == 2

    def test_labels_and_mapping(self):
        assert get_vendor_type_label("shipping") == "Shipping Line"
        assert get_vendor_type_label("unknown") == "unknown"
        assert get_document_type_label("npwp") == "NPWP"
        assert map_cost_category_to_vendor_type("port_charges") == VendorType.PORT
        assert map_cost_category_to_vendor_type("customs") == VendorType.DOCUMENTATION
        assert map_cost_category_to_vendor_type("catering") is None

    def test_validate_input(self):
        assert validate_vendor_input("PT A", "trucking", "ops@a.co.id").valid
        result = validate_vendor_input(" ", "airline", "not-an-email")
        assert result.errors == ("Vendor name is required", "Invalid vendor type", "Invalid email")


class TestVendorService:
    def test_register(self, vendor_service, admin):
        vendor = vendor_service.register("PT Truk Andal", "trucking", email="ops@trukandal.co.id", actor=admin)
        assert vendor.vendor_code == "VND-001"
        assert vendor.is_active and not vendor.is_verified
        assert vendor_service.register("CV Kapal", "shipping", actor=admin).vendor_code == "VND-002"

    def test_register_invalid(self, vendor_service):
        with pytest.raises(ValidationError, match="Invalid email"):
            vendor_service.register("PT A", "trucking", email="nope")

    def test_get_vendor_ignores_case(self, vendor_service, admin):
        vendor_service.register("PT A", "port", actor=admin)
        assert vendor_service.get_vendor("vnd-001").vendor_name == "PT A"
        with pytest.raises(NotFoundError):
            vendor_service.get_vendor("VND-999")

    def test_flags(self, vendor_service, audit_service, admin):
        vendor = vendor_service.register("PT A", "port", actor=admin)
        vendor = vendor_service.update_flags(vendor.vendor_code, actor=admin, is_verified=True)
        assert vendor.is_verified
        vendor = vendor_service.update_flags(vendor.vendor_code, actor=admin, is_active=False)
        assert not vendor.is_active
        actions = sorted(e.action for e in audit_service.entity_history("vendor", vendor.id))
        assert actions == ["approve", "create", "update"]

    def test_unknown_flag(self, vendor_service, admin):
        vendor = vendor_service.register("PT A", "port", actor=admin)
        with pytest.raises(ValidationError, match="Unknown vendor flag"):
            vendor_service.update_flags(vendor.vendor_code, is_blacklisted=True)

    def test_list_and_dropdown(self, vendor_service, admin):
        a = vendor_service.register("PT Alpha", "trucking", actor=admin)
        b = vendor_service.register("PT Beta", "trucking", actor=admin)
        vendor_service.register("PT Gamma", "shipping", is_preferred=True, actor=admin)
        vendor_service.update_flags(a.vendor_code, is_active=False)
        vendor_service.rate(b.vendor_code, 4)

        assert [v.vendor_name for v in vendor_service.list_vendors(vendor_type="trucking")] == ["PT Alpha", "PT Beta"]
        assert [v.vendor_name for v in vendor_service.list_vendors(active_only=True)] == ["PT Beta", "PT Gamma"]
        assert [v.vendor_name for v in vendor_service.dropdown()] == ["PT Gamma", "PT Beta"]
        assert vendor_service.summary_stats().active == 2

    def test_rate(self, vendor_service, sample_job, admin):
        vendor = vendor_service.register("PT A", "trucking", actor=admin)
        rating = vendor_service.rate(vendor.vendor_code, 5, was_on_time=True, jo_number=sample_job.jo_number)
        assert rating.overall_rating == 5
        assert rating.job_order_id == sample_job.id

    @pytest.mark.parametrize("value", [0, 6, 4.5])
    def test_rate_out_of_range(self, vendor_service, admin, value):
        vendor = vendor_service.register("PT A", "trucking", actor=admin)
        with pytest.raises(ValidationError, match="whole number from 1 to 5"):
            vendor_service.rate(vendor.vendor_code, value)

    def test_document_alerts(self, vendor_service, admin):
        a = vendor_service.register("PT A", "trucking", actor=admin)
        b = vendor_service.register("PT B", "trucking", actor=admin)
        vendor_service.add_document(a.vendor_code, "insurance", expiry_date=date(2025, 6, 20))
        vendor_service.add_document(a.vendor_code, "npwp")
        vendor_service.add_document(b.vendor_code, "siup", expiry_date=date(2025, 5, 1))
        vendor_service.add_document(b.vendor_code, "contract", expiry_date=date(2026, 1, 1))

        alerts = vendor_service.document_alerts(date(2025, 6, 1))
        assert [(a.vendor_code, a.expiry_status) for a in alerts] == [
            ("VND-002", "expired"),
            ("VND-001", "expiring_soon"),
        ]

        vendor_service.update_flags(b.vendor_code, is_active=False)
        assert [a.vendor_code for a in vendor_service.document_alerts(date(2025, 6, 1))] == ["VND-001"]

    def test_unknown_document_type(self, vendor_service, admin):
        vendor = vendor_service.register("PT A", "trucking", actor=admin)
        with pytest.raises(ValidationError, match="Unknown document type"):
            vendor_service.add_document(vendor.vendor_code, "passport")

    def test_performance_from_settled_bkks(self, vendor_service, bkk_service, sample_job, admin):
        vendor = vendor_service.register("PT Truk Andal", "trucking", actor=admin)
        vendor_service.rate(vendor.vendor_code, 4, was_on_time=True)
        vendor_service.rate(vendor.vendor_code, 3, was_on_time=False)

        bkk = bkk_service.request(
            sample_job.jo_number, "Trucking", Decimal("2000000"), actor=admin, vendor_code="vnd-001"
        )
        assert bkk.vendor_id == vendor.id
        bkk_service.approve(bkk.id, actor=admin)
        bkk_service.release(bkk.id, "transfer", actor=admin)
        bkk_service.settle(bkk.id, Decimal("1800000"), actor=admin)
        bkk_service.request(sample_job.jo_number, "More trucking", Decimal("500000"), actor=admin, vendor_code="VND-001")

        performance = vendor_service.get_performance(vendor.vendor_code)
        assert performance.rating_count == 2
        assert performance.average_rating == Decimal("3.50")
        assert performance.on_time_rate == Decimal("50.00")
        assert (performance.total_jobs, performance.total_value) == (1, Decimal("1800000"))

    def test_bkk_for_unknown_vendor(self, bkk_service, sample_job, admin):
        with pytest.raises(NotFoundError, match="Vendor VND-404 not found"):
            bkk_service.request(sample_job.jo_number, "Fuel", Decimal("100"), actor=admin, vendor_code="VND-404")
