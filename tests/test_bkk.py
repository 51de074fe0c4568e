"""Tests for cash disbursement vouchers (BKK)."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from freightdesk.domain.bkk import (
    calculate_available_budget,
    calculate_bkk_summary,
    calculate_settlement_difference,
    generate_bkk_number,
    get_available_actions,
    is_valid_bkk_number,
    is_valid_status_transition,
    parse_bkk_number,
    validate_create_bkk_input,
    validate_reject_bkk_input,
    validate_release_bkk_input,
    validate_settle_bkk_input,
)
from freightdesk.domain.entities import Actor, Bkk, BkkStatus
from freightdesk.domain.errors import InvalidTransitionError, NotFoundError, ValidationError


def _bkk(status, amount, spent=None):
    return Bkk(
        id=1,
        bkk_number="BKK-2025-0001",
        job_order_id=1,
        purpose="Fuel",
        amount_requested=Decimal(amount),
        budget_amount=Decimal("0"),
        status=BkkStatus(status),
        requested_by="ops@example.com",
        release_method=None,
        amount_spent=Decimal(spent) if spent is not None else None,
        amount_returned=None,
        rejection_reason=None,
        created_at=datetime(2025, 1, 1),
    )


class TestNumbering:
    def test_generate(self):
        assert generate_bkk_number(2025, 7) == "BKK-2025-0007"

    def test_parse(self):
        assert parse_bkk_number("BKK-2025-0042") == (2025, 42)
        assert parse_bkk_number("BKK-25-42") is None
        assert parse_bkk_number("") is None

    def test_is_valid(self):
        assert is_valid_bkk_number("BKK-2024-1234")
        assert not is_valid_bkk_number("bkk-2024-1234")


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "approved"),
            ("pending", "rejected"),
            ("pending", "cancelled"),
            ("approved", "released"),
            ("approved", "cancelled"),
            ("released", "settled"),
        ],
    )
    def test_allowed(self, current, target):
        assert is_valid_status_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "released"),
            ("released", "cancelled"),
            ("settled", "pending"),
            ("rejected", "approved"),
            ("cancelled", "pending"),
        ],
    )
    def test_rejected(self, current, target):
        assert not is_valid_status_transition(current, target)


class TestBudget:
    def test_available_budget(self):
        bkks = [
            _bkk("settled", "1000"),
            _bkk("released", "500"),
            _bkk("pending", "300"),
            _bkk("approved", "200"),
            _bkk("rejected", "999"),
            _bkk("cancelled", "999"),
        ]
        budget = calculate_available_budget(Decimal("5000"), bkks)
        assert budget.already_disbursed == Decimal("1500")
        assert budget.pending_requests == Decimal("500")
        assert budget.available == Decimal("3000")

    def test_settlement_difference(self):
        assert calculate_settlement_difference(Decimal("1000"), Decimal("800")).type == "return"
        more = calculate_settlement_difference(Decimal("1000"), Decimal("1200"))
        assert (more.type, more.difference) == ("additional", Decimal("200"))
        assert calculate_settlement_difference(Decimal("1000"), Decimal("1000")).type == "exact"

    def test_summary(self):
        summary = calculate_bkk_summary(
            [
                _bkk("settled", "1000", spent="800"),
                _bkk("released", "500"),
                _bkk("pending", "300"),
                _bkk("rejected", "999"),
            ]
        )
        assert summary.total_requested == Decimal("1800")
        assert summary.total_released == Decimal("1500")
        assert summary.total_settled == Decimal("800")
        assert summary.pending_return == Decimal("700")
        assert summary.count["rejected"] == 1
        assert summary.count["cancelled"] == 0


class TestAvailableActions:
    def test_pending_for_approver(self):
        assert get_available_actions("pending", "finance") == ["view", "approve", "reject"]

    def test_pending_for_requester(self):
        assert get_available_actions("pending", "ops", is_requester=True) == ["view", "cancel"]

    def test_approved(self):
        assert get_available_actions("approved", "finance") == ["view", "release", "cancel"]
        assert get_available_actions("approved", "manager") == ["view", "cancel"]
        assert get_available_actions("approved", "ops") == ["view"]

    def test_released(self):
        assert get_available_actions("released", "ops") == ["view", "settle"]
        assert get_available_actions("released", "finance") == ["view"]
        assert get_available_actions("released", "finance", is_requester=True) == ["view", "settle"]

    def test_terminal(self):
        assert get_available_actions("settled", "admin", is_requester=True) == ["view"]


class TestValidators:
    def test_create(self):
        assert validate_create_bkk_input("Fuel", Decimal("100")).valid
        result = validate_create_bkk_input("  ", Decimal("0"))
        assert result.errors == ("Purpose is required", "Amount must be greater than zero")
        assert validate_create_bkk_input("Fuel", None).error == "Amount is required"

    def test_reject(self):
        assert validate_reject_bkk_input("Over budget").valid
        assert validate_reject_bkk_input(" ").error == "Rejection reason is required"

    def test_release(self):
        assert validate_release_bkk_input("cash").valid
        assert validate_release_bkk_input("transfer").valid
        assert not validate_release_bkk_input("cheque").valid

    def test_settle(self):
        assert validate_settle_bkk_input(Decimal("0")).valid
        assert not validate_settle_bkk_input(Decimal("-1")).valid
        assert validate_settle_bkk_input(None).error == "Amount spent is required"


class TestBkkService:
    def test_full_lifecycle(self, bkk_service, sample_job, ops_user, admin, finance_user):
        bkk = bkk_service.request(
            sample_job.jo_number, "Fuel", Decimal("1500000"), actor=ops_user,
            request_date=date(2025, 3, 15),
        )
        assert bkk.bkk_number == "BKK-2025-0001"
        assert bkk.status == BkkStatus.PENDING
        assert bkk.requested_by == "ops@example.com"
        assert bkk.budget_amount == Decimal("6000000")

        bkk = bkk_service.approve(bkk.id, actor=admin)
        assert bkk.status == BkkStatus.APPROVED
        bkk = bkk_service.release(bkk.id, "transfer", actor=finance_user)
        assert bkk.status == BkkStatus.RELEASED
        assert bkk.release_method == "transfer"

        bkk = bkk_service.settle(bkk.id, Decimal("1200000"), actor=ops_user)
        assert bkk.status == BkkStatus.SETTLED
        assert bkk.amount_spent == Decimal("1200000")
        assert bkk.amount_returned == Decimal("300000")

    def test_overspend_returns_nothing(self, bkk_service, sample_job, admin):
        bkk = bkk_service.request(sample_job.jo_number, "Tolls", Decimal("100000"), actor=admin)
        bkk_service.approve(bkk.id, actor=admin)
        bkk_service.release(bkk.id, "cash", actor=admin)
        bkk = bkk_service.settle(bkk.id, Decimal("150000"), actor=admin)
        assert bkk.amount_returned == Decimal("0")

    def test_numbers_increase(self, bkk_service, sample_job, admin):
        first = bkk_service.request(sample_job.jo_number, "A", Decimal("1"), actor=admin, request_date=date(2025, 1, 1))
        second = bkk_service.request(sample_job.jo_number, "B", Decimal("1"), actor=admin, request_date=date(2025, 1, 2))
        assert (first.bkk_number, second.bkk_number) == ("BKK-2025-0001", "BKK-2025-0002")

    def test_request_exceeding_budget(self, bkk_service, sample_job, admin):
        bkk_service.request(sample_job.jo_number, "Trucking", Decimal("5000000"), actor=admin)
        with pytest.raises(ValidationError, match="exceeds available budget"):
            bkk_service.request(sample_job.jo_number, "More trucking", Decimal("1000001"), actor=admin)

    def test_rejected_request_frees_budget(self, bkk_service, sample_job, admin):
        bkk = bkk_service.request(sample_job.jo_number, "Trucking", Decimal("6000000"), actor=admin)
        bkk_service.reject(bkk.id, "Use the contract rate", actor=admin)
        budget = bkk_service.get_available_budget(sample_job.jo_number)
        assert budget.available == Decimal("6000000")

    def test_explicit_budget(self, bkk_service, sample_job, admin):
        with pytest.raises(ValidationError):
            bkk_service.request(
                sample_job.jo_number, "Fuel", Decimal("200"), budget_amount=Decimal("100"), actor=admin
            )

    def test_invalid_input(self, bkk_service, sample_job):
        with pytest.raises(ValidationError, match="Purpose is required"):
            bkk_service.request(sample_job.jo_number, "", Decimal("100"))

    def test_invalid_transition(self, bkk_service, sample_job, admin):
        bkk = bkk_service.request(sample_job.jo_number, "Fuel", Decimal("100"), actor=admin)
        with pytest.raises(InvalidTransitionError, match="from pending to released"):
            bkk_service.release(bkk.id, "cash", actor=admin)

    def test_role_not_allowed(self, bkk_service, sample_job, admin, ops_user):
        bkk = bkk_service.request(sample_job.jo_number, "Fuel", Decimal("100"), actor=admin)
        with pytest.raises(ValidationError, match="Role 'ops' cannot approve"):
            bkk_service.approve(bkk.id, actor=ops_user)

    def test_only_requester_cancels_pending(self, bkk_service, sample_job, ops_user, finance_user):
        bkk = bkk_service.request(sample_job.jo_number, "Fuel", Decimal("100"), actor=ops_user)
        with pytest.raises(ValidationError):
            bkk_service.cancel(bkk.id, actor=finance_user)
        assert bkk_service.cancel(bkk.id, actor=ops_user).status == BkkStatus.CANCELLED

    def test_reject_needs_reason(self, bkk_service, sample_job, admin):
        bkk = bkk_service.request(sample_job.jo_number, "Fuel", Decimal("100"), actor=admin)
        with pytest.raises(ValidationError, match="Rejection reason"):
            bkk_service.reject(bkk.id, " ", actor=admin)

    def test_unknown_bkk(self, bkk_service):
        with pytest.raises(NotFoundError):
            bkk_service.approve(999, actor=Actor())

    def test_list_by_job_and_status(self, bkk_service, sample_job, admin):
        first = bkk_service.request(sample_job.jo_number, "A", Decimal("10"), actor=admin)
        bkk_service.request(sample_job.jo_number, "B", Decimal("10"), actor=admin)
        bkk_service.approve(first.id, actor=admin)

        assert len(bkk_service.list_bkks(jo_number=sample_job.jo_number)) == 2
        assert [b.purpose for b in bkk_service.list_bkks(status="approved")] == ["A"]

    def test_changes_are_audited(self, bkk_service, audit_service, sample_job, admin):
        bkk = bkk_service.request(sample_job.jo_number, "Fuel", Decimal("100"), actor=admin)
        bkk_service.approve(bkk.id, actor=admin)
        history = audit_service.entity_history("bkk", bkk.id)
        assert sorted(e.action for e in history) == ["approve", "create"]
        approval = next(e for e in history if e.action == "approve")
        assert approval.changed_fields == ("status",)
        assert approval.user_email == "admin@example.com"
