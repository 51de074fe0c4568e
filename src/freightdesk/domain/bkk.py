"""Cash disbursement vouchers (BKK): numbering, workflow and budget checks."""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import Actor, Bkk, BkkStatus, ValidationResult
from freightdesk.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    action_not_allowed,
    insufficient_budget,
    invalid_transition,
    not_found,
)
from freightdesk.utils.amount_parser import to_decimal

logger = logging.getLogger(__name__)

BKK_NUMBER_PATTERN = re.compile(r"^BKK-(\d{4})-(\d{4})$")

VALID_TRANSITIONS: dict[BkkStatus, tuple[BkkStatus, ...]] = {
    BkkStatus.PENDING: (BkkStatus.APPROVED, BkkStatus.REJECTED, BkkStatus.CANCELLED),
    BkkStatus.APPROVED: (BkkStatus.RELEASED, BkkStatus.CANCELLED),
    BkkStatus.RELEASED: (BkkStatus.SETTLED,),
    BkkStatus.REJECTED: (),
    BkkStatus.SETTLED: (),
    BkkStatus.CANCELLED: (),
}

INACTIVE_STATUSES = frozenset({BkkStatus.REJECTED, BkkStatus.CANCELLED})
DISBURSED_STATUSES = frozenset({BkkStatus.RELEASED, BkkStatus.SETTLED})
OUTSTANDING_STATUSES = frozenset({BkkStatus.PENDING, BkkStatus.APPROVED})

APPROVER_ROLES = frozenset({"admin", "finance", "manager", "super_admin"})
RELEASER_ROLES = frozenset({"admin", "finance", "super_admin"})
SETTLER_ROLES = frozenset({"ops", "admin", "super_admin"})
RELEASE_METHODS = ("cash", "transfer")

# Action name -> status the voucher moves to
ACTION_TARGETS = {
    "approve": BkkStatus.APPROVED,
    "reject": BkkStatus.REJECTED,
    "release": BkkStatus.RELEASED,
    "settle": BkkStatus.SETTLED,
    "cancel": BkkStatus.CANCELLED,
}


@dataclass(frozen=True)
class AvailableBudget:
    budget_amount: Decimal
    already_disbursed: Decimal
    pending_requests: Decimal
    available: Decimal


@dataclass(frozen=True)
class SettlementDifference:
    released_amount: Decimal
    spent_amount: Decimal
    difference: Decimal
    type: str


@dataclass(frozen=True)
class BkkSummary:
    total_requested: Decimal
    total_released: Decimal
    total_settled: Decimal
    pending_return: Decimal
    count: dict[str, int] = field(default_factory=dict)


def generate_bkk_number(year: int, sequence: int) -> str:
    return f"BKK-{year}-{sequence:04d}"


def parse_bkk_number(bkk_number: str) -> Optional[tuple[int, int]]:
    """Return (year, sequence) from a BKK number, or None if malformed."""
    match = BKK_NUMBER_PATTERN.match(bkk_number or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def is_valid_bkk_number(bkk_number: str) -> bool:
    return parse_bkk_number(bkk_number) is not None


def is_valid_status_transition(current: BkkStatus | str, target: BkkStatus | str) -> bool:
    return target in VALID_TRANSITIONS.get(BkkStatus(current), ())


def calculate_available_budget(budget_amount: Decimal, bkks: Iterable[Bkk]) -> AvailableBudget:
    """Work out how much of a budget can still be requested.

    Rejected and cancelled vouchers are ignored. Released and settled
    vouchers count as disbursed; pending and approved ones as outstanding.
    """
    budget_amount = to_decimal(budget_amount)
    disbursed = Decimal("0")
    outstanding = Decimal("0")
    for bkk in bkks:
        if bkk.status in DISBURSED_STATUSES:
            disbursed += bkk.amount_requested
        elif bkk.status in OUTSTANDING_STATUSES:
            outstanding += bkk.amount_requested
    return AvailableBudget(
        budget_amount=budget_amount,
        already_disbursed=disbursed,
        pending_requests=outstanding,
        available=budget_amount - disbursed - outstanding,
    )


def calculate_settlement_difference(
    released_amount: Decimal, spent_amount: Decimal
) -> SettlementDifference:
    released_amount = to_decimal(released_amount)
    spent_amount = to_decimal(spent_amount)
    if spent_amount < released_amount:
        kind = "return"
    elif spent_amount > released_amount:
        kind = "additional"
    else:
        kind = "exact"
    return SettlementDifference(
        released_amount=released_amount,
        spent_amount=spent_amount,
        difference=abs(released_amount - spent_amount),
        type=kind,
    )


def calculate_bkk_summary(bkks: Iterable[Bkk]) -> BkkSummary:
    count = {status.value: 0 for status in BkkStatus}
    requested = released = settled = Decimal("0")
    for bkk in bkks:
        count[bkk.status.value] += 1
        if bkk.status not in INACTIVE_STATUSES:
            requested += bkk.amount_requested
        if bkk.status in DISBURSED_STATUSES:
            released += bkk.amount_requested
        if bkk.status == BkkStatus.SETTLED and bkk.amount_spent is not None:
            settled += bkk.amount_spent
    return BkkSummary(
        total_requested=requested,
        total_released=released,
        total_settled=settled,
        pending_return=released - settled,
        count=count,
    )


def get_available_actions(
    status: BkkStatus | str, role: str, is_requester: bool = False
) -> list[str]:
    """List what a user may do with a voucher in its current status.

    Args:
        status: Current voucher status
        role: User role
        is_requester: Whether the user raised the voucher

    Returns:
        Action names, always starting with "view"
    """
    actions = ["view"]
    if status == BkkStatus.PENDING:
        if is_requester:
            actions.append("cancel")
        if role in APPROVER_ROLES:
            actions.extend(["approve", "reject"])
    elif status == BkkStatus.APPROVED:
        if role in RELEASER_ROLES:
            actions.append("release")
        if is_requester or role in APPROVER_ROLES:
            actions.append("cancel")
    elif status == BkkStatus.RELEASED:
        if is_requester or role in SETTLER_ROLES:
            actions.append("settle")
    return actions


def validate_create_bkk_input(purpose: Optional[str], amount_requested) -> ValidationResult:
    errors = []
    if not purpose or not purpose.strip():
        errors.append("Purpose is required")
    if amount_requested is None:
        errors.append("Amount is required")
    elif to_decimal(amount_requested) <= 0:
        errors.append("Amount must be greater than zero")
    return ValidationResult.from_errors(errors)


def validate_reject_bkk_input(reason: Optional[str]) -> ValidationResult:
    if not reason or not reason.strip():
        return ValidationResult.from_errors(["Rejection reason is required"])
    return ValidationResult(valid=True)


def validate_release_bkk_input(release_method: Optional[str]) -> ValidationResult:
    if release_method not in RELEASE_METHODS:
        return ValidationResult.from_errors(["Release method must be cash or transfer"])
    return ValidationResult(valid=True)


def validate_settle_bkk_input(amount_spent) -> ValidationResult:
    if amount_spent is None:
        return ValidationResult.from_errors(["Amount spent is required"])
    if to_decimal(amount_spent) < 0:
        return ValidationResult.from_errors(["Amount spent cannot be negative"])
    return ValidationResult(valid=True)


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.valid:
        raise ValidationError("; ".join(result.errors))


class BkkService:
    """Service for requesting and processing cash disbursement vouchers."""

    def __init__(self, db: Database):
        """Initialize BKK service.

        Args:
            db: Database instance
        """
        self.db = db
        self.audit = AuditService(db)

    def get_bkk(self, bkk_id: int) -> Bkk:
        bkk = self.db.get_bkk(bkk_id)
        if bkk is None:
            raise NotFoundError(not_found("BKK", bkk_id))
        return bkk

    def list_bkks(
        self, jo_number: Optional[str] = None, status: Optional[str] = None
    ) -> list[Bkk]:
        job_order_id = None
        if jo_number is not None:
            job = self.db.get_job_order_by_number(jo_number)
            if job is None:
                raise NotFoundError(not_found("Job order", jo_number))
            job_order_id = job.id
        return self.db.list_bkks(job_order_id=job_order_id, status=status)

    def get_available_budget(
        self, jo_number: str, budget_amount: Optional[Decimal] = None
    ) -> AvailableBudget:
        """Remaining budget of a job order; the budget defaults to its direct cost."""
        job = self.db.get_job_order_by_number(jo_number)
        if job is None:
            raise NotFoundError(not_found("Job order", jo_number))
        if budget_amount is None:
            budget_amount = job.direct_cost
        return calculate_available_budget(budget_amount, self.db.list_bkks(job_order_id=job.id))

    def request(
        self,
        jo_number: str,
        purpose: str,
        amount: Decimal,
        budget_amount: Optional[Decimal] = None,
        actor: Optional[Actor] = None,
        request_date: Optional[date] = None,
        vendor_code: Optional[str] = None,
    ) -> Bkk:
        """Raise a pending voucher against a job order's budget.

        Args:
            jo_number: Job order the cash is for
            purpose: What the cash is for
            amount: Amount requested
            budget_amount: Budget to draw from; defaults to the job's direct cost
            actor: Requesting user
            request_date: Date fixing the number's year; defaults to today
            vendor_code: Vendor the cash is paid to, if any

        Returns:
            The new voucher

        Raises:
            ValidationError: If input is invalid or the budget is exhausted
            NotFoundError: If the job order or vendor doesn't exist
        """
        _raise_if_invalid(validate_create_bkk_input(purpose, amount))
        amount = to_decimal(amount)
        actor = actor or Actor()

        vendor = None
        if vendor_code:
            vendor = self.db.get_vendor_by_code(vendor_code.strip().upper())
            if vendor is None:
                raise NotFoundError(not_found("Vendor", vendor_code))

        budget = self.get_available_budget(jo_number, budget_amount)
        if amount > budget.available:
            logger.warning("BKK request of %s on %s exceeds budget", amount, jo_number)
            raise ValidationError(insufficient_budget(amount, budget.available))

        job = self.db.get_job_order_by_number(jo_number)
        year = (request_date or date.today()).year
        bkk_number = generate_bkk_number(year, self.db.count_bkks_for_year(year) + 1)
        bkk_id = self.db.create_bkk(
            bkk_number=bkk_number,
            job_order_id=job.id,
            purpose=purpose.strip(),
            amount_requested=amount,
            budget_amount=budget.budget_amount,
            requested_by=actor.email,
            vendor_id=vendor.id if vendor else None,
        )
        self.audit.log(
            "create",
            "job_orders",
            "bkk",
            entity_id=bkk_id,
            entity_reference=bkk_number,
            new_values={
                "purpose": purpose.strip(),
                "amount_requested": amount,
                "status": "pending",
                "vendor": vendor.vendor_code if vendor else None,
            },
            actor=actor,
        )
        logger.info("Requested %s for %s on %s", bkk_number, amount, jo_number)
        return self.get_bkk(bkk_id)

    def _apply(self, bkk_id: int, action: str, actor: Optional[Actor], **fields) -> Bkk:
        actor = actor or Actor()
        bkk = self.get_bkk(bkk_id)
        target = ACTION_TARGETS[action]

        if not is_valid_status_transition(bkk.status, target):
            logger.warning("Rejected %s of %s in status %s", action, bkk.bkk_number, bkk.status)
            raise InvalidTransitionError(
                invalid_transition(bkk.bkk_number, bkk.status.value, target.value)
            )

        is_requester = actor.email is not None and actor.email == bkk.requested_by
        if action not in get_available_actions(bkk.status, actor.role, is_requester):
            logger.warning("Role %s may not %s %s", actor.role, action, bkk.bkk_number)
            raise ValidationError(action_not_allowed(action, bkk.bkk_number, actor.role))

        self.db.update_bkk(bkk.id, status=target.value, **fields)
        self.audit.log(
            action,
            "job_orders",
            "bkk",
            entity_id=bkk.id,
            entity_reference=bkk.bkk_number,
            old_values={"status": bkk.status, **{k: getattr(bkk, k) for k in fields}},
            new_values={"status": target, **fields},
            actor=actor,
        )
        logger.info("%s moved to %s", bkk.bkk_number, target)
        return self.get_bkk(bkk.id)

    def approve(self, bkk_id: int, actor: Optional[Actor] = None) -> Bkk:
        return self._apply(bkk_id, "approve", actor)

    def reject(self, bkk_id: int, reason: str, actor: Optional[Actor] = None) -> Bkk:
        _raise_if_invalid(validate_reject_bkk_input(reason))
        return self._apply(bkk_id, "reject", actor, rejection_reason=reason.strip())

    def release(self, bkk_id: int, release_method: str, actor: Optional[Actor] = None) -> Bkk:
        _raise_if_invalid(validate_release_bkk_input(release_method))
        return self._apply(bkk_id, "release", actor, release_method=release_method)

    def settle(self, bkk_id: int, amount_spent: Decimal, actor: Optional[Actor] = None) -> Bkk:
        """Close out a released voucher with the amount actually spent.

        The unspent part of the released cash is recorded as returned.
        """
        _raise_if_invalid(validate_settle_bkk_input(amount_spent))
        bkk = self.get_bkk(bkk_id)
        settlement = calculate_settlement_difference(bkk.amount_requested, amount_spent)
        returned = settlement.difference if settlement.type == "return" else Decimal("0")
        return self._apply(
            bkk_id,
            "settle",
            actor,
            amount_spent=settlement.spent_amount,
            amount_returned=returned,
        )

    def cancel(self, bkk_id: int, actor: Optional[Actor] = None) -> Bkk:
        return self._apply(bkk_id, "cancel", actor)
