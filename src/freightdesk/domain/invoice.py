"""Customer invoices raised from job orders: numbering, totals and payment workflow."""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import (
    Actor,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
    JobOrder,
    JobOrderStatus,
    ValidationResult,
)
from freightdesk.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    invalid_transition,
    not_found,
)
from freightdesk.domain.invoice_terms import VAT_RATE
from freightdesk.utils.amount_parser import to_decimal

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
DEFAULT_PAYMENT_DAYS = 30
INVOICE_NUMBER_PATTERN = re.compile(r"^INV-(\d{4})-(\d{4,})$")

VALID_STATUS_TRANSITIONS: dict[InvoiceStatus, tuple[InvoiceStatus, ...]] = {
    InvoiceStatus.DRAFT: (InvoiceStatus.SENT, InvoiceStatus.CANCELLED),
    InvoiceStatus.SENT: (InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED),
    InvoiceStatus.OVERDUE: (InvoiceStatus.PAID, InvoiceStatus.CANCELLED),
    InvoiceStatus.PAID: (),
    InvoiceStatus.CANCELLED: (),
}

# Job order status an invoice moves its job order to
JOB_STATUS_AFTER = {
    InvoiceStatus.DRAFT: JobOrderStatus.INVOICED,
    InvoiceStatus.PAID: JobOrderStatus.CLOSED,
    InvoiceStatus.CANCELLED: JobOrderStatus.SUBMITTED_TO_FINANCE,
}


@dataclass(frozen=True)
class LineItemInput:
    description: str
    quantity: Decimal
    unit_price: Decimal
    unit: Optional[str] = None


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    vat_amount: Decimal
    grand_total: Decimal


def _cents(amount: Decimal) -> Decimal:
    return to_decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_line_item_subtotal(quantity, unit_price) -> Decimal:
    return _cents(to_decimal(quantity) * to_decimal(unit_price))


def calculate_invoice_totals(line_items: Iterable[LineItemInput | InvoiceLineItem]) -> InvoiceTotals:
    """Subtotal of all lines, 11% VAT on it, and the grand total, to the cent."""
    subtotal = sum(
        (calculate_line_item_subtotal(item.quantity, item.unit_price) for item in line_items),
        Decimal("0"),
    )
    vat_amount = _cents(subtotal * VAT_RATE)
    return InvoiceTotals(subtotal=subtotal, vat_amount=vat_amount, grand_total=subtotal + vat_amount)


def format_invoice_number(year: int, sequence: int) -> str:
    """Format an invoice number, e.g. INV-2025-0001."""
    return f"INV-{year}-{sequence:04d}"


def parse_invoice_number(invoice_number: str) -> Optional[tuple[int, int]]:
    """Return (year, sequence) of an invoice number, or None if malformed."""
    match = INVOICE_NUMBER_PATTERN.match(invoice_number or "")
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def is_valid_status_transition(current: InvoiceStatus | str, target: InvoiceStatus | str) -> bool:
    return target in VALID_STATUS_TRANSITIONS.get(InvoiceStatus(current), ())


def is_invoice_overdue(
    due_date: date, status: InvoiceStatus | str, today: Optional[date] = None
) -> bool:
    """Only a sent invoice past its due date is overdue."""
    if status != InvoiceStatus.SENT:
        return False
    return due_date < (today or date.today())


def can_invoice_job_order(status: JobOrderStatus | str) -> bool:
    return status == JobOrderStatus.SUBMITTED_TO_FINANCE


def calculate_due_date(invoice_date: date, payment_days: int = DEFAULT_PAYMENT_DAYS) -> date:
    return invoice_date + timedelta(days=payment_days)


def number_line_items(items: Sequence[LineItemInput]) -> list[InvoiceLineItem]:
    """Copy input lines into invoice lines numbered 1, 2, 3..."""
    return [
        InvoiceLineItem(
            line_number=position,
            description=item.description.strip(),
            quantity=to_decimal(item.quantity),
            unit_price=to_decimal(item.unit_price),
            subtotal=calculate_line_item_subtotal(item.quantity, item.unit_price),
            unit=item.unit,
        )
        for position, item in enumerate(items, start=1)
    ]


def default_line_items(job: JobOrder) -> list[LineItemInput]:
    """Bill the whole job order revenue as a single line."""
    description = job.project_name or f"Freight services {job.jo_number}"
    return [LineItemInput(description, Decimal("1"), job.revenue, unit="lot")]


def validate_line_items(items: Sequence[LineItemInput]) -> ValidationResult:
    if not items:
        return ValidationResult.from_errors(["At least one line item is required"])
    errors = []
    for position, item in enumerate(items, start=1):
        if not item.description or not item.description.strip():
            errors.append(f"Line {position}: Description is required")
        if to_decimal(item.quantity) <= 0:
            errors.append(f"Line {position}: Quantity must be greater than 0")
        if to_decimal(item.unit_price) < 0:
            errors.append(f"Line {position}: Unit price cannot be negative")
    return ValidationResult.from_errors(errors)


class InvoiceService:
    """Service for invoicing job orders and following invoices to payment."""

    def __init__(self, db: Database):
        """Initialize invoice service.

        Args:
            db: Database instance
        """
        self.db = db
        self.audit = AuditService(db)

    def get_invoice(self, invoice_number: str) -> Invoice:
        invoice = self.db.get_invoice_by_number(invoice_number)
        if invoice is None:
            raise NotFoundError(not_found("Invoice", invoice_number))
        return invoice

    def list_invoices(
        self, jo_number: Optional[str] = None, status: Optional[str] = None
    ) -> list[Invoice]:
        """List invoices newest first, optionally for one job order or status."""
        job_order_id = None
        if jo_number is not None:
            job = self.db.get_job_order_by_number(jo_number)
            if job is None:
                raise NotFoundError(not_found("Job order", jo_number))
            job_order_id = job.id
        return self.db.list_invoices(job_order_id=job_order_id, status=status)

    def create_from_job_order(
        self,
        jo_number: str,
        line_items: Optional[Sequence[LineItemInput]] = None,
        invoice_date: Optional[date] = None,
        payment_days: int = DEFAULT_PAYMENT_DAYS,
        notes: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Invoice:
        """Raise a draft invoice for a job order submitted to finance.

        Args:
            jo_number: Job order to invoice
            line_items: Lines to bill; defaults to the job's revenue as one line
            invoice_date: Invoice date, which also fixes the number's year
            payment_days: Days until payment is due
            notes: Optional notes printed on the invoice
            actor: User raising the invoice

        Returns:
            The new draft invoice; its job order is now invoiced

        Raises:
            NotFoundError: If the job order doesn't exist
            ValidationError: If the job order is not submitted to finance
                or a line item is invalid
        """
        job = self.db.get_job_order_by_number(jo_number)
        if job is None:
            raise NotFoundError(not_found("Job order", jo_number))
        if not can_invoice_job_order(job.status):
            logger.warning("Refused to invoice %s in status %s", jo_number, job.status)
            raise ValidationError(
                f"Job order {jo_number} must be submitted to finance before invoicing "
                f"(currently {job.status.value})"
            )
        if payment_days < 0:
            raise ValidationError("Payment days cannot be negative")

        items = list(line_items) if line_items else default_line_items(job)
        result = validate_line_items(items)
        if not result.valid:
            raise ValidationError("; ".join(result.errors))

        lines = number_line_items(items)
        totals = calculate_invoice_totals(lines)
        invoice_date = invoice_date or date.today()
        number = format_invoice_number(
            invoice_date.year, self.db.count_invoices_for_year(invoice_date.year) + 1
        )
        invoice_id = self.db.create_invoice(
            invoice_number=number,
            job_order_id=job.id,
            invoice_date=invoice_date,
            due_date=calculate_due_date(invoice_date, payment_days),
            subtotal=totals.subtotal,
            vat_amount=totals.vat_amount,
            total_amount=totals.grand_total,
            line_items=lines,
            notes=notes,
        )
        self.audit.log(
            "create",
            "invoices",
            "invoice",
            entity_id=invoice_id,
            entity_reference=number,
            new_values={
                "jo_number": jo_number,
                "status": InvoiceStatus.DRAFT,
                "subtotal": totals.subtotal,
                "vat_amount": totals.vat_amount,
                "total_amount": totals.grand_total,
                "line_items": len(lines),
            },
            actor=actor,
        )
        self._move_job_order(job, JOB_STATUS_AFTER[InvoiceStatus.DRAFT], number, actor)
        logger.info("Created invoice %s for %s", number, jo_number)
        return self.db.get_invoice(invoice_id)

    def send(self, invoice_number: str, actor: Optional[Actor] = None) -> Invoice:
        return self._move(invoice_number, InvoiceStatus.SENT, actor, sent_at=datetime.now(UTC))

    def record_payment(self, invoice_number: str, actor: Optional[Actor] = None) -> Invoice:
        """Mark an invoice paid; its job order is closed."""
        return self._move(invoice_number, InvoiceStatus.PAID, actor, paid_at=datetime.now(UTC))

    def cancel(self, invoice_number: str, actor: Optional[Actor] = None) -> Invoice:
        """Cancel an unpaid invoice; its job order goes back to finance."""
        return self._move(
            invoice_number, InvoiceStatus.CANCELLED, actor, cancelled_at=datetime.now(UTC)
        )

    def mark_overdue(self, today: Optional[date] = None, actor: Optional[Actor] = None) -> list[Invoice]:
        """Flag every sent invoice past its due date as overdue."""
        today = today or date.today()
        flagged = []
        for invoice in self.db.list_invoices(status=InvoiceStatus.SENT.value):
            if is_invoice_overdue(invoice.due_date, invoice.status, today):
                flagged.append(self._move(invoice.invoice_number, InvoiceStatus.OVERDUE, actor))
        return flagged

    def _move(
        self, invoice_number: str, target: InvoiceStatus, actor: Optional[Actor], **fields
    ) -> Invoice:
        invoice = self.get_invoice(invoice_number)
        if not is_valid_status_transition(invoice.status, target):
            logger.warning("Rejected %s transition %s -> %s", invoice_number, invoice.status, target)
            raise InvalidTransitionError(
                invalid_transition(invoice_number, invoice.status.value, target.value)
            )

        self.db.update_invoice(invoice.id, status=target.value, **fields)
        self.audit.log(
            "cancel" if target == InvoiceStatus.CANCELLED else "update",
            "invoices",
            "invoice",
            entity_id=invoice.id,
            entity_reference=invoice_number,
            old_values={"status": invoice.status},
            new_values={"status": target},
            actor=actor,
        )
        logger.info("Invoice %s is now %s", invoice_number, target)

        if target in JOB_STATUS_AFTER:
            job = self.db.get_job_order(invoice.job_order_id)
            self._move_job_order(job, JOB_STATUS_AFTER[target], invoice_number, actor)
        return self.get_invoice(invoice_number)

    def _move_job_order(
        self, job: JobOrder, target: JobOrderStatus, invoice_number: str, actor: Optional[Actor]
    ) -> None:
        if job.status == target:
            return
        self.db.update_job_order(job.id, status=target.value)
        self.audit.log(
            "update",
            "job_orders",
            "job_order",
            entity_id=job.id,
            entity_reference=job.jo_number,
            old_values={"status": job.status},
            new_values={"status": target},
            metadata={"invoice_number": invoice_number},
            actor=actor,
        )
        logger.info("Job order %s moved to %s by invoice %s", job.jo_number, target, invoice_number)
