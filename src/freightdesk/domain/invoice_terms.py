"""Invoice term splitting, readiness rules and the invoice term service."""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import (
    Actor,
    InvoiceTerm,
    JobOrderStatus,
    PresetType,
    TermStatus,
    TriggerType,
)
from freightdesk.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    not_found,
    terms_locked,
    terms_total_invalid,
)
from freightdesk.utils.amount_parser import to_decimal

logger = logging.getLogger(__name__)

VAT_RATE = Decimal("0.11")
HUNDRED = Decimal("100")
TOTAL_TOLERANCE = Decimal("0.01")

TERM_PRESETS: dict[PresetType, tuple[InvoiceTerm, ...]] = {
    PresetType.SINGLE: (
        InvoiceTerm("full", Decimal("100"), "Full Payment", TriggerType.JO_CREATED),
    ),
    PresetType.DP_FINAL: (
        InvoiceTerm("down_payment", Decimal("30"), "Down Payment", TriggerType.JO_CREATED),
        InvoiceTerm("final", Decimal("70"), "Final Payment", TriggerType.DELIVERY),
    ),
    PresetType.DP_DELIVERY_FINAL: (
        InvoiceTerm("down_payment", Decimal("30"), "Down Payment", TriggerType.JO_CREATED),
        InvoiceTerm("delivery", Decimal("50"), "Upon Delivery", TriggerType.SURAT_JALAN),
        InvoiceTerm("final", Decimal("20"), "After Handover", TriggerType.BERITA_ACARA),
    ),
    PresetType.CUSTOM: (),
}

DELIVERY_READY_STATUSES = frozenset(
    {
        JobOrderStatus.COMPLETED,
        JobOrderStatus.SUBMITTED_TO_FINANCE,
        JobOrderStatus.INVOICED,
        JobOrderStatus.CLOSED,
    }
)

TERM_STATUS_LABELS = {
    TermStatus.INVOICED: "Invoiced",
    TermStatus.READY: "Ready",
    TermStatus.LOCKED: "Locked",
    TermStatus.PENDING: "Pending",
}

LOCKED_TRIGGER_DESCRIPTIONS = {
    TriggerType.SURAT_JALAN: "Requires Surat Jalan document",
    TriggerType.BERITA_ACARA: "Requires Berita Acara document",
    TriggerType.DELIVERY: "Requires JO completion",
}


@dataclass(frozen=True)
class TermInvoiceTotals:
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class RevenueDiscrepancy:
    has_discrepancy: bool
    difference: Decimal
    difference_percent: Decimal


@dataclass(frozen=True)
class UninvoicedRevenue:
    amount: Decimal
    percent: Decimal


@dataclass(frozen=True)
class InvoicingSummary:
    """VAT-inclusive invoiced and invoiceable totals of a job order."""

    invoiced_total: Decimal
    invoiceable_total: Decimal
    ready_amount: Decimal
    uninvoiced: UninvoicedRevenue


@dataclass(frozen=True)
class TermView:
    """Invoice term together with its derived status and amounts."""

    position: int
    term: InvoiceTerm
    status: TermStatus
    status_label: str
    locked_reason: str
    totals: TermInvoiceTotals


def get_preset_terms(preset: PresetType | str) -> list[InvoiceTerm]:
    """Return a fresh list of terms for a preset; custom has none."""
    return [replace(term) for term in TERM_PRESETS[PresetType(preset)]]


def calculate_terms_percentage_total(terms: Iterable[InvoiceTerm]) -> Decimal:
    return sum((to_decimal(t.percentage) for t in terms), Decimal("0"))


def validate_terms_total(terms: Sequence[InvoiceTerm]) -> bool:
    """Check that terms exist and their percentages add up to 100."""
    if not terms:
        return False
    return abs(calculate_terms_percentage_total(terms) - HUNDRED) < TOTAL_TOLERANCE


def calculate_term_amount(revenue: Decimal, percentage: Decimal) -> Decimal:
    return to_decimal(revenue) * to_decimal(percentage) / HUNDRED


def calculate_vat(amount: Decimal) -> Decimal:
    return to_decimal(amount) * VAT_RATE


def calculate_term_invoice_totals(revenue: Decimal, percentage: Decimal) -> TermInvoiceTotals:
    subtotal = calculate_term_amount(revenue, percentage)
    vat_amount = calculate_vat(subtotal)
    return TermInvoiceTotals(subtotal=subtotal, vat_amount=vat_amount, total=subtotal + vat_amount)


def get_term_status(
    term: InvoiceTerm,
    jo_status: JobOrderStatus | str,
    has_surat_jalan: bool = False,
    has_berita_acara: bool = False,
) -> TermStatus:
    """Derive whether a term can be invoiced yet.

    Args:
        term: Invoice term
        jo_status: Current status of the job order
        has_surat_jalan: Whether the delivery note has been issued
        has_berita_acara: Whether the handover report has been signed

    Returns:
        INVOICED once invoiced, READY when its trigger has fired, else LOCKED
    """
    if term.invoiced:
        return TermStatus.INVOICED

    trigger = term.trigger
    if trigger == TriggerType.JO_CREATED:
        return TermStatus.READY
    if trigger == TriggerType.DELIVERY:
        if jo_status in DELIVERY_READY_STATUSES:
            return TermStatus.READY
        return TermStatus.LOCKED
    if trigger == TriggerType.SURAT_JALAN:
        return TermStatus.READY if has_surat_jalan else TermStatus.LOCKED
    if trigger == TriggerType.BERITA_ACARA:
        return TermStatus.READY if has_berita_acara else TermStatus.LOCKED
    return TermStatus.LOCKED


def get_term_status_label(status: TermStatus | str) -> str:
    return TERM_STATUS_LABELS.get(status, str(status))


def get_locked_trigger_description(trigger: TriggerType | str) -> str:
    return LOCKED_TRIGGER_DESCRIPTIONS.get(trigger, "")


def has_any_invoiced_term(terms: Iterable[InvoiceTerm]) -> bool:
    return any(t.invoiced for t in terms)


def calculate_total_invoiced_from_terms(
    terms: Iterable[InvoiceTerm], revenue: Decimal
) -> Decimal:
    """Sum the VAT-inclusive totals of terms already invoiced."""
    return sum(
        (calculate_term_invoice_totals(revenue, t.percentage).total for t in terms if t.invoiced),
        Decimal("0"),
    )


def calculate_total_invoiceable_amount(revenue: Decimal) -> Decimal:
    """Return the full revenue plus VAT."""
    return to_decimal(revenue) + calculate_vat(revenue)


def calculate_ready_to_invoice_amount(
    terms: Iterable[InvoiceTerm],
    revenue: Decimal,
    jo_status: JobOrderStatus | str,
    has_surat_jalan: bool = False,
    has_berita_acara: bool = False,
) -> Decimal:
    """Sum the subtotal amounts of terms that are ready to invoice now."""
    return sum(
        (
            calculate_term_amount(revenue, t.percentage)
            for t in terms
            if get_term_status(t, jo_status, has_surat_jalan, has_berita_acara)
            == TermStatus.READY
        ),
        Decimal("0"),
    )


def detect_preset_from_terms(terms: Sequence[InvoiceTerm]) -> PresetType:
    """Return the preset whose term names and percentages match exactly."""
    signature = [(t.term, to_decimal(t.percentage)) for t in terms]
    for preset, preset_terms in TERM_PRESETS.items():
        if preset == PresetType.CUSTOM:
            continue
        if signature == [(t.term, t.percentage) for t in preset_terms]:
            return preset
    return PresetType.CUSTOM


def check_revenue_discrepancy(
    pjo_total: Decimal, jo_final: Decimal, tolerance: Decimal = Decimal("0.01")
) -> RevenueDiscrepancy:
    """Compare proforma revenue with the job order's final revenue.

    Args:
        pjo_total: Revenue total of the proforma job order
        jo_final: Final revenue of the job order
        tolerance: Allowed difference as a fraction (0.01 is 1%)

    Returns:
        Difference and its percentage of the final revenue
    """
    pjo_total = to_decimal(pjo_total)
    jo_final = to_decimal(jo_final)
    difference = pjo_total - jo_final
    if jo_final > 0:
        percent = difference / jo_final * HUNDRED
    elif pjo_total > 0:
        percent = HUNDRED
    else:
        percent = Decimal("0")
    return RevenueDiscrepancy(
        has_discrepancy=abs(percent) > to_decimal(tolerance) * HUNDRED,
        difference=difference,
        difference_percent=percent,
    )


def calculate_uninvoiced_revenue(
    terms: Iterable[InvoiceTerm], revenue: Decimal
) -> UninvoicedRevenue:
    """Return the share of revenue not yet covered by an invoice."""
    invoiced = sum((to_decimal(t.percentage) for t in terms if t.invoiced), Decimal("0"))
    percent = HUNDRED - invoiced
    return UninvoicedRevenue(amount=calculate_term_amount(revenue, percent), percent=percent)


class InvoiceTermService:
    """Service for managing the invoice terms of job orders."""

    def __init__(self, db: Database):
        """Initialize invoice term service.

        Args:
            db: Database instance
        """
        self.db = db
        self.audit = AuditService(db)

    def _get_job_order(self, jo_number: str):
        job = self.db.get_job_order_by_number(jo_number)
        if job is None:
            raise NotFoundError(not_found("Job order", jo_number))
        return job

    def set_terms(
        self, jo_number: str, terms: Sequence[InvoiceTerm], actor: Optional[Actor] = None
    ) -> list[InvoiceTerm]:
        """Replace the invoice terms of a job order.

        Args:
            jo_number: Job order number
            terms: New terms, in invoicing order
            actor: User making the change

        Returns:
            The stored terms

        Raises:
            NotFoundError: If the job order doesn't exist
            ValidationError: If the percentages don't total 100
            ConflictError: If a term has already been invoiced
        """
        job = self._get_job_order(jo_number)
        if not validate_terms_total(terms):
            total = calculate_terms_percentage_total(terms)
            logger.warning("Rejected terms for %s totalling %s%%", jo_number, total)
            raise ValidationError(terms_total_invalid(total))

        existing = self.db.list_invoice_terms(job.id)
        if has_any_invoiced_term(existing):
            raise ConflictError(terms_locked(jo_number))

        fresh = [replace(t, invoiced=False, invoice_number=None) for t in terms]
        self.db.replace_invoice_terms(job.id, fresh)
        self.audit.log(
            "update",
            "job_orders",
            "job_order",
            entity_id=job.id,
            entity_reference=job.jo_number,
            old_values={"invoice_terms": [_term_snapshot(t) for t in existing]},
            new_values={"invoice_terms": [_term_snapshot(t) for t in fresh]},
            actor=actor,
        )
        logger.info("Set %d invoice terms on %s", len(fresh), jo_number)
        return fresh

    def apply_preset(
        self, jo_number: str, preset: PresetType | str, actor: Optional[Actor] = None
    ) -> list[InvoiceTerm]:
        """Replace the terms of a job order with a preset split."""
        terms = get_preset_terms(preset)
        if not terms:
            raise ValidationError("Custom terms must be given explicitly")
        return self.set_terms(jo_number, terms, actor=actor)

    def list_terms(self, jo_number: str) -> list[TermView]:
        """List terms of a job order with their derived status."""
        job = self._get_job_order(jo_number)
        views = []
        for position, term in enumerate(self.db.list_invoice_terms(job.id)):
            status = get_term_status(term, job.status, job.has_surat_jalan, job.has_berita_acara)
            views.append(
                TermView(
                    position=position,
                    term=term,
                    status=status,
                    status_label=get_term_status_label(status),
                    locked_reason=(
                        get_locked_trigger_description(term.trigger)
                        if status == TermStatus.LOCKED
                        else ""
                    ),
                    totals=calculate_term_invoice_totals(job.revenue, term.percentage),
                )
            )
        return views

    def get_invoicing_summary(self, jo_number: str) -> InvoicingSummary:
        """Summarize how much of a job order has been and can be invoiced."""
        job = self._get_job_order(jo_number)
        terms = self.db.list_invoice_terms(job.id)
        return InvoicingSummary(
            invoiced_total=calculate_total_invoiced_from_terms(terms, job.revenue),
            invoiceable_total=calculate_total_invoiceable_amount(job.revenue),
            ready_amount=calculate_ready_to_invoice_amount(
                terms, job.revenue, job.status, job.has_surat_jalan, job.has_berita_acara
            ),
            uninvoiced=calculate_uninvoiced_revenue(terms, job.revenue),
        )

    def mark_invoiced(
        self,
        jo_number: str,
        term_name: str,
        invoice_number: str,
        actor: Optional[Actor] = None,
    ) -> TermView:
        """Record that a term has been invoiced.

        Raises:
            NotFoundError: If the job order or term doesn't exist
            ValidationError: If the term is not ready to invoice
        """
        job = self._get_job_order(jo_number)
        for view in self.list_terms(jo_number):
            if view.term.term == term_name:
                break
        else:
            raise NotFoundError(not_found("Invoice term", f"'{term_name}' on {jo_number}"))

        if view.status != TermStatus.READY:
            reason = view.locked_reason or view.status_label
            logger.warning("Term %s on %s not invoiceable: %s", term_name, jo_number, reason)
            raise ValidationError(f"Term '{term_name}' cannot be invoiced: {reason}")

        self.db.mark_invoice_term_invoiced(job.id, view.position, invoice_number)
        self.audit.log(
            "create",
            "invoices",
            "invoice",
            entity_reference=invoice_number,
            new_values={
                "jo_number": jo_number,
                "term": term_name,
                "subtotal": view.totals.subtotal,
                "vat_amount": view.totals.vat_amount,
                "total": view.totals.total,
            },
            actor=actor,
        )
        logger.info("Invoiced term %s of %s as %s", term_name, jo_number, invoice_number)
        return self.list_terms(jo_number)[view.position]


def _term_snapshot(term: InvoiceTerm) -> dict:
    return {
        "term": term.term,
        "percentage": term.percentage,
        "trigger": term.trigger,
        "invoiced": term.invoiced,
    }
