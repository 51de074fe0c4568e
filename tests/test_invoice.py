"""Tests for customer invoices."""

from datetime import date
from decimal import Decimal

import pytest

from freightdesk.domain.entities import InvoiceStatus, JobOrderStatus
from freightdesk.domain.errors import InvalidTransitionError, NotFoundError, ValidationError
from freightdesk.domain.invoice import (
    LineItemInput,
    calculate_due_date,
    calculate_invoice_totals,
    calculate_line_item_subtotal,
    can_invoice_job_order,
    format_invoice_number,
    is_invoice_overdue,
    is_valid_status_transition,
    number_line_items,
    parse_invoice_number,
    validate_line_items,
)


class TestTotals:
    def test_line_subtotal(self):
        assert calculate_line_item_subtotal(2, Decimal("4500000")) == Decimal("9000000")
        assert calculate_line_item_subtotal("1.5", "333.33") == Decimal("500.00")

    def test_invoice_totals(self):
        totals = calculate_invoice_totals(
            [LineItemInput("Trucking", Decimal("2"), Decimal("4500000")), LineItemInput("Handling", 1, 750000)]
        )
        assert totals.subtotal == Decimal("9750000")
        assert totals.vat_amount == Decimal("1072500")
        assert totals.grand_total == Decimal("10822500")

    def test_vat_rounded_to_cents(self):
        totals = calculate_invoice_totals([LineItemInput("Fee", 1, Decimal("100.05"))])
        assert totals.vat_amount == Decimal("11.01")
        assert totals.grand_total == Decimal("111.06")

    def test_empty_invoice(self):
        totals = calculate_invoice_totals([])
        assert (totals.subtotal, totals.vat_amount, totals.grand_total) == (0, 0, 0)

    def test_number_line_items(self):
        lines = number_line_items([LineItemInput(" A ", 1, 10), LineItemInput("B", 2, 5, unit="trip")])
        assert [(line.line_number, line.description) for line in lines] == [(1, "A"), (2, "B")]
        assert lines[1].subtotal == Decimal("10")
        assert lines[1].unit == "trip"


class TestNumbering:
    def test_format(self):
        assert format_invoice_number(2025, 7) == "INV-2025-0007"
        assert format_invoice_number(2025, 12345) == "INV-2025-12345"

    def test_parse(self):
        assert parse_invoice_number("INV-2025-0042") == (2025, 42)
        assert parse_invoice_number("INV-25-42") is None
        assert parse_invoice_number("") is None


class TestRules:
    @pytest.mark.parametrize(
        "current,target",
        [
            ("draft", "sent"),
            ("draft", "cancelled"),
            ("sent", "paid"),
            ("sent", "overdue"),
            ("sent", "cancelled"),
            ("overdue", "paid"),
            ("overdue", "cancelled"),
        ],
    )
    def test_allowed_transitions(self, current, target):
        assert is_valid_status_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [("draft", "paid"), ("paid", "cancelled"), ("cancelled", "draft"), ("overdue", "sent")],
    )
    def test_rejected_transitions(self, current, target):
        assert not is_valid_status_transition(current, target)

    def test_overdue_only_when_sent(self):
        today = date(2025, 5, 1)
        assert is_invoice_overdue(date(2025, 4, 30), "sent", today)
        assert not is_invoice_overdue(date(2025, 5, 1), "sent", today)
        assert not is_invoice_overdue(date(2025, 4, 30), "draft", today)
        assert not is_invoice_overdue(date(2025, 4, 30), "paid", today)

    def test_due_date(self):
        assert calculate_due_date(date(2025, 1, 15)) == date(2025, 2, 14)
        assert calculate_due_date(date(2025, 1, 15), 0) == date(2025, 1, 15)

    def test_can_invoice_job_order(self):
        assert can_invoice_job_order(JobOrderStatus.SUBMITTED_TO_FINANCE)
        assert not can_invoice_job_order("completed")
        assert not can_invoice_job_order("invoiced")

    def test_validate_line_items(self):
        assert validate_line_items([LineItemInput("A", 1, 0)]).valid
        assert validate_line_items([]).error == "At least one line item is required"
        result = validate_line_items([LineItemInput(" ", 0, -1)])
        assert result.errors == (
            "Line 1: Description is required",
            "Line 1: Quantity must be greater than 0",
            "Line 1: Unit price cannot be negative",
        )


class TestInvoiceService:
    def test_create_bills_job_revenue(self, invoice_service, job_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(
            finance_job.jo_number, invoice_date=date(2025, 4, 1), actor=admin
        )
        assert invoice.invoice_number == "INV-2025-0001"
        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.due_date == date(2025, 5, 1)
        assert invoice.subtotal == Decimal("10000000")
        assert invoice.vat_amount == Decimal("1100000")
        assert invoice.total_amount == Decimal("11100000")
        assert [line.description for line in invoice.line_items] == ["Jakarta - Surabaya cargo"]
        assert job_service.get_job_order(finance_job.jo_number).status == JobOrderStatus.INVOICED

    def test_create_with_line_items(self, invoice_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(
            finance_job.jo_number,
            line_items=[
                LineItemInput("Trucking", Decimal("2"), Decimal("4000000"), unit="trip"),
                LineItemInput("Handling", Decimal("1"), Decimal("500000")),
            ],
            invoice_date=date(2025, 4, 1),
            payment_days=14,
            notes="Transfer to BCA",
            actor=admin,
        )
        assert [line.line_number for line in invoice.line_items] == [1, 2]
        assert invoice.subtotal == Decimal("8500000")
        assert invoice.due_date == date(2025, 4, 15)
        assert invoice.notes == "Transfer to BCA"

    def test_job_must_be_submitted_to_finance(self, invoice_service, sample_job, admin):
        with pytest.raises(ValidationError, match="must be submitted to finance"):
            invoice_service.create_from_job_order(sample_job.jo_number, actor=admin)

    def test_invalid_lines(self, invoice_service, finance_job, admin):
        with pytest.raises(ValidationError, match="Quantity must be greater than 0"):
            invoice_service.create_from_job_order(
                finance_job.jo_number, line_items=[LineItemInput("A", 0, 1)], actor=admin
            )

    def test_negative_payment_days(self, invoice_service, finance_job, admin):
        with pytest.raises(ValidationError, match="Payment days"):
            invoice_service.create_from_job_order(finance_job.jo_number, payment_days=-1, actor=admin)

    def test_unknown_job(self, invoice_service):
        with pytest.raises(NotFoundError):
            invoice_service.create_from_job_order("JO-9999/CARGO/I/2025")

    def test_payment_closes_job(self, invoice_service, job_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(finance_job.jo_number, actor=admin)
        invoice = invoice_service.send(invoice.invoice_number, actor=admin)
        assert invoice.status == InvoiceStatus.SENT
        assert invoice.sent_at is not None

        invoice = invoice_service.record_payment(invoice.invoice_number, actor=admin)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_at is not None
        assert job_service.get_job_order(finance_job.jo_number).status == JobOrderStatus.CLOSED

    def test_cancel_returns_job_to_finance(self, invoice_service, job_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(finance_job.jo_number, actor=admin)
        invoice = invoice_service.cancel(invoice.invoice_number, actor=admin)
        assert invoice.status == InvoiceStatus.CANCELLED
        job = job_service.get_job_order(finance_job.jo_number)
        assert job.status == JobOrderStatus.SUBMITTED_TO_FINANCE

        second = invoice_service.create_from_job_order(finance_job.jo_number, actor=admin)
        assert second.invoice_number.endswith("-0002")

    def test_paid_invoice_cannot_be_cancelled(self, invoice_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(finance_job.jo_number, actor=admin)
        invoice_service.send(invoice.invoice_number, actor=admin)
        invoice_service.record_payment(invoice.invoice_number, actor=admin)
        with pytest.raises(InvalidTransitionError, match="from paid to cancelled"):
            invoice_service.cancel(invoice.invoice_number, actor=admin)

    def test_draft_cannot_be_paid(self, invoice_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(finance_job.jo_number, actor=admin)
        with pytest.raises(InvalidTransitionError):
            invoice_service.record_payment(invoice.invoice_number, actor=admin)

    def test_mark_overdue(self, invoice_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(
            finance_job.jo_number, invoice_date=date(2025, 4, 1), actor=admin
        )
        invoice_service.send(invoice.invoice_number, actor=admin)

        assert invoice_service.mark_overdue(date(2025, 5, 1), actor=admin) == []
        flagged = invoice_service.mark_overdue(date(2025, 5, 2), actor=admin)
        assert [i.invoice_number for i in flagged] == [invoice.invoice_number]
        assert flagged[0].status == InvoiceStatus.OVERDUE

        paid = invoice_service.record_payment(invoice.invoice_number, actor=admin)
        assert paid.status == InvoiceStatus.PAID

    def test_list_invoices(self, invoice_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(finance_job.jo_number, actor=admin)
        assert [i.id for i in invoice_service.list_invoices(jo_number=finance_job.jo_number)] == [invoice.id]
        assert invoice_service.list_invoices(status="paid") == []
        with pytest.raises(NotFoundError):
            invoice_service.list_invoices(jo_number="JO-9999/CARGO/I/2025")

    def test_audited(self, invoice_service, audit_service, finance_job, admin):
        invoice = invoice_service.create_from_job_order(finance_job.jo_number, actor=admin)
        invoice_service.cancel(invoice.invoice_number, actor=admin)

        history = audit_service.entity_history("invoice", invoice.id)
        assert sorted(e.action for e in history) == ["cancel", "create"]
        assert all(e.module == "invoices" for e in history)
        job_history = audit_service.entity_history("job_order", finance_job.id)
        assert {"invoice_number": invoice.invoice_number} in [e.metadata for e in job_history]
