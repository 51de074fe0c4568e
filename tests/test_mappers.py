"""Tests for database mappers."""

from datetime import UTC, date, datetime
from decimal import Decimal

from freightdesk.database.mappers import (
    audit_log_to_domain,
    bkk_to_domain,
    equipment_daily_log_to_domain,
    invoice_term_to_domain,
    invoice_to_domain,
    job_order_to_domain,
    overhead_category_to_domain,
    transmittal_to_domain,
)
from freightdesk.database.models import (
    AuditLog as ORMAuditLog,
    Bkk as ORMBkk,
    Customer as ORMCustomer,
    EquipmentDailyLog as ORMEquipmentDailyLog,
    Invoice as ORMInvoice,
    InvoiceLineItem as ORMInvoiceLineItem,
    InvoiceTerm as ORMInvoiceTerm,
    JobOrder as ORMJobOrder,
    OverheadCategory as ORMOverheadCategory,
    Transmittal as ORMTransmittal,
)
from freightdesk.domain.entities import (
    AllocationMethod,
    BkkStatus,
    DailyLogStatus,
    InvoiceStatus,
    JobOrder,
    JobOrderStatus,
    TransmittalPurpose,
    TriggerType,
)


class TestJobOrderMapper:
    def test_job_order_to_domain(self):
        customer = ORMCustomer(id=3, name="PT Maju Jaya", created_at=datetime.now(UTC))
        orm_job = ORMJobOrder(
            id=1,
            jo_number="JO-0001/CARGO/III/2025",
            customer_id=3,
            customer=customer,
            order_date=date(2025, 3, 14),
            status="completed",
            revenue=Decimal("10000000.00"),
            direct_cost=Decimal("6000000.00"),
            equipment_cost=None,
            overhead_total=None,
            has_surat_jalan=True,
            has_berita_acara=False,
            created_at=datetime.now(UTC),
        )
        job = job_order_to_domain(orm_job)

        assert isinstance(job, JobOrder)
        assert job.customer_name == "PT Maju Jaya"
        assert job.status == JobOrderStatus.COMPLETED
        assert job.revenue == Decimal("10000000")
        assert job.equipment_cost == Decimal("0")
        assert job.overhead_total == Decimal("0")
        assert job.has_surat_jalan


def test_invoice_term_to_domain():
    orm_term = ORMInvoiceTerm(
        position=0,
        term="down_payment",
        percentage=Decimal("30.00"),
        description="Down Payment",
        trigger="jo_created",
        invoiced=True,
        invoice_number="INV-001",
    )
    term = invoice_term_to_domain(orm_term)
    assert term.trigger == TriggerType.JO_CREATED
    assert term.percentage == Decimal("30")
    assert term.invoice_number == "INV-001"


def test_overhead_category_to_domain():
    orm_category = ORMOverheadCategory(
        id=2,
        code="INS",
        name="Insurance",
        allocation_method="fixed_per_job",
        rate=None,
        fixed_amount=Decimal("250000.00"),
        is_active=True,
    )
    category = overhead_category_to_domain(orm_category)
    assert category.allocation_method == AllocationMethod.FIXED_PER_JOB
    assert category.rate == Decimal("0")
    assert category.fixed_amount == Decimal("250000")


def test_bkk_to_domain_keeps_missing_settlement():
    orm_bkk = ORMBkk(
        id=1,
        bkk_number="BKK-2025-0001",
        job_order_id=1,
        purpose="Fuel",
        amount_requested=Decimal("1500000.00"),
        budget_amount=Decimal("6000000.00"),
        status="approved",
        created_at=datetime.now(UTC),
    )
    bkk = bkk_to_domain(orm_bkk)
    assert bkk.status == BkkStatus.APPROVED
    assert bkk.amount_spent is None
    assert bkk.amount_returned is None


def test_transmittal_to_domain():
    orm_transmittal = ORMTransmittal(
        id=1,
        transmittal_number="TR-2025-0001",
        recipient_company="PT Client",
        purpose="for_review",
        drawing_ids=[3, 1],
        created_at=datetime.now(UTC),
    )
    transmittal = transmittal_to_domain(orm_transmittal)
    assert transmittal.purpose == TransmittalPurpose.FOR_REVIEW
    assert transmittal.drawing_ids == (3, 1)


def test_audit_log_to_domain():
    orm_log = ORMAuditLog(
        id=1,
        timestamp=datetime(2025, 1, 1, 9, 0),
        action="update",
        module="finance",
        entity_type="bkk",
        entity_id="4",
        changed_fields=["status"],
        status="success",
        metadata_=None,
    )
    entry = audit_log_to_domain(orm_log)
    assert entry.changed_fields == ("status",)
    assert entry.metadata == {}
    assert entry.old_values is None


def test_invoice_to_domain_with_lines():
    orm_invoice = ORMInvoice(
        id=5,
        invoice_number="INV-2025-0001",
        job_order_id=1,
        invoice_date=date(2025, 4, 1),
        due_date=date(2025, 5, 1),
        status="sent",
        subtotal=Decimal("8000000.00"),
        vat_amount=Decimal("880000.00"),
        total_amount=Decimal("8880000.00"),
        created_at=datetime.now(UTC),
        line_items=[
            ORMInvoiceLineItem(
                line_number=1,
                description="Trucking",
                quantity=Decimal("2.00"),
                unit="trip",
                unit_price=Decimal("4000000.00"),
                subtotal=Decimal("8000000.00"),
            )
        ],
    )
    invoice = invoice_to_domain(orm_invoice)
    assert invoice.status == InvoiceStatus.SENT
    assert invoice.total_amount == Decimal("8880000")
    assert len(invoice.line_items) == 1
    assert invoice.line_items[0].quantity == Decimal("2")
    assert invoice.paid_at is None


def test_equipment_daily_log_keeps_missing_readings():
    orm_log = ORMEquipmentDailyLog(
        id=1,
        asset_id=2,
        log_date=date(2025, 3, 3),
        status="standby",
        start_km=Decimal("12000.0"),
        end_km=None,
        start_hours=None,
        end_hours=None,
        fuel_liters=None,
        job_order_id=None,
    )
    log = equipment_daily_log_to_domain(orm_log)
    assert log.status == DailyLogStatus.STANDBY
    assert log.start_km == Decimal("12000")
    assert log.end_km is None
    assert log.fuel_liters is None
