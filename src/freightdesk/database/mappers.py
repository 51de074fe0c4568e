"""Mapper functions to convert SQLAlchemy rows into domain entities.

Domain entities are frozen; enum-valued columns are stored as plain strings
and converted here.
"""

from decimal import Decimal

from freightdesk.domain import entities as domain
from freightdesk.database.models import (
    AuditLog as ORMAuditLog,
    Bkk as ORMBkk,
    Customer as ORMCustomer,
    Drawing as ORMDrawing,
    DrawingRevision as ORMDrawingRevision,
    EquipmentAsset as ORMEquipmentAsset,
    EquipmentDailyLog as ORMEquipmentDailyLog,
    Incident as ORMIncident,
    IncidentAction as ORMIncidentAction,
    IncidentPerson as ORMIncidentPerson,
    Invoice as ORMInvoice,
    InvoiceLineItem as ORMInvoiceLineItem,
    InvoiceTerm as ORMInvoiceTerm,
    JobOrder as ORMJobOrder,
    JobOverheadAllocation as ORMJobOverheadAllocation,
    OverheadCategory as ORMOverheadCategory,
    Transmittal as ORMTransmittal,
    Vendor as ORMVendor,
    VendorDocument as ORMVendorDocument,
    VendorRating as ORMVendorRating,
)


def _money(value) -> Decimal:
    return Decimal(value) if value is not None else Decimal("0")


def customer_to_domain(orm_customer: ORMCustomer) -> domain.Customer:
    return domain.Customer(
        id=orm_customer.id,
        name=orm_customer.name,
        created_at=orm_customer.created_at,
    )


def job_order_to_domain(orm_job: ORMJobOrder) -> domain.JobOrder:
    """Convert a job order row; missing equipment cost and overhead become 0."""
    return domain.JobOrder(
        id=orm_job.id,
        jo_number=orm_job.jo_number,
        customer_id=orm_job.customer_id,
        customer_name=orm_job.customer.name,
        project_name=orm_job.project_name,
        order_date=orm_job.order_date,
        status=domain.JobOrderStatus(orm_job.status),
        revenue=_money(orm_job.revenue),
        direct_cost=_money(orm_job.direct_cost),
        equipment_cost=_money(orm_job.equipment_cost),
        overhead_total=_money(orm_job.overhead_total),
        has_surat_jalan=orm_job.has_surat_jalan,
        has_berita_acara=orm_job.has_berita_acara,
        created_at=orm_job.created_at,
    )


def invoice_term_to_domain(orm_term: ORMInvoiceTerm) -> domain.InvoiceTerm:
    return domain.InvoiceTerm(
        term=orm_term.term,
        percentage=Decimal(orm_term.percentage),
        description=orm_term.description,
        trigger=domain.TriggerType(orm_term.trigger),
        invoiced=orm_term.invoiced,
        invoice_number=orm_term.invoice_number,
    )


def overhead_category_to_domain(orm_category: ORMOverheadCategory) -> domain.OverheadCategory:
    return domain.OverheadCategory(
        id=orm_category.id,
        code=orm_category.code,
        name=orm_category.name,
        allocation_method=domain.AllocationMethod(orm_category.allocation_method),
        rate=_money(orm_category.rate),
        fixed_amount=_money(orm_category.fixed_amount),
        is_active=orm_category.is_active,
    )


def overhead_allocation_to_domain(
    orm_allocation: ORMJobOverheadAllocation,
) -> domain.OverheadAllocation:
    return domain.OverheadAllocation(
        category_code=orm_allocation.category_code,
        category_name=orm_allocation.category_name,
        allocation_method=domain.AllocationMethod(orm_allocation.allocation_method),
        rate=_money(orm_allocation.rate),
        amount=_money(orm_allocation.amount),
    )


def bkk_to_domain(orm_bkk: ORMBkk) -> domain.Bkk:
    return domain.Bkk(
        id=orm_bkk.id,
        bkk_number=orm_bkk.bkk_number,
        job_order_id=orm_bkk.job_order_id,
        purpose=orm_bkk.purpose,
        amount_requested=_money(orm_bkk.amount_requested),
        budget_amount=_money(orm_bkk.budget_amount),
        status=domain.BkkStatus(orm_bkk.status),
        requested_by=orm_bkk.requested_by,
        release_method=orm_bkk.release_method,
        amount_spent=Decimal(orm_bkk.amount_spent) if orm_bkk.amount_spent is not None else None,
        amount_returned=(
            Decimal(orm_bkk.amount_returned) if orm_bkk.amount_returned is not None else None
        ),
        rejection_reason=orm_bkk.rejection_reason,
        created_at=orm_bkk.created_at,
        vendor_id=orm_bkk.vendor_id,
    )


def drawing_to_domain(orm_drawing: ORMDrawing) -> domain.Drawing:
    return domain.Drawing(
        id=orm_drawing.id,
        drawing_number=orm_drawing.drawing_number,
        category_prefix=orm_drawing.category_prefix,
        title=orm_drawing.title,
        status=domain.DrawingStatus(orm_drawing.status),
        current_revision=orm_drawing.current_revision,
        revision_count=orm_drawing.revision_count,
        file_name=orm_drawing.file_name,
        job_order_id=orm_drawing.job_order_id,
        created_at=orm_drawing.created_at,
    )


def drawing_revision_to_domain(orm_revision: ORMDrawingRevision) -> domain.DrawingRevision:
    return domain.DrawingRevision(
        id=orm_revision.id,
        drawing_id=orm_revision.drawing_id,
        revision_number=orm_revision.revision_number,
        change_description=orm_revision.change_description,
        file_name=orm_revision.file_name,
        is_current=orm_revision.is_current,
        created_at=orm_revision.created_at,
    )


def transmittal_to_domain(orm_transmittal: ORMTransmittal) -> domain.Transmittal:
    return domain.Transmittal(
        id=orm_transmittal.id,
        transmittal_number=orm_transmittal.transmittal_number,
        recipient_company=orm_transmittal.recipient_company,
        purpose=domain.TransmittalPurpose(orm_transmittal.purpose),
        drawing_ids=tuple(orm_transmittal.drawing_ids or ()),
        notes=orm_transmittal.notes,
        created_at=orm_transmittal.created_at,
        status=domain.TransmittalStatus(orm_transmittal.status or "draft"),
        sent_at=orm_transmittal.sent_at,
        sent_by=orm_transmittal.sent_by,
        acknowledged_at=orm_transmittal.acknowledged_at,
    )


def _optional_decimal(value):
    return Decimal(value) if value is not None else None


def invoice_line_item_to_domain(orm_item: ORMInvoiceLineItem) -> domain.InvoiceLineItem:
    return domain.InvoiceLineItem(
        line_number=orm_item.line_number,
        description=orm_item.description,
        quantity=Decimal(orm_item.quantity),
        unit_price=_money(orm_item.unit_price),
        subtotal=_money(orm_item.subtotal),
        unit=orm_item.unit,
    )


def invoice_to_domain(orm_invoice: ORMInvoice) -> domain.Invoice:
    return domain.Invoice(
        id=orm_invoice.id,
        invoice_number=orm_invoice.invoice_number,
        job_order_id=orm_invoice.job_order_id,
        invoice_date=orm_invoice.invoice_date,
        due_date=orm_invoice.due_date,
        status=domain.InvoiceStatus(orm_invoice.status),
        subtotal=_money(orm_invoice.subtotal),
        vat_amount=_money(orm_invoice.vat_amount),
        total_amount=_money(orm_invoice.total_amount),
        line_items=tuple(invoice_line_item_to_domain(i) for i in orm_invoice.line_items),
        notes=orm_invoice.notes,
        created_at=orm_invoice.created_at,
        sent_at=orm_invoice.sent_at,
        paid_at=orm_invoice.paid_at,
        cancelled_at=orm_invoice.cancelled_at,
    )


def vendor_to_domain(orm_vendor: ORMVendor) -> domain.Vendor:
    return domain.Vendor(
        id=orm_vendor.id,
        vendor_code=orm_vendor.vendor_code,
        vendor_name=orm_vendor.vendor_name,
        vendor_type=domain.VendorType(orm_vendor.vendor_type),
        contact_person=orm_vendor.contact_person,
        phone=orm_vendor.phone,
        email=orm_vendor.email,
        is_active=bool(orm_vendor.is_active),
        is_preferred=bool(orm_vendor.is_preferred),
        is_verified=bool(orm_vendor.is_verified),
        created_at=orm_vendor.created_at,
    )


def vendor_rating_to_domain(orm_rating: ORMVendorRating) -> domain.VendorRating:
    return domain.VendorRating(
        id=orm_rating.id,
        vendor_id=orm_rating.vendor_id,
        overall_rating=orm_rating.overall_rating,
        was_on_time=orm_rating.was_on_time,
        had_issues=bool(orm_rating.had_issues),
        job_order_id=orm_rating.job_order_id,
        comments=orm_rating.comments,
        created_at=orm_rating.created_at,
    )


def vendor_document_to_domain(orm_document: ORMVendorDocument) -> domain.VendorDocument:
    return domain.VendorDocument(
        id=orm_document.id,
        vendor_id=orm_document.vendor_id,
        document_type=domain.VendorDocumentType(orm_document.document_type),
        expiry_date=orm_document.expiry_date,
        file_name=orm_document.file_name,
        created_at=orm_document.created_at,
    )


def incident_person_to_domain(orm_person: ORMIncidentPerson) -> domain.IncidentPerson:
    return domain.IncidentPerson(
        id=orm_person.id,
        incident_id=orm_person.incident_id,
        person_type=domain.PersonType(orm_person.person_type),
        name=orm_person.name,
        days_lost=orm_person.days_lost or 0,
        injury_description=orm_person.injury_description,
    )


def incident_action_to_domain(orm_action: ORMIncidentAction) -> domain.IncidentAction:
    return domain.IncidentAction(
        id=orm_action.id,
        incident_id=orm_action.incident_id,
        kind=orm_action.kind,
        description=orm_action.description,
        responsible=orm_action.responsible,
        due_date=orm_action.due_date,
        status=domain.ActionStatus(orm_action.status),
        completed_at=orm_action.completed_at,
    )


def incident_to_domain(orm_incident: ORMIncident) -> domain.Incident:
    """Convert an incident row together with its persons and actions."""
    return domain.Incident(
        id=orm_incident.id,
        incident_number=orm_incident.incident_number,
        severity=domain.IncidentSeverity(orm_incident.severity),
        incident_type=domain.IncidentType(orm_incident.incident_type),
        incident_date=orm_incident.incident_date,
        location_type=domain.LocationType(orm_incident.location_type),
        title=orm_incident.title,
        description=orm_incident.description,
        status=domain.IncidentStatus(orm_incident.status),
        investigation_required=bool(orm_incident.investigation_required),
        reported_by=orm_incident.reported_by,
        created_at=orm_incident.created_at,
        location_name=orm_incident.location_name,
        job_order_id=orm_incident.job_order_id,
        root_cause=orm_incident.root_cause,
        investigation_started_at=orm_incident.investigation_started_at,
        investigation_completed_at=orm_incident.investigation_completed_at,
        closed_at=orm_incident.closed_at,
        closure_notes=orm_incident.closure_notes,
        persons=tuple(incident_person_to_domain(p) for p in orm_incident.persons),
        actions=tuple(incident_action_to_domain(a) for a in orm_incident.actions),
    )


def equipment_asset_to_domain(orm_asset: ORMEquipmentAsset) -> domain.EquipmentAsset:
    return domain.EquipmentAsset(
        id=orm_asset.id,
        asset_code=orm_asset.asset_code,
        name=orm_asset.name,
        status=orm_asset.status,
        daily_rate=_money(orm_asset.daily_rate),
        created_at=orm_asset.created_at,
    )


def equipment_daily_log_to_domain(orm_log: ORMEquipmentDailyLog) -> domain.EquipmentDailyLog:
    return domain.EquipmentDailyLog(
        id=orm_log.id,
        asset_id=orm_log.asset_id,
        log_date=orm_log.log_date,
        status=domain.DailyLogStatus(orm_log.status),
        start_km=_optional_decimal(orm_log.start_km),
        end_km=_optional_decimal(orm_log.end_km),
        start_hours=_optional_decimal(orm_log.start_hours),
        end_hours=_optional_decimal(orm_log.end_hours),
        fuel_liters=_optional_decimal(orm_log.fuel_liters),
        job_order_id=orm_log.job_order_id,
    )


def audit_log_to_domain(orm_log: ORMAuditLog) -> domain.AuditLogEntry:
    return domain.AuditLogEntry(
        id=orm_log.id,
        timestamp=orm_log.timestamp,
        action=orm_log.action,
        module=orm_log.module,
        entity_type=orm_log.entity_type,
        entity_id=orm_log.entity_id,
        entity_reference=orm_log.entity_reference,
        description=orm_log.description,
        user_id=orm_log.user_id,
        user_email=orm_log.user_email,
        user_role=orm_log.user_role,
        old_values=orm_log.old_values,
        new_values=orm_log.new_values,
        changed_fields=tuple(orm_log.changed_fields or ()),
        status=orm_log.status,
        error_message=orm_log.error_message,
        metadata=dict(orm_log.metadata_ or {}),
    )
