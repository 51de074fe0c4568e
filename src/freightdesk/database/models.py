"""SQLAlchemy models for freightdesk database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

# Rupiah amounts with two decimals
Money = Numeric(18, 2)


def _now() -> datetime:
    return datetime.now(UTC)


class Customer(Base):
    """Customer model."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    job_orders = relationship("JobOrder", back_populates="customer")


class JobOrder(Base):
    """Job order model with its final financial figures."""

    __tablename__ = "job_orders"

    id = Column(Integer, primary_key=True)
    jo_number = Column(String, unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    project_name = Column(String, nullable=True)
    order_date = Column(Date, nullable=False)
    status = Column(String, default="active", nullable=False)
    revenue = Column(Money, default=0, nullable=False)
    direct_cost = Column(Money, default=0, nullable=False)
    equipment_cost = Column(Money, default=0, nullable=True)
    overhead_total = Column(Money, default=0, nullable=True)
    has_surat_jalan = Column(Boolean, default=False, nullable=False)
    has_berita_acara = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    customer = relationship("Customer", back_populates="job_orders")
    invoice_terms = relationship(
        "InvoiceTerm",
        back_populates="job_order",
        cascade="all, delete-orphan",
        order_by="InvoiceTerm.position",
    )
    overhead_allocations = relationship(
        "JobOverheadAllocation", back_populates="job_order", cascade="all, delete-orphan"
    )
    bkks = relationship("Bkk", back_populates="job_order")


class InvoiceTerm(Base):
    """Invoice term of a job order, kept in invoicing order."""

    __tablename__ = "invoice_terms"

    id = Column(Integer, primary_key=True)
    job_order_id = Column(Integer, ForeignKey("job_orders.id"), nullable=False)
    position = Column(Integer, nullable=False)
    term = Column(String, nullable=False)
    percentage = Column(Numeric(5, 2), nullable=False)
    description = Column(String, nullable=False)
    trigger = Column(String, nullable=False)
    invoiced = Column(Boolean, default=False, nullable=False)
    invoice_number = Column(String, nullable=True)

    __table_args__ = (UniqueConstraint("job_order_id", "position", name="uq_term_position"),)

    job_order = relationship("JobOrder", back_populates="invoice_terms")


class OverheadCategory(Base):
    """Overhead category model."""

    __tablename__ = "overhead_categories"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    allocation_method = Column(String, nullable=False)
    rate = Column(Numeric(7, 4), default=0, nullable=False)
    fixed_amount = Column(Money, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class JobOverheadAllocation(Base):
    """Overhead amount allocated to a job order from one category."""

    __tablename__ = "job_overhead_allocations"

    id = Column(Integer, primary_key=True)
    job_order_id = Column(Integer, ForeignKey("job_orders.id"), nullable=False)
    category_code = Column(String, nullable=False)
    category_name = Column(String, nullable=False)
    allocation_method = Column(String, nullable=False)
    rate = Column(Numeric(7, 4), default=0, nullable=False)
    amount = Column(Money, nullable=False)

    job_order = relationship("JobOrder", back_populates="overhead_allocations")


class Bkk(Base):
    """Cash disbursement voucher model."""

    __tablename__ = "bkks"

    id = Column(Integer, primary_key=True)
    bkk_number = Column(String, unique=True, nullable=False)
    job_order_id = Column(Integer, ForeignKey("job_orders.id"), nullable=False)
    purpose = Column(String, nullable=False)
    amount_requested = Column(Money, nullable=False)
    budget_amount = Column(Money, nullable=False)
    status = Column(String, default="pending", nullable=False)
    requested_by = Column(String, nullable=True)
    release_method = Column(String, nullable=True)
    amount_spent = Column(Money, nullable=True)
    amount_returned = Column(Money, nullable=True)
    rejection_reason = Column(String, nullable=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    job_order = relationship("JobOrder", back_populates="bkks")


class Drawing(Base):
    """Engineering drawing model."""

    __tablename__ = "drawings"

    id = Column(Integer, primary_key=True)
    drawing_number = Column(String, unique=True, nullable=False)
    category_prefix = Column(String, nullable=False)
    title = Column(String, nullable=False)
    status = Column(String, default="draft", nullable=False)
    current_revision = Column(String, default="A", nullable=False)
    revision_count = Column(Integer, default=1, nullable=False)
    file_name = Column(String, nullable=True)
    job_order_id = Column(Integer, ForeignKey("job_orders.id"), nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    revisions = relationship(
        "DrawingRevision",
        back_populates="drawing",
        cascade="all, delete-orphan",
        order_by="DrawingRevision.id",
    )


class DrawingRevision(Base):
    """Revision history entry of a drawing."""

    __tablename__ = "drawing_revisions"

    id = Column(Integer, primary_key=True)
    drawing_id = Column(Integer, ForeignKey("drawings.id"), nullable=False)
    revision_number = Column(String, nullable=False)
    change_description = Column(Text, nullable=False)
    file_name = Column(String, nullable=True)
    is_current = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("drawing_id", "revision_number", name="uq_drawing_revision"),
    )

    drawing = relationship("Drawing", back_populates="revisions")


class Transmittal(Base):
    """Drawing transmittal model."""

    __tablename__ = "transmittals"

    id = Column(Integer, primary_key=True)
    transmittal_number = Column(String, unique=True, nullable=False)
    recipient_company = Column(String, nullable=False)
    purpose = Column(String, nullable=False)
    drawing_ids = Column(JSON, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    status = Column(String, default="draft", nullable=False)
    sent_at = Column(DateTime, nullable=True)
    sent_by = Column(String, nullable=True)
    acknowledged_at = Column(DateTime, nullable=True)


class Invoice(Base):
    """Customer invoice model."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String, unique=True, nullable=False)
    job_order_id = Column(Integer, ForeignKey("job_orders.id"), nullable=False)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String, default="draft", nullable=False)
    subtotal = Column(Money, nullable=False)
    vat_amount = Column(Money, nullable=False)
    total_amount = Column(Money, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.line_number",
    )


class InvoiceLineItem(Base):
    """Line item of an invoice."""

    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    line_number = Column(Integer, nullable=False)
    description = Column(String, nullable=False)
    quantity = Column(Numeric(12, 2), nullable=False)
    unit = Column(String, nullable=True)
    unit_price = Column(Money, nullable=False)
    subtotal = Column(Money, nullable=False)

    __table_args__ = (UniqueConstraint("invoice_id", "line_number", name="uq_invoice_line"),)

    invoice = relationship("Invoice", back_populates="line_items")


class Vendor(Base):
    """Vendor model."""

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True)
    vendor_code = Column(String, unique=True, nullable=False)
    vendor_name = Column(String, nullable=False)
    vendor_type = Column(String, nullable=False)
    contact_person = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_preferred = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    ratings = relationship("VendorRating", back_populates="vendor", order_by="VendorRating.id")
    documents = relationship(
        "VendorDocument", back_populates="vendor", order_by="VendorDocument.id"
    )


class VendorRating(Base):
    """Vendor performance rating model."""

    __tablename__ = "vendor_ratings"

    id = Column(Integer, primary_key=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    overall_rating = Column(Integer, nullable=False)
    was_on_time = Column(Boolean, nullable=True)
    had_issues = Column(Boolean, default=False, nullable=False)
    job_order_id = Column(Integer, ForeignKey("job_orders.id"), nullable=True)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    vendor = relationship("Vendor", back_populates="ratings")


class VendorDocument(Base):
    """Vendor document model."""

    __tablename__ = "vendor_documents"

    id = Column(Integer, primary_key=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False)
    document_type = Column(String, nullable=False)
    expiry_date = Column(Date, nullable=True)
    file_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    vendor = relationship("Vendor", back_populates="documents")


class Incident(Base):
    """HSE incident model."""

    __tablename__ = "incidents"

    id = Column(Integer, primary_key=True)
    incident_number = Column(String, unique=True, nullable=False)
    severity = Column(String, nullable=False)
    incident_type = Column(String, nullable=False)
    incident_date = Column(Date, nullable=False)
    location_type = Column(String, nullable=False)
    location_name = Column(String, nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String, default="reported", nullable=False)
    investigation_required = Column(Boolean, default=True, nullable=False)
    reported_by = Column(String, nullable=True)
    job_order_id = Column(Integer, ForeignKey("job_orders.id"), nullable=True)
    root_cause = Column(Text, nullable=True)
    investigation_started_at = Column(DateTime, nullable=True)
    investigation_completed_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closure_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    persons = relationship(
        "IncidentPerson",
        back_populates="incident",
        cascade="all, delete-orphan",
        order_by="IncidentPerson.id",
    )
    actions = relationship(
        "IncidentAction",
        back_populates="incident",
        cascade="all, delete-orphan",
        order_by="IncidentAction.id",
    )


class IncidentPerson(Base):
    """Person recorded against an incident."""

    __tablename__ = "incident_persons"

    id = Column(Integer, primary_key=True)
    incident_id = Column(Integer, ForeignKey("incidents.id"), nullable=False)
    person_type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    days_lost = Column(Integer, default=0, nullable=False)
    injury_description = Column(Text, nullable=True)

    incident = relationship("Incident", back_populates="persons")


class IncidentAction(Base):
    """Corrective or preventive action of an incident."""

    __tablename__ = "incident_actions"

    id = Column(Integer, primary_key=True)
    incident_id = Column(Integer, ForeignKey("incidents.id"), nullable=False)
    kind = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    responsible = Column(String, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String, default="pending", nullable=False)
    completed_at = Column(DateTime, nullable=True)

    incident = relationship("Incident", back_populates="actions")


class EquipmentAsset(Base):
    """Equipment asset model."""

    __tablename__ = "equipment_assets"

    id = Column(Integer, primary_key=True)
    asset_code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    status = Column(String, default="active", nullable=False)
    daily_rate = Column(Money, default=0, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class EquipmentDailyLog(Base):
    """Daily usage log of an equipment asset."""

    __tablename__ = "equipment_daily_logs"

    id = Column(Integer, primary_key=True)
    asset_id = Column(Integer, ForeignKey("equipment_assets.id"), nullable=False)
    log_date = Column(Date, nullable=False)
    status = Column(String, nullable=False)
    start_km = Column(Numeric(12, 1), nullable=True)
    end_km = Column(Numeric(12, 1), nullable=True)
    start_hours = Column(Numeric(10, 2), nullable=True)
    end_hours = Column(Numeric(10, 2), nullable=True)
    fuel_liters = Column(Numeric(10, 2), nullable=True)
    job_order_id = Column(Integer, ForeignKey("job_orders.id"), nullable=True)

    __table_args__ = (UniqueConstraint("asset_id", "log_date", name="uq_asset_log_date"),)


class AuditLog(Base):
    """Audit log model."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=_now, nullable=False, index=True)
    action = Column(String, nullable=False)
    module = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=True)
    entity_reference = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    user_id = Column(String, nullable=True)
    user_email = Column(String, nullable=True)
    user_role = Column(String, nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    changed_fields = Column(JSON, nullable=False, default=list)
    status = Column(String, default="success", nullable=False)
    error_message = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
