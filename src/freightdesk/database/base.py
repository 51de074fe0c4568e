"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence
from datetime import date
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from freightdesk.domain.entities import (
    AuditLogEntry,
    Bkk,
    Customer,
    Drawing,
    DrawingRevision,
    EquipmentAsset,
    EquipmentDailyLog,
    Incident,
    Invoice,
    InvoiceLineItem,
    InvoiceTerm,
    JobOrder,
    OverheadAllocation,
    OverheadCategory,
    Transmittal,
    Vendor,
    VendorDocument,
    VendorRating,
)


class Database(ABC):
    """Abstract database interface for freightdesk."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Customer operations
    @abstractmethod
    def create_customer(self, name: str) -> int:
        """Create a customer. Returns customer ID."""
        pass

    @abstractmethod
    def get_customer_by_name(self, name: str) -> Optional[Customer]:
        """Get customer by exact name."""
        pass

    # Job order operations
    @abstractmethod
    def create_job_order(
        self,
        jo_number: str,
        customer_id: int,
        order_date: date,
        project_name: Optional[str] = None,
        revenue: Decimal = Decimal("0"),
        direct_cost: Decimal = Decimal("0"),
        equipment_cost: Decimal = Decimal("0"),
    ) -> int:
        """Create a job order. Returns job order ID."""
        pass

    @abstractmethod
    def get_job_order(self, job_order_id: int) -> Optional[JobOrder]:
        """Get job order by ID."""
        pass

    @abstractmethod
    def get_job_order_by_number(self, jo_number: str) -> Optional[JobOrder]:
        """Get job order by its JO number."""
        pass

    @abstractmethod
    def count_job_orders_for_month(self, year: int, month: int) -> int:
        """Count job orders dated in the given month."""
        pass

    @abstractmethod
    def list_job_orders(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[JobOrder]:
        """List job orders, optionally filtered by order date and status."""
        pass

    @abstractmethod
    def update_job_order(self, job_order_id: int, **fields: Any) -> None:
        """Update job order columns given as keyword arguments."""
        pass

    # Invoice term operations
    @abstractmethod
    def replace_invoice_terms(self, job_order_id: int, terms: Sequence[InvoiceTerm]) -> None:
        """Replace all invoice terms of a job order, keeping their order."""
        pass

    @abstractmethod
    def list_invoice_terms(self, job_order_id: int) -> list[InvoiceTerm]:
        """List invoice terms of a job order in position order."""
        pass

    @abstractmethod
    def mark_invoice_term_invoiced(
        self, job_order_id: int, position: int, invoice_number: str
    ) -> None:
        """Flag the term at a position as invoiced."""
        pass

    # Overhead operations
    @abstractmethod
    def create_overhead_category(
        self,
        code: str,
        name: str,
        allocation_method: str,
        rate: Decimal = Decimal("0"),
        fixed_amount: Decimal = Decimal("0"),
    ) -> int:
        """Create an overhead category. Returns category ID."""
        pass

    @abstractmethod
    def get_overhead_category_by_code(self, code: str) -> Optional[OverheadCategory]:
        """Get overhead category by code."""
        pass

    @abstractmethod
    def list_overhead_categories(self, active_only: bool = False) -> list[OverheadCategory]:
        """List overhead categories ordered by code."""
        pass

    @abstractmethod
    def replace_job_overhead_allocations(
        self, job_order_id: int, allocations: Sequence[OverheadAllocation]
    ) -> None:
        """Replace the overhead allocations stored for a job order."""
        pass

    @abstractmethod
    def list_job_overhead_allocations(self, job_order_id: int) -> list[OverheadAllocation]:
        """List overhead allocations stored for a job order."""
        pass

    # BKK operations
    @abstractmethod
    def create_bkk(
        self,
        bkk_number: str,
        job_order_id: int,
        purpose: str,
        amount_requested: Decimal,
        budget_amount: Decimal,
        requested_by: Optional[str] = None,
        vendor_id: Optional[int] = None,
    ) -> int:
        """Create a pending BKK. Returns BKK ID."""
        pass

    @abstractmethod
    def get_bkk(self, bkk_id: int) -> Optional[Bkk]:
        """Get BKK by ID."""
        pass

    @abstractmethod
    def count_bkks_for_year(self, year: int) -> int:
        """Count BKKs numbered in the given year."""
        pass

    @abstractmethod
    def list_bkks(
        self,
        job_order_id: Optional[int] = None,
        status: Optional[str] = None,
        vendor_id: Optional[int] = None,
    ) -> list[Bkk]:
        """List BKKs, optionally filtered by job order, status and vendor."""
        pass

    @abstractmethod
    def update_bkk(self, bkk_id: int, **fields: Any) -> None:
        """Update BKK columns given as keyword arguments."""
        pass

    # Drawing operations
    @abstractmethod
    def create_drawing(
        self,
        drawing_number: str,
        category_prefix: str,
        title: str,
        file_name: Optional[str] = None,
        job_order_id: Optional[int] = None,
    ) -> int:
        """Create a draft drawing at revision A. Returns drawing ID."""
        pass

    @abstractmethod
    def get_drawing(self, drawing_id: int) -> Optional[Drawing]:
        """Get drawing by ID."""
        pass

    @abstractmethod
    def count_drawings(self, category_prefix: str, year: int) -> int:
        """Count drawings numbered under a prefix in a year."""
        pass

    @abstractmethod
    def list_drawings(self) -> list[Drawing]:
        """List all drawings."""
        pass

    @abstractmethod
    def update_drawing(self, drawing_id: int, **fields: Any) -> None:
        """Update drawing columns given as keyword arguments."""
        pass

    @abstractmethod
    def add_drawing_revision(
        self,
        drawing_id: int,
        revision_number: str,
        change_description: str,
        file_name: Optional[str] = None,
    ) -> int:
        """Add a revision and make it the only current one. Returns revision ID."""
        pass

    @abstractmethod
    def list_drawing_revisions(self, drawing_id: int) -> list[DrawingRevision]:
        """List revisions of a drawing, oldest first."""
        pass

    @abstractmethod
    def create_transmittal(
        self,
        transmittal_number: str,
        recipient_company: str,
        purpose: str,
        drawing_ids: Sequence[int],
        notes: Optional[str] = None,
    ) -> int:
        """Create a transmittal. Returns transmittal ID."""
        pass

    @abstractmethod
    def get_transmittal(self, transmittal_id: int) -> Optional[Transmittal]:
        """Get transmittal by ID."""
        pass

    @abstractmethod
    def count_transmittals_for_year(self, year: int) -> int:
        """Count transmittals numbered in the given year."""
        pass

    @abstractmethod
    def list_transmittals(self, status: Optional[str] = None) -> list[Transmittal]:
        """List transmittals in number order, optionally by status."""
        pass

    @abstractmethod
    def update_transmittal(self, transmittal_id: int, **fields: Any) -> None:
        """Update transmittal columns given as keyword arguments."""
        pass

    # Invoice operations
    @abstractmethod
    def create_invoice(
        self,
        invoice_number: str,
        job_order_id: int,
        invoice_date: date,
        due_date: date,
        subtotal: Decimal,
        vat_amount: Decimal,
        total_amount: Decimal,
        line_items: Sequence[InvoiceLineItem],
        notes: Optional[str] = None,
    ) -> int:
        """Create a draft invoice with its line items. Returns invoice ID."""
        pass

    @abstractmethod
    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        """Get invoice by ID."""
        pass

    @abstractmethod
    def get_invoice_by_number(self, invoice_number: str) -> Optional[Invoice]:
        """Get invoice by invoice number."""
        pass

    @abstractmethod
    def count_invoices_for_year(self, year: int) -> int:
        """Count invoices numbered in the given year."""
        pass

    @abstractmethod
    def list_invoices(
        self, job_order_id: Optional[int] = None, status: Optional[str] = None
    ) -> list[Invoice]:
        """List invoices, newest first."""
        pass

    @abstractmethod
    def update_invoice(self, invoice_id: int, **fields: Any) -> None:
        """Update invoice columns given as keyword arguments."""
        pass

    # Vendor operations
    @abstractmethod
    def create_vendor(
        self,
        vendor_code: str,
        vendor_name: str,
        vendor_type: str,
        contact_person: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        is_preferred: bool = False,
    ) -> int:
        """Create an active, unverified vendor. Returns vendor ID."""
        pass

    @abstractmethod
    def get_vendor(self, vendor_id: int) -> Optional[Vendor]:
        """Get vendor by ID."""
        pass

    @abstractmethod
    def get_vendor_by_code(self, vendor_code: str) -> Optional[Vendor]:
        """Get vendor by vendor code."""
        pass

    @abstractmethod
    def count_vendors(self) -> int:
        """Count all vendors ever registered."""
        pass

    @abstractmethod
    def list_vendors(self) -> list[Vendor]:
        """List vendors in code order."""
        pass

    @abstractmethod
    def update_vendor(self, vendor_id: int, **fields: Any) -> None:
        """Update vendor columns given as keyword arguments."""
        pass

    @abstractmethod
    def add_vendor_rating(
        self,
        vendor_id: int,
        overall_rating: int,
        was_on_time: Optional[bool] = None,
        had_issues: bool = False,
        job_order_id: Optional[int] = None,
        comments: Optional[str] = None,
    ) -> int:
        """Record a vendor rating. Returns rating ID."""
        pass

    @abstractmethod
    def list_vendor_ratings(self, vendor_id: int) -> list[VendorRating]:
        """List ratings of a vendor, oldest first."""
        pass

    @abstractmethod
    def add_vendor_document(
        self,
        vendor_id: int,
        document_type: str,
        expiry_date: Optional[date] = None,
        file_name: Optional[str] = None,
    ) -> int:
        """Record a vendor document. Returns document ID."""
        pass

    @abstractmethod
    def list_vendor_documents(self, vendor_id: Optional[int] = None) -> list[VendorDocument]:
        """List vendor documents, optionally for one vendor."""
        pass

    # Incident operations
    @abstractmethod
    def create_incident(
        self,
        incident_number: str,
        severity: str,
        incident_type: str,
        incident_date: date,
        location_type: str,
        title: str,
        description: str,
        investigation_required: bool = True,
        reported_by: Optional[str] = None,
        location_name: Optional[str] = None,
        job_order_id: Optional[int] = None,
    ) -> int:
        """Create a reported incident. Returns incident ID."""
        pass

    @abstractmethod
    def get_incident(self, incident_id: int) -> Optional[Incident]:
        """Get incident with its persons and actions."""
        pass

    @abstractmethod
    def get_incident_by_number(self, incident_number: str) -> Optional[Incident]:
        """Get incident by incident number."""
        pass

    @abstractmethod
    def count_incidents_for_year(self, year: int) -> int:
        """Count incidents numbered in the given year."""
        pass

    @abstractmethod
    def list_incidents(
        self,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Incident]:
        """List incidents by incident date, newest first."""
        pass

    @abstractmethod
    def update_incident(self, incident_id: int, **fields: Any) -> None:
        """Update incident columns given as keyword arguments."""
        pass

    @abstractmethod
    def add_incident_person(
        self,
        incident_id: int,
        person_type: str,
        name: str,
        days_lost: int = 0,
        injury_description: Optional[str] = None,
    ) -> int:
        """Record a person against an incident. Returns person ID."""
        pass

    @abstractmethod
    def add_incident_action(
        self,
        incident_id: int,
        kind: str,
        description: str,
        responsible: str,
        due_date: date,
    ) -> int:
        """Record a pending corrective or preventive action. Returns action ID."""
        pass

    @abstractmethod
    def update_incident_action(self, action_id: int, **fields: Any) -> None:
        """Update action columns given as keyword arguments."""
        pass

    # Equipment operations
    @abstractmethod
    def create_equipment_asset(
        self, asset_code: str, name: str, daily_rate: Decimal = Decimal("0")
    ) -> int:
        """Create an active equipment asset. Returns asset ID."""
        pass

    @abstractmethod
    def get_equipment_asset_by_code(self, asset_code: str) -> Optional[EquipmentAsset]:
        """Get equipment asset by code."""
        pass

    @abstractmethod
    def list_equipment_assets(self) -> list[EquipmentAsset]:
        """List equipment assets in code order."""
        pass

    @abstractmethod
    def update_equipment_asset(self, asset_id: int, **fields) -> None:
        """Update equipment asset fields."""
        pass

    @abstractmethod
    def create_equipment_daily_log(
        self,
        asset_id: int,
        log_date: date,
        status: str,
        start_km: Optional[Decimal] = None,
        end_km: Optional[Decimal] = None,
        start_hours: Optional[Decimal] = None,
        end_hours: Optional[Decimal] = None,
        fuel_liters: Optional[Decimal] = None,
        job_order_id: Optional[int] = None,
    ) -> int:
        """Record one day of an asset's use. Returns log ID."""
        pass

    @abstractmethod
    def list_equipment_daily_logs(
        self,
        asset_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[EquipmentDailyLog]:
        """List daily logs by date."""
        pass

    # Audit log operations
    @abstractmethod
    def create_audit_log(self, entry: AuditLogEntry) -> int:
        """Persist an audit log entry. Returns entry ID."""
        pass

    @abstractmethod
    def list_audit_logs(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> list[AuditLogEntry]:
        """List audit log entries, newest first."""
        pass
