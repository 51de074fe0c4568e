"""Shared pytest fixtures for freightdesk tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from freightdesk.database.factories import create_sqlite_database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.bkk import BkkService
from freightdesk.domain.drawing import DrawingService
from freightdesk.domain.entities import Actor
from freightdesk.domain.incident import IncidentService
from freightdesk.domain.invoice import InvoiceService
from freightdesk.domain.invoice_terms import InvoiceTermService
from freightdesk.domain.job_order import JobOrderService
from freightdesk.domain.overhead import OverheadService
from freightdesk.domain.profitability import ProfitabilityService
from freightdesk.domain.utilization import UtilizationService
from freightdesk.domain.vendor import VendorService


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def job_service(temp_db):
    return JobOrderService(temp_db)


@pytest.fixture
def terms_service(temp_db):
    return InvoiceTermService(temp_db)


@pytest.fixture
def overhead_service(temp_db):
    return OverheadService(temp_db)


@pytest.fixture
def bkk_service(temp_db):
    return BkkService(temp_db)


@pytest.fixture
def drawing_service(temp_db):
    return DrawingService(temp_db)


@pytest.fixture
def audit_service(temp_db):
    return AuditService(temp_db)


@pytest.fixture
def profitability_service(temp_db):
    return ProfitabilityService(temp_db)


@pytest.fixture
def invoice_service(temp_db):
    return InvoiceService(temp_db)


@pytest.fixture
def vendor_service(temp_db):
    return VendorService(temp_db)


@pytest.fixture
def incident_service(temp_db):
    return IncidentService(temp_db)


@pytest.fixture
def utilization_service(temp_db):
    return UtilizationService(temp_db)


@pytest.fixture
def admin():
    return Actor(email="admin@example.com", role="admin", user_id="u-admin")


@pytest.fixture
def ops_user():
    return Actor(email="ops@example.com", role="ops", user_id="u-ops")


@pytest.fixture
def finance_user():
    return Actor(email="finance@example.com", role="finance", user_id="u-finance")


@pytest.fixture
def sample_job(job_service, admin):
    """A job order worth Rp 10.000.000 with Rp 6.000.000 direct cost."""
    return job_service.create_job_order(
        customer_name="PT Maju Jaya",
        order_date=date(2025, 3, 14),
        project_name="Jakarta - Surabaya cargo",
        revenue=Decimal("10000000"),
        direct_cost=Decimal("6000000"),
        equipment_cost=Decimal("1000000"),
        actor=admin,
    )


@pytest.fixture
def finance_job(job_service, sample_job, admin):
    """The sample job order completed and submitted to finance."""
    job_service.transition_status(sample_job.jo_number, "completed", actor=admin)
    return job_service.transition_status(sample_job.jo_number, "submitted_to_finance", actor=admin)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
