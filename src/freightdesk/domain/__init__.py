"""Domain layer for freightdesk application."""

# Services are resolved lazily: the database layer imports domain.entities,
# and the services import the database layer.
_SERVICES = {
    "AuditService": "freightdesk.domain.audit",
    "BkkService": "freightdesk.domain.bkk",
    "DrawingService": "freightdesk.domain.drawing",
    "IncidentService": "freightdesk.domain.incident",
    "InvoiceService": "freightdesk.domain.invoice",
    "InvoiceTermService": "freightdesk.domain.invoice_terms",
    "JobOrderService": "freightdesk.domain.job_order",
    "OverheadService": "freightdesk.domain.overhead",
    "ProfitabilityService": "freightdesk.domain.profitability",
    "UtilizationService": "freightdesk.domain.utilization",
    "VendorService": "freightdesk.domain.vendor",
}


def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = list(_SERVICES)
