"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class InvalidTransitionError(ValidationError):
    """Workflow status change not allowed from the current status."""


def not_found(entity: str, key: int | str) -> str:
    """Return message for a missing entity."""
    return f"{entity} {key} not found"


def invalid_transition(entity: str, current: str, target: str) -> str:
    """Return message for a rejected workflow transition."""
    return f"Cannot transition {entity} from {current} to {target}"


def terms_total_invalid(total) -> str:
    """Return message when invoice terms do not add up to 100%."""
    return f"Invoice terms must total 100% (currently {total}%)"


def terms_locked(job_order_number: str) -> str:
    """Return message when terms can no longer be edited."""
    return (
        f"Cannot change invoice terms of {job_order_number}: "
        "at least one term has already been invoiced"
    )


def insufficient_budget(requested, available) -> str:
    """Return message when a disbursement exceeds the remaining budget."""
    return f"Requested amount {requested} exceeds available budget {available}"


def action_not_allowed(action: str, entity_ref: str, role: str) -> str:
    """Return message when a role may not act on an entity in its status."""
    return f"Role '{role}' cannot {action} {entity_ref} in its current status"
