"""Engineering drawings: numbering, revisions, review workflow and transmittals."""

import logging
import re
from datetime import UTC, date, datetime
from typing import Iterable, Optional, Sequence

from freightdesk.database.base import Database
from freightdesk.domain.audit import AuditService
from freightdesk.domain.entities import (
    Actor,
    Drawing,
    DrawingRevision,
    DrawingStatus,
    Transmittal,
    TransmittalPurpose,
    TransmittalStatus,
    ValidationResult,
)
from freightdesk.domain.errors import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
    invalid_transition,
    not_found,
)

logger = logging.getLogger(__name__)

ALLOWED_FILE_TYPES = frozenset({"dwg", "pdf", "dxf"})
INITIAL_REVISION = "A"

VALID_STATUS_TRANSITIONS: dict[DrawingStatus, tuple[DrawingStatus, ...]] = {
    DrawingStatus.DRAFT: (DrawingStatus.FOR_REVIEW,),
    DrawingStatus.FOR_REVIEW: (DrawingStatus.FOR_APPROVAL, DrawingStatus.DRAFT),
    DrawingStatus.FOR_APPROVAL: (DrawingStatus.APPROVED, DrawingStatus.FOR_REVIEW),
    DrawingStatus.APPROVED: (DrawingStatus.ISSUED,),
    DrawingStatus.ISSUED: (DrawingStatus.SUPERSEDED,),
    DrawingStatus.SUPERSEDED: (),
}

TRANSMITTAL_TRANSITIONS: dict[TransmittalStatus, tuple[TransmittalStatus, ...]] = {
    TransmittalStatus.DRAFT: (TransmittalStatus.SENT,),
    TransmittalStatus.SENT: (TransmittalStatus.ACKNOWLEDGED,),
    TransmittalStatus.ACKNOWLEDGED: (),
}

_DIGITS = re.compile(r"(\d+)")


def generate_drawing_number(prefix: str, sequence: int, year: Optional[int] = None) -> str:
    """Format a drawing number, e.g. GA-2025-0001."""
    year = year or date.today().year
    return f"{prefix.upper()}-{year}-{sequence:04d}"


def generate_transmittal_number(sequence: int, year: Optional[int] = None) -> str:
    year = year or date.today().year
    return f"TR-{year}-{sequence:04d}"


def get_next_revision(current: str) -> str:
    """Return the revision letter after ``current``.

    Letters count like spreadsheet columns: '' -> A, A -> B, Z -> AA,
    AZ -> BA.
    """
    if not current:
        return INITIAL_REVISION

    letters = list(current.upper())
    i = len(letters) - 1
    while i >= 0:
        if letters[i] != "Z":
            letters[i] = chr(ord(letters[i]) + 1)
            return "".join(letters)
        letters[i] = "A"
        i -= 1
    return "A" + "".join(letters)


def get_file_extension(file_name: str) -> str:
    """Lower-cased extension without the dot, or '' when there is none."""
    if not file_name or "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[1].lower()


def is_valid_drawing_file_type(file_name: str) -> bool:
    return get_file_extension(file_name) in ALLOWED_FILE_TYPES


def is_valid_status_transition(
    current: DrawingStatus | str, target: DrawingStatus | str
) -> bool:
    return target in VALID_STATUS_TRANSITIONS.get(DrawingStatus(current), ())


def is_valid_transmittal_transition(
    current: TransmittalStatus | str, target: TransmittalStatus | str
) -> bool:
    return target in TRANSMITTAL_TRANSITIONS.get(TransmittalStatus(current), ())


def validate_drawing_input(
    title: Optional[str], category_prefix: Optional[str], file_name: Optional[str] = None
) -> ValidationResult:
    errors = []
    if not title or not title.strip():
        errors.append("Drawing title is required")
    if not category_prefix or not category_prefix.strip():
        errors.append("Please select a drawing category")
    if file_name and not is_valid_drawing_file_type(file_name):
        errors.append("File must be a DWG, PDF or DXF file")
    return ValidationResult.from_errors(errors)


def validate_revision_input(
    change_description: Optional[str], file_name: Optional[str] = None
) -> ValidationResult:
    errors = []
    if not change_description or not change_description.strip():
        errors.append("Change description is required for new revisions")
    if file_name and not is_valid_drawing_file_type(file_name):
        errors.append("File must be a DWG, PDF or DXF file")
    return ValidationResult.from_errors(errors)


def validate_transmittal_input(
    recipient_company: Optional[str], purpose: Optional[str], drawing_ids: Sequence[int]
) -> ValidationResult:
    errors = []
    if not recipient_company or not recipient_company.strip():
        errors.append("Recipient company is required")
    if purpose not in {p.value for p in TransmittalPurpose}:
        errors.append("Invalid transmittal purpose")
    if not drawing_ids:
        errors.append("At least one drawing is required")
    return ValidationResult.from_errors(errors)


def filter_drawings(
    drawings: Iterable[Drawing],
    category_prefix: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> list[Drawing]:
    """Filter by category, status and a case-insensitive number/title search."""
    needle = search.lower() if search else None
    return [
        d
        for d in drawings
        if (category_prefix is None or d.category_prefix == category_prefix.upper())
        and (status is None or d.status == status)
        and (
            needle is None
            or needle in d.drawing_number.lower()
            or needle in d.title.lower()
        )
    ]


def _natural_key(text: str):
    return [(0, int(part), "") if part.isdigit() else (1, 0, part.lower()) for part in _DIGITS.split(text)]


def sort_drawings_by_number(drawings: Iterable[Drawing]) -> list[Drawing]:
    """Sort by drawing number with embedded numbers compared numerically."""
    return sorted(drawings, key=lambda d: _natural_key(d.drawing_number))


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.valid:
        raise ValidationError("; ".join(result.errors))


class DrawingService:
    """Service for drawing registration, revision control and transmittals."""

    def __init__(self, db: Database):
        """Initialize drawing service.

        Args:
            db: Database instance
        """
        self.db = db
        self.audit = AuditService(db)

    def get_drawing(self, drawing_id: int) -> Drawing:
        drawing = self.db.get_drawing(drawing_id)
        if drawing is None:
            raise NotFoundError(not_found("Drawing", drawing_id))
        return drawing

    def list_drawings(
        self,
        category_prefix: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Drawing]:
        drawings = filter_drawings(self.db.list_drawings(), category_prefix, status, search)
        return sort_drawings_by_number(drawings)

    def list_revisions(self, drawing_id: int) -> list[DrawingRevision]:
        self.get_drawing(drawing_id)
        return self.db.list_drawing_revisions(drawing_id)

    def create_drawing(
        self,
        category_prefix: str,
        title: str,
        file_name: Optional[str] = None,
        jo_number: Optional[str] = None,
        actor: Optional[Actor] = None,
        year: Optional[int] = None,
    ) -> Drawing:
        """Register a new drawing as a draft at revision A.

        Args:
            category_prefix: Category code used as the number prefix (e.g. "GA")
            title: Drawing title
            file_name: Optional DWG/PDF/DXF file
            jo_number: Optional job order the drawing belongs to
            actor: User registering the drawing
            year: Year in the drawing number; defaults to the current year

        Returns:
            The new drawing

        Raises:
            ValidationError: If the title, category or file type is invalid
            NotFoundError: If the job order doesn't exist
        """
        _raise_if_invalid(validate_drawing_input(title, category_prefix, file_name))

        job_order_id = None
        if jo_number:
            job = self.db.get_job_order_by_number(jo_number)
            if job is None:
                raise NotFoundError(not_found("Job order", jo_number))
            job_order_id = job.id

        prefix = category_prefix.strip().upper()
        year = year or date.today().year
        number = generate_drawing_number(prefix, self.db.count_drawings(prefix, year) + 1, year)

        drawing_id = self.db.create_drawing(
            drawing_number=number,
            category_prefix=prefix,
            title=title.strip(),
            file_name=file_name,
            job_order_id=job_order_id,
        )
        self.db.add_drawing_revision(drawing_id, INITIAL_REVISION, "Initial issue", file_name)
        self.audit.log(
            "create",
            "projects",
            "drawing",
            entity_id=drawing_id,
            entity_reference=number,
            new_values={"title": title.strip(), "status": DrawingStatus.DRAFT},
            actor=actor,
        )
        logger.info("Registered drawing %s", number)
        return self.get_drawing(drawing_id)

    def revise(
        self,
        drawing_id: int,
        change_description: str,
        file_name: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Drawing:
        """Start a new revision; the drawing goes back to draft.

        Raises:
            ValidationError: If the description or file type is invalid, or
                the drawing has been superseded
        """
        _raise_if_invalid(validate_revision_input(change_description, file_name))
        drawing = self.get_drawing(drawing_id)
        if drawing.status == DrawingStatus.SUPERSEDED:
            raise ValidationError(f"Drawing {drawing.drawing_number} is superseded")

        revision = get_next_revision(drawing.current_revision)
        self.db.add_drawing_revision(drawing.id, revision, change_description.strip(), file_name)
        updates = {
            "current_revision": revision,
            "revision_count": drawing.revision_count + 1,
            "status": DrawingStatus.DRAFT.value,
        }
        if file_name:
            updates["file_name"] = file_name
        self.db.update_drawing(drawing.id, **updates)

        self.audit.log(
            "update",
            "projects",
            "drawing",
            entity_id=drawing.id,
            entity_reference=drawing.drawing_number,
            old_values={"current_revision": drawing.current_revision, "status": drawing.status},
            new_values={"current_revision": revision, "status": DrawingStatus.DRAFT},
            actor=actor,
        )
        logger.info("Drawing %s revised to %s", drawing.drawing_number, revision)
        return self.get_drawing(drawing.id)

    def change_status(
        self, drawing_id: int, target: DrawingStatus | str, actor: Optional[Actor] = None
    ) -> Drawing:
        """Move a drawing along the review workflow.

        Raises:
            InvalidTransitionError: If the workflow doesn't allow the move
        """
        drawing = self.get_drawing(drawing_id)
        try:
            target = DrawingStatus(target)
        except ValueError:
            raise ValidationError(f"Unknown drawing status '{target}'")

        if not is_valid_status_transition(drawing.status, target):
            logger.warning(
                "Rejected %s transition %s -> %s", drawing.drawing_number, drawing.status, target
            )
            raise InvalidTransitionError(
                invalid_transition(drawing.drawing_number, drawing.status.value, target.value)
            )

        self.db.update_drawing(drawing.id, status=target.value)
        action = "approve" if target == DrawingStatus.APPROVED else "update"
        self.audit.log(
            action,
            "projects",
            "drawing",
            entity_id=drawing.id,
            entity_reference=drawing.drawing_number,
            old_values={"status": drawing.status},
            new_values={"status": target},
            actor=actor,
        )
        logger.info("Drawing %s moved to %s", drawing.drawing_number, target)
        return self.get_drawing(drawing.id)

    def create_transmittal(
        self,
        recipient_company: str,
        purpose: TransmittalPurpose | str,
        drawing_ids: Sequence[int],
        notes: Optional[str] = None,
        actor: Optional[Actor] = None,
        year: Optional[int] = None,
    ) -> Transmittal:
        """Prepare a draft transmittal handing drawings to a recipient.

        Raises:
            ValidationError: If the recipient, purpose or drawing list is invalid
            NotFoundError: If a drawing doesn't exist
        """
        _raise_if_invalid(validate_transmittal_input(recipient_company, purpose, drawing_ids))
        drawings = [self.get_drawing(drawing_id) for drawing_id in drawing_ids]

        year = year or date.today().year
        number = generate_transmittal_number(self.db.count_transmittals_for_year(year) + 1, year)
        transmittal_id = self.db.create_transmittal(
            transmittal_number=number,
            recipient_company=recipient_company.strip(),
            purpose=TransmittalPurpose(purpose).value,
            drawing_ids=list(drawing_ids),
            notes=notes,
        )
        self.audit.log(
            "create",
            "projects",
            "transmittal",
            entity_id=transmittal_id,
            entity_reference=number,
            new_values={
                "recipient_company": recipient_company.strip(),
                "purpose": purpose,
                "status": TransmittalStatus.DRAFT,
                "drawings": [f"{d.drawing_number} rev {d.current_revision}" for d in drawings],
            },
            actor=actor,
        )
        logger.info("Created transmittal %s with %d drawings", number, len(drawings))
        return self.db.get_transmittal(transmittal_id)

    def get_transmittal(self, transmittal_id: int) -> Transmittal:
        transmittal = self.db.get_transmittal(transmittal_id)
        if transmittal is None:
            raise NotFoundError(not_found("Transmittal", transmittal_id))
        return transmittal

    def list_transmittals(self, status: Optional[str] = None) -> list[Transmittal]:
        return self.db.list_transmittals(status=status)

    def send_transmittal(self, transmittal_id: int, actor: Optional[Actor] = None) -> Transmittal:
        """Mark a draft transmittal as sent to its recipient.

        Raises:
            NotFoundError: If the transmittal doesn't exist
            InvalidTransitionError: If it is not a draft
        """
        return self._move_transmittal(
            transmittal_id,
            TransmittalStatus.SENT,
            actor,
            sent_at=datetime.now(UTC),
            sent_by=actor.email if actor else None,
        )

    def acknowledge_transmittal(
        self, transmittal_id: int, actor: Optional[Actor] = None
    ) -> Transmittal:
        """Record that the recipient acknowledged a sent transmittal."""
        return self._move_transmittal(
            transmittal_id,
            TransmittalStatus.ACKNOWLEDGED,
            actor,
            acknowledged_at=datetime.now(UTC),
        )

    def _move_transmittal(
        self,
        transmittal_id: int,
        target: TransmittalStatus,
        actor: Optional[Actor],
        **fields,
    ) -> Transmittal:
        transmittal = self.get_transmittal(transmittal_id)
        if not is_valid_transmittal_transition(transmittal.status, target):
            logger.warning(
                "Rejected %s transition %s -> %s",
                transmittal.transmittal_number,
                transmittal.status,
                target,
            )
            raise InvalidTransitionError(
                invalid_transition(
                    transmittal.transmittal_number, transmittal.status.value, target.value
                )
            )

        self.db.update_transmittal(transmittal.id, status=target.value, **fields)
        self.audit.log(
            "update",
            "projects",
            "transmittal",
            entity_id=transmittal.id,
            entity_reference=transmittal.transmittal_number,
            old_values={"status": transmittal.status},
            new_values={"status": target},
            actor=actor,
        )
        logger.info("Transmittal %s is now %s", transmittal.transmittal_number, target)
        return self.get_transmittal(transmittal.id)
