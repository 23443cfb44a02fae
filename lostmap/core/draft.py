import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel
from pydantic import ValidationError as FieldError

from lostmap.core.errors import CommitInProgressError, PermissionDeniedError, ValidationError
from lostmap.core.session import SessionContext
from lostmap.models.report import Location, Report

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 280
MAX_UPLOAD_SIZE_MB = 5
MAX_UPLOAD_BYTES = MAX_UPLOAD_SIZE_MB * 1024 * 1024

UPDATABLE_FIELDS = {"description", "pending_image", "position"}


class DraftMode(str, Enum):
    CREATE = "create"
    EDIT = "edit"


class PendingImage(BaseModel):
    filename: str
    data: bytes
    content_type: Optional[str] = None


class Draft(BaseModel):
    target_id: Optional[str] = None  # None while creating
    description: str = ""
    pending_image: Optional[PendingImage] = None
    position: Optional[Location] = None

    @property
    def mode(self) -> DraftMode:
        return DraftMode.CREATE if self.target_id is None else DraftMode.EDIT

    def ensure_complete(self) -> None:
        description = self.description.strip()

        if not description:
            raise ValidationError("Description is required.")
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters.")
        if self.position is None:
            raise ValidationError("Location is required.")
        if self.pending_image is not None and len(self.pending_image.data) > MAX_UPLOAD_BYTES:
            raise ValidationError(f"Image exceeds {MAX_UPLOAD_SIZE_MB}MB limit")


class DraftEditor:
    """Holds the single in-progress create or edit for one map client."""

    def __init__(self, session: SessionContext):
        self.session = session
        self._draft: Optional[Draft] = None
        self._committing = False

    def _ensure_idle(self) -> None:
        if self._committing:
            raise CommitInProgressError()

    def begin(
        self,
        mode: DraftMode,
        seed: Optional[Report] = None,
        position: Optional[Location] = None,
    ) -> Draft:
        self._ensure_idle()

        if mode == DraftMode.EDIT:
            if seed is None:
                raise ValidationError("Nothing to edit.")
            if not self.session.can_edit(seed):
                raise PermissionDeniedError()

            draft = Draft(
                target_id=seed.id,
                description=seed.description,
                position=seed.location,
            )
        else:
            draft = Draft(position=position)

        if self._draft is not None:
            logger.debug("Replacing %s draft", self._draft.mode.value)

        self._draft = draft
        return draft

    def update(self, **fields: Any) -> Draft:
        self._ensure_idle()

        draft = self._draft
        if draft is None:
            raise ValidationError("No report in progress.")

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Field '{sorted(unknown)[0]}' cannot be updated")

        if "position" in fields and draft.mode == DraftMode.EDIT:
            raise ValidationError("A report's location cannot be changed.")

        # build the new draft first so a bad value leaves the old one intact
        try:
            self._draft = Draft.model_validate({**draft.model_dump(), **fields})
        except FieldError as e:
            raise ValidationError(f"Invalid {e.errors()[0]['loc'][0]}: {e.errors()[0]['msg']}")
        return self._draft

    def cancel(self) -> None:
        self._ensure_idle()
        self._draft = None

    def current(self) -> Optional[Draft]:
        return self._draft

    def clear(self, draft: Draft) -> None:
        """Drop the given draft once it has been committed."""
        if self._draft is draft:
            self._draft = None

    @property
    def is_committing(self) -> bool:
        return self._committing

    @contextmanager
    def committing(self) -> Iterator[Draft]:
        self._ensure_idle()

        draft = self._draft
        if draft is None:
            raise ValidationError("No report in progress.")

        self._committing = True
        try:
            yield draft
        finally:
            self._committing = False
