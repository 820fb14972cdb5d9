"""
Domain models for candidate submissions.

These models describe what a candidate application is, independent of how
the blobs are stored or how the metadata is persisted. The HTTP layer
converts raw form fields into these types at the boundary, so everything
past that point works with validated, strongly typed values.
"""

import posixpath
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Mapping, Optional
from uuid import UUID, uuid4

from .errors import InvalidIdError, ValidationError

_EXTENSION_PATTERN = re.compile(r"\.[a-z0-9]{1,10}")

# Blob ids are UUIDs generated by the blob store at write time.
BlobId = UUID

PDF_CONTENT_TYPE = "application/pdf"

FORM_FIELDS = (
    "firstName",
    "lastName",
    "positionAppliedFor",
    "currentPosition",
    "experienceYears",
)


class BlobKind(Enum):
    """What a stored blob holds. Each kind has its own download route."""
    RESUME = "resume"
    VIDEO = "video"


def parse_uuid(raw: str, message: str = "Invalid id") -> UUID:
    """
    Parse an id taken from a request path.

    Incidental whitespace is trimmed. Anything that is not a UUID raises
    InvalidIdError, which is a client error distinct from "not found".
    """
    try:
        return UUID(raw.strip())
    except (AttributeError, ValueError):
        raise InvalidIdError(message)


@dataclass(frozen=True)
class SubmissionLimits:
    """
    Limits enforced by the submission pipeline.

    Built once from Settings at startup and passed in explicitly.
    """
    max_resume_mb: int = 5
    max_video_seconds: int = 90

    @property
    def max_resume_bytes(self) -> int:
        return self.max_resume_mb * 1024 * 1024


@dataclass
class UploadedFile:
    """A file part from the multipart form, fully read into memory."""
    data: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """
        Lowercase extension of the base name, including the dot.

        Empty when there is none, or when it is not a short alphanumeric
        suffix (directory parts, NUL bytes, overlong extensions).
        """
        basename = posixpath.basename(self.filename.replace("\\", "/"))
        extension = posixpath.splitext(basename)[1].lower()
        if not _EXTENSION_PATTERN.fullmatch(extension):
            return ""
        return extension


@dataclass(frozen=True)
class SubmissionForm:
    """The text fields of a submission after boundary parsing."""
    first_name: str
    last_name: str
    position_applied_for: str
    current_position: str
    experience_years: int

    @classmethod
    def from_fields(cls, fields: Mapping[str, Optional[str]]) -> "SubmissionForm":
        """
        Parse raw form values into a typed form.

        Every field must be present and non-blank. experienceYears must be
        a non-negative whole number; anything else is rejected instead of
        being coerced.
        """
        values = {name: (fields.get(name) or "").strip() for name in FORM_FIELDS}
        if not all(values.values()):
            raise ValidationError("All fields are required.")

        years = values["experienceYears"]
        if not (years.isascii() and years.isdigit()):
            raise ValidationError("Experience years must be a non-negative whole number.")

        return cls(
            first_name=values["firstName"],
            last_name=values["lastName"],
            position_applied_for=values["positionAppliedFor"],
            current_position=values["currentPosition"],
            experience_years=int(years),
        )


@dataclass
class CandidateRecord:
    """
    Metadata for one candidate application.

    Holds non-owning references (ids) to the resume and video blobs.
    Created once per successful submission and never updated.
    """
    first_name: str
    last_name: str
    position_applied_for: str
    current_position: str
    experience_years: int
    resume_blob_id: BlobId
    resume_filename: str
    video_blob_id: Optional[BlobId] = None
    video_filename: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.experience_years < 0:
            raise ValueError("experience_years cannot be negative")
        if self.resume_blob_id is None:
            raise ValueError("resume_blob_id is required")

    @classmethod
    def from_submission(
        cls,
        form: SubmissionForm,
        resume_blob_id: BlobId,
        resume_filename: str,
        video_blob_id: Optional[BlobId] = None,
        video_filename: Optional[str] = None,
    ) -> "CandidateRecord":
        return cls(
            first_name=form.first_name,
            last_name=form.last_name,
            position_applied_for=form.position_applied_for,
            current_position=form.current_position,
            experience_years=form.experience_years,
            resume_blob_id=resume_blob_id,
            resume_filename=resume_filename,
            video_blob_id=video_blob_id,
            video_filename=video_filename,
        )


@dataclass(frozen=True)
class SubmissionResult:
    """Ids produced by a successful submission."""
    candidate_id: UUID
    resume_blob_id: BlobId
    video_blob_id: BlobId
