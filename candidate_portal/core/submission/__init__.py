"""
Candidate submission logic.

Contains the domain models, the error taxonomy and the submission pipeline.
"""

from .errors import (
    BlobNotFoundError,
    CandidateNotFoundError,
    InfrastructureError,
    InvalidIdError,
    ValidationError,
    VideoProbeError,
)
from .models import (
    BlobId,
    BlobKind,
    CandidateRecord,
    SubmissionForm,
    SubmissionLimits,
    SubmissionResult,
    UploadedFile,
)
from .pipeline import SubmissionPipeline

__all__ = [
    "BlobId",
    "BlobKind",
    "BlobNotFoundError",
    "CandidateNotFoundError",
    "CandidateRecord",
    "InfrastructureError",
    "InvalidIdError",
    "SubmissionForm",
    "SubmissionLimits",
    "SubmissionPipeline",
    "SubmissionResult",
    "UploadedFile",
    "ValidationError",
    "VideoProbeError",
]
