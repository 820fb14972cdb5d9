"""
Candidate submission pipeline.

Turns a raw form submission into a stored candidate:

1. Parse the text fields into a typed SubmissionForm
2. Check that both files are present
3. Check the resume type and size
4. Probe the video duration
5. Write the resume blob, then the video blob
6. Persist the CandidateRecord that references both blob ids

Validation fails fast: the first violated rule wins and nothing has been
written at that point. Blobs are written before the record, and the record
is only built from ids the blob store has confirmed.

If anything fails after a blob was written, the blobs written for this
submission are deleted before the error propagates. Deletion is
best-effort: a failed delete is logged and the blob is left orphaned.

This module is framework-agnostic. It doesn't know about HTTP, boto3 or
Snowflake; it talks to its collaborators through the protocols below.
"""

import asyncio
import logging
import time
from typing import Mapping, Optional, Protocol

from .errors import InfrastructureError, StorageError, ValidationError, VideoProbeError
from .models import (
    PDF_CONTENT_TYPE,
    BlobId,
    BlobKind,
    CandidateRecord,
    SubmissionForm,
    SubmissionLimits,
    SubmissionResult,
    UploadedFile,
)

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_CONTENT_TYPE = "application/octet-stream"


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class BlobWriter(Protocol):
    """The part of the blob store the pipeline needs."""

    async def put(
        self,
        data: bytes,
        name: str,
        content_type: str,
        kind: BlobKind,
        filename: str,
    ) -> BlobId:
        ...

    async def delete(self, blob_id: BlobId) -> None:
        ...


class CandidateWriter(Protocol):
    """The part of the metadata repository the pipeline needs."""

    def save(self, record: CandidateRecord) -> None:
        ...


class DurationProbe(Protocol):
    """Reads a video's duration in seconds."""

    async def get_duration(self, video_data: bytes, suffix: str = ".webm") -> float:
        ...


def build_blob_name(kind: BlobKind, filename: str, now_ms: Optional[int] = None) -> str:
    """
    Name a blob after its kind, the upload time and the original filename.

    e.g. resume_1718000000000_cv.pdf
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{kind.value}_{now_ms}_{filename}"


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class SubmissionPipeline:
    """
    Validates a submission and stores it.

    One instance serves one request. The collaborators are handed in by
    the caller, which also owns their lifecycle.
    """

    def __init__(
        self,
        blob_store: BlobWriter,
        repository: CandidateWriter,
        video_probe: DurationProbe,
        limits: SubmissionLimits,
    ) -> None:
        self._blob_store = blob_store
        self._repository = repository
        self._video_probe = video_probe
        self._limits = limits

    async def submit(
        self,
        fields: Mapping[str, Optional[str]],
        resume: Optional[UploadedFile],
        video: Optional[UploadedFile],
    ) -> SubmissionResult:
        """
        Run the full pipeline.

        Raises:
            ValidationError: the submission breaks a rule (client error)
            VideoProbeError: the duration could not be read
            InfrastructureError: a blob or record write failed
        """
        form = SubmissionForm.from_fields(fields)

        if resume is None:
            raise ValidationError("Resume is required.")
        if video is None:
            raise ValidationError("Video is required.")

        self._check_resume(resume)
        await self._check_video(video)

        return await self._store(form, resume, video)

    def _check_resume(self, resume: UploadedFile) -> None:
        if resume.content_type != PDF_CONTENT_TYPE:
            raise ValidationError("Resume must be a PDF file.")

        if resume.size > self._limits.max_resume_bytes:
            raise ValidationError(f"Resume must be ≤ {self._limits.max_resume_mb} MB.")

    async def _check_video(self, video: UploadedFile) -> None:
        try:
            duration = await self._video_probe.get_duration(video.data, video.extension)
        except VideoProbeError:
            raise
        except Exception as e:
            logger.error("Video probe raised unexpectedly", extra={"error": str(e)})
            raise VideoProbeError(str(e)) from e

        if duration > self._limits.max_video_seconds:
            logger.info(
                "Rejected video over duration limit",
                extra={
                    "duration_seconds": duration,
                    "max_video_seconds": self._limits.max_video_seconds,
                }
            )
            raise ValidationError(
                f"Video duration exceeds {self._limits.max_video_seconds} seconds."
            )

    async def _store(
        self,
        form: SubmissionForm,
        resume: UploadedFile,
        video: UploadedFile,
    ) -> SubmissionResult:
        written: list[BlobId] = []

        try:
            resume_blob_id = await self._blob_store.put(
                resume.data,
                build_blob_name(BlobKind.RESUME, resume.filename),
                resume.content_type,
                BlobKind.RESUME,
                resume.filename,
            )
            written.append(resume_blob_id)

            video_blob_id = await self._blob_store.put(
                video.data,
                build_blob_name(BlobKind.VIDEO, video.filename),
                video.content_type or DEFAULT_VIDEO_CONTENT_TYPE,
                BlobKind.VIDEO,
                video.filename,
            )
            written.append(video_blob_id)

            record = CandidateRecord.from_submission(
                form,
                resume_blob_id=resume_blob_id,
                resume_filename=resume.filename,
                video_blob_id=video_blob_id,
                video_filename=video.filename,
            )
            await asyncio.to_thread(self._repository.save, record)

        except Exception as e:
            logger.error(
                "Submission storage failed",
                extra={"written_blobs": [str(b) for b in written], "error": str(e)}
            )
            await self._discard(written)
            if isinstance(e, InfrastructureError):
                raise
            raise StorageError(str(e)) from e

        logger.info(
            "Candidate submitted",
            extra={
                "candidate_id": str(record.id),
                "resume_blob_id": str(resume_blob_id),
                "video_blob_id": str(video_blob_id),
            }
        )

        return SubmissionResult(
            candidate_id=record.id,
            resume_blob_id=resume_blob_id,
            video_blob_id=video_blob_id,
        )

    async def _discard(self, blob_ids: list[BlobId]) -> None:
        for blob_id in blob_ids:
            try:
                await self._blob_store.delete(blob_id)
            except Exception as e:
                logger.error(
                    "Could not delete blob after failed submission, blob is orphaned",
                    extra={"blob_id": str(blob_id), "error": str(e)}
                )
