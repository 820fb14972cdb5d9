"""
Candidate API endpoints.

Endpoints:
- POST /submit: Submit an application (form fields + resume + video)
- GET /{candidate_id}: Fetch a candidate record
- GET /files/resume/{file_id}: Stream a resume
- GET /files/video/{file_id}: Stream an introduction video

Response bodies use camelCase keys, which is what the portal frontend
expects. Errors are raised as domain exceptions and turned into
{"message": ...} bodies by the handlers registered in main.py.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, File, Form, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.types import Receive, Scope, Send

from ...core.submission.models import BlobKind, CandidateRecord, UploadedFile
from ...infrastructure.storage.client import BlobDownload, BlobStore
from ..dependencies import (
    CandidateIdDep,
    CandidateRepositoryDep,
    FileIdDep,
    SettingsDep,
    SubmissionPipelineDep,
    build_blob_store,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageResponse(BaseModel):
    """Body of every error response."""
    message: str
    error: Optional[str] = None


class SubmissionResponse(CamelModel):
    """Response after a successful submission."""
    message: str = Field(description="Status message")
    candidate_id: UUID = Field(description="Id of the new candidate record")
    resume_file_id: UUID = Field(description="Blob id of the stored resume")
    video_file_id: UUID = Field(description="Blob id of the stored video")


class CandidateResponse(CamelModel):
    """A stored candidate record."""
    id: UUID
    first_name: str
    last_name: str
    position_applied_for: str
    current_position: str
    experience_years: int
    resume_file_id: UUID
    resume_filename: str
    video_file_id: Optional[UUID] = None
    video_filename: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: CandidateRecord) -> "CandidateResponse":
        return cls(
            id=record.id,
            first_name=record.first_name,
            last_name=record.last_name,
            position_applied_for=record.position_applied_for,
            current_position=record.current_position,
            experience_years=record.experience_years,
            resume_file_id=record.resume_blob_id,
            resume_filename=record.resume_filename,
            video_file_id=record.video_blob_id,
            video_filename=record.video_filename,
            created_at=record.created_at,
        )


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

async def read_upload(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    """
    Read a multipart file part into memory.

    Browsers send an empty part (no filename, no bytes) for a file input
    left blank; that counts as missing.
    """
    if upload is None:
        return None

    data = await upload.read()
    filename = upload.filename or ""
    if not filename and not data:
        return None

    return UploadedFile(
        data=data,
        filename=filename,
        content_type=upload.content_type or "",
    )


class BlobStreamingResponse(StreamingResponse):
    """
    Streams a blob download and owns its resources.

    The download and the store are released when the response finishes,
    including when the client goes away before the first chunk is sent.
    """

    def __init__(self, download: BlobDownload, store: BlobStore, headers: dict[str, str]) -> None:
        super().__init__(download.chunks, media_type=download.content_type, headers=headers)
        self._download = download
        self._store = store

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            try:
                await self._download.aclose()
            finally:
                self._store.close()


async def stream_blob(kind: BlobKind, blob_id: UUID, settings) -> StreamingResponse:
    """
    Open a blob and stream it back with its stored content type.

    The store is opened here rather than through a request-scoped
    dependency because the body is sent after the handler returns. The
    response releases it once it finishes, however it finishes.
    """
    store = build_blob_store(settings)
    try:
        download = await store.open_stream(blob_id, kind)
    except BaseException:
        store.close()
        raise

    headers = {
        "Content-Disposition": f"inline; filename*=UTF-8''{quote(download.filename)}",
    }
    if download.size is not None:
        headers["Content-Length"] = str(download.size)

    logger.info(
        "Streaming blob",
        extra={"blob_id": str(blob_id), "kind": kind.value, "size_bytes": download.size}
    )

    return BlobStreamingResponse(download, store, headers)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/submit",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a candidate application",
    responses={
        400: {"model": MessageResponse, "description": "Validation failed"},
        413: {"model": MessageResponse, "description": "Upload too large"},
        500: {"model": MessageResponse, "description": "Probe or storage failure"},
    },
)
async def submit_candidate(
    pipeline: SubmissionPipelineDep,
    first_name: Annotated[Optional[str], Form(alias="firstName")] = None,
    last_name: Annotated[Optional[str], Form(alias="lastName")] = None,
    position_applied_for: Annotated[Optional[str], Form(alias="positionAppliedFor")] = None,
    current_position: Annotated[Optional[str], Form(alias="currentPosition")] = None,
    experience_years: Annotated[Optional[str], Form(alias="experienceYears")] = None,
    resume: Annotated[Optional[UploadFile], File(description="Resume (PDF)")] = None,
    video: Annotated[Optional[UploadFile], File(description="Introduction video (WebM/MP4)")] = None,
) -> SubmissionResponse:
    """
    Submit a candidate application.

    All five text fields and both files are required. The resume must be
    a PDF within the size limit and the video must be within the duration
    limit.
    """
    fields = {
        "firstName": first_name,
        "lastName": last_name,
        "positionAppliedFor": position_applied_for,
        "currentPosition": current_position,
        "experienceYears": experience_years,
    }

    resume_file = await read_upload(resume)
    video_file = await read_upload(video)

    logger.info(
        "Submission received",
        extra={
            "resume_filename": resume_file.filename if resume_file else None,
            "resume_bytes": resume_file.size if resume_file else 0,
            "video_filename": video_file.filename if video_file else None,
            "video_bytes": video_file.size if video_file else 0,
        }
    )

    result = await pipeline.submit(fields, resume_file, video_file)

    return SubmissionResponse(
        message="Candidate submitted successfully",
        candidate_id=result.candidate_id,
        resume_file_id=result.resume_blob_id,
        video_file_id=result.video_blob_id,
    )


@router.get(
    "/files/resume/{file_id}",
    summary="Stream a resume",
    response_class=StreamingResponse,
    responses={
        400: {"model": MessageResponse, "description": "Malformed file id"},
        404: {"model": MessageResponse, "description": "File not found"},
    },
)
async def get_resume_file(file_id: FileIdDep, settings: SettingsDep) -> StreamingResponse:
    return await stream_blob(BlobKind.RESUME, file_id, settings)


@router.get(
    "/files/video/{file_id}",
    summary="Stream an introduction video",
    response_class=StreamingResponse,
    responses={
        400: {"model": MessageResponse, "description": "Malformed file id"},
        404: {"model": MessageResponse, "description": "File not found"},
    },
)
async def get_video_file(file_id: FileIdDep, settings: SettingsDep) -> StreamingResponse:
    return await stream_blob(BlobKind.VIDEO, file_id, settings)


@router.get(
    "/{candidate_id}",
    response_model=CandidateResponse,
    summary="Get a candidate record",
    responses={
        400: {"model": MessageResponse, "description": "Malformed id"},
        404: {"model": MessageResponse, "description": "Candidate not found"},
    },
)
def get_candidate(
    candidate_id: CandidateIdDep,
    repository: CandidateRepositoryDep,
) -> CandidateResponse:
    """
    Fetch a candidate by id.

    Runs in FastAPI's threadpool because the repository is synchronous.
    """
    record = repository.get(candidate_id)
    return CandidateResponse.from_record(record)
