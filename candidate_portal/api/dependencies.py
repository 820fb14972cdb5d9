"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Routes never build their own clients, so tests can swap
any of them through app.dependency_overrides, and connection lifecycles
are managed in one place.

Connections are request-scoped: generator dependencies open a connection,
yield it, and close it in a finally block once the request is done.
"""

import logging
from contextlib import contextmanager
from typing import Annotated, Generator, Iterator
from uuid import UUID

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.submission.models import parse_uuid
from ..core.submission.pipeline import SubmissionPipeline
from ..infrastructure.snowflake.client import MockSnowflakeConnection, get_snowflake_connection
from ..infrastructure.snowflake.repositories.candidates import CandidateRepository, SnowflakeConfig
from ..infrastructure.storage.client import BlobStore, StorageConfig, create_blob_store
from ..infrastructure.video.processor import VideoProbe, create_video_probe

logger = logging.getLogger(__name__)

# Global mock instances (shared across requests so data persists in mock mode)
_mock_blob_store = None
_mock_snowflake_connection = None


def reset_mock_backends() -> None:
    """Drop the shared mock backends so the next request starts empty."""
    global _mock_blob_store, _mock_snowflake_connection
    _mock_blob_store = None
    _mock_snowflake_connection = None


# ---------------------------------------------------------------------------
# Path Parameters
# ---------------------------------------------------------------------------

def candidate_id_path(candidate_id: str) -> UUID:
    """Parse the candidate id before any connection is opened."""
    return parse_uuid(candidate_id, "Invalid id")


def file_id_path(file_id: str) -> UUID:
    """Parse a blob id before any connection is opened."""
    return parse_uuid(file_id, "Invalid file ID")


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def build_blob_store(settings: Settings) -> BlobStore:
    """
    Create a blob store for one request.

    In mock mode, the same in-memory store is returned every time so
    uploaded files survive between requests.
    """
    global _mock_blob_store

    if settings.r2_mock_mode:
        if _mock_blob_store is None:
            _mock_blob_store = create_blob_store(mock_mode=True)
            logger.info("Created shared mock blob store")
        return _mock_blob_store

    config = StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        bucket_name=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint,
    )
    return create_blob_store(config=config)


def get_blob_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[BlobStore, None, None]:
    """
    Provide a blob store, closed when the request finishes.

    Streaming downloads don't use this: the response body outlives the
    handler, so the file routes hand the store to the stream instead.
    """
    store = build_blob_store(settings)
    try:
        yield store
    finally:
        store.close()


@contextmanager
def open_candidate_repository(settings: Settings) -> Iterator[CandidateRepository]:
    """
    Open a CandidateRepository backed by a scoped database connection.

    The connection is closed by the context manager on every exit path.

    In mock mode, we reuse the same connection across requests
    so that records persist during the session.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection")
        yield CandidateRepository(_mock_snowflake_connection)
        return

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    with get_snowflake_connection(config) as conn:
        yield CandidateRepository(conn)


def get_candidate_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[CandidateRepository, None, None]:
    """Provide CandidateRepository for the duration of the request."""
    with open_candidate_repository(settings) as repository:
        yield repository


def get_video_probe(
    settings: Annotated[Settings, Depends(get_settings)],
) -> VideoProbe:
    return create_video_probe(
        mock_mode=settings.video_probe_mock_mode,
        ffprobe_path=settings.ffprobe_path,
        timeout_seconds=settings.video_probe_timeout_seconds,
    )


def get_submission_pipeline(
    settings: Annotated[Settings, Depends(get_settings)],
    blob_store: Annotated[BlobStore, Depends(get_blob_store)],
    repository: Annotated[CandidateRepository, Depends(get_candidate_repository)],
    video_probe: Annotated[VideoProbe, Depends(get_video_probe)],
) -> SubmissionPipeline:
    return SubmissionPipeline(
        blob_store=blob_store,
        repository=repository,
        video_probe=video_probe,
        limits=settings.submission_limits,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

CandidateIdDep = Annotated[UUID, Depends(candidate_id_path)]
FileIdDep = Annotated[UUID, Depends(file_id_path)]
CandidateRepositoryDep = Annotated[CandidateRepository, Depends(get_candidate_repository)]
SubmissionPipelineDep = Annotated[SubmissionPipeline, Depends(get_submission_pipeline)]
VideoProbeDep = Annotated[VideoProbe, Depends(get_video_probe)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
