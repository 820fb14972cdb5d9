"""
Snowflake repository for candidate records.

This module implements the repository pattern for candidate metadata.
The repository:
1. Translates between CandidateRecord and database rows
2. Encapsulates all SQL queries
3. Provides a clean interface for the application layer

Records are written once and never updated, so there is no upsert path.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID

from ....core.submission.errors import CandidateNotFoundError, RepositoryError
from ....core.submission.models import CandidateRecord


logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "candidateDB"
    schema: str = "PORTAL"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


# Column order shared by INSERT and SELECT so rows map back positionally.
CANDIDATE_COLUMNS = (
    "candidate_id",
    "first_name",
    "last_name",
    "position_applied_for",
    "current_position",
    "experience_years",
    "resume_file_id",
    "resume_filename",
    "video_file_id",
    "video_filename",
    "created_at",
)

CREATE_CANDIDATES_TABLE = """
    CREATE TABLE IF NOT EXISTS candidates (
        candidate_id VARCHAR(36) PRIMARY KEY,
        first_name VARCHAR NOT NULL,
        last_name VARCHAR NOT NULL,
        position_applied_for VARCHAR NOT NULL,
        current_position VARCHAR NOT NULL,
        experience_years INTEGER NOT NULL,
        resume_file_id VARCHAR(36) NOT NULL,
        resume_filename VARCHAR NOT NULL,
        video_file_id VARCHAR(36),
        video_filename VARCHAR,
        created_at TIMESTAMP_TZ NOT NULL
    )
"""


class CandidateRepository:
    """
    Repository for candidate record persistence.

    - save: Persist a new record
    - get: Load a record by id
    - create_table: Create the backing table if it is missing
    - ping: Cheap round trip used by the readiness check
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def save(self, record: CandidateRecord) -> None:
        """Insert a new candidate record and commit."""
        cursor = self._conn.cursor()
        columns = ", ".join(CANDIDATE_COLUMNS)
        placeholders = ", ".join(["%s"] * len(CANDIDATE_COLUMNS))

        try:
            cursor.execute(
                f"INSERT INTO candidates ({columns}) VALUES ({placeholders})",
                self._record_to_row(record),
            )
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to save candidate",
                extra={"candidate_id": str(record.id), "error": str(e)}
            )
            try:
                self._conn.rollback()
            except Exception as rollback_error:
                logger.warning(
                    "Rollback failed",
                    extra={"error": str(rollback_error)}
                )
            raise RepositoryError(f"Save failed: {e}")
        finally:
            cursor.close()

        logger.info("Saved candidate", extra={"candidate_id": str(record.id)})

    def get(self, candidate_id: UUID) -> CandidateRecord:
        """
        Load a candidate record by id.

        Raises CandidateNotFoundError if there is no such record.
        """
        cursor = self._conn.cursor()
        columns = ", ".join(CANDIDATE_COLUMNS)

        try:
            cursor.execute(
                f"SELECT {columns} FROM candidates WHERE candidate_id = %s",
                (str(candidate_id),),
            )
            row = cursor.fetchone()
        except Exception as e:
            logger.error(
                "Failed to load candidate",
                extra={"candidate_id": str(candidate_id), "error": str(e)}
            )
            raise RepositoryError(f"Load failed: {e}")
        finally:
            cursor.close()

        if not row:
            raise CandidateNotFoundError()

        return self._row_to_record(row)

    def create_table(self) -> None:
        cursor = self._conn.cursor()
        try:
            cursor.execute(CREATE_CANDIDATES_TABLE)
            self._conn.commit()
        finally:
            cursor.close()

    def ping(self) -> bool:
        cursor = self._conn.cursor()
        try:
            cursor.execute("SELECT 1")
            return cursor.fetchone() is not None
        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Row mapping
    # -----------------------------------------------------------------------

    def _record_to_row(self, record: CandidateRecord) -> tuple:
        return (
            str(record.id),
            record.first_name,
            record.last_name,
            record.position_applied_for,
            record.current_position,
            record.experience_years,
            str(record.resume_blob_id),
            record.resume_filename,
            str(record.video_blob_id) if record.video_blob_id else None,
            record.video_filename,
            record.created_at,
        )

    def _row_to_record(self, row: tuple) -> CandidateRecord:
        (
            candidate_id,
            first_name,
            last_name,
            position_applied_for,
            current_position,
            experience_years,
            resume_file_id,
            resume_filename,
            video_file_id,
            video_filename,
            created_at,
        ) = row

        return CandidateRecord(
            id=UUID(candidate_id),
            first_name=first_name,
            last_name=last_name,
            position_applied_for=position_applied_for,
            current_position=current_position,
            experience_years=int(experience_years),
            resume_blob_id=UUID(resume_file_id),
            resume_filename=resume_filename,
            video_blob_id=UUID(video_file_id) if video_file_id else None,
            video_filename=video_filename,
            created_at=created_at,
        )
