"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Most code never touches this module directly - it goes through
CandidateRepository, which handles the translation between domain models
and database rows.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from ...core.submission.errors import RepositoryError
from .repositories.candidates import CANDIDATE_COLUMNS, SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(RepositoryError):
    """Raised when Snowflake connection fails."""


def _load_private_key(key_path: str):
    """
    Load private key from file for key-pair authentication.

    Snowflake requires the private key as DER bytes, not a file path.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    with open(key_path, 'rb') as key_file:
        private_key = serialization.load_pem_private_key(
            key_file.read(),
            password=None,  # No password on the key
            backend=default_backend()
        )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If private_key_path is set, uses key-pair auth
    - Otherwise, uses password auth

    The connection is closed on every exit path, including when the
    body raises.

    Usage:
        with get_snowflake_connection(config) as conn:
            repo = CandidateRepository(conn)
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
    }

    if config.private_key_path:
        logger.debug("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = _load_private_key(config.private_key_path)
    elif config.password:
        logger.debug("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or private_key_path must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    CandidateRepository without a real database: INSERT and SELECT by id
    on the candidates table, plus the readiness ping and table creation.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = query.upper().strip()
        self._results = []
        self._rowcount = 0

        if query_upper.startswith('INSERT INTO CANDIDATES'):
            self._handle_insert(params)
        elif query_upper.startswith('SELECT 1'):
            self._results = [(1,)]
        elif query_upper.startswith('SELECT') and 'FROM CANDIDATES' in query_upper:
            self._handle_select(params)

        return self

    def _handle_insert(self, params: Optional[tuple]) -> None:
        if not params or len(params) != len(CANDIDATE_COLUMNS):
            raise ValueError("INSERT INTO candidates expects one value per column")

        candidate_id = str(params[0])
        if candidate_id in self._storage['candidates']:
            raise ValueError(f"Duplicate key {candidate_id}")

        self._storage['candidates'][candidate_id] = tuple(params)
        self._rowcount = 1

    def _handle_select(self, params: Optional[tuple]) -> None:
        if not params:
            return

        row = self._storage['candidates'].get(str(params[0]))
        if row is not None:
            self._results = [row]

    def fetchone(self):
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        return self._results

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores rows in memory: {table_name: {id: row_tuple}}.
    Not suitable for production, but fine for local development,
    unit tests and CI.
    """

    def __init__(self) -> None:
        self._storage: dict[str, dict[str, tuple]] = {
            'candidates': {},
        }
        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        """Rollback transaction (no-op for mock)."""
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")

    # Helpers for tests
    def _count(self, table: str = 'candidates') -> int:
        return len(self._storage[table])

    def _clear(self) -> None:
        for table in self._storage.values():
            table.clear()

