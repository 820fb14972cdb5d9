#!/usr/bin/env python3
"""
Create the candidates table in Snowflake.

Reads the same configuration as the API (environment variables or .env)
and runs CREATE TABLE IF NOT EXISTS, so it is safe to re-run.

Usage:
    python scripts/init_schema.py

Requires:
    - SNOWFLAKE_ACCOUNT, SNOWFLAKE_USER and a password or private key
"""

import logging
import sys

from candidate_portal.api.dependencies import open_candidate_repository
from candidate_portal.config.settings import Settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger("init_schema")


def main() -> int:
    settings = Settings()

    if settings.snowflake_mock_mode:
        logger.info("SNOWFLAKE_MOCK_MODE is set, nothing to create")
        return 0

    with open_candidate_repository(settings) as repository:
        repository.create_table()

    logger.info(
        "Candidates table ready",
        extra={
            "database": settings.snowflake_database,
            "schema": settings.snowflake_schema,
        }
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
