"""
Snowflake repositories for data persistence.

Repositories translate between domain models and database representations.
"""

from .candidates import CandidateRepository, SnowflakeConfig

__all__ = ["CandidateRepository", "SnowflakeConfig"]
