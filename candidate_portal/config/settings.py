"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (and an optional .env
file) once per process. Components never read the environment themselves;
they receive Settings, or a narrower config object built from it, through
dependency injection.

Mock modes enable local development without external services.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.submission.models import SubmissionLimits


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # API Configuration
    api_title: str = "Candidate Portal API"

    # Snowflake Configuration (candidate metadata)
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="candidateDB",
        description="Snowflake database holding the candidates table"
    )
    snowflake_schema: str = Field(
        default="PORTAL",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real Snowflake connection."
    )

    # R2/S3 Storage Configuration (resume and video blobs)
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="candidate-files",
        description="Bucket holding resume and video blobs"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="Storage endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real R2."
    )

    # Submission limits
    max_resume_mb: int = Field(
        default=5,
        ge=1,
        description="Maximum resume size in MB"
    )
    max_video_seconds: int = Field(
        default=90,
        ge=1,
        description="Maximum introduction video duration in seconds"
    )
    max_upload_mb: int = Field(
        default=200,
        ge=1,
        description="Ceiling on the whole multipart request body in MB"
    )

    # Video probing
    ffprobe_path: str = Field(
        default="ffprobe",
        description="Path to the ffprobe binary"
    )
    video_probe_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound on a single ffprobe run"
    )
    video_probe_mock_mode: bool = Field(
        default=False,
        description="Report a fixed duration instead of running ffprobe."
    )

    # Server
    port: int = Field(
        default=5000,
        description="Port uvicorn listens on when started via python -m"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """
        Storage endpoint URL.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        An explicit R2_ENDPOINT_URL wins, which is how S3 or MinIO are used.
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def submission_limits(self) -> SubmissionLimits:
        return SubmissionLimits(
            max_resume_mb=self.max_resume_mb,
            max_video_seconds=self.max_video_seconds,
        )

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields. This is separate from
        Pydantic validation because requirements depend on mock modes.
        """
        missing = []

        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        if not self.r2_mock_mode:
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID or R2_ENDPOINT_URL")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() or override the dependency.
    """
    return Settings()
