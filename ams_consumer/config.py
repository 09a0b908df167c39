"""Configuration management for the AMS SQS consumer."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ams_consumer.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Worker settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = "development"

    # Downstream ingestion endpoint
    supabase_ingest_url: str = Field(..., min_length=1)
    supabase_ingest_secret: str = Field(..., min_length=1)

    # Delivery
    ingest_max_attempts: int = Field(default=3, ge=1)
    ingest_batch_size: int = Field(default=500, ge=1)
    ingest_max_batch_bytes: Optional[int] = Field(default=None, ge=1)
    ingest_backoff_base_ms: int = Field(default=1000, ge=0)
    ingest_backoff_max_ms: int = Field(default=10000, ge=0)
    ingest_timeout_seconds: float = Field(default=30.0, gt=0)

    # Lambda partial batch responses (requires ReportBatchItemFailures on the mapping)
    report_batch_item_failures: bool = False

    # AWS / SQS (local poller only)
    aws_region: str = "us-east-1"
    sqs_queue_url: Optional[str] = None
    sqs_max_messages: int = Field(default=10, ge=1, le=10)
    sqs_wait_time_seconds: int = Field(default=20, ge=0, le=20)
    sqs_visibility_timeout: int = Field(default=300, ge=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("supabase_ingest_url")
    @classmethod
    def validate_ingest_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("SUPABASE_INGEST_URL must be an http(s) URL")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() in ("development", "dev")


def load_settings(**overrides) -> Settings:
    """
    Build settings, turning validation failures into a fatal configuration error.

    Raises:
        ConfigurationError: If the ingest URL or secret is missing or invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = sorted(
            ".".join(str(part) for part in error["loc"]).upper()
            for error in e.errors()
        )
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(fields)}"
        ) from e


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
