"""Shared configuration management for the platform.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="invoice-review-platform",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Maximum accepted invoice upload size in bytes",
    )

    # Extraction provider configuration
    extraction_provider: Literal["documentai", "mock"] = Field(
        default="documentai",
        description="Extraction provider: documentai (Google Document AI), mock (canned entities)",
    )

    # Document AI configuration (for extraction_provider="documentai")
    docai_project_id: str = Field(
        default="",
        description="Google Cloud project id that owns the processor",
    )
    docai_location: str = Field(
        default="us",
        description="Processor location, 'us' or 'eu'",
    )
    docai_processor_id: str = Field(
        default="",
        description="Invoice parser processor id",
    )
    docai_access_token: str = Field(
        default="",
        description="Static OAuth2 bearer token overriding Application Default Credentials",
    )
    docai_timeout_seconds: float = Field(
        default=120.0,
        description="Timeout for a single process request",
    )

    # Storage configuration (S3-compatible object storage)
    storage_enabled: bool = Field(
        default=False,
        description="Enable invoice file storage in S3-compatible storage (MinIO)",
    )
    storage_endpoint: str = Field(
        default="localhost:9000",
        description="S3-compatible storage endpoint (host:port)",
    )
    storage_access_key: str = Field(
        default="",
        description="Storage access key (use env var APP_STORAGE_ACCESS_KEY)",
    )
    storage_secret_key: str = Field(
        default="",
        description="Storage secret key (use env var APP_STORAGE_SECRET_KEY)",
    )
    storage_bucket: str = Field(
        default="invoices",
        description="Bucket holding the original invoice files",
    )
    storage_secure: bool = Field(
        default=False,
        description="Use HTTPS for storage connections",
    )

    # Invoice record store
    record_store: Literal["memory", "redis"] = Field(
        default="memory",
        description="Invoice record backend: memory (single process), redis (shared)",
    )

    # Queue configuration (arq on Redis)
    queue_enabled: bool = Field(
        default=False,
        description="Deliver document-created events through the arq worker",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the queue and the redis record store",
    )
    queue_max_jobs: int = Field(
        default=10,
        description="Maximum concurrent jobs per worker",
    )
    queue_job_timeout: int = Field(
        default=600,
        description="Job timeout in seconds; must exceed the worst-case extraction call",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
