"""Configuration management for AuraMail.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GMAIL_QUERY = (
    "from:placementoffice@vitbhopal.ac.in OR subject:placement "
    "OR subject:internship OR subject:recruitment"
)


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the AURAMAIL_ prefix (e.g., AURAMAIL_OPENAI_API_KEY).
    """

    model_config = SettingsConfigDict(
        env_prefix="AURAMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AI provider configuration
    openai_api_key: str | None = Field(
        default=None,
        description="API key for the text-generation provider. If unset, AI extraction falls back",
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Model used for field extraction",
    )
    openai_timeout: float = Field(
        default=30.0,
        description="Per-request timeout of the provider client in seconds",
    )
    openai_max_retries: int = Field(
        default=2,
        description="Retries performed by the provider client itself",
    )
    ai_max_tokens: int = Field(default=1200, description="Completion token budget")
    ai_temperature: float = Field(default=0.05, description="Sampling temperature")
    ai_timeout_seconds: float = Field(
        default=45.0,
        description="Outer time budget for one AI extraction, independent of the client timeout",
    )
    ai_body_limit: int = Field(
        default=5000,
        description="Maximum number of body characters embedded in the prompt",
    )

    # AI response cache
    cache_ttl: int = Field(default=3600, description="Cache time-to-live in seconds")
    cache_max_size: int = Field(
        default=1000,
        description="Entry count above which the cache is trimmed",
    )
    cache_trim_interval: int = Field(
        default=300,
        description="Minimum number of seconds between two cache trims",
    )

    # Gmail configuration
    gmail_credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Path to the Google OAuth client credentials file",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.readonly",
        description="OAuth scope used for Gmail access",
    )
    gmail_default_query: str = Field(
        default=DEFAULT_GMAIL_QUERY,
        description="Gmail search query selecting candidate placement mail",
    )
    gmail_max_results: int = Field(
        default=50,
        description="Maximum number of messages listed per sync run",
    )
    gmail_timeout_seconds: float = Field(
        default=30.0,
        description="Outer timeout for a single Gmail API call",
    )

    # Ingestion
    batch_size: int = Field(default=10, description="Messages processed per batch")
    message_delay: float = Field(
        default=0.1,
        description="Delay in seconds after each stored message",
    )
    batch_delay: float = Field(default=0.5, description="Delay in seconds between batches")
    max_retries: int = Field(
        default=3,
        description="Maximum number of retries for failed Gmail operations",
    )
    retry_delay: float = Field(
        default=1.0,
        description="Initial backoff delay in seconds; doubled after each retry",
    )
    max_body_length: int = Field(
        default=10000,
        description="Maximum decoded body length kept per message",
    )
    max_payload_depth: int = Field(
        default=5,
        description="Maximum nesting depth walked in a multipart payload",
    )
    sync_lease_seconds: int = Field(
        default=900,
        description="Lifetime of a per-user sync lease before it counts as abandoned",
    )

    # Storage
    database_url: str = Field(
        default="sqlite:///auramail.sqlite3",
        description="SQLAlchemy database URL",
    )
    retention_days: int = Field(
        default=183,
        description="Age in days after which unimportant email rows are deleted",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
