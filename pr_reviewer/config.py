"""
Service Configuration

All knobs come from ``PR_REVIEWER_*`` environment variables (or a ``.env``
file next to the process) and are validated when the service starts, so a
typo in the backend name or log level stops startup instead of surfacing
on the first request.

The defaults run the service standalone: in-memory storage, two reviewers
per PR, JSON logs. Production deployments set ``storage_backend=sql``, a
PostgreSQL ``database_url`` and real tokens.
"""

from functools import lru_cache
from typing import Iterable

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STORAGE_BACKENDS = ("memory", "sql")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _one_of(value: str, allowed: Iterable[str], what: str) -> str:
    if value not in allowed:
        raise ValueError(f"Invalid {what}: {value!r}. Expected one of {', '.join(allowed)}")
    return value


class Settings(BaseSettings):
    """Runtime settings. Tokens are read from the environment and never logged."""

    model_config = SettingsConfigDict(
        env_prefix="PR_REVIEWER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- HTTP server ---------------------------------------------------------
    host: str = Field(default="0.0.0.0", description="Interface uvicorn binds to")
    port: int = Field(default=8080, ge=1, le=65535, description="Port uvicorn binds to")

    # --- Storage -------------------------------------------------------------
    storage_backend: str = Field(
        default="memory",
        description="'memory' (single process, lost on restart) or 'sql'"
    )
    database_url: str = Field(
        default="sqlite:///./pr_reviewer.db",
        description="SQLAlchemy URL for the 'sql' backend, e.g. postgresql+psycopg://..."
    )
    database_echo: bool = Field(default=False, description="Echo every SQL statement")
    db_connect_retries: int = Field(
        default=5, ge=1, le=20,
        description="Attempts to create the schema before giving up at startup"
    )
    db_retry_base_delay: float = Field(
        default=0.5, ge=0.1,
        description="First backoff delay in seconds, doubled on each attempt"
    )
    db_retry_max_delay: float = Field(
        default=10.0, ge=1.0,
        description="Upper bound for a single backoff delay in seconds"
    )

    # --- Bearer tokens -------------------------------------------------------
    admin_token: str = Field(
        default="admin-secret-token",
        description="Unlocks every route, including all writes"
    )
    user_token: str = Field(
        default="user-secret-token",
        description="Unlocks the read-only routes"
    )

    # --- Reviewer assignment -------------------------------------------------
    reviewers_per_pr: int = Field(
        default=2, ge=1, le=10,
        description="Reviewers drawn from the author's team when a PR is created"
    )

    # --- Logging -------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Root log level")
    log_json_format: bool = Field(default=True, description="JSON lines instead of console output")
    log_requests: bool = Field(
        default=False,
        description="Log every HTTP request (method, path, status, duration)"
    )

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        return _one_of(v.lower(), STORAGE_BACKENDS, "storage backend")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return _one_of(v.upper(), LOG_LEVELS, "log level")


@lru_cache()
def get_settings() -> Settings:
    """Settings read once per process; tests build ``Settings`` directly instead."""
    return Settings()
