"""
Storage Package

This package contains the storage port and its backends:
- base: Storage / Repository interfaces consumed by the services
- memory: in-memory backend (tests, single-instance runs)
- sql: SQLAlchemy backend (PostgreSQL, SQLite)
"""

from pr_reviewer.config import Settings
from pr_reviewer.storage.base import Repository, Storage
from pr_reviewer.storage.memory import MemoryStorage


def build_storage(settings: Settings) -> Storage:
    """Create the storage backend selected by ``settings.storage_backend``."""
    if settings.storage_backend == "sql":
        # SQLAlchemy is only needed by this backend
        from pr_reviewer.storage.sql import SQLStorage

        return SQLStorage(
            settings.database_url,
            echo=settings.database_echo,
            connect_retries=settings.db_connect_retries,
            retry_base_delay=settings.db_retry_base_delay,
            retry_max_delay=settings.db_retry_max_delay,
        )
    return MemoryStorage()


__all__ = [
    "build_storage",
    "MemoryStorage",
    "Repository",
    "Storage",
]
