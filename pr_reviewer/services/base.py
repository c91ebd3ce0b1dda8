"""
Shared service plumbing.

Every service operation runs inside exactly one transactional scope opened
through ``BaseService._transaction``, which also logs failures with the
operation context before letting them propagate unchanged.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from pr_reviewer.errors import AppError, StorageError
from pr_reviewer.logging_config import get_logger
from pr_reviewer.storage.base import Repository, Storage

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseService:
    """Holds the storage handle and wraps operations in a transaction."""

    def __init__(self, storage: Storage):
        self._storage = storage

    @contextmanager
    def _transaction(self, operation: str, **context: Any) -> Iterator[Repository]:
        try:
            with self._storage.transaction() as repo:
                yield repo
        except StorageError as e:
            logger.error(
                "Storage failure",
                operation=operation,
                error=e.message,
                **context
            )
            raise
        except AppError as e:
            logger.warning(
                "Operation rejected",
                operation=operation,
                code=e.code.value,
                reason=e.message,
                **context
            )
            raise
