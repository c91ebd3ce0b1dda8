"""
Structured Logging

structlog is configured once per process, on top of the standard logging
module, so that uvicorn's and SQLAlchemy's stdlib records and the service's
own events share one renderer: JSON lines in production, a coloured console
when ``log_json_format`` is off.

Every event carries the app name and version. Credentials never reach the
output: values under credential-like keys, and any value that looks like a
bearer header, are replaced before rendering.
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from pr_reviewer import __version__
from pr_reviewer.config import Settings, get_settings

REDACTED = "[REDACTED]"

# Matched as substrings of the lower-cased key
CREDENTIAL_KEYS = ("token", "secret", "password", "authorization", "credential", "bearer")


def _is_credential_key(key: Any) -> bool:
    name = str(key).lower()
    return any(marker in name for marker in CREDENTIAL_KEYS)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_credential_key(k) else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(v) for v in value]
    if type(value) is tuple:
        return tuple(_redact(v) for v in value)
    if isinstance(value, str) and value.lower().startswith("bearer "):
        return REDACTED
    return value


def filter_sensitive_data(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """structlog processor replacing credentials with a placeholder."""
    return _redact(event_dict)


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["app"] = "pr-reviewer"
    event_dict["version"] = __version__
    return event_dict


def _pre_chain() -> List[Processor]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        filter_sensitive_data,
    ]


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Route structlog and stdlib logging through one handler on stdout.

    Safe to call more than once (the app factory runs per test); the root
    handler is replaced, not added.
    """
    settings = settings or get_settings()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if settings.log_json_format
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)

    # Statement echo is opt-in through database_echo
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("PR created", pr_id="pr-1", reviewers=["u2", "u3"])
    """
    return structlog.get_logger(name)
