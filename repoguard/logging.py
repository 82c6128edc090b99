"""Structured logging configuration for RepoGuard."""

import logging
import sys
from typing import Any, Dict, Optional, Sequence

import structlog
from structlog.types import Processor

from .config import get_settings


def setup_logging() -> None:
    """Configure structured logging for RepoGuard."""
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=settings.log_level.upper(),
    )

    # Configure structlog
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_check_event(
    logger: structlog.stdlib.BoundLogger,
    check: str,
    phase: str,
    status: Optional[str] = None,
    duration_ms: Optional[int] = None,
    **kwargs: Any,
) -> None:
    """Log a check lifecycle event with standardized fields."""
    log_data: Dict[str, Any] = {
        "check": check,
        "phase": phase,
    }

    if status is not None:
        log_data["status"] = status
    if duration_ms is not None:
        log_data["duration_ms"] = duration_ms

    log_data.update(kwargs)

    logger.info(f"check.{phase}", **log_data)


def log_process_call(
    logger: structlog.stdlib.BoundLogger,
    argv: Sequence[str],
    **kwargs: Any,
) -> None:
    """Log an external process invocation."""
    log_data: Dict[str, Any] = {
        "program": argv[0] if argv else None,
    }

    # Argument values may carry paths or tokens, only the count is logged
    log_data["arg_count"] = max(len(argv) - 1, 0)

    log_data.update(kwargs)

    logger.info("process.call", **log_data)


# Initialize logging on module import
setup_logging()
