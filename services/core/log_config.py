"""
Structured logging configuration using structlog.

Provides JSON logging with ISO timestamps and stdlib compatibility.
Import sessions bind their organization and domain into the context so
every event of a commit run can be correlated.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.typing import FilteringBoundLogger


def _get_settings():
    """Lazy load settings to avoid circular imports."""
    from .settings import settings
    return settings()


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure structlog with JSON output and stdlib compatibility.

    Args:
        log_level: Override log level from settings
        log_format: Override log format from settings
    """
    config = _get_settings()
    level = (log_level or config.log_level).upper()
    format_type = (log_format or config.log_format).lower()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),

        # Add service metadata
        lambda _, __, event_dict: {
            **event_dict,
            "service": config.service_name,
            "environment": config.environment,
        },
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level)
        ),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> FilteringBoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (defaults to caller's module)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


@contextmanager
def import_context(**kwargs: Any) -> Iterator[None]:
    """
    Bind import session fields (organization_id, domain, session_id, ...)
    to every log event emitted inside the block.

    Example:
        >>> with import_context(organization_id="org-1", domain="pledge"):
        ...     logger.info("Commit started")
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


def log_processing_batch(
    logger: FilteringBoundLogger,
    batch_id: str,
    items_processed: int,
    items_failed: int = 0,
    duration_ms: Optional[float] = None,
    **extra_context
) -> None:
    """
    Log batch processing results.

    Args:
        logger: Logger instance
        batch_id: Unique batch identifier
        items_processed: Number of items successfully processed
        items_failed: Number of items that failed processing
        duration_ms: Processing duration in milliseconds
        **extra_context: Additional context to include
    """
    total = items_processed + items_failed
    context = {
        "batch_id": batch_id,
        "items_processed": items_processed,
        "items_failed": items_failed,
        "success_rate": round(items_processed / total * 100, 2) if total > 0 else 0,
        **extra_context
    }

    if duration_ms is not None:
        context["duration_ms"] = round(duration_ms, 2)

    if items_failed > 0:
        logger.warning("Batch processing completed with failures", **context)
    else:
        logger.info("Batch processing completed successfully", **context)


def log_api_call(
    logger: FilteringBoundLogger,
    method: str,
    url: str,
    status_code: Optional[int] = None,
    duration_ms: Optional[float] = None,
    **extra_context
) -> None:
    """Log an outbound HTTP call with structured information."""
    context = {
        "method": method,
        "url": url,
        **extra_context
    }

    if status_code is not None:
        context["status_code"] = status_code

    if duration_ms is not None:
        context["duration_ms"] = round(duration_ms, 2)

    if status_code and status_code >= 500:
        logger.error("API call failed", **context)
    elif status_code and status_code >= 400:
        logger.warning("API call client error", **context)
    else:
        logger.info("API call completed", **context)


def _initialize_logging():
    """Initialize logging configuration on module import."""
    try:
        # Skip initialization during pytest
        if "pytest" not in sys.modules:
            configure_logging()
    except Exception as e:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger(__name__).error(
            "Failed to configure structured logging: %s", e
        )


_initialize_logging()
