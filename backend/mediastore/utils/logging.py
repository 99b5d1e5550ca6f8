"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- key
- user_id
- duration_ms

Usage:
    from mediastore.utils.logging import configure_logging, log_object_deleted

    configure_logging('mediastore-api', 'INFO')
    log_object_deleted(logger, key='clients/42/a.pdf', user_id='7')
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier (mediastore-api or mediastore-cli)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        # Create JSON formatter
        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        # Create console handler (for docker logs)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        # Configure root logger
        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Add service name to all log records via filter
        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())
        cls._configured = True


def _build_log_extra(
    event: str,
    key: Optional[str] = None,
    user_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        key: Optional object key
        user_id: Optional user ID
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if key:
        extra["key"] = key
    if user_id:
        extra["user_id"] = user_id
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Object lifecycle events

def log_object_uploaded(
    logger: logging.Logger,
    key: str,
    size: int,
    content_type: str,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log an object written to the bucket.

    Args:
        logger: Logger instance
        key: Object key (required)
        size: Stored size in bytes (required)
        content_type: Stored MIME type (required)
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="object_uploaded",
        key=key,
        duration_ms=duration_ms,
        size=size,
        content_type=content_type,
        **kwargs
    )
    logger.info(f"Object uploaded: {key}", extra=extra)


def log_object_deleted(
    logger: logging.Logger,
    key: str,
    user_id: Optional[str] = None,
    **kwargs
):
    """Log an explicit delete."""
    extra = _build_log_extra(event="object_deleted", key=key, user_id=user_id, **kwargs)
    logger.info(f"Object deleted: {key}", extra=extra)


def log_object_moved(
    logger: logging.Logger,
    from_key: str,
    to_key: str,
    user_id: Optional[str] = None,
    source_deleted: bool = True,
    **kwargs
):
    """
    Log a move (copy followed by delete).

    A move whose source could not be deleted is logged at WARNING level,
    since both keys now exist.
    """
    extra = _build_log_extra(
        event="object_moved",
        key=to_key,
        user_id=user_id,
        from_key=from_key,
        source_deleted=source_deleted,
        **kwargs
    )
    if source_deleted:
        logger.info(f"Object moved: {from_key} -> {to_key}", extra=extra)
    else:
        logger.warning(f"Object copied but source kept: {from_key} -> {to_key}", extra=extra)


def log_cleanup_failed(
    logger: logging.Logger,
    reason: str,
    key: Optional[str] = None,
    url: Optional[str] = None,
    **kwargs
):
    """
    Log a best-effort cleanup that did not succeed.

    Never includes a traceback: the failure is expected and swallowed.
    """
    extra = _build_log_extra(event="cleanup_failed", key=key, reason=reason, **kwargs)
    if url:
        extra["url"] = url
    logger.warning(f"Cleanup of superseded asset failed: {reason}", extra=extra)


def log_backend_failure(
    logger: logging.Logger,
    operation: str,
    error: str,
    key: Optional[str] = None,
    duration_ms: Optional[float] = None,
    include_traceback: bool = False,
    **kwargs
):
    """
    Log a blob backend failure.

    Args:
        logger: Logger instance
        operation: Backend operation (put_object, list_objects_v2, ...) (required)
        error: Error message (required)
        key: Optional object key
        duration_ms: Optional duration in milliseconds
        include_traceback: Whether to include stack trace (default: False)
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="backend_failure",
        key=key,
        duration_ms=duration_ms,
        operation=operation,
        error=str(error),
        **kwargs
    )

    message = f"Backend failure: {operation} - {error}"

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
        else:
            logger.error(message, extra=extra)
    else:
        logger.error(message, extra=extra)


# Convenience alias
def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
