"""
Shared logging configuration for the tiered cache.
"""

import sys
import structlog
import logging
import uuid
import time
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
operation_id_var: ContextVar[Optional[str]] = ContextVar('operation_id', default=None)
cache_key_var: ContextVar[Optional[str]] = ContextVar('cache_key', default=None)


def configure_logging(service_name: str = "tiered_cache", log_level: str = "info") -> None:
    """Configure structured logging."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            add_timestamp,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )
    logging.getLogger(service_name).setLevel(getattr(logging, log_level.upper()))


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add component name (first logger segment) to log events."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["component"] = logger_name.split(".")[0]

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add correlation context to log events."""
    operation_id = operation_id_var.get()
    if operation_id:
        event_dict["operation_id"] = operation_id

    cache_key = cache_key_var.get()
    if cache_key and "key" not in event_dict:
        event_dict["key"] = cache_key

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_operation_id(operation_id: Optional[str] = None) -> str:
    """Set operation ID in context."""
    if operation_id is None:
        operation_id = str(uuid.uuid4())
    operation_id_var.set(operation_id)
    return operation_id


def set_cache_key(key: Optional[str]) -> None:
    """Bind the cache key being operated on."""
    cache_key_var.set(key)


def clear_context():
    """Clear all context variables."""
    operation_id_var.set(None)
    cache_key_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
