"""
Shared logging configuration for callkit.
"""

import sys
import structlog
import logging
import uuid
import time
from typing import Any, Dict, Optional, Tuple
from contextvars import ContextVar, Token

# Context variables for correlation IDs
call_id_var: ContextVar[Optional[str]] = ContextVar('call_id', default=None)
cache_key_var: ContextVar[Optional[str]] = ContextVar('cache_key', default=None)


def configure_logging(service_name: str = "callkit", log_level: str = "info") -> None:
    """Configure structured logging for a client process."""

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
    get_logger(f"{service_name}.logging").debug("Logging configured", log_level=log_level)


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    # Extract service name from logger name
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".")[0]

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add call correlation context to log events."""
    call_id = call_id_var.get()
    if call_id:
        event_dict["call_id"] = call_id

    cache_key = cache_key_var.get()
    if cache_key and "key" not in event_dict:
        event_dict["key"] = cache_key

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_call_id(call_id: Optional[str] = None) -> str:
    """Set call ID in context."""
    if call_id is None:
        call_id = uuid.uuid4().hex[:12]
    call_id_var.set(call_id)
    return call_id


def set_call_context(cache_key: Optional[str] = None):
    """Set the cache key of the current call in logging."""
    if cache_key:
        cache_key_var.set(cache_key)


def bind_call_context(cache_key: str, call_id: Optional[str] = None) -> Tuple[str, Tuple[Token, Token]]:
    """Bind a fresh call id and cache key; returns the id and reset tokens."""
    if call_id is None:
        call_id = uuid.uuid4().hex[:12]
    tokens = (call_id_var.set(call_id), cache_key_var.set(cache_key))
    return call_id, tokens


def reset_call_context(tokens: Tuple[Token, Token]) -> None:
    """Restore the correlation context that was active before bind_call_context."""
    call_token, key_token = tokens
    cache_key_var.reset(key_token)
    call_id_var.reset(call_token)


def clear_context():
    """Clear all context variables."""
    call_id_var.set(None)
    cache_key_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
