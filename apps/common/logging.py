"""
Request-scoped logging context for the Storefront platform.

RequestIDMiddleware stores the current request id here and RequestIDFilter
copies it onto every log record so checkout, webhook and fan-out logs of the
same request can be correlated.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

# Thread-local storage for request context
_request_context = threading.local()


# =============================================================================
# REQUEST CONTEXT FUNCTIONS
# =============================================================================


def set_request_id(request_id: str) -> None:
    """Set the current request ID in thread-local storage."""
    _request_context.request_id = request_id


def get_request_id() -> str | None:
    """Get the current request ID from thread-local storage."""
    return getattr(_request_context, "request_id", None)


def set_request_context(**kwargs: Any) -> None:
    for key, value in kwargs.items():
        setattr(_request_context, key, value)


def clear_request_context() -> None:
    """Drop everything stored for the finished request."""
    _request_context.__dict__.clear()


# =============================================================================
# LOGGING FILTERS
# =============================================================================


class RequestIDFilter(logging.Filter):
    """Add request ID and user ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = getattr(_request_context, "request_id", "-")
        if not hasattr(record, "user_id"):
            record.user_id = getattr(_request_context, "user_id", None)
        return True
