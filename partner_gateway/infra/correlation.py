"""Correlation ID resolution and propagation.

The resolved ID is echoed in the ``X-Correlation-Id`` response header, carried
inside every failure envelope and attached to log records through a context
variable, so a single request can be traced across all three.
"""

import contextvars
import uuid
from typing import Mapping, Optional

CORRELATION_ID_HEADER = "X-Correlation-Id"

_current_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Return a fresh, UUID-grade correlation ID."""
    return str(uuid.uuid4())


def resolve_correlation_id(headers: Mapping[str, str]) -> str:
    """
    Resolve the correlation ID for an inbound request.

    A non-empty caller-supplied value is used verbatim; anything else gets a
    newly generated ID.

    Args:
        headers: Request headers. Lookup is case-insensitive when the mapping
            is (Starlette's ``Headers`` is); plain dicts are searched by hand.
    """
    value = headers.get(CORRELATION_ID_HEADER)
    if value is None and not hasattr(headers, "getlist"):
        for key, candidate in headers.items():
            if key.lower() == CORRELATION_ID_HEADER.lower():
                value = candidate
                break
    if value and value.strip():
        return value
    return generate_correlation_id()


def get_current_correlation_id() -> Optional[str]:
    return _current_correlation_id.get()


def set_current_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    return _current_correlation_id.set(correlation_id)


def reset_current_correlation_id(token: contextvars.Token) -> None:
    _current_correlation_id.reset(token)
