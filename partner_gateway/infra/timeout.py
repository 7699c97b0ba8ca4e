"""Request timeout configuration and middleware."""

import asyncio
import logging
from typing import Any, Awaitable, TypeVar
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from partner_gateway.infra.correlation import CORRELATION_ID_HEADER, generate_correlation_id
from partner_gateway.infra.error_handler import ErrorCode, HTTP_STATUS_BY_CODE, ToolTimeoutError
from partner_gateway.models import failure_body

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Timeout defaults (seconds)
REQUEST_TIMEOUT = 10
UPSTREAM_HTTP_TIMEOUT = 8


async def run_with_deadline(awaitable: Awaitable[T], timeout: float, what: str = "Request") -> T:
    """
    Await a collaborator call under a deadline.

    Raises:
        ToolTimeoutError: If the deadline passes first
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        raise ToolTimeoutError(f"{what} timeout after {timeout:g} seconds")


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce request timeouts.

    Only the time until the response starts is bounded, so event streams
    are not cut off once their headers have been sent.
    """

    def __init__(self, app, timeout: float = REQUEST_TIMEOUT):
        """
        Initialize timeout middleware.

        Args:
            app: FastAPI application
            timeout: Request timeout in seconds (default: 10)
        """
        super().__init__(app)
        self.timeout = timeout

    async def dispatch(self, request: Request, call_next: Any):
        """Process request with timeout."""
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            correlation_id = getattr(request.state, "correlation_id", None) or generate_correlation_id()
            logger.error(
                "Request timed out",
                extra={"path": request.url.path, "timeout_s": self.timeout, "correlation_id": correlation_id},
            )
            return JSONResponse(
                status_code=HTTP_STATUS_BY_CODE[ErrorCode.TIMEOUT],
                content=failure_body(
                    ErrorCode.TIMEOUT,
                    f"Request timeout after {self.timeout:g} seconds",
                    correlation_id,
                ),
                headers={CORRELATION_ID_HEADER: correlation_id},
            )
