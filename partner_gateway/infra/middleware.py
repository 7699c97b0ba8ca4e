"""Request middleware for correlation, origin checks, logging and other cross-cutting concerns."""

import logging
import time
from typing import Callable
from fastapi import Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from partner_gateway.infra.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_current_correlation_id,
    resolve_correlation_id,
    set_current_correlation_id,
)
from partner_gateway.infra.error_handler import (
    ErrorCode,
    HTTP_STATUS_BY_CODE,
    OriginNotAllowedError,
    classify_error,
)
from partner_gateway.infra.metrics import request_count, request_duration
from partner_gateway.infra.origins import (
    ALLOWED_HEADERS,
    ALLOWED_METHODS,
    EXPOSED_HEADERS,
    PREFLIGHT_MAX_AGE,
    AllowedOriginSet,
)
from partner_gateway.models import failure_body

MAX_REQUEST_SIZE = 10 * 1024 * 1024  # 10MB

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or generate_correlation_id()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Resolve the correlation ID and echo it on every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = resolve_correlation_id(request.headers)
        request.state.correlation_id = correlation_id
        token = set_current_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_current_correlation_id(token)

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log request/response details."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger = logging.getLogger("partner_gateway.request")

        start_time = time.time()
        logger.info(
            "Request started",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "duration_ms": duration_ms,
                },
                exc_info=True,
            )
            raise

        duration = time.time() - start_time
        logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": int(duration * 1000),
            }
        )

        # Label by route template so /tools/{tool_name} stays one series
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or "unmatched"
        request_count.labels(
            method=request.method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        request_duration.labels(method=request.method, endpoint=endpoint).observe(duration)
        return response


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """Reject disallowed origins (preflights included) and oversized bodies before any route runs.

    The allow-list is read from ``app.state.allowed_origins``. Requests
    without an Origin header pass through untouched. CORS headers for
    allowed origins are added by the CORS middleware set up in ``setup_cors``.
    """

    def __init__(self, app, max_request_size: int = MAX_REQUEST_SIZE):
        super().__init__(app)
        self.max_request_size = max_request_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        origin = request.headers.get("origin")
        allowed_origins = request.app.state.allowed_origins

        if not allowed_origins.is_allowed(origin):
            logging.getLogger(__name__).warning(
                "Blocked request from disallowed origin",
                extra={"origin": origin, "method": request.method, "path": request.url.path},
            )
            classification = classify_error(OriginNotAllowedError(origin))
            return JSONResponse(
                status_code=classification.http_status,
                content=failure_body(
                    classification.code,
                    classification.message,
                    _correlation_id(request),
                ),
            )

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_request_size:
            return JSONResponse(
                status_code=HTTP_STATUS_BY_CODE[ErrorCode.PAYLOAD_TOO_LARGE],
                content=failure_body(
                    ErrorCode.PAYLOAD_TOO_LARGE,
                    f"Request too large. Maximum size: {self.max_request_size} bytes",
                    _correlation_id(request),
                ),
            )

        return await call_next(request)


def setup_cors(app, allowed_origins: AllowedOriginSet):
    """Setup CORS middleware for the allow-list.

    Must be added before ``OriginGuardMiddleware`` so it runs inside the
    guard: disallowed origins are answered with 403 before it is reached.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(allowed_origins),
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
        max_age=PREFLIGHT_MAX_AGE,
    )
