"""API helpers shared by the routers."""

from typing import Any, Optional
from fastapi import Request
from fastapi.responses import JSONResponse

from partner_gateway.infra.correlation import CORRELATION_ID_HEADER, resolve_correlation_id
from partner_gateway.infra.error_handler import ErrorCode, HTTP_STATUS_BY_CODE
from partner_gateway.models import RequestEnvelope, ResultEnvelope, failure_body

IDEMPOTENCY_KEY_HEADER = "X-Idempotency-Key"
SSE_CONNECTION_HEADER = "X-SSE-Connection-ID"


def get_correlation_id(request: Request) -> str:
    """Correlation ID resolved by the middleware (or resolved now if it did not run)."""
    correlation_id = getattr(request.state, "correlation_id", None)
    if not correlation_id:
        correlation_id = resolve_correlation_id(request.headers)
        request.state.correlation_id = correlation_id
    return correlation_id


def envelope_response(envelope: ResultEnvelope) -> JSONResponse:
    return JSONResponse(
        status_code=envelope.http_status,
        content=envelope.body,
        headers={CORRELATION_ID_HEADER: envelope.correlation_id},
    )


def error_response(
    code: ErrorCode,
    message: str,
    correlation_id: str,
    details: Optional[Any] = None,
    status_code: Optional[int] = None,
) -> JSONResponse:
    """Failure envelope for transport-level errors (unmatched route, readiness, ...)."""
    return JSONResponse(
        status_code=status_code or HTTP_STATUS_BY_CODE[code],
        content=failure_body(code, message, correlation_id, details=details),
        headers={CORRELATION_ID_HEADER: correlation_id},
    )


async def build_request_envelope(request: Request, tool_name: str) -> RequestEnvelope:
    """Normalize an HTTP tool call; the body is left undecoded for the dispatcher."""
    return RequestEnvelope(
        tool_name=tool_name,
        correlation_id=get_correlation_id(request),
        raw_body=await request.body(),
        idempotency_key=request.headers.get(IDEMPOTENCY_KEY_HEADER) or None,
        origin=request.headers.get("origin"),
    )
