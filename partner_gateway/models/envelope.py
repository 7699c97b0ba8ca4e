"""Transport-agnostic request and result envelopes."""

from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field

from partner_gateway.infra.error_handler import Classification, ErrorCode


class RequestEnvelope(BaseModel):
    """Normalized description of one inbound tool invocation.

    Transports fill either ``raw_body`` (undecoded request body, parsed by the
    dispatcher) or ``params`` (already-decoded parameters, e.g. JSON-RPC
    arguments).
    """
    tool_name: str
    correlation_id: str = Field(..., min_length=1)
    raw_body: Optional[bytes] = None
    params: Any = None
    idempotency_key: Optional[str] = None
    origin: Optional[str] = None


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    details: Optional[Any] = None
    correlationId: str


class FailureBody(BaseModel):
    ok: Literal[False] = False
    error: ErrorBody


class ResultEnvelope(BaseModel):
    """Outcome of one invocation: exactly one of success or failure."""
    ok: bool
    body: Dict[str, Any]
    http_status: int
    correlation_id: str
    tool_name: Optional[str] = None
    code: Optional[ErrorCode] = None

    @classmethod
    def success(
        cls,
        fields: Dict[str, Any],
        correlation_id: str,
        tool_name: Optional[str] = None,
    ) -> "ResultEnvelope":
        body = {"ok": True}
        body.update({k: v for k, v in fields.items() if k != "ok"})
        return cls(
            ok=True,
            body=body,
            http_status=200,
            correlation_id=correlation_id,
            tool_name=tool_name,
        )

    @classmethod
    def failure(
        cls,
        classification: Classification,
        correlation_id: str,
        tool_name: Optional[str] = None,
    ) -> "ResultEnvelope":
        return cls(
            ok=False,
            body=failure_body(
                classification.code,
                classification.message,
                correlation_id,
                details=classification.details,
            ),
            http_status=classification.http_status,
            correlation_id=correlation_id,
            tool_name=tool_name,
            code=classification.code,
        )

    @property
    def error(self) -> Optional[Dict[str, Any]]:
        return None if self.ok else self.body["error"]


def failure_body(
    code: ErrorCode,
    message: str,
    correlation_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """Build the ``{ok: false, error: {...}}`` wire shape."""
    body = FailureBody(
        error=ErrorBody(code=code, message=message, details=details, correlationId=correlation_id)
    )
    return body.model_dump(mode="json", exclude_none=True)
