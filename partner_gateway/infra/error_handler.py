"""Error taxonomy, typed gateway errors and failure classification."""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum

import httpx


class ErrorCode(str, Enum):
    """Stable error codes exposed in failure envelopes."""
    CORS_BLOCKED = "CORS_BLOCKED"  # Origin rejected
    BAD_JSON = "BAD_JSON"  # Body not parseable
    BAD_PARAMS = "BAD_PARAMS"  # Parameter schema violation
    UNKNOWN_TOOL = "UNKNOWN_TOOL"  # No such tool registered
    TIMEOUT = "TIMEOUT"  # Collaborator call exceeded deadline
    UPSTREAM_4XX = "UPSTREAM_4XX"  # Collaborator reported a client-class failure
    UPSTREAM_5XX = "UPSTREAM_5XX"  # Collaborator reported a server-class failure
    INTERNAL_ERROR = "INTERNAL_ERROR"  # Unclassified fault
    # Transport-level codes, never produced by the tool dispatcher
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    NOT_READY = "NOT_READY"


# HTTP status per code. TIMEOUT stays at 500: that is the observed contract.
HTTP_STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.CORS_BLOCKED: 403,
    ErrorCode.BAD_JSON: 400,
    ErrorCode.BAD_PARAMS: 400,
    ErrorCode.UNKNOWN_TOOL: 404,
    ErrorCode.TIMEOUT: 500,
    ErrorCode.UPSTREAM_4XX: 502,
    ErrorCode.UPSTREAM_5XX: 502,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.PAYLOAD_TOO_LARGE: 413,
    ErrorCode.NOT_READY: 503,
}

INTERNAL_ERROR_MESSAGE = "Internal server error"


class GatewayError(Exception):
    """Base exception for failures with a known taxonomy code."""
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class OriginNotAllowedError(GatewayError):
    """Request origin is not in the allow-list."""
    code = ErrorCode.CORS_BLOCKED

    def __init__(self, origin: Optional[str] = None):
        self.origin = origin
        super().__init__("Origin not allowed")


class MalformedBodyError(GatewayError):
    """Request body is not well-formed JSON."""
    code = ErrorCode.BAD_JSON

    def __init__(self, message: str = "Malformed JSON body"):
        super().__init__(message)


class ParamsValidationError(GatewayError):
    """Tool parameters failed schema validation."""
    code = ErrorCode.BAD_PARAMS

    def __init__(self, violations: List[str]):
        super().__init__("Invalid parameters", details=list(violations))

    @property
    def violations(self) -> List[str]:
        return self.details


class UnknownToolError(GatewayError):
    """Tool name is not present in the registry."""
    code = ErrorCode.UNKNOWN_TOOL

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool not found: {tool_name}")


class ToolTimeoutError(GatewayError):
    """Collaborator call was aborted by its deadline."""
    code = ErrorCode.TIMEOUT

    def __init__(self, message: str = "Request timeout"):
        super().__init__(message)


class UpstreamError(GatewayError):
    """Collaborator reported a failure.

    ``status_code`` is the collaborator's HTTP status; ``None`` means the
    collaborator could not be reached at all, which counts as server-class.
    """

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"Upstream error: {message}")

    @property
    def code(self) -> ErrorCode:  # type: ignore[override]
        if self.status_code is not None and 400 <= self.status_code < 500:
            return ErrorCode.UPSTREAM_4XX
        return ErrorCode.UPSTREAM_5XX


class CollaboratorConfigError(GatewayError):
    """Collaborator credentials are missing from the environment."""
    code = ErrorCode.INTERNAL_ERROR


class ResultValidationError(GatewayError):
    """Tool result did not match its declared result schema (programming error)."""
    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, tool_name: str, violations: List[str]):
        self.tool_name = tool_name
        self.violations = list(violations)
        super().__init__(INTERNAL_ERROR_MESSAGE)


@dataclass(frozen=True)
class Classification:
    """Result of classifying a failure."""
    code: ErrorCode
    http_status: int
    message: str
    details: Optional[Any] = None


def classify_error(error: BaseException) -> Classification:
    """
    Classify a failure into the gateway taxonomy.

    Matching is on exception type only. Unclassified exceptions are reported
    as INTERNAL_ERROR with a generic message so their text never reaches the
    caller.

    Args:
        error: The exception to classify

    Returns:
        Classification with code, HTTP status, safe message and details
    """
    if isinstance(error, GatewayError):
        code = error.code
        if code == ErrorCode.INTERNAL_ERROR:
            return Classification(
                code=code,
                http_status=HTTP_STATUS_BY_CODE[code],
                message=INTERNAL_ERROR_MESSAGE,
            )
        return Classification(
            code=code,
            http_status=HTTP_STATUS_BY_CODE[code],
            message=error.message,
            details=error.details,
        )

    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return Classification(
            code=ErrorCode.TIMEOUT,
            http_status=HTTP_STATUS_BY_CODE[ErrorCode.TIMEOUT],
            message="Request timeout",
        )

    return Classification(
        code=ErrorCode.INTERNAL_ERROR,
        http_status=HTTP_STATUS_BY_CODE[ErrorCode.INTERNAL_ERROR],
        message=INTERNAL_ERROR_MESSAGE,
    )
