"""JSON-RPC 2.0 framing of the tool dispatcher (MCP streamable HTTP style)."""

import json
import logging
from typing import Any, Dict, Optional

from partner_gateway.infra.error_handler import ErrorCode
from partner_gateway.models import RequestEnvelope, ResultEnvelope
from partner_gateway.services.dispatcher import ToolDispatcher
from partner_gateway.services.manifest import MANIFEST_NAME, MANIFEST_VERSION

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

JSONRPC_CODE_BY_ERROR = {
    ErrorCode.BAD_JSON: PARSE_ERROR,
    ErrorCode.BAD_PARAMS: INVALID_PARAMS,
    ErrorCode.UNKNOWN_TOOL: INVALID_PARAMS,
}


def jsonrpc_result(request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def jsonrpc_error(
    request_id: Any,
    code: int,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


class JsonRpcHandler:
    """Maps JSON-RPC requests onto the shared tool dispatcher.

    Supported methods: ``initialize``, ``ping``, ``tools/list``,
    ``tools/call`` and any ``notifications/*`` (acknowledged without a
    response). Tool failures keep their taxonomy code, HTTP status and
    correlation ID in ``error.data``.
    """

    def __init__(self, dispatcher: ToolDispatcher):
        self.dispatcher = dispatcher

    async def handle(
        self,
        raw_body: bytes,
        correlation_id: str,
        idempotency_key: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Handle one JSON-RPC message.

        Returns:
            The response object, or None for notifications
        """
        try:
            message = json.loads(raw_body) if raw_body and raw_body.strip() else None
        except (ValueError, UnicodeDecodeError):
            return jsonrpc_error(None, PARSE_ERROR, "Parse error", self._data(ErrorCode.BAD_JSON, 400, correlation_id))

        if isinstance(message, list):
            return jsonrpc_error(None, INVALID_REQUEST, "Batch requests are not supported")
        if (
            not isinstance(message, dict)
            or message.get("jsonrpc") != JSONRPC_VERSION
            or not isinstance(message.get("method"), str)
        ):
            request_id = message.get("id") if isinstance(message, dict) else None
            return jsonrpc_error(request_id, INVALID_REQUEST, "Invalid Request")

        method = message["method"]
        request_id = message.get("id")
        params = message.get("params")
        if params is None:
            params = {}

        if method.startswith("notifications/") or "id" not in message:
            logger.debug("JSON-RPC notification received", extra={"method": method})
            return None

        if method == "initialize":
            return jsonrpc_result(request_id, {
                "protocolVersion": (isinstance(params, dict) and params.get("protocolVersion")) or PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": MANIFEST_NAME, "version": MANIFEST_VERSION},
            })
        if method == "ping":
            return jsonrpc_result(request_id, {})
        if method == "tools/list":
            return jsonrpc_result(request_id, {"tools": self._list_tools()})
        if method == "tools/call":
            return await self._call_tool(request_id, params, correlation_id, idempotency_key)

        return jsonrpc_error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    def _list_tools(self):
        return [
            {
                "name": tool["name"],
                "description": tool["description"],
                "inputSchema": tool["parameters"],
            }
            for tool in self.dispatcher.registry.describe()
        ]

    async def _call_tool(
        self,
        request_id: Any,
        params: Any,
        correlation_id: str,
        idempotency_key: Optional[str],
    ) -> Dict[str, Any]:
        if not isinstance(params, dict) or not isinstance(params.get("name"), str):
            return jsonrpc_error(
                request_id,
                INVALID_PARAMS,
                "tools/call requires a tool name",
                self._data(ErrorCode.BAD_PARAMS, 400, correlation_id),
            )

        envelope = await self.dispatcher.dispatch(
            RequestEnvelope(
                tool_name=params["name"],
                correlation_id=correlation_id,
                params=params.get("arguments"),
                idempotency_key=idempotency_key,
            ),
            transport="jsonrpc",
        )
        if envelope.ok:
            return jsonrpc_result(request_id, {
                "content": [{"type": "text", "text": json.dumps(envelope.body)}],
                "structuredContent": envelope.body,
                "isError": False,
            })
        return self._failure(request_id, envelope)

    def _failure(self, request_id: Any, envelope: ResultEnvelope) -> Dict[str, Any]:
        error = envelope.error
        return jsonrpc_error(
            request_id,
            JSONRPC_CODE_BY_ERROR.get(envelope.code, INTERNAL_ERROR),
            error["message"],
            self._data(envelope.code, envelope.http_status, envelope.correlation_id, error.get("details")),
        )

    @staticmethod
    def _data(code: ErrorCode, http_status: int, correlation_id: str, details: Any = None) -> Dict[str, Any]:
        data = {"code": code.value, "httpStatus": http_status, "correlationId": correlation_id}
        if details is not None:
            data["details"] = details
        return data
