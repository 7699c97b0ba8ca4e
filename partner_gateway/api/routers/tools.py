"""Tool invocation API router."""

import logging
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from partner_gateway.api.models import ErrorResponse, StreamedResponse, ToolCallRequest, ToolSuccessResponse
from partner_gateway.api.utils import SSE_CONNECTION_HEADER, build_request_envelope, envelope_response
from partner_gateway.infra.correlation import CORRELATION_ID_HEADER
from partner_gateway.services.sse_registry import EVENT_ERROR, EVENT_TOOL_RESPONSE

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/tools/{tool_name}",
    response_model=ToolSuccessResponse,
    responses={
        202: {"model": StreamedResponse, "description": "Result pushed onto the SSE connection"},
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": ToolCallRequest.model_json_schema()}},
        }
    },
    tags=["Tools"],
)
async def call_tool(tool_name: str, request: Request):
    """
    Invoke a tool.

    Body: ``{"params": {...}}``. Optional headers: ``X-Correlation-Id``,
    ``X-Idempotency-Key`` (mutating tools) and ``X-SSE-Connection-ID`` to
    stream the result onto an open event stream instead of the response.

    The body is read raw so malformed JSON is reported as ``BAD_JSON``.
    """
    dispatcher = request.app.state.dispatcher
    envelope = await dispatcher.dispatch(await build_request_envelope(request, tool_name))

    connection_id = request.headers.get(SSE_CONNECTION_HEADER)
    if connection_id:
        if envelope.ok:
            event, data = EVENT_TOOL_RESPONSE, {
                "tool": envelope.tool_name,
                "correlationId": envelope.correlation_id,
                "result": envelope.body,
            }
        else:
            event, data = EVENT_ERROR, {
                "tool": envelope.tool_name,
                "correlationId": envelope.correlation_id,
                "error": envelope.error,
            }
        if request.app.state.sse_registry.push(connection_id, event, data):
            return JSONResponse(
                status_code=202,
                content={"ok": True, "message": "Response streamed via SSE"},
                headers={CORRELATION_ID_HEADER: envelope.correlation_id},
            )
        logger.info(
            "SSE connection not found, answering inline",
            extra={"connection_id": connection_id, "tool_name": tool_name},
        )

    return envelope_response(envelope)
