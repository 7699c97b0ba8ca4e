"""Server-Sent Events API router."""

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from partner_gateway.api.utils import SSE_CONNECTION_HEADER, get_correlation_id
from partner_gateway.infra.correlation import CORRELATION_ID_HEADER
from partner_gateway.services.manifest import build_manifest, resolve_homepage
from partner_gateway.services.sse_registry import SSE_HEADERS, event_stream

router = APIRouter()


@router.get(
    "/sse",
    response_class=StreamingResponse,
    responses={200: {"content": {"text/event-stream": {}}}},
    tags=["Streaming"],
)
async def sse(request: Request):
    """
    Open an MCP event stream.

    The first event is ``mcp.init`` carrying the manifest, then ``mcp.ping``
    heartbeats. Tool calls made with this stream's ``X-SSE-Connection-ID``
    arrive as ``mcp.tool_response`` or ``mcp.error`` events.
    """
    state = request.app.state
    correlation_id = get_correlation_id(request)
    connection = state.sse_registry.connect(correlation_id)
    manifest = build_manifest(state.registry, resolve_homepage(state.config, request.headers.get("host")))

    headers = dict(SSE_HEADERS)
    headers[SSE_CONNECTION_HEADER] = connection.connection_id
    headers[CORRELATION_ID_HEADER] = correlation_id
    return StreamingResponse(
        event_stream(state.sse_registry, connection, manifest, state.config.SSE_HEARTBEAT_SECONDS),
        media_type="text/event-stream",
        headers=headers,
    )
