"""JSON-RPC (MCP) API router."""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from partner_gateway.api.utils import IDEMPOTENCY_KEY_HEADER, get_correlation_id
from partner_gateway.infra.correlation import CORRELATION_ID_HEADER

router = APIRouter()


@router.post("/mcp", tags=["MCP"])
async def mcp(request: Request):
    """
    JSON-RPC 2.0 endpoint (``initialize``, ``ping``, ``tools/list``, ``tools/call``).

    Notifications are acknowledged with 202 and no body. Errors are always
    returned with HTTP 200 inside the JSON-RPC error object.
    """
    correlation_id = get_correlation_id(request)
    response = await request.app.state.jsonrpc.handle(
        await request.body(),
        correlation_id,
        idempotency_key=request.headers.get(IDEMPOTENCY_KEY_HEADER) or None,
    )
    if response is None:
        return Response(status_code=202, headers={CORRELATION_ID_HEADER: correlation_id})
    return JSONResponse(content=response, headers={CORRELATION_ID_HEADER: correlation_id})
