"""FastAPI gateway main application."""

import asyncio
import os
from contextlib import asynccontextmanager, suppress
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from partner_gateway.api.routers import discovery, health, mcp, sse, tools
from partner_gateway.api.utils import error_response, get_correlation_id
from partner_gateway.infra.config import Config, config as default_config
from partner_gateway.infra.error_handler import ErrorCode, INTERNAL_ERROR_MESSAGE
from partner_gateway.infra.logging import app_logger
from partner_gateway.infra.middleware import (
    CorrelationIdMiddleware,
    OriginGuardMiddleware,
    RequestLoggingMiddleware,
    setup_cors,
)
from partner_gateway.infra.origins import AllowedOriginSet
from partner_gateway.infra.timeout import TimeoutMiddleware
from partner_gateway.services.dispatcher import ToolDispatcher
from partner_gateway.services.jsonrpc import JsonRpcHandler
from partner_gateway.services.sse_registry import SSERegistry
from partner_gateway.services.tool_registry import build_default_registry

ERROR_CODE_BY_STATUS = {
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    413: ErrorCode.PAYLOAD_TOO_LARGE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    # Startup
    app_config = app.state.config
    app_logger.info(
        "Application starting up",
        extra={
            "demo_mode": app_config.DEMO_MODE,
            "allowed_origins": list(app.state.allowed_origins),
            "tools": [tool.name for tool in app.state.registry.tools()],
        },
    )
    reaper = asyncio.create_task(app.state.sse_registry.run_reaper(app_config.SSE_REAP_INTERVAL_SECONDS))

    yield

    # Shutdown
    app_logger.info("Application shutting down")
    reaper.cancel()
    with suppress(asyncio.CancelledError):
        await reaper
    app.state.sse_registry.close_all()


def create_app(app_config: Optional[Config] = None) -> FastAPI:
    """
    Build the application.

    The origin allow-list, schema registry, dispatcher and SSE registry are
    created once here and kept on ``app.state``; changing them requires a
    new application (process restart).
    """
    app_config = app_config or default_config

    app = FastAPI(
        title="Partner Integration Gateway",
        description="""
    Partner Integration Gateway exposes a fixed set of tools (ping, product search,
    checkout-session creation, payment-status lookup) to external agents.

    ## Transports

    - **HTTP/JSON**: `POST /tools/{tool_name}` with body `{"params": {...}}`
    - **Server-Sent Events**: `GET /sse` streams the manifest, heartbeats and pushed tool results
    - **JSON-RPC 2.0**: `POST /mcp` with `initialize`, `tools/list` and `tools/call`

    Every response carries `X-Correlation-Id`; failures use the envelope
    `{"ok": false, "error": {"code", "message", "details", "correlationId"}}`.
    """,
        version="0.1.1",
        lifespan=lifespan,
        tags_metadata=[
            {"name": "Discovery", "description": "Root metadata, tool list and manifest"},
            {"name": "Tools", "description": "Tool invocation over HTTP/JSON"},
            {"name": "Streaming", "description": "Server-Sent Events transport"},
            {"name": "MCP", "description": "JSON-RPC 2.0 transport"},
            {"name": "Health", "description": "Health check and monitoring endpoints"},
        ],
    )

    registry = build_default_registry()
    dispatcher = ToolDispatcher(registry, app_config)
    app.state.config = app_config
    app.state.allowed_origins = AllowedOriginSet.from_config(app_config)
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.jsonrpc = JsonRpcHandler(dispatcher)
    app.state.sse_registry = SSERegistry(stale_after=app_config.SSE_STALE_SECONDS)

    # Last added runs first: correlation -> logging -> origin guard -> CORS -> timeout
    app.add_middleware(TimeoutMiddleware, timeout=app_config.REQUEST_TIMEOUT_SECONDS)
    setup_cors(app, app.state.allowed_origins)
    app.add_middleware(OriginGuardMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(discovery.router)
    app.include_router(health.router)
    app.include_router(tools.router)
    app.include_router(sse.router)
    app.include_router(mcp.router)

    register_exception_handlers(app)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions (unmatched routes, wrong methods)."""
        code = ERROR_CODE_BY_STATUS.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
        if code == ErrorCode.NOT_FOUND:
            message = f"Route not found: {request.method} {request.url.path}"
        elif code == ErrorCode.METHOD_NOT_ALLOWED:
            message = f"Method not allowed: {request.method} {request.url.path}"
        else:
            message = str(exc.detail)
        return error_response(code, message, get_correlation_id(request), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        return error_response(
            ErrorCode.BAD_PARAMS,
            "Invalid request",
            get_correlation_id(request),
            details=[f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in exc.errors()],
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        correlation_id = get_correlation_id(request)
        app_logger.error(
            f"Unhandled exception: {exc}",
            exc_info=True,
            extra={"correlation_id": correlation_id, "path": request.url.path},
        )
        return error_response(ErrorCode.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE, correlation_id)


app = create_app()


async def serve(app_config: Config = default_config) -> None:
    """Serve HTTP, plus HTTPS when enabled and certificate files are present."""
    import uvicorn

    servers = [
        uvicorn.Server(uvicorn.Config(
            app,
            host="0.0.0.0",
            port=app_config.HTTP_PORT,
            timeout_keep_alive=30,
            timeout_graceful_shutdown=30,
            log_config=None,
        ))
    ]

    cert, key = app_config.TLS_CERT_PATH, app_config.TLS_KEY_PATH
    if app_config.ENABLE_HTTPS and cert and key and os.path.exists(cert) and os.path.exists(key):
        servers.append(uvicorn.Server(uvicorn.Config(
            app,
            host="0.0.0.0",
            port=app_config.HTTPS_PORT,
            ssl_certfile=cert,
            ssl_keyfile=key,
            # Lifespan (and the SSE reaper) runs once, on the HTTP server
            lifespan="off",
            timeout_keep_alive=30,
            timeout_graceful_shutdown=30,
            log_config=None,
        )))
    elif app_config.ENABLE_HTTPS:
        app_logger.warning("HTTPS enabled but TLS certificate or key not found; serving HTTP only")

    await asyncio.gather(*(server.serve() for server in servers))


def main() -> None:
    asyncio.run(serve())


if __name__ == "__main__":
    main()
