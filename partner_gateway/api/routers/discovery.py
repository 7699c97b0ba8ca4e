"""Discovery API router: root metadata, tool list and manifest."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from partner_gateway.api.models import DiscoveryResponse, ManifestResponse, ToolListResponse
from partner_gateway.services.manifest import build_discovery, build_manifest, resolve_homepage

router = APIRouter()

NO_STORE = {"Cache-Control": "no-store"}


def _homepage(request: Request) -> str:
    return resolve_homepage(request.app.state.config, request.headers.get("host"))


@router.api_route("/", methods=["GET", "POST"], response_model=DiscoveryResponse, tags=["Discovery"])
async def discovery(request: Request):
    """
    MCP discovery metadata.

    Agent connectors POST to the root during setup, so both methods answer.
    """
    return JSONResponse(content=build_discovery(_homepage(request)), headers=NO_STORE)


@router.get("/tools", response_model=ToolListResponse, tags=["Discovery"])
async def list_tools(request: Request):
    """List available tools with their input schemas."""
    registry = request.app.state.registry
    return {
        "tools": [
            {"name": tool["name"], "description": tool["description"], "inputSchema": tool["parameters"]}
            for tool in registry.describe()
        ]
    }


@router.get("/mcp-manifest.json", response_model=ManifestResponse, tags=["Discovery"])
async def mcp_manifest(request: Request):
    """Tool manifest for agent discovery."""
    return build_manifest(request.app.state.registry, _homepage(request))
