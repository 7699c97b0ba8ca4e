"""API request/response models."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from partner_gateway.infra.error_handler import ErrorCode


# ============================================================================
# Health Models
# ============================================================================

class HealthResponse(BaseModel):
    """Response model for the liveness probe."""
    ok: bool = True
    status: str = Field(..., example="ok")
    timestamp: str = Field(..., description="Current server time (ISO 8601)")
    demoMode: bool = Field(..., description="Whether collaborators are mocked")


class ReadyResponse(BaseModel):
    """Response model for the readiness probe."""
    ok: bool = True
    ready: bool = True


# ============================================================================
# Discovery Models
# ============================================================================

class ToolInfo(BaseModel):
    """Tool entry in GET /tools."""
    name: str
    description: str
    inputSchema: Dict[str, Any]


class ToolListResponse(BaseModel):
    tools: List[ToolInfo]


class ManifestTool(BaseModel):
    """Tool entry in the manifest."""
    name: str
    description: str
    parameters: Dict[str, Any]


class ManifestResponse(BaseModel):
    """Response model for /mcp-manifest.json."""
    name: str = Field(..., example="partner-integration-demo")
    version: str = Field(..., example="0.1.1")
    description: str
    homepage: str
    tools: List[ManifestTool]


class DiscoveryResponse(BaseModel):
    """Response model for the root discovery document."""
    mcp: bool = True
    name: str
    description: str
    manifest: str = Field(..., example="/mcp-manifest.json")
    sse: str = Field(..., example="/sse")
    homepage: str


# ============================================================================
# Tool Invocation Models
# ============================================================================

class ToolCallRequest(BaseModel):
    """Request body for POST /tools/{tool_name}."""
    params: Dict[str, Any] = Field(default_factory=dict, description="Tool parameters")


class ToolSuccessResponse(BaseModel):
    """Success envelope: ``ok`` plus tool-specific fields."""
    model_config = ConfigDict(extra="allow")

    ok: bool = True


class ErrorDetail(BaseModel):
    code: ErrorCode
    message: str
    details: Optional[Any] = None
    correlationId: str


class ErrorResponse(BaseModel):
    """Failure envelope returned by every endpoint."""
    ok: bool = False
    error: ErrorDetail


class StreamedResponse(BaseModel):
    """Acknowledgement when a tool result was pushed onto an SSE connection."""
    ok: bool = True
    message: str = Field(..., example="Response streamed via SSE")
