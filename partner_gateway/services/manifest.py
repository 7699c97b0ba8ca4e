"""Discovery documents: tool manifest and root discovery metadata."""

from typing import Any, Dict, Optional

from partner_gateway.infra.config import Config
from partner_gateway.services.tool_registry import SchemaRegistry

MANIFEST_NAME = "partner-integration-demo"
MANIFEST_VERSION = "0.1.1"
MANIFEST_DESCRIPTION = "Production MCP tools for partner integrations (Shopify + Stripe)"


def resolve_homepage(config: Config, host: Optional[str] = None) -> str:
    """Public base URL: configured server URL, else the request host, else local HTTPS."""
    if config.MCP_SERVER_URL:
        return config.MCP_SERVER_URL.rstrip("/")
    if host:
        return f"https://{host}"
    return f"https://localhost:{config.HTTPS_PORT}"


def build_manifest(registry: SchemaRegistry, homepage: str) -> Dict[str, Any]:
    return {
        "name": MANIFEST_NAME,
        "version": MANIFEST_VERSION,
        "description": MANIFEST_DESCRIPTION,
        "homepage": homepage,
        "tools": registry.describe(),
    }


def build_discovery(homepage: str) -> Dict[str, Any]:
    """Root document pointing agents at the manifest and the event stream."""
    return {
        "mcp": True,
        "name": MANIFEST_NAME,
        "description": MANIFEST_DESCRIPTION,
        "manifest": "/mcp-manifest.json",
        "sse": "/sse",
        "homepage": homepage,
    }
