"""Configuration management."""

import os
from typing import List, Optional
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
project_root = Path(__file__).parent.parent.parent
env_file = project_root / ".env"

# override=False means existing environment variables take precedence
load_dotenv(dotenv_path=env_file, override=False)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Config:
    """Application configuration read from the environment.

    Values are resolved once when the object is created. The application
    factory takes a Config instance, so tests build their own after
    adjusting the environment instead of mutating a shared one.
    """

    def __init__(self):
        # Application
        self.APP_ENV: str = os.getenv("APP_ENV", "development")
        self.DEBUG: bool = _env_bool("DEBUG")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if self.DEBUG else "INFO").upper()
        self.DEMO_MODE: bool = _env_bool("DEMO_MODE")

        # Server
        self.HTTP_PORT: int = int(os.getenv("HTTP_PORT") or os.getenv("PORT") or 8080)
        self.HTTPS_PORT: int = int(os.getenv("HTTPS_PORT", "8443"))
        self.ENABLE_HTTPS: bool = os.getenv("ENABLE_HTTPS", "true").lower() != "false"
        self.TLS_CERT_PATH: Optional[str] = os.getenv("TLS_CERT_PATH") or os.getenv("TLS_CERT")
        self.TLS_KEY_PATH: Optional[str] = os.getenv("TLS_KEY_PATH") or os.getenv("TLS_KEY")

        # Public URLs
        self.SITE_URL: Optional[str] = os.getenv("SITE_URL") or os.getenv("NEXT_PUBLIC_SITE_URL")
        self.MCP_SERVER_URL: Optional[str] = os.getenv("MCP_SERVER_URL")
        self.ALLOWED_ORIGINS: List[str] = [
            origin.strip()
            for origin in os.getenv("ALLOWED_ORIGINS", "").split(",")
            if origin.strip()
        ]

        # Optional cache/store used by the readiness probe
        self.REDIS_URL: Optional[str] = os.getenv("REDIS_URL")

        # Deadlines and stream housekeeping (seconds)
        self.REQUEST_TIMEOUT_SECONDS: float = _env_float("REQUEST_TIMEOUT_SECONDS", 10.0)
        self.TOOL_TIMEOUT_SECONDS: float = _env_float("TOOL_TIMEOUT_SECONDS", 10.0)
        self.SSE_HEARTBEAT_SECONDS: float = _env_float("SSE_HEARTBEAT_SECONDS", 30.0)
        self.SSE_STALE_SECONDS: float = _env_float("SSE_STALE_SECONDS", 300.0)
        self.SSE_REAP_INTERVAL_SECONDS: float = _env_float("SSE_REAP_INTERVAL_SECONDS", 60.0)

        # Commerce platform
        self.SHOPIFY_STORE_URL: Optional[str] = os.getenv("SHOPIFY_STORE_URL") or os.getenv("SHOPIFY_SHOP")
        self.SHOPIFY_ACCESS_TOKEN: Optional[str] = os.getenv("SHOPIFY_ACCESS_TOKEN")
        self.SHOPIFY_API_VERSION: str = os.getenv("SHOPIFY_API_VERSION", "2024-10")

        # Payment platform
        self.STRIPE_SECRET_KEY: Optional[str] = os.getenv("STRIPE_SECRET_KEY")
        self.STRIPE_API_BASE: str = os.getenv("STRIPE_API_BASE", "https://api.stripe.com")

    @property
    def site_url(self) -> str:
        """Frontend base URL used for default checkout redirects."""
        return (self.SITE_URL or "http://localhost:3000").rstrip("/")


config = Config()
