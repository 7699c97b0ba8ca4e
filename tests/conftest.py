"""Pytest configuration and fixtures."""

import os
import pytest
from dotenv import load_dotenv

# Load test environment variables
load_dotenv()

# Set test environment before the package reads it
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ["DEMO_MODE"] = "true"
os.environ["ENABLE_HTTPS"] = "false"
os.environ["HTTP_PORT"] = "8080"
os.environ["HTTPS_PORT"] = "8443"
os.environ["ALLOWED_ORIGINS"] = "https://partner.example.com, not a url"
os.environ["SITE_URL"] = "https://shop.example.com"
os.environ["MCP_SERVER_URL"] = ""
os.environ["REDIS_URL"] = ""

from fastapi.testclient import TestClient

from partner_gateway.infra.config import Config
from partner_gateway.main import create_app
from partner_gateway.services.tool_registry import build_default_registry

ALLOWED_ORIGIN = "https://partner.example.com"
BLOCKED_ORIGIN = "https://evil.example.com"


@pytest.fixture
def test_config():
    """Fresh configuration read from the test environment."""
    return Config()


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def app(test_config):
    return create_app(test_config)


@pytest.fixture
def client(app):
    """Test client with lifespan (SSE reaper) running."""
    with TestClient(app) as test_client:
        yield test_client
