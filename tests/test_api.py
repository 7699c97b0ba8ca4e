"""Tests for the HTTP transport: routes, middleware and envelopes."""

import uuid
from unittest.mock import AsyncMock, patch

from partner_gateway.infra.cache import CacheUnavailableError
from partner_gateway.services.sse_registry import EVENT_ERROR, EVENT_TOOL_RESPONSE

ALLOWED_ORIGIN = "https://partner.example.com"
BLOCKED_ORIGIN = "https://evil.example.com"

CHECKOUT_PARAMS = {
    "items": [{"priceId": "price_123", "quantity": 1}],
    "successUrl": "https://example.com/success",
    "cancelUrl": "https://example.com/cancel",
}


class TestToolCalls:
    """POST /tools/{tool_name}."""

    def test_ping(self, client):
        response = client.post("/tools/ping", json={"params": {"name": "Nick"}})
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["message"] == "Hello, Nick!"
        assert "timestamp" in data
        assert uuid.UUID(response.headers["X-Correlation-Id"])

    def test_ping_empty_body(self, client):
        response = client.post("/tools/ping")
        assert response.status_code == 200
        assert response.json()["message"] == "Hello, World!"

    def test_checkout_idempotency(self, client):
        """Test that the same idempotency key yields the same session ID."""
        headers = {"X-Idempotency-Key": "abc123"}
        first = client.post("/tools/createCheckoutSession", json={"params": CHECKOUT_PARAMS}, headers=headers)
        second = client.post("/tools/createCheckoutSession", json={"params": CHECKOUT_PARAMS}, headers=headers)
        assert first.status_code == second.status_code == 200
        assert "abc123" in first.json()["sessionId"]
        assert first.json()["sessionId"] == second.json()["sessionId"]
        assert first.json()["idempotencyKey"] == "abc123"

    def test_missing_required_param(self, client):
        response = client.post("/tools/searchProducts", json={"params": {}})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "BAD_PARAMS"
        assert error["details"]

    def test_relative_url_rejected(self, client):
        params = dict(CHECKOUT_PARAMS, successUrl="/success")
        response = client.post("/tools/createCheckoutSession", json={"params": params})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_PARAMS"

    def test_unknown_tool(self, client):
        response = client.post("/tools/doesNotExist", json={"params": {}})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "UNKNOWN_TOOL"

    def test_malformed_json(self, client):
        response = client.post(
            "/tools/ping",
            content=b'{"params": {',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_JSON"

    def test_alias_route(self, client):
        response = client.post("/tools/shopify.searchProducts", json={"params": {"query": "mug", "limit": 1}})
        assert response.status_code == 200
        assert response.json()["total"] == 1


class TestCorrelation:
    def test_caller_id_echoed(self, client):
        """Test that the caller's ID is echoed in the header and the error body."""
        response = client.post(
            "/tools/doesNotExist",
            json={"params": {}},
            headers={"X-Correlation-Id": "trace-123"},
        )
        assert response.headers["X-Correlation-Id"] == "trace-123"
        assert response.json()["error"]["correlationId"] == "trace-123"

    def test_header_on_health(self, client):
        response = client.get("/healthz", headers={"x-correlation-id": "trace-456"})
        assert response.headers["X-Correlation-Id"] == "trace-456"

    def test_error_id_matches_header(self, client):
        response = client.post("/tools/searchProducts", json={"params": {}})
        assert response.json()["error"]["correlationId"] == response.headers["X-Correlation-Id"]


class TestOriginGuard:
    """Origin checks run before any tool logic."""

    def test_blocked_origin(self, app, client):
        """Test that a disallowed origin gets 403 and the tool never runs."""
        with patch.object(app.state.dispatcher, "dispatch", new=AsyncMock()) as dispatch:
            response = client.post(
                "/tools/createCheckoutSession",
                json={"params": CHECKOUT_PARAMS},
                headers={"Origin": BLOCKED_ORIGIN},
            )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "CORS_BLOCKED"
        assert response.json()["error"]["correlationId"] == response.headers["X-Correlation-Id"]
        dispatch.assert_not_called()

    def test_blocked_origin_wins_over_bad_json(self, client):
        response = client.post(
            "/tools/ping",
            content=b"{not json",
            headers={"Origin": BLOCKED_ORIGIN, "Content-Type": "application/json"},
        )
        assert response.status_code == 403

    def test_no_origin_allowed(self, client):
        response = client.post("/tools/ping", json={"params": {}})
        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_allowed_origin_gets_cors_headers(self, client):
        response = client.post("/tools/ping", json={"params": {}}, headers={"Origin": ALLOWED_ORIGIN})
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN
        assert response.headers["Access-Control-Allow-Credentials"] == "true"
        exposed = response.headers["Access-Control-Expose-Headers"]
        assert "X-Correlation-Id" in exposed
        assert "X-SSE-Connection-ID" in exposed

    def test_preflight_allowed(self, client):
        """Test that an allowed preflight advertises the gateway's methods and headers."""
        response = client.options(
            "/tools/ping",
            headers={
                "Origin": ALLOWED_ORIGIN,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type, X-Correlation-Id, X-Idempotency-Key, X-SSE-Connection-ID",
            },
        )
        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN
        assert response.headers["Access-Control-Allow-Credentials"] == "true"
        assert "POST" in response.headers["Access-Control-Allow-Methods"]
        allowed_headers = response.headers["Access-Control-Allow-Headers"].lower()
        for header in ("x-correlation-id", "x-idempotency-key", "x-sse-connection-id"):
            assert header in allowed_headers

    def test_preflight_blocked(self, client):
        response = client.options(
            "/tools/ping",
            headers={"Origin": BLOCKED_ORIGIN, "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "CORS_BLOCKED"
        assert "Access-Control-Allow-Origin" not in response.headers

    def test_agent_origin_allowed(self, client):
        response = client.get("/healthz", headers={"Origin": "https://chatgpt.com"})
        assert response.status_code == 200


class TestTransportErrors:
    def test_unmatched_route(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "NOT_FOUND"
        assert "GET /nope" in error["message"]

    def test_method_not_allowed(self, client):
        response = client.get("/tools/ping")
        assert response.status_code == 405
        assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"

    def test_payload_too_large(self, client):
        response = client.post(
            "/tools/ping",
            content=b"x" * (10 * 1024 * 1024 + 1),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 413
        assert response.json()["error"]["code"] == "PAYLOAD_TOO_LARGE"

    def test_security_headers(self, client):
        response = client.get("/healthz")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"


class TestHealth:
    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["status"] == "ok"
        assert data["demoMode"] is True
        assert data["timestamp"].endswith("Z")

    def test_ready_without_store(self, client):
        response = client.get("/healthz/ready")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "ready": True}

    def test_ready_store_unreachable(self, client):
        with patch(
            "partner_gateway.api.routers.health.ping_cache",
            new=AsyncMock(side_effect=CacheUnavailableError("connection refused")),
        ):
            response = client.get("/healthz/ready")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "NOT_READY"

    def test_metrics(self, client):
        client.post("/tools/ping", json={"params": {}})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "gateway_tool_calls_total" in response.text


class TestDiscovery:
    def test_manifest(self, client):
        response = client.get("/mcp-manifest.json")
        assert response.status_code == 200
        manifest = response.json()
        assert manifest["name"] == "partner-integration-demo"
        assert manifest["version"] == "0.1.1"
        assert manifest["homepage"] == "https://testserver"
        names = [tool["name"] for tool in manifest["tools"]]
        assert names == [
            "ping",
            "searchProducts",
            "createCheckoutSession",
            "createSimpleCheckoutSession",
            "getPaymentStatus",
        ]
        for tool in manifest["tools"]:
            assert tool["parameters"]["type"] == "object"

    def test_tools_list(self, client):
        response = client.get("/tools")
        tools = {tool["name"]: tool for tool in response.json()["tools"]}
        assert "query" in tools["searchProducts"]["inputSchema"]["required"]

    def test_root_get_and_post(self, client):
        for method in ("GET", "POST"):
            response = client.request(method, "/")
            assert response.status_code == 200
            data = response.json()
            assert data["mcp"] is True
            assert data["manifest"] == "/mcp-manifest.json"
            assert data["sse"] == "/sse"
            assert response.headers["Cache-Control"] == "no-store"


class TestSSEPush:
    """Tool results pushed onto an open event stream."""

    def test_result_pushed(self, app, client):
        connection = app.state.sse_registry.connect("cid-sse")
        response = client.post(
            "/tools/ping",
            json={"params": {"name": "Stream"}},
            headers={"X-SSE-Connection-ID": connection.connection_id, "X-Correlation-Id": "cid-call"},
        )
        assert response.status_code == 202
        assert response.json() == {"ok": True, "message": "Response streamed via SSE"}

        event, data = connection.queue.get_nowait()
        assert event == EVENT_TOOL_RESPONSE
        assert data["tool"] == "ping"
        assert data["correlationId"] == "cid-call"
        assert data["result"]["message"] == "Hello, Stream!"

    def test_failure_pushed_as_error_event(self, app, client):
        connection = app.state.sse_registry.connect("cid-sse")
        response = client.post(
            "/tools/searchProducts",
            json={"params": {}},
            headers={"X-SSE-Connection-ID": connection.connection_id},
        )
        assert response.status_code == 202
        event, data = connection.queue.get_nowait()
        assert event == EVENT_ERROR
        assert data["error"]["code"] == "BAD_PARAMS"

    def test_unknown_connection_answers_inline(self, client):
        response = client.post(
            "/tools/ping",
            json={"params": {}},
            headers={"X-SSE-Connection-ID": "no-such-connection"},
        )
        assert response.status_code == 200
        assert response.json()["ok"] is True
