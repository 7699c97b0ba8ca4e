"""Tests for the commerce and payment platform clients."""

from urllib.parse import parse_qs

import httpx
import pytest

from partner_gateway.adapters.shopify_client import ShopifyClient, shop_domain
from partner_gateway.adapters.stripe_client import StripeClient
from partner_gateway.infra.error_handler import CollaboratorConfigError, ToolTimeoutError, UpstreamError

SHOPIFY_PRODUCTS = {
    "products": [
        {
            "id": 1,
            "title": "Blue Shirt",
            "vendor": "Acme",
            "product_type": "Apparel",
            "created_at": "2024-01-01T00:00:00Z",
            "handle": "blue-shirt",
            "status": "active",
            "variants": [{"id": 11, "title": "M", "price": "25.00", "sku": "BS-M", "inventory_quantity": 3}],
        },
        {"id": 2, "title": "Red Mug", "vendor": "Acme", "product_type": "Kitchen", "variants": []},
        {"id": 3, "title": "Plain Tee", "vendor": "ShirtCo", "product_type": "Apparel", "variants": []},
    ]
}


@pytest.fixture
def shopify_config(test_config):
    test_config.SHOPIFY_STORE_URL = "my-store"
    test_config.SHOPIFY_ACCESS_TOKEN = "shpat_test"
    return test_config


@pytest.fixture
def stripe_config(test_config):
    test_config.STRIPE_SECRET_KEY = "sk_test_123"
    return test_config


class TestShopDomain:
    @pytest.mark.parametrize("value", [
        "my-store",
        "my-store.myshopify.com",
        "https://my-store.myshopify.com/",
    ])
    def test_normalized(self, value):
        assert shop_domain(value) == "my-store.myshopify.com"


class TestShopifyClient:
    """Product search against a mocked Admin API."""

    @pytest.mark.asyncio
    async def test_search_filters_and_transforms(self, shopify_config):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=SHOPIFY_PRODUCTS)

        client = ShopifyClient(shopify_config, transport=httpx.MockTransport(handler))
        products = await client.search_products("shirt", 10)

        request = seen["request"]
        assert request.url.host == "my-store.myshopify.com"
        assert request.url.path == "/admin/api/2024-10/products.json"
        assert request.url.params["limit"] == "50"
        assert request.headers["X-Shopify-Access-Token"] == "shpat_test"

        # Title match and vendor match, case-insensitive
        assert [p["title"] for p in products] == ["Blue Shirt", "Plain Tee"]
        assert products[0]["id"] == "1"
        assert products[0]["price"] == "25.00"
        assert products[0]["variants"][0]["sku"] == "BS-M"
        assert products[1]["price"] == "0.00"

    @pytest.mark.asyncio
    async def test_results_truncated_to_limit(self, shopify_config):
        client = ShopifyClient(
            shopify_config,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=SHOPIFY_PRODUCTS)),
        )
        products = await client.search_products("acme", 1)
        assert len(products) == 1

    @pytest.mark.asyncio
    async def test_fetch_limit_capped(self, shopify_config):
        seen = {}

        def handler(request):
            seen["limit"] = request.url.params["limit"]
            return httpx.Response(200, json={"products": []})

        client = ShopifyClient(shopify_config, transport=httpx.MockTransport(handler))
        await client.search_products("x", 100)
        assert seen["limit"] == "250"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 503])
    async def test_http_errors(self, shopify_config, status):
        client = ShopifyClient(
            shopify_config,
            transport=httpx.MockTransport(lambda request: httpx.Response(status, text="nope")),
        )
        with pytest.raises(UpstreamError) as exc_info:
            await client.search_products("shirt", 5)
        assert exc_info.value.status_code == status
        assert str(status) in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout(self, shopify_config):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = ShopifyClient(shopify_config, transport=httpx.MockTransport(handler))
        with pytest.raises(ToolTimeoutError):
            await client.search_products("shirt", 5)

    @pytest.mark.asyncio
    async def test_unreachable(self, shopify_config):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = ShopifyClient(shopify_config, transport=httpx.MockTransport(handler))
        with pytest.raises(UpstreamError) as exc_info:
            await client.search_products("shirt", 5)
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_config):
        test_config.SHOPIFY_STORE_URL = None
        test_config.SHOPIFY_ACCESS_TOKEN = None
        with pytest.raises(CollaboratorConfigError):
            await ShopifyClient(test_config).search_products("shirt", 5)


class TestStripeClient:
    """Checkout and payment-intent calls against a mocked REST API."""

    @pytest.mark.asyncio
    async def test_checkout_session_form_body(self, stripe_config):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"id": "cs_test_1", "url": "https://checkout.stripe.com/c/pay/cs_test_1"})

        client = StripeClient(stripe_config, transport=httpx.MockTransport(handler))
        session = await client.create_checkout_session(
            [{"priceId": "price_1", "quantity": 2}, {"priceId": "price_2", "quantity": 1}],
            "https://example.com/s",
            "https://example.com/c",
            idempotency_key="key-1",
        )

        assert session["id"] == "cs_test_1"
        request = seen["request"]
        assert request.method == "POST"
        assert request.url.path == "/v1/checkout/sessions"
        assert request.headers["Authorization"] == "Bearer sk_test_123"
        assert request.headers["Idempotency-Key"] == "key-1"
        form = parse_qs(request.content.decode())
        assert form["mode"] == ["payment"]
        assert form["line_items[0][price]"] == ["price_1"]
        assert form["line_items[0][quantity]"] == ["2"]
        assert form["line_items[1][price]"] == ["price_2"]
        assert form["success_url"] == ["https://example.com/s"]
        assert form["client_reference_id"] == ["key-1"]

    @pytest.mark.asyncio
    async def test_price_checkout_session(self, stripe_config):
        seen = {}

        def handler(request):
            seen["form"] = parse_qs(request.content.decode())
            seen["headers"] = request.headers
            return httpx.Response(200, json={"id": "cs_test_2", "url": "https://x.test", "payment_intent": None})

        client = StripeClient(stripe_config, transport=httpx.MockTransport(handler))
        await client.create_price_checkout_session("Widget", 4999, "usd", "https://a.test/s", "https://a.test/c")

        form = seen["form"]
        assert form["line_items[0][price_data][unit_amount]"] == ["4999"]
        assert form["line_items[0][price_data][currency]"] == ["usd"]
        assert form["line_items[0][price_data][product_data][name]"] == ["Widget"]
        assert "Idempotency-Key" not in seen["headers"]
        assert "client_reference_id" not in form

    @pytest.mark.asyncio
    async def test_retrieve_payment_intent(self, stripe_config):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"id": "pi_1", "status": "succeeded", "amount": 1000, "currency": "eur"})

        client = StripeClient(stripe_config, transport=httpx.MockTransport(handler))
        intent = await client.retrieve_payment_intent("pi_1")

        assert intent["status"] == "succeeded"
        assert seen["request"].method == "GET"
        assert seen["request"].url.path == "/v1/payment_intents/pi_1"

    @pytest.mark.asyncio
    async def test_card_error_is_client_class(self, stripe_config):
        client = StripeClient(
            stripe_config,
            transport=httpx.MockTransport(
                lambda request: httpx.Response(402, json={"error": {"message": "Your card was declined."}})
            ),
        )
        with pytest.raises(UpstreamError) as exc_info:
            await client.retrieve_payment_intent("pi_1")
        assert exc_info.value.status_code == 402
        assert "Your card was declined." in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout(self, stripe_config):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        client = StripeClient(stripe_config, transport=httpx.MockTransport(handler))
        with pytest.raises(ToolTimeoutError):
            await client.retrieve_payment_intent("pi_1")

    @pytest.mark.asyncio
    async def test_missing_credentials(self, test_config):
        test_config.STRIPE_SECRET_KEY = None
        with pytest.raises(CollaboratorConfigError):
            await StripeClient(test_config).retrieve_payment_intent("pi_1")
