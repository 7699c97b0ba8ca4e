"""Commerce platform (Shopify Admin REST) client for product search."""

import logging
from typing import Any, Dict, List, Optional
import httpx

from partner_gateway.infra.config import Config
from partner_gateway.infra.error_handler import CollaboratorConfigError, ToolTimeoutError, UpstreamError
from partner_gateway.infra.timeout import UPSTREAM_HTTP_TIMEOUT

logger = logging.getLogger(__name__)

SERVICE_NAME = "shopify"
MAX_PAGE_SIZE = 250
FETCH_MULTIPLIER = 5


def shop_domain(store_url: str) -> str:
    """Accept both ``my-store`` and ``my-store.myshopify.com`` (with or without scheme)."""
    domain = store_url.strip().rstrip("/")
    for scheme in ("https://", "http://"):
        if domain.startswith(scheme):
            domain = domain[len(scheme):]
    if ".myshopify.com" not in domain:
        domain = f"{domain}.myshopify.com"
    return domain


def _matches(product: Dict[str, Any], query: str) -> bool:
    needle = query.lower()
    return any(
        needle in (product.get(field) or "").lower()
        for field in ("title", "vendor", "product_type")
    )


def _transform_product(product: Dict[str, Any]) -> Dict[str, Any]:
    variants = product.get("variants") or []
    first = variants[0] if variants else {}
    return {
        "id": str(product.get("id")),
        "title": product.get("title"),
        "price": first.get("price") or "0.00",
        "vendor": product.get("vendor") or "",
        "productType": product.get("product_type") or "",
        "createdAt": product.get("created_at"),
        "handle": product.get("handle"),
        "status": product.get("status"),
        "variants": [
            {
                "id": str(v.get("id")),
                "title": v.get("title"),
                "price": v.get("price"),
                "sku": v.get("sku"),
                "inventoryQuantity": v.get("inventory_quantity"),
            }
            for v in variants
        ],
    }


class ShopifyClient:
    """Client for the Shopify Admin REST API.

    The Admin API has no text search on products, so a wider page is fetched
    and filtered locally on title, vendor and product type.
    """

    def __init__(
        self,
        config: Config,
        timeout: float = UPSTREAM_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store_url = config.SHOPIFY_STORE_URL
        self.access_token = config.SHOPIFY_ACCESS_TOKEN
        self.api_version = config.SHOPIFY_API_VERSION
        self.timeout = timeout
        self._transport = transport

    def _products_url(self) -> str:
        if not self.store_url or not self.access_token:
            raise CollaboratorConfigError(
                "Shopify credentials not configured. Set SHOPIFY_STORE_URL (or SHOPIFY_SHOP) "
                "and SHOPIFY_ACCESS_TOKEN, or use DEMO_MODE=true for mocks."
            )
        return f"https://{shop_domain(self.store_url)}/admin/api/{self.api_version}/products.json"

    async def search_products(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """
        Search products by case-insensitive substring.

        Raises:
            CollaboratorConfigError: If credentials are missing
            ToolTimeoutError: If the API does not answer in time
            UpstreamError: If the API fails or is unreachable
        """
        url = self._products_url()
        fetch_limit = min(limit * FETCH_MULTIPLIER, MAX_PAGE_SIZE) if query else limit

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.get(
                    url,
                    params={"limit": str(fetch_limit)},
                    headers={
                        "X-Shopify-Access-Token": self.access_token,
                        "Content-Type": "application/json",
                    },
                )
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException:
                raise ToolTimeoutError(f"Shopify request timeout after {self.timeout:g} seconds")
            except httpx.HTTPStatusError as e:
                logger.error(
                    "Shopify API error",
                    extra={"status_code": e.response.status_code, "body": e.response.text[:500]},
                )
                raise UpstreamError(
                    SERVICE_NAME,
                    f"Shopify API error: {e.response.status_code} {e.response.reason_phrase}",
                    status_code=e.response.status_code,
                )
            except httpx.HTTPError as e:
                raise UpstreamError(SERVICE_NAME, f"Shopify request failed: {e}")
            except ValueError:
                raise UpstreamError(SERVICE_NAME, "Shopify returned a malformed response", status_code=502)

        products = data.get("products") or []
        if query:
            products = [p for p in products if _matches(p, query)][:limit]
        return [_transform_product(p) for p in products]
