"""Payment platform (Stripe REST) client for checkout sessions and payment intents."""

import logging
from urllib.parse import quote
from typing import Any, Dict, List, Optional
import httpx

from partner_gateway.infra.config import Config
from partner_gateway.infra.error_handler import CollaboratorConfigError, ToolTimeoutError, UpstreamError
from partner_gateway.infra.timeout import UPSTREAM_HTTP_TIMEOUT

logger = logging.getLogger(__name__)

SERVICE_NAME = "stripe"


class StripeClient:
    """Thin client for the Stripe REST API.

    Stripe takes form-encoded bodies with bracketed keys for nested values
    (``line_items[0][price]``), bearer authentication, and an
    ``Idempotency-Key`` header that makes retried creates return the
    original object.
    """

    def __init__(
        self,
        config: Config,
        timeout: float = UPSTREAM_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = config.STRIPE_SECRET_KEY
        self.api_base = config.STRIPE_API_BASE.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        if not self.secret_key:
            raise CollaboratorConfigError(
                "Stripe credentials not configured. Set STRIPE_SECRET_KEY, or use DEMO_MODE=true for mocks."
            )
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        headers = self._headers(idempotency_key)
        async with httpx.AsyncClient(
            base_url=self.api_base, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.request(method, path, data=data, headers=headers)
                response.raise_for_status()
                return response.json()
            except httpx.TimeoutException:
                raise ToolTimeoutError(f"Stripe request timeout after {self.timeout:g} seconds")
            except httpx.HTTPStatusError as e:
                message = _error_message(e.response)
                # Never log the request body or headers: they carry the secret key
                logger.error(
                    "Stripe API error",
                    extra={"status_code": e.response.status_code, "path": path, "stripe_error": message},
                )
                raise UpstreamError(
                    SERVICE_NAME,
                    f"Stripe API error: {message}",
                    status_code=e.response.status_code,
                )
            except httpx.HTTPError as e:
                raise UpstreamError(SERVICE_NAME, f"Stripe request failed: {e}")
            except ValueError:
                raise UpstreamError(SERVICE_NAME, "Stripe returned a malformed response", status_code=502)

    async def create_checkout_session(
        self,
        items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a payment-mode checkout session from existing price IDs."""
        data = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        for i, item in enumerate(items):
            data[f"line_items[{i}][price]"] = item["priceId"]
            data[f"line_items[{i}][quantity]"] = str(item["quantity"])
        if idempotency_key:
            data["client_reference_id"] = idempotency_key
        return await self._request("POST", "/v1/checkout/sessions", data=data, idempotency_key=idempotency_key)

    async def create_price_checkout_session(
        self,
        product_name: str,
        unit_amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a single-item checkout session with inline price data (amount in minor units)."""
        data = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][price_data][currency]": currency,
            "line_items[0][price_data][product_data][name]": product_name,
            "line_items[0][price_data][unit_amount]": str(unit_amount),
            "line_items[0][quantity]": "1",
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if idempotency_key:
            data["client_reference_id"] = idempotency_key
        return await self._request("POST", "/v1/checkout/sessions", data=data, idempotency_key=idempotency_key)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/payment_intents/{quote(payment_intent_id, safe='')}")


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error") or {}
        return error.get("message") or response.reason_phrase
    except (ValueError, AttributeError):
        return response.reason_phrase
