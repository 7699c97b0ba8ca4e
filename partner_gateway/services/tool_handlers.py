"""Business logic for each tool.

Every handler takes the validated parameter model and a ToolContext and
returns the tool-specific result fields (without ``ok``). In demo mode the
collaborators are never contacted and deterministic mock data is returned.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from partner_gateway.adapters.shopify_client import ShopifyClient
from partner_gateway.adapters.stripe_client import StripeClient
from partner_gateway.services.idempotency import OperationIdentity

logger = logging.getLogger(__name__)

DEMO_PRODUCT_COUNT = 5
DEMO_CHECKOUT_URL = "https://checkout.stripe.com/pay/{session_id}"
DEMO_PAYMENT_STATUS = {"status": "succeeded", "amount": 2999, "currency": "usd"}


@dataclass
class ToolContext:
    """Per-invocation context handed to tool handlers."""
    correlation_id: str
    demo_mode: bool
    site_url: str
    shopify: ShopifyClient
    stripe: StripeClient
    operation: Optional[OperationIdentity] = None

    @property
    def idempotency_key(self) -> Optional[str]:
        return self.operation.idempotency_key if self.operation else None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def ping(params, ctx: ToolContext) -> Dict[str, Any]:
    """Connectivity test."""
    return {
        "message": f"Hello, {params.name or 'World'}!",
        "timestamp": _now_iso(),
    }


async def search_products(params, ctx: ToolContext) -> Dict[str, Any]:
    if ctx.demo_mode:
        created_at = _now_iso()
        products = [
            {
                "id": f"prod_{i + 1}",
                "title": f"Mock Product {i + 1} - {params.query}",
                "price": f"{19.99 + i * 10:.2f}",
                "vendor": "Demo Vendor",
                "productType": "Demo Type",
                "createdAt": created_at,
            }
            for i in range(min(params.limit, DEMO_PRODUCT_COUNT))
        ]
    else:
        products = await ctx.shopify.search_products(params.query, params.limit)

    return {
        "products": products,
        "total": len(products),
        "query": params.query,
    }


async def create_checkout_session(params, ctx: ToolContext) -> Dict[str, Any]:
    """Checkout session from existing price IDs."""
    items = [item.model_dump() for item in params.items]

    if ctx.demo_mode:
        session_id = ctx.operation.derived_id
        url = DEMO_CHECKOUT_URL.format(session_id=session_id)
    else:
        session = await ctx.stripe.create_checkout_session(
            items,
            params.successUrl,
            params.cancelUrl,
            idempotency_key=ctx.idempotency_key,
        )
        session_id = session["id"]
        url = session.get("url") or ""

    logger.info(
        "Checkout session created",
        extra={"session_id": session_id, "item_count": len(items), "demo_mode": ctx.demo_mode},
    )
    return {
        "sessionId": session_id,
        "url": url,
        "items": items,
        "successUrl": params.successUrl,
        "cancelUrl": params.cancelUrl,
        "createdAt": _now_iso(),
    }


async def create_simple_checkout_session(params, ctx: ToolContext) -> Dict[str, Any]:
    """Checkout session for one product with an inline price in major currency units."""
    success_url = params.successUrl or f"{ctx.site_url}/success?session_id={{CHECKOUT_SESSION_ID}}"
    cancel_url = params.cancelUrl or f"{ctx.site_url}/cancel"

    if ctx.demo_mode:
        session_id = ctx.operation.derived_id
        return {
            "checkout_url": DEMO_CHECKOUT_URL.format(session_id=session_id),
            "session_id": session_id,
            "payment_intent": None,
        }

    # Minor units (cents for USD)
    unit_amount = int(round(params.price * 100))
    session = await ctx.stripe.create_price_checkout_session(
        params.productName,
        unit_amount,
        params.currency,
        success_url,
        cancel_url,
        idempotency_key=ctx.idempotency_key,
    )
    return {
        "checkout_url": session.get("url") or "",
        "session_id": session["id"],
        "payment_intent": session.get("payment_intent"),
    }


async def get_payment_status(params, ctx: ToolContext) -> Dict[str, Any]:
    if ctx.demo_mode:
        return dict(DEMO_PAYMENT_STATUS)

    intent = await ctx.stripe.retrieve_payment_intent(params.paymentIntentId)
    return {
        "status": intent["status"],
        "amount": intent["amount"],
        "currency": intent["currency"],
    }
