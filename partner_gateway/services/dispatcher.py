"""Transport-agnostic tool dispatcher."""

import json
import logging
import time
from enum import Enum
from typing import Any, Optional

from partner_gateway.adapters.shopify_client import ShopifyClient
from partner_gateway.adapters.stripe_client import StripeClient
from partner_gateway.infra.config import Config
from partner_gateway.infra.error_handler import MalformedBodyError, classify_error
from partner_gateway.infra.metrics import tool_call_duration, tool_calls_total
from partner_gateway.infra.timeout import run_with_deadline
from partner_gateway.models import RequestEnvelope, ResultEnvelope
from partner_gateway.services.idempotency import IdempotencyResolver
from partner_gateway.services.tool_handlers import ToolContext
from partner_gateway.services.tool_registry import SchemaRegistry

logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    """Lifecycle of one invocation. States are only ever entered in order."""
    RECEIVED = "RECEIVED"
    ORIGIN_CHECKED = "ORIGIN_CHECKED"
    BODY_PARSED = "BODY_PARSED"
    VALIDATED = "VALIDATED"
    EXECUTING = "EXECUTING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


def parse_body(raw_body: Optional[bytes]) -> Any:
    """
    Decode a ``{"params": {...}}`` request body.

    An empty body means no parameters.

    Raises:
        MalformedBodyError: If the body is not well-formed JSON
    """
    if raw_body is None or not raw_body.strip():
        return {}
    try:
        body = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        raise MalformedBodyError()
    if isinstance(body, dict):
        return body.get("params")
    # Valid JSON that is not an object carries no params; validation reports it
    return body


class ToolDispatcher:
    """Runs one tool invocation end to end and returns a single envelope.

    Origin checks happen in the transport before the dispatcher is called, so
    every invocation starts past ORIGIN_CHECKED. Failures at any stage are
    classified into the error taxonomy and logged with full detail; the
    caller only sees the reduced envelope.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        config: Config,
        resolver: Optional[IdempotencyResolver] = None,
        shopify: Optional[ShopifyClient] = None,
        stripe: Optional[StripeClient] = None,
        tool_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.config = config
        self.resolver = resolver or IdempotencyResolver()
        self.shopify = shopify or ShopifyClient(config)
        self.stripe = stripe or StripeClient(config)
        self.tool_timeout = tool_timeout if tool_timeout is not None else config.TOOL_TIMEOUT_SECONDS

    async def dispatch(self, request: RequestEnvelope, transport: str = "http") -> ResultEnvelope:
        """
        Execute one tool invocation.

        Args:
            request: Normalized request; ``raw_body`` is parsed when present,
                otherwise ``params`` is used as-is
            transport: Label for metrics and logs (``http``, ``sse``, ``jsonrpc``)

        Returns:
            Success or failure ResultEnvelope carrying the request's correlation ID
        """
        state = DispatchState.ORIGIN_CHECKED
        start_time = time.time()
        tool_name = request.tool_name
        metric_name = "unknown"
        try:
            raw_params = parse_body(request.raw_body) if request.raw_body is not None else request.params
            state = DispatchState.BODY_PARSED

            descriptor = self.registry.lookup(tool_name)
            tool_name = metric_name = descriptor.name
            params = self.registry.validate_input(tool_name, raw_params)
            state = DispatchState.VALIDATED

            operation = None
            if descriptor.mutating:
                operation = self.resolver.resolve(tool_name, request.idempotency_key, prefix=descriptor.id_prefix)

            context = ToolContext(
                correlation_id=request.correlation_id,
                demo_mode=self.config.DEMO_MODE,
                site_url=self.config.site_url,
                shopify=self.shopify,
                stripe=self.stripe,
                operation=operation,
            )

            state = DispatchState.EXECUTING
            result = await run_with_deadline(
                descriptor.handler(params, context),
                self.tool_timeout,
                what=f"Tool {tool_name}",
            )
            if operation is not None and operation.idempotency_key:
                result["idempotencyKey"] = operation.idempotency_key
            fields = self.registry.validate_output(tool_name, result)

            state = DispatchState.SUCCEEDED
            envelope = ResultEnvelope.success(fields, request.correlation_id, tool_name)
            outcome = "ok"
        except Exception as e:
            classification = classify_error(e)
            server_fault = classification.http_status >= 500
            logger.log(
                logging.ERROR if server_fault else logging.WARNING,
                "Tool invocation failed",
                extra={
                    "tool_name": tool_name,
                    "transport": transport,
                    "stage": state.value,
                    "code": classification.code.value,
                    "error": str(e),
                    "details": classification.details,
                    "correlation_id": request.correlation_id,
                },
                exc_info=server_fault,
            )
            state = DispatchState.FAILED
            envelope = ResultEnvelope.failure(classification, request.correlation_id, tool_name)
            outcome = classification.code.value

        duration = time.time() - start_time
        tool_calls_total.labels(tool_name=metric_name, transport=transport, outcome=outcome).inc()
        tool_call_duration.labels(tool_name=metric_name).observe(duration)
        logger.info(
            "Tool invocation finished",
            extra={
                "tool_name": tool_name,
                "transport": transport,
                "state": state.value,
                "outcome": outcome,
                "duration_ms": int(duration * 1000),
            },
        )
        return envelope
