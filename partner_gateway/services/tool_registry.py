"""Schema registry: tool contracts, lookup and parameter/result validation."""

from typing import Annotated, Any, Dict, Iterable, List, Optional

from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from partner_gateway.infra.error_handler import (
    ParamsValidationError,
    ResultValidationError,
    UnknownToolError,
)
from partner_gateway.models.tool import ToolDescriptor
from partner_gateway.services import tool_handlers

_url_adapter = TypeAdapter(AnyUrl)


def _check_absolute_url(value: str) -> str:
    try:
        parsed = _url_adapter.validate_python(value)
    except ValidationError:
        raise ValueError("must be a valid absolute URL")
    if not parsed.host:
        raise ValueError("must be a valid absolute URL")
    return value


AbsoluteUrl = Annotated[StrictStr, AfterValidator(_check_absolute_url)]


# ============================================================================
# Parameter schemas
# ============================================================================

class PingParams(BaseModel):
    name: Optional[StrictStr] = Field(None, description="Name to greet")


class SearchProductsParams(BaseModel):
    query: StrictStr = Field(
        ...,
        min_length=1,
        description="Search query (searches in product title, vendor, and type)",
    )
    limit: StrictInt = Field(10, gt=0, description="Maximum number of products to return")


class CheckoutItem(BaseModel):
    priceId: StrictStr = Field(..., min_length=1, description="Payment platform price identifier")
    quantity: StrictInt = Field(..., gt=0)


class CreateCheckoutSessionParams(BaseModel):
    items: List[CheckoutItem] = Field(..., min_length=1)
    successUrl: AbsoluteUrl = Field(..., description="Absolute URL to redirect to after payment")
    cancelUrl: AbsoluteUrl = Field(..., description="Absolute URL to redirect to on cancel")


class CreateSimpleCheckoutSessionParams(BaseModel):
    productName: StrictStr = Field(..., description="Name of the product being purchased")
    price: float = Field(..., gt=0, description="Price in major currency units (e.g. 49.99)")
    currency: StrictStr = Field("usd", description="Currency code (ISO 4217)")
    successUrl: Optional[AbsoluteUrl] = None
    cancelUrl: Optional[AbsoluteUrl] = None

    @field_validator("price", mode="before")
    @classmethod
    def price_is_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a number")
        return value

    @field_validator("currency")
    @classmethod
    def currency_lower(cls, value: str) -> str:
        return value.lower()

    @model_validator(mode="after")
    def price_meets_minimum(self) -> "CreateSimpleCheckoutSessionParams":
        minimum = 0.5 if self.currency == "usd" else 0.01
        if self.price < minimum:
            raise ValueError(f"price must be at least {minimum} {self.currency.upper()}")
        return self


class GetPaymentStatusParams(BaseModel):
    paymentIntentId: StrictStr = Field(..., min_length=1, description="Payment intent ID")


# ============================================================================
# Result schemas
# ============================================================================

class _Result(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PingResult(_Result):
    message: str
    timestamp: str


class SearchProductsResult(_Result):
    products: List[Dict[str, Any]]
    total: int
    query: str


class CheckoutSessionResult(_Result):
    sessionId: str
    url: str
    items: List[Dict[str, Any]]
    successUrl: str
    cancelUrl: str
    createdAt: str
    idempotencyKey: Optional[str] = None


class SimpleCheckoutSessionResult(_Result):
    checkout_url: str
    session_id: str
    payment_intent: Optional[str]
    idempotencyKey: Optional[str] = None


class PaymentStatusResult(_Result):
    status: str
    amount: int
    currency: str


# ============================================================================
# Registry
# ============================================================================

def format_violations(error: ValidationError) -> List[str]:
    """One message per violated constraint, in declaration order."""
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


class SchemaRegistry:
    """Process-wide, read-only catalog of tool contracts."""

    def __init__(self, descriptors: Iterable[ToolDescriptor]):
        self._tools: Dict[str, ToolDescriptor] = {}
        self._names: Dict[str, str] = {}
        for descriptor in descriptors:
            for name in (descriptor.name,) + tuple(descriptor.aliases):
                if name in self._names:
                    raise ValueError(f"Duplicate tool name: {name}")
                self._names[name] = descriptor.name
            self._tools[descriptor.name] = descriptor

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._names

    def tools(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    def get(self, tool_name: str) -> Optional[ToolDescriptor]:
        canonical = self._names.get(tool_name)
        return self._tools[canonical] if canonical else None

    def lookup(self, tool_name: str) -> ToolDescriptor:
        """
        Resolve a canonical name or alias to its descriptor.

        Raises:
            UnknownToolError: If no tool is registered under that name
        """
        descriptor = self.get(tool_name)
        if descriptor is None:
            raise UnknownToolError(tool_name)
        return descriptor

    def validate_input(self, tool_name: str, raw_params: Any) -> BaseModel:
        """
        Validate raw parameters against the tool's input schema.

        Raises:
            UnknownToolError: If the tool is not registered
            ParamsValidationError: With one message per violated constraint
        """
        descriptor = self.lookup(tool_name)
        if raw_params is None:
            raw_params = {}
        if not isinstance(raw_params, dict):
            raise ParamsValidationError(["params: Input should be an object"])
        try:
            return descriptor.params_model.model_validate(raw_params)
        except ValidationError as e:
            raise ParamsValidationError(format_violations(e))

    def validate_output(self, tool_name: str, result: Dict[str, Any]) -> Dict[str, Any]:
        """
        Re-validate a tool result before it is sent to the caller.

        Raises:
            ResultValidationError: If the result does not match the result schema
        """
        descriptor = self.lookup(tool_name)
        fields = {k: v for k, v in result.items() if k != "ok"}
        try:
            validated = descriptor.result_model.model_validate(fields)
        except ValidationError as e:
            raise ResultValidationError(descriptor.name, format_violations(e))
        return validated.model_dump(mode="json", exclude_unset=True)

    def describe(self) -> List[Dict[str, Any]]:
        """Manifest entries for every tool, canonical names only."""
        return [
            {
                "name": descriptor.name,
                "description": descriptor.description,
                "parameters": descriptor.parameters_schema,
            }
            for descriptor in self._tools.values()
        ]


DEFAULT_TOOLS = (
    ToolDescriptor(
        name="ping",
        description="Connectivity test that returns a greeting",
        params_model=PingParams,
        result_model=PingResult,
        handler=tool_handlers.ping,
    ),
    ToolDescriptor(
        name="searchProducts",
        description="Search products in the commerce store",
        params_model=SearchProductsParams,
        result_model=SearchProductsResult,
        handler=tool_handlers.search_products,
        aliases=("shopify.searchProducts", "shopify_search_products"),
    ),
    ToolDescriptor(
        name="createCheckoutSession",
        description="Create a checkout session from payment platform price IDs",
        params_model=CreateCheckoutSessionParams,
        result_model=CheckoutSessionResult,
        handler=tool_handlers.create_checkout_session,
        mutating=True,
        id_prefix="cs_mock_",
        aliases=("stripe.createCheckoutSession", "stripe_create_checkout_session_legacy"),
    ),
    ToolDescriptor(
        name="createSimpleCheckoutSession",
        description=(
            "Create a checkout session with a product name and price. "
            "Returns a checkout URL that redirects to the payment page."
        ),
        params_model=CreateSimpleCheckoutSessionParams,
        result_model=SimpleCheckoutSessionResult,
        handler=tool_handlers.create_simple_checkout_session,
        mutating=True,
        id_prefix="cs_demo_",
        aliases=("stripe_create_checkout_session",),
    ),
    ToolDescriptor(
        name="getPaymentStatus",
        description="Get payment status for a payment intent. Returns status, amount, and currency.",
        params_model=GetPaymentStatusParams,
        result_model=PaymentStatusResult,
        handler=tool_handlers.get_payment_status,
        aliases=("stripe_get_payment_status",),
    ),
)


def build_default_registry() -> SchemaRegistry:
    return SchemaRegistry(DEFAULT_TOOLS)
