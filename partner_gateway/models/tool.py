"""Canonical tool descriptor model."""

from typing import Any, Awaitable, Callable, Dict, Tuple, Type
from pydantic import BaseModel, ConfigDict, Field


class ToolDescriptor(BaseModel):
    """Declarative contract for a tool exposed by the gateway.

    Built once at process start and never mutated.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., description="Canonical tool name, stable across transports")
    description: str = Field(..., description="Human-readable description")
    params_model: Type[BaseModel] = Field(..., description="Input parameter schema")
    result_model: Type[BaseModel] = Field(..., description="Output result schema")
    handler: Callable[..., Awaitable[Dict[str, Any]]] = Field(
        ...,
        description="Business call: async (params, context) -> result dict",
    )
    mutating: bool = Field(
        default=False,
        description="If True, idempotency keys apply to this tool",
    )
    aliases: Tuple[str, ...] = Field(
        default=(),
        description="Alternative names accepted for this tool (e.g. 'stripe.createCheckoutSession')",
    )
    id_prefix: str = Field(
        default="op_",
        description="Prefix of identifiers derived for mutating calls (e.g. 'cs_mock_')",
    )

    @property
    def parameters_schema(self) -> Dict[str, Any]:
        """JSON Schema for the tool parameters."""
        return self.params_model.model_json_schema()

    @property
    def result_schema(self) -> Dict[str, Any]:
        return self.result_model.model_json_schema()
