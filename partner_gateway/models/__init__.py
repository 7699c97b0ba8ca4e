from .envelope import RequestEnvelope, ResultEnvelope, failure_body
from .tool import ToolDescriptor

__all__ = [
    "RequestEnvelope",
    "ResultEnvelope",
    "ToolDescriptor",
    "failure_body",
]
