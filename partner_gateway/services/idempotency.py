"""Idempotency key resolution for mutating tools."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationIdentity:
    """Identity of one mutating operation.

    ``derived_id`` embeds the caller's key verbatim when one was supplied, so
    a retry with the same key produces the same identifier. Without a key the
    identifier is time-based and unique per call.
    """
    tool_name: str
    derived_id: str
    idempotency_key: Optional[str] = None


class IdempotencyResolver:
    """Derives deterministic operation identifiers from idempotency keys.

    Only the identifier is deterministic; repeated calls still reach the
    collaborator, which receives the key and is responsible for
    de-duplicating the side effect.
    """

    def resolve(self, tool_name: str, idempotency_key: Optional[str], prefix: str = "op_") -> OperationIdentity:
        """
        Resolve the identity of a mutating call.

        Args:
            tool_name: Canonical tool name
            idempotency_key: Caller-supplied key; blank values count as absent
            prefix: Identifier prefix for the created resource (e.g. ``cs_mock_``)

        Returns:
            OperationIdentity with the derived identifier
        """
        key = idempotency_key.strip() if idempotency_key else ""
        if key:
            return OperationIdentity(
                tool_name=tool_name,
                derived_id=f"{prefix}{idempotency_key}",
                idempotency_key=idempotency_key,
            )

        derived_id = f"{prefix}{int(time.time() * 1000)}"
        logger.debug("No idempotency key supplied", extra={"tool_name": tool_name, "derived_id": derived_id})
        return OperationIdentity(tool_name=tool_name, derived_id=derived_id)
