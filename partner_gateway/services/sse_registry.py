"""Registry of open Server-Sent Events connections and the event stream they read from."""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from partner_gateway.infra.metrics import sse_connections_active, sse_connections_reaped_total

logger = logging.getLogger(__name__)

# Event names sent on the stream
EVENT_INIT = "mcp.init"
EVENT_PING = "mcp.ping"
EVENT_TOOL_RESPONSE = "mcp.tool_response"
EVENT_ERROR = "mcp.error"

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Queue sentinel that ends a stream
_CLOSE = None


def format_event(event: str, data: Any, event_id: Optional[str] = None) -> str:
    """Encode one SSE frame (``id``, ``event`` and a single-line ``data`` field)."""
    event_id = event_id or uuid.uuid4().hex
    payload = json.dumps(data, separators=(",", ":"), default=str)
    return f"id: {event_id}\nevent: {event}\ndata: {payload}\n\n"


@dataclass
class SSEConnection:
    """One open event stream."""
    connection_id: str
    correlation_id: str
    created_at: float = field(default_factory=time.monotonic)
    last_activity: float = field(default_factory=time.monotonic)
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    def touch(self) -> None:
        self.last_activity = time.monotonic()


class SSERegistry:
    """Connections keyed by connection ID.

    Insert on connect, remove on disconnect or reap. Every mutation runs
    without awaiting, so on the single event loop it is atomic with respect
    to concurrent connects, disconnects and the reaper. Removal must stay
    synchronous: it runs while a cancelled stream unwinds.
    """

    def __init__(self, stale_after: float = 300.0):
        self.stale_after = stale_after
        self._connections: Dict[str, SSEConnection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def connect(self, correlation_id: str) -> SSEConnection:
        connection = SSEConnection(connection_id=str(uuid.uuid4()), correlation_id=correlation_id)
        self._connections[connection.connection_id] = connection
        sse_connections_active.set(len(self._connections))
        logger.info(
            "SSE connection established",
            extra={"connection_id": connection.connection_id, "correlation_id": correlation_id},
        )
        return connection

    def disconnect(self, connection_id: str) -> bool:
        """Remove a connection; returns False if it was already gone."""
        connection = self._connections.pop(connection_id, None)
        sse_connections_active.set(len(self._connections))
        if connection is None:
            return False
        logger.info("SSE connection closed", extra={"connection_id": connection_id})
        return True

    def get(self, connection_id: Optional[str]) -> Optional[SSEConnection]:
        if not connection_id:
            return None
        return self._connections.get(connection_id)

    def push(self, connection_id: Optional[str], event: str, data: Any) -> bool:
        """
        Queue an event on a live connection.

        Returns:
            True if the connection exists and the event was queued
        """
        connection = self.get(connection_id)
        if connection is None:
            return False
        connection.touch()
        connection.queue.put_nowait((event, data))
        return True

    def reap_stale(self, now: Optional[float] = None) -> List[str]:
        """Close and remove connections idle for longer than ``stale_after``."""
        now = time.monotonic() if now is None else now
        stale = [
            connection
            for connection in self._connections.values()
            if now - connection.last_activity > self.stale_after
        ]
        for connection in stale:
            del self._connections[connection.connection_id]
            connection.queue.put_nowait(_CLOSE)
        sse_connections_active.set(len(self._connections))

        if stale:
            sse_connections_reaped_total.inc(len(stale))
            logger.info("Reaped stale SSE connections", extra={"count": len(stale)})
        return [connection.connection_id for connection in stale]

    def close_all(self) -> None:
        for connection in self._connections.values():
            connection.queue.put_nowait(_CLOSE)
        self._connections.clear()
        sse_connections_active.set(0)

    async def run_reaper(self, interval: float) -> None:
        """Reap stale connections every ``interval`` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            self.reap_stale()


async def event_stream(
    registry: SSERegistry,
    connection: SSEConnection,
    init_payload: Dict[str, Any],
    heartbeat_interval: float,
) -> AsyncIterator[str]:
    """
    Yield SSE frames for one connection.

    The init frame always comes first. Queued tool events follow in the order
    they were pushed; a heartbeat is emitted whenever the queue stays empty for
    ``heartbeat_interval`` seconds. The connection is removed from the registry
    when the stream ends or the client goes away.
    """
    try:
        yield format_event(EVENT_INIT, init_payload)
        connection.touch()
        while True:
            try:
                item = await asyncio.wait_for(connection.queue.get(), timeout=heartbeat_interval)
            except asyncio.TimeoutError:
                yield format_event(EVENT_PING, {"timestamp": datetime.now(timezone.utc).isoformat()})
                connection.touch()
                continue
            if item is _CLOSE:
                break
            event, data = item
            yield format_event(event, data)
    finally:
        registry.disconnect(connection.connection_id)
