"""Server-Sent Events framing and the live domain-event stream."""

from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from codex_gateway.events.notifier import ActivityNotifier, DomainEvent

logger = structlog.get_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: str, data: Any, event_id: str | None = None) -> str:
    """Frame one SSE message. data is JSON-encoded on a single line."""
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data, separators=(',', ':'))}")
    return "\n".join(lines) + "\n\n"


def wants_event_stream(accept: str | None) -> bool:
    return bool(accept) and "text/event-stream" in accept


class EventStreamHub:
    """Fans domain events out to connected SSE clients.

    Subscribes once to the notifier; each client gets its own bounded queue.
    A slow client drops events rather than blocking the emitter.
    """

    def __init__(self, notifier: ActivityNotifier, *, queue_size: int = 256) -> None:
        self._clients: dict[str, asyncio.Queue[dict[str, Any]]] = {}
        self._queue_size = queue_size
        self._unsubscribe = notifier.subscribe(self._broadcast)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def close(self) -> None:
        self._unsubscribe()

    def _broadcast(self, event: DomainEvent) -> None:
        message = {"type": "event", "event": event.to_dict()}
        for client_id, queue in list(self._clients.items()):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("sse_client_lagging", client_id=client_id, event_id=event.id)

    def connect(self) -> tuple[str, asyncio.Queue[dict[str, Any]]]:
        client_id = uuid.uuid4().hex
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        self._clients[client_id] = queue
        logger.info("sse_client_connected", client_id=client_id)
        return client_id, queue

    def disconnect(self, client_id: str) -> None:
        if self._clients.pop(client_id, None) is not None:
            logger.info("sse_client_disconnected", client_id=client_id)

    async def stream(self) -> AsyncIterator[str]:
        """Yield a ready frame, then one frame per domain event until the client goes away."""
        client_id, queue = self.connect()
        try:
            yield format_sse("ready", {"ok": True}, client_id)
            while True:
                message = await queue.get()
                yield format_sse("event", message)
        finally:
            self.disconnect(client_id)
