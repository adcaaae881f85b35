"""Activity notifier: fire-and-forget broadcast of domain events.

Events are for observability only. Tool handlers emit them; nothing in the
request path reads them back or changes its response based on delivery.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog

logger = structlog.get_logger()


class EventName(StrEnum):
    codex_task_requested = "codex.task.requested"
    codex_task_accepted = "codex.task.accepted"
    codex_task_completed = "codex.task.completed"
    pr_reviewed = "pr.reviewed"
    pr_gated = "pr.gated"
    pr_merged = "pr.merged"


@dataclass(frozen=True)
class DomainEvent:
    name: EventName
    data: dict[str, Any]
    correlation_id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape used by the event stream."""
        return {
            "id": self.id,
            "name": str(self.name),
            "timestamp": self.timestamp,
            "data": self.data,
            "correlationId": self.correlation_id,
        }


EventListener = Callable[[DomainEvent], None]


class ActivityNotifier:
    """Synchronous in-process pub/sub for DomainEvent."""

    def __init__(self) -> None:
        # dict preserves subscription order; keyed by a token so the same
        # callable can be subscribed twice and unsubscribed independently.
        self._listeners: dict[int, EventListener] = {}
        self._next_token = 0

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener. Returns a function removing exactly that listener."""
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(
        self,
        name: EventName,
        data: dict[str, Any],
        correlation_id: str | None = None,
    ) -> DomainEvent:
        """Stamp and broadcast an event. Listener failures never reach the caller."""
        event = DomainEvent(name=EventName(name), data=data, correlation_id=correlation_id)
        # Snapshot: a listener may unsubscribe itself mid-broadcast.
        for token, listener in list(self._listeners.items()):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "event_listener_failed",
                    event_name=str(event.name),
                    event_id=event.id,
                    listener_token=token,
                )
        return event
