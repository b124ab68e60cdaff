"""In-process pub/sub used to push task changes to open browser pages."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from typing import Any, Callable, Coroutine, Iterator

from taskmanager.store.database import now_ms

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]

# Event types emitted by the tool dispatcher.
TASK_CREATED = "task.created"
TASK_UPDATED = "task.updated"
TASK_DELETED = "task.deleted"
USER_RESOLVED = "user.resolved"

WILDCARD = "*"


class EventBus:
    """Asyncio pub/sub bus for task and user events.

    Handlers subscribe to one event type or to ``"*"``.  Every delivery runs
    as its own task; a failing handler is logged and never reaches the
    emitter.  Per-user filtering happens in the WebSocket connection manager.
    """

    MAX_HISTORY = 1000

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._history: deque[dict[str, Any]] = deque(maxlen=self.MAX_HISTORY)
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        handlers = self._subscribers.get(event_type)
        if handlers:
            self._subscribers[event_type] = [h for h in handlers if h is not handler]

    def _matching(self, event_type: str) -> Iterator[EventHandler]:
        for key in (event_type, WILDCARD):
            yield from self._subscribers.get(key, ())

    async def emit(self, event_type: str, data: dict[str, Any]) -> dict[str, Any]:
        """Record an event and schedule delivery; returns the event as sent."""
        event = {"type": event_type, "timestamp": now_ms(), **data}
        self._history.append(event)
        for handler in list(self._matching(event_type)):
            task = asyncio.create_task(self._deliver(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return event

    async def _deliver(self, handler: EventHandler, event: dict[str, Any]) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception("Event handler error for %s", event["type"])

    async def drain(self) -> None:
        """Wait until every scheduled delivery has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get_history(
        self, event_type: str | None = None, user_id: str | None = None
    ) -> list[dict[str, Any]]:
        return [
            e for e in self._history
            if (event_type is None or e["type"] == event_type)
            and (user_id is None or e.get("user_id") == user_id)
        ]
