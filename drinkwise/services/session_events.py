"""Publish/subscribe of session changes for live views.

Mutating endpoints publish a short event after their write commits; the
stream endpoint subscribes and re-sends a fresh snapshot per event, plus a
periodic ``tick`` because hourly rates drift with the clock.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

DELETED = "deleted"
TICK = "tick"
SNAPSHOT = "snapshot"


@dataclass(frozen=True)
class SessionEvent:
    session_id: int
    kind: str
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionEventBus:
    """In-process fan-out keyed by session id.

    Each subscriber owns a bounded queue. When it is full the oldest event
    is dropped so a slow reader never blocks a publisher.
    """

    def __init__(self, max_queue: int = 16) -> None:
        self._max_queue = max_queue
        self._subscribers: dict[int, set[asyncio.Queue[SessionEvent]]] = defaultdict(set)

    @asynccontextmanager
    async def subscribe(self, session_id: int) -> AsyncIterator[asyncio.Queue[SessionEvent]]:
        queue: asyncio.Queue[SessionEvent] = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers[session_id].add(queue)
        try:
            yield queue
        finally:
            subscribers = self._subscribers.get(session_id)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    del self._subscribers[session_id]

    def subscriber_count(self, session_id: int) -> int:
        return len(self._subscribers.get(session_id, ()))

    def publish(self, session_id: int, kind: str) -> int:
        """Deliver an event to every subscriber; returns how many received it."""
        event = SessionEvent(session_id=session_id, kind=kind)
        queues = list(self._subscribers.get(session_id, ()))
        for queue in queues:
            if queue.full():
                queue.get_nowait()
                logger.warning("Dropped stale event for session %s", session_id)
            queue.put_nowait(event)
        return len(queues)


def format_sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


async def session_event_stream(
    bus: SessionEventBus,
    session_id: int,
    load_snapshot: Callable[[], Awaitable[dict[str, Any] | None]],
    *,
    tick_seconds: float,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
) -> AsyncIterator[str]:
    """Yield SSE frames until the session is deleted or the client leaves."""
    async with bus.subscribe(session_id) as queue:
        snapshot = await load_snapshot()
        if snapshot is None:
            yield format_sse(DELETED, {"session_id": session_id})
            return
        yield format_sse(SNAPSHOT, snapshot)
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=tick_seconds)
                kind = event.kind
            except asyncio.TimeoutError:
                kind = TICK
            if is_disconnected is not None and await is_disconnected():
                return
            if kind == DELETED:
                yield format_sse(DELETED, {"session_id": session_id})
                return
            snapshot = await load_snapshot()
            if snapshot is None:
                yield format_sse(DELETED, {"session_id": session_id})
                return
            yield format_sse(kind, snapshot)
