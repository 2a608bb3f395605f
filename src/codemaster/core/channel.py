"""Ordered fan-out of agent events to independent subscribers."""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from collections.abc import AsyncIterator

from codemaster.errors import EventDecodeError
from codemaster.types.events import AgentEvent, decode_event
from codemaster.types.store import EventCallback, Unsubscribe

logger = logging.getLogger(__name__)


class EventChannel:
    """Delivers every published event to every subscriber, in order.

    Each subscriber sees each event exactly once. An event published from
    inside a callback is queued behind the event being delivered, so arrival
    order is kept. A subscriber that raises is logged and does not stop
    delivery to the others.
    """

    def __init__(self) -> None:
        self._subscribers: list[EventCallback] = []
        self._queue: deque[AgentEvent] = deque()
        self._delivering = False

    def subscribe(self, callback: EventCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: AgentEvent) -> None:
        self._queue.append(event)
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._queue:
                current = self._queue.popleft()
                for callback in list(self._subscribers):
                    try:
                        callback(current)
                    except Exception:
                        logger.exception(
                            "Subscriber %r failed on %s event", callback, current.type,
                        )
        finally:
            self._delivering = False


def decode_line(line: str | bytes) -> AgentEvent | None:
    """Decode one newline-delimited JSON event.

    Blank lines yield ``None``. Anything else that is not a valid event
    raises :class:`EventDecodeError`.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise EventDecodeError(f"Invalid JSON: {e}", line) from e
    return decode_event(data)


async def read_events(reader: asyncio.StreamReader) -> AsyncIterator[AgentEvent]:
    """Yield events from a stream of newline-delimited JSON.

    Lines that fail to decode, or that exceed the reader's limit, are logged
    and skipped.
    """
    while True:
        try:
            raw = await reader.readline()
        except ValueError as e:
            # readline drops the oversized line from the buffer before raising.
            logger.warning("Skipping oversized event line: %s", e)
            continue
        if not raw:
            return
        try:
            event = decode_line(raw)
        except EventDecodeError as e:
            logger.warning("Skipping undecodable event: %s", e)
            continue
        if event is not None:
            yield event
