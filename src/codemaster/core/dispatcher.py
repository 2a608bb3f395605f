"""Fire-and-forget execution of reconciler effects."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable

from codemaster.types.effects import CreateSession, Effect, PersistMessage, RefreshSessions
from codemaster.types.session import Session
from codemaster.types.store import SessionStore

logger = logging.getLogger(__name__)


class PersistenceDispatcher:
    """Runs effects against a :class:`SessionStore`.

    :meth:`dispatch` schedules each effect as its own task and returns at
    once, so event consumption never waits on storage. A failed effect is
    logged and counted; it is never retried and never re-raised.
    """

    def __init__(self, store: SessionStore) -> None:
        self._store = store
        self._tasks: set[asyncio.Task[None]] = set()
        self._refresh_listeners: list[Callable[[], None]] = []
        self.failures = 0

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def pending(self) -> int:
        """Number of effects still in flight."""
        return len(self._tasks)

    def on_refresh(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a callback for :class:`RefreshSessions` effects."""
        self._refresh_listeners.append(listener)

        def remove() -> None:
            if listener in self._refresh_listeners:
                self._refresh_listeners.remove(listener)

        return remove

    def dispatch(self, effects: Iterable[Effect]) -> None:
        """Schedule ``effects`` without waiting for them.

        Must be called from inside a running event loop.
        """
        for effect in effects:
            if isinstance(effect, RefreshSessions):
                self._notify_refresh()
                continue
            task = asyncio.get_running_loop().create_task(self._run_logged(effect))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def run(self, effect: Effect) -> Session | None:
        """Execute a single effect and wait for it. Errors propagate."""
        match effect:
            case PersistMessage(session_id=sid, message=message, index=index):
                await self._store.persist_message(sid, message, index)
                return None
            case CreateSession(title=title):
                return await self._store.create_session(title)
            case RefreshSessions():
                self._notify_refresh()
                return None
            case _:
                raise TypeError(f"Unknown effect: {effect!r}")

    async def drain(self) -> None:
        """Wait until every scheduled effect has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run_logged(self, effect: Effect) -> None:
        try:
            await self.run(effect)
        except Exception as e:
            self.failures += 1
            logger.warning("Persistence effect %s failed: %s", type(effect).__name__, e)

    def _notify_refresh(self) -> None:
        for listener in list(self._refresh_listeners):
            try:
                listener()
            except Exception:
                logger.exception("Session refresh listener failed")
