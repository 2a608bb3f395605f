"""Test fixtures: in-memory session store and scripted agent fakes."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from codemaster.core.channel import EventChannel
from codemaster.core.controller import ConversationController
from codemaster.core.dispatcher import PersistenceDispatcher
from codemaster.core.session import JsonlSessionStore
from codemaster.errors import SessionNotFoundError
from codemaster.types.events import AgentEvent
from codemaster.types.messages import Message
from codemaster.types.session import Session


class RecordingStore:
    """In-memory SessionStore that records every call.

    Set ``fail_create`` / ``fail_persist`` to make those operations raise.
    ``persist_delay`` makes persist calls yield to the loop before storing.
    ``create_gate`` holds ``create_session`` until the event is set.
    """

    def __init__(self) -> None:
        self.sessions: dict[str, Session] = {}
        self.messages: dict[str, dict[int, Message]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_create: Exception | None = None
        self.fail_persist: Exception | None = None
        self.persist_delay: float = 0.0
        self.create_gate: asyncio.Event | None = None
        self._ids = itertools.count(1)

    async def create_session(self, title: str) -> Session:
        self.calls.append(("create_session", title))
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.fail_create is not None:
            raise self.fail_create
        now = datetime.now(UTC)
        session = Session(id=f"s{next(self._ids)}", title=title, created_at=now, updated_at=now)
        self.sessions[session.id] = session
        self.messages[session.id] = {}
        return session

    async def list_sessions(self) -> list[Session]:
        self.calls.append(("list_sessions", None))
        return sorted(self.sessions.values(), key=lambda s: s.updated_at, reverse=True)

    async def rename_session(self, session_id: str, title: str) -> None:
        self.calls.append(("rename_session", (session_id, title)))
        old = self.sessions[session_id]
        self.sessions[session_id] = Session(old.id, title, old.created_at, old.updated_at)

    async def delete_session(self, session_id: str) -> None:
        self.calls.append(("delete_session", session_id))
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        del self.sessions[session_id]
        self.messages.pop(session_id, None)

    async def load_session_messages(self, session_id: str) -> list[Message]:
        self.calls.append(("load_session_messages", session_id))
        if session_id not in self.sessions:
            raise SessionNotFoundError(session_id)
        stored = self.messages[session_id]
        return [stored[i] for i in sorted(stored)]

    async def persist_message(self, session_id: str, message: Message, index: int) -> None:
        self.calls.append(("persist_message", (session_id, message, index)))
        if self.persist_delay:
            await asyncio.sleep(self.persist_delay)
        if self.fail_persist is not None:
            raise self.fail_persist
        self.messages.setdefault(session_id, {})[index] = message

    @property
    def persisted(self) -> list[tuple[str, Message, int]]:
        return [args for name, args in self.calls if name == "persist_message"]


class ScriptedAgent:
    """AgentDispatcher that records turns and optionally replays events."""

    def __init__(
        self,
        channel: EventChannel | None = None,
        events: Sequence[AgentEvent] = (),
        error: Exception | None = None,
    ) -> None:
        self.channel = channel
        self.events = list(events)
        self.error = error
        self.turns: list[tuple[str, list[Message]]] = []

    async def dispatch_user_turn(self, text: str, history: Sequence[Message]) -> None:
        self.turns.append((text, list(history)))
        if self.error is not None:
            raise self.error
        if self.channel is not None:
            for event in self.events:
                self.channel.publish(event)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def dispatcher(store: RecordingStore) -> PersistenceDispatcher:
    return PersistenceDispatcher(store)


@pytest.fixture
def agent() -> ScriptedAgent:
    return ScriptedAgent()


@pytest.fixture
def controller(dispatcher: PersistenceDispatcher, agent: ScriptedAgent) -> ConversationController:
    return ConversationController(dispatcher, agent)


@pytest.fixture
def jsonl_store(tmp_path: Path) -> JsonlSessionStore:
    return JsonlSessionStore(tmp_path / "sessions")
