"""Protocols for the collaborators the client core talks to."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from codemaster.types.events import AgentEvent
from codemaster.types.messages import Message
from codemaster.types.session import Session


@runtime_checkable
class SessionStore(Protocol):
    """Persistent session storage.

    ``persist_message`` may be called concurrently for different messages of
    the same session and must be idempotent per ``(session_id, index)``.
    """

    async def create_session(self, title: str) -> Session: ...

    async def list_sessions(self) -> list[Session]: ...

    async def rename_session(self, session_id: str, title: str) -> None: ...

    async def delete_session(self, session_id: str) -> None: ...

    async def load_session_messages(self, session_id: str) -> list[Message]: ...

    async def persist_message(self, session_id: str, message: Message, index: int) -> None: ...


@runtime_checkable
class AgentDispatcher(Protocol):
    """Hands a user turn to the host agent."""

    async def dispatch_user_turn(self, text: str, history: Sequence[Message]) -> None:
        """Start a turn. Failure to start raises to the caller."""
        ...


EventCallback = Callable[[AgentEvent], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class EventSource(Protocol):
    """Ordered inbound event channel."""

    def subscribe(self, callback: EventCallback) -> Unsubscribe: ...
