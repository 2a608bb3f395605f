"""In-memory conversation state."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace

from codemaster.types.messages import Message, ToolCall


@dataclass(frozen=True, slots=True)
class ConversationState:
    """The authoritative record of the open conversation.

    Instances are immutable; every transition returns a new value.
    """

    messages: tuple[Message, ...] = ()
    streaming_content: str = ""
    loading: bool = False
    current_session_id: str | None = None

    @classmethod
    def empty(cls) -> ConversationState:
        return cls()

    @classmethod
    def hydrate(cls, session_id: str, messages: Iterable[Message]) -> ConversationState:
        """Build the state for a session loaded from the store."""
        return cls(messages=tuple(messages), current_session_id=session_id)

    def with_message(self, message: Message) -> ConversationState:
        return replace(self, messages=self.messages + (message,))

    def with_session(self, session_id: str | None) -> ConversationState:
        return replace(self, current_session_id=session_id)

    @property
    def next_index(self) -> int:
        """Position the next appended message will occupy."""
        return len(self.messages)


def correlate_tool_calls(
    messages: Iterable[Message],
) -> list[tuple[ToolCall, Message | None]]:
    """Pair every assistant tool call with the tool message answering it.

    Calls whose result has not arrived yet are paired with ``None``.
    """
    calls: list[ToolCall] = []
    results: dict[str, Message] = {}
    for msg in messages:
        if msg.tool_calls:
            calls.extend(msg.tool_calls)
        elif msg.role == "tool" and msg.tool_call_id:
            results.setdefault(msg.tool_call_id, msg)
    return [(call, results.get(call.id)) for call in calls]
