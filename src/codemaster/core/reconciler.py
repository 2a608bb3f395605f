"""Event reconciliation: the pure transition from (state, event) to new state.

The reconciler never performs I/O. Anything that has to touch the outside
world is returned as an effect for the caller to execute.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from codemaster.core.state import ConversationState
from codemaster.types.effects import Effect, PersistMessage
from codemaster.types.events import (
    AgentEvent,
    Done,
    ErrorEvent,
    NewMessage,
    StreamChunk,
    StreamEnd,
    Thinking,
    ToolCallEvent,
    ToolResultEvent,
)
from codemaster.types.messages import Message, assistant_message, tool_message

THINKING_PLACEHOLDER = "Thinking..."
ERROR_PREFIX = "❌ Error: "


def reconcile(
    state: ConversationState, event: AgentEvent,
) -> tuple[ConversationState, list[Effect]]:
    """Apply one agent event to ``state``.

    Returns the next state and the persistence effects it requires. Effects
    are only produced while a session exists; before that, messages live in
    memory only.
    """
    match event:
        case Thinking():
            return replace(state, streaming_content=THINKING_PLACEHOLDER), []

        case StreamChunk(text=text):
            if state.streaming_content == THINKING_PLACEHOLDER:
                return replace(state, streaming_content=text), []
            return replace(state, streaming_content=state.streaming_content + text), []

        case StreamEnd():
            return replace(state, streaming_content=""), []

        case NewMessage(message=message):
            return _append(state, message)

        case ToolResultEvent(name=name, result=result, id=call_id):
            return _append(state, tool_message(name, result, call_id))

        case ToolCallEvent():
            # The finalized assistant message carrying the call arrives as NewMessage.
            return state, []

        case ErrorEvent(message=text):
            next_state = replace(
                state.with_message(assistant_message(ERROR_PREFIX + text)),
                streaming_content="",
                loading=False,
            )
            return next_state, []

        case Done():
            return replace(state, streaming_content="", loading=False), []

        case _:
            raise TypeError(f"Not an agent event: {event!r}")


def _append(
    state: ConversationState, message: Message,
) -> tuple[ConversationState, list[Effect]]:
    effects: list[Effect] = []
    if state.current_session_id is not None:
        effects.append(PersistMessage(state.current_session_id, message, state.next_index))
    return state.with_message(message), effects


def replay(
    events: Iterable[AgentEvent], state: ConversationState | None = None,
) -> tuple[ConversationState, list[Effect]]:
    """Fold a sequence of events over ``state`` (empty by default)."""
    current = state if state is not None else ConversationState.empty()
    effects: list[Effect] = []
    for event in events:
        current, produced = reconcile(current, event)
        effects.extend(produced)
    return current, effects
