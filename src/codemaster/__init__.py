"""CodeMaster — client core for the CodeMaster coding agent.

Usage:
    from codemaster import ConversationState, StreamChunk, Thinking, reconcile

    state, effects = reconcile(ConversationState.empty(), Thinking())
    state, effects = reconcile(state, StreamChunk("Hi"))
    assert state.streaming_content == "Hi"
"""

from codemaster.core.channel import EventChannel
from codemaster.core.controller import ConversationController
from codemaster.core.dispatcher import PersistenceDispatcher
from codemaster.core.reconciler import THINKING_PLACEHOLDER, reconcile, replay
from codemaster.core.session import JsonlSessionStore
from codemaster.core.state import ConversationState, correlate_tool_calls
from codemaster.types.effects import CreateSession, Effect, PersistMessage, RefreshSessions
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
    decode_event,
    encode_event,
)
from codemaster.types.messages import Message, ToolCall
from codemaster.types.session import Session
from codemaster.ui.transcript import TranscriptFormatter

__version__ = "0.1.0"

__all__ = [
    # Core API
    "ConversationController",
    "ConversationState",
    "EventChannel",
    "JsonlSessionStore",
    "PersistenceDispatcher",
    "THINKING_PLACEHOLDER",
    "TranscriptFormatter",
    "correlate_tool_calls",
    "reconcile",
    "replay",
    # Events
    "AgentEvent",
    "Done",
    "ErrorEvent",
    "NewMessage",
    "StreamChunk",
    "StreamEnd",
    "Thinking",
    "ToolCallEvent",
    "ToolResultEvent",
    "decode_event",
    "encode_event",
    # Data
    "Message",
    "Session",
    "ToolCall",
    # Effects
    "CreateSession",
    "Effect",
    "PersistMessage",
    "RefreshSessions",
]
