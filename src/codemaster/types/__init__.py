"""Type definitions for CodeMaster."""

from codemaster.types.config import ClientConfig
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
from codemaster.types.store import AgentDispatcher, EventSource, SessionStore

__all__ = [
    "AgentDispatcher",
    "AgentEvent",
    "ClientConfig",
    "CreateSession",
    "Done",
    "Effect",
    "ErrorEvent",
    "EventSource",
    "Message",
    "NewMessage",
    "PersistMessage",
    "RefreshSessions",
    "Session",
    "SessionStore",
    "StreamChunk",
    "StreamEnd",
    "Thinking",
    "ToolCall",
    "ToolCallEvent",
    "ToolResultEvent",
    "decode_event",
    "encode_event",
]
