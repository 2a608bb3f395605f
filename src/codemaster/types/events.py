"""Agent events streamed from the host process.

Every event on the wire is a JSON object ``{"type": ..., "content": ...}``.
The set of discriminants is closed: :func:`decode_event` rejects anything
it does not know instead of guessing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from codemaster.errors import EventDecodeError
from codemaster.types.messages import Message


@dataclass(frozen=True, slots=True)
class Thinking:
    """The agent is reasoning; no text has been produced yet."""

    type: ClassVar[str] = "Thinking"

    text: str = ""


@dataclass(frozen=True, slots=True)
class StreamChunk:
    """Partial assistant text."""

    type: ClassVar[str] = "StreamChunk"

    text: str


@dataclass(frozen=True, slots=True)
class StreamEnd:
    """The current streamed message is complete."""

    type: ClassVar[str] = "StreamEnd"


@dataclass(frozen=True, slots=True)
class ToolCallEvent:
    """The agent is about to run a tool. ``args`` is a raw JSON string."""

    type: ClassVar[str] = "ToolCall"

    name: str
    args: str
    id: str


@dataclass(frozen=True, slots=True)
class ToolResultEvent:
    """Output of a tool run, correlated to its call by ``id``."""

    type: ClassVar[str] = "ToolResult"

    name: str
    result: str
    id: str


@dataclass(frozen=True, slots=True)
class NewMessage:
    """A finalized message the agent appended to its history."""

    type: ClassVar[str] = "NewMessage"

    message: Message


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """The agent reported an error; the turn is over."""

    type: ClassVar[str] = "Error"

    message: str


@dataclass(frozen=True, slots=True)
class Done:
    """The agent finished the turn."""

    type: ClassVar[str] = "Done"


AgentEvent = (
    Thinking
    | StreamChunk
    | StreamEnd
    | ToolCallEvent
    | ToolResultEvent
    | NewMessage
    | ErrorEvent
    | Done
)

EVENT_TYPES: tuple[str, ...] = (
    "Thinking",
    "StreamChunk",
    "StreamEnd",
    "ToolCall",
    "ToolResult",
    "NewMessage",
    "Error",
    "Done",
)


def _require_str(content: Any, kind: str, data: Any) -> str:
    if not isinstance(content, str):
        raise EventDecodeError(f"{kind} event content must be a string", data)
    return content


def _require_fields(content: Any, fields: tuple[str, ...], kind: str, data: Any) -> dict[str, str]:
    if not isinstance(content, dict):
        raise EventDecodeError(f"{kind} event content must be an object", data)
    values: dict[str, str] = {}
    for key in fields:
        value = content.get(key)
        if not isinstance(value, str):
            raise EventDecodeError(f"{kind} event is missing string field {key!r}", data)
        values[key] = value
    return values


def decode_event(data: Any) -> AgentEvent:
    """Decode a wire payload into an :data:`AgentEvent`.

    Raises:
        EventDecodeError: The payload is not an object, has an unknown
            ``type``, or its ``content`` does not match the variant.
    """
    if not isinstance(data, dict):
        raise EventDecodeError("Event payload must be an object", data)

    content = data.get("content")
    match data.get("type"):
        case "Thinking":
            return Thinking(text=_require_str(content, "Thinking", data))
        case "StreamChunk":
            return StreamChunk(text=_require_str(content, "StreamChunk", data))
        case "StreamEnd":
            return StreamEnd()
        case "ToolCall":
            fields = _require_fields(content, ("name", "args", "id"), "ToolCall", data)
            return ToolCallEvent(**fields)
        case "ToolResult":
            fields = _require_fields(content, ("name", "result", "id"), "ToolResult", data)
            return ToolResultEvent(**fields)
        case "NewMessage":
            if not isinstance(content, dict):
                raise EventDecodeError("NewMessage event content must be an object", data)
            try:
                return NewMessage(message=Message.from_dict(content))
            except (KeyError, TypeError, ValueError) as e:
                raise EventDecodeError(f"Invalid NewMessage payload: {e}", data) from e
        case "Error":
            return ErrorEvent(message=_require_str(content, "Error", data))
        case "Done":
            return Done()
        case other:
            raise EventDecodeError(f"Unknown event type: {other!r}", data)


def encode_event(event: AgentEvent) -> dict[str, Any]:
    """Encode an event into its wire form."""
    match event:
        case Thinking(text=text) | StreamChunk(text=text):
            content: Any = text
        case ToolCallEvent(name=name, args=args, id=call_id):
            content = {"name": name, "args": args, "id": call_id}
        case ToolResultEvent(name=name, result=result, id=call_id):
            content = {"name": name, "result": result, "id": call_id}
        case NewMessage(message=message):
            content = message.to_dict()
        case ErrorEvent(message=message):
            content = message
        case StreamEnd() | Done():
            content = None
        case _:
            raise TypeError(f"Not an agent event: {event!r}")
    return {"type": event.type, "content": content}
