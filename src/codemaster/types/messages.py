"""Conversation message types shared with the host agent process."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

Role = Literal["user", "assistant", "tool"]

ROLES: tuple[str, ...] = ("user", "assistant", "tool")


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the assistant.

    ``arguments`` is the raw JSON string produced by the model. Only tool
    specific consumers parse it.
    """

    id: str
    function_name: str
    arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.function_name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        function = data.get("function") or {}
        return cls(
            id=str(data.get("id", "")),
            function_name=str(function.get("name", "")),
            arguments=str(function.get("arguments", "")),
        )


@dataclass(frozen=True, slots=True)
class Message:
    """A single entry in the conversation log."""

    role: Role
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")
        if self.role == "tool" and not self.name:
            raise ValueError("Tool messages must carry a tool name")
        if self.tool_calls and self.role != "assistant":
            raise ValueError("Only assistant messages may carry tool calls")

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the wire field names (absent fields are omitted)."""
        data: dict[str, Any] = {"role": self.role}
        if self.content is not None:
            data["content"] = self.content
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        raw_calls = data.get("tool_calls")
        tool_calls = (
            tuple(ToolCall.from_dict(tc) for tc in raw_calls) if raw_calls else None
        )
        return cls(
            role=data["role"],
            content=data.get("content"),
            tool_calls=tool_calls,
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
        )


def user_message(text: str) -> Message:
    return Message(role="user", content=text)


def assistant_message(text: str) -> Message:
    return Message(role="assistant", content=text)


def tool_message(name: str, result: str, tool_call_id: str) -> Message:
    return Message(role="tool", content=result, tool_call_id=tool_call_id, name=name)
