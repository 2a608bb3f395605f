"""Rich-powered conversation output."""

from __future__ import annotations

import json
from collections.abc import Iterable

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table
from rich.text import Text

from codemaster.core.reconciler import THINKING_PLACEHOLDER
from codemaster.core.state import ConversationState, correlate_tool_calls
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
from codemaster.types.messages import Message, ToolCall
from codemaster.types.session import Session
from codemaster.ui.transcript import BASH_TOOL

# ── Palette ──────────────────────────────────────────────────────────────────

ROLE_LABELS: dict[str, str] = {
    "user": "\U0001f464",       # 👤
    "assistant": "\U0001f916",  # 🤖
    "tool": "\u2699",         # ⚙  gear
}

STYLE_USER = "bold #e2e8f0"
STYLE_TOOL_NAME = "bold #a78bfa"      # violet, primary accent
STYLE_TOOL_DETAIL = "#7c7c8a"         # muted grey
STYLE_THINKING = "dim italic #94a3b8"
STYLE_ERROR_LABEL = "bold #f87171"    # red
STYLE_ERROR_BODY = "#f87171"
STYLE_RESULT_DIM = "dim #7c7c8a"
STYLE_RESULT_LABEL = "bold #94a3b8"   # slate
STYLE_RESULT_VALUE = "#e2e8f0"

STATUS_PENDING = "\u23f3"  # ⏳
STATUS_DONE = "\u2705"     # ✅

_PREVIEW_CHARS = 300


def _args_preview(arguments: str) -> str:
    """Compact one-line view of raw JSON tool arguments."""
    try:
        data = json.loads(arguments)
    except (json.JSONDecodeError, TypeError):
        return arguments[:120]
    if isinstance(data, dict):
        if isinstance(data.get("command"), str):
            return f"$ {data['command']}"
        for key in ("path", "file_path", "pattern"):
            if isinstance(data.get(key), str):
                return data[key]
    text = json.dumps(data, ensure_ascii=False)
    return text if len(text) <= 120 else text[:117] + "..."


class ConversationView:
    """Prints conversation state and live agent events to a Rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._streaming = False

    # ── Live events ──────────────────────────────────────────────────────────

    def handle_event(self, event: AgentEvent) -> None:
        """Print one agent event as it arrives.

        Bash calls and results are left to the transcript formatter.
        """
        match event:
            case Thinking():
                self._console.print(Text(THINKING_PLACEHOLDER, style=STYLE_THINKING))

            case StreamChunk(text=t):
                self._streaming = True
                self._console.print(t, end="", highlight=False, markup=False)

            case StreamEnd():
                if self._streaming:
                    self._console.print()
                    self._streaming = False

            case ToolCallEvent(name=name, args=args) if name != BASH_TOOL:
                line = Text(f"  ▸ {name}", style=STYLE_TOOL_NAME)
                line.append(f"  {_args_preview(args)}", style=STYLE_TOOL_DETAIL)
                self._console.print(line)

            case ToolResultEvent(name=name, result=result) if name != BASH_TOOL:
                preview = result if len(result) <= _PREVIEW_CHARS else result[:_PREVIEW_CHARS] + "…"
                self._console.print(Text(f"    {preview}", style=STYLE_RESULT_DIM))

            case ErrorEvent(message=msg):
                if self._streaming:
                    self._console.print()
                    self._streaming = False
                label = Text("  ✗ Error: ", style=STYLE_ERROR_LABEL)
                label.append(msg, style=STYLE_ERROR_BODY)
                self._console.print(label)

            case NewMessage() | Done() | ToolCallEvent() | ToolResultEvent():
                pass

    # ── Static rendering ─────────────────────────────────────────────────────

    def render_state(self, state: ConversationState) -> None:
        """Print every message of ``state`` followed by its streaming buffer."""
        results = {
            call.id: result for call, result in correlate_tool_calls(state.messages)
        }
        for msg in state.messages:
            self.render_message(msg, results)
        if state.streaming_content:
            style = STYLE_THINKING if state.streaming_content == THINKING_PLACEHOLDER else None
            self._console.print(Text(state.streaming_content, style=style or ""))

    def render_message(
        self, msg: Message, results: dict[str, Message | None] | None = None,
    ) -> None:
        label = ROLE_LABELS.get(msg.role, "?")
        match msg.role:
            case "user":
                self._console.print(Text(f"{label} {msg.content or ''}", style=STYLE_USER))
            case "assistant":
                if msg.content:
                    self._console.print(Text(label))
                    self._console.print(Markdown(msg.content))
                for call in msg.tool_calls or ():
                    self._render_tool_call(call, (results or {}).get(call.id))
            case "tool":
                content = msg.content or ""
                if len(content) > _PREVIEW_CHARS:
                    content = content[:_PREVIEW_CHARS] + "…"
                line = Text(f"  {label} {msg.name or 'Unknown Tool'}", style=STYLE_TOOL_NAME)
                self._console.print(line)
                self._console.print(Text(f"    {content}", style=STYLE_RESULT_DIM))

    def _render_tool_call(self, call: ToolCall, result: Message | None) -> None:
        status = STATUS_DONE if result is not None else STATUS_PENDING
        line = Text(f"  ▸ {call.function_name} {status}", style=STYLE_TOOL_NAME)
        line.append(f"  {_args_preview(call.arguments)}", style=STYLE_TOOL_DETAIL)
        self._console.print(line)

    def render_sessions(self, sessions: Iterable[Session], current: str | None = None) -> None:
        tbl = Table(show_header=True, show_edge=False, padding=(0, 1), expand=False)
        tbl.add_column("", no_wrap=True)
        tbl.add_column("Session ID", style=STYLE_RESULT_LABEL, no_wrap=True)
        tbl.add_column("Title", style=STYLE_RESULT_VALUE)
        tbl.add_column("Updated", style=STYLE_TOOL_DETAIL, no_wrap=True)
        for s in sessions:
            marker = "*" if s.id == current else ""
            tbl.add_row(marker, s.id, s.title, s.updated_at.strftime("%Y-%m-%d %H:%M"))
        self._console.print(tbl)
