"""Scroll-back transcript of shell commands run by the agent.

The formatter listens to the same event feed as the reconciler but only
cares about the ``bash`` tool. Each call becomes a bordered header with the
command, each result a bordered block colored by outcome.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from io import StringIO

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from codemaster.types.events import AgentEvent, ToolCallEvent, ToolResultEvent
from codemaster.types.store import EventSource, Unsubscribe

logger = logging.getLogger(__name__)

BASH_TOOL = "bash"
DEFAULT_MAX_RESULT_LINES = 50
DEFAULT_SCROLLBACK_LINES = 1000

STYLE_COMMAND_BORDER = "#60a5fa"      # blue
STYLE_COMMAND = "bold #e2e8f0"
STYLE_WORKDIR = "#7c7c8a"
STYLE_SUCCESS_BORDER = "#34d399"      # green
STYLE_FAILURE_BORDER = "#f87171"      # red
STYLE_OUTPUT = "#e2e8f0"
STYLE_ELISION = "dim italic #94a3b8"


class FormatterState(Enum):
    IDLE = "idle"
    AWAITING_RESULT = "awaiting_result"


@dataclass(frozen=True, slots=True)
class TranscriptBlock:
    """One bordered block of the transcript, before rendering."""

    kind: str  # "command" or "result"
    lines: tuple[str, ...]
    success: bool = True
    elided: int = 0
    workdir: str | None = None

    @property
    def elision_line(self) -> str | None:
        if not self.elided:
            return None
        return f"... ({self.elided} more lines)"


def parse_bash_args(args: str) -> tuple[str, str | None] | None:
    """Extract ``(command, workdir)`` from bash tool arguments.

    Returns ``None`` when the arguments are not a JSON object with a string
    ``command``.
    """
    try:
        data = json.loads(args)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    command = data.get("command")
    if not isinstance(command, str):
        return None
    workdir = data.get("workdir")
    return command, workdir if isinstance(workdir, str) and workdir else None


def is_failure(result: str) -> bool:
    """Heuristic outcome of a bash result."""
    return result.startswith("Exit Code:") or "Error:" in result


class TranscriptFormatter:
    """Renders bash tool activity into a bounded scroll-back buffer.

    Rendered ANSI lines are appended to :attr:`scrollback` (oldest lines are
    evicted once ``scrollback_lines`` is reached) and, if a ``sink`` is given,
    written to it as they are produced.
    """

    def __init__(
        self,
        *,
        scrollback_lines: int = DEFAULT_SCROLLBACK_LINES,
        max_result_lines: int = DEFAULT_MAX_RESULT_LINES,
        width: int = 100,
        sink: Callable[[str], None] | None = None,
    ) -> None:
        self.scrollback: deque[str] = deque(maxlen=scrollback_lines)
        self._max_result_lines = max_result_lines
        self._width = width
        self._sink = sink
        self._state = FormatterState.IDLE
        self._pending_call_id: str | None = None

    @property
    def state(self) -> FormatterState:
        return self._state

    @property
    def pending_call_id(self) -> str | None:
        return self._pending_call_id

    def attach(self, source: EventSource) -> Unsubscribe:
        return source.subscribe(self.handle)

    def handle(self, event: AgentEvent) -> TranscriptBlock | None:
        """Consume one event; return the block it produced, if any."""
        match event:
            case ToolCallEvent(name=name, args=args, id=call_id) if name == BASH_TOOL:
                parsed = parse_bash_args(args)
                if parsed is None:
                    logger.debug("Ignoring bash call %s with malformed args", call_id)
                    return None
                command, workdir = parsed
                block = TranscriptBlock(kind="command", lines=(command,), workdir=workdir)
                self._state = FormatterState.AWAITING_RESULT
                self._pending_call_id = call_id
            case ToolResultEvent(name=name, result=result) if name == BASH_TOOL:
                block = self._result_block(result)
                self._state = FormatterState.IDLE
                self._pending_call_id = None
            case _:
                return None

        self._emit(self.render(block))
        return block

    def _result_block(self, result: str) -> TranscriptBlock:
        lines = result.splitlines()
        shown = lines[: self._max_result_lines]
        return TranscriptBlock(
            kind="result",
            lines=tuple(shown),
            success=not is_failure(result),
            elided=len(lines) - len(shown),
        )

    # ── Rendering ────────────────────────────────────────────────────────────

    def render(self, block: TranscriptBlock) -> list[str]:
        """Render a block to ANSI-styled terminal lines."""
        if block.kind == "command":
            body = [Text(f"$ {block.lines[0]}", style=STYLE_COMMAND)]
            if block.workdir:
                body.append(Text(f"cwd: {block.workdir}", style=STYLE_WORKDIR))
            panel = Panel(
                Group(*body),
                title="bash",
                title_align="left",
                border_style=STYLE_COMMAND_BORDER,
            )
        else:
            body = [Text(line, style=STYLE_OUTPUT) for line in block.lines]
            if not block.lines:
                body.append(Text("(no output)", style=STYLE_ELISION))
            if block.elision_line:
                body.append(Text(block.elision_line, style=STYLE_ELISION))
            panel = Panel(
                Group(*body),
                title="✓ done" if block.success else "✗ failed",
                title_align="left",
                border_style=STYLE_SUCCESS_BORDER if block.success else STYLE_FAILURE_BORDER,
            )

        buf = StringIO()
        console = Console(
            file=buf, force_terminal=True, color_system="truecolor", width=self._width,
        )
        console.print(panel)
        return buf.getvalue().splitlines()

    def _emit(self, lines: list[str]) -> None:
        self.scrollback.extend(lines)
        if self._sink is not None:
            for line in lines:
                self._sink(line)

    def clear(self) -> None:
        self.scrollback.clear()
        self._state = FormatterState.IDLE
        self._pending_call_id = None
