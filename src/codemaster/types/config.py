"""Configuration types for the CodeMaster client."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class ClientConfig:
    """Resolved client settings."""

    data_dir: Path = field(default_factory=lambda: Path.home() / ".codemaster")
    scrollback_lines: int = 1000
    max_result_lines: int = 50
    title_max_chars: int = 30
    host_command: str | None = None

    @property
    def sessions_dir(self) -> Path:
        return self.data_dir / "sessions"
