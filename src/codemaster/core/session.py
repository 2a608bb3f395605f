"""JSONL append-only session store."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from codemaster.errors import SessionNotFoundError
from codemaster.types.messages import Message
from codemaster.types.session import Session

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """Generate a new session ID."""
    return uuid.uuid4().hex[:12]


def _now() -> datetime:
    return datetime.now(UTC)


class _SessionFile:
    """Parsed contents of one session file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.metadata: dict[str, Any] = {}
        self.messages: dict[int, Message] = {}
        self.updated_at: str | None = None

    @classmethod
    def load(cls, path: Path) -> _SessionFile:
        parsed = cls(path)
        with open(path) as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                parsed._apply(json.loads(line))
        if not parsed.metadata:
            raise ValueError(f"Session file has no metadata: {path}")
        return parsed

    def _apply(self, entry: dict[str, Any]) -> None:
        kind = entry.get("type")
        if kind == "metadata":
            self.metadata.update(entry.get("data", {}))
        elif kind == "message":
            # Later writes for the same index win; order is by index, not arrival.
            self.messages[int(entry["index"])] = Message.from_dict(entry["data"])
        elif kind == "title":
            self.metadata["title"] = entry["title"]
        elif kind == "clear":
            self.messages.clear()
        else:
            return
        if ts := entry.get("timestamp"):
            self.updated_at = max(self.updated_at or ts, ts)

    def session(self) -> Session:
        created = self.metadata["created_at"]
        updated = max(self.metadata.get("updated_at", created), self.updated_at or created)
        return Session.from_dict({"title": "", **self.metadata, "updated_at": updated})

    def ordered_messages(self) -> list[Message]:
        return [self.messages[i] for i in sorted(self.messages)]


class JsonlSessionStore:
    """Sessions stored as one append-only JSONL file each.

    Writing the same ``(session_id, index)`` twice keeps the last write, so
    concurrent or repeated ``persist_message`` calls are harmless.
    """

    def __init__(self, directory: Path) -> None:
        self._dir = directory
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, session_id: str) -> Path:
        return self._dir / f"{session_id}.jsonl"

    def _existing(self, session_id: str) -> Path:
        path = self._path(session_id)
        if not path.exists():
            raise SessionNotFoundError(session_id)
        return path

    @staticmethod
    def _append(path: Path, entry: dict[str, Any]) -> None:
        with open(path, "a") as f:
            f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")

    async def create_session(self, title: str) -> Session:
        now = _now().isoformat()
        session_id = new_session_id()
        metadata = {"id": session_id, "title": title, "created_at": now, "updated_at": now}
        self._append(self._path(session_id), {"type": "metadata", "data": metadata})
        logger.debug("Created session file for %s", session_id)
        return Session.from_dict(metadata)

    async def get_session(self, session_id: str) -> Session:
        return _SessionFile.load(self._existing(session_id)).session()

    async def list_sessions(self) -> list[Session]:
        """List sessions, most recently updated first."""
        results: list[Session] = []
        for path in self._dir.glob("*.jsonl"):
            try:
                results.append(_SessionFile.load(path).session())
            except (OSError, ValueError, KeyError) as e:
                logger.warning("Skipping unreadable session file %s: %s", path.name, e)
        results.sort(key=lambda s: s.updated_at, reverse=True)
        return results

    async def rename_session(self, session_id: str, title: str) -> None:
        path = self._existing(session_id)
        self._append(path, {"type": "title", "title": title, "timestamp": _now().isoformat()})

    async def delete_session(self, session_id: str) -> None:
        self._existing(session_id).unlink()
        logger.debug("Deleted session %s", session_id)

    async def load_session_messages(self, session_id: str) -> list[Message]:
        return _SessionFile.load(self._existing(session_id)).ordered_messages()

    async def persist_message(self, session_id: str, message: Message, index: int) -> None:
        path = self._existing(session_id)
        self._append(path, {
            "type": "message",
            "index": index,
            "data": message.to_dict(),
            "timestamp": _now().isoformat(),
        })

    async def clear_session_messages(self, session_id: str) -> None:
        """Drop all messages of a session, keeping its metadata."""
        path = self._existing(session_id)
        self._append(path, {"type": "clear", "timestamp": _now().isoformat()})
