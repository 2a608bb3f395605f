"""Host agent process transport."""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
from collections.abc import Sequence
from pathlib import Path

from codemaster.core.channel import EventChannel, read_events
from codemaster.errors import AgentDispatchError
from codemaster.types.events import Done, ErrorEvent
from codemaster.types.messages import Message

logger = logging.getLogger(__name__)

# Largest single event line accepted from the host (tool results can be big).
STREAM_LIMIT = 16 * 1024 * 1024


class SubprocessAgent:
    """Runs one host process per user turn.

    The turn is written to the process's stdin as a single JSON object
    ``{"message": text, "history": [...]}``; every line the process prints
    on stdout is decoded as an agent event and published on ``channel``.
    ``dispatch_user_turn`` returns once the process has exited.

    A turn always ends with a terminal event: if the host exits after
    publishing events but without ``Done`` or ``Error``, an ``Error`` event
    describing the exit is published for it. If it exits without publishing
    anything, :class:`AgentDispatchError` is raised instead.
    """

    def __init__(
        self,
        command: str,
        channel: EventChannel,
        *,
        cwd: str | Path | None = None,
        limit: int = STREAM_LIMIT,
    ) -> None:
        self._argv = shlex.split(command)
        if not self._argv:
            raise ValueError("Host command is empty")
        self._channel = channel
        self._cwd = str(cwd) if cwd is not None else None
        self._limit = limit

    async def dispatch_user_turn(self, text: str, history: Sequence[Message]) -> None:
        payload = json.dumps({
            "message": text,
            "history": [m.to_dict() for m in history],
        }, ensure_ascii=False)

        try:
            proc = await asyncio.create_subprocess_exec(
                *self._argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
                limit=self._limit,
            )
        except OSError as e:
            raise AgentDispatchError(f"Failed to start host agent: {e}") from e

        if proc.stdin is None or proc.stdout is None or proc.stderr is None:
            proc.kill()
            await proc.wait()
            raise AgentDispatchError("Host agent started without pipes")

        try:
            proc.stdin.write(payload.encode("utf-8") + b"\n")
            await proc.stdin.drain()
            proc.stdin.close()
        except (BrokenPipeError, ConnectionResetError):
            # Host exited before reading its turn; its exit status tells why.
            logger.debug("Host agent closed stdin early")

        delivered = 0
        finished = False
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            async for event in read_events(proc.stdout):
                delivered += 1
                finished = isinstance(event, (Done, ErrorEvent))
                self._channel.publish(event)
        except BaseException:
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
            raise
        finally:
            returncode = await proc.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace").strip()

        if returncode != 0:
            logger.warning("Host agent exited with %d: %s", returncode, stderr[:500])
        if finished:
            return
        detail = f"Host agent exited with code {returncode}: {stderr[:300] or 'no output'}"
        if delivered == 0:
            raise AgentDispatchError(detail)
        logger.warning("Host agent ended the turn without Done or Error")
        self._channel.publish(ErrorEvent(detail))
