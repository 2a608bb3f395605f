"""Side effects requested by the reconciler and the conversation controller.

Effects are plain values. Executing them is the job of
:class:`codemaster.core.dispatcher.PersistenceDispatcher`.
"""

from __future__ import annotations

from dataclasses import dataclass

from codemaster.types.messages import Message


@dataclass(frozen=True, slots=True)
class PersistMessage:
    """Store ``message`` as entry ``index`` of session ``session_id``."""

    session_id: str
    message: Message
    index: int


@dataclass(frozen=True, slots=True)
class CreateSession:
    """Create a session titled ``title``."""

    title: str


@dataclass(frozen=True, slots=True)
class RefreshSessions:
    """The session list changed and any sidebar should reload it."""


Effect = PersistMessage | CreateSession | RefreshSessions
