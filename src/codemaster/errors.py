"""Exception types raised by the CodeMaster client core."""

from __future__ import annotations


class CodeMasterError(Exception):
    """Base class for client core errors."""


class EventDecodeError(CodeMasterError):
    """Raised when an inbound payload is not a valid agent event."""

    def __init__(self, message: str, payload: object = None) -> None:
        super().__init__(message)
        self.payload = payload


class SessionCreateError(CodeMasterError):
    """Raised when a session could not be created for the first send."""


class SessionNotFoundError(CodeMasterError, KeyError):
    """Raised by a session store for an unknown session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id

    def __str__(self) -> str:
        return self.args[0]


class ConversationBusyError(CodeMasterError):
    """Raised when the user sends while a turn is still in progress."""


class AgentDispatchError(CodeMasterError):
    """Raised when a user turn could not be handed to the host agent."""


class ConversationChangedError(CodeMasterError):
    """Raised when the view switched sessions while a send was creating one.

    The message is stored in the new session but no turn is dispatched.
    """

    def __init__(self, message: str, session_id: str) -> None:
        super().__init__(message)
        self.session_id = session_id
