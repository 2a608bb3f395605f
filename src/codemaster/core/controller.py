"""Conversation controller: user actions and session lifecycle.

The controller owns the single :class:`ConversationState` value. Agent
events go through :func:`reconcile`; user actions (send, switch, reset) are
applied here. Every effect is handed to the persistence dispatcher.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace

from codemaster.core.dispatcher import PersistenceDispatcher
from codemaster.core.reconciler import reconcile
from codemaster.core.state import ConversationState
from codemaster.errors import (
    ConversationBusyError,
    ConversationChangedError,
    SessionCreateError,
)
from codemaster.types.effects import CreateSession, PersistMessage, RefreshSessions
from codemaster.types.events import AgentEvent
from codemaster.types.messages import assistant_message, user_message
from codemaster.types.session import Session
from codemaster.types.store import AgentDispatcher, EventSource, Unsubscribe

logger = logging.getLogger(__name__)

DEFAULT_TITLE_CHARS = 30
SEND_ERROR_PREFIX = "Error sending message: "


def session_title(text: str, max_chars: int = DEFAULT_TITLE_CHARS) -> str:
    """Derive a session title from the first user message."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "…"


class ConversationController:
    """Drives one conversation view.

    A turn that is still running when the user switches or resets the
    session keeps its own detached state. Its remaining events are applied
    there, so their effects keep targeting the session the turn was sent
    from. New sends are refused until that turn finishes.
    """

    def __init__(
        self,
        dispatcher: PersistenceDispatcher,
        agent: AgentDispatcher,
        *,
        state: ConversationState | None = None,
        title_max_chars: int = DEFAULT_TITLE_CHARS,
    ) -> None:
        self._dispatcher = dispatcher
        self._agent = agent
        self._state = state or ConversationState.empty()
        self._detached: ConversationState | None = None
        self._title_max_chars = title_max_chars
        self._generation = 0
        self._creating = False
        self._listeners: list[Callable[[ConversationState], None]] = []

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state.loading or self._creating or self._detached is not None

    def attach(self, source: EventSource) -> Unsubscribe:
        """Subscribe to an event channel."""
        return source.subscribe(self.handle_event)

    def on_change(self, listener: Callable[[ConversationState], None]) -> None:
        self._listeners.append(listener)

    def on_sessions_changed(self, listener: Callable[[], None]) -> Callable[[], None]:
        return self._dispatcher.on_refresh(listener)

    # ── Agent events ────────────────────────────────────────────────────────

    def handle_event(self, event: AgentEvent) -> None:
        """Reconcile one inbound event and schedule its effects."""
        if self._detached is not None:
            self._detached, effects = reconcile(self._detached, event)
            self._dispatcher.dispatch(effects)
            if not self._detached.loading:
                logger.debug("Detached turn for session %s finished", self._detached.current_session_id)
                self._detached = None
            return

        self._state, effects = reconcile(self._state, event)
        self._dispatcher.dispatch(effects)
        self._changed()

    # ── User actions ────────────────────────────────────────────────────────

    async def send(self, text: str) -> None:
        """Send a user turn, creating the session first if there is none.

        Raises:
            ValueError: ``text`` is blank.
            ConversationBusyError: A turn is already running.
            SessionCreateError: The session could not be created; nothing
                was appended.
            ConversationChangedError: The view was switched or reset while
                the session was being created. The message is stored in the
                new session and no turn is dispatched.
        """
        if not text.strip():
            raise ValueError("Cannot send an empty message")
        if self.busy:
            raise ConversationBusyError("A turn is already in progress")

        message = user_message(text)
        generation = self._generation
        session_id = self._state.current_session_id
        if session_id is None:
            session_id = await self._create_session(text)
            if generation != self._generation:
                # The view was switched or reset while the session was created.
                self._dispatcher.dispatch([PersistMessage(session_id, message, 0)])
                logger.info("View changed during send; message kept in session %s", session_id)
                raise ConversationChangedError(
                    f"Conversation changed before the message was sent; saved to session {session_id}",
                    session_id,
                )
            self._state = self._state.with_session(session_id)

        index = self._state.next_index
        self._state = replace(self._state.with_message(message), loading=True)
        self._dispatcher.dispatch([PersistMessage(session_id, message, index)])
        self._changed()

        try:
            await self._agent.dispatch_user_turn(text, self._state.messages)
        except Exception as e:
            logger.warning("Failed to dispatch turn for session %s: %s", session_id, e)
            if generation != self._generation:
                # The view moved on; the failed turn has nowhere to report.
                self._detached = None
                return
            self._state = replace(
                self._state.with_message(assistant_message(f"{SEND_ERROR_PREFIX}{e}")),
                loading=False,
            )
            self._changed()

    async def switch_session(self, session_id: str) -> None:
        """Replace the conversation with a stored session.

        If loading fails the current conversation is kept and the error
        propagates.
        """
        try:
            messages = await self._dispatcher.store.load_session_messages(session_id)
        except Exception as e:
            logger.warning("Failed to load session %s: %s", session_id, e)
            raise
        self._replace(ConversationState.hydrate(session_id, messages))
        logger.debug("Switched to session %s (%d messages)", session_id, len(messages))

    def reset_session(self) -> None:
        """Start a fresh, session-less conversation."""
        self._replace(ConversationState.empty())

    async def list_sessions(self) -> list[Session]:
        return await self._dispatcher.store.list_sessions()

    async def rename_session(self, session_id: str, title: str) -> None:
        """Rename a session. Blank titles are ignored."""
        if not title.strip():
            return
        await self._dispatcher.store.rename_session(session_id, title)
        self._dispatcher.dispatch([RefreshSessions()])

    async def delete_session(self, session_id: str) -> None:
        """Delete a session, resetting the view if it is the current one."""
        await self._dispatcher.store.delete_session(session_id)
        if self._state.current_session_id == session_id:
            self.reset_session()
        self._dispatcher.dispatch([RefreshSessions()])

    # ── Internals ───────────────────────────────────────────────────────────

    async def _create_session(self, text: str) -> str:
        title = session_title(text, self._title_max_chars)
        self._creating = True
        try:
            session = await self._dispatcher.run(CreateSession(title))
        except Exception as e:
            logger.warning("Failed to create session %r: %s", title, e)
            raise SessionCreateError(f"Failed to create session: {e}") from e
        finally:
            self._creating = False
        if not isinstance(session, Session):
            raise SessionCreateError(f"Session store returned {session!r} for {title!r}")
        self._dispatcher.dispatch([RefreshSessions()])
        logger.info("Created session %s (%s)", session.id, title)
        return session.id

    def _replace(self, state: ConversationState) -> None:
        if self._state.loading:
            self._detached = self._state
        self._state = state
        self._generation += 1
        self._changed()

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self._state)
