"""Tests for codemaster.core.controller — sends, session lifecycle, turn isolation."""

from __future__ import annotations

import asyncio

import pytest

from codemaster.core.channel import EventChannel
from codemaster.core.controller import SEND_ERROR_PREFIX, ConversationController, session_title
from codemaster.core.dispatcher import PersistenceDispatcher
from codemaster.errors import ConversationBusyError, ConversationChangedError, SessionCreateError
from codemaster.types.events import Done, ErrorEvent, NewMessage, StreamChunk, Thinking
from codemaster.types.messages import Message
from tests.conftest import RecordingStore, ScriptedAgent


class TestSessionTitle:
    def test_short_text_unchanged(self):
        assert session_title("fix bug") == "fix bug"

    def test_exactly_thirty(self):
        text = "x" * 30
        assert session_title(text) == text

    def test_long_text_truncated(self):
        text = "a" * 31
        assert session_title(text) == "a" * 30 + "…"

    def test_custom_limit(self):
        assert session_title("abcdef", 3) == "abc…"


class TestSend:
    @pytest.mark.asyncio
    async def test_first_send_creates_session(self, controller, store, agent, dispatcher):
        await controller.send("fix bug")

        assert store.calls[0] == ("create_session", "fix bug")
        state = controller.state
        assert state.current_session_id == "s1"
        assert state.messages == (Message(role="user", content="fix bug"),)
        assert state.loading is True
        assert agent.turns == [("fix bug", [Message(role="user", content="fix bug")])]

        controller.handle_event(Done())
        assert controller.state.loading is False

        await dispatcher.drain()
        assert store.persisted == [("s1", Message(role="user", content="fix bug"), 0)]

    @pytest.mark.asyncio
    async def test_second_send_reuses_session(self, controller, store, dispatcher):
        await controller.send("one")
        controller.handle_event(Done())
        await controller.send("two")
        await dispatcher.drain()

        creates = [c for c in store.calls if c[0] == "create_session"]
        assert len(creates) == 1
        assert [index for _, _, index in store.persisted] == [0, 1]

    @pytest.mark.asyncio
    async def test_long_first_message_title(self, controller, store):
        await controller.send("please refactor the authentication module")
        assert store.calls[0] == ("create_session", "please refactor the authentica…")

    @pytest.mark.asyncio
    async def test_create_failure_aborts_send(self, controller, store, agent):
        store.fail_create = RuntimeError("disk full")
        with pytest.raises(SessionCreateError, match="disk full"):
            await controller.send("hello")
        assert controller.state.messages == ()
        assert controller.state.loading is False
        assert controller.state.current_session_id is None
        assert agent.turns == []

    @pytest.mark.asyncio
    async def test_dispatch_failure_appends_error(self, dispatcher, store):
        agent = ScriptedAgent(error=RuntimeError("API Key not set"))
        controller = ConversationController(dispatcher, agent)

        await controller.send("hello")

        state = controller.state
        assert state.loading is False
        assert state.messages[0] == Message(role="user", content="hello")
        assert state.messages[1] == Message(
            role="assistant", content=f"{SEND_ERROR_PREFIX}API Key not set",
        )
        await dispatcher.drain()
        # The local error is not persisted; the user message is.
        assert len(store.persisted) == 1

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, controller, store):
        with pytest.raises(ValueError):
            await controller.send("   ")
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_busy_rejected(self, controller):
        await controller.send("first")
        with pytest.raises(ConversationBusyError):
            await controller.send("second")

    @pytest.mark.asyncio
    async def test_sidebar_refresh_signalled_on_create(self, controller):
        refreshed: list[bool] = []
        controller.on_sessions_changed(lambda: refreshed.append(True))
        await controller.send("hello")
        assert refreshed == [True]

    @pytest.mark.asyncio
    async def test_events_from_agent_flow_through_channel(self, dispatcher, store):
        channel = EventChannel()
        reply = Message(role="assistant", content="Hi there")
        agent = ScriptedAgent(channel, events=[
            Thinking(), StreamChunk("Hi there"), NewMessage(reply), Done(),
        ])
        controller = ConversationController(dispatcher, agent)
        controller.attach(channel)

        await controller.send("hello")
        await dispatcher.drain()

        assert controller.state.messages[-1] == reply
        assert controller.state.loading is False
        assert controller.state.streaming_content == ""
        assert [(sid, idx) for sid, _, idx in store.persisted] == [("s1", 0), ("s1", 1)]

    @pytest.mark.asyncio
    async def test_change_listener_called(self, controller):
        seen = []
        controller.on_change(seen.append)
        await controller.send("hi")
        controller.handle_event(Done())
        assert seen[-1].loading is False
        assert len(seen) >= 2

    @pytest.mark.asyncio
    async def test_concurrent_first_sends_create_one_session(self, controller, store, agent):
        store.create_gate = asyncio.Event()
        first = asyncio.create_task(controller.send("first"))
        while ("create_session", "first") not in store.calls:
            await asyncio.sleep(0)

        assert controller.busy is True
        with pytest.raises(ConversationBusyError):
            await controller.send("second")

        store.create_gate.set()
        await first
        creates = [c for c in store.calls if c[0] == "create_session"]
        assert len(creates) == 1
        assert [text for text, _ in agent.turns] == ["first"]


class TestSessionSwitching:
    @pytest.mark.asyncio
    async def test_switch_loads_messages(self, controller, store):
        session = await store.create_session("old")
        history = [Message(role="user", content="q"), Message(role="assistant", content="a")]
        for i, m in enumerate(history):
            await store.persist_message(session.id, m, i)

        await controller.switch_session(session.id)

        assert controller.state.current_session_id == session.id
        assert controller.state.messages == tuple(history)
        assert controller.state.loading is False
        assert controller.state.streaming_content == ""

    @pytest.mark.asyncio
    async def test_switch_failure_keeps_state(self, controller):
        await controller.send("keep me")
        controller.handle_event(Done())
        before = controller.state
        with pytest.raises(KeyError):
            await controller.switch_session("missing")
        assert controller.state == before

    @pytest.mark.asyncio
    async def test_reset_clears_everything(self, controller):
        await controller.send("hello")
        controller.handle_event(Done())
        controller.reset_session()
        state = controller.state
        assert state.messages == ()
        assert state.current_session_id is None
        assert state.loading is False

    @pytest.mark.asyncio
    async def test_inflight_turn_keeps_its_session(self, controller, store, dispatcher):
        other = await store.create_session("other")
        await controller.send("long task")
        sent_from = controller.state.current_session_id

        await controller.switch_session(other.id)
        reply = Message(role="assistant", content="finished")
        controller.handle_event(NewMessage(reply))
        controller.handle_event(Done())
        await dispatcher.drain()

        assert controller.state.messages == ()
        assert (sent_from, reply, 1) in store.persisted
        assert all(sid != other.id for sid, _, _ in store.persisted)

    @pytest.mark.asyncio
    async def test_send_refused_while_detached_turn_runs(self, controller):
        await controller.send("long task")
        controller.reset_session()
        with pytest.raises(ConversationBusyError):
            await controller.send("new")
        controller.handle_event(ErrorEvent("cancelled"))
        await controller.send("new")
        assert controller.state.messages[-1].content == "new"

    @pytest.mark.asyncio
    async def test_dispatch_failure_after_switch_not_shown(self, store):
        dispatcher = PersistenceDispatcher(store)
        agent = ScriptedAgent()
        controller = ConversationController(dispatcher, agent)

        async def failing(text, history):
            controller.reset_session()
            raise RuntimeError("lost")

        agent.dispatch_user_turn = failing  # type: ignore[method-assign]
        await controller.send("hello")

        assert controller.state.messages == ()
        assert controller.busy is False

    @pytest.mark.asyncio
    async def test_switch_while_creating_session_keeps_loaded_view(
        self, controller, store, agent, dispatcher,
    ):
        old = await store.create_session("old")
        await store.persist_message(old.id, Message(role="user", content="old msg"), 0)
        store.create_gate = asyncio.Event()

        sending = asyncio.create_task(controller.send("new chat"))
        while ("create_session", "new chat") not in store.calls:
            await asyncio.sleep(0)
        await controller.switch_session(old.id)
        store.create_gate.set()

        with pytest.raises(ConversationChangedError) as exc_info:
            await sending
        await dispatcher.drain()

        assert controller.state.current_session_id == old.id
        assert [m.content for m in controller.state.messages] == ["old msg"]
        assert controller.busy is False
        assert agent.turns == []
        new_id = exc_info.value.session_id
        assert new_id != old.id
        assert store.messages[new_id] == {0: Message(role="user", content="new chat")}
        assert store.messages[old.id] == {0: Message(role="user", content="old msg")}

    @pytest.mark.asyncio
    async def test_reset_while_creating_session(self, controller, store, agent):
        store.create_gate = asyncio.Event()
        sending = asyncio.create_task(controller.send("hello"))
        while ("create_session", "hello") not in store.calls:
            await asyncio.sleep(0)
        controller.reset_session()
        store.create_gate.set()

        with pytest.raises(ConversationChangedError):
            await sending
        assert controller.state.current_session_id is None
        assert controller.state.messages == ()
        assert agent.turns == []


class TestSessionManagement:
    @pytest.mark.asyncio
    async def test_delete_current_resets(self, controller, store):
        await controller.send("hello")
        controller.handle_event(Done())
        sid = controller.state.current_session_id
        await controller.delete_session(sid)
        assert controller.state.current_session_id is None
        assert sid not in store.sessions

    @pytest.mark.asyncio
    async def test_delete_other_keeps_state(self, controller, store):
        other = await store.create_session("other")
        await controller.send("hello")
        controller.handle_event(Done())
        await controller.delete_session(other.id)
        assert controller.state.current_session_id == "s2"

    @pytest.mark.asyncio
    async def test_rename(self, controller, store):
        s = await store.create_session("old")
        await controller.rename_session(s.id, "new title")
        assert store.sessions[s.id].title == "new title"

    @pytest.mark.asyncio
    async def test_rename_blank_ignored(self, controller, store):
        s = await store.create_session("old")
        await controller.rename_session(s.id, "  ")
        assert store.sessions[s.id].title == "old"

    @pytest.mark.asyncio
    async def test_list_sessions(self, controller, store):
        await store.create_session("a")
        sessions = await controller.list_sessions()
        assert [s.title for s in sessions] == ["a"]


def test_recording_store_satisfies_protocol():
    from codemaster.types.store import AgentDispatcher, SessionStore

    assert isinstance(RecordingStore(), SessionStore)
    assert isinstance(ScriptedAgent(), AgentDispatcher)
