"""Tests for codemaster.core.channel — ordered fan-out and wire decoding."""

from __future__ import annotations

import asyncio
import json

import pytest

from codemaster.core.channel import EventChannel, decode_line, read_events
from codemaster.errors import EventDecodeError
from codemaster.types.events import Done, StreamChunk, Thinking, encode_event


class TestEventChannel:
    def test_each_subscriber_sees_every_event_in_order(self):
        channel = EventChannel()
        first: list = []
        second: list = []
        channel.subscribe(first.append)
        channel.subscribe(second.append)
        events = [Thinking(), StreamChunk("a"), Done()]
        for e in events:
            channel.publish(e)
        assert first == events
        assert second == events

    def test_unsubscribe(self):
        channel = EventChannel()
        seen: list = []
        unsubscribe = channel.subscribe(seen.append)
        channel.publish(Thinking())
        unsubscribe()
        unsubscribe()
        channel.publish(Done())
        assert seen == [Thinking()]
        assert channel.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self):
        channel = EventChannel()
        seen: list = []

        def broken(event):
            raise ValueError("subscriber bug")

        channel.subscribe(broken)
        channel.subscribe(seen.append)
        channel.publish(Done())
        assert seen == [Done()]

    def test_publish_from_callback_keeps_order(self):
        channel = EventChannel()
        seen: list = []

        def echo(event):
            if event == Thinking():
                channel.publish(StreamChunk("nested"))

        channel.subscribe(echo)
        channel.subscribe(seen.append)
        channel.publish(Thinking())
        assert seen == [Thinking(), StreamChunk("nested")]


class TestDecodeLine:
    def test_valid_line(self):
        assert decode_line('{"type":"Done","content":null}\n') == Done()

    def test_bytes(self):
        assert decode_line(b'{"type":"StreamChunk","content":"hi"}') == StreamChunk("hi")

    def test_blank(self):
        assert decode_line("   \n") is None

    def test_invalid_json(self):
        with pytest.raises(EventDecodeError, match="Invalid JSON"):
            decode_line("{oops")


class TestReadEvents:
    @pytest.mark.asyncio
    async def test_reads_and_skips_bad_lines(self):
        reader = asyncio.StreamReader()
        lines = [
            json.dumps(encode_event(Thinking("Thinking..."))),
            "garbage",
            json.dumps({"type": "Unknown", "content": None}),
            "",
            json.dumps(encode_event(StreamChunk("ok"))),
            json.dumps(encode_event(Done())),
        ]
        reader.feed_data(("\n".join(lines) + "\n").encode())
        reader.feed_eof()

        events = [e async for e in read_events(reader)]
        assert events == [Thinking("Thinking..."), StreamChunk("ok"), Done()]

    @pytest.mark.asyncio
    async def test_oversized_line_skipped(self):
        reader = asyncio.StreamReader(limit=64)
        big = json.dumps(encode_event(StreamChunk("y" * 500)))
        reader.feed_data((big + "\n" + json.dumps(encode_event(Done())) + "\n").encode())
        reader.feed_eof()

        events = [e async for e in read_events(reader)]
        assert events == [Done()]
