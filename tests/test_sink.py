import asyncio

import pytest

from ollama_gateway.errors import SinkClosedError
from ollama_gateway.relay import (
    BackendError,
    Chunk,
    ClientDisconnected,
    Completed,
    EventStreamSink,
    MalformedUpstream,
    render_event,
)


def test_render_chunk():
    assert render_event(Chunk("He", False)) == b'data: {"chunk": "He", "done": false}\n\n'


def test_render_completed():
    assert render_event(Completed("Hello")) == b'event: done\ndata: {"text": "Hello"}\n\n'


def test_render_errors():
    assert render_event(BackendError("boom")) == b'event: error\ndata: {"error": "boom"}\n\n'
    assert render_event(MalformedUpstream("bad")) == b'event: error\ndata: {"error": "bad"}\n\n'


def test_render_disconnect_is_silent():
    assert render_event(ClientDisconnected()) == b""


def test_render_keeps_unicode_and_escapes_newlines():
    data = render_event(Chunk("é\nx", False))
    assert data == 'data: {"chunk": "é\\nx", "done": false}\n\n'.encode("utf-8")


def test_sink_yields_until_terminal():
    async def scenario():
        sink = EventStreamSink()
        await sink.emit(Chunk("a"))
        await sink.emit(Completed("a"))
        return [item async for item in sink], sink

    items, sink = asyncio.run(scenario())
    assert items == [render_event(Chunk("a")), render_event(Completed("a"))]
    assert sink.closed
    assert sink.terminal == Completed("a")


def test_emit_after_terminal_raises():
    async def scenario():
        sink = EventStreamSink()
        await sink.emit(BackendError("x"))
        with pytest.raises(SinkClosedError):
            await sink.emit(Chunk("late"))
        with pytest.raises(SinkClosedError):
            await sink.emit(Completed("late"))

    asyncio.run(scenario())


def test_abandoned_sink_refuses_chunks_but_records_terminal():
    async def scenario():
        sink = EventStreamSink(max_pending=1)
        await sink.emit(Chunk("a"))
        sink.abandon()
        with pytest.raises(SinkClosedError):
            await sink.emit(Chunk("b"))
        await sink.emit(ClientDisconnected())
        return sink

    sink = asyncio.run(scenario())
    assert sink.terminal == ClientDisconnected()


def test_bounded_queue_applies_backpressure():
    async def scenario():
        sink = EventStreamSink(max_pending=1)
        await sink.emit(Chunk("a"))
        blocked = asyncio.ensure_future(sink.emit(Chunk("b")))
        await asyncio.sleep(0.01)
        assert not blocked.done()
        it = sink.__aiter__()
        assert await it.__anext__() == render_event(Chunk("a"))
        await asyncio.wait_for(blocked, 1)

    asyncio.run(scenario())


def test_abandon_while_terminal_is_blocked_on_full_queue():
    async def scenario():
        sink = EventStreamSink(max_pending=1)
        await sink.emit(Chunk("a"))
        blocked = asyncio.ensure_future(sink.emit(Completed("a")))
        await asyncio.sleep(0.01)
        assert not blocked.done()
        sink.abandon()
        await asyncio.wait_for(blocked, 1)
        return sink

    assert asyncio.run(scenario()).terminal == Completed("a")
