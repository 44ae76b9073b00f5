# Event-stream rendering and the per-session outbound queue.

from __future__ import annotations
import asyncio
import json
from typing import Any, AsyncIterator, Dict, Optional, Union

from ..errors import SinkClosedError
from .types import Chunk, ClientDisconnected, Completed, StreamOutcome

Event = Union[Chunk, StreamOutcome]

_EOF = object()


def _json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)


def render_event(event: Event) -> bytes:
    """Render a chunk or terminal outcome as an event-stream record.

    ``ClientDisconnected`` renders to nothing: there is nobody left to tell.
    """
    if isinstance(event, Chunk):
        return f"data: {_json({'chunk': event.text, 'done': event.done})}\n\n".encode("utf-8")
    if isinstance(event, Completed):
        return f"event: done\ndata: {_json({'text': event.full_text})}\n\n".encode("utf-8")
    if isinstance(event, ClientDisconnected):
        return b""
    if event.is_error:
        return f"event: error\ndata: {_json({'error': event.message})}\n\n".encode("utf-8")
    raise TypeError(f"Cannot render {event!r}")


class EventStreamSink:
    """Sink Adapter feeding an HTTP streaming body.

    The relay side calls ``emit``; the response side iterates the sink. The
    queue is bounded, so a slow client suspends ``emit`` (and with it the
    backend read) until the client catches up. After the terminal outcome
    every ``emit`` raises ``SinkClosedError``; after the consumer has gone
    away, chunks raise too while the terminal outcome is only recorded.
    """

    def __init__(self, max_pending: int = 64):
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        self._abandoned = False
        self.terminal: Optional[StreamOutcome] = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: Event) -> None:
        terminal = not isinstance(event, Chunk)
        if self.terminal is not None or (self._closed and not terminal):
            raise SinkClosedError("Event stream is closed")
        if terminal:
            # Latch before awaiting so a racing emit cannot slip in behind.
            self._closed = True
            self.terminal = event
            if self._abandoned:
                return
        data = render_event(event)
        if data:
            await self._queue.put(data)
        # abandon() may have run while put() was blocked; nobody reads EOF then.
        if terminal and not self._abandoned:
            await self._queue.put(_EOF)

    def abandon(self) -> None:
        """The consumer is gone; refuse further writes and unblock producers."""
        self._closed = True
        self._abandoned = True
        while not self._queue.empty():
            self._queue.get_nowait()

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._queue.get()
            if item is _EOF:
                return
            if self._abandoned:
                raise SinkClosedError("Event stream was abandoned")
            yield item
