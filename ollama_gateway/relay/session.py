# State of one relay: accumulated text, disconnect signal and the
# first-wins terminal latch.

from __future__ import annotations
import asyncio
import logging
from typing import List, Optional

from ..errors import SinkClosedError
from ..generate.types import GenerationRequest
from .framer import LineFramer
from .types import Chunk, StreamOutcome

logger = logging.getLogger(__name__)


class RelaySession:
    def __init__(self, request: GenerationRequest, sink, disconnected: Optional[asyncio.Event] = None):
        self.request = request
        self.sink = sink
        self.framer = LineFramer()
        self.disconnected = disconnected if disconnected is not None else asyncio.Event()
        self.outcome: Optional[StreamOutcome] = None
        self.malformed = 0
        self._parts: List[str] = []

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def finished(self) -> bool:
        return self.outcome is not None

    def disconnect(self) -> None:
        self.disconnected.set()

    async def deliver(self, chunk: Chunk) -> None:
        """Accumulate a chunk and forward it downstream.

        A failed write means the client is gone, so it raises the disconnect
        signal before re-raising ``SinkClosedError``.
        """
        if self.finished:
            raise SinkClosedError("Session already finished")
        self._parts.append(chunk.text)
        if chunk.done and not chunk.text:
            return
        try:
            await self.sink.emit(chunk)
        except SinkClosedError:
            self.disconnect()
            raise

    async def finish(self, outcome: StreamOutcome) -> StreamOutcome:
        """Record the terminal outcome; only the first call has any effect."""
        if self.outcome is not None:
            logger.debug("Ignoring late terminal %r; session ended with %r", outcome, self.outcome)
            return self.outcome
        self.outcome = outcome
        self._parts = []
        self.framer.close()
        try:
            await self.sink.emit(outcome)
        except SinkClosedError:
            logger.info("Client went away before terminal event %s", type(outcome).__name__)
        return outcome
