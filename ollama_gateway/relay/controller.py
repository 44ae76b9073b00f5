# Pumps the backend's line-delimited JSON stream to an event-stream sink.

from __future__ import annotations
import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx

from .. import errors
from ..generate.types import GenerationRequest
from ..settings import RelayConfig
from .decoder import decode
from .session import RelaySession
from .sink import EventStreamSink
from .types import BackendError, ClientDisconnected, Completed, MalformedUpstream, StreamOutcome

logger = logging.getLogger(__name__)


def build_stream_client(
    config: RelayConfig,
    max_connections: int = 256,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Shared client for long-lived streams.

    Reads never time out (generation time is model dependent); connecting and
    waiting for a pooled connection are bounded by ``connect_timeout``.
    """
    timeout = httpx.Timeout(None, connect=config.connect_timeout, pool=config.connect_timeout)
    limits = httpx.Limits(max_connections=max_connections, max_keepalive_connections=32)
    return httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)


class RelayController:
    """Runs relay sessions against one backend.

    Each ``run`` is independent; the only shared state is the connection
    pool of ``client``.
    """

    def __init__(self, config: RelayConfig, client: httpx.AsyncClient, sink_max_pending: int = 64):
        self.config = config
        self.client = client
        self.sink_max_pending = sink_max_pending

    def new_request(self, prompt, model=None, options=None) -> GenerationRequest:
        return GenerationRequest.create(
            prompt,
            model=model,
            options=options,
            defaults=self.config.default_options,
            default_model=self.config.default_model,
        )

    async def run(
        self,
        request: GenerationRequest,
        sink,
        disconnected: Optional[asyncio.Event] = None,
    ) -> StreamOutcome:
        session = RelaySession(request, sink, disconnected)
        logger.info("Relay started: model=%s prompt_chars=%d", request.model, len(request.prompt))
        try:
            outcome = await self._race(session)
        except asyncio.CancelledError:
            await session.finish(ClientDisconnected())
            raise
        except Exception:
            logger.exception("Relay crashed")
            await session.finish(BackendError("Internal relay error"))
            raise
        outcome = await session.finish(outcome)
        if isinstance(outcome, ClientDisconnected):
            logger.info("Client disconnected; backend stream released")
        elif outcome.is_error:
            logger.error("Relay failed: %s", outcome.message)
        else:
            logger.info("Relay completed: %d chars", len(outcome.full_text))
        return outcome

    async def _race(self, session: RelaySession) -> StreamOutcome:
        """Backend reading and client disconnect merged; first to finish wins."""
        if session.disconnected.is_set():
            return ClientDisconnected()
        reader = asyncio.ensure_future(self._read_backend(session))
        watcher = asyncio.ensure_future(session.disconnected.wait())
        try:
            done, _ = await asyncio.wait({reader, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            watcher.cancel()
            if not reader.done():
                # Cancelling the read closes the backend response on the way out.
                reader.cancel()
                await asyncio.gather(reader, return_exceptions=True)
        if reader in done:
            return reader.result()
        return ClientDisconnected()

    async def _read_backend(self, session: RelaySession) -> StreamOutcome:
        url = self.config.url("/api/generate")
        payload = session.request.to_payload(stream=True)
        try:
            async with self.client.stream("POST", url, json=payload) as response:
                if response.status_code >= 400:
                    body = (await response.aread()).decode("utf-8", errors="replace").strip()
                    return BackendError(f"Backend returned HTTP {response.status_code}: {body}")
                return await self._pump(session, response.aiter_bytes())
        except (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout) as e:
            return BackendError(f"Failed to reach backend: {e}")
        except httpx.TransportError as e:
            return BackendError(f"Stream failed: {e}")

    async def _pump(self, session: RelaySession, fragments: AsyncIterator[bytes]) -> StreamOutcome:
        limit = self.config.max_malformed_records
        async for fragment in fragments:
            for record in session.framer.feed(fragment):
                try:
                    chunk = decode(record)
                except errors.UpstreamError as e:
                    return BackendError(e.message)
                except errors.DecodeError as e:
                    session.malformed += 1
                    logger.warning("Skipping malformed backend record: %.200s", e.raw)
                    if limit is not None and session.malformed > limit:
                        return MalformedUpstream(f"{session.malformed} malformed records from backend")
                    continue
                if chunk is None:
                    continue
                try:
                    await session.deliver(chunk)
                except errors.SinkClosedError:
                    return ClientDisconnected()
                if chunk.done:
                    return Completed(session.text)
        # Backend closed without a done record: keep what arrived.
        session.framer.close()
        return Completed(session.text)

    async def event_stream(self, request: GenerationRequest) -> AsyncIterator[bytes]:
        """Drive one session as an HTTP streaming body.

        The generator being closed early (client gone, write failed) raises
        the session's disconnect signal; the backend connection is released
        before the generator returns.
        """
        sink = EventStreamSink(max_pending=self.sink_max_pending)
        disconnected = asyncio.Event()
        task = asyncio.ensure_future(self.run(request, sink, disconnected))
        try:
            async for data in sink:
                yield data
        finally:
            if not task.done():
                disconnected.set()
                sink.abandon()
            await asyncio.gather(task, return_exceptions=True)
