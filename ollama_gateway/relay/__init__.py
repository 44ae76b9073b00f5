# Stream relay: backend NDJSON in, event-stream records out.

from .controller import RelayController, build_stream_client
from .decoder import decode, parse_record
from .framer import LineFramer
from .session import RelaySession
from .sink import EventStreamSink, render_event
from .types import BackendError, Chunk, ClientDisconnected, Completed, MalformedUpstream, StreamOutcome

__all__ = [
    "RelayController",
    "build_stream_client",
    "decode",
    "parse_record",
    "LineFramer",
    "RelaySession",
    "EventStreamSink",
    "render_event",
    "Chunk",
    "StreamOutcome",
    "Completed",
    "ClientDisconnected",
    "BackendError",
    "MalformedUpstream",
]
