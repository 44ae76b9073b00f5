# Data carried through the relay: decoded chunks and the terminal outcome
# of a relay session.

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class Chunk:
    """One decoded increment of generated text."""
    text: str = ""
    done: bool = False


class StreamOutcome:
    """Terminal result of a relay session. Exactly one per session."""

    #: Whether the outcome is reported to the client as an error event.
    is_error = False


@dataclass(frozen=True)
class Completed(StreamOutcome):
    full_text: str


@dataclass(frozen=True)
class ClientDisconnected(StreamOutcome):
    pass


@dataclass(frozen=True)
class BackendError(StreamOutcome):
    message: str
    is_error = True


@dataclass(frozen=True)
class MalformedUpstream(StreamOutcome):
    message: str
    is_error = True
