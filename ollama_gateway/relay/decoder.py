# Turns framed backend records into Chunks.

from __future__ import annotations
import json
from typing import Any, Mapping, Optional, Union

from ..errors import DecodeError, UpstreamError
from .types import Chunk


def parse_record(data: Any, raw: str = "") -> Chunk:
    """Map one parsed backend object onto a Chunk.

    ``response`` defaults to ``""`` and ``done`` to ``False``. A record with a
    string ``error`` field is the backend reporting failure in-band.
    """
    if not isinstance(data, Mapping):
        raise DecodeError("Backend record is not a JSON object", raw=raw)
    error = data.get("error")
    if isinstance(error, str) and error:
        raise UpstreamError(error)
    text = data.get("response")
    if text is None:
        text = ""
    if not isinstance(text, str):
        raise DecodeError("Backend record has a non-string 'response'", raw=raw)
    done = data.get("done")
    if done is None:
        done = False
    if not isinstance(done, bool):
        raise DecodeError("Backend record has a non-boolean 'done'", raw=raw)
    return Chunk(text=text, done=done)


def decode(record: Union[bytes, str]) -> Optional[Chunk]:
    """Decode one framed record.

    Returns ``None`` for blank records, which callers skip. Raises
    ``DecodeError`` for anything that is not a valid backend record.
    """
    if isinstance(record, bytes):
        text = record.decode("utf-8", errors="replace")
    else:
        text = record
    text = text.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except ValueError as e:
        raise DecodeError(f"Invalid JSON record: {e}", raw=text) from e
    return parse_record(data, raw=text)
