# Splits the backend byte stream into newline-terminated records.

from __future__ import annotations
import logging
from typing import List

logger = logging.getLogger(__name__)


class LineFramer:
    """Reassembles line-delimited records from arbitrarily split fragments.

    ``feed`` returns every record completed by the new fragment (empty lines
    included, without the terminating ``\\n``) and keeps the unterminated
    remainder until the next call. Records are bytes so that a multi-byte
    UTF-8 sequence split across fragments is never decoded half-way.
    """

    def __init__(self) -> None:
        self._tail = b""

    @property
    def pending(self) -> bytes:
        return self._tail

    def feed(self, fragment: bytes) -> List[bytes]:
        if not fragment:
            return []
        data = self._tail + fragment
        *records, self._tail = data.split(b"\n")
        return records

    def close(self) -> bytes:
        """End of stream. An unterminated tail is an incomplete record and is dropped."""
        leftover, self._tail = self._tail, b""
        if leftover.strip():
            logger.debug("Discarding unterminated record (%d bytes)", len(leftover))
        return leftover
