"""Line framing for ``data: {json}`` event streams."""

from __future__ import annotations

import codecs
import json
from collections.abc import Mapping
from typing import Any

from ..errors import DecodeError

DATA_PREFIX = "data: "


class SSELineBuffer:
    """Turn arbitrary byte chunks into complete, non-blank text lines.

    Chunks may end in the middle of a line or of a multi-byte character; the
    unfinished remainder is carried over to the next :meth:`feed` call.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        text = self._pending + self._decoder.decode(chunk)
        *lines, self._pending = text.split("\n")
        return [line for line in lines if line.strip()]

    def flush(self) -> list[str]:
        """Return the trailing unterminated line, if any, and reset."""

        remainder = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        self._decoder.reset()
        if remainder.strip():
            return [remainder]
        return []


def decode_event_line(line: str) -> Mapping[str, Any] | None:
    """Decode one framed line.

    Returns ``None`` for lines that do not carry a ``data:`` payload and
    raises :class:`DecodeError` when the payload is not a JSON object.
    """

    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None

    raw = line[len(DATA_PREFIX):]
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"event payload is not valid JSON: {exc.msg}"
        raise DecodeError(msg, line=line) from exc

    if not isinstance(payload, Mapping):
        msg = "event payload must be a JSON object"
        raise DecodeError(msg, line=line)
    return payload
