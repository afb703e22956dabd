"""Outgoing framing: user text to the exact bytes written to the device."""
from __future__ import annotations

from enum import Enum
from typing import Final

from . import codec
from .codec import DataMode


class LineEnding(Enum):
    """Terminator appended to every transmitted command."""

    NONE = 0
    NEW_LINE = 1
    CARRIAGE_RETURN = 2
    BOTH = 3


_LINE_ENDING_BYTES: Final[dict[LineEnding, bytes]] = {
    LineEnding.NONE: b"",
    LineEnding.NEW_LINE: b"\n",
    LineEnding.CARRIAGE_RETURN: b"\r",
    LineEnding.BOTH: b"\r\n",
}


def line_ending_bytes(line_ending: LineEnding) -> bytes:
    return _LINE_ENDING_BYTES[line_ending]


def frame(text: str, line_ending: LineEnding, *, hex_input: bool = False) -> bytes:
    """Return the bytes to transmit for ``text``.

    ``hex_input`` selects hex parsing of the typed text independently of the
    received-data mode.  Input that yields no payload bytes frames to ``b""``
    so callers can skip the write entirely.
    """

    payload = codec.encode(text, DataMode.HEX if hex_input else DataMode.UTF8)
    if not payload:
        return b""
    return payload + line_ending_bytes(line_ending)


__all__ = ["LineEnding", "frame", "line_ending_bytes"]
