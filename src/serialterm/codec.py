"""Byte/text translation helpers shared by the console pipeline."""
from __future__ import annotations

import codecs
from dataclasses import dataclass, field
from enum import Enum
from typing import Final


class DataMode(Enum):
    """Interpretation applied to bytes received from the device."""

    UTF8 = 0
    HEX = 1


_HEX_DIGITS: Final[frozenset[str]] = frozenset("0123456789abcdefABCDEF")


def decode(data: bytes, mode: DataMode) -> str:
    """Render ``data`` as display text under ``mode``.

    UTF-8 decoding replaces invalid sequences instead of failing.  Hex mode
    renders every byte as two uppercase digits separated by single spaces.
    """

    if mode is DataMode.HEX:
        return " ".join(f"{byte:02X}" for byte in bytes(data))
    return bytes(data).decode("utf-8", errors="replace")


def encode(text: str, mode: DataMode) -> bytes:
    """Convert ``text`` back into bytes under ``mode``.

    Hex input is split on whitespace.  Tokens with an odd digit count or a
    non-hex character are skipped; the remaining tokens are read as byte pairs.
    """

    if mode is not DataMode.HEX:
        return text.encode("utf-8")

    payload = bytearray()
    for token in text.split():
        if len(token) % 2 or not set(token) <= _HEX_DIGITS:
            continue
        payload.extend(bytes.fromhex(token))
    return bytes(payload)


def format_user_hex(text: str) -> str:
    """Normalise live-typed hex into uppercase, space-separated pairs."""

    digits = [char.upper() for char in text if char in _HEX_DIGITS]
    pairs = ["".join(digits[index : index + 2]) for index in range(0, len(digits), 2)]
    return " ".join(pairs)


def _new_utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass
class StreamDecoder:
    """Incrementally decode received chunks into display text.

    Chunk boundaries carry no meaning: a UTF-8 sequence split across two
    deliveries decodes exactly as it would in a single delivery, and hex output
    always ends each chunk with a separator so concatenated chunks read the same.
    """

    mode: DataMode = DataMode.UTF8
    _utf8: codecs.IncrementalDecoder = field(
        init=False, repr=False, default_factory=_new_utf8_decoder
    )

    def feed(self, chunk: bytes) -> str:
        if not chunk:
            return ""
        if self.mode is DataMode.HEX:
            return decode(chunk, DataMode.HEX) + " "
        return self._utf8.decode(bytes(chunk))

    def flush(self) -> str:
        """Return any pending partial sequence, decoded with replacement."""

        if self.mode is DataMode.HEX:
            return ""
        return self._utf8.decode(b"", final=True)

    def reset(self) -> None:
        self._utf8.reset()

    def switch_mode(self, mode: DataMode) -> str:
        """Change ``mode`` and return text flushed from the previous mode."""

        if mode is self.mode:
            return ""
        pending = self.flush()
        self.mode = mode
        self.reset()
        return pending


__all__ = [
    "DataMode",
    "StreamDecoder",
    "decode",
    "encode",
    "format_user_hex",
]
