"""Display document that accumulates interpreted console text into lines."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

TIMESTAMP_FORMAT = "%H:%M:%S"


def format_timestamp(stamp: datetime) -> str:
    """Return the ``HH:MM:SS.mmm -> `` prefix rendered before stamped lines."""

    return f"{stamp.strftime(TIMESTAMP_FORMAT)}.{stamp.microsecond // 1000:03d} -> "


@dataclass(frozen=True, slots=True)
class DisplayLine:
    """A finalised line of console output."""

    text: str
    timestamp: datetime | None = None

    def render(self) -> str:
        if self.timestamp is None:
            return self.text
        return format_timestamp(self.timestamp) + self.text


@dataclass
class LineBuffer:
    """Ordered console lines plus the line currently being written.

    Every mutating call that changes the document invokes ``on_change`` exactly
    once.  The buffer never truncates itself; renderers that keep a bounded view
    use :meth:`tail`.
    """

    show_timestamp: bool = False
    on_change: Optional[Callable[[], None]] = None
    clock: Callable[[], datetime] = datetime.now

    _lines: list[DisplayLine] = field(init=False, default_factory=list)
    _open_text: list[str] = field(init=False, default_factory=list)
    _open_stamp: datetime | None = field(init=False, default=None)
    _open_started: bool = field(init=False, default=False)

    # Document mutation ---------------------------------------------------

    def append(self, text: str) -> None:
        """Append ``text``, closing a line at every ``\\n``."""

        if not text:
            return
        for segment in text.split("\n")[:-1]:
            self._extend_open_line(segment)
            self._close_open_line()
        tail = text.rsplit("\n", 1)[-1]
        if tail:
            self._extend_open_line(tail)
        self._notify()

    def clear_all(self) -> None:
        """Discard every finalised line and the open line."""

        self._lines.clear()
        self._reset_open_line()
        self._notify()

    def clear_current_line(self) -> None:
        """Discard the content of the line that has not been closed yet."""

        self._reset_open_line()
        self._notify()

    # Views ---------------------------------------------------------------

    @property
    def open_line(self) -> DisplayLine | None:
        """Return the line still being written, or ``None`` when none is open."""

        if not self._open_started:
            return None
        return DisplayLine("".join(self._open_text), self._open_stamp)

    def lines(self) -> list[DisplayLine]:
        """Return finalised lines followed by the open line, if any."""

        result = list(self._lines)
        current = self.open_line
        if current is not None:
            result.append(current)
        return result

    def closed_lines(self) -> list[DisplayLine]:
        return list(self._lines)

    def tail(self, limit: int | None) -> list[DisplayLine]:
        """Return at most ``limit`` of the most recent lines."""

        result = self.lines()
        if limit is None or limit <= 0:
            return result
        return result[-limit:]

    @property
    def closed_line_count(self) -> int:
        return len(self._lines)

    def is_empty(self) -> bool:
        return not self._lines and not self._open_started

    def snapshot_text(self) -> str:
        """Return the whole document as text, one physical line per line."""

        parts = [line.render() + "\n" for line in self._lines]
        current = self.open_line
        if current is not None:
            parts.append(current.render())
        return "".join(parts)

    # Helpers -------------------------------------------------------------

    def _extend_open_line(self, text: str) -> None:
        if not self._open_started:
            self._open_started = True
            self._open_stamp = self.clock() if self.show_timestamp else None
        if text:
            self._open_text.append(text)

    def _close_open_line(self) -> None:
        content = "".join(self._open_text)
        if content.endswith("\r"):
            content = content[:-1]
        self._lines.append(DisplayLine(content, self._open_stamp))
        self._reset_open_line()

    def _reset_open_line(self) -> None:
        self._open_text.clear()
        self._open_stamp = None
        self._open_started = False

    def _notify(self) -> None:
        callback = self.on_change
        if callback is not None:
            callback()


__all__ = ["DisplayLine", "LineBuffer", "format_timestamp"]
