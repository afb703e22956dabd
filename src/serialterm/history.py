"""Command recall for previously sent console input."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

NOT_BROWSING = -1


@dataclass
class CommandHistory:
    """Append-only list of sent commands with a shell-style browse cursor."""

    _entries: list[str] = field(init=False, default_factory=list)
    _cursor: int = field(init=False, default=NOT_BROWSING)
    _past_oldest: bool = field(init=False, default=False)

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> str:
        """Return the recalled command, or ``""`` when nothing is recalled.

        Stepping past the oldest entry recalls nothing, matching the ``None``
        returned by :meth:`previous`.
        """

        if self._cursor == NOT_BROWSING or self._past_oldest:
            return ""
        return self._entries[self._cursor]

    def record(self, command: str) -> None:
        if command:
            self._entries.append(command)
        self._cursor = NOT_BROWSING
        self._past_oldest = False

    def previous(self) -> Optional[str]:
        """Step toward older entries.

        The cursor stops at the oldest entry; asking for anything older returns
        ``None`` and leaves the cursor in place while :attr:`current` reads ``""``.
        """

        if not self._entries:
            return None
        self._past_oldest = False
        if self._cursor == NOT_BROWSING:
            self._cursor = len(self._entries) - 1
        elif self._cursor > 0:
            self._cursor -= 1
        else:
            self._past_oldest = True
            return None
        return self._entries[self._cursor]

    def next(self) -> Optional[str]:
        """Step toward newer entries; stepping past the newest stops browsing."""

        self._past_oldest = False
        if self._cursor == NOT_BROWSING:
            return None
        if self._cursor < len(self._entries) - 1:
            self._cursor += 1
            return self._entries[self._cursor]
        self._cursor = NOT_BROWSING
        return None

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CommandHistory", "NOT_BROWSING"]
