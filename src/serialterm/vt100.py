"""Resumable interpreter for the small VT100 escape subset the console honours."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Final, Union

_ESC: Final[str] = "\x1b"
_MAX_COMMAND_LENGTH: Final[int] = 3


class InterpreterState(Enum):
    """Position of the interpreter inside an escape sequence."""

    PLAIN_TEXT = auto()
    ESCAPE_SEEN = auto()
    COLLECTING_COMMAND = auto()
    PENDING_FONT_RESET = auto()


class ControlAction(Enum):
    """Buffer-level operations requested by recognised escape sequences."""

    CLEAR_SCREEN = auto()
    CURSOR_HOME = auto()
    CLEAR_LINE = auto()


@dataclass(frozen=True, slots=True)
class TextRun:
    """Plain characters that should be appended to the display."""

    text: str


InterpreterOutput = Union[TextRun, ControlAction]


_COMMANDS: Final[dict[str, ControlAction]] = {
    "2J": ControlAction.CLEAR_SCREEN,
    # Cursor addressing is not modelled; home behaves like a full clear.
    "H": ControlAction.CURSOR_HOME,
    "2K": ControlAction.CLEAR_LINE,
}


@dataclass
class EscapeInterpreter:
    """Split decoded text into text runs and control actions.

    The interpreter consumes one character at a time and keeps its position in
    :attr:`state`, so an escape sequence split across two :meth:`feed` calls is
    recognised exactly as if it had arrived in one call.  When :attr:`enabled`
    is ``False`` every character, ``ESC`` included, is passed through as text.
    """

    enabled: bool = True
    state: InterpreterState = InterpreterState.PLAIN_TEXT
    _command: list[str] = field(init=False, default_factory=list, repr=False)

    @property
    def command(self) -> str:
        """Return the partially collected command token."""

        return "".join(self._command)

    def reset(self) -> None:
        self.state = InterpreterState.PLAIN_TEXT
        self._command.clear()

    def feed(self, text: str) -> list[InterpreterOutput]:
        """Interpret ``text`` and return the ordered outputs it produced."""

        if not text:
            return []
        if not self.enabled:
            return [TextRun(text)]

        outputs: list[InterpreterOutput] = []
        run: list[str] = []

        def _flush(suffix: str = "") -> None:
            chunk = "".join(run) + suffix
            run.clear()
            if chunk:
                outputs.append(TextRun(chunk))

        for char in text:
            state = self.state
            if state is InterpreterState.PLAIN_TEXT:
                if char == _ESC:
                    _flush()
                    self.state = InterpreterState.ESCAPE_SEEN
                elif char == "\n":
                    _flush("\n")
                else:
                    run.append(char)
            elif state is InterpreterState.ESCAPE_SEEN:
                self._command.clear()
                if char == "[":
                    self.state = InterpreterState.COLLECTING_COMMAND
                elif char == "(":
                    self.state = InterpreterState.PENDING_FONT_RESET
                else:
                    self.state = InterpreterState.PLAIN_TEXT
            elif state is InterpreterState.COLLECTING_COMMAND:
                action = self._collect(char)
                if action is not None:
                    outputs.append(action)
            else:
                # Font designation: the selector character has no display effect.
                self.state = InterpreterState.PLAIN_TEXT

        _flush()
        return outputs

    def _collect(self, char: str) -> ControlAction | None:
        if char == _ESC:
            self._command.clear()
            self.state = InterpreterState.ESCAPE_SEEN
            return None
        if not (char.isascii() and char.isalnum()):
            self._command.clear()
            self.state = InterpreterState.PLAIN_TEXT
            return None

        self._command.append(char)
        action = _COMMANDS.get(self.command)
        if action is not None or len(self._command) >= _MAX_COMMAND_LENGTH:
            self._command.clear()
            self.state = InterpreterState.PLAIN_TEXT
        return action


__all__ = [
    "ControlAction",
    "EscapeInterpreter",
    "InterpreterOutput",
    "InterpreterState",
    "TextRun",
]
