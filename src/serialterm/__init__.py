"""Public serialterm API: the console pipeline and its building blocks."""
from __future__ import annotations

from .codec import DataMode, StreamDecoder, decode, encode, format_user_hex
from .config import (
    ConsoleConfig,
    ConsoleConfigError,
    DisplayMode,
    SerialSettings,
    TerminalConfig,
    data_modes,
    display_modes,
    line_endings,
    load_config,
    load_console_config,
    load_preferences,
    save_preferences,
)
from .controller import ConsoleController, WritableTransport
from .events import ConsoleEvent, EventChannel
from .framer import LineEnding, frame
from .history import CommandHistory
from .line_buffer import DisplayLine, LineBuffer
from .vt100 import ControlAction, EscapeInterpreter, InterpreterState, TextRun

__all__ = [
    "CommandHistory",
    "ConsoleConfig",
    "ConsoleConfigError",
    "ConsoleController",
    "ConsoleEvent",
    "ControlAction",
    "DataMode",
    "DisplayLine",
    "DisplayMode",
    "EscapeInterpreter",
    "EventChannel",
    "InterpreterState",
    "LineBuffer",
    "LineEnding",
    "SerialSettings",
    "StreamDecoder",
    "TerminalConfig",
    "TextRun",
    "WritableTransport",
    "data_modes",
    "decode",
    "display_modes",
    "encode",
    "format_user_hex",
    "frame",
    "line_endings",
    "load_config",
    "load_console_config",
    "load_preferences",
    "save_preferences",
]
