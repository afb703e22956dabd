"""Console orchestration: received bytes to display lines, user input to frames."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Protocol

from . import codec, config as config_module, framer
from .codec import DataMode, StreamDecoder
from .config import ConsoleConfig, DisplayMode, coerce_option
from .events import ConsoleEvent, EventChannel
from .framer import LineEnding
from .history import CommandHistory
from .line_buffer import LineBuffer
from .vt100 import ControlAction, EscapeInterpreter, TextRun

logger = logging.getLogger(__name__)


class WritableTransport(Protocol):
    """Slice of the transport contract the controller relies on."""

    @property
    def connected(self) -> bool:
        """Return ``True`` while the device accepts writes."""

    def write(self, data: bytes) -> int:
        """Write ``data`` and return the number of bytes accepted."""


class ConsoleController:
    """Own the console state and serialise every entry point against it.

    Received chunks and user sends may arrive from different threads; both run
    under a single re-entrant lock so an escape sequence or a history update is
    never observed half-applied.  Disconnecting the transport leaves every piece
    of state untouched; only :meth:`clear` empties the display document.
    """

    def __init__(
        self,
        config: ConsoleConfig | None = None,
        *,
        transport: WritableTransport | None = None,
        events: EventChannel | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        settings = config or ConsoleConfig()
        self.events = events or EventChannel()
        self._lock = threading.RLock()
        self._transport = transport

        self._data_mode = settings.data_mode
        self._display_mode = settings.display_mode
        self._line_ending = settings.line_ending
        self._echo = settings.echo
        self._autoscroll = settings.autoscroll

        self._decoder = StreamDecoder(mode=settings.data_mode)
        self._interpreter = EscapeInterpreter(enabled=settings.vt100_enabled)
        self._history = CommandHistory()
        buffer_kwargs: dict[str, Any] = {}
        if clock is not None:
            buffer_kwargs["clock"] = clock
        self._buffer = LineBuffer(
            show_timestamp=settings.show_timestamp,
            on_change=self._on_display_changed,
            **buffer_kwargs,
        )

    # Collaborators ------------------------------------------------------

    @property
    def transport(self) -> WritableTransport | None:
        return self._transport

    def attach_transport(self, transport: WritableTransport | None) -> None:
        """Route subsequent sends to ``transport`` (``None`` detaches)."""

        with self._lock:
            self._transport = transport

    @property
    def buffer(self) -> LineBuffer:
        return self._buffer

    @property
    def history(self) -> CommandHistory:
        return self._history

    @property
    def interpreter(self) -> EscapeInterpreter:
        return self._interpreter

    # Configuration ------------------------------------------------------

    @property
    def config(self) -> ConsoleConfig:
        """Return a snapshot of the active configuration."""

        with self._lock:
            return ConsoleConfig(
                data_mode=self._data_mode,
                display_mode=self._display_mode,
                line_ending=self._line_ending,
                echo=self._echo,
                autoscroll=self._autoscroll,
                show_timestamp=self._buffer.show_timestamp,
                vt100_enabled=self._interpreter.enabled,
            )

    @property
    def data_mode(self) -> DataMode:
        return self._data_mode

    @property
    def display_mode(self) -> DisplayMode:
        return self._display_mode

    @property
    def line_ending(self) -> LineEnding:
        return self._line_ending

    @property
    def echo(self) -> bool:
        return self._echo

    @property
    def autoscroll(self) -> bool:
        return self._autoscroll

    @property
    def show_timestamp(self) -> bool:
        return self._buffer.show_timestamp

    @property
    def vt100_enabled(self) -> bool:
        return self._interpreter.enabled

    def set_data_mode(self, mode: DataMode | int | str) -> None:
        resolved = coerce_option(DataMode, mode)
        with self._lock:
            pending = self._decoder.switch_mode(resolved)
            if pending:
                self._render(pending)
            self._data_mode = resolved
            self.events.publish(ConsoleEvent.DATA_MODE_CHANGED, resolved)

    def set_display_mode(self, mode: DisplayMode | int | str) -> None:
        resolved = coerce_option(DisplayMode, mode)
        with self._lock:
            self._display_mode = resolved
            self.events.publish(ConsoleEvent.DISPLAY_MODE_CHANGED, resolved)

    def set_line_ending(self, line_ending: LineEnding | int | str) -> None:
        resolved = coerce_option(LineEnding, line_ending)
        with self._lock:
            self._line_ending = resolved
            self.events.publish(ConsoleEvent.LINE_ENDING_CHANGED, resolved)

    def set_echo(self, enabled: bool) -> None:
        with self._lock:
            self._echo = bool(enabled)
            self.events.publish(ConsoleEvent.ECHO_CHANGED, self._echo)

    def set_autoscroll(self, enabled: bool) -> None:
        with self._lock:
            self._autoscroll = bool(enabled)
            self.events.publish(ConsoleEvent.AUTOSCROLL_CHANGED, self._autoscroll)

    def set_show_timestamp(self, enabled: bool) -> None:
        with self._lock:
            self._buffer.show_timestamp = bool(enabled)
            self.events.publish(
                ConsoleEvent.SHOW_TIMESTAMP_CHANGED, self._buffer.show_timestamp
            )

    def set_vt100_enabled(self, enabled: bool) -> None:
        with self._lock:
            enabled = bool(enabled)
            if enabled != self._interpreter.enabled:
                self._interpreter.reset()
                self._interpreter.enabled = enabled
            self.events.publish(ConsoleEvent.VT100_CHANGED, enabled)

    def apply_config(self, settings: ConsoleConfig) -> None:
        """Apply every field of ``settings`` through the individual setters."""

        with self._lock:
            self.set_data_mode(settings.data_mode)
            self.set_display_mode(settings.display_mode)
            self.set_line_ending(settings.line_ending)
            self.set_echo(settings.echo)
            self.set_autoscroll(settings.autoscroll)
            self.set_show_timestamp(settings.show_timestamp)
            self.set_vt100_enabled(settings.vt100_enabled)

    @staticmethod
    def data_modes() -> list[str]:
        return config_module.data_modes()

    @staticmethod
    def display_modes() -> list[str]:
        return config_module.display_modes()

    @staticmethod
    def line_endings() -> list[str]:
        return config_module.line_endings()

    @staticmethod
    def format_user_hex(text: str) -> str:
        return codec.format_user_hex(text)

    # Receive path -------------------------------------------------------

    def on_bytes_received(self, chunk: bytes) -> None:
        """Decode, interpret and display ``chunk`` in arrival order."""

        if not chunk:
            return
        with self._lock:
            logger.debug("received %d byte(s)", len(chunk))
            self._render(self._decoder.feed(chunk))
            self.events.publish(ConsoleEvent.DATA_RECEIVED, bytes(chunk))

    def _render(self, text: str) -> None:
        for output in self._interpreter.feed(text):
            if isinstance(output, TextRun):
                self._buffer.append(output.text)
            elif output is ControlAction.CLEAR_LINE:
                self._buffer.clear_current_line()
            else:
                self._buffer.clear_all()

    def _on_display_changed(self) -> None:
        self.events.publish(ConsoleEvent.DISPLAY_CHANGED, None)

    # Send path ----------------------------------------------------------

    def send(self, text: str, *, hex_input: bool = False) -> int:
        """Record ``text`` in the history and transmit it.

        Returns the number of bytes the transport accepted; ``0`` means nothing
        was written (empty input, unparsable hex or no connected transport).
        """

        if not text:
            return 0
        with self._lock:
            self._history.record(text)
            return self.transmit(text, hex_input=hex_input)

    def transmit(self, text: str, *, hex_input: bool = False) -> int:
        """Frame and write ``text`` without touching the command history."""

        with self._lock:
            data = framer.frame(text, self._line_ending, hex_input=hex_input)
            if not data:
                return 0
            transport = self._transport
            if transport is None or not transport.connected:
                logger.info("dropping %d byte(s): no device connected", len(data))
                return 0

            written = max(0, int(transport.write(data)))
            if written < len(data):
                logger.warning("short write: %d of %d byte(s)", written, len(data))
            if not written:
                return 0

            sent = data[:written]
            logger.debug("sent %d byte(s)", written)
            self.events.publish(ConsoleEvent.DATA_SENT, sent)
            if self._echo:
                self._render(self._decoder.feed(sent))
            return written

    # History ------------------------------------------------------------

    @property
    def current_history_string(self) -> str:
        return self._history.current

    def history_up(self) -> str:
        with self._lock:
            recalled = self._history.previous() or ""
            self.events.publish(ConsoleEvent.HISTORY_ITEM_CHANGED, recalled)
            return recalled

    def history_down(self) -> str:
        with self._lock:
            recalled = self._history.next() or ""
            self.events.publish(ConsoleEvent.HISTORY_ITEM_CHANGED, recalled)
            return recalled

    # Document -----------------------------------------------------------

    def clear(self) -> None:
        """Empty the display document; interpreter and history are kept."""

        with self._lock:
            self._buffer.clear_all()

    @property
    def save_available(self) -> bool:
        return not self._buffer.is_empty()

    def save(self) -> str:
        with self._lock:
            return self._buffer.snapshot_text()

    def save_to(self, path: Path) -> Path:
        """Write the display document to ``path`` as UTF-8 text."""

        text = self.save()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.info("saved console log to %s", path)
        return path


__all__ = ["ConsoleController", "WritableTransport"]
