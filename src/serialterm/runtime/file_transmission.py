"""Line-by-line transmission of a text file through the console send path."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import IO, TYPE_CHECKING, Awaitable, Callable

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from ..controller import ConsoleController

logger = logging.getLogger(__name__)

SleepCallable = Callable[[float], Awaitable[object]]

NO_FILE_LABEL = "No file selected..."
DEFAULT_LINE_INTERVAL_MS = 10


class FileTransmissionError(RuntimeError):
    """Raised when a transmission is started without an open file."""


def format_file_size(size: int) -> str:
    """Return ``size`` in bytes as ``bytes``, ``KB`` or ``MB`` text."""

    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


class FileTransmission:
    """Send one line of an open file per interval while the device is connected.

    Lines go through :meth:`ConsoleController.transmit`, so they receive the
    configured line ending and local echo but never enter the command history.
    Transmission stops when the device disconnects or the file is exhausted; a
    fully sent file restarts from the beginning on the next
    :meth:`begin_transmission`.
    """

    def __init__(
        self,
        controller: "ConsoleController",
        *,
        interval_ms: int = DEFAULT_LINE_INTERVAL_MS,
        sleep: SleepCallable | None = None,
    ) -> None:
        self.controller = controller
        self._sleep = sleep or asyncio.sleep
        self._interval_ms = max(0, int(interval_ms))
        self._path: Path | None = None
        self._stream: IO[bytes] | None = None
        self._size = 0
        self._active = False

    # State ---------------------------------------------------------------

    @property
    def active(self) -> bool:
        return self._active

    @property
    def file_open(self) -> bool:
        return self._stream is not None

    @property
    def file_name(self) -> str:
        if self._path is None or not self.file_open:
            return NO_FILE_LABEL
        return self._path.name

    @property
    def file_size(self) -> str:
        return format_file_size(self._size if self.file_open else 0)

    @property
    def progress(self) -> int:
        """Return the share of the file already sent, as a 0-100 percentage."""

        stream = self._stream
        if stream is None or self._size <= 0:
            return 0
        return int(min(1.0, stream.tell() / self._size) * 100)

    @property
    def line_interval_ms(self) -> int:
        return self._interval_ms

    def set_line_interval_ms(self, interval_ms: int) -> None:
        self._interval_ms = max(0, int(interval_ms))

    # File handling -------------------------------------------------------

    def open_file(self, path: Path) -> None:
        """Open ``path`` for transmission, replacing any previously open file."""

        if self.file_open:
            self.close_file()
        stream = path.open("rb")
        self._path = path
        self._stream = stream
        self._size = path.stat().st_size
        logger.info("opened %s (%s) for transmission", path, self.file_size)

    def close_file(self) -> None:
        self.stop_transmission()
        stream = self._stream
        self._stream = None
        self._size = 0
        if stream is not None:
            stream.close()

    # Transmission --------------------------------------------------------

    def _device_connected(self) -> bool:
        transport = self.controller.transport
        return transport is not None and transport.connected

    def begin_transmission(self) -> None:
        """Start sending; stays stopped when no device is connected."""

        stream = self._stream
        if stream is None:
            raise FileTransmissionError("no file selected for transmission")
        if not self._device_connected():
            self.stop_transmission()
            return
        if self.progress == 100:
            stream.seek(0)
        self._active = True
        logger.info("transmitting %s every %d ms", self.file_name, self._interval_ms)

    def stop_transmission(self) -> None:
        if self._active:
            logger.info("transmission of %s stopped at %d%%", self.file_name, self.progress)
        self._active = False

    def send_line(self) -> bool:
        """Send the next non-empty line; return ``True`` while more may follow."""

        stream = self._stream
        if not self._active or stream is None:
            return False
        if not self._device_connected():
            self.stop_transmission()
            return False

        raw = stream.readline()
        if not raw:
            self.stop_transmission()
            return False
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if line:
            self.controller.transmit(line)
        return True

    async def run(self) -> None:
        """Send lines at the configured interval until transmission stops."""

        while self.send_line():
            await self._sleep(self._interval_ms / 1000.0)


__all__ = [
    "DEFAULT_LINE_INTERVAL_MS",
    "FileTransmission",
    "FileTransmissionError",
    "NO_FILE_LABEL",
    "format_file_size",
]
