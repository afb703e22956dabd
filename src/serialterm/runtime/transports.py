"""Device transports feeding the console controller."""

from __future__ import annotations

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Deque, Final, Optional

import serial
from serial.tools import list_ports

from ..config import SerialSettings

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from ..controller import ConsoleController

logger = logging.getLogger(__name__)

SleepCallable = Callable[[float], Awaitable[object]]

_PARITY_MAP: Final[dict[str, str]] = {
    "None": serial.PARITY_NONE,
    "Even": serial.PARITY_EVEN,
    "Odd": serial.PARITY_ODD,
    "Space": serial.PARITY_SPACE,
    "Mark": serial.PARITY_MARK,
}

_STOPBITS_MAP: Final[dict[float, float]] = {
    1: serial.STOPBITS_ONE,
    1.5: serial.STOPBITS_ONE_POINT_FIVE,
    2: serial.STOPBITS_TWO,
}

_BYTESIZE_MAP: Final[dict[int, int]] = {
    5: serial.FIVEBITS,
    6: serial.SIXBITS,
    7: serial.SEVENBITS,
    8: serial.EIGHTBITS,
}


class TransportError(RuntimeError):
    """Raised when a transport cannot be opened or is used out of order."""


class Transport(ABC):
    """Strategy object that hides the device connection from the console."""

    def open(self) -> None:
        """Prepare the transport for use."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Return ``True`` while the device is reachable."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Transmit ``data`` and return the number of bytes accepted."""

    @abstractmethod
    def read_available(self) -> bytes:
        """Return whatever the device delivered since the previous call."""

    def close(self) -> None:
        """Release any transport resources."""


class LoopbackTransport(Transport):
    """In-memory transport used by tests and the ``--loopback`` CLI mode.

    ``reflect`` mirrors every accepted write back as inbound data, and
    ``write_limit`` caps how many bytes a single write accepts so short writes
    can be exercised.
    """

    def __init__(self, *, reflect: bool = False, write_limit: Optional[int] = None) -> None:
        self.reflect = reflect
        self.write_limit = write_limit
        self._inbound: Deque[bytes] = deque()
        self._outbound = bytearray()
        self._open = False

    def open(self) -> None:
        self._open = True

    @property
    def connected(self) -> bool:
        return self._open

    def write(self, data: bytes) -> int:
        if not self._open:
            return 0
        accepted = bytes(data)
        if self.write_limit is not None:
            accepted = accepted[: max(0, self.write_limit)]
        self._outbound.extend(accepted)
        if self.reflect and accepted:
            self._inbound.append(accepted)
        return len(accepted)

    def read_available(self) -> bytes:
        chunks = b"".join(self._inbound)
        self._inbound.clear()
        return chunks

    def feed(self, data: bytes) -> None:
        """Queue ``data`` as if the device had sent it."""

        if data:
            self._inbound.append(bytes(data))

    def collect_transmit(self) -> bytes:
        """Return and clear everything written so far."""

        payload = bytes(self._outbound)
        self._outbound.clear()
        return payload

    def close(self) -> None:
        self._open = False


class SerialPortTransport(Transport):
    """pySerial-backed transport for a physical or virtual serial port."""

    def __init__(
        self,
        settings: SerialSettings,
        *,
        serial_factory: Callable[[], serial.Serial] = serial.Serial,
    ) -> None:
        self.settings = settings
        self._serial_factory = serial_factory
        self._port: serial.Serial | None = None

    @property
    def port_name(self) -> str | None:
        return self.settings.port

    def open(self) -> None:
        if self._port is not None and self._port.is_open:
            return
        if not self.settings.port:
            raise TransportError("no serial port selected")

        port = self._serial_factory()
        port.port = self.settings.port
        port.baudrate = self.settings.baud_rate
        port.bytesize = _BYTESIZE_MAP[self.settings.data_bits]
        port.parity = _PARITY_MAP[self.settings.parity]
        port.stopbits = _STOPBITS_MAP[self.settings.stop_bits]
        port.rtscts = self.settings.flow_control == "RTS/CTS"
        port.xonxoff = self.settings.flow_control == "XON/XOFF"
        port.timeout = 0
        port.write_timeout = 1.0
        try:
            port.open()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(
                f"failed to open {self.settings.port}: {exc}"
            ) from exc
        self._port = port
        logger.info(
            "connected to %s at %d baud", self.settings.port, self.settings.baud_rate
        )

    @property
    def connected(self) -> bool:
        return self._port is not None and bool(self._port.is_open)

    def write(self, data: bytes) -> int:
        port = self._port
        if port is None or not port.is_open:
            return 0
        try:
            written = port.write(data)
        except (serial.SerialException, OSError) as exc:
            logger.warning("write to %s failed: %s", self.settings.port, exc)
            return 0
        return int(written or 0)

    def read_available(self) -> bytes:
        port = self._port
        if port is None or not port.is_open:
            return b""
        try:
            waiting = port.in_waiting
            if waiting <= 0:
                return b""
            return bytes(port.read(waiting))
        except (serial.SerialException, OSError) as exc:
            logger.warning("serial port %s error: %s", self.settings.port, exc)
            self.close()
            return b""

    def close(self) -> None:
        port = self._port
        if port is None:
            return
        self._port = None
        try:
            port.close()
        finally:
            logger.info("disconnected from %s", self.settings.port)


@dataclass(frozen=True, slots=True)
class PortInfo:
    """A serial device offered to the user for selection."""

    device: str
    description: str

    @property
    def label(self) -> str:
        if self.description and self.description != "n/a":
            return self.description
        return self.device


def available_ports() -> list[PortInfo]:
    """Enumerate serial ports, skipping macOS ``tty.*`` call-in duplicates."""

    ports: list[PortInfo] = []
    for info in list_ports.comports():
        name = getattr(info, "name", None) or info.device
        if sys.platform == "darwin" and name.lower().startswith("tty."):
            continue
        ports.append(PortInfo(device=info.device, description=info.description or ""))
    return ports


def drain_transport(transport: Transport, controller: "ConsoleController") -> int:
    """Deliver every pending inbound chunk to ``controller``; return byte count."""

    delivered = 0
    while True:
        chunk = transport.read_available()
        if not chunk:
            return delivered
        controller.on_bytes_received(chunk)
        delivered += len(chunk)


async def pump_transport(
    transport: Transport,
    controller: "ConsoleController",
    *,
    poll_interval: float = 0.01,
    sleep: SleepCallable | None = None,
) -> None:
    """Poll ``transport`` and feed the controller until the device disconnects."""

    sleep_fn = sleep or asyncio.sleep
    while transport.connected:
        delivered = drain_transport(transport, controller)
        await sleep_fn(0 if delivered else poll_interval)


__all__ = [
    "LoopbackTransport",
    "PortInfo",
    "SerialPortTransport",
    "Transport",
    "TransportError",
    "available_ports",
    "drain_transport",
    "pump_transport",
]
