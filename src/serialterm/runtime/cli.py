"""Interactive command-line serial terminal."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import logging
import sys
from pathlib import Path
from typing import IO, Sequence

from .. import codec
from ..config import (
    ConsoleConfig,
    ConsoleConfigError,
    DisplayMode,
    SerialSettings,
    TerminalConfig,
    load_config,
    load_preferences,
    save_preferences,
)
from ..codec import DataMode
from ..controller import ConsoleController
from ..events import ConsoleEvent
from ..framer import LineEnding
from ..line_buffer import DisplayLine
from .file_transmission import DEFAULT_LINE_INTERVAL_MS, FileTransmission
from .transports import (
    LoopbackTransport,
    SerialPortTransport,
    Transport,
    TransportError,
    available_ports,
    drain_transport,
    pump_transport,
)

logger = logging.getLogger(__name__)

COMMAND_PREFIX = ":"

_LINE_ENDING_CHOICES = {
    "none": LineEnding.NONE,
    "lf": LineEnding.NEW_LINE,
    "cr": LineEnding.CARRIAGE_RETURN,
    "crlf": LineEnding.BOTH,
}

_DATA_MODE_CHOICES = {
    "utf8": DataMode.UTF8,
    "hex": DataMode.HEX,
}

_DISPLAY_MODE_CHOICES = {
    "text": DisplayMode.PLAIN_TEXT,
    "hex": DisplayMode.HEX,
}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return parsed arguments for the terminal CLI."""

    parser = argparse.ArgumentParser(prog="serialterm", description=__doc__)
    parser.add_argument("--port", default=None, help="Serial device to open")
    parser.add_argument(
        "--baud", type=int, default=None, help="Baud rate (default: 9600)"
    )
    parser.add_argument(
        "--loopback",
        action="store_true",
        help="Use an in-memory device that reflects every write back",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML file with [console] and [serial] tables",
    )
    parser.add_argument(
        "--preferences",
        type=Path,
        default=None,
        help="JSON file where console preferences are loaded and saved",
    )
    parser.add_argument(
        "--data-mode", choices=sorted(_DATA_MODE_CHOICES), default=None,
        help="Interpretation of received bytes",
    )
    parser.add_argument(
        "--display-mode", choices=sorted(_DISPLAY_MODE_CHOICES), default=None,
        help="Rendering of displayed lines",
    )
    parser.add_argument(
        "--line-ending", choices=sorted(_LINE_ENDING_CHOICES), default=None,
        help="Terminator appended to sent commands",
    )
    parser.add_argument(
        "--echo", dest="echo", action="store_true", default=None,
        help="Display sent data locally",
    )
    parser.add_argument("--no-echo", dest="echo", action="store_false")
    parser.add_argument(
        "--timestamp", dest="show_timestamp", action="store_true", default=None,
        help="Prefix every line with its arrival time",
    )
    parser.add_argument(
        "--no-vt100", dest="vt100_enabled", action="store_false", default=None,
        help="Show escape sequences as text instead of interpreting them",
    )
    parser.add_argument(
        "--hex-input", action="store_true", help="Parse typed commands as hex bytes"
    )
    parser.add_argument(
        "--save-log", type=Path, default=None,
        help="Write the console document to this file on exit",
    )
    parser.add_argument(
        "--max-lines", type=int, default=200,
        help="Number of lines printed by the :show command",
    )
    parser.add_argument(
        "--send-file", type=Path, default=None,
        help="Transmit this text file line by line after connecting",
    )
    parser.add_argument(
        "--send-interval", type=int, default=DEFAULT_LINE_INTERVAL_MS,
        help="Milliseconds between lines sent from --send-file",
    )
    parser.add_argument(
        "--list-ports", action="store_true", help="List serial ports and exit"
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> TerminalConfig:
    """Merge the config file, persisted preferences and CLI flags."""

    if args.config is not None:
        base = load_config(args.config)
    else:
        base = TerminalConfig(console=ConsoleConfig(), serial=SerialSettings())

    console = base.console
    if args.preferences is not None and args.preferences.exists():
        console = load_preferences(args.preferences)

    overrides: dict[str, object] = {}
    if args.data_mode is not None:
        overrides["data_mode"] = _DATA_MODE_CHOICES[args.data_mode]
    if args.display_mode is not None:
        overrides["display_mode"] = _DISPLAY_MODE_CHOICES[args.display_mode]
    if args.line_ending is not None:
        overrides["line_ending"] = _LINE_ENDING_CHOICES[args.line_ending]
    for flag in ("echo", "show_timestamp", "vt100_enabled"):
        value = getattr(args, flag)
        if value is not None:
            overrides[flag] = value
    console = dataclasses.replace(console, **overrides)

    serial_overrides: dict[str, object] = {}
    if args.port is not None:
        serial_overrides["port"] = args.port
    if args.baud is not None:
        serial_overrides["baud_rate"] = args.baud
    serial = dataclasses.replace(base.serial, **serial_overrides)
    return TerminalConfig(console=console, serial=serial)


def build_transport(args: argparse.Namespace, settings: SerialSettings) -> Transport:
    if args.loopback:
        return LoopbackTransport(reflect=True)
    return SerialPortTransport(settings)


def _write_and_flush(stream: IO[str], text: str) -> None:
    stream.write(text)
    stream.flush()


class LineRenderer:
    """Print newly finalised console lines to a text stream."""

    def __init__(self, controller: ConsoleController, output_stream: IO[str]) -> None:
        self.controller = controller
        self.output_stream = output_stream
        self._printed = 0
        self._unsubscribe = controller.events.subscribe(
            self._on_display_changed, ConsoleEvent.DISPLAY_CHANGED
        )

    def render(self, line: DisplayLine) -> str:
        if self.controller.display_mode is DisplayMode.HEX:
            line = dataclasses.replace(
                line, text=codec.decode(line.text.encode("utf-8"), DataMode.HEX)
            )
        return line.render()

    def _on_display_changed(self, event: ConsoleEvent, payload: object) -> None:
        buffer = self.controller.buffer
        count = buffer.closed_line_count
        if count < self._printed:
            # The document was cleared; restart from its first line.
            self._printed = 0
        for line in buffer.closed_lines()[self._printed :]:
            _write_and_flush(self.output_stream, self.render(line) + "\n")
        self._printed = count

    def show(self, limit: int | None) -> None:
        for line in self.controller.buffer.tail(limit):
            _write_and_flush(self.output_stream, self.render(line) + "\n")

    def finish(self) -> None:
        current = self.controller.buffer.open_line
        if current is not None and current.text:
            _write_and_flush(self.output_stream, self.render(current) + "\n")
        self._unsubscribe()


def handle_command(
    line: str,
    controller: ConsoleController,
    renderer: LineRenderer,
    *,
    output_stream: IO[str],
    max_lines: int | None = None,
) -> bool:
    """Run a ``:``-prefixed console command; return ``False`` to quit."""

    name, _, argument = line[len(COMMAND_PREFIX) :].partition(" ")
    name = name.strip().lower()
    argument = argument.strip()
    if name in ("q", "quit"):
        return False
    if name == "up":
        _write_and_flush(output_stream, f"[history] {controller.history_up()}\n")
    elif name == "down":
        _write_and_flush(output_stream, f"[history] {controller.history_down()}\n")
    elif name == "clear":
        controller.clear()
    elif name == "show":
        renderer.show(max_lines)
    elif name == "save" and argument:
        try:
            path = controller.save_to(Path(argument))
        except OSError as exc:
            _write_and_flush(output_stream, f"[error] {exc}\n")
        else:
            _write_and_flush(output_stream, f"[saved] {path}\n")
    elif name == "echo":
        controller.set_echo(not controller.echo)
    elif name == "timestamp":
        controller.set_show_timestamp(not controller.show_timestamp)
    elif name == "vt100":
        controller.set_vt100_enabled(not controller.vt100_enabled)
    elif name in ("mode", "ending", "display") and argument:
        try:
            if name == "mode":
                controller.set_data_mode(_DATA_MODE_CHOICES.get(argument, argument))
            elif name == "ending":
                controller.set_line_ending(_LINE_ENDING_CHOICES.get(argument, argument))
            else:
                controller.set_display_mode(_DISPLAY_MODE_CHOICES.get(argument, argument))
        except ConsoleConfigError as exc:
            _write_and_flush(output_stream, f"[error] {exc}\n")
    else:
        _write_and_flush(output_stream, f"[error] unknown command: {line}\n")
    return True


async def run_terminal(
    controller: ConsoleController,
    transport: Transport,
    *,
    input_stream: IO[str] = sys.stdin,
    output_stream: IO[str] = sys.stdout,
    hex_input: bool = False,
    max_lines: int | None = None,
    transmission: FileTransmission | None = None,
    poll_interval: float = 0.01,
) -> None:
    """Bridge ``input_stream`` lines and ``transport`` traffic until EOF."""

    renderer = LineRenderer(controller, output_stream)
    loop = asyncio.get_running_loop()
    tasks: list[asyncio.Task[None]] = [
        loop.create_task(pump_transport(transport, controller, poll_interval=poll_interval))
    ]
    if transmission is not None and transmission.file_open:
        transmission.begin_transmission()
        tasks.append(loop.create_task(transmission.run()))

    try:
        while True:
            raw_line = await asyncio.to_thread(input_stream.readline)
            if raw_line == "":  # EOF
                break
            line = raw_line.rstrip("\r\n")
            if line.startswith(COMMAND_PREFIX * 2):
                controller.send(line[1:], hex_input=hex_input)
            elif line.startswith(COMMAND_PREFIX):
                if not handle_command(
                    line,
                    controller,
                    renderer,
                    output_stream=output_stream,
                    max_lines=max_lines,
                ):
                    break
            elif line:
                controller.send(line, hex_input=hex_input)
            drain_transport(transport, controller)
    finally:
        if transmission is not None:
            transmission.stop_transmission()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        drain_transport(transport, controller)
        renderer.finish()


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def main(
    argv: Sequence[str] | None = None,
    *,
    input_stream: IO[str] = sys.stdin,
    output_stream: IO[str] = sys.stdout,
) -> int:
    """Entry point for the terminal CLI."""

    args = parse_args(argv)
    _configure_logging(args.verbose)

    if args.list_ports:
        for info in available_ports():
            _write_and_flush(output_stream, f"{info.device}\t{info.label}\n")
        return 0

    try:
        settings = resolve_settings(args)
    except (ConsoleConfigError, OSError) as exc:
        print(f"serialterm: {exc}", file=sys.stderr)
        return 2

    controller = ConsoleController(settings.console)
    transmission: FileTransmission | None = None
    if args.send_file is not None:
        transmission = FileTransmission(controller, interval_ms=args.send_interval)
        try:
            transmission.open_file(args.send_file)
        except OSError as exc:
            print(f"serialterm: cannot open {args.send_file}: {exc}", file=sys.stderr)
            return 1

    transport = build_transport(args, settings.serial)
    try:
        transport.open()
    except TransportError as exc:
        if transmission is not None:
            transmission.close_file()
        print(f"serialterm: {exc}", file=sys.stderr)
        return 1
    controller.attach_transport(transport)

    try:
        asyncio.run(
            run_terminal(
                controller,
                transport,
                input_stream=input_stream,
                output_stream=output_stream,
                hex_input=args.hex_input,
                max_lines=args.max_lines,
                transmission=transmission,
            )
        )
    except KeyboardInterrupt:  # pragma: no cover - user interrupt
        _write_and_flush(output_stream, "\n")
    finally:
        if transmission is not None:
            transmission.close_file()
        transport.close()
        if args.save_log is not None:
            controller.save_to(args.save_log)
        if args.preferences is not None:
            save_preferences(controller.config, args.preferences)
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via python -m
    raise SystemExit(main())


__all__ = [
    "LineRenderer",
    "build_transport",
    "handle_command",
    "main",
    "parse_args",
    "resolve_settings",
    "run_terminal",
]
