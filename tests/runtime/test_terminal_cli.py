import io
import json
from pathlib import Path

import pytest

from serialterm.codec import DataMode
from serialterm.config import ConsoleConfig, DisplayMode
from serialterm.controller import ConsoleController
from serialterm.framer import LineEnding
from serialterm.runtime import cli
from serialterm.runtime.cli import (
    LineRenderer,
    build_transport,
    handle_command,
    main,
    parse_args,
    resolve_settings,
)
from serialterm.runtime.transports import LoopbackTransport, PortInfo, SerialPortTransport


def _run(argv: list[str], script: str) -> tuple[int, str]:
    output_stream = io.StringIO()
    status = main(argv, input_stream=io.StringIO(script), output_stream=output_stream)
    return status, output_stream.getvalue()


# Why: the loopback device reflects every send, so typed lines come back as received lines.
def test_loopback_session_prints_reflected_lines() -> None:
    status, transcript = _run(["--loopback"], "hello\nworld\n:q\n")

    assert status == 0
    assert transcript == "hello\nworld\n"


def test_double_prefix_sends_literal_colon_text() -> None:
    status, transcript = _run(["--loopback"], "::colon\n")

    assert status == 0
    assert transcript == ":colon\n"


def test_hex_input_and_hex_display() -> None:
    status, transcript = _run(
        ["--loopback", "--hex-input", "--display-mode", "hex"], "68 69\n"
    )

    assert status == 0
    assert transcript == "68 69\n"


def test_unknown_command_reports_error() -> None:
    _, transcript = _run(["--loopback"], ":bogus\n")

    assert "[error] unknown command: :bogus" in transcript


def test_save_log_and_preferences_written_on_exit(tmp_path: Path) -> None:
    log_path = tmp_path / "console.log"
    preferences = tmp_path / "preferences.json"

    status, _ = _run(
        [
            "--loopback",
            "--line-ending",
            "crlf",
            "--save-log",
            str(log_path),
            "--preferences",
            str(preferences),
        ],
        "AT\n",
    )

    assert status == 0
    assert log_path.read_text(encoding="utf-8") == "AT\n"
    payload = json.loads(preferences.read_text(encoding="utf-8"))
    assert payload["console"]["line_ending"] == LineEnding.BOTH.value


def test_missing_config_file_exits_with_status_two(tmp_path: Path) -> None:
    status, transcript = _run(["--config", str(tmp_path / "absent.toml")], "")

    assert status == 2
    assert transcript == ""


def test_unopenable_send_file_exits_with_status_one(tmp_path: Path) -> None:
    status, _ = _run(["--loopback", "--send-file", str(tmp_path / "absent.txt")], "")

    assert status == 1


def test_serial_mode_without_port_exits_with_status_one() -> None:
    status, _ = _run([], "")

    assert status == 1


def test_list_ports(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "available_ports", lambda: [PortInfo("/dev/ttyACM0", "Arduino")])

    status, transcript = _run(["--list-ports"], "")

    assert status == 0
    assert transcript == "/dev/ttyACM0\tArduino\n"


def test_resolve_settings_layers_config_preferences_and_flags(tmp_path: Path) -> None:
    config_path = tmp_path / "serialterm.toml"
    config_path.write_text(
        '[console]\necho = true\n\n[serial]\nport = "COM4"\nbaud_rate = 57600\n',
        encoding="utf-8",
    )
    preferences = tmp_path / "preferences.json"
    preferences.write_text(
        json.dumps({"version": 1, "console": {"data_mode": 1}}), encoding="utf-8"
    )
    args = parse_args(
        [
            "--config",
            str(config_path),
            "--preferences",
            str(preferences),
            "--baud",
            "115200",
            "--line-ending",
            "cr",
            "--no-vt100",
        ]
    )

    settings = resolve_settings(args)

    assert settings.console.data_mode is DataMode.HEX
    assert settings.console.echo is False
    assert settings.console.line_ending is LineEnding.CARRIAGE_RETURN
    assert settings.console.vt100_enabled is False
    assert settings.serial.port == "COM4"
    assert settings.serial.baud_rate == 115200


def test_build_transport_selects_loopback_or_serial() -> None:
    settings = resolve_settings(parse_args(["--port", "/dev/ttyS1"])).serial

    assert isinstance(build_transport(parse_args(["--loopback"]), settings), LoopbackTransport)
    assert isinstance(build_transport(parse_args([]), settings), SerialPortTransport)


def _command(controller: ConsoleController, line: str, **kwargs) -> tuple[bool, str]:
    output_stream = io.StringIO()
    renderer = LineRenderer(controller, io.StringIO())
    keep_running = handle_command(
        line, controller, renderer, output_stream=output_stream, **kwargs
    )
    return keep_running, output_stream.getvalue()


def test_handle_command_toggles_and_modes() -> None:
    controller = ConsoleController()

    assert _command(controller, ":echo") == (True, "")
    assert _command(controller, ":timestamp")[0]
    assert _command(controller, ":vt100")[0]
    assert _command(controller, ":mode hex")[0]
    assert _command(controller, ":ending crlf")[0]
    assert _command(controller, ":display Hexadecimal")[0]

    assert controller.config == ConsoleConfig(
        data_mode=DataMode.HEX,
        display_mode=DisplayMode.HEX,
        line_ending=LineEnding.BOTH,
        echo=True,
        show_timestamp=True,
        vt100_enabled=False,
    )


def test_handle_command_reports_invalid_option() -> None:
    controller = ConsoleController()

    keep_running, transcript = _command(controller, ":ending sideways")

    assert keep_running
    assert transcript.startswith("[error] ")
    assert controller.line_ending is LineEnding.NEW_LINE


def test_handle_command_history_and_quit() -> None:
    controller = ConsoleController()
    controller.send("first")

    assert _command(controller, ":up") == (True, "[history] first\n")
    assert _command(controller, ":down") == (True, "[history] \n")
    assert _command(controller, ":quit") == (False, "")


def test_handle_command_show_and_clear() -> None:
    controller = ConsoleController()
    controller.on_bytes_received(b"a\nb\nc")
    output_stream = io.StringIO()
    renderer = LineRenderer(controller, output_stream)

    handle_command(":show", controller, renderer, output_stream=output_stream, max_lines=2)
    assert output_stream.getvalue() == "b\nc\n"

    handle_command(":clear", controller, renderer, output_stream=output_stream)
    assert controller.save() == ""


def test_handle_command_save(tmp_path: Path) -> None:
    controller = ConsoleController()
    controller.on_bytes_received(b"log line\n")
    target = tmp_path / "out.txt"

    keep_running, transcript = _command(controller, f":save {target}")

    assert keep_running
    assert transcript == f"[saved] {target}\n"
    assert target.read_text(encoding="utf-8") == "log line\n"


def test_renderer_restarts_after_clear() -> None:
    controller = ConsoleController()
    output_stream = io.StringIO()
    renderer = LineRenderer(controller, output_stream)

    controller.on_bytes_received(b"one\ntwo\n")
    controller.on_bytes_received(b"\x1b[2Jthree\n")
    renderer.finish()

    assert output_stream.getvalue() == "one\ntwo\nthree\n"


def test_handle_command_save_reports_unwritable_path(tmp_path: Path) -> None:
    controller = ConsoleController()
    controller.on_bytes_received(b"log line\n")
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("", encoding="utf-8")

    keep_running, transcript = _command(controller, f":save {blocker / 'out.txt'}")

    assert keep_running
    assert transcript.startswith("[error] ")
