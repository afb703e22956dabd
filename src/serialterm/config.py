"""Console and serial-port configuration, option lists and persistence.

Option lists are exposed in the order user interfaces populate their
selectors; the index of an option inside its list is the format used when
preferences are persisted.  The persisted JSON payload is versioned and the
loader currently recognises version ``1``.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Final, Mapping, Sequence, TypeVar

import tomllib

from .codec import DataMode
from .framer import LineEnding


class ConsoleConfigError(ValueError):
    """Raised when a configuration file or persisted preference is invalid."""


class DisplayMode(Enum):
    """Rendering requested by the user interface for decoded content."""

    PLAIN_TEXT = 0
    HEX = 1


DATA_MODE_LABELS: Final[tuple[str, ...]] = ("UTF8", "Hexadecimal")
DISPLAY_MODE_LABELS: Final[tuple[str, ...]] = ("Plain Text", "Hexadecimal")
LINE_ENDING_LABELS: Final[tuple[str, ...]] = (
    "None",
    "New Line",
    "Carriage Return",
    "New Line & Carriage Return",
)

BAUD_RATES: Final[tuple[int, ...]] = (1200, 2400, 4800, 9600, 19200, 38400, 57600, 115200)
PARITIES: Final[tuple[str, ...]] = ("None", "Even", "Odd", "Space", "Mark")
DATA_BITS: Final[tuple[int, ...]] = (5, 6, 7, 8)
STOP_BITS: Final[tuple[float, ...]] = (1, 1.5, 2)
FLOW_CONTROLS: Final[tuple[str, ...]] = ("None", "RTS/CTS", "XON/XOFF")

PREFERENCES_VERSION: Final[int] = 1

_LABELS: Final[dict[type[Enum], tuple[str, ...]]] = {
    DataMode: DATA_MODE_LABELS,
    DisplayMode: DISPLAY_MODE_LABELS,
    LineEnding: LINE_ENDING_LABELS,
}

_E = TypeVar("_E", bound=Enum)


def data_modes() -> list[str]:
    return list(DATA_MODE_LABELS)


def display_modes() -> list[str]:
    return list(DISPLAY_MODE_LABELS)


def line_endings() -> list[str]:
    return list(LINE_ENDING_LABELS)


def option_label(member: Enum) -> str:
    """Return the user-facing label for an option enum ``member``."""

    return _LABELS[type(member)][member.value]


def coerce_option(enum_cls: type[_E], raw: Any) -> _E:
    """Resolve ``raw`` (member, index, label or member name) into ``enum_cls``."""

    if isinstance(raw, enum_cls):
        return raw
    if isinstance(raw, bool):
        raise ConsoleConfigError(f"invalid {enum_cls.__name__} value: {raw!r}")
    if isinstance(raw, int):
        try:
            return enum_cls(raw)
        except ValueError as exc:
            raise ConsoleConfigError(
                f"{enum_cls.__name__} index {raw} out of range"
            ) from exc
    if isinstance(raw, str):
        text = raw.strip()
        labels = _LABELS.get(enum_cls, ())
        for index, label in enumerate(labels):
            if label.casefold() == text.casefold():
                return enum_cls(index)
        normalised = text.upper().replace("-", "_").replace(" ", "_")
        if normalised in enum_cls.__members__:
            return enum_cls[normalised]
    raise ConsoleConfigError(f"invalid {enum_cls.__name__} value: {raw!r}")


@dataclass(frozen=True)
class ConsoleConfig:
    """Console behaviour switches owned by :class:`ConsoleController`."""

    data_mode: DataMode = DataMode.UTF8
    display_mode: DisplayMode = DisplayMode.PLAIN_TEXT
    line_ending: LineEnding = LineEnding.NEW_LINE
    echo: bool = False
    autoscroll: bool = True
    show_timestamp: bool = False
    vt100_enabled: bool = True

    def to_preferences(self) -> dict[str, Any]:
        """Return the index-based mapping persisted between sessions."""

        return {
            "data_mode": self.data_mode.value,
            "display_mode": self.display_mode.value,
            "line_ending": self.line_ending.value,
            "echo": self.echo,
            "autoscroll": self.autoscroll,
            "show_timestamp": self.show_timestamp,
            "vt100_enabled": self.vt100_enabled,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConsoleConfig":
        """Build a config from ``data``, rejecting unknown keys."""

        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConsoleConfigError(f"unknown console option(s): {', '.join(unknown)}")

        defaults = cls()
        return cls(
            data_mode=coerce_option(DataMode, data.get("data_mode", defaults.data_mode)),
            display_mode=coerce_option(
                DisplayMode, data.get("display_mode", defaults.display_mode)
            ),
            line_ending=coerce_option(
                LineEnding, data.get("line_ending", defaults.line_ending)
            ),
            echo=_coerce_flag(data, "echo", defaults.echo),
            autoscroll=_coerce_flag(data, "autoscroll", defaults.autoscroll),
            show_timestamp=_coerce_flag(data, "show_timestamp", defaults.show_timestamp),
            vt100_enabled=_coerce_flag(data, "vt100_enabled", defaults.vt100_enabled),
        )


@dataclass(frozen=True)
class SerialSettings:
    """Line settings for the serial port opened by the runtime transport."""

    port: str | None = None
    baud_rate: int = 9600
    data_bits: int = 8
    parity: str = "None"
    stop_bits: float = 1
    flow_control: str = "None"

    def __post_init__(self) -> None:
        if self.baud_rate <= 0:
            raise ConsoleConfigError("baud_rate must be positive")
        if self.data_bits not in DATA_BITS:
            raise ConsoleConfigError(f"data_bits must be one of {DATA_BITS}")
        if self.stop_bits not in STOP_BITS:
            raise ConsoleConfigError(f"stop_bits must be one of {STOP_BITS}")
        object.__setattr__(self, "parity", _match_label(PARITIES, self.parity, "parity"))
        object.__setattr__(
            self,
            "flow_control",
            _match_label(FLOW_CONTROLS, self.flow_control, "flow_control"),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SerialSettings":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConsoleConfigError(f"unknown serial option(s): {', '.join(unknown)}")
        try:
            return cls(**dict(data))
        except TypeError as exc:
            raise ConsoleConfigError(str(exc)) from exc


def baud_rates() -> list[int]:
    return list(BAUD_RATES)


def parities() -> list[str]:
    return list(PARITIES)


def data_bits() -> list[int]:
    return list(DATA_BITS)


def stop_bits() -> list[float]:
    return list(STOP_BITS)


def flow_controls() -> list[str]:
    return list(FLOW_CONTROLS)


@dataclass(frozen=True)
class TerminalConfig:
    """Combined ``[console]`` and ``[serial]`` tables of a configuration file."""

    console: ConsoleConfig
    serial: SerialSettings


def load_config(config_path: Path) -> TerminalConfig:
    """Parse and validate the TOML configuration at ``config_path``."""

    try:
        with config_path.open("rb") as stream:
            raw_data = tomllib.load(stream)
    except tomllib.TOMLDecodeError as exc:
        raise ConsoleConfigError(f"{config_path}: {exc}") from exc

    unknown = sorted(set(raw_data) - {"console", "serial"})
    if unknown:
        raise ConsoleConfigError(f"unknown configuration table(s): {', '.join(unknown)}")
    console = ConsoleConfig.from_mapping(_require_table(raw_data, "console"))
    serial = SerialSettings.from_mapping(_require_table(raw_data, "serial"))
    return TerminalConfig(console=console, serial=serial)


def load_console_config(config_path: Path) -> ConsoleConfig:
    """Return only the ``[console]`` table of ``config_path``."""

    return load_config(config_path).console


def load_preferences(path: Path) -> ConsoleConfig:
    """Return persisted preferences from ``path``, or defaults when absent."""

    if not path.exists():
        return ConsoleConfig()
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return ConsoleConfig()

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConsoleConfigError(f"{path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConsoleConfigError("preferences payload must be a mapping")

    version = payload.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise ConsoleConfigError("preferences version must be an integer")
    if version != PREFERENCES_VERSION:
        raise ConsoleConfigError(f"unsupported preferences version: {version}")

    values = payload.get("console", {})
    if not isinstance(values, Mapping):
        raise ConsoleConfigError("preferences 'console' entry must be a mapping")
    for key in ("data_mode", "display_mode", "line_ending"):
        if key in values and not isinstance(values[key], int):
            raise ConsoleConfigError(f"persisted {key} must be an option index")
    return ConsoleConfig.from_mapping(values)


def save_preferences(config: ConsoleConfig, path: Path) -> None:
    """Persist ``config`` to ``path`` atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"version": PREFERENCES_VERSION, "console": config.to_preferences()}
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            dir=str(path.parent),
            prefix=path.name,
            suffix=".tmp",
            encoding="utf-8",
            delete=False,
        ) as stream:
            temp_path = Path(stream.name)
            json.dump(payload, stream, sort_keys=True, indent=2)
            stream.write("\n")
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(temp_path, path)
    except Exception:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()
        raise


def _require_table(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    table = data.get(name, {})
    if not isinstance(table, Mapping):
        raise ConsoleConfigError(f"[{name}] section must be a mapping")
    return table


def _coerce_flag(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConsoleConfigError(f"{key} must be a boolean, received {value!r}")
    return value


def _match_label(options: Sequence[str], raw: Any, name: str) -> str:
    if isinstance(raw, str):
        for option in options:
            if option.casefold() == raw.strip().casefold():
                return option
    raise ConsoleConfigError(f"{name} must be one of {', '.join(options)}; received {raw!r}")


__all__ = [
    "BAUD_RATES",
    "ConsoleConfig",
    "ConsoleConfigError",
    "DATA_BITS",
    "DATA_MODE_LABELS",
    "DISPLAY_MODE_LABELS",
    "DisplayMode",
    "FLOW_CONTROLS",
    "LINE_ENDING_LABELS",
    "PARITIES",
    "PREFERENCES_VERSION",
    "STOP_BITS",
    "SerialSettings",
    "TerminalConfig",
    "baud_rates",
    "coerce_option",
    "data_bits",
    "data_modes",
    "display_modes",
    "flow_controls",
    "line_endings",
    "load_config",
    "load_console_config",
    "load_preferences",
    "option_label",
    "parities",
    "save_preferences",
    "stop_bits",
]
