"""Configuration file loading."""

import json
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import get_args, get_origin

_NS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}
_DURATION_PART = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)")


class ConfigError(ValueError):
    """The configuration cannot be read or decoded."""


@dataclass
class AppConfig:
    name: str = ""


@dataclass
class LoggerConfig:
    level: str = ""
    console: bool = False
    path: str = ""
    file_name: str = ""
    max_size: int = 0
    max_backups: int = 0
    max_age: int = 0


@dataclass
class HttpClientConfig:
    read_timeout: timedelta = field(default=timedelta(0), metadata={"key": "read_time_out"})
    write_timeout: timedelta = field(default=timedelta(0), metadata={"key": "write_time_out"})
    max_idle_conn_duration: timedelta = timedelta(0)
    max_conns_per_host: int = 0
    retry_times: int = 0


@dataclass
class DiffConfig:
    name: str = ""
    concurrency: int = 0
    wait_time: timedelta = timedelta(0)
    work_dir: str = ""
    payload: str = ""
    url_a: str = ""
    url_b: str = ""
    method: str = ""
    content_type: str = ""
    ignore_fields: str = ""
    output_show_no_diff_line: bool = False
    log_statistics: bool = False
    success_conditions: str = ""


@dataclass
class Configs:
    app: AppConfig = field(default_factory=AppConfig)
    logger: LoggerConfig = field(default_factory=LoggerConfig, metadata={"key": "log"})
    http: HttpClientConfig = field(default_factory=HttpClientConfig, metadata={"key": "fast_http"})
    diff_configs: list[DiffConfig] = field(default_factory=list)


def parse_duration(text):
    """Parse a duration such as ``"1h30m"``, ``"500ms"`` or ``"-1.5s"``."""
    if not isinstance(text, str):
        raise ConfigError(f"time: invalid duration {text!r}")
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ConfigError(f"time: invalid duration {text!r}")

    total_ns = 0
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        whole, frac, unit = match.group(1), match.group(2) or "", match.group(3)
        if not whole and not frac:
            raise ConfigError(f"time: invalid duration {text!r}")
        if not unit:
            raise ConfigError(f"time: missing unit in duration {text!r}")
        scale = _NS_PER_UNIT.get(unit)
        if scale is None:
            raise ConfigError(f"time: unknown unit {unit!r} in duration {text!r}")
        total_ns += int(whole or 0) * scale
        if frac:
            total_ns += int(frac) * scale // 10 ** len(frac)
        pos = match.end()

    result = timedelta(microseconds=total_ns // 1000)
    return -result if negative else result


def _to_str(value):
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        text = format(Decimal(repr(value)), "f")
        return text.rstrip("0").rstrip(".") if "." in text else text
    raise TypeError(f"expected a string, got {type(value).__name__}")


def _to_int(value):
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        if value == "":
            return 0
        return int(value, 0)
    raise TypeError(f"expected an integer, got {type(value).__name__}")


_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


def _to_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if value == "" or value in _FALSE_WORDS:
            return False
        if value in _TRUE_WORDS:
            return True
        raise ValueError(f"cannot parse {value!r} as bool")
    raise TypeError(f"expected a bool, got {type(value).__name__}")


def _to_duration(value):
    if isinstance(value, timedelta):
        return value
    if isinstance(value, str):
        return parse_duration(value)
    if isinstance(value, (int, float)):
        nanoseconds = int(value)
        micro = abs(nanoseconds) // 1000
        return timedelta(microseconds=-micro if nanoseconds < 0 else micro)
    raise TypeError(f"expected a duration, got {type(value).__name__}")


_CONVERTERS = {str: _to_str, int: _to_int, bool: _to_bool, timedelta: _to_duration}


def _convert(hint, value, name):
    if get_origin(hint) is list:
        (item_type,) = get_args(hint)
        items = value if isinstance(value, list) else [value]
        return [_convert(item_type, item, f"{name}[{n}]") for n, item in enumerate(items)]
    if is_dataclass(hint):
        return _decode(hint, value, name)
    try:
        return _CONVERTERS[hint](value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}': {exc}") from exc


def _decode(cls, data, where):
    if not isinstance(data, Mapping):
        raise ConfigError(f"'{where or 'config'}' expected a map, got {type(data).__name__}")
    lowered = {str(key).lower(): value for key, value in data.items()}
    values = {}
    for spec in fields(cls):
        key = spec.metadata.get("key", spec.name)
        value = lowered.get(key)
        if value is None:
            continue
        name = f"{where}.{key}" if where else key
        values[spec.name] = _convert(spec.type, value, name)
    return cls(**values)


def _read(config_file):
    suffix = Path(config_file).suffix.lower().lstrip(".")
    try:
        if suffix == "toml":
            with open(config_file, "rb") as handle:
                return tomllib.load(handle)
        if suffix == "json":
            with open(config_file, encoding="utf-8") as handle:
                return json.load(handle)
    except (OSError, tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"read config file error, config file:{config_file}, err: {exc}") from exc
    raise ConfigError(
        f"read config file error, config file:{config_file}, err: unsupported config type {suffix!r}"
    )


def load_config(config_file):
    """Read a TOML or JSON configuration file into a ``Configs``."""
    data = _read(config_file)
    try:
        configs = _decode(Configs, data, "")
    except ConfigError as exc:
        raise ConfigError(
            f"unmarshal config file error, config file:{config_file}, err: {exc}"
        ) from exc
    print(f"config info, config path:{str(config_file)!r}, config:{configs!r}")
    return configs