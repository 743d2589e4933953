import json
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from buildgate.wait.types import WaitPolicy

from .types import (
    BuildConfig,
    ConfigError,
    GateConfig,
    ProbeConfig,
    ServiceConfig,
    UnsupportedConfigFormatError,
)

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m)?\s*$")
_ENV_REF_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

PROBE_TYPES = ("tcp", "http", "command")


def load_config(path: str | Path, environ: Mapping[str, str] | None = None) -> GateConfig:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise ConfigError(f"Config file not found: {pure_path}")

    if not pure_path.is_file():
        raise ConfigError(f"Config path is not a file: {pure_path}")

    fmt = _detect_format(pure_path)
    raw_file = _parse_file(pure_path, fmt)
    return build_config(raw_file, os.environ if environ is None else environ)


def parse_duration(value: Any, field: str) -> float:
    """Seconds from `5`, `2.5`, `"500ms"`, `"10s"` or `"2m"`."""
    if isinstance(value, bool):
        raise ConfigError(f"{field}: expected a duration, got {value!r}")

    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match is None:
            raise ConfigError(f"{field}: invalid duration {value!r}")
        number, unit = match.groups()
        seconds = float(number) * {"ms": 0.001, "s": 1.0, "m": 60.0, None: 1.0}[unit]
    else:
        raise ConfigError(f"{field}: expected a duration, got {type(value)}")

    if seconds < 0:
        raise ConfigError(f"{field}: duration can't be negative")
    return seconds


def _detect_format(path: Path) -> str:
    fmt = path.suffix
    match fmt:
        case ".yaml" | ".yml":
            return "yaml"
        case ".toml":
            return "toml"
        case ".json":
            return "json"
        case _:
            raise UnsupportedConfigFormatError(
                f"Non supported file extension: {fmt}\n Expected format: .yml/.yaml, .toml, .json"
            )


def _parse_file(path: Path, fmt: str) -> Mapping[str, Any]:
    parsers: dict[str, tuple[Callable[[str], Any], type[Exception], str]] = {
        "yaml": (yaml.safe_load, yaml.YAMLError, "YAML"),
        "toml": (tomllib.loads, tomllib.TOMLDecodeError, "TOML"),
        "json": (json.loads, json.JSONDecodeError, "JSON"),
    }
    loads, error, label = parsers[fmt]

    try:
        raw_file = loads(path.read_text(encoding="utf-8"))
    except error as exc:
        raise ConfigError(f"{path}: invalid {label}") from exc

    if not isinstance(raw_file, Mapping):
        raise ConfigError(
            f"{path}: {label} parsed successfully but top-level value is not an object: {type(raw_file)}"
        )

    return raw_file


def build_config(raw: Mapping[str, Any], environ: Mapping[str, str]) -> GateConfig:
    _check_keys("config", raw, {"service", "probe", "wait", "build"})

    for section in ("service", "probe"):
        if section not in raw:
            raise ConfigError(f"Missing '{section}' section")

    service = _build_service_config(_section(raw, "service"), environ)
    probe = _build_probe_config(_section(raw, "probe"))
    wait = _build_wait_policy(_section(raw, "wait")) if "wait" in raw else WaitPolicy()
    build = _build_build_config(_section(raw, "build"), environ) if "build" in raw else None

    return GateConfig(service=service, probe=probe, wait=wait, build=build)


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw[name]
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{name}' must be a mapping, got {type(value)}")
    return value


def _check_keys(section: str, fields: Mapping[str, Any], keys: set[str]) -> None:
    for field in fields.keys():
        if field not in keys:
            raise ConfigError(f"{section}: Can't process: {field}")


def _string(section: str, fields: Mapping[str, Any], key: str) -> str | None:
    if key not in fields:
        return None

    value = fields[key]
    if not isinstance(value, str):
        raise ConfigError(f"{section}: '{key}' should be a string")

    if len(value.strip()) < 1:
        raise ConfigError(f"{section}: Please provide a value for '{key}' or remove it")

    return value.strip()


def _bool(section: str, fields: Mapping[str, Any], key: str) -> bool:
    value = fields.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{section}: '{key}' should be true or false")
    return value


def _port(section: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{section}: 'port' should be an integer")
    if not 0 <= value < 65536:
        raise ConfigError(f"{section}: port {value} out of range")
    return value


def _env(section: str, fields: Mapping[str, Any], environ: Mapping[str, str]) -> dict[str, str]:
    env: dict[str, str] = {}
    if "env" not in fields:
        return env

    if not isinstance(fields["env"], Mapping):
        raise ConfigError(f"{section}: Env should be a mapping")

    for key, item in fields["env"].items():
        if not isinstance(key, str):
            raise ConfigError(f"{section}: {key} should be a string")

        name = key.strip()
        if len(name) < 1:
            raise ConfigError(f"{section}: A key can't be empty")

        if name in env:
            raise ConfigError(f"{section}: Duplicate env key after normalization: {name}")

        if not isinstance(item, str):
            raise ConfigError(f"{section}: {name} should be a string")

        env[name] = _interpolate(section, name, item, environ)

    return env


def _interpolate(section: str, name: str, value: str, environ: Mapping[str, str]) -> str:
    def sub(match: re.Match[str]) -> str:
        ref = match.group(1)
        if ref not in environ:
            raise ConfigError(f"{section}: {name} references unset variable ${{{ref}}}")
        return environ[ref]

    return _ENV_REF_RE.sub(sub, value)


def _build_service_config(
    fields: Mapping[str, Any], environ: Mapping[str, str]
) -> ServiceConfig:
    section = "service"
    _check_keys(
        section,
        fields,
        {"command", "port", "bind", "address", "external", "data_dir", "log_file", "stop_timeout", "env"},
    )

    if "port" not in fields:
        raise ConfigError(f"{section}: missing 'port'")
    port = _port(section, fields["port"])

    external = _bool(section, fields, "external")
    command = _string(section, fields, "command")
    if command is None and not external:
        raise ConfigError(f"{section}: missing 'command' (or set external: true)")

    if external and port == 0:
        raise ConfigError(f"{section}: an external service needs a fixed port")

    stop_timeout = 10.0
    if "stop_timeout" in fields:
        stop_timeout = parse_duration(fields["stop_timeout"], f"{section}.stop_timeout")

    return ServiceConfig(
        command=command,
        port=port,
        bind=_string(section, fields, "bind") or "127.0.0.1",
        address=_string(section, fields, "address") or ("bind" if external else "loopback"),
        external=external,
        data_dir=_bool(section, fields, "data_dir"),
        log_file=_string(section, fields, "log_file"),
        stop_timeout=stop_timeout,
        env=_env(section, fields, environ),
    )


def _build_probe_config(fields: Mapping[str, Any]) -> ProbeConfig:
    section = "probe"
    _check_keys(section, fields, {"type", "command", "url", "send", "expect", "status", "timeout"})

    kind = _string(section, fields, "type")
    if kind is None:
        raise ConfigError(f"{section}: missing 'type'")

    if kind not in PROBE_TYPES:
        raise ConfigError(f"{section}: unknown type '{kind}', expected one of {', '.join(PROBE_TYPES)}")

    command = _string(section, fields, "command")
    url = _string(section, fields, "url")

    match kind:
        case "command" if command is None:
            raise ConfigError(f"{section}: a command probe needs 'command'")
        case "http" if url is None:
            raise ConfigError(f"{section}: an http probe needs 'url'")
        case _:
            pass

    if "send" in fields and not isinstance(fields["send"], str):
        raise ConfigError(f"{section}: 'send' should be a string")

    if "expect" in fields and not isinstance(fields["expect"], str):
        raise ConfigError(f"{section}: 'expect' should be a string")

    status = fields.get("status", 200)
    if isinstance(status, bool) or not isinstance(status, int):
        raise ConfigError(f"{section}: 'status' should be an integer")

    timeout = 5.0
    if "timeout" in fields:
        timeout = parse_duration(fields["timeout"], f"{section}.timeout")

    return ProbeConfig(
        type=kind,
        command=command,
        url=url,
        send=fields.get("send"),
        expect=fields.get("expect"),
        status=status,
        timeout=timeout,
    )


def _build_wait_policy(fields: Mapping[str, Any]) -> WaitPolicy:
    section = "wait"
    _check_keys(
        section,
        fields,
        {"interval", "timeout", "max_attempts", "backoff", "max_interval", "start_period"},
    )

    kwargs: dict[str, Any] = {}
    for key in ("interval", "timeout", "max_interval", "start_period"):
        if key in fields:
            kwargs[key] = parse_duration(fields[key], f"{section}.{key}")

    if "max_attempts" in fields:
        value = fields["max_attempts"]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{section}: 'max_attempts' should be an integer")
        kwargs["max_attempts"] = value

    if "backoff" in fields:
        value = fields["backoff"]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{section}: 'backoff' should be a number")
        kwargs["backoff"] = float(value)

    try:
        return WaitPolicy(**kwargs)
    except ValueError as exc:
        raise ConfigError(f"{section}: {exc}") from exc


def _build_build_config(fields: Mapping[str, Any], environ: Mapping[str, str]) -> BuildConfig:
    section = "build"
    _check_keys(section, fields, {"command", "env", "working_dir", "timeout"})

    timeout = None
    if "timeout" in fields:
        timeout = parse_duration(fields["timeout"], f"{section}.timeout")

    return BuildConfig(
        command=_string(section, fields, "command"),
        env=_env(section, fields, environ),
        working_dir=_string(section, fields, "working_dir"),
        timeout=timeout,
    )
