"""Configuration loader for hostdiag.

Settings are layered, each layer overriding the previous one:

1. Built-in defaults (:data:`DEFAULTS`).
2. A YAML file, ``/etc/hostdiag/config.yml`` unless ``--config-file`` or
   ``HOSTDIAG_CONFIG_FILE`` names another one. A missing file is not an error.
3. ``HOSTDIAG_*`` environment variables. Double underscores descend into a
   section, e.g. ``HOSTDIAG_CONNECTIVITY__PUBLIC_HOST=9.9.9.9``.
4. Programmatic overrides.

Environment values go through ``yaml.safe_load``, so ``5`` is an integer and
``[a, b]`` is a list. Resolved settings are frozen dataclasses.
"""
from __future__ import annotations

import copy
import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path

import yaml

ENV_PREFIX = "HOSTDIAG_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
DEFAULT_OUTPUT_NAME = "reporte_diagnostico.txt"


class ConfigError(RuntimeError):
    """Raised when a configuration source is unreadable or holds bad values."""


@dataclass(frozen=True)
class ConnectivityConfig:
    """Targets and bounded waits for reachability checks."""

    ping_count: int = 2
    ping_timeout: int = 2
    public_host: str = "1.1.1.1"
    tcp_host: str = "google.com"
    tcp_port: int = 443
    tcp_timeout: float = 3.0


@dataclass(frozen=True)
class DNSConfig:
    """Names resolved by the DNS probe."""

    names: tuple[str, ...] = ("google.com", "cloudflare.com", "microsoft.com")


@dataclass(frozen=True)
class ServicesConfig:
    """Units inspected by the services probe and the binaries used to do it."""

    units: tuple[str, ...] = ("NetworkManager", "systemd-resolved", "ssh", "cron", "cups")
    systemctl_bin: str = "systemctl"
    journalctl_bin: str = "journalctl"


@dataclass(frozen=True)
class LogsConfig:
    """How much recent log output the logs probe collects."""

    lines: int = 50
    fallback_files: tuple[Path, ...] = (
        Path("/var/log/syslog"),
        Path("/var/log/messages"),
        Path("/var/log/dmesg"),
    )
    fallback_lines: int = 40


@dataclass(frozen=True)
class HostPathsConfig:
    """Well-known host files read directly by probes."""

    os_release: Path = Path("/etc/os-release")
    resolv_conf: Path = Path("/etc/resolv.conf")
    proc_dir: Path = Path("/proc")


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for hostdiag."""

    config_file: Path
    logs_dir: Path | None
    default_output: Path
    command_timeout: float
    connectivity: ConnectivityConfig
    dns: DNSConfig
    services: ServicesConfig
    logs: LogsConfig
    host: HostPathsConfig

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return _plain(asdict(self))  # type: ignore[return-value]


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/hostdiag/config.yml",
    "logs_dir": None,  # operations log disabled unless configured
    "default_output": DEFAULT_OUTPUT_NAME,
    "command_timeout": 30.0,
    "connectivity": {
        "ping_count": 2,
        "ping_timeout": 2,
        "public_host": "1.1.1.1",
        "tcp_host": "google.com",
        "tcp_port": 443,
        "tcp_timeout": 3.0,
    },
    "dns": {
        "names": ["google.com", "cloudflare.com", "microsoft.com"],
    },
    "services": {
        "units": ["NetworkManager", "systemd-resolved", "ssh", "cron", "cups"],
        "systemctl_bin": "systemctl",
        "journalctl_bin": "journalctl",
    },
    "logs": {
        "lines": 50,
        "fallback_files": ["/var/log/syslog", "/var/log/messages", "/var/log/dmesg"],
        "fallback_lines": 40,
    },
    "host": {
        "os_release": "/etc/os-release",
        "resolv_conf": "/etc/resolv.conf",
        "proc_dir": "/proc",
    },
}

SECTION_KEYS: dict[str, frozenset[str]] = {
    name: frozenset(values) for name, values in DEFAULTS.items() if isinstance(values, Mapping)
}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Merge every configuration layer and return the resolved :class:`AppConfig`."""
    environ = os.environ if env is None else env
    if config_file:
        path = Path(config_file)
    else:
        path = Path(environ.get(CONFIG_ENV_VAR) or str(DEFAULTS["config_file"]))

    settings = copy.deepcopy(DEFAULTS)
    for layer in (_read_config_file(path), _environment_layer(environ), overrides or {}):
        _merge_into(settings, layer)
    settings["config_file"] = str(path)

    _check_keys(settings)
    return _build_app_config(settings)


def _read_config_file(path: Path) -> Mapping[str, object]:
    if not path.is_file():
        return {}
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if document is None:
        return {}
    if not isinstance(document, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _mapping(document, str(path))


def _environment_layer(environ: Mapping[str, str]) -> dict[str, object]:
    layer: dict[str, object] = {}
    for key, raw in environ.items():
        if key == CONFIG_ENV_VAR or not key.startswith(ENV_PREFIX):
            continue
        parts = [part.lower() for part in key[len(ENV_PREFIX) :].split("__") if part]
        if not parts:
            continue
        node = layer
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[parts[-1]] = _parse_env_value(raw)
    return layer


def _parse_env_value(raw: str) -> object:
    text = raw.strip()
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def _merge_into(base: MutableMapping[str, object], layer: Mapping[str, object]) -> None:
    for key, value in layer.items():
        current = base.get(key)
        if isinstance(current, MutableMapping) and isinstance(value, Mapping):
            _merge_into(current, value)
        else:
            base[key] = value


def _check_keys(settings: Mapping[str, object]) -> None:
    unknown = sorted(set(settings) - set(DEFAULTS))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}.")
    for section, allowed in SECTION_KEYS.items():
        extra = sorted(set(_mapping(settings.get(section), section)) - allowed)
        if extra:
            raise ConfigError(f"Unknown {section} configuration keys: {', '.join(extra)}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    logs_dir = raw.get("logs_dir")

    conn = _mapping(raw.get("connectivity"), "connectivity")
    connectivity = ConnectivityConfig(
        ping_count=_positive_int(conn.get("ping_count"), "connectivity.ping_count"),
        ping_timeout=_positive_int(conn.get("ping_timeout"), "connectivity.ping_timeout"),
        public_host=_text(conn.get("public_host"), "connectivity.public_host"),
        tcp_host=_text(conn.get("tcp_host"), "connectivity.tcp_host"),
        tcp_port=_port(conn.get("tcp_port"), "connectivity.tcp_port"),
        tcp_timeout=_positive_float(conn.get("tcp_timeout"), "connectivity.tcp_timeout"),
    )

    services = _mapping(raw.get("services"), "services")
    logs = _mapping(raw.get("logs"), "logs")
    host = _mapping(raw.get("host"), "host")

    return AppConfig(
        config_file=_path(raw.get("config_file"), "config_file"),
        logs_dir=_path(logs_dir, "logs_dir") if logs_dir else None,
        default_output=_path(raw.get("default_output") or DEFAULT_OUTPUT_NAME, "default_output"),
        command_timeout=_positive_float(raw.get("command_timeout"), "command_timeout"),
        connectivity=connectivity,
        dns=DNSConfig(names=_names(_mapping(raw.get("dns"), "dns").get("names"), "dns.names")),
        services=ServicesConfig(
            units=_names(services.get("units"), "services.units"),
            systemctl_bin=_text(services.get("systemctl_bin"), "services.systemctl_bin"),
            journalctl_bin=_text(services.get("journalctl_bin"), "services.journalctl_bin"),
        ),
        logs=LogsConfig(
            lines=_positive_int(logs.get("lines"), "logs.lines"),
            fallback_files=tuple(
                _path(item, "logs.fallback_files")
                for item in _names(logs.get("fallback_files"), "logs.fallback_files")
            ),
            fallback_lines=_positive_int(logs.get("fallback_lines"), "logs.fallback_lines"),
        ),
        host=HostPathsConfig(
            os_release=_path(host.get("os_release"), "host.os_release"),
            resolv_conf=_path(host.get("resolv_conf"), "host.resolv_conf"),
            proc_dir=_path(host.get("proc_dir"), "host.proc_dir"),
        ),
    )


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def _positive_int(value: object, label: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{label} must be an integer, not {value!r}.")
    if isinstance(value, str):
        try:
            value = int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    if not isinstance(value, int):
        raise ConfigError(f"{label} must be an integer. Got {type(value).__name__}.")
    if value <= 0:
        raise ConfigError(f"{label} must be greater than zero.")
    return value


def _port(value: object, label: str) -> int:
    port = _positive_int(value, label)
    if port > 65535:
        raise ConfigError(f"{label} must be between 1 and 65535.")
    return port


def _positive_float(value: object, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigError(f"{label} must be a number. Got {value!r}.")
    try:
        number = float(value)
    except ValueError as exc:
        raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    if number <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {number:g}.")
    return number


def _text(value: object, label: str) -> str:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        text = str(value).strip()
        if text:
            return text
    raise ConfigError(f"{label} must be a non-empty string. Got {value!r}.")


def _names(value: object, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        # Environment overrides may supply a single comma-separated string.
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if not isinstance(value, Sequence):
        raise ConfigError(f"{label} must be a list. Got {type(value).__name__}.")
    names: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(f"{label}[{index}] must be a non-empty string.")
        names.append(item.strip())
    return tuple(names)


def _path(value: object, label: str) -> Path:
    if isinstance(value, (str, Path)) and str(value):
        return Path(value).expanduser()
    raise ConfigError(f"{label} must be a filesystem path. Got {value!r}.")


def _mapping(value: object, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{label} must be a mapping. Got {type(value).__name__}.")
    for key in value:
        if not isinstance(key, str):
            raise ConfigError(f"{label} keys must be strings. Got {key!r}.")
    return dict(value)


def _plain(value: object) -> object:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


__all__ = [
    "AppConfig",
    "ConfigError",
    "ConnectivityConfig",
    "DEFAULTS",
    "DEFAULT_OUTPUT_NAME",
    "DNSConfig",
    "HostPathsConfig",
    "LogsConfig",
    "ServicesConfig",
    "load_config",
]
