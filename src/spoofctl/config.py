"""Global configuration — defaults, optional YAML file, env vars."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from spoofctl.errors import ConfigError

DEFAULT_PORT = 53210

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _default_config_file() -> Path:
    explicit = os.environ.get("SPOOFDPI_CONFIG")
    if explicit:
        return Path(explicit)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "spoofctl" / "config.yaml"
    return Path.home() / ".config" / "spoofctl" / "config.yaml"


def parse_bool(value: object, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name}: expected a boolean, got {value!r}")


def parse_port(value: object, name: str = "port") -> int:
    try:
        port = int(str(value).strip())
    except ValueError:
        raise ConfigError(f"{name}: not an integer: {value!r}") from None
    if not 1 <= port <= 65535:
        raise ConfigError(f"{name}: {port} is not a valid TCP port")
    return port


def parse_interfaces(value: object) -> tuple[str, ...] | None:
    """Comma-separated string or list of names; empty means auto-detect."""
    if value is None:
        return None
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    names = tuple(n.strip() for n in items if n.strip())
    return names or None


@dataclass
class SpoofConfig:
    """Application-wide configuration."""

    port: int = DEFAULT_PORT
    interfaces_requested: tuple[str, ...] | None = None  # None = auto-detect
    notifications_enabled: bool = True
    keep_binary: bool = False
    remove_binary: bool = False
    binary_path: str | None = None
    proxy_host: str = "127.0.0.1"
    label: str = "com.spoofdpi"
    plist_path: Path = Path("/Library/LaunchDaemons/com.spoofdpi.plist")
    log_dir: Path = Path("/var/log/spoofdpi")
    anchor: str = "spoofdpi_rdr"
    rule_file: Path = Path("/tmp/pf_spoofdpi_rules.conf")
    command_timeout: float = 15.0
    config_file: Path = field(default_factory=_default_config_file)

    def __post_init__(self) -> None:
        self.port = parse_port(self.port)
        if self.command_timeout <= 0:
            raise ConfigError("command_timeout must be positive")

    @classmethod
    def load(cls, config_file: Path | None = None) -> SpoofConfig:
        """Load config: defaults, then the YAML file if present, then env vars."""
        path = config_file or _default_config_file()
        values: dict[str, object] = {}
        if path.is_file():
            values.update(_read_yaml(path))
        values.update(_read_env())

        known = {f.name for f in fields(cls)} - {"config_file"}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys in {path}: {', '.join(unknown)}")

        for key in ("plist_path", "log_dir", "rule_file"):
            if key in values:
                values[key] = Path(str(values[key]))
        if "interfaces_requested" in values:
            values["interfaces_requested"] = parse_interfaces(
                values["interfaces_requested"]
            )
        for key in ("notifications_enabled", "keep_binary", "remove_binary"):
            if key in values:
                values[key] = parse_bool(values[key], key)
        if "command_timeout" in values:
            try:
                values["command_timeout"] = float(str(values["command_timeout"]))
            except ValueError:
                raise ConfigError("command_timeout must be a number") from None

        return cls(config_file=path, **values)


def _read_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must be a mapping")
    return {str(k).replace("-", "_"): v for k, v in data.items()}


def _read_env() -> dict[str, object]:
    env = os.environ
    values: dict[str, object] = {}

    if env.get("SPOOFDPI_PORT"):
        values["port"] = parse_port(env["SPOOFDPI_PORT"], "SPOOFDPI_PORT")
    if "SPOOFDPI_INTERFACES" in env:
        values["interfaces_requested"] = env["SPOOFDPI_INTERFACES"]
    if "SPOOFDPI_NOTIFICATIONS" in env:
        values["notifications_enabled"] = parse_bool(
            env["SPOOFDPI_NOTIFICATIONS"], "SPOOFDPI_NOTIFICATIONS"
        )
    if "SPOOFDPI_KEEP_BINARY" in env:
        values["keep_binary"] = parse_bool(
            env["SPOOFDPI_KEEP_BINARY"], "SPOOFDPI_KEEP_BINARY"
        )
    if "SPOOFDPI_REMOVE_BINARY" in env:
        values["remove_binary"] = parse_bool(
            env["SPOOFDPI_REMOVE_BINARY"], "SPOOFDPI_REMOVE_BINARY"
        )
    if env.get("SPOOFDPI_BIN"):
        values["binary_path"] = env["SPOOFDPI_BIN"]
    if env.get("SPOOFDPI_TIMEOUT"):
        values["command_timeout"] = env["SPOOFDPI_TIMEOUT"]

    return values
