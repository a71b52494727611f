"""Configuration loader with type-safe dataclasses."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .targets import DEFAULT_TIMEOUT_MS


class ConfigError(Exception):
    """Raised when configuration or the target list is invalid or cannot be loaded."""

    pass


# Minimum interval between ticks in watch mode, in seconds.
MIN_POLL_INTERVAL = 5

DEFAULT_TARGETS_PATH = "servers.config.json"
DEFAULT_STATUS_PATH = "servers.status.json"


@dataclass(frozen=True)
class PollerConfig:
    """Tunables for a tick and the watch loop."""

    interval: int = 60  # seconds between ticks in watch mode
    concurrency: int = 10  # checks in flight at once
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS  # used when a target has no positive timeoutMs

    def __post_init__(self) -> None:
        if self.interval < MIN_POLL_INTERVAL:
            raise ConfigError(f"Poll interval must be at least {MIN_POLL_INTERVAL} seconds (got {self.interval})")
        if self.concurrency < 1:
            raise ConfigError(f"Concurrency must be at least 1 (got {self.concurrency})")
        if self.default_timeout_ms < 1:
            raise ConfigError(f"Default timeout must be at least 1ms (got {self.default_timeout_ms})")


@dataclass(frozen=True)
class Config:
    """Main configuration container."""

    targets_path: str = DEFAULT_TARGETS_PATH
    status_path: str = DEFAULT_STATUS_PATH
    poller: PollerConfig = field(default_factory=PollerConfig)

    def __post_init__(self) -> None:
        if not self.targets_path:
            raise ConfigError("Target list path cannot be empty")
        if not self.status_path:
            raise ConfigError("Status snapshot path cannot be empty")


def _parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")


def _parse_poller_config(data: dict | None) -> PollerConfig:
    """Parse poller configuration section."""
    if data is None:
        return PollerConfig()
    if not isinstance(data, dict):
        raise ConfigError("'poller' section must be a dictionary")

    return PollerConfig(
        interval=_parse_int(data.get("interval", 60), "poller.interval"),
        concurrency=_parse_int(data.get("concurrency", 10), "poller.concurrency"),
        default_timeout_ms=_parse_int(data.get("default_timeout_ms", DEFAULT_TIMEOUT_MS), "poller.default_timeout_ms"),
    )


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - STATUSPULSE_TARGETS: Override targets
    - STATUSPULSE_STATUS: Override status
    - STATUSPULSE_INTERVAL: Override poller.interval
    - STATUSPULSE_CONCURRENCY: Override poller.concurrency
    - STATUSPULSE_DEFAULT_TIMEOUT_MS: Override poller.default_timeout_ms
    """
    if config_data.get("poller") is None:
        config_data["poller"] = {}

    targets = os.environ.get("STATUSPULSE_TARGETS")
    if targets is not None:
        config_data["targets"] = targets

    status = os.environ.get("STATUSPULSE_STATUS")
    if status is not None:
        config_data["status"] = status

    for env_name, key in (
        ("STATUSPULSE_INTERVAL", "interval"),
        ("STATUSPULSE_CONCURRENCY", "concurrency"),
        ("STATUSPULSE_DEFAULT_TIMEOUT_MS", "default_timeout_ms"),
    ):
        value = os.environ.get(env_name)
        if value is not None:
            if not isinstance(config_data["poller"], dict):
                raise ConfigError("'poller' section must be a dictionary")
            config_data["poller"][key] = _parse_int(value, env_name)

    return config_data


def _resolve(path_value: Any, base_dir: Path, name: str) -> str:
    if not isinstance(path_value, str) or not path_value:
        raise ConfigError(f"'{name}' must be a non-empty path")
    path = Path(path_value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def load_config(config_path: str) -> Config:
    """Load and validate configuration from a YAML file.

    Relative target/status paths are resolved against the file's directory.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    data = _apply_env_overrides(data)
    base_dir = path.resolve().parent

    return Config(
        targets_path=_resolve(data.get("targets", DEFAULT_TARGETS_PATH), base_dir, "targets"),
        status_path=_resolve(data.get("status", DEFAULT_STATUS_PATH), base_dir, "status"),
        poller=_parse_poller_config(data.get("poller")),
    )


def load_targets(targets_path: str) -> list:
    """Read the raw target list (a JSON array of target objects).

    Entries are returned as-is; normalization happens in ``targets``.

    Raises:
        ConfigError: If the file is missing, unreadable, not JSON, or not an array.
    """
    path = Path(targets_path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Missing target list: {targets_path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Target list {targets_path} is not valid JSON: {e}")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to read target list {targets_path}: {e}")

    if not isinstance(data, list):
        raise ConfigError(f"Target list {targets_path} must be an array of target objects")

    return data
