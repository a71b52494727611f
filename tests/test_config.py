"""Tests for the configuration module."""

import json
from pathlib import Path

import pytest

from statuspulse.config import (
    Config,
    ConfigError,
    PollerConfig,
    load_config,
    load_targets,
)
from statuspulse.targets import DEFAULT_TIMEOUT_MS


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for config files."""
    return tmp_path


@pytest.fixture
def valid_config_content() -> str:
    """Return a valid configuration YAML content."""
    return """targets: data/servers.config.json
status: /var/lib/statuspulse/servers.status.json

poller:
  interval: 30
  concurrency: 4
  default_timeout_ms: 2000
"""


@pytest.fixture(autouse=True)
def clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "STATUSPULSE_TARGETS",
        "STATUSPULSE_STATUS",
        "STATUSPULSE_INTERVAL",
        "STATUSPULSE_CONCURRENCY",
        "STATUSPULSE_DEFAULT_TIMEOUT_MS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestPollerConfig:
    """Tests for PollerConfig dataclass."""

    def test_defaults(self) -> None:
        config = PollerConfig()
        assert config.interval == 60
        assert config.concurrency == 10
        assert config.default_timeout_ms == DEFAULT_TIMEOUT_MS

    def test_rejects_short_interval(self) -> None:
        with pytest.raises(ConfigError, match="at least 5 seconds"):
            PollerConfig(interval=1)

    def test_rejects_zero_concurrency(self) -> None:
        with pytest.raises(ConfigError, match="Concurrency"):
            PollerConfig(concurrency=0)

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ConfigError, match="timeout"):
            PollerConfig(default_timeout_ms=0)


class TestConfig:
    """Tests for Config dataclass."""

    def test_defaults(self) -> None:
        config = Config()
        assert config.targets_path == "servers.config.json"
        assert config.status_path == "servers.status.json"

    def test_rejects_empty_paths(self) -> None:
        with pytest.raises(ConfigError, match="Target list path"):
            Config(targets_path="")
        with pytest.raises(ConfigError, match="snapshot path"):
            Config(status_path="")


class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_valid_config(self, config_dir: Path, valid_config_content: str) -> None:
        """Relative paths resolve against the config file's directory."""
        config_file = config_dir / "config.yaml"
        config_file.write_text(valid_config_content)

        config = load_config(str(config_file))

        assert config.targets_path == str(config_dir.resolve() / "data" / "servers.config.json")
        assert config.status_path == "/var/lib/statuspulse/servers.status.json"
        assert config.poller == PollerConfig(interval=30, concurrency=4, default_timeout_ms=2000)

    def test_empty_file_uses_defaults(self, config_dir: Path) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text("")

        config = load_config(str(config_file))

        assert config.targets_path == str(config_dir.resolve() / "servers.config.json")
        assert config.poller == PollerConfig()

    def test_missing_file(self, config_dir: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(config_dir / "missing.yaml"))

    def test_invalid_yaml(self, config_dir: Path) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text("poller: [unclosed")
        with pytest.raises(ConfigError, match="Failed to parse YAML"):
            load_config(str(config_file))

    def test_non_dict_yaml(self, config_dir: Path) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="YAML dictionary"):
            load_config(str(config_file))

    def test_poller_must_be_dict(self, config_dir: Path) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text("poller: 5\n")
        with pytest.raises(ConfigError, match="'poller' section"):
            load_config(str(config_file))

    def test_non_integer_value(self, config_dir: Path) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text("poller:\n  concurrency: lots\n")
        with pytest.raises(ConfigError, match="poller.concurrency"):
            load_config(str(config_file))

    def test_validation_errors_propagate(self, config_dir: Path) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text("poller:\n  interval: 1\n")
        with pytest.raises(ConfigError, match="interval"):
            load_config(str(config_file))


class TestEnvOverrides:
    """Tests for environment variable overrides."""

    def test_overrides_values(
        self, config_dir: Path, valid_config_content: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text(valid_config_content)
        monkeypatch.setenv("STATUSPULSE_STATUS", "/tmp/other.json")
        monkeypatch.setenv("STATUSPULSE_INTERVAL", "120")
        monkeypatch.setenv("STATUSPULSE_CONCURRENCY", "2")

        config = load_config(str(config_file))

        assert config.status_path == "/tmp/other.json"
        assert config.poller.interval == 120
        assert config.poller.concurrency == 2
        assert config.poller.default_timeout_ms == 2000

    def test_override_without_poller_section(self, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text("targets: t.json\n")
        monkeypatch.setenv("STATUSPULSE_DEFAULT_TIMEOUT_MS", "900")

        assert load_config(str(config_file)).poller.default_timeout_ms == 900

    def test_invalid_override(self, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = config_dir / "config.yaml"
        config_file.write_text("")
        monkeypatch.setenv("STATUSPULSE_INTERVAL", "soon")
        with pytest.raises(ConfigError, match="STATUSPULSE_INTERVAL"):
            load_config(str(config_file))


class TestLoadTargets:
    """Tests for load_targets."""

    def test_reads_array(self, config_dir: Path) -> None:
        path = config_dir / "servers.config.json"
        entries = [{"id": "a", "url": "http://a"}, {"id": "b", "port": 25565}]
        path.write_text(json.dumps(entries))

        assert load_targets(str(path)) == entries

    def test_missing_file(self, config_dir: Path) -> None:
        with pytest.raises(ConfigError, match="Missing target list"):
            load_targets(str(config_dir / "servers.config.json"))

    def test_invalid_json(self, config_dir: Path) -> None:
        path = config_dir / "servers.config.json"
        path.write_text("[{")
        with pytest.raises(ConfigError, match="not valid JSON"):
            load_targets(str(path))

    def test_not_an_array(self, config_dir: Path) -> None:
        path = config_dir / "servers.config.json"
        path.write_text(json.dumps({"id": "a"}))
        with pytest.raises(ConfigError, match="must be an array"):
            load_targets(str(path))
