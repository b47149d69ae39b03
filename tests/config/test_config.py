"""
Tests for configuration management.

Tests config loading from:
1. Environment variables
2. YAML files
3. Combined (env overrides YAML)
"""

import os

import pytest
import yaml

from chronograph.config import Config, SnapshotConfig, StoreConfig, TimelineConfig
from chronograph.core.factory import GraphStoreFactory
from chronograph.core.graph_store import SQLiteGraphStore
from chronograph.utils.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_environ(monkeypatch):
    """Keep variables loaded from .env files out of other tests."""
    monkeypatch.setattr(os, "environ", dict(os.environ))
    for key in list(os.environ):
        if key.startswith("CHRONO_"):
            del os.environ[key]


class TestConfigDefaults:
    """Test default configuration values."""

    def test_default_config_creation(self):
        """Test creating config with defaults."""
        config = Config()

        assert config.store.backend == "sqlite"
        assert config.store.db_path == "data/chronograph.db"

        assert config.snapshot.mode == "current_state"
        assert config.snapshot.new_threshold_hours == 1.0
        assert config.snapshot.recent_threshold_hours == 24.0
        assert config.snapshot.fade_window_hours == 168.0
        assert config.snapshot.min_visibility == 0.3
        assert config.snapshot.default_edge_strength == 1.0

        assert config.timeline.tick_throttle_ms == 50.0
        assert config.timeline.snapshot_throttle_ms == 500.0
        assert config.timeline.default_window_days == 30

        assert config.logging.level == "INFO"

    def test_min_visibility_bounds(self):
        """Test visibility floor must be within [0, 1]."""
        with pytest.raises(ValueError):
            SnapshotConfig(min_visibility=1.5)


class TestConfigFromEnv:
    """Test loading configuration from environment variables."""

    def test_from_env_basic(self, monkeypatch):
        """Test loading basic config from environment."""
        monkeypatch.setenv("CHRONO_DB_PATH", "/tmp/other.db")
        monkeypatch.setenv("CHRONO_SNAPSHOT_MODE", "event_replay")
        monkeypatch.setenv("CHRONO_LOG_LEVEL", "DEBUG")

        config = Config.from_env()

        assert config.store.db_path == "/tmp/other.db"
        assert config.snapshot.mode == "event_replay"
        assert config.logging.level == "DEBUG"

    def test_from_env_with_numbers(self, monkeypatch):
        """Test loading numeric values from environment."""
        monkeypatch.setenv("CHRONO_SNAPSHOT_FADE_WINDOW_HOURS", "72")
        monkeypatch.setenv("CHRONO_TIMELINE_SNAPSHOT_THROTTLE_MS", "250")
        monkeypatch.setenv("CHRONO_TIMELINE_WINDOW_DAYS", "7")

        config = Config.from_env()

        assert config.snapshot.fade_window_hours == 72.0
        assert config.timeline.snapshot_throttle_ms == 250.0
        assert config.timeline.default_window_days == 7

    def test_from_env_with_booleans(self, monkeypatch):
        """Test loading boolean values from environment."""
        monkeypatch.setenv("CHRONO_LOG_TO_FILE", "false")
        monkeypatch.setenv("CHRONO_LOG_SERIALIZE", "0")

        config = Config.from_env()

        assert config.logging.log_to_file is False
        assert config.logging.serialize is False

    def test_from_env_empty_value_uses_default(self, monkeypatch):
        """Test that empty variables fall back to defaults."""
        monkeypatch.setenv("CHRONO_DB_PATH", "")

        config = Config.from_env()

        assert config.store.db_path == "data/chronograph.db"

    def test_from_env_with_dotenv_file(self, tmp_path):
        """Test loading from .env file."""
        env_file = tmp_path / ".env.test"
        env_file.write_text(
            """
CHRONO_DB_PATH=/data/from-file.db
CHRONO_SNAPSHOT_MIN_VISIBILITY=0.2
"""
        )

        config = Config.from_env(env_file=str(env_file))

        assert config.store.db_path == "/data/from-file.db"
        assert config.snapshot.min_visibility == 0.2


class TestConfigFromYAML:
    """Test loading configuration from YAML files."""

    def test_from_yaml_partial_config(self, tmp_path):
        """Test loading partial config with defaults."""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(
            yaml.dump(
                {
                    "store": {"db_path": "/srv/graph.db"},
                    "timeline": {"snapshot_throttle_ms": 1000},
                }
            )
        )

        config = Config.from_yaml(str(yaml_file))

        assert config.store.db_path == "/srv/graph.db"
        assert config.store.backend == "sqlite"  # default
        assert config.timeline.snapshot_throttle_ms == 1000
        assert config.timeline.tick_throttle_ms == 50.0  # default

    def test_from_yaml_empty_file(self, tmp_path):
        """Test an empty YAML file gives defaults."""
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")

        assert Config.from_yaml(yaml_file) == Config()

    def test_from_yaml_file_not_found(self):
        """Test loading from non-existent file."""
        with pytest.raises(FileNotFoundError):
            Config.from_yaml("/nonexistent/config.yaml")

    def test_from_yaml_invalid_yaml(self, tmp_path):
        """Test loading invalid YAML file."""
        yaml_file = tmp_path / "bad.yaml"
        yaml_file.write_text("invalid: yaml: content: [")

        with pytest.raises(yaml.YAMLError):
            Config.from_yaml(str(yaml_file))


class TestConfigEnvOrYAML:
    """Test combined loading (env > YAML > defaults)."""

    def test_env_overrides_yaml(self, monkeypatch, tmp_path):
        """Test env section overrides the YAML section."""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(yaml.dump({"store": {"db_path": "/yaml/graph.db"}}))
        monkeypatch.setenv("CHRONO_DB_PATH", "/env/graph.db")

        config = Config.from_env_or_yaml(yaml_path=str(yaml_file))

        assert config.store.db_path == "/env/graph.db"

    def test_yaml_used_when_env_unset(self, tmp_path):
        """Test YAML values apply when no env override exists."""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(yaml.dump({"snapshot": {"mode": "event_replay"}}))

        config = Config.from_env_or_yaml(yaml_path=str(yaml_file))

        assert config.snapshot.mode == "event_replay"

    def test_missing_yaml_falls_back_to_env(self, monkeypatch):
        """Test a missing YAML path is ignored."""
        monkeypatch.setenv("CHRONO_TIMELINE_WINDOW_DAYS", "14")

        config = Config.from_env_or_yaml(yaml_path="/nonexistent/config.yaml")

        assert config.timeline == TimelineConfig(default_window_days=14)


class TestGraphStoreFactory:
    """Test building stores from configuration."""

    def test_create_sqlite_store(self, tmp_path):
        """Test the sqlite backend."""
        config = Config(store=StoreConfig(db_path=str(tmp_path / "nested" / "graph.db")))

        store = GraphStoreFactory.create(config)

        assert isinstance(store, SQLiteGraphStore)
        assert store.db_path == str(tmp_path / "nested" / "graph.db")
        assert (tmp_path / "nested").is_dir()

    def test_unsupported_backend(self):
        """Test unknown backends are rejected."""
        config = Config(store=StoreConfig(backend="neo4j"))

        with pytest.raises(ConfigurationError) as exc_info:
            GraphStoreFactory.create(config)

        assert exc_info.value.context["backend"] == "neo4j"
