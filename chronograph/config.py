"""
Configuration for ChronoGraph.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """Graph store configuration."""

    backend: str = "sqlite"
    db_path: str = "data/chronograph.db"


class SnapshotConfig(BaseModel):
    """Snapshot reconstruction and display annotation settings."""

    mode: str = "current_state"  # current_state, event_replay
    new_threshold_hours: float = 1.0
    recent_threshold_hours: float = 24.0
    fade_window_hours: float = 168.0  # one week
    min_visibility: float = Field(default=0.3, ge=0.0, le=1.0)
    default_edge_strength: float = 1.0


class TimelineConfig(BaseModel):
    """Timeline playback configuration."""

    tick_throttle_ms: float = 50.0
    snapshot_throttle_ms: float = 500.0
    frame_interval_ms: float = 16.0
    default_window_days: int = 30
    initial_speed: float = 1.0
    event_limit: int = 1000


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            CHRONO_STORE_BACKEND: Graph store backend (sqlite)
            CHRONO_DB_PATH: SQLite database path
            CHRONO_SNAPSHOT_MODE: current_state or event_replay
            CHRONO_SNAPSHOT_FADE_WINDOW_HOURS: Hours until visibility reaches its floor
            CHRONO_SNAPSHOT_MIN_VISIBILITY: Visibility floor
            CHRONO_TIMELINE_TICK_THROTTLE_MS: Minimum real ms between playback ticks
            CHRONO_TIMELINE_SNAPSHOT_THROTTLE_MS: Minimum ms between snapshot fetches
            CHRONO_TIMELINE_WINDOW_DAYS: Default timeline window
            CHRONO_LOG_LEVEL: Log level
            CHRONO_LOG_TO_FILE: Enable file logging
            CHRONO_LOG_DIR: Log directory
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            if value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            store=StoreConfig(
                backend=get_env("CHRONO_STORE_BACKEND", "sqlite"),
                db_path=get_env("CHRONO_DB_PATH", "data/chronograph.db"),
            ),
            snapshot=SnapshotConfig(
                mode=get_env("CHRONO_SNAPSHOT_MODE", "current_state"),
                new_threshold_hours=get_env("CHRONO_SNAPSHOT_NEW_HOURS", 1.0),
                recent_threshold_hours=get_env("CHRONO_SNAPSHOT_RECENT_HOURS", 24.0),
                fade_window_hours=get_env("CHRONO_SNAPSHOT_FADE_WINDOW_HOURS", 168.0),
                min_visibility=get_env("CHRONO_SNAPSHOT_MIN_VISIBILITY", 0.3),
                default_edge_strength=get_env("CHRONO_SNAPSHOT_EDGE_STRENGTH", 1.0),
            ),
            timeline=TimelineConfig(
                tick_throttle_ms=get_env("CHRONO_TIMELINE_TICK_THROTTLE_MS", 50.0),
                snapshot_throttle_ms=get_env("CHRONO_TIMELINE_SNAPSHOT_THROTTLE_MS", 500.0),
                frame_interval_ms=get_env("CHRONO_TIMELINE_FRAME_INTERVAL_MS", 16.0),
                default_window_days=get_env("CHRONO_TIMELINE_WINDOW_DAYS", 30),
                initial_speed=get_env("CHRONO_TIMELINE_INITIAL_SPEED", 1.0),
                event_limit=get_env("CHRONO_TIMELINE_EVENT_LIMIT", 1000),
            ),
            logging=LoggingConfig(
                level=get_env("CHRONO_LOG_LEVEL", "INFO"),
                log_to_file=get_env("CHRONO_LOG_TO_FILE", True),
                log_dir=get_env("CHRONO_LOG_DIR", "logs"),
                file_rotation=get_env("CHRONO_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("CHRONO_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("CHRONO_LOG_COMPRESSION", "zip"),
                serialize=get_env("CHRONO_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f)

        return cls(**(data or {}))

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        # Env sections that differ from defaults override YAML
        final_dict = {**config_dict}
        default = cls()
        for section in ("store", "snapshot", "timeline", "logging"):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
