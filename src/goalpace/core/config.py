"""Configuration management with Pydantic and YAML support."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PomodoroSettings(BaseModel):
    """Interval durations for the focus timer, in seconds."""

    work_seconds: int = Field(default=25 * 60, gt=0)
    short_break_seconds: int = Field(default=5 * 60, gt=0)
    long_break_seconds: int = Field(default=15 * 60, gt=0)
    cycles_until_long_break: int = Field(default=4, gt=0)
    auto_start_breaks: bool = Field(default=True, description="Re-arm straight into a break")
    auto_start_work: bool = Field(default=True, description="Re-arm straight into work after a break")


class PaceConfig(BaseModel):
    """Pace assessment configuration."""

    on_pace_tolerance_hours: float = Field(
        default=0.5, ge=0, description="Slack around the ideal line still counted as on pace"
    )


class Config(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOALPACE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/goalpace")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".local/state/goalpace")
    config_dir: Path = Field(default_factory=lambda: Path.home() / ".config/goalpace")

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # How often the timer driver checks for interval completion
    poll_interval_seconds: float = Field(default=0.5, gt=0)

    pomodoro: PomodoroSettings = Field(default_factory=PomodoroSettings)
    pace: PaceConfig = Field(default_factory=PaceConfig)

    @property
    def db_path(self) -> Path:
        """Path to SQLite database."""
        return self.data_dir / "goalpace.db"

    @property
    def log_file(self) -> Path:
        """Path to the application log."""
        return self.log_dir / "goalpace.log"

    @property
    def config_file(self) -> Path:
        """Path to YAML config file."""
        return self.config_dir / "config.yaml"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.config_dir.mkdir(parents=True, exist_ok=True)

        os.chmod(self.data_dir, 0o700)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from YAML file, environment variables, and defaults.

        Priority (highest to lowest):
        1. YAML config file
        2. Environment variables
        3. Default values
        """
        config_path = config_path or cls().config_file

        yaml_config: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def save(self, config_path: Path | None = None) -> None:
        """Save current configuration to YAML file."""
        config_path = config_path or self.config_file
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        for key in ["data_dir", "log_dir", "config_dir"]:
            if key in data:
                data[key] = str(data[key])

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        os.chmod(config_path, 0o600)


@lru_cache
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.load()
