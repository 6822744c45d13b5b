"""Core configuration."""

from goalpace.core.config import Config, PomodoroSettings, get_config

__all__ = ["Config", "PomodoroSettings", "get_config"]
