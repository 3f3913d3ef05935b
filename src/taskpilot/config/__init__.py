"""Configuration models and parser for taskpilot.yaml."""

from taskpilot.config.models import (
    CliSettings,
    CompletionSettings,
    TaskpilotConfig,
    TerminalSettings,
)
from taskpilot.config.parser import ConfigError, load_config

__all__ = [
    "CliSettings",
    "CompletionSettings",
    "ConfigError",
    "TaskpilotConfig",
    "TerminalSettings",
    "load_config",
]
