"""Configuration module - monitor configuration and access functions."""

from authwatch.common.config.settings import (
    EmailSender,
    MonitorConfig,
    SecurityActionsConfig,
    config_summary,
    get_config,
    reset_config,
)

__all__ = [
    "EmailSender",
    "MonitorConfig",
    "SecurityActionsConfig",
    "config_summary",
    "get_config",
    "reset_config",
]
