"""Core infrastructure: configuration loading and logging setup."""

from settle.core.config import (
    LoggingSettings,
    PresetRegistry,
    RetryPresetSettings,
    SettleSettings,
    WaitPresetSettings,
    load_settings,
)
from settle.core.logging import configure_logging, configure_logging_from, get_logger

__all__ = [
    "LoggingSettings",
    "PresetRegistry",
    "RetryPresetSettings",
    "SettleSettings",
    "WaitPresetSettings",
    "configure_logging",
    "configure_logging_from",
    "get_logger",
    "load_settings",
]
