"""Configuration package."""

from autosave.config.settings import (
    AutosaveSettings,
    ConfigError,
    FireflySettings,
    Settings,
    load_settings,
)

__all__ = [
    "AutosaveSettings",
    "ConfigError",
    "FireflySettings",
    "Settings",
    "load_settings",
]
