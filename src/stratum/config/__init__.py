"""Stratum configuration: environment and ``.env`` backed settings."""

from stratum.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
