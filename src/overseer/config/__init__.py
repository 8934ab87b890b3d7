"""Overseer configuration module."""

from overseer.config.loaders import deep_merge, load_policy_file, load_yaml
from overseer.config.settings import Settings, get_settings, reset_settings_cache, settings

__all__ = [
    "settings",
    "Settings",
    "get_settings",
    "reset_settings_cache",
    "load_yaml",
    "deep_merge",
    "load_policy_file",
]
