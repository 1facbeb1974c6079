"""Awwal utilities."""

from .config import Settings, load_settings, load_config_file, DEFAULT_CONFIG_PATH

__all__ = [
    "Settings",
    "load_settings",
    "load_config_file",
    "DEFAULT_CONFIG_PATH",
]
