"""Configuration management for hwguard."""

from hwguard.config.loader import ConfigurationError, get_config, load_config, reload_config
from hwguard.config.settings import HwGuardSettings

__all__ = [
    "ConfigurationError",
    "HwGuardSettings",
    "get_config",
    "load_config",
    "reload_config",
]
