"""Configuration loading with YAML, environment override, and secret file support."""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import ValidationError

from hwguard.config.settings import HwGuardSettings

log = structlog.get_logger()

ENV_PREFIX = "HWGUARD_"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


_config: Optional[HwGuardSettings] = None
_config_lock = threading.Lock()


def resolve_file_secrets() -> Dict[str, str]:
    """Resolve the _FILE suffix pattern from environment.

    Scans environment for variables matching HWGUARD_*_FILE, reads the
    file contents, and returns a dict of the base variable names to their
    values.

    Example:
        HWGUARD_HELPER_COMMAND_FILE=/run/secrets/helper
        -> Returns {"HELPER_COMMAND": "<file contents>"}
    """
    secrets: Dict[str, str] = {}
    suffix = "_FILE"

    for key, filepath in os.environ.items():
        if key.startswith(ENV_PREFIX) and key.endswith(suffix):
            base_name = key[len(ENV_PREFIX) : -len(suffix)]
            path = Path(filepath)
            try:
                if path.exists():
                    secrets[base_name] = path.read_text().strip()
                else:
                    log.warning(
                        "secret_file_not_found",
                        env_var=key,
                        path=filepath,
                    )
            except PermissionError:
                raise ConfigurationError(
                    f"Cannot read secret file '{filepath}' specified by {key}: permission denied"
                )
            except OSError as e:
                raise ConfigurationError(
                    f"Error reading secret file '{filepath}' specified by {key}: {e}"
                )

    return secrets


def load_yaml_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file if specified.

    Args:
        config_path: Path to YAML config file. If None, checks CONFIG_PATH env var.

    Returns:
        Dict of configuration values from YAML, or empty dict if no file.
    """
    path = config_path or os.environ.get("CONFIG_PATH")

    if not path:
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {path}\n"
            "Ensure CONFIG_PATH points to a valid YAML file, or remove it to use environment variables only."
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}")
    except PermissionError:
        raise ConfigurationError(f"Cannot read configuration file {path}: permission denied")


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Format Pydantic validation errors into user-friendly messages."""
    messages: List[str] = []
    for error in errors:
        loc = ".".join(str(part) for part in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        input_val = error.get("input")

        if not loc:
            messages.append(f"Configuration error: {msg}")
        elif input_val is not None and not isinstance(input_val, dict):
            messages.append(f"Configuration error: '{loc}' {msg}, got: {input_val}")
        else:
            hint = f"Check {ENV_PREFIX}{loc.upper()} or '{loc}:' in the config file."
            messages.append(f"Configuration error: '{loc}' {msg}. {hint}")

    return messages


def load_config(config_path: Optional[str] = None) -> HwGuardSettings:
    """Load and validate configuration.

    Args:
        config_path: Optional path to YAML config file (sets CONFIG_PATH env).

    Returns:
        Validated HwGuardSettings instance.

    Raises:
        ConfigurationError: If configuration file cannot be read.
        SystemExit: If validation fails (exits with code 1 after printing errors).
    """
    global _config

    if config_path:
        os.environ["CONFIG_PATH"] = config_path

    # Surface unreadable YAML here; the settings source swallows errors
    _ = load_yaml_config()

    for key, value in resolve_file_secrets().items():
        env_key = f"{ENV_PREFIX}{key}"
        if env_key not in os.environ:
            os.environ[env_key] = value

    try:
        settings = HwGuardSettings()
    except ValidationError as e:
        for msg in format_validation_errors(e.errors()):
            print(msg, file=sys.stderr)
        sys.exit(1)

    with _config_lock:
        _config = settings
    return settings


def get_config() -> HwGuardSettings:
    """Get the current configuration.

    Raises:
        ConfigurationError: If configuration has not been loaded.
    """
    with _config_lock:
        if _config is None:
            raise ConfigurationError("Configuration not loaded. Call load_config() first.")
        return _config


def reload_config() -> HwGuardSettings:
    """Reload configuration from disk.

    Used by the SIGHUP handler. Only settings read on demand (logging,
    timeouts for new commands) pick up the change; the live thermal
    policy is never overwritten by a reload.
    """
    global _config
    with _config_lock:
        _config = None
    return load_config()
