"""Pydantic settings models for hwguard configuration."""

from __future__ import annotations

import os
from typing import Any, Dict, Literal, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from hwguard.models.policy import (
    DELAY_MAX,
    DELAY_MIN,
    THRESHOLD_MAX,
    THRESHOLD_MIN,
    ThresholdPolicy,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads values from a YAML file.

    The YAML file path is determined by the CONFIG_PATH environment variable.
    """

    def get_field_value(
        self, field: Any, field_name: str
    ) -> Tuple[Any, str, bool]:
        """Get field value from YAML config."""
        yaml_config = self._load_yaml_config()
        field_value = yaml_config.get(field_name)
        return field_value, field_name, False

    def _load_yaml_config(self) -> Dict[str, Any]:
        """Load YAML configuration file."""
        config_path = os.environ.get("CONFIG_PATH")
        if not config_path:
            return {}

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except (FileNotFoundError, yaml.YAMLError, PermissionError):
            # Errors will be handled by loader.py
            return {}

    def __call__(self) -> Dict[str, Any]:
        """Return the YAML config values."""
        return self._load_yaml_config()


class HwGuardSettings(BaseSettings):
    """hwguard configuration settings.

    Configuration is loaded in the following precedence (highest to lowest):
    1. Environment variables (HWGUARD_ prefix)
    2. Secrets files (_FILE pattern, applied via env)
    3. YAML configuration file (via CONFIG_PATH)
    4. Default values

    The guard_* and *_threshold fields only seed the in-memory policy at
    startup; runtime changes made over the API are not written back.
    """

    model_config = SettingsConfigDict(
        env_prefix="HWGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API server
    host: str = Field(
        default="127.0.0.1",
        description="Address the HTTP API binds to",
    )
    port: int = Field(
        default=3005,
        description="Port the HTTP API listens on",
        ge=1,
        le=65535,
    )

    # Polling
    poll_interval: float = Field(
        default=3.0,
        description="Seconds between sensor polls",
        gt=0,
    )
    sensor_cache_ttl: float = Field(
        default=2.5,
        description="Seconds a resolved temperature reading is reused",
        ge=0,
    )
    sensor_timeout: float = Field(
        default=15.0,
        description="Seconds a single temperature resolver may take",
        gt=0,
    )
    helper_command: Optional[str] = Field(
        default=None,
        description="Command printing {\"cpu_temp\", \"gpu_temp\", \"mb_temp\"} JSON",
    )
    nvidia_smi_enabled: bool = Field(
        default=True,
        description="Query nvidia-smi for GPU temperature and inventory",
    )

    # Shutdown mechanism
    shutdown_platform: Literal["auto", "windows", "posix"] = Field(
        default="auto",
        description="Which shutdown command syntax to use",
    )
    shutdown_dry_run: bool = Field(
        default=False,
        description="Log shutdown commands instead of executing them",
    )
    shutdown_timeout: float = Field(
        default=10.0,
        description="Seconds the shutdown/reboot command may take",
        gt=0,
    )
    cancel_timeout: float = Field(
        default=5.0,
        description="Seconds the cancel command may take",
        gt=0,
    )
    power_api_enabled: bool = Field(
        default=True,
        description="Allow manual shutdown/reboot/cancel via POST /api/power",
    )

    # Initial thermal guard policy
    guard_enabled: bool = Field(
        default=False,
        description="Arm the thermal guard at startup",
    )
    cpu_threshold: float = Field(
        default=80.0,
        ge=THRESHOLD_MIN,
        le=THRESHOLD_MAX,
        description="CPU shutdown threshold in Celsius",
    )
    gpu_threshold: float = Field(
        default=85.0,
        ge=THRESHOLD_MIN,
        le=THRESHOLD_MAX,
        description="GPU shutdown threshold in Celsius",
    )
    mb_threshold: float = Field(
        default=75.0,
        ge=THRESHOLD_MIN,
        le=THRESHOLD_MAX,
        description="Motherboard shutdown threshold in Celsius",
    )
    shutdown_delay: int = Field(
        default=60,
        ge=DELAY_MIN,
        le=DELAY_MAX,
        description="Grace period in seconds before the OS shuts down",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format: json (production) or text (development)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to set precedence.

        Order (first = highest priority):
        1. init_settings (constructor arguments - used by tests)
        2. env_settings (environment variables with HWGUARD_ prefix)
        3. dotenv_settings (.env file)
        4. yaml_settings (CONFIG_PATH YAML file)
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}
        normalized = v.upper()
        if normalized == "WARN":
            normalized = "WARNING"
        if normalized not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: DEBUG, INFO, WARNING, ERROR"
            )
        return normalized

    @field_validator("helper_command")
    @classmethod
    def validate_helper_command(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank helper command as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def validate_cache_ttl(self) -> "HwGuardSettings":
        """The reading cache must expire before the next poll is due."""
        if self.sensor_cache_ttl >= self.poll_interval:
            raise ValueError("sensor_cache_ttl must be shorter than poll_interval")
        return self

    def initial_policy(self) -> ThresholdPolicy:
        """Build the startup thermal policy from these settings."""
        return ThresholdPolicy(
            enabled=self.guard_enabled,
            cpu_threshold=self.cpu_threshold,
            gpu_threshold=self.gpu_threshold,
            mb_threshold=self.mb_threshold,
            shutdown_delay=self.shutdown_delay,
        )
