"""Configuration for the trace hotspot monitor.

Settings are read from a JSON file whose path can be overridden via the
TRACE_HOTSPOTS_CONFIG environment variable. A few values can also be
overridden directly from the environment.
"""

import json
import logging
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError
from .schema import EvaluationMode, SLAPolicy

logger = logging.getLogger(__name__)

# Configuration file path (can be overridden via environment variable)
CONFIG_FILE_PATH = Path(os.getenv("TRACE_HOTSPOTS_CONFIG", ".trace_hotspots.json"))

_TIME_RANGE_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd])\s*$")
_TIME_RANGE_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_time_range(time_range: str) -> timedelta:
    """Converts a compact time range such as "15m" or "2h" to a timedelta.

    Raises:
        ConfigurationError: If the value is not <number><s|m|h|d>.
    """
    match = _TIME_RANGE_PATTERN.match(time_range or "")
    if not match:
        raise ConfigurationError(f"Invalid time range '{time_range}', expected e.g. '15m'")
    amount, unit = match.groups()
    return timedelta(**{_TIME_RANGE_UNITS[unit]: int(amount)})


class AlertRecipients(BaseModel):
    """Who gets notified for a target."""

    default_recipients: list[str] = Field(default_factory=list)
    critical: list[str] = Field(default_factory=list)
    sla_breach_recipients: list[str] = Field(default_factory=list)


class AlertTarget(BaseModel):
    """A monitored package/service and its SLA policy."""

    package_name: str = Field(description="Package (operation prefix) being monitored")
    project: str | None = Field(default=None, description="Display name used in alerts")
    cloud_role_name: str | None = Field(default=None, description="Service role filter")
    enabled: bool = Field(default=False, description="Whether alerting is on")
    time_range: str = Field(default="15m", description="Query window, e.g. '15m'")
    duration_threshold_ms: float = Field(
        default=1000, ge=0, description="Only spans at least this slow are queried"
    )
    include_sub_packages: bool = True
    recipients: AlertRecipients = Field(default_factory=AlertRecipients)
    sla: SLAPolicy = Field(default_factory=SLAPolicy)
    slack_channel: str | None = None

    @field_validator("time_range")
    @classmethod
    def _check_time_range(cls, value: str) -> str:
        if not _TIME_RANGE_PATTERN.match(value):
            raise ValueError(f"invalid time range '{value}'")
        return value

    @property
    def window(self) -> timedelta:
        return parse_time_range(self.time_range)

    @property
    def display_name(self) -> str:
        return self.project or self.package_name


class MonitorSettings(BaseModel):
    """Top-level monitor settings."""

    backend: str = Field(default="memory", description="Span source backend name")
    backend_options: dict[str, Any] = Field(
        default_factory=dict, description="Backend-specific options"
    )
    cooldown_minutes: float = Field(default=30, ge=0)
    max_workers: int = Field(default=1, ge=1, description="Targets checked in parallel")
    evaluation_mode: EvaluationMode = EvaluationMode.COMBINED
    analyze_top_n: int = Field(
        default=5, ge=0, description="Hotspots handed to the narrative analyzer"
    )
    targets: list[AlertTarget] = Field(default_factory=list)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.cooldown_minutes)

    def alert_enabled_targets(self) -> list[AlertTarget]:
        return [t for t in self.targets if t.enabled]


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    backend = os.getenv("TRACE_HOTSPOTS_BACKEND")
    if backend:
        data["backend"] = backend

    cooldown = os.getenv("ALERT_COOLDOWN_MINUTES")
    if cooldown:
        try:
            data["cooldown_minutes"] = float(cooldown)
        except ValueError as e:
            raise ConfigurationError(
                f"ALERT_COOLDOWN_MINUTES must be a number, got '{cooldown}'"
            ) from e
    return data


def load_settings(path: Path | str | None = None) -> MonitorSettings:
    """Loads monitor settings from a JSON file.

    Args:
        path: Settings file; defaults to CONFIG_FILE_PATH.

    Returns:
        The parsed settings. A missing file yields defaults with no targets.

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation.
    """
    config_path = Path(path) if path is not None else CONFIG_FILE_PATH
    data: dict[str, Any] = {}

    if config_path.exists():
        try:
            with open(config_path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to read settings from {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings in {config_path} must be a JSON object")
        logger.info(f"Loaded settings from {config_path}")
    else:
        logger.info(f"No settings file at {config_path}, using defaults")

    try:
        settings = MonitorSettings.model_validate(_apply_env_overrides(data))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {config_path}: {e}") from e

    logger.info(
        f"Monitor settings: backend={settings.backend}, "
        f"targets={len(settings.targets)} ({len(settings.alert_enabled_targets())} enabled), "
        f"cooldown={settings.cooldown_minutes}m"
    )
    return settings
