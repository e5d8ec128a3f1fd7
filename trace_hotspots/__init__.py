"""Trace Hotspots - hotspot detection and SLA monitoring over trace spans."""

from . import sources, telemetry, tools
from .config import AlertTarget, MonitorSettings, load_settings
from .monitor import LoggingNotifier, SlaMonitor

__all__ = [
    "AlertTarget",
    "LoggingNotifier",
    "MonitorSettings",
    "SlaMonitor",
    "load_settings",
    "sources",
    "telemetry",
    "tools",
]
