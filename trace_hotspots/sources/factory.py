"""Selects the span source backend from settings."""

import logging
from collections.abc import Callable
from typing import Any

from ..config import MonitorSettings
from ..exceptions import ConfigurationError
from .base import SpanSource

logger = logging.getLogger(__name__)


def _memory(options: dict[str, Any]) -> SpanSource:
    from .memory import InMemorySpanSource

    return InMemorySpanSource(options.get("spans", []))


def _json_file(options: dict[str, Any]) -> SpanSource:
    from .json_file import JsonFileSpanSource

    path = options.get("path")
    if not path:
        raise ConfigurationError("json_file backend requires backend_options.path")
    return JsonFileSpanSource(path)


def _cloud_trace(options: dict[str, Any]) -> SpanSource:
    from .cloud_trace import CloudTraceSpanSource

    return CloudTraceSpanSource(
        project_id=options.get("project_id"),
        page_size=int(options.get("page_size", 100)),
        max_traces=int(options.get("max_traces", 1000)),
    )


BACKENDS: dict[str, Callable[[dict[str, Any]], SpanSource]] = {
    "memory": _memory,
    "json_file": _json_file,
    "cloud_trace": _cloud_trace,
}


def create_span_source(settings: MonitorSettings) -> SpanSource:
    """Builds the configured span source.

    Raises:
        ConfigurationError: If the backend is unknown or misconfigured.
    """
    builder = BACKENDS.get(settings.backend)
    if builder is None:
        raise ConfigurationError(
            f"Unknown span source backend '{settings.backend}'. "
            f"Available: {', '.join(sorted(BACKENDS))}"
        )
    source = builder(settings.backend_options)
    logger.info(f"Using span source backend: {settings.backend}")
    return source
