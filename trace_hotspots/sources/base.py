"""Span source interface.

A span source turns a query into a list of spans. Each backend (in-memory,
JSON file, Cloud Trace) implements the same protocol and exactly one is
selected at start-up from configuration.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol, runtime_checkable

from ..config import parse_time_range
from ..schema import Span
from ..tools.normalizer import normalize_operation_name


@dataclass(frozen=True)
class SpanQuery:
    """What a monitoring pass asks a span source for."""

    time_range: str = "15m"
    duration_threshold_ms: float = 0.0
    cloud_role_name: str | None = None
    package_name: str | None = None
    include_sub_packages: bool = True

    @property
    def window(self) -> timedelta:
        return parse_time_range(self.time_range)


@runtime_checkable
class SpanSource(Protocol):
    """Port for backends that produce spans."""

    name: str

    def query_spans(self, query: SpanQuery) -> list[Span]:
        """Return the spans matching the query."""
        ...


def matches_package(operation: str, package_name: str, include_sub_packages: bool) -> bool:
    """Whether an operation belongs to a package.

    ``com.acme.Orders.find`` is directly in ``com.acme``; ``com.acme.sub.X.y``
    only matches when sub-packages are included.
    """
    if not package_name:
        return True
    operation = normalize_operation_name(operation)
    prefix = package_name.rstrip(".") + "."
    if not operation.startswith(prefix):
        return False
    if include_sub_packages:
        return True
    # Remainder is Class or Class.method
    return operation[len(prefix):].count(".") <= 1


def matches_query(span: Span, query: SpanQuery, now: datetime | None = None) -> bool:
    """Applies a query to a span in Python, for backends without filtering."""
    if span.duration_ms < query.duration_threshold_ms:
        return False
    if query.cloud_role_name and span.cloud_role_name != query.cloud_role_name:
        return False
    if query.package_name and not matches_package(
        span.operation_name, query.package_name, query.include_sub_packages
    ):
        return False
    if span.timestamp is not None:
        now = now or datetime.now(timezone.utc)
        timestamp = span.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        if timestamp < now - query.window:
            return False
    return True
