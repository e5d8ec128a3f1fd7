"""Shared test fixtures for trace hotspot tests."""

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock

import pytest

from trace_hotspots.schema import Span

# ============================================================================
# Helper Functions
# ============================================================================


def generate_trace_id() -> str:
    """Generate a random 128-bit trace ID as hex string."""
    return uuid.uuid4().hex


def generate_span_id() -> str:
    """Generate a random 64-bit span ID as hex string."""
    return uuid.uuid4().hex[:16]


BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# Span Fixtures
# ============================================================================


@pytest.fixture
def base_time() -> datetime:
    """Fixed reference time used as 'now' by sources and trackers."""
    return BASE_TIME


@pytest.fixture
def make_span() -> Callable[..., Span]:
    """Factory for spans with sensible defaults."""

    def _make(
        operation_name: str = "com.acme.orders.OrderService.findAll",
        duration_ms: float = 100.0,
        offset_seconds: int = -60,
        **overrides: Any,
    ) -> Span:
        fields: dict[str, Any] = {
            "operation_name": operation_name,
            "duration_ms": duration_ms,
            "timestamp": BASE_TIME + timedelta(seconds=offset_seconds),
            "trace_id": generate_trace_id(),
            "span_id": generate_span_id(),
            "status": "200",
        }
        fields.update(overrides)
        return Span(**fields)

    return _make


@pytest.fixture
def foo_spans(make_span) -> list[Span]:
    """Three svc.Foo spans, the slowest one failed."""
    return [
        make_span("svc.Foo", 1000),
        make_span("svc.Foo", 6000),
        make_span("svc.Foo", 11000, status="500"),
    ]


@pytest.fixture
def sample_span_dicts() -> list[dict[str, Any]]:
    """Decoded-JSON spans of one trace, including a malformed entry."""
    trace_id = generate_trace_id()
    return [
        {
            "operation_name": "GET /api/orders",
            "duration_ms": 1200,
            "timestamp": "2024-05-01T11:59:00Z",
            "trace_id": trace_id,
            "span_id": "root",
            "status": "200",
        },
        {
            "operation_name": "com.acme.orders.OrderService.findAll",
            "duration_ms": 900,
            "timestamp": "2024-05-01T11:59:00.100Z",
            "trace_id": trace_id,
            "span_id": "child-1",
            "parent_span_id": "root",
            "status": "200",
        },
        {
            "operation_name": "com.acme.orders.OrderRepository.findAll",
            "duration_ms": 700,
            "timestamp": "2024-05-01T11:59:00.200Z",
            "trace_id": trace_id,
            "span_id": "child-2",
            "parent_span_id": "child-1",
            "status": "200",
        },
        {"operation_name": "broken", "duration_ms": "not-a-number"},
    ]


@pytest.fixture
def mock_trace_client():
    """Mock Cloud Trace API client."""
    from google.cloud import trace_v1

    return MagicMock(spec=trace_v1.TraceServiceClient)
