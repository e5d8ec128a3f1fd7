"""Tests for the Cloud Trace span source."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from google.cloud import trace_v1

from trace_hotspots.exceptions import ConfigurationError, SpanSourceError
from trace_hotspots.sources.base import SpanQuery
from trace_hotspots.sources.cloud_trace import (
    CloudTraceSpanSource,
    build_trace_filter,
    convert_trace_span,
)


def _mock_span(name, duration_ms, span_id, parent_span_id=0, labels=None, start=None):
    start = start or datetime.now(timezone.utc) - timedelta(minutes=1)
    span = MagicMock()
    span.name = name
    span.span_id = span_id
    span.parent_span_id = parent_span_id
    span.start_time = start
    span.end_time = start + timedelta(milliseconds=duration_ms)
    span.labels = labels or {}
    return span


def _mock_trace(trace_id, spans):
    trace = MagicMock()
    trace.trace_id = trace_id
    trace.spans = spans
    return trace


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("TRACE_PROJECT_ID", raising=False)
    monkeypatch.delenv("GOOGLE_CLOUD_PROJECT", raising=False)


def test_convert_trace_span():
    span = _mock_span(
        "com.acme.Orders.find",
        250,
        span_id=42,
        parent_span_id=7,
        labels={"/http/status_code": "503", "service.name": "orders"},
    )

    result = convert_trace_span("abc123", span)

    assert result["operation_name"] == "com.acme.Orders.find"
    assert result["duration_ms"] == pytest.approx(250)
    assert result["trace_id"] == "abc123"
    assert result["span_id"] == "42"
    assert result["parent_span_id"] == "7"
    assert result["status"] == "503"
    assert result["cloud_role_name"] == "orders"
    assert result["attributes"]["service.name"] == "orders"


def test_convert_root_span_with_error_label():
    span = _mock_span("root", 10, span_id=1, labels={"error": "boom"})

    result = convert_trace_span("t", span)

    assert result["parent_span_id"] is None
    assert result["status"] is None
    assert result["attributes"]["success"] == "False"


def test_build_trace_filter():
    assert build_trace_filter(SpanQuery()) == ""
    assert (
        build_trace_filter(SpanQuery(package_name="com.acme", cloud_role_name="orders"))
        == "span:com.acme service.name:orders"
    )


def test_query_spans(mock_trace_client):
    mock_trace_client.list_traces.return_value = [
        _mock_trace(
            "t1",
            [
                _mock_span("com.acme.Orders.find", 1500, span_id=1),
                _mock_span("com.acme.Orders.save", 50, span_id=2, parent_span_id=1),
                _mock_span("org.other.Thing.run", 2000, span_id=3, parent_span_id=1),
            ],
        )
    ]
    source = CloudTraceSpanSource(project_id="test-project", client=mock_trace_client)

    spans = source.query_spans(
        SpanQuery(time_range="15m", duration_threshold_ms=1000, package_name="com.acme")
    )

    assert [s.operation_name for s in spans] == ["com.acme.Orders.find"]
    request = mock_trace_client.list_traces.call_args.kwargs["request"]
    assert request.project_id == "test-project"
    assert request.filter == "span:com.acme"
    assert request.view == trace_v1.ListTracesRequest.ViewType.COMPLETE


def test_query_spans_respects_max_traces(mock_trace_client):
    mock_trace_client.list_traces.return_value = [
        _mock_trace(f"t{i}", [_mock_span("com.acme.A.b", 10, span_id=i + 1)]) for i in range(5)
    ]
    source = CloudTraceSpanSource(
        project_id="test-project", max_traces=2, client=mock_trace_client
    )

    assert len(source.query_spans(SpanQuery())) == 2


def test_query_failure_is_wrapped(mock_trace_client):
    mock_trace_client.list_traces.side_effect = RuntimeError("permission denied")
    source = CloudTraceSpanSource(project_id="test-project", client=mock_trace_client)

    with pytest.raises(SpanSourceError) as exc_info:
        source.query_spans(SpanQuery())

    assert exc_info.value.backend == "cloud_trace"
    assert "permission denied" in exc_info.value.message


def test_project_id_from_environment(monkeypatch, mock_trace_client):
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "env-project")
    source = CloudTraceSpanSource(client=mock_trace_client)
    assert source.project_id == "env-project"


def test_missing_project_id():
    with pytest.raises(ConfigurationError):
        CloudTraceSpanSource(client=MagicMock())
