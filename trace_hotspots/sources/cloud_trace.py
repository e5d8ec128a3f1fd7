"""Span source backed by the Google Cloud Trace API."""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Any

from google.cloud import trace_v1

from ..exceptions import ConfigurationError, SpanSourceError
from ..schema import Span
from ..telemetry import get_meter, get_tracer, log_tool_call
from ..tools.spans import usable_spans
from .base import SpanQuery, matches_query

logger = logging.getLogger(__name__)

# Telemetry setup
tracer = get_tracer(__name__)
meter = get_meter(__name__)

query_duration = meter.create_histogram(
    name="trace_hotspots.source.query_duration",
    description="Duration of span source queries",
    unit="ms",
)

STATUS_LABELS = ("/http/status_code", "http.status_code", "http.response.status_code")
ERROR_LABELS = ("error", "/error/message", "exception.message")
SERVICE_LABELS = ("service.name", "g.co/gae/app/module")


def _get_project_id(project_id: str | None = None) -> str:
    """Resolve the GCP project ID from the argument or the environment."""
    project_id = (
        project_id
        or os.environ.get("TRACE_PROJECT_ID")
        or os.environ.get("GOOGLE_CLOUD_PROJECT")
    )
    if not project_id:
        raise ConfigurationError(
            "cloud_trace backend needs project_id, TRACE_PROJECT_ID or GOOGLE_CLOUD_PROJECT"
        )
    return project_id


def build_trace_filter(query: SpanQuery) -> str:
    """Cloud Trace filter narrowing the listing to the queried package."""
    terms = []
    if query.package_name:
        terms.append(f"span:{query.package_name}")
    if query.cloud_role_name:
        terms.append(f"service.name:{query.cloud_role_name}")
    return " ".join(terms)


def convert_trace_span(trace_id: str, span_proto: Any) -> dict[str, Any]:
    """Maps a Cloud Trace v1 span onto the Span field layout."""
    labels = dict(span_proto.labels)
    start = span_proto.start_time
    end = span_proto.end_time
    duration_ms = (end.timestamp() - start.timestamp()) * 1000

    status = next((str(labels[k]) for k in STATUS_LABELS if labels.get(k)), None)
    attributes: dict[str, Any] = dict(labels)
    if status is None and any(labels.get(k) for k in ERROR_LABELS):
        attributes.setdefault("success", "False")

    parent = span_proto.parent_span_id
    return {
        "operation_name": span_proto.name,
        "duration_ms": duration_ms,
        "timestamp": start,
        "trace_id": trace_id,
        "span_id": str(span_proto.span_id),
        "parent_span_id": str(parent) if parent else None,
        "status": status,
        "attributes": attributes,
        "cloud_role_name": next((labels[k] for k in SERVICE_LABELS if labels.get(k)), None),
    }


class CloudTraceSpanSource:
    """Lists complete traces from Cloud Trace and flattens them into spans."""

    name = "cloud_trace"

    def __init__(
        self,
        project_id: str | None = None,
        page_size: int = 100,
        max_traces: int = 1000,
        client: Any = None,
    ):
        self.project_id = _get_project_id(project_id)
        self.page_size = page_size
        self.max_traces = max_traces
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = trace_v1.TraceServiceClient()
        return self._client

    def query_spans(self, query: SpanQuery) -> list[Span]:
        start_time = time.time()
        success = True

        with tracer.start_as_current_span("cloud_trace.query_spans") as span:
            span.set_attribute("trace_hotspots.project_id", self.project_id)
            log_tool_call(logger, "cloud_trace.query_spans", query=query)

            now = datetime.now(timezone.utc)
            request = trace_v1.ListTracesRequest(
                project_id=self.project_id,
                start_time=now - query.window,
                end_time=now,
                page_size=self.page_size,
                filter=build_trace_filter(query),
                view=trace_v1.ListTracesRequest.ViewType.COMPLETE,
            )

            try:
                records = []
                for count, trace_obj in enumerate(self.client.list_traces(request=request)):
                    if count >= self.max_traces:
                        break
                    records.extend(
                        convert_trace_span(trace_obj.trace_id, s) for s in trace_obj.spans
                    )
            except Exception as e:
                success = False
                span.record_exception(e)
                logger.error(f"Cloud Trace query failed: {e}")
                raise SpanSourceError(
                    f"Failed to list traces: {e}", backend=self.name
                ) from e
            finally:
                query_duration.record(
                    (time.time() - start_time) * 1000,
                    {"backend": self.name, "success": str(success).lower()},
                )

            spans = [s for s in usable_spans(records) if matches_query(s, query, now)]
            span.set_attribute("trace_hotspots.span_count", len(spans))
            logger.info(f"Cloud Trace returned {len(spans)} matching spans")
            return spans
