"""Pydantic schemas for the trace hotspot engine.

This module defines Pydantic schemas for:
- Observed spans handed over by a span source
- Latency statistics and aggregate metrics over a snapshot of spans
- Ranked hotspots and SLA violations
- The SLA policy that drives violation checks
- Error breakdowns per method and per class

The models are plain structured data so that notifiers and narrative
analyzers can consume them without depending on the engine internals.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Severity tier of a hotspot or violation."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ViolationType(str, Enum):
    """Kind of SLA breach."""

    RESPONSE_TIME = "RESPONSE_TIME"
    PERCENTILE = "PERCENTILE"
    ERROR_RATE = "ERROR_RATE"
    SLOW_METHOD = "SLOW_METHOD"
    HIGH_ERROR_RATE = "HIGH_ERROR_RATE"


class EvaluationMode(str, Enum):
    """Which SLA checks a monitoring pass runs."""

    AGGREGATE = "aggregate"
    HOTSPOT = "hotspot"
    COMBINED = "combined"


TRACKED_PERCENTILES = (50, 75, 90, 95, 99)


class Span(BaseModel):
    """A single observed unit of traced work."""

    model_config = ConfigDict(frozen=True)

    operation_name: str = Field(description="Operation identifier as reported by the backend")
    duration_ms: float = Field(ge=0, allow_inf_nan=False, description="Duration in milliseconds")
    timestamp: datetime | None = Field(default=None, description="Start time of the span")
    trace_id: str | None = Field(default=None, description="Trace the span belongs to")
    span_id: str | None = Field(default=None, description="Unique identifier for the span")
    parent_span_id: str | None = Field(
        default=None, description="Parent span ID; absent for root spans"
    )
    status: str | None = Field(default=None, description="Result/status code of the span")
    attributes: dict[str, Any] = Field(
        default_factory=dict, description="Backend-specific attributes"
    )
    cloud_role_name: str | None = Field(default=None, description="Emitting service role")
    cloud_role_instance: str | None = Field(default=None, description="Emitting instance")

    @property
    def is_root(self) -> bool:
        return not self.parent_span_id


class LatencyStatistics(BaseModel):
    """Distribution of a set of durations."""

    count: int = Field(default=0, description="Number of samples")
    avg: float = Field(default=0.0, description="Mean duration (ms)")
    min: float = Field(default=0.0, description="Minimum duration (ms)")
    max: float = Field(default=0.0, description="Maximum duration (ms)")
    p50: float = Field(default=0.0, description="50th percentile (ms)")
    p75: float = Field(default=0.0, description="75th percentile (ms)")
    p90: float = Field(default=0.0, description="90th percentile (ms)")
    p95: float = Field(default=0.0, description="95th percentile (ms)")
    p99: float = Field(default=0.0, description="99th percentile (ms)")

    def percentile(self, percentile: int) -> float | None:
        """Returns a tracked percentile, or None if it is not tracked."""
        if percentile not in TRACKED_PERCENTILES:
            return None
        return getattr(self, f"p{percentile}")


class AggregateMetrics(BaseModel):
    """Overall statistics for one snapshot of spans."""

    total_count: int = Field(default=0, description="Number of usable spans")
    error_count: int = Field(default=0, description="Number of failed spans")
    statistics: LatencyStatistics = Field(default_factory=LatencyStatistics)

    @property
    def error_rate(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.error_count / self.total_count

    def to_dict(self) -> dict[str, Any]:
        """Flat statistics map handed to notifiers and report renderers."""
        stats = self.statistics
        return {
            "totalCount": self.total_count,
            "errorCount": self.error_count,
            "avgDuration": stats.avg,
            "minDuration": stats.min,
            "maxDuration": stats.max,
            "percentile50": stats.p50,
            "percentile75": stats.p75,
            "percentile90": stats.p90,
            "percentile95": stats.p95,
            "percentile99": stats.p99,
        }


class Hotspot(BaseModel):
    """Aggregated performance/error summary for one normalized operation."""

    operation: str = Field(description="Normalized operation, possibly with a detail suffix")
    normalized_operation: str = Field(description="Grouping key the hotspot was built from")
    avg_duration_ms: float = Field(description="Average duration (ms)")
    max_duration_ms: float = Field(description="Maximum duration (ms)")
    occurrence_count: int = Field(description="Number of spans in the group")
    error_rate: float = Field(ge=0, le=1, description="Failed spans / occurrences")
    severity: Severity = Field(description="Severity tier")
    related_operations: list[str] = Field(
        default_factory=list, description="Operations sharing a trace with this one"
    )
    recommendations: list[str] = Field(
        default_factory=list, description="Advisory recommendations"
    )


class SLAPolicy(BaseModel):
    """Thresholds defining acceptable latency and error behavior.

    Every threshold is optional. A missing threshold disables the
    corresponding check instead of failing the evaluation.
    """

    model_config = ConfigDict(frozen=True)

    critical_duration_ms: float | None = Field(default=None, ge=0)
    high_duration_ms: float | None = Field(default=None, ge=0)
    critical_error_rate: float | None = Field(default=None, ge=0, le=1)
    high_error_rate: float | None = Field(default=None, ge=0, le=1)
    percentile: Literal[50, 75, 90, 95, 99] | None = Field(
        default=None, description="Target percentile; P95 when unset"
    )
    percentile_threshold_ms: float | None = Field(default=None, ge=0)
    min_sample_size: int | None = Field(
        default=None, ge=0, description="Rate checks need more samples than this"
    )


class Violation(BaseModel):
    """A single breach of an SLA policy threshold."""

    type: ViolationType = Field(description="Kind of breach")
    severity: Severity = Field(description="Severity of the breach")
    actual_value: float = Field(description="Observed value")
    threshold: float = Field(description="Threshold that was exceeded")
    message: str = Field(description="Human-readable description")
    operation: str | None = Field(
        default=None, description="Operation concerned, for per-hotspot checks"
    )


class ErrorMethodInfo(BaseModel):
    """Breakdown of the failed spans of one normalized method."""

    method_name: str = Field(description="Normalized operation identifier")
    error_count: int = Field(description="Number of failed spans")
    error_types: dict[str, int] = Field(
        default_factory=dict, description="Occurrences per error type, e.g. 'HTTP 500'"
    )
    sample_messages: list[str] = Field(
        default_factory=list, description="Distinct error messages, at most five"
    )
    avg_duration_ms: float = Field(default=0.0, description="Average duration of the failures (ms)")
    last_error_time: datetime | None = Field(
        default=None, description="Start time of the most recent failure"
    )


class ErrorClassStatistics(BaseModel):
    """Failed spans aggregated per class."""

    class_name: str = Field(description="Fully qualified class, or 'Unknown'")
    package_name: str | None = Field(default=None, description="Package of the class")
    total_errors: int = Field(description="Number of failed spans")
    unique_methods_with_errors: int = Field(
        description="Distinct normalized operations that failed"
    )
    error_types: dict[str, int] = Field(
        default_factory=dict, description="Occurrences per error type"
    )
    avg_duration_ms: float = Field(default=0.0, description="Average duration of the failures (ms)")
