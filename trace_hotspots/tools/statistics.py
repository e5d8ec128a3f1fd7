"""Latency statistics over spans and durations."""

import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any

import numpy as np

from ..decorators import instrumented
from ..schema import AggregateMetrics, LatencyStatistics, Span
from .spans import is_successful, usable_spans

logger = logging.getLogger(__name__)


def calculate_percentile(sorted_values: Sequence[float], percentile: float) -> float:
    """Percentile with linear interpolation between the closest ranks.

    position = (percentile / 100) * (n - 1); when the position falls between
    two samples the result is interpolated by its fractional part.

    Args:
        sorted_values: Samples in ascending order.
        percentile: Percentile in [0, 100].

    Returns:
        The percentile value, 0.0 for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return sorted_values[0]

    position = (percentile / 100.0) * (len(sorted_values) - 1)
    lower = math.floor(position)
    upper = math.ceil(position)

    if lower == upper:
        return sorted_values[lower]

    lower_value = sorted_values[lower]
    upper_value = sorted_values[upper]
    fraction = position - lower
    return lower_value + fraction * (upper_value - lower_value)


def aggregate_durations(durations: Iterable[float]) -> LatencyStatistics:
    """Computes count, mean, min/max and tracked percentiles.

    An empty input yields all-zero statistics.
    """
    values = sorted(float(d) for d in durations)
    if not values:
        return LatencyStatistics()

    return LatencyStatistics(
        count=len(values),
        avg=sum(values) / len(values),
        min=values[0],
        max=values[-1],
        p50=calculate_percentile(values, 50),
        p75=calculate_percentile(values, 75),
        p90=calculate_percentile(values, 90),
        p95=calculate_percentile(values, 95),
        p99=calculate_percentile(values, 99),
    )


@instrumented
def summarize_spans(spans: Sequence[Any]) -> AggregateMetrics:
    """Builds aggregate metrics for a whole snapshot of spans.

    Malformed spans are skipped.
    """
    valid = usable_spans(spans)
    errors = sum(1 for s in valid if not is_successful(s))
    return AggregateMetrics(
        total_count=len(valid),
        error_count=errors,
        statistics=aggregate_durations(s.duration_ms for s in valid),
    )


def calculate_performance_distribution(spans: Sequence[Any]) -> dict[str, int]:
    """Counts spans per latency bucket."""
    durations = [s.duration_ms for s in usable_spans(spans)]
    under_100 = sum(1 for d in durations if d < 100)
    under_500 = sum(1 for d in durations if d < 500)
    under_1s = sum(1 for d in durations if d < 1000)
    under_5s = sum(1 for d in durations if d < 5000)

    return {
        "under100ms": under_100,
        "100to500ms": under_500 - under_100,
        "500msTo1s": under_1s - under_500,
        "1sTo5s": under_5s - under_1s,
        "over5s": len(durations) - under_5s,
    }


def analyze_hourly_trends(spans: Sequence[Any]) -> dict[str, Any]:
    """Average duration per hour of day, and the hour with the highest average.

    Spans without a timestamp are ignored.
    """
    by_hour: dict[int, list[float]] = defaultdict(list)
    for span in usable_spans(spans):
        if span.timestamp is not None:
            by_hour[span.timestamp.hour].append(span.duration_ms)

    hourly_averages = {
        hour: sum(durations) / len(durations)
        for hour, durations in sorted(by_hour.items())
    }
    trends: dict[str, Any] = {"hourlyAverages": hourly_averages}
    if hourly_averages:
        trends["peakHour"] = max(hourly_averages, key=lambda h: hourly_averages[h])
    return trends


def find_latency_outliers(
    spans: Sequence[Any], threshold_std_devs: float = 2.0
) -> list[Span]:
    """Selects spans slower than mean + k standard deviations.

    Args:
        spans: Snapshot of spans.
        threshold_std_devs: Number of standard deviations above the mean.

    Returns:
        Outlier spans, slowest first.
    """
    valid = usable_spans(spans)
    if len(valid) < 2:
        return []

    latencies = np.array([s.duration_ms for s in valid], dtype=float)
    threshold = latencies.mean() + threshold_std_devs * latencies.std()
    outliers = [s for s in valid if s.duration_ms > threshold]
    logger.debug(
        f"Latency outlier threshold {threshold:.2f}ms selected {len(outliers)} spans"
    )
    return sorted(outliers, key=lambda s: s.duration_ms, reverse=True)
