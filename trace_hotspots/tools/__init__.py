"""Analysis tools for the trace hotspot engine."""

from .cooldown import AlertCooldownTracker
from .errors import analyze_error_methods, error_statistics_by_class
from .hotspots import (
    calculate_time_breakdown,
    detect_hotspots,
    determine_severity,
    find_call_chains,
    find_critical_path,
    find_related_operations,
    find_slowest_spans,
    severity_weight,
)
from .normalizer import normalize_operation_name
from .operations import (
    build_detailed_operation,
    classify_operation_type,
    extract_method_info,
)
from .recommendations import (
    default_recommendations,
    extract_recommendations,
    generate_recommendations,
)
from .sla import evaluate, evaluate_aggregate, evaluate_hotspots, evaluate_violations
from .spans import is_successful
from .statistics import (
    aggregate_durations,
    analyze_hourly_trends,
    calculate_percentile,
    calculate_performance_distribution,
    find_latency_outliers,
    summarize_spans,
)

__all__ = [
    "AlertCooldownTracker",
    "aggregate_durations",
    "analyze_error_methods",
    "analyze_hourly_trends",
    "build_detailed_operation",
    "calculate_percentile",
    "calculate_performance_distribution",
    "calculate_time_breakdown",
    "classify_operation_type",
    "default_recommendations",
    # Hotspot detection
    "detect_hotspots",
    "determine_severity",
    "error_statistics_by_class",
    # SLA evaluation
    "evaluate",
    "evaluate_aggregate",
    "evaluate_hotspots",
    "evaluate_violations",
    "extract_method_info",
    "extract_recommendations",
    "find_call_chains",
    "find_critical_path",
    "find_latency_outliers",
    "find_related_operations",
    "find_slowest_spans",
    "generate_recommendations",
    "is_successful",
    "normalize_operation_name",
    "severity_weight",
    "summarize_spans",
]
