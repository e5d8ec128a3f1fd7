"""Rule-based recommendations for hotspots.

Rules are evaluated in order and every matching rule contributes its
messages; nothing is de-duplicated across rules.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from ..schema import Hotspot
from .operations import MethodInfo, extract_method_info


@dataclass(frozen=True)
class HotspotContext:
    """Metrics a recommendation rule can look at."""

    operation: str
    avg_duration_ms: float
    max_duration_ms: float
    error_rate: float
    method_info: MethodInfo = field(default_factory=MethodInfo)

    @classmethod
    def for_operation(
        cls, operation: str, avg_duration_ms: float, max_duration_ms: float, error_rate: float
    ) -> "HotspotContext":
        return cls(
            operation=operation,
            avg_duration_ms=avg_duration_ms,
            max_duration_ms=max_duration_ms,
            error_rate=error_rate,
            method_info=extract_method_info(operation),
        )


@dataclass(frozen=True)
class RecommendationRule:
    """A named predicate and the messages it produces when it matches."""

    name: str
    applies: Callable[[HotspotContext], bool]
    produce: Callable[[HotspotContext], list[str]]


def _critical_performance(ctx: HotspotContext) -> list[str]:
    messages = ["Critical performance issue - operation taking > 5 seconds on average"]
    info = ctx.method_info
    if info.is_valid and info.method_name:
        messages.append(
            f"Profile method {info.class_name}.{info.method_name} to identify bottlenecks"
        )
    return messages


def _is_data_store_access(ctx: HotspotContext) -> bool:
    op = ctx.operation.lower()
    return "database" in op or "repository" in op or "findall" in op


RECOMMENDATION_RULES: tuple[RecommendationRule, ...] = (
    RecommendationRule(
        name="critical_performance",
        applies=lambda ctx: ctx.avg_duration_ms > 5000,
        produce=_critical_performance,
    ),
    RecommendationRule(
        name="significant_delay",
        applies=lambda ctx: 2000 < ctx.avg_duration_ms <= 5000,
        produce=lambda ctx: ["Significant delay detected - consider optimization"],
    ),
    RecommendationRule(
        name="high_variance",
        applies=lambda ctx: ctx.max_duration_ms > ctx.avg_duration_ms * 3,
        produce=lambda ctx: [
            "High variance in execution time - investigate environmental factors",
            "Consider implementing timeout and retry mechanisms",
        ],
    ),
    RecommendationRule(
        name="high_error_rate",
        applies=lambda ctx: ctx.error_rate > 0.10,
        produce=lambda ctx: [
            f"High error rate ({ctx.error_rate * 100:.1f}%) - review error handling"
        ],
    ),
    RecommendationRule(
        name="data_store_access",
        applies=_is_data_store_access,
        produce=lambda ctx: [
            "Database operation detected - check query performance and indexes",
            "Consider implementing pagination for findAll operations",
        ],
    ),
    RecommendationRule(
        name="startup_path",
        applies=lambda ctx: ctx.method_info.method_name == "main",
        produce=lambda ctx: [
            "Application startup is slow - review initialization logic",
            "Consider lazy loading of components",
        ],
    ),
    RecommendationRule(
        name="outbound_http_client",
        applies=lambda ctx: "restTemplate" in ctx.operation,
        produce=lambda ctx: [
            "HTTP client operation - check network latency and timeouts",
            "Consider implementing connection pooling",
        ],
    ),
    RecommendationRule(
        name="http_endpoint",
        applies=lambda ctx: ctx.operation.startswith(("GET ", "POST ")),
        produce=lambda ctx: [
            "HTTP endpoint - consider caching for GET requests",
            "Monitor external service dependencies",
        ],
    ),
)


def generate_recommendations(
    ctx: HotspotContext, rules: tuple[RecommendationRule, ...] = RECOMMENDATION_RULES
) -> list[str]:
    """Runs every rule in order and concatenates the messages of the matches."""
    recommendations: list[str] = []
    for rule in rules:
        if rule.applies(ctx):
            recommendations.extend(rule.produce(ctx))
    return recommendations


def default_recommendations(hotspot: Hotspot) -> list[str]:
    """Fallback advice used when no narrative analysis is available."""
    recommendations = []

    if hotspot.avg_duration_ms > 5000:
        recommendations.append("Consider implementing caching to reduce response time")
        recommendations.append("Review and optimize database queries in this method")
    elif hotspot.avg_duration_ms > 2000:
        recommendations.append("Analyze method for optimization opportunities")
        recommendations.append("Consider adding database indexes if applicable")

    if hotspot.error_rate > 0.1:
        recommendations.append("Implement retry logic with exponential backoff")
        recommendations.append("Add circuit breaker pattern to prevent cascading failures")

    if hotspot.occurrence_count > 100:
        recommendations.append("This is a hot path - prioritize optimization efforts")

    if not recommendations:
        recommendations.append("Review method implementation for performance improvements")
        recommendations.append("Consider profiling to identify bottlenecks")

    return recommendations


_ACTION_WORDS = ("consider", "implement", "optimize", "add", "use")
_LIST_MARKER = re.compile(r"^(\d+\.|-|•)")


def extract_recommendations(analysis: str | None, limit: int = 3) -> list[str]:
    """Pulls actionable lines out of narrative analysis text.

    Numbered items, bullets and lines containing an action word qualify;
    the list marker is stripped and lines of 10 characters or fewer are
    ignored.
    """
    recommendations: list[str] = []
    if not analysis:
        return recommendations

    for raw_line in analysis.split("\n"):
        line = raw_line.strip()
        lowered = line.lower()
        if re.match(r"^\d+\.", line) or line.startswith(("-", "•")) or any(
            word in lowered for word in _ACTION_WORDS
        ):
            recommendation = _LIST_MARKER.sub("", line, count=1).strip()
            if len(recommendation) > 10:
                recommendations.append(recommendation)
                if len(recommendations) >= limit:
                    break

    return recommendations
