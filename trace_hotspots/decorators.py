"""Decorators for engine entry points with OpenTelemetry instrumentation."""

import functools
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.trace import Status, StatusCode

logger = logging.getLogger(__name__)

# Initialize OTel instruments
tracer = trace.get_tracer("trace_hotspots")
meter = metrics.get_meter("trace_hotspots")

execution_duration = meter.create_histogram(
    name="trace_hotspots.execution_duration",
    description="Duration of engine entry point executions",
    unit="ms",
)
execution_count = meter.create_counter(
    name="trace_hotspots.execution_count",
    description="Total number of engine entry point calls",
    unit="1",
)


def _describe_args(func: Callable[..., Any], args: Any, kwargs: Any) -> str:
    try:
        bound = inspect.signature(func).bind(*args, **kwargs)
        bound.apply_defaults()
    except TypeError:
        return f"args={args}, kwargs={kwargs}"

    parts = []
    for k, v in bound.arguments.items():
        # Collections of spans are summarized by size
        if isinstance(v, (list, tuple)):
            parts.append(f"{k}=<{len(v)} items>")
        else:
            parts.append(f"{k}={repr(v)[:200]}")
    return ", ".join(parts)


def _summarize_result(result: Any) -> str:
    if isinstance(result, (list, tuple)):
        return f"<{len(result)} items>"
    result_str = repr(result)
    if len(result_str) > 1000:
        result_str = result_str[:1000] + "... (truncated)"
    return result_str


def instrumented(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator for engine entry points.

    This decorator provides:
    - OTel Spans for every execution
    - OTel Metrics (count and duration)
    - Standardized Logging of args and results/errors
    - Error handling (errors are logged and recorded before re-raising)

    Example:
        @instrumented
        def detect_hotspots(spans: list[Span]) -> list[Hotspot]:
            ...
    """
    name = func.__name__

    def _finish(success: bool, start_time: float) -> None:
        duration_ms = (time.time() - start_time) * 1000
        attributes = {"code.function": name, "success": str(success).lower()}
        execution_duration.record(duration_ms, attributes)
        execution_count.add(1, attributes)

    def _fail(span: trace.Span, e: Exception, start_time: float) -> None:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"❌ Failed: '{name}' | Duration: {duration_ms:.2f}ms | Error: {e}",
            exc_info=True,
        )
        span.record_exception(e)
        span.set_status(Status(StatusCode.ERROR, str(e)))

    @functools.wraps(func)
    async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        success = True

        with tracer.start_as_current_span(name) as span:
            span.set_attribute("code.function", name)
            logger.debug(f"Call: '{name}' | Args: {_describe_args(func, args, kwargs)}")
            try:
                result = await func(*args, **kwargs)
                logger.debug(f"Result: '{name}' | {_summarize_result(result)}")
                return result
            except Exception as e:
                success = False
                _fail(span, e, start_time)
                raise
            finally:
                _finish(success, start_time)

    @functools.wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        success = True

        with tracer.start_as_current_span(name) as span:
            span.set_attribute("code.function", name)
            logger.debug(f"Call: '{name}' | Args: {_describe_args(func, args, kwargs)}")
            try:
                result = func(*args, **kwargs)
                logger.debug(f"Result: '{name}' | {_summarize_result(result)}")
                return result
            except Exception as e:
                success = False
                _fail(span, e, start_time)
                raise
            finally:
                _finish(success, start_time)

    if inspect.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper
