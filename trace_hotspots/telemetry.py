"""Telemetry setup for the trace hotspot engine using OpenTelemetry."""

import json
import logging
import os
import sys
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.semconv.resource import ResourceAttributes

SERVICE_NAME = "trace-hotspots"


def get_tracer(name: str) -> trace.Tracer:
    """Returns a tracer for the given module name."""
    return trace.get_tracer(name)


def get_meter(name: str) -> metrics.Meter:
    """Returns a meter for the given module name."""
    return metrics.get_meter(name)


def log_tool_call(logger: logging.Logger, func_name: str, **kwargs: Any) -> None:
    """Logs a call with arguments, truncating long values.

    Args:
        logger: The logger instance to use.
        func_name: Name of the function being called.
        **kwargs: Arguments to log.
    """
    safe_args = {}
    for k, v in kwargs.items():
        val_str = str(v)
        if len(val_str) > 200:
            safe_args[k] = val_str[:200] + "... (truncated)"
        else:
            safe_args[k] = val_str

    logger.debug(f"Call: {func_name} | Args: {safe_args}")


def setup_telemetry(level: int = logging.INFO) -> None:
    """Configures Telemetry (Trace, Metrics, Logs) for the engine.

    Configures:
    - Traces: OTLP gRPC to OTEL_EXPORTER_OTLP_ENDPOINT when set
    - Metrics: OTLP gRPC to OTEL_EXPORTER_OTLP_ENDPOINT when set
    - Logs: text or JSON to stdout depending on LOG_FORMAT

    Args:
        level: The logging level to use (default: INFO)
    """
    env_level = os.environ.get("LOG_LEVEL", "").upper()
    if env_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        level = getattr(logging, env_level)

    if os.environ.get("OTEL_SDK_DISABLED", "").lower() != "true":
        resource = Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: SERVICE_NAME,
                "service.namespace": "trace_hotspots",
            }
        )
        endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")

        if endpoint:
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )

            # -- TRACES --
            if os.environ.get("OTEL_TRACES_EXPORTER", "").lower() != "none":
                span_processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint))
                current_tracer_provider = trace.get_tracer_provider()
                if hasattr(current_tracer_provider, "add_span_processor"):
                    current_tracer_provider.add_span_processor(span_processor)
                else:
                    tracer_provider = TracerProvider(resource=resource)
                    tracer_provider.add_span_processor(span_processor)
                    trace.set_tracer_provider(tracer_provider)

            # -- METRICS --
            if os.environ.get("OTEL_METRICS_EXPORTER", "").lower() != "none":
                reader = PeriodicExportingMetricReader(
                    OTLPMetricExporter(endpoint=endpoint), export_interval_millis=60000
                )
                metrics.set_meter_provider(
                    MeterProvider(resource=resource, metric_readers=[reader])
                )
        else:
            # Local run: in-process providers, nothing exported
            if not isinstance(trace.get_tracer_provider(), TracerProvider):
                trace.set_tracer_provider(TracerProvider(resource=resource))
            if not isinstance(metrics.get_meter_provider(), MeterProvider):
                metrics.set_meter_provider(MeterProvider(resource=resource))

    _configure_logging_handlers(level)


class JsonFormatter(logging.Formatter):
    """Basic JSON log formatter with OTel correlation."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": self.formatTime(record, self.datefmt),
            "severity": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "func": record.funcName,
        }

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            log_obj["trace_id"] = format(span_context.trace_id, "032x")
            log_obj["span_id"] = format(span_context.span_id, "016x")

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def _configure_logging_handlers(level: int) -> None:
    """Internal helper to configure logging handlers."""
    log_format = os.environ.get("LOG_FORMAT", "TEXT").upper()

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "JSON":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
