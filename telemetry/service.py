"""
Telemetry service for structured logging and observability.

This module provides structured JSON logging with request correlation,
optional OpenTelemetry tracing, and custom metrics recording.

Every log line is a JSON object with timestamp, level, message, logger
and request_id fields, plus whatever a caller passes as ``extra_data``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from middleware.request_id import request_id_var


class JSONFormatter(logging.Formatter):
    """
    Log formatter that outputs one JSON object per record.

    Each log entry contains:
    - timestamp: ISO 8601 formatted UTC timestamp
    - level: Log level
    - message: The log message
    - logger: Name of the logger that produced the entry
    - request_id: Correlation ID of the HTTP request being served, if any

    Additional fields can be included via the ``extra_data`` attribute
    on the log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": request_id_var.get(""),
        }

        if record.module:
            log_data["module"] = record.module
        if record.funcName and record.funcName != "<module>":
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data.update(extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_trace"] = record.stack_info

        return json.dumps(log_data, default=str)


class TelemetryService:
    """
    Centralized telemetry service for logging, metrics, and tracing.

    Attributes:
        settings: Application settings (log_level, otel_endpoint, otel_service_name)
        tracer: OpenTelemetry tracer, or None when tracing is not configured
    """

    def __init__(self, settings: Optional[Any] = None):
        self.settings = settings
        self.tracer = None
        self._logger = logging.getLogger("telemetry")
        self._setup_logging()
        self._setup_tracing()

    def _setup_logging(self) -> None:
        """Install a JSON stdout handler on the root logger."""
        log_level_str = getattr(self.settings, "log_level", None) or "INFO"
        log_level = getattr(logging, log_level_str.upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        # Remove existing handlers to avoid duplicate logs
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(log_level)
        stdout_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(stdout_handler)

        self._logger.info("Telemetry service initialized", extra={
            "extra_data": {"log_level": log_level_str}
        })

    def _setup_tracing(self) -> None:
        """Configure OpenTelemetry tracing when an OTLP endpoint is set."""
        otel_endpoint = getattr(self.settings, "otel_endpoint", None)
        if not otel_endpoint:
            self._logger.debug("OpenTelemetry endpoint not configured, tracing disabled")
            return

        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        service_name = getattr(self.settings, "otel_service_name", "safebutton-tracker")

        provider = TracerProvider(resource=Resource(attributes={SERVICE_NAME: service_name}))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otel_endpoint)))
        trace.set_tracer_provider(provider)

        self.tracer = trace.get_tracer(service_name)

        self._logger.info("OpenTelemetry tracing configured", extra={
            "extra_data": {
                "otel_endpoint": otel_endpoint,
                "service_name": service_name
            }
        })

    def record_metric(
        self,
        name: str,
        value: float,
        tags: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Record a custom metric as a DEBUG log entry.

        Args:
            name: Name of the metric
            value: Metric value
            tags: Optional tags for metric dimensions
        """
        metric_data: Dict[str, Any] = {
            "metric_name": name,
            "metric_value": value,
        }
        if tags:
            metric_data["tags"] = tags

        self._logger.debug(
            f"Metric: {name}={value}",
            extra={"extra_data": metric_data}
        )

    def create_span(self, name: str, attributes: Optional[Dict[str, Any]] = None):
        """
        Create a span for distributed tracing.

        Returns:
            A span context manager, or a no-op one if tracing is not configured
        """
        if self.tracer:
            return self.tracer.start_as_current_span(name, attributes=attributes)
        return _NoOpSpanContextManager()


class _NoOpSpanContextManager:
    """Stand-in span used when tracing is not configured."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def record_exception(self, exception: Exception) -> None:
        pass


# Global telemetry service instance
_telemetry_service: Optional[TelemetryService] = None


def get_telemetry_service() -> Optional[TelemetryService]:
    """
    Get the global telemetry service instance.

    Returns:
        The telemetry service instance, or None if not initialized
    """
    return _telemetry_service


def initialize_telemetry(settings: Optional[Any] = None) -> TelemetryService:
    """
    Initialize the global telemetry service.

    Args:
        settings: Application settings for configuration

    Returns:
        The initialized telemetry service
    """
    global _telemetry_service
    _telemetry_service = TelemetryService(settings)
    return _telemetry_service
