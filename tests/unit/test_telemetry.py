"""
Unit tests for structured logging and the telemetry service.
"""

import json
import logging

import pytest

from middleware.request_id import request_id_var
from telemetry.service import JSONFormatter, TelemetryService


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="ingestion.service",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_formats_core_fields(self):
        data = json.loads(JSONFormatter().format(_record("Received location from d1: 1.0,2.0")))

        assert data["level"] == "INFO"
        assert data["message"] == "Received location from d1: 1.0,2.0"
        assert data["logger"] == "ingestion.service"
        assert data["timestamp"].endswith("Z")
        assert data["request_id"] == ""

    def test_includes_extra_data(self):
        record = _record(extra_data={"reading_id": "abc", "viewers": 2})

        data = json.loads(JSONFormatter().format(record))

        assert data["reading_id"] == "abc"
        assert data["viewers"] == 2

    def test_includes_current_request_id(self):
        token = request_id_var.set("req-42")
        try:
            data = json.loads(JSONFormatter().format(_record()))
        finally:
            request_id_var.reset(token)

        assert data["request_id"] == "req-42"


class TestTelemetryService:

    @pytest.fixture
    def telemetry(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        service = TelemetryService()
        yield service
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

    def test_installs_json_handler(self, telemetry):
        json_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h.formatter, JSONFormatter)
        ]

        assert len(json_handlers) == 1

    def test_tracing_disabled_without_endpoint(self, telemetry):
        assert telemetry.tracer is None

        with telemetry.create_span("reading_store.append", {"device_id": "d1"}) as span:
            span.set_attribute("k", "v")

    def test_span_does_not_swallow_exceptions(self, telemetry):
        with pytest.raises(RuntimeError):
            with telemetry.create_span("reading_store.append"):
                raise RuntimeError("boom")
