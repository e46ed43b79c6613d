"""
Unit tests for request ID middleware.

Tests that RequestIDMiddleware generates or forwards request IDs and makes
them available to handlers, log records and error responses.
"""

import uuid

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from errors.exceptions import invalid_payload
from errors.handlers import register_exception_handlers
from middleware.request_id import (
    RequestIDMiddleware,
    request_id_var,
    get_request_id,
    REQUEST_ID_HEADER,
)


@pytest.fixture
def client():
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {
            "request_id_from_state": request.state.request_id,
            "request_id_from_context": request_id_var.get(),
        }

    @app.post("/reject")
    async def reject():
        raise invalid_payload()

    return TestClient(app)


class TestRequestIDMiddleware:
    """Tests for the RequestIDMiddleware class."""

    def test_generates_request_id_when_not_provided(self, client):
        response = client.get("/echo")

        request_id = response.headers[REQUEST_ID_HEADER]
        assert str(uuid.UUID(request_id)) == request_id

    def test_uses_existing_request_id_from_header(self, client):
        response = client.get("/echo", headers={REQUEST_ID_HEADER: "device-req-1"})

        assert response.headers[REQUEST_ID_HEADER] == "device-req-1"
        assert response.json() == {
            "request_id_from_state": "device-req-1",
            "request_id_from_context": "device-req-1",
        }

    def test_empty_request_id_header_generates_new_id(self, client):
        response = client.get("/echo", headers={REQUEST_ID_HEADER: ""})

        assert response.headers[REQUEST_ID_HEADER] != ""

    def test_different_requests_get_different_ids(self, client):
        first = client.get("/echo").headers[REQUEST_ID_HEADER]
        second = client.get("/echo").headers[REQUEST_ID_HEADER]

        assert first != second

    def test_context_variable_reset_after_request(self, client):
        client.get("/echo", headers={REQUEST_ID_HEADER: "scoped-id"})

        assert get_request_id() == ""

    def test_error_response_carries_request_id(self, client):
        response = client.post("/reject", headers={REQUEST_ID_HEADER: "req-400"})

        assert response.status_code == 400
        assert response.json()["request_id"] == "req-400"
        assert response.headers[REQUEST_ID_HEADER] == "req-400"


class TestGetRequestIdFunction:

    def test_returns_current_context_value(self):
        token = request_id_var.set("ctx-id")
        try:
            assert get_request_id() == "ctx-id"
        finally:
            request_id_var.reset(token)
