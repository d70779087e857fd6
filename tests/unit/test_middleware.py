"""
Unit tests for the middleware pipeline, access logging and recovery.
"""

import json
import logging

import pytest

from todosvc.http import HTTPRequest, HTTPStatus, ok
from todosvc.middleware import (
    Middleware,
    MiddlewarePipeline,
    LoggingMiddleware,
    RecoveryMiddleware,
    RequestLog,
)


def make_request(path: str = "/api/v1/todo", headers=None, user=None) -> HTTPRequest:
    return HTTPRequest(
        method="GET",
        path=path,
        headers=headers or {},
        client_address=("10.0.0.1", 4242),
        user=user,
    )


def hello(request: HTTPRequest):
    return ok({"hello": "world"})


def explode(request: HTTPRequest):
    raise RuntimeError("handler blew up")


class Tracer(Middleware):
    """Records when requests pass in and out."""

    def __init__(self, label, order):
        self.label = label
        self.order = order

    def __call__(self, request, next):
        self.order.append(f"{self.label} in")
        response = next(request)
        self.order.append(f"{self.label} out")
        return response


class Deny(Middleware):
    """Answers every request without calling the handler."""

    def __call__(self, request, next):
        return ok("denied")


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_order(self):
        """Test that the first added middleware is outermost."""
        order = []

        pipeline = MiddlewarePipeline().use(Tracer("a", order), Tracer("b", order))
        pipeline.wrap(hello)(make_request())

        assert order == ["a in", "b in", "b out", "a out"]
        assert [mw.label for mw in pipeline] == ["a", "b"]
        assert len(pipeline) == 2

    def test_short_circuit(self):
        """Test that a middleware may answer without calling next."""
        pipeline = MiddlewarePipeline().add(Deny())
        handler = pipeline.wrap(explode)

        assert handler(make_request()).body == b"denied"
        assert [mw.name for mw in pipeline] == ["Deny"]

    def test_empty_pipeline(self):
        """Test that no middleware leaves the handler unchanged."""
        assert MiddlewarePipeline().wrap(hello) is hello


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_generates_request_id(self):
        """Test that a fresh 8-character id is attached."""
        response = LoggingMiddleware()(make_request(), hello)

        assert len(response.headers["X-Request-ID"]) == 8

    def test_reuses_client_request_id(self):
        """Test that a client-sent id is echoed back."""
        request = make_request(headers={"x-request-id": "trace-123"})

        response = LoggingMiddleware()(request, hello)

        assert response.headers["X-Request-ID"] == "trace-123"

    def test_text_log_line(self, caplog):
        """Test the Apache-like access line with the user."""
        caplog.set_level(logging.INFO, logger="todosvc.access")

        LoggingMiddleware()(make_request(user="bob"), hello)

        line = caplog.records[-1].getMessage()
        assert line.startswith("10.0.0.1 - bob [")
        assert '"GET /api/v1/todo" 200' in line

    def test_json_log_line(self, caplog):
        """Test the JSON access format."""
        caplog.set_level(logging.INFO, logger="todosvc.access")

        LoggingMiddleware(log_format="json")(make_request(), hello)

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["status_code"] == 200
        assert entry["path"] == "/api/v1/todo"
        assert entry["user"] == "-"

    def test_skip_paths(self, caplog):
        """Test that probe paths are not logged but still get an id."""
        caplog.set_level(logging.DEBUG, logger="todosvc.access")

        response = LoggingMiddleware(skip_paths=["/debug/health/live"])(
            make_request("/debug/health/live"), hello
        )

        assert "X-Request-ID" in response.headers
        assert [r for r in caplog.records if r.name == "todosvc.access"] == []

    def test_exception_is_logged_and_reraised(self, caplog):
        """Test that failures propagate after an error line."""
        caplog.set_level(logging.ERROR, logger="todosvc.access")

        with pytest.raises(RuntimeError):
            LoggingMiddleware()(make_request(), explode)

        assert "Request failed" in caplog.records[-1].getMessage()

    def test_request_log_rounding(self):
        """Test that durations are rounded in the dict form."""
        entry = RequestLog(
            request_id="abc", method="GET", path="/", query="", client_ip="-",
            user="-", user_agent="-", status_code=200, content_length=0,
            duration_ms=1.23456, timestamp="now",
        )

        assert entry.to_dict()["duration_ms"] == 1.23


class TestRecoveryMiddleware:
    """Tests for RecoveryMiddleware."""

    def test_exception_becomes_500(self, caplog):
        """Test that an escaping exception is answered with a generic 500."""
        response = RecoveryMiddleware()(make_request(), explode)

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert json.loads(response.body) == {"error": "Internal Server Error"}
        assert b"blew up" not in response.body
        assert any("Unhandled error" in r.getMessage() for r in caplog.records)

    def test_passes_through(self):
        """Test that normal responses are untouched."""
        assert RecoveryMiddleware()(make_request(), hello).status == HTTPStatus.OK
