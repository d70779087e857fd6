"""
Unit tests for HTTP response building.
"""

import json
from datetime import datetime, timezone

from todosvc.http.response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    created,
    not_found,
    bad_request,
    unauthorized,
    method_not_allowed,
    internal_error,
    format_http_date,
)
from todosvc.http.status_codes import HTTPStatus


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        assert HTTPResponse(status=HTTPStatus.OK).status_line == "HTTP/1.1 200 OK"
        assert HTTPResponse(status=HTTPStatus.NOT_FOUND).status_line == "HTTP/1.1 404 Not Found"

    def test_to_bytes_includes_headers(self):
        """Test that to_bytes includes all headers."""
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"X-Custom": "value"},
            body=b"test",
        )

        result = response.to_bytes()

        assert result.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"X-Custom: value\r\n" in result
        assert b"Content-Length: 4\r\n" in result
        assert b"Server: Todo Item API\r\n" in result
        assert result.endswith(b"\r\n\r\ntest")

    def test_to_bytes_server_name(self):
        """Test that the Server header follows the given name."""
        result = HTTPResponse().to_bytes(server_name="todo-debug")

        assert b"Server: todo-debug\r\n" in result

    def test_to_bytes_empty_body(self):
        """Test that an empty body still carries Content-Length: 0."""
        assert b"Content-Length: 0\r\n" in HTTPResponse().to_bytes()

    def test_set_header_chaining(self):
        """Test method chaining for headers."""
        response = (HTTPResponse()
            .set_header("X-One", "1")
            .set_header("X-Two", "2"))

        assert response.headers == {"X-One": "1", "X-Two": "2"}

    def test_set_body_encodes_str(self):
        """Test that string bodies are UTF-8 encoded."""
        assert HTTPResponse().set_body("héllo").body == "héllo".encode("utf-8")


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_status(self):
        """Test setting status."""
        response = ResponseBuilder().status(HTTPStatus.CREATED).build()
        assert response.status == HTTPStatus.CREATED

    def test_json_body(self):
        """Test JSON body."""
        response = ResponseBuilder().json({"id": 1, "summary": "Buy milk"}).build()

        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert json.loads(response.body) == {"id": 1, "summary": "Buy milk"}

    def test_json_pretty(self):
        """Test indented JSON output."""
        response = ResponseBuilder().json({"a": 1}, pretty=True).build()

        assert response.body == b'{\n  "a": 1\n}'

    def test_text_body(self):
        """Test plain text body."""
        response = ResponseBuilder().text("hello").build()

        assert response.body == b"hello"
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"

    def test_cache_headers(self):
        """Test no-cache headers."""
        response = ResponseBuilder().no_cache().build()

        assert "no-store" in response.headers["Cache-Control"]
        assert response.headers["Pragma"] == "no-cache"

    def test_close_connection(self):
        """Test the Connection: close header."""
        assert ResponseBuilder().close_connection().build().headers["Connection"] == "close"

    def test_method_chaining(self):
        """Test that builder calls chain."""
        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .header("Location", "/api/v1/todo/1")
            .headers({"X-Request-ID": "abc"})
            .json({"id": 1})
            .build())

        assert response.status == HTTPStatus.CREATED
        assert response.headers["Location"] == "/api/v1/todo/1"
        assert response.headers["X-Request-ID"] == "abc"


class TestConvenienceFunctions:
    """Tests for the response helpers."""

    def test_ok_json(self):
        """Test ok() with a list body."""
        response = ok([{"id": 1}])

        assert response.status == HTTPStatus.OK
        assert json.loads(response.body) == [{"id": 1}]

    def test_ok_empty(self):
        """Test that ok() defaults to an empty body without Content-Type."""
        response = ok()

        assert response.body == b""
        assert "Content-Type" not in response.headers

    def test_created(self):
        """Test created() with a Location."""
        response = created({"id": 7}, location="/api/v1/todo/7")

        assert response.status == HTTPStatus.CREATED
        assert response.headers["Location"] == "/api/v1/todo/7"
        assert json.loads(response.body) == {"id": 7}

    def test_error_helpers_share_shape(self):
        """Test that every error helper answers {"error": message}."""
        cases = [
            (bad_request("Invalid ID format"), HTTPStatus.BAD_REQUEST, "Invalid ID format"),
            (not_found("TodoItem not found"), HTTPStatus.NOT_FOUND, "TodoItem not found"),
            (internal_error(), HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error"),
        ]

        for response, status, message in cases:
            assert response.status == status
            assert json.loads(response.body) == {"error": message}

    def test_unauthorized_challenge(self):
        """Test the Basic challenge on 401."""
        response = unauthorized("Unauthorized", realm="todo-api")

        assert response.status == HTTPStatus.UNAUTHORIZED
        assert response.headers["WWW-Authenticate"] == 'Basic realm="todo-api"'

    def test_method_not_allowed(self):
        """Test the Allow header on 405."""
        response = method_not_allowed(["GET", "POST"])

        assert response.headers["Allow"] == "GET, POST"
        assert json.loads(response.body)["allowed"] == ["GET", "POST"]


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_status_phrases(self):
        """Test that statuses have phrases."""
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.UNAUTHORIZED.phrase == "Unauthorized"
        assert HTTPStatus.SERVICE_UNAVAILABLE.phrase == "Service Unavailable"

    def test_status_categories(self):
        """Test status category helpers."""
        assert HTTPStatus.CONTINUE.is_informational
        assert HTTPStatus.OK.is_success
        assert HTTPStatus.FOUND.is_redirect
        assert HTTPStatus.NOT_FOUND.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error
        assert HTTPStatus.NOT_FOUND.is_error
        assert not HTTPStatus.CREATED.is_error


class TestFormatHTTPDate:
    """Tests for HTTP date formatting."""

    def test_format(self):
        """Test HTTP date format."""
        dt = datetime(2026, 1, 15, 12, 30, 45, tzinfo=timezone.utc)

        assert format_http_date(dt) == "Thu, 15 Jan 2026 12:30:45 GMT"
