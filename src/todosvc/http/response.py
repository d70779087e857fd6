"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Handlers return HTTPResponse objects; the server serializes them onto
the socket.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 201 Created\r\n                         ← status line
    Content-Type: application/json; charset=utf-8\r\n
    Location: /api/v1/todo/1\r\n
    Content-Length: 45\r\n                           ← always added
    Date: Mon, 19 Oct 2026 10:00:00 GMT\r\n           ← always added
    Server: Todo Item API\r\n                         ← always added
    \r\n
    {"id": 1, "summary": "Buy milk", "done": false}

=============================================================================
ERROR BODIES
=============================================================================

Every error helper in this module answers with the same JSON shape, so
clients only need one code path to read a failure:

    {"error": "TodoItem not found"}

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import json

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "Todo Item API"


@dataclass
class HTTPResponse:
    """
    An HTTP response waiting to be sent.

    Use ResponseBuilder or the helpers at the bottom of this module
    rather than filling the fields by hand.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a header, returning self for chaining."""
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body; strings are encoded as UTF-8."""
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize for socket.sendall().

        Content-Length, Date and Server are filled in when the handler
        did not set them.

        Args:
            server_name: Value for the Server header.

        Returns:
            Status line, headers, blank line and body as bytes.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))
        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .header("Location", "/api/v1/todo/1")
            .json(item.to_dict())
            .build())

    Every method except build() returns self.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Raw body; strings are encoded as UTF-8."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize data as the JSON body and set Content-Type.

        Args:
            data: Any JSON-serializable value.
            pretty: Indent the output (used by the debug endpoints).
        """
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def no_cache(self) -> "ResponseBuilder":
        """Forbid any cache from storing the response."""
        self._headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        self._headers["Pragma"] = "no-cache"
        self._headers["Expires"] = "0"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a UTC datetime as an RFC 7231 HTTP-date.

    Example: "Thu, 15 Jan 2026 12:30:45 GMT"

    Day and month names are spelled out by hand because strftime
    follows the process locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok([item.to_dict() for item in items])
#     return created(item.to_dict(), location="/api/v1/todo/1")
#     return not_found("TodoItem not found")
#
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = b"", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK.

    dict/list bodies become JSON, str becomes text/plain, bytes are sent
    as-is (the default empty body sends no Content-Type at all).
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def created(body: Union[str, bytes, dict, list] = "", location: Optional[str] = None) -> HTTPResponse:
    """
    201 Created, optionally pointing at the new resource.

    Args:
        body: Usually the created resource.
        location: URL of the created resource (Location header).
    """
    builder = ResponseBuilder().status(HTTPStatus.CREATED)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif body:
        builder.body(body)

    if location:
        builder.header("Location", location)

    return builder.build()


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """Any error status with the standard {"error": message} body."""
    return ResponseBuilder().status(status).json({"error": message}).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    """400 Bad Request."""
    return error_response(HTTPStatus.BAD_REQUEST, message)


def unauthorized(message: str = "Unauthorized", realm: str = "Access Required") -> HTTPResponse:
    """
    401 Unauthorized with a Basic challenge.

    The WWW-Authenticate header tells the client which scheme to use and
    which protection space (realm) the credentials are for; browsers show
    the realm in their login prompt.
    """
    return (ResponseBuilder()
        .status(HTTPStatus.UNAUTHORIZED)
        .header("WWW-Authenticate", f'Basic realm="{realm}"')
        .json({"error": message})
        .build())


def not_found(message: str = "Not Found") -> HTTPResponse:
    """404 Not Found."""
    return error_response(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 Method Not Allowed, listing the valid methods in Allow."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json({"error": "Method Not Allowed", "allowed": allowed_methods})
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500 Internal Server Error. Keep the message generic."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
