"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes read from a client socket into an HTTPRequest.

=============================================================================
WHAT A REQUEST LOOKS LIKE ON THE WIRE
=============================================================================

    PUT /api/v1/todo/1 HTTP/1.1\r\n                ← request line
    Host: localhost:3000\r\n                        ┐
    Authorization: Basic Ym9iOmJvYg==\r\n           │ headers
    Content-Type: application/json\r\n              │
    Content-Length: 36\r\n                          ┘
    \r\n                                            ← blank line
    {"summary": "Updated", "done": true}            ← body (36 bytes)

The Connection layer has already buffered until the blank line and read
exactly Content-Length body bytes, so the parser always receives one
complete message.

=============================================================================
PARSE ERRORS CARRY A STATUS CODE
=============================================================================

    Malformed request line      → 400 Bad Request
    Unknown method              → 405 Method Not Allowed
    Bad Content-Length          → 400 Bad Request
    Bigger than the size limit  → 413 Payload Too Large
    Not HTTP/1.0 or HTTP/1.1    → 505 HTTP Version Not Supported

The server turns HTTPParseError straight into an error response and
closes the connection.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import parse_qs, urlparse, unquote
import re
import json


class HTTPParseError(Exception):
    """
    Raised when request bytes (or a request body) cannot be parsed.

    Carries the HTTP status code the client should receive.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


# Marks lazily computed values that have not been computed yet.
# None cannot be used because a JSON body may legitimately be `null`.
_UNSET: Any = object()


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, POST, PUT, DELETE, ...
        path:           Decoded path without the query string
        version:        "HTTP/1.1" or "HTTP/1.0" (drives keep-alive)
        headers:        Header dict with LOWERCASE names
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Raw body bytes (exactly Content-Length long)
        path_params:    Filled in by the router: "/todo/:id" → {"id": "7"}
        client_address: (ip, port) of the peer
        user:           Username set by the auth middleware once the
                        request's credentials have been verified
        raw:            The original bytes, for debugging

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)
    user: Optional[str] = None
    raw: bytes = field(default=b"", repr=False)

    _body_json: Any = field(default=_UNSET, repr=False, compare=False)

    # =========================================================================
    # HEADER-DERIVED PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """
        Media type from Content-Type, without parameters.

        "application/json; charset=utf-8" → "application/json"
        """
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Content-Length as an int (0 if missing or invalid)."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_json(self) -> bool:
        """Check if the body is declared as JSON."""
        return self.content_type == "application/json"

    @property
    def is_form(self) -> bool:
        """Check if the body is declared as an urlencoded form."""
        return self.content_type == "application/x-www-form-urlencoded"

    @property
    def is_keep_alive(self) -> bool:
        """
        Should the connection stay open after this request?

            HTTP/1.1: yes, unless "Connection: close"
            HTTP/1.0: no, unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    # =========================================================================
    # BODY DECODING
    # =========================================================================

    @property
    def json(self) -> Any:
        """
        The body decoded as JSON (parsed once, then cached).

        Returns:
            Decoded value, or None for an empty body.

        Raises:
            HTTPParseError: If the body is not valid UTF-8 JSON or nests
                            too deep to decode.
        """
        if self._body_json is _UNSET:
            if not self.body:
                return None
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    @property
    def form(self) -> Dict[str, list[str]]:
        """
        The body decoded as application/x-www-form-urlencoded.

        Raises:
            HTTPParseError: If the body is not valid UTF-8.
        """
        try:
            text = self.body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise HTTPParseError(f"Invalid form body: {e}")
        return parse_qs(text, keep_blank_values=True)

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> list[str]:
        """All values of a query parameter."""
        return self.query_params.get(name, [])


class RequestParser:
    """
    Parses raw HTTP/1.x request bytes into HTTPRequest objects.

        raw bytes
            │
            ├── size check ............... 413
            ├── split at \\r\\n\\r\\n ......... 400 if missing
            ├── request line ............. 400 / 405 / 505
            ├── headers (lowercased, duplicates comma-joined)
            ├── body (exactly Content-Length bytes)
            ▼
        HTTPRequest
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Largest accepted request in bytes.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw request bytes from the socket.
            client_address: Peer (ip, port), kept for logging.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {headers['content-length']}")
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        # Anything past Content-Length belongs to the next pipelined request
        body = body[:content_length]

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Split "METHOD SP URI SP VERSION" into its parts.

        Returns:
            Tuple of (method, path, query_params, version).
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse "Name: value" lines into a dict keyed by lowercase name.

        Obsolete folded continuation lines are appended to the previous
        header; repeated headers are joined with ", ".
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # Lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse a request with a one-off RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
