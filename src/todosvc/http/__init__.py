"""
=============================================================================
HTTP LAYER
=============================================================================

Everything between "a complete request arrived as bytes" and "these
bytes go back on the socket":

    bytes ──► RequestParser ──► HTTPRequest
                                    │
                                    ▼
                                 Router ──► handler
                                    │
                                    ▼
    bytes ◄── to_bytes() ◄──── HTTPResponse

    http/
    ├── status_codes.py   # HTTPStatus enum
    ├── request.py        # HTTPRequest, RequestParser, HTTPParseError
    ├── response.py       # HTTPResponse, ResponseBuilder, helpers
    └── router.py         # Router with groups and group middleware
=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    DEFAULT_SERVER_NAME,
    ok,
    created,
    error_response,
    bad_request,
    unauthorized,
    not_found,
    method_not_allowed,
    internal_error,
)
from .router import Router, Route, RouteMatch, Handler
from .status_codes import HTTPStatus


__all__ = [
    # Request
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response
    "HTTPResponse",
    "ResponseBuilder",
    "DEFAULT_SERVER_NAME",
    "ok",
    "created",
    "error_response",
    "bad_request",
    "unauthorized",
    "not_found",
    "method_not_allowed",
    "internal_error",

    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "Handler",

    # Status codes
    "HTTPStatus",
]
