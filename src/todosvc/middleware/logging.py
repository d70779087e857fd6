"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One line per request on the "todosvc.access" logger, plus an
X-Request-ID header on every response so a client can quote the exact
request when something goes wrong.

Text (Apache-like, with the authenticated user in the identity slot):

    127.0.0.1 - bob [19/Oct/2026:10:00:00 +0000] "POST /api/v1/todo" 201 48 1.92ms a1b2c3d4

JSON (one object per line):

    {"request_id": "a1b2c3d4", "method": "POST", "path": "/api/v1/todo",
     "user": "bob", "status_code": 201, ...}

The user is only known after the auth middleware ran, which is why this
middleware reads request.user on the way OUT.
=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Optional
from dataclasses import dataclass, asdict

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("todosvc.access")

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - {self.user} [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms {self.request_id}'
        )


class LoggingMiddleware(Middleware):
    """
    Access logging and request ids.

        LoggingMiddleware(log_format="json", skip_paths=["/debug/health/live"])

    A request id sent by the client in X-Request-ID is reused; otherwise
    a fresh 8-character id is generated.
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            log_level: Level of the access log records.
            skip_paths: Paths answered without an access log line (probes).
        """
        self.log_format = log_format
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.get_header(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms) {request_id}"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id

        if request.path in self.skip_paths:
            return response

        log_entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query="&".join(
                f"{k}={v}" for k, values in request.query_params.items() for v in values
            ),
            client_ip=request.client_address[0] or "-",
            user=request.user or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())

        return response
