"""
Panic recovery: any exception escaping the handlers becomes a logged 500.

    LoggingMiddleware
    └── RecoveryMiddleware   ← exception stops here, traceback logged
        └── handler raises

Sitting inside the access logger means the access log records the 500
instead of a "Request failed" line.
"""

import logging

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, internal_error


logger = logging.getLogger(__name__)


class RecoveryMiddleware(Middleware):
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        try:
            return next(request)
        except Exception:
            logger.exception(f"Unhandled error in {request.method} {request.path}")
            return internal_error()
