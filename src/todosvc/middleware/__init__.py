"""
Request middleware.

    middleware/
    ├── base.py       # Middleware ABC, MiddlewarePipeline
    ├── logging.py    # Access log + X-Request-ID
    ├── recovery.py   # Exceptions → 500
    └── auth.py       # HTTP Basic authentication
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog
from .recovery import RecoveryMiddleware
from .auth import BasicAuthMiddleware, parse_basic_auth

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
    "RecoveryMiddleware",
    "BasicAuthMiddleware",
    "parse_basic_auth",
]
