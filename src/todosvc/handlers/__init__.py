"""
Request handlers.

    handlers/
    ├── todos.py    # The /api/v1/todo resource
    ├── health.py   # Liveness / readiness / aggregate health
    └── debug.py    # /debug/vars
"""

from .todos import TodoHandlers, decode_item, parse_id
from .health import HealthHandler, HealthStatus, store_check
from .debug import DebugVars

__all__ = [
    "TodoHandlers",
    "decode_item",
    "parse_id",
    "HealthHandler",
    "HealthStatus",
    "store_check",
    "DebugVars",
]
