"""
=============================================================================
TODOSVC - Todo Item API
=============================================================================

A small authenticated REST service managing todo items, served by a
threaded HTTP/1.1 engine written on raw sockets.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  client ── HTTP Basic ──► API server (:3000, TLS in prod)            │
    │                              │                                       │
    │                              ├── logging, recovery middleware        │
    │                              └── /api/v1 (auth) ─► /todo handlers    │
    │                                                       │              │
    │                                               MemoryPersistence      │
    │                                                       │              │
    │  operator ───────────────► debug server (:4000) ──────┘              │
    │                              /debug/vars, /debug/health              │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    todosvc/
    ├── __main__.py          # CLI entry point (python -m todosvc, todo-api)
    ├── app.py               # Wires servers, middleware and handlers
    ├── lifecycle.py         # Signals and background serving
    ├── server.py            # HTTPServer: connections → middleware → router
    ├── config.py            # ServiceConfig (TODO_* env) and ServerConfig
    ├── credentials.py       # bcrypt credential store
    ├── model.py             # TodoItem
    ├── store/               # Persistence interface and in-memory store
    ├── core/                # Sockets, connections, thread pool, rwlock
    ├── http/                # Request parsing, responses, router
    ├── middleware/          # Logging, recovery, basic auth
    └── handlers/            # Todo resource, health, debug vars

=============================================================================
QUICK START
=============================================================================

    from todosvc import HTTPServer, ServerConfig, MemoryPersistence
    from todosvc.handlers import TodoHandlers

    server = HTTPServer(ServerConfig(port=3000))
    TodoHandlers(MemoryPersistence()).register(server.group("/api/v1/todo"))
    server.serve()

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig, ServiceConfig, ConfigError
from .model import TodoItem
from .store import MemoryPersistence, Persistence, BadInput, NotFound

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "ServiceConfig",
    "ConfigError",
    "TodoItem",
    "MemoryPersistence",
    "Persistence",
    "BadInput",
    "NotFound",
    "__version__",
]
