"""
=============================================================================
NETWORKING AND CONCURRENCY PRIMITIVES
=============================================================================

    core/
    ├── socket_server.py   # Listening socket and accept loop
    ├── connection.py      # Buffered request reading per client socket
    ├── thread_pool.py     # Bounded worker pool for connections
    └── rwlock.py          # Readers-writer lock guarding the todo store

    accept ──► Connection ──► ThreadPool.submit ──► worker reads, handles,
                                                    writes, loops while
                                                    keep-alive
=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool
from .rwlock import ReadWriteLock


__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "ReadWriteLock",
]
