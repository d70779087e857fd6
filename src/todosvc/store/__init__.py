"""
Todo persistence.

    store/
    ├── base.py     # Persistence interface and error taxonomy
    └── memory.py   # Readers-writer-locked in-memory implementation
"""

from .base import Persistence, PersistenceError, BadInput, NotFound
from .memory import MemoryPersistence

__all__ = [
    "Persistence",
    "PersistenceError",
    "BadInput",
    "NotFound",
    "MemoryPersistence",
]
