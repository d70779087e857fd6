"""
=============================================================================
IN-MEMORY PERSISTENCE
=============================================================================

Holds every todo item in a dict inside the process. Nothing survives a
restart.

=============================================================================
SHARED STATE AND ITS LOCK
=============================================================================

Exactly two pieces of mutable state, both behind ONE ReadWriteLock:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  MemoryPersistence                                                   │
    │                                                                      │
    │    _lock ─── ReadWriteLock                                           │
    │      │                                                               │
    │      ├── _data     {1: TodoItem(...), 3: TodoItem(...)}              │
    │      └── _next_id  4                                                 │
    │                                                                      │
    │    get_todo / get_all_todos        ──► read_locked()   (shared)     │
    │    create / update / delete        ──► write_locked()  (exclusive)  │
    └─────────────────────────────────────────────────────────────────────┘

Allocating an id and inserting the item happen under the same write
lock, so two concurrent creates can never receive the same id and a
reader never sees an id that has been allocated but not stored.

=============================================================================
ID ALLOCATION
=============================================================================

    create  → id 1      _next_id: 1 → 2
    create  → id 2      _next_id: 2 → 3
    delete 2
    create  → id 3      (2 is retired forever, never reissued)

=============================================================================
"""

import dataclasses
import logging
from typing import Dict, List, Optional

from ..core.rwlock import ReadWriteLock
from ..model import TodoItem
from .base import BadInput, NotFound, Persistence


logger = logging.getLogger(__name__)


class MemoryPersistence(Persistence):
    """
    Concurrency-safe in-memory todo store.

    Each instance is fully independent, so tests can create as many
    isolated stores as they like.

    Usage:
        store = MemoryPersistence()
        item = store.create_todo(TodoItem(summary="Write tests"))
        store.get_todo(item.id)
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._data: Dict[int, TodoItem] = {}
        self._next_id = 1

    # =========================================================================
    # MUTATIONS (exclusive lock)
    # =========================================================================

    def create_todo(self, item: Optional[TodoItem]) -> TodoItem:
        if item is None:
            raise BadInput()

        with self._lock.write_locked():
            stored = dataclasses.replace(item, id=self._next_id)
            self._next_id += 1
            self._data[stored.id] = stored

        logger.debug(f"Created todo {stored.id}")
        return stored

    def update_todo(self, todo_id: int, new_state: Optional[TodoItem]) -> TodoItem:
        if new_state is None:
            raise BadInput()

        with self._lock.write_locked():
            if todo_id not in self._data:
                raise NotFound()
            stored = dataclasses.replace(new_state, id=todo_id)
            self._data[todo_id] = stored

        logger.debug(f"Updated todo {todo_id}")
        return stored

    def delete_todo(self, todo_id: int) -> None:
        if todo_id == 0:
            raise BadInput()

        with self._lock.write_locked():
            if todo_id not in self._data:
                raise NotFound()
            del self._data[todo_id]

        logger.debug(f"Deleted todo {todo_id}")

    # =========================================================================
    # READS (shared lock)
    # =========================================================================

    def get_all_todos(self) -> List[TodoItem]:
        with self._lock.read_locked():
            return list(self._data.values())

    def get_todo(self, todo_id: int) -> TodoItem:
        with self._lock.read_locked():
            try:
                return self._data[todo_id]
            except KeyError:
                raise NotFound() from None

    def __len__(self) -> int:
        """Number of stored items."""
        with self._lock.read_locked():
            return len(self._data)
