"""
=============================================================================
PERSISTENCE INTERFACE
=============================================================================

The request layer talks to storage only through this interface:

    ┌──────────────┐        ┌─────────────────┐        ┌──────────────────┐
    │   Handlers   │ ─────► │   Persistence   │ ◄───── │ MemoryPersistence│
    │ (HTTP layer) │        │   (abstract)    │        │   (in-process)   │
    └──────────────┘        └─────────────────┘        └──────────────────┘
                                     ▲
                                     └───── a durable backend can plug in
                                            here without touching handlers

=============================================================================
ERROR TAXONOMY
=============================================================================

    PersistenceError
    ├── BadInput     caller argument violates a precondition
    │                (missing item, reserved id 0)
    └── NotFound     referenced id has no entry

Both are EXPECTED outcomes. Handlers catch them and turn them into 400 /
404 responses. Anything else escaping a store call is a bug and becomes
a 500.
=============================================================================
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..model import TodoItem


class PersistenceError(Exception):
    """Base class for errors reported by a Persistence implementation."""


class BadInput(PersistenceError):
    """Raised when a caller-supplied argument violates a precondition."""

    def __init__(self, message: str = "bad input"):
        super().__init__(message)


class NotFound(PersistenceError):
    """Raised when an operation references an id with no stored item."""

    def __init__(self, message: str = "not found"):
        super().__init__(message)


class Persistence(ABC):
    """
    Storage contract for todo items.

    Implementations must make every operation atomic with respect to the
    others: concurrent callers observe the store as if the operations
    ran one after another.
    """

    @abstractmethod
    def create_todo(self, item: Optional[TodoItem]) -> TodoItem:
        """
        Store a new item under a freshly allocated id.

        Any id carried by `item` is ignored.

        Returns:
            The stored item, carrying its assigned id.

        Raises:
            BadInput: If item is None.
        """

    @abstractmethod
    def get_all_todos(self) -> List[TodoItem]:
        """Return a snapshot of every stored item (empty list when none)."""

    @abstractmethod
    def get_todo(self, todo_id: int) -> TodoItem:
        """
        Fetch one item.

        Raises:
            NotFound: If no item has this id.
        """

    @abstractmethod
    def update_todo(self, todo_id: int, new_state: Optional[TodoItem]) -> TodoItem:
        """
        Replace the item stored at todo_id (full replace, not a merge).

        Returns:
            The stored replacement, with its id forced to todo_id.

        Raises:
            BadInput: If new_state is None.
            NotFound: If no item has this id.
        """

    @abstractmethod
    def delete_todo(self, todo_id: int) -> None:
        """
        Remove an item. Its id is never handed out again.

        Raises:
            BadInput: If todo_id is the reserved value 0.
            NotFound: If no item has this id.
        """
