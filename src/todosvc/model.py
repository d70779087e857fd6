"""
=============================================================================
TODO ITEM MODEL
=============================================================================

The single resource this service manages.

    {"id": 1, "summary": "Buy milk", "done": false}
      ──┬──    ───────┬─────────    ─────┬─────
        │             │                  │
     assigned by    free text       completion flag
     the store

The id is an unsigned integer. Zero is reserved: it is never assigned to
a stored item, so it doubles as "no id yet" on items that have not been
created.

TodoItem is a FROZEN dataclass. The store hands the same instance to
many request threads at once; immutability means nobody can change a
stored item behind the lock's back. "Updating" an item means storing a
new value.
=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping


# Largest value an unsigned 64-bit id can hold
MAX_ID = 2 ** 64 - 1


@dataclass(frozen=True)
class TodoItem:
    """
    A todo item.

    Attributes:
        id: Store-assigned identifier (0 until created).
        summary: Free-form task description.
        done: Whether the task is complete.
    """

    id: int = 0
    summary: str = ""
    done: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON wire representation."""
        return {"id": self.id, "summary": self.summary, "done": self.done}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TodoItem":
        """
        Build an item from its decoded wire representation.

        Missing fields take their defaults. Unknown fields are ignored.
        Types are checked strictly: JSON has real booleans, so "true" or
        1 is not accepted for `done`, and a bool is not accepted as `id`.

        Args:
            data: Decoded JSON object.

        Returns:
            The parsed TodoItem.

        Raises:
            ValueError: If data is not an object or a field has the wrong type.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        item_id = data.get("id", 0)
        summary = data.get("summary", "")
        done = data.get("done", False)

        # bool is a subclass of int, reject it explicitly
        if isinstance(item_id, bool) or not isinstance(item_id, int):
            raise ValueError("id must be an integer")
        if not 0 <= item_id <= MAX_ID:
            raise ValueError("id must be an unsigned 64-bit integer")
        if not isinstance(summary, str):
            raise ValueError("summary must be a string")
        if not isinstance(done, bool):
            raise ValueError("done must be a boolean")

        return cls(id=item_id, summary=summary, done=done)
