"""
Unit tests for the in-memory persistence.
"""

import threading

import pytest

from todosvc.model import TodoItem
from todosvc.store import MemoryPersistence, BadInput, NotFound, PersistenceError


class TestCreate:
    """Tests for create_todo."""

    def test_assigns_sequential_ids(self, store: MemoryPersistence):
        """Test that ids start at 1 and increase by one."""
        first = store.create_todo(TodoItem(summary="one"))
        second = store.create_todo(TodoItem(summary="two"))

        assert first == TodoItem(id=1, summary="one", done=False)
        assert second.id == 2

    def test_ignores_supplied_id(self, store: MemoryPersistence):
        """Test that a client-chosen id is overwritten."""
        stored = store.create_todo(TodoItem(id=99, summary="x", done=True))

        assert stored == TodoItem(id=1, summary="x", done=True)
        with pytest.raises(NotFound):
            store.get_todo(99)

    def test_none_is_bad_input(self, store: MemoryPersistence):
        """Test that creating nothing is rejected without consuming an id."""
        with pytest.raises(BadInput):
            store.create_todo(None)

        assert store.create_todo(TodoItem()).id == 1

    def test_errors_share_base_class(self):
        """Test the error taxonomy."""
        assert issubclass(BadInput, PersistenceError)
        assert issubclass(NotFound, PersistenceError)


class TestRead:
    """Tests for get_todo and get_all_todos."""

    def test_get_all_empty(self, store: MemoryPersistence):
        """Test that an empty store lists nothing."""
        assert store.get_all_todos() == []

    def test_get_all_returns_snapshot(self, store: MemoryPersistence):
        """Test that the returned list is detached from the store."""
        store.create_todo(TodoItem(summary="a"))
        snapshot = store.get_all_todos()
        store.create_todo(TodoItem(summary="b"))

        assert len(snapshot) == 1
        assert len(store.get_all_todos()) == 2

    def test_get_existing(self, store: MemoryPersistence):
        """Test fetching a stored item."""
        created = store.create_todo(TodoItem(summary="read me"))

        assert store.get_todo(created.id) == created

    def test_get_missing(self, store: MemoryPersistence):
        """Test that unknown ids raise NotFound."""
        with pytest.raises(NotFound):
            store.get_todo(1)

    def test_get_zero(self, store: MemoryPersistence):
        """Test that the reserved id is simply not found."""
        with pytest.raises(NotFound):
            store.get_todo(0)


class TestUpdate:
    """Tests for update_todo."""

    def test_full_replace(self, store: MemoryPersistence):
        """Test that an update replaces every field but the id."""
        created = store.create_todo(TodoItem(summary="old", done=False))

        updated = store.update_todo(created.id, TodoItem(id=42, summary="new", done=True))

        assert updated == TodoItem(id=created.id, summary="new", done=True)
        assert store.get_todo(created.id) == updated

    def test_missing(self, store: MemoryPersistence):
        """Test that updating an unknown id raises NotFound."""
        with pytest.raises(NotFound):
            store.update_todo(5, TodoItem(summary="x"))

    def test_none_is_bad_input(self, store: MemoryPersistence):
        """Test that a missing new state is BadInput even for unknown ids."""
        with pytest.raises(BadInput):
            store.update_todo(5, None)


class TestDelete:
    """Tests for delete_todo."""

    def test_delete(self, store: MemoryPersistence):
        """Test that a deleted item is gone."""
        created = store.create_todo(TodoItem(summary="bye"))

        store.delete_todo(created.id)

        with pytest.raises(NotFound):
            store.get_todo(created.id)
        assert len(store) == 0

    def test_delete_missing(self, store: MemoryPersistence):
        """Test that deleting an unknown id raises NotFound."""
        with pytest.raises(NotFound):
            store.delete_todo(3)

    def test_delete_zero(self, store: MemoryPersistence):
        """Test that the reserved id is BadInput."""
        with pytest.raises(BadInput):
            store.delete_todo(0)

    def test_ids_never_reused(self, store: MemoryPersistence):
        """Test that deleted ids are retired."""
        store.create_todo(TodoItem(summary="1"))
        second = store.create_todo(TodoItem(summary="2"))
        store.delete_todo(second.id)

        assert store.create_todo(TodoItem(summary="3")).id == 3


class TestScenario:
    """End-to-end store behaviour."""

    def test_lifecycle(self, store: MemoryPersistence):
        """Test create, list, update, delete in sequence."""
        a = store.create_todo(TodoItem(summary="a"))
        b = store.create_todo(TodoItem(summary="b"))
        store.update_todo(a.id, TodoItem(summary="a2", done=True))
        store.delete_todo(b.id)

        assert store.get_all_todos() == [TodoItem(id=1, summary="a2", done=True)]

    def test_stores_are_independent(self):
        """Test that two stores share no state."""
        first, second = MemoryPersistence(), MemoryPersistence()
        first.create_todo(TodoItem(summary="only here"))

        assert second.get_all_todos() == []
        assert second.create_todo(TodoItem()).id == 1


class TestConcurrency:
    """Tests for concurrent access."""

    def test_concurrent_creates_get_unique_ids(self, store: MemoryPersistence):
        """Test that parallel creates receive exactly ids 1..N."""
        threads_count = 8
        per_thread = 50
        ids = []
        ids_lock = threading.Lock()
        start = threading.Barrier(threads_count)

        def create_many():
            start.wait()
            local = [store.create_todo(TodoItem(summary="x")).id for _ in range(per_thread)]
            with ids_lock:
                ids.extend(local)

        threads = [threading.Thread(target=create_many) for _ in range(threads_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        total = threads_count * per_thread
        assert sorted(ids) == list(range(1, total + 1))
        assert len(store) == total

    def test_readers_during_writes(self, store: MemoryPersistence):
        """Test that readers only ever see fully stored items."""
        errors = []
        done = threading.Event()

        def write():
            for i in range(200):
                store.create_todo(TodoItem(summary=f"item {i}"))
            done.set()

        def read():
            while not done.is_set():
                for item in store.get_all_todos():
                    if item.summary != f"item {item.id - 1}":
                        errors.append(item)

        readers = [threading.Thread(target=read) for _ in range(3)]
        writer = threading.Thread(target=write)
        for t in readers:
            t.start()
        writer.start()
        writer.join(timeout=10)
        for t in readers:
            t.join(timeout=10)

        assert errors == []
        assert len(store) == 200
