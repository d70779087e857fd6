"""
Unit tests for the readers-writer lock.
"""

import threading
import time

import pytest

from todosvc.core.rwlock import ReadWriteLock


def wait_for(predicate, timeout: float = 2.0) -> bool:
    """Poll until predicate() is true."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    def test_readers_share(self):
        """Test that several readers hold the lock at once."""
        lock = ReadWriteLock()
        lock.acquire_read()
        lock.acquire_read()

        assert lock.readers == 2

        lock.release_read()
        lock.release_read()
        assert lock.readers == 0

    def test_writer_is_exclusive(self):
        """Test that a reader waits for an active writer."""
        lock = ReadWriteLock()
        acquired = threading.Event()

        lock.acquire_write()

        def reader():
            with lock.read_locked():
                acquired.set()

        t = threading.Thread(target=reader)
        t.start()

        assert not acquired.wait(0.1)
        lock.release_write()
        assert acquired.wait(2.0)
        t.join(timeout=2.0)

    def test_writer_waits_for_readers(self):
        """Test that a writer waits until the last reader leaves."""
        lock = ReadWriteLock()
        acquired = threading.Event()

        lock.acquire_read()

        def writer():
            with lock.write_locked():
                acquired.set()

        t = threading.Thread(target=writer)
        t.start()

        assert wait_for(lambda: lock.waiting_writers == 1)
        assert not acquired.is_set()
        lock.release_read()
        assert acquired.wait(2.0)
        t.join(timeout=2.0)

    def test_writer_preference(self):
        """Test that new readers queue behind a waiting writer."""
        lock = ReadWriteLock()
        order = []

        lock.acquire_read()

        def writer():
            with lock.write_locked():
                order.append("writer")

        def late_reader():
            with lock.read_locked():
                order.append("reader")

        w = threading.Thread(target=writer)
        w.start()
        assert wait_for(lambda: lock.waiting_writers == 1)

        r = threading.Thread(target=late_reader)
        r.start()
        time.sleep(0.1)
        assert order == []

        lock.release_read()
        w.join(timeout=2.0)
        r.join(timeout=2.0)

        assert order == ["writer", "reader"]

    def test_interrupted_writer_releases_readers(self, monkeypatch):
        """Test that a writer abandoning its wait lets queued readers in."""
        lock = ReadWriteLock()
        real_wait = lock._cond.wait
        abort_writer = threading.Event()
        errors = []
        reader_in = threading.Event()

        def wait(timeout=None):
            if threading.current_thread().name != "writer":
                return real_wait(timeout)
            while not abort_writer.is_set():
                real_wait(0.05)
            raise KeyboardInterrupt

        monkeypatch.setattr(lock._cond, "wait", wait)
        lock.acquire_read()

        def writer():
            try:
                lock.acquire_write()
            except KeyboardInterrupt:
                errors.append("interrupted")

        def late_reader():
            with lock.read_locked():
                reader_in.set()

        w = threading.Thread(target=writer, name="writer")
        w.start()
        assert wait_for(lambda: lock.waiting_writers == 1)

        r = threading.Thread(target=late_reader)
        r.start()
        time.sleep(0.1)
        assert not reader_in.is_set()

        abort_writer.set()
        w.join(timeout=2.0)

        # The first reader still holds its lock; only the writer's exit wakes r
        assert reader_in.wait(2.0)
        assert errors == ["interrupted"]
        assert lock.waiting_writers == 0
        assert not lock.write_locked_now

        lock.release_read()
        r.join(timeout=2.0)

    def test_context_managers_release_on_error(self):
        """Test that exceptions inside the block release the lock."""
        lock = ReadWriteLock()

        with pytest.raises(KeyError):
            with lock.write_locked():
                raise KeyError("boom")

        assert not lock.write_locked_now
        with lock.read_locked():
            assert lock.readers == 1

    def test_release_without_acquire(self):
        """Test that unbalanced releases are refused."""
        lock = ReadWriteLock()

        with pytest.raises(RuntimeError):
            lock.release_read()
        with pytest.raises(RuntimeError):
            lock.release_write()
