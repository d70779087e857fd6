"""
Unit tests for the worker thread pool.
"""

import threading
import time

import pytest

from todosvc.core.thread_pool import ThreadPool


@pytest.fixture
def pool():
    pool = ThreadPool(min_workers=2, max_workers=4, max_queue_size=4, idle_timeout=0.2)
    pool.start()
    yield pool
    pool.shutdown(wait=False)


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_invalid_sizes(self):
        """Test constructor validation."""
        with pytest.raises(ValueError):
            ThreadPool(min_workers=0)
        with pytest.raises(ValueError):
            ThreadPool(min_workers=4, max_workers=2)

    def test_submit_before_start(self):
        """Test that an unstarted pool refuses work."""
        with pytest.raises(RuntimeError):
            ThreadPool().submit(lambda: None)

    def test_runs_tasks(self, pool):
        """Test that submitted calls run with their arguments."""
        results = []
        done = threading.Event()

        def work(a, b=0):
            results.append(a + b)
            done.set()

        assert pool.submit(work, args=(1,), kwargs={"b": 2})
        assert done.wait(2.0)
        assert results == [3]

    def test_failing_task_keeps_worker(self, pool):
        """Test that an exception is counted, not fatal."""
        done = threading.Event()

        def boom():
            raise RuntimeError("task error")

        pool.submit(boom)
        pool.submit(done.set)

        assert done.wait(2.0)
        assert pool.active_workers >= 2
        deadline = time.time() + 2.0
        while pool.stats["tasks"]["failed"] < 1 and time.time() < deadline:
            time.sleep(0.01)
        assert pool.stats["tasks"]["failed"] == 1

    def test_full_queue_rejects_without_blocking(self):
        """Test that block=False returns False when the queue is full."""
        pool = ThreadPool(min_workers=1, max_workers=1, max_queue_size=1, idle_timeout=0.2)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def hold():
            started.set()
            release.wait(5.0)

        try:
            assert pool.submit(hold, block=False)
            assert started.wait(2.0)
            assert pool.submit(hold, block=False)      # fills the queue
            assert not pool.submit(hold, block=False)  # rejected
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_scales_up_when_busy(self, pool):
        """Test that waiting work spawns extra workers up to max_workers."""
        release = threading.Event()

        try:
            pool.submit(release.wait, args=(5.0,))
            pool.submit(release.wait, args=(5.0,))
            deadline = time.time() + 2.0
            while pool.busy_workers < 2 and time.time() < deadline:
                time.sleep(0.01)
            assert pool.busy_workers == 2

            pool.submit(release.wait, args=(5.0,))

            assert pool.stats["workers"]["total"] == 3
        finally:
            release.set()

    def test_shutdown_drains(self):
        """Test that shutdown(wait=True) lets queued work finish."""
        pool = ThreadPool(min_workers=1, max_workers=1, max_queue_size=10, idle_timeout=0.2)
        pool.start()
        results = []

        for i in range(5):
            pool.submit(lambda i=i: (time.sleep(0.01), results.append(i)))

        pool.shutdown(wait=True, timeout=5.0)

        assert results == [0, 1, 2, 3, 4]
        assert pool.active_workers == 0

    def test_stale_task_dropped(self):
        """Test that a task queued past its timeout is skipped."""
        pool = ThreadPool(min_workers=1, max_workers=1, max_queue_size=10, idle_timeout=0.2)
        pool.start()
        ran = []
        started = threading.Event()

        def hold():
            started.set()
            time.sleep(0.2)

        try:
            pool.submit(hold)
            assert started.wait(2.0)
            pool.submit(ran.append, args=("late",), timeout=0.05)
        finally:
            pool.shutdown(wait=True, timeout=5.0)

        assert ran == []

    def test_submit_after_shutdown(self, pool):
        """Test that a stopped pool refuses work."""
        pool.shutdown(wait=True, timeout=1.0)

        with pytest.raises(RuntimeError):
            pool.submit(lambda: None)

    def test_stats_shape(self, pool):
        """Test the published counters."""
        stats = pool.stats

        assert set(stats) == {"workers", "tasks"}
        assert stats["workers"]["total"] == 2
        assert set(stats["tasks"]) == {"queued", "completed", "failed"}
