"""
=============================================================================
WORKER THREAD POOL
=============================================================================

Accepted connections are handed to a fixed-ceiling pool of worker
threads through a bounded queue:

    accept loop ──► submit(conn) ──► [ queue (max_queue_size) ] ──► Worker-0
                                                             ├──► Worker-1
                                                             └──► Worker-N

    min_workers      threads started up front, always running
    max_workers      ceiling; extra workers spawn when every worker is
                     busy and work is still queued
    max_queue_size   submit(block=False) returns False once the queue is
                     full, and the server answers 503 instead of letting
                     the backlog grow without bound

=============================================================================
SHUTDOWN
=============================================================================

    shutdown(wait=True, timeout=5.0)
        1. refuse new submissions
        2. wait for queued work to drain (up to timeout)
        3. one poison pill (None) per worker
        4. join each worker

In-flight requests therefore get up to `timeout` seconds to finish; the
server maps its configured shutdown timeout onto this deadline.
=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred call: func(*args, **kwargs).

    Attributes:
        timeout: If the task sat in the queue longer than this, it is
                 dropped instead of run (the client has given up by then).
        submitted_at: When the task entered the queue.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    timeout: Optional[float] = None
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """Pulls tasks off the shared queue until it gets a poison pill."""

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0
    ):
        """
        Args:
            task_queue: Queue shared with the pool.
            worker_id: Number used in the thread name and in logs.
            idle_timeout: How long get() blocks before re-checking shutdown.
        """
        super().__init__(name=f"todo-worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        """
        Run one task, never letting its exception kill the worker.

        Stale tasks (queued longer than task.timeout) are counted as
        failed and skipped.
        """
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            waited = start_time - task.submitted_at
            if task.timeout and waited > task.timeout:
                logger.warning(
                    f"Task dropped after waiting {waited:.2f}s in queue "
                    f"(timeout {task.timeout}s)"
                )
                self.tasks_failed += 1
                return

            task.func(*task.args, **task.kwargs)

            logger.debug(
                f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s"
            )
            self.tasks_completed += 1

        except Exception as e:
            logger.exception(
                f"Worker {self.worker_id} task failed after {time.time() - start_time:.3f}s: {e}"
            )
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Bounded pool of worker threads.

        pool = ThreadPool(min_workers=4, max_workers=32, max_queue_size=128)
        pool.start()
        if not pool.submit(handle_connection, args=(conn,), block=False):
            reject(conn)  # queue full
        ...
        pool.shutdown(timeout=5.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        max_queue_size: int = 100,
        idle_timeout: float = 60.0
    ):
        """
        Args:
            min_workers: Workers started by start().
            max_workers: Upper bound on workers.
            max_queue_size: Capacity of the task queue.
            idle_timeout: Seconds a worker blocks on an empty queue before
                          re-checking its shutdown flag.
        """
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError(
                f"Need 1 <= min_workers <= max_workers, got {min_workers}/{max_workers}"
            )

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = max_queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=max_queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # Guards _workers and _next_worker_id
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        """Start min_workers workers. Calling it twice is a no-op."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")

        with self._lock:
            for _ in range(self.min_workers):
                self._spawn_worker()

        self._shutdown = False
        self._started = True

    def _spawn_worker(self) -> Worker:
        """Create and start a worker. Caller must hold self._lock."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        timeout: Optional[float] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Args:
            func: Callable to run.
            args: Positional arguments.
            kwargs: Keyword arguments.
            timeout: Drop the task if it waits longer than this in the queue.
            block: Wait for queue space instead of failing when full.
            queue_timeout: Upper bound on that wait.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {}, timeout=timeout)

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Spawn one more worker if all are busy and work is waiting."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            busy_count = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy_count == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug(
                    f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
                )
                self._spawn_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued and running tasks finish first.
            timeout: Upper bound on that wait; None waits indefinitely.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            if timeout is not None:
                deadline = time.time() + timeout
                while self._task_queue.unfinished_tasks:
                    if time.time() > deadline:
                        logger.warning("Thread pool drain deadline exceeded, stopping workers")
                        break
                    time.sleep(0.05)
            else:
                self._task_queue.join()

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # Worker sees its shutdown flag after idle_timeout

        for worker in workers:
            worker.join(timeout=2.0)

        self._started = False
        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def active_workers(self) -> int:
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def stats(self) -> dict:
        """Worker and task counters, published on /debug/vars."""
        with self._lock:
            workers = list(self._workers)

        return {
            "workers": {
                "total": len(workers),
                "busy": sum(1 for w in workers if w.state == WorkerState.BUSY),
                "idle": sum(1 for w in workers if w.state == WorkerState.IDLE),
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in workers),
                "failed": sum(w.tasks_failed for w in workers),
            },
        }
