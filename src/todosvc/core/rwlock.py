"""
=============================================================================
READERS-WRITER LOCK
=============================================================================

A shared/exclusive lock: many threads may hold it for READING at the same
time, but a WRITER needs it alone.

=============================================================================
WHY NOT JUST threading.Lock?
=============================================================================

A plain mutex serializes everything, including two threads that only want
to look at the data:

    threading.Lock                     ReadWriteLock
    ──────────────                     ─────────────

    GET /todo    ████                  GET /todo    ████
    GET /todo/1      ████              GET /todo/1  ████    (overlap!)
    PUT /todo/1          ████          PUT /todo/1      ████

Reads never change state, so letting them overlap is safe. A write must
never overlap with anything, otherwise a reader could observe a
half-applied change.

=============================================================================
STATE MACHINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   FREE ──acquire_read()──► READING(n) ──release_read() x n──► FREE  │
    │     │                         │                                      │
    │     │                         └── more readers join (n + 1)          │
    │     │                             unless a writer is WAITING         │
    │     │                                                                │
    │     └──acquire_write()──► WRITING ──release_write()──► FREE         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WRITER PREFERENCE
=============================================================================

If readers could always join an active read phase, a steady stream of
GET requests would keep a PUT waiting forever (writer starvation).

Once a writer is waiting, NEW readers queue behind it:

    reader A holds ──────────┐
    writer W waits ──────────┼──► W runs as soon as A releases
    reader B arrives ────────┴──► B waits for W to finish

Readers already inside finish normally; the writer goes next.

=============================================================================
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ReadWriteLock:
    """
    Many-readers-or-one-writer lock built on threading.Condition.

    All bookkeeping (active readers, active writer, waiting writers) is
    guarded by the condition's internal mutex; threads park on the
    condition until the state lets them in.

    The lock is NOT reentrant: a thread holding the read lock must not
    try to take it again while a writer is waiting, and a writer must
    not re-acquire in any mode.

    Usage:
        lock = ReadWriteLock()

        with lock.read_locked():
            snapshot = list(data.values())

        with lock.write_locked():
            data[key] = value
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0            # Threads currently holding a read lock
        self._writer = False         # True while a writer holds the lock
        self._waiting_writers = 0    # Writers parked in acquire_write()

    # =========================================================================
    # SHARED (READ) MODE
    # =========================================================================

    def acquire_read(self) -> None:
        """Block until no writer is active or waiting, then join the readers."""
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        """
        Leave the read phase.

        The last reader out wakes any waiting writer.

        Raises:
            RuntimeError: If no read lock is held.
        """
        with self._cond:
            if self._readers == 0:
                raise RuntimeError("release_read() called without a read lock")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    # =========================================================================
    # EXCLUSIVE (WRITE) MODE
    # =========================================================================

    def acquire_write(self) -> None:
        """Block until no reader or writer holds the lock, then take it alone."""
        with self._cond:
            self._waiting_writers += 1
            acquired = False
            try:
                while self._writer or self._readers:
                    self._cond.wait()
                self._writer = acquired = True
            finally:
                self._waiting_writers -= 1
                if not acquired:
                    # Readers parked behind this writer may proceed now
                    self._cond.notify_all()

    def release_write(self) -> None:
        """
        Release exclusive ownership and wake everyone waiting.

        Raises:
            RuntimeError: If the write lock is not held.
        """
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without the write lock")
            self._writer = False
            self._cond.notify_all()

    # =========================================================================
    # CONTEXT MANAGERS
    # =========================================================================

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        """Hold the lock in shared mode for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        """Hold the lock in exclusive mode for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    # =========================================================================
    # INTROSPECTION (monitoring and tests)
    # =========================================================================

    @property
    def readers(self) -> int:
        """Number of threads currently holding the read lock."""
        with self._cond:
            return self._readers

    @property
    def write_locked_now(self) -> bool:
        """True while a writer holds the lock."""
        with self._cond:
            return self._writer

    @property
    def waiting_writers(self) -> int:
        """Number of writers blocked in acquire_write()."""
        with self._cond:
            return self._waiting_writers
