"""
=============================================================================
PROCESS LIFECYCLE
=============================================================================

    SIGINT / SIGTERM
        │
        ▼
    InterruptContext ── 1st signal ──► "Received signal, initiating
        │                               controlled stop", cancel()
        │
        └─────────── 2nd signal ──► "Received second signal, stopping
                                     now", exit(1) immediately
    cancel()
        │
        ▼
    serve_async watcher ──► "Received controlled stop signal"
                            server.shutdown()
                                │ drain in-flight requests
                                ▼
                            "Shutdown complete", done event set

The second signal is the operator's escape hatch when a graceful drain
hangs.
=============================================================================
"""

import logging
import os
import signal
import threading
from typing import Callable, Optional

from .server import HTTPServer


logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class InterruptContext:
    """
    A cancellation flag wired to SIGINT and SIGTERM.

        ctx = InterruptContext()
        ctx.install()           # main thread only
        ...
        ctx.wait()              # returns once cancelled
        ctx.restore()

    Args to __init__:
        exit_func: Called with status 1 on the second signal. Defaults to
                   os._exit so no cleanup code can hang the exit.
    """

    def __init__(self, exit_func: Callable[[int], None] = os._exit):
        self._exit_func = exit_func
        self._cancelled = threading.Event()
        self._signals_received = 0
        self._lock = threading.Lock()
        self._original_handlers: dict = {}

    def install(self) -> "InterruptContext":
        """Register the signal handlers, remembering the previous ones."""
        for sig in HANDLED_SIGNALS:
            self._original_handlers[sig] = signal.signal(sig, self._on_signal)
        return self

    def restore(self) -> None:
        """Put the previous signal handlers back."""
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def _on_signal(self, signum, frame) -> None:
        with self._lock:
            self._signals_received += 1
            first = self._signals_received == 1

        if first:
            logger.info("Received signal, initiating controlled stop")
            self.cancel()
            return

        logger.critical("Received second signal, stopping now")
        self._exit_func(1)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled. Returns False on timeout."""
        return self._cancelled.wait(timeout)


def serve_async(ctx: InterruptContext, server: HTTPServer, name: str = "api") -> threading.Event:
    """
    Run server.serve() in a background thread until ctx is cancelled.

    Listener errors (e.g. the port is taken) are logged, not raised; the
    returned event is set either way once the server has fully stopped.

    Returns:
        The "done" event.
    """
    done = threading.Event()

    def run() -> None:
        scheme = "https" if server.is_tls else "http"
        logger.info(f"Starting {name} server ({scheme})...")
        try:
            server.serve()
        except Exception as e:
            logger.error(f"Error starting {name} server: {e}")
        finally:
            logger.info(f"{name} server: Shutdown complete")
            done.set()

    def watch() -> None:
        while not done.is_set():
            if ctx.wait(timeout=0.5):
                logger.info(f"{name} server: Received controlled stop signal")
                server.shutdown()
                return

    threading.Thread(target=run, name=f"{name}-serve", daemon=True).start()
    threading.Thread(target=watch, name=f"{name}-watch", daemon=True).start()
    return done
