"""
Unit tests for signal handling and background serving.
"""

import signal
import threading

import pytest

from todosvc.config import ServerConfig
from todosvc.lifecycle import InterruptContext, serve_async
from todosvc.server import HTTPServer


class TestInterruptContext:
    """Tests for InterruptContext."""

    def test_first_signal_cancels(self):
        """Test that one signal requests a controlled stop."""
        exits = []
        ctx = InterruptContext(exit_func=exits.append)

        ctx._on_signal(signal.SIGTERM, None)

        assert ctx.cancelled
        assert ctx.wait(timeout=0)
        assert exits == []

    def test_second_signal_exits(self):
        """Test that a second signal forces exit status 1."""
        exits = []
        ctx = InterruptContext(exit_func=exits.append)

        ctx._on_signal(signal.SIGINT, None)
        ctx._on_signal(signal.SIGINT, None)

        assert exits == [1]

    def test_cancel_without_signal(self):
        """Test programmatic cancellation."""
        ctx = InterruptContext()

        assert not ctx.wait(timeout=0.01)
        ctx.cancel()
        assert ctx.cancelled

    def test_install_and_restore(self):
        """Test that previous handlers come back after restore()."""
        before = signal.getsignal(signal.SIGTERM)
        ctx = InterruptContext(exit_func=lambda status: None).install()

        try:
            assert signal.getsignal(signal.SIGTERM) == ctx._on_signal
        finally:
            ctx.restore()

        assert signal.getsignal(signal.SIGTERM) == before


class TestServeAsync:
    """Tests for serve_async."""

    def test_runs_until_cancelled(self, config: ServerConfig):
        """Test that cancelling the context drains and stops the server."""
        server = HTTPServer(config, name="test")
        ctx = InterruptContext(exit_func=lambda status: None)

        done = serve_async(ctx, server, "test")
        assert server.wait_until_ready(timeout=5.0)
        assert server.is_running

        ctx.cancel()

        assert done.wait(timeout=10.0)
        assert not server.is_running
        assert server.start_error is None

    def test_start_error_is_reported(self, config: ServerConfig):
        """Test that a bind failure sets done and start_error instead of raising."""
        blocker = HTTPServer(config, name="blocker")
        blocker_thread = threading.Thread(target=blocker.serve, daemon=True)
        blocker_thread.start()
        assert blocker.wait_until_ready(timeout=5.0)

        try:
            taken = ServerConfig(host="127.0.0.1", port=blocker.address[1], min_workers=1, max_workers=1)
            server = HTTPServer(taken, name="late")
            ctx = InterruptContext(exit_func=lambda status: None)

            done = serve_async(ctx, server, "late")

            assert done.wait(timeout=5.0)
            assert isinstance(server.start_error, OSError)
            ctx.cancel()
        finally:
            blocker.shutdown()
            blocker_thread.join(timeout=10.0)
