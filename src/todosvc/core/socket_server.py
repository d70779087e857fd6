"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket and the accept loop. Everything above TCP
(parsing, routing, the thread pool) lives in todosvc.server.

    SocketServer.start(on_connection)
        │
        ├── socket() + SO_REUSEADDR + TCP_NODELAY
        ├── bind((host, port))        port 0 → OS picks, see .address
        ├── listen(backlog)
        ├── [TLS] wrap listener, handshake deferred to the worker
        ├── ready event set
        │
        └── until the stop event is set:
                accept()  (1s timeout so shutdown() is noticed)
                on_connection(Connection(...))

Signals are not handled here: todosvc.lifecycle owns SIGINT/SIGTERM and
calls shutdown(), which is safe from any thread.
=============================================================================
"""

import socket
import ssl
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP server.

        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()

    Args to __init__:
        config: Listener settings (host, port, backlog, timeouts, sizes).
        ssl_context: If given, accepted sockets are TLS sockets whose
                     handshake the worker completes via
                     Connection.handshake().
        name: Label used in log lines ("api", "debug").
    """

    def __init__(
        self,
        config: ServerConfig,
        ssl_context: Optional[ssl.SSLContext] = None,
        name: str = "server",
    ):
        self.config = config
        self.ssl_context = ssl_context
        self.name = name

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._stop_event = threading.Event()
        self._bound_address: Optional[Tuple[str, int]] = None

        self._ready_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running and not self._stop_event.is_set()

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (host, port) once listening, else the configured one."""
        if self._bound_address:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # Rebind right after a restart despite TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # Bounded accept() so the loop notices shutdown()
        sock.settimeout(1.0)
        return sock

    def bind(self):
        """
        Create, bind and listen without accepting yet.

        Split from start() so bind errors surface in the caller's thread.

        Raises:
            OSError: If the address cannot be bound.
        """
        if self._socket is not None:
            return

        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
        except OSError as e:
            sock.close()
            logger.error(f"[{self.name}] Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        sock.listen(self.config.backlog)
        host, port = sock.getsockname()[:2]
        self._bound_address = (host, port)

        if self.ssl_context is not None:
            sock = self.ssl_context.wrap_socket(
                sock, server_side=True, do_handshake_on_connect=False
            )

        self._socket = sock

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown(). Blocks.

        Args:
            connection_handler: Called with each new Connection; must not
                                block for long (it should queue the work).
        """
        self.bind()

        # An earlier shutdown() from another thread stays set in _stop_event
        self._running = True
        self._ready_event.set()

        scheme = "https" if self.ssl_context else "http"
        host, port = self.address
        logger.info(f"[{self.name}] Listening on {scheme}://{host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while not self._stop_event.is_set():
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except ssl.SSLError as e:
                logger.debug(f"[{self.name}] TLS accept error: {e}")
                continue
            except OSError as e:
                if not self._stop_event.is_set():
                    logger.error(f"[{self.name}] Accept error: {e}")
                break

            logger.debug(f"[{self.name}] Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                write_timeout=self.config.write_timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop the accept loop. Idempotent and thread-safe."""
        if self.is_running:
            logger.info(f"[{self.name}] Shutting down listener...")
        self._stop_event.set()

    def _cleanup(self):
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._stop_event.clear()
        self._ready_event.clear()
        logger.info(f"[{self.name}] Listener stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready_event.wait(timeout)
