"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together:

    SocketServer ──accept──► _handle_connection ──submit──► ThreadPool
                                                              │
        ┌─────────────────────────────────────────────────────┘
        ▼
    _process_connection (worker thread)
        │  TLS handshake (if any)
        │  loop while keep-alive:
        │      Connection.read_request()  ──► 408 / 413 on failure
        │      RequestParser.parse()      ──► 400 / 405 / 413 / 505
        │      pipeline(router.handle)    ──► 500 if it raises
        │      Connection.send_response()
        ▼
    close

=============================================================================
GRACEFUL SHUTDOWN
=============================================================================

    shutdown()                 (any thread, e.g. the lifecycle watcher)
        └── listener stops accepting
    serve() then, in its own thread:
        1. idle keep-alive connections are closed
        2. the pool drains in-flight requests (up to shutdown_timeout)
        3. workers are stopped, serve() returns
=============================================================================
"""

import logging
import socket
import ssl
import threading
import uuid
from typing import Optional, Callable

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState, ThreadPool
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, ResponseBuilder, HTTPStatus,
    Router, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the whole process."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    logging.getLogger("todosvc").setLevel(numeric_level)


class HTTPServer:
    """
    Threaded HTTP/1.1 server with routing and middleware.

        server = HTTPServer(ServerConfig(port=3000), name="api")
        server.use(LoggingMiddleware(), RecoveryMiddleware())
        api = server.group("/api/v1", BasicAuthMiddleware(credentials))
        TodoHandlers(store).register(api.group("/todo"))

        server.serve()          # blocks until shutdown()

    In tests, handle() runs the full middleware + router chain on an
    HTTPRequest without any socket.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        name: str = "api",
    ):
        """
        Args:
            config: Listener settings; validated immediately.
            ssl_context: Serve HTTPS with this context.
            name: Label for log lines.
        """
        self.config = config or ServerConfig()
        self.config.validate()
        self.name = name

        self._socket_server = SocketServer(self.config, ssl_context=ssl_context, name=name)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            max_queue_size=self.config.max_queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = Router()
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        self._running = False
        self._connections: dict[str, Connection] = {}
        self._connections_lock = threading.Lock()
        self._stopped = threading.Event()
        self.start_error: Optional[BaseException] = None

    # =========================================================================
    # APPLICATION SETUP
    # =========================================================================

    def use(self, *middleware: Middleware) -> "HTTPServer":
        """Add server-wide middleware (first added = outermost)."""
        self._middleware.use(*middleware)
        self._handler = None
        return self

    @property
    def router(self) -> Router:
        return self._router

    def group(self, prefix: str, *middleware) -> Router:
        """Route group with its own middleware, see Router.group()."""
        return self._router.group(prefix, *middleware)

    # =========================================================================
    # IN-PROCESS DISPATCH
    # =========================================================================

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Run one request through middleware and router.

        Exceptions that escape every middleware are logged and turned
        into a 500.
        """
        if self._handler is None:
            self._handler = self._middleware.wrap(self._router.handle)

        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{self.name}] Handler error: {e}")
            return internal_error()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_tls(self) -> bool:
        return self._socket_server.ssl_context is not None

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); the real port once listening on port 0."""
        return self._socket_server.address

    @property
    def stats(self) -> dict:
        with self._connections_lock:
            open_connections = len(self._connections)
        return {
            "connections": open_connections,
            "pool": self._thread_pool.stats,
        }

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def wait_until_stopped(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)

    def serve(self) -> None:
        """
        Listen and serve until shutdown(). Blocks.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._stopped.clear()
        if self._handler is None:
            self._handler = self._middleware.wrap(self._router.handle)

        try:
            self._socket_server.bind()
        except OSError as e:
            self.start_error = e
            self._stopped.set()
            raise

        for line in self._router.describe_routes():
            logger.debug(f"[{self.name}] route {line}")

        self._thread_pool.start()
        self._running = True
        try:
            self._socket_server.start(self._handle_connection)
        finally:
            self._drain()

    def shutdown(self) -> None:
        """Ask the server to stop. Returns immediately; see wait_until_stopped()."""
        self._socket_server.shutdown()

    def _drain(self) -> None:
        logger.info(f"[{self.name}] Shutting down server...")
        self._running = False
        self._close_idle_connections()
        self._thread_pool.shutdown(wait=True, timeout=self.config.shutdown_timeout)
        self._stopped.set()
        logger.info(f"[{self.name}] Server stopped")

    def _close_idle_connections(self) -> None:
        """Wake workers blocked waiting for a request so they can exit."""
        with self._connections_lock:
            connections = list(self._connections.values())

        for conn in connections:
            if conn.state in (ConnectionState.NEW, ConnectionState.READING, ConnectionState.KEEP_ALIVE):
                try:
                    conn.socket.shutdown(socket.SHUT_RD)
                except OSError:
                    pass

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Queue a connection; answer 503 when the pool is saturated."""
        try:
            submitted = self._thread_pool.submit(
                self._process_connection,
                args=(conn,),
                block=False,
            )
        except RuntimeError:
            submitted = False

        if not submitted:
            logger.warning(f"[{self.name}] [{conn.id}] Thread pool full, rejecting connection")
            if conn.handshake():
                self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """Keep-alive loop for one connection (worker thread)."""
        with self._connections_lock:
            self._connections[conn.id] = conn

        try:
            with conn:
                if not conn.handshake():
                    return
                self._serve_requests(conn)
        finally:
            with self._connections_lock:
                self._connections.pop(conn.id, None)

    def _serve_requests(self, conn: Connection) -> None:
        while self._running:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return
            except ValueError as e:
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                return

            if raw_request is None:
                return

            conn.state = ConnectionState.PROCESSING

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                self._send_error(conn, HTTPStatus(e.status_code), str(e))
                return

            response = self.handle(request)

            keep_alive = request.is_keep_alive and self.config.keep_alive and self._running
            if keep_alive:
                response.headers.setdefault("Connection", "keep-alive")
                response.headers.setdefault(
                    "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                )
            else:
                response.headers["Connection"] = "close"

            if not conn.send_response(response.to_bytes(self.config.server_name)):
                return
            if not keep_alive or response.headers.get("Connection") == "close":
                return

            conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str) -> None:
        """Error response for failures before the handler chain runs."""
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message})
            .header("X-Request-ID", uuid.uuid4().hex[:8])
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))
