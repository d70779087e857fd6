"""
=============================================================================
CLIENT CONNECTIONS
=============================================================================

Wraps one accepted socket and turns the TCP byte stream back into whole
HTTP requests.

TCP keeps order but not message boundaries, so one request can arrive
over several recv() calls and two pipelined requests can arrive in one:

    recv() → b"PUT /api/v1/todo/1 HT"
    recv() → b"TP/1.1\\r\\nContent-Length: 15\\r\\n\\r\\n{\\"done\\": true}"

read_request() therefore buffers until the blank line, reads exactly
Content-Length body bytes, and keeps anything after that for the next
call.

=============================================================================
TIMEOUTS
=============================================================================

    ┌───────────────────────┬──────────────────────────────────────────┐
    │ timeout               │ first request on the connection          │
    │ keep_alive_timeout    │ idle wait for every following request    │
    │ write_timeout         │ each sendall() of a response             │
    └───────────────────────┴──────────────────────────────────────────┘

=============================================================================
TLS
=============================================================================

The accept loop wraps sockets with do_handshake_on_connect=False so a
slow or hostile client cannot stall accept(). The worker calls
handshake() before the first read, under the first-request timeout.

=============================================================================
STATES
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
             ▲                                                  │
             └──────────────────────────────────────────────────┘
    any state ──► CLOSING ──► CLOSED
=============================================================================
"""

import socket
import ssl
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One client connection.

    Attributes:
        socket: The accepted (possibly TLS-wrapped) socket.
        address: Peer (ip, port).
        id: Short random id used in log lines.
        state: Current ConnectionState.
        requests_handled: Requests read so far.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 5.0
    write_timeout: float = 10.0
    keep_alive_timeout: float = 120.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def is_tls(self) -> bool:
        return isinstance(self.socket, ssl.SSLSocket)

    # =========================================================================
    # TLS
    # =========================================================================

    def handshake(self) -> bool:
        """
        Complete the TLS handshake of a wrapped socket.

        Returns:
            True for plain sockets and successful handshakes, False if the
            peer failed the handshake (the connection should be closed).
        """
        if not self.is_tls:
            return True
        try:
            self.socket.do_handshake()
            return True
        except (ssl.SSLError, socket.timeout, OSError) as e:
            logger.debug(f"[{self.id}] TLS handshake failed: {e}")
            return False

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (headers plus Content-Length body).

        Returns:
            The request bytes, or None if the peer closed the connection
            or went idle between keep-alive requests.

        Raises:
            TimeoutError: If the first request does not arrive in time.
            ValueError: If the request grows past max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Peer closed mid-body; the parser reports it
                self._buffer += chunk
                self._check_size()

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.last_activity = time.time()
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError, ssl.SSLError):
            return b""
        self.last_activity = time.time()
        return data

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Content-Length from raw header bytes, 0 if absent or unusable.

        The full parser validates the header later and rejects bad values.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a whole response within write_timeout.

        Returns:
            True on success, False if the peer is gone or too slow.
        """
        self.state = ConnectionState.WRITING
        self.last_activity = time.time()

        try:
            self.socket.settimeout(self.write_timeout)
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except socket.timeout:
            logger.warning(f"[{self.id}] Send timed out after {self.write_timeout}s")
            return False
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        finally:
            try:
                self.socket.settimeout(self.timeout)
            except OSError:
                pass

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Half-close, drain whatever the peer still sends, then close.

        Idempotent.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except (socket.timeout, OSError):
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
