"""
pytest configuration and fixtures.
"""

import base64
import json
import socket
import sys
import threading
from pathlib import Path
from typing import Generator, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from todosvc.app import build_api_server
from todosvc.config import ServiceConfig, ServerConfig
from todosvc.credentials import StaticCredentialStore, hash_password
from todosvc.http import HTTPRequest
from todosvc.server import HTTPServer
from todosvc.store import MemoryPersistence


def basic_auth(username: str, password: str) -> str:
    """Authorization header value for HTTP Basic."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def make_request(
    method: str,
    path: str,
    body: Optional[object] = None,
    content_type: Optional[str] = "application/json",
    auth: Optional[tuple[str, str]] = ("bob", "bob"),
    headers: Optional[dict] = None,
) -> HTTPRequest:
    """
    Build an HTTPRequest the way the parser would.

    dict/list/None-literal bodies are JSON-encoded; str and bytes are
    sent as-is. Header names are lowercased like RequestParser does.
    """
    if body is None:
        raw = b""
    elif isinstance(body, bytes):
        raw = body
    elif isinstance(body, str):
        raw = body.encode("utf-8")
    else:
        raw = json.dumps(body).encode("utf-8")

    request_headers = {}
    if raw and content_type:
        request_headers["content-type"] = content_type
    if raw:
        request_headers["content-length"] = str(len(raw))
    if auth:
        request_headers["authorization"] = basic_auth(*auth)
    for name, value in (headers or {}).items():
        request_headers[name.lower()] = value

    return HTTPRequest(
        method=method,
        path=path,
        headers=request_headers,
        body=raw,
        client_address=("127.0.0.1", 50000),
    )


@pytest.fixture(scope="session")
def credentials() -> StaticCredentialStore:
    """bob:bob and alice:alice, hashed with cheap bcrypt rounds."""
    return StaticCredentialStore({
        "bob": hash_password("bob", rounds=4),
        "alice": hash_password("alice", rounds=4),
    }, name="test")


@pytest.fixture
def store() -> MemoryPersistence:
    """A fresh, empty in-memory store."""
    return MemoryPersistence()


@pytest.fixture
def service_config() -> ServiceConfig:
    """Dev-mode service config on ephemeral loopback ports."""
    config = ServiceConfig()
    config.auth.mode = "dev"
    config.web.api_host = "127.0.0.1:0"
    config.web.debug_host = "127.0.0.1:0"
    config.web.min_workers = 2
    config.web.max_workers = 4
    config.web.shutdown_timeout = 5.0
    return config


@pytest.fixture
def app(service_config, store, credentials) -> HTTPServer:
    """The fully wired API server, used in-process through handle()."""
    return build_api_server(service_config, store, credentials)


@pytest.fixture
def config() -> ServerConfig:
    """Default test listener configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        shutdown_timeout=5.0,
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class RunningServer:
    """Runs an HTTPServer in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self) -> "RunningServer":
        self._thread = threading.Thread(target=self.server.serve, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")
        return self

    def stop(self) -> None:
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def running_app(app) -> Generator[RunningServer, None, None]:
    """The API server listening on an ephemeral port."""
    running = RunningServer(app).start()
    yield running
    running.stop()
