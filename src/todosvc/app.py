"""
=============================================================================
APPLICATION ASSEMBLY
=============================================================================

Two listeners share one store:

    API server (web.api_host, TLS outside dev mode)
    ├── LoggingMiddleware          access log, X-Request-ID
    ├── RecoveryMiddleware         exceptions → 500
    └── group /api/v1              BasicAuthMiddleware(realm="todo-api")
        └── group /todo            TodoHandlers

    Debug server (web.debug_host, plain HTTP, no auth)
    ├── LoggingMiddleware
    ├── RecoveryMiddleware
    ├── /debug/vars                build, cmdline, uptime, todos, pool
    └── /debug/health[/live|/ready]
=============================================================================
"""

import logging
import ssl
from typing import Optional

from .config import ServiceConfig, ConfigError
from .credentials import CredentialStore, load_dev_credentials
from .handlers import TodoHandlers, HealthHandler, DebugVars, store_check
from .middleware import LoggingMiddleware, RecoveryMiddleware, BasicAuthMiddleware
from .server import HTTPServer
from .store import Persistence


logger = logging.getLogger(__name__)

AUTH_REALM = "todo-api"


def resolve_credentials(
    config: ServiceConfig,
    credentials: Optional[CredentialStore] = None,
) -> CredentialStore:
    """
    Pick the credential store for the configured auth mode.

    An explicitly injected store always wins. Otherwise dev mode loads
    the static dev store; prod mode has no built-in backend.

    Raises:
        ConfigError: In prod mode without an injected store.
    """
    if credentials is not None:
        return credentials
    if config.is_dev:
        return load_dev_credentials(config.auth.keys_folder)
    raise ConfigError(
        "auth mode 'prod' requires a credential store; "
        "no production backend is configured (use --auth-mode=dev for local runs)"
    )


def build_ssl_context(config: ServiceConfig) -> Optional[ssl.SSLContext]:
    """Server-side TLS context when TLS is enabled, else None."""
    if not config.tls_enabled:
        return None
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(config.web.cert_file, config.web.key_file)
    return context


def build_api_server(
    config: ServiceConfig,
    store: Persistence,
    credentials: CredentialStore,
    ssl_context: Optional[ssl.SSLContext] = None,
) -> HTTPServer:
    server = HTTPServer(
        config.server_config(config.web.api_host),
        ssl_context=ssl_context,
        name="api",
    )
    server.use(
        LoggingMiddleware(log_format=config.log.format),
        RecoveryMiddleware(),
    )

    api = server.group("/api/v1", BasicAuthMiddleware(credentials, realm=AUTH_REALM))
    TodoHandlers(store).register(api.group("/todo"))
    return server


def build_debug_server(
    config: ServiceConfig,
    store: Persistence,
    api_server: Optional[HTTPServer] = None,
) -> tuple[HTTPServer, HealthHandler]:
    """
    Returns:
        The debug server and its HealthHandler (so shutdown can mark it
        as draining).
    """
    debug_config = config.server_config(config.web.debug_host)
    debug_config.min_workers = 1
    debug_config.max_workers = 4

    server = HTTPServer(debug_config, name="debug")
    server.use(
        LoggingMiddleware(
            log_format=config.log.format,
            log_level=logging.DEBUG,
            skip_paths=["/debug/health/live", "/debug/health/ready"],
        ),
        RecoveryMiddleware(),
    )

    debug_vars = DebugVars(build=config.version.build)
    debug_vars.publish("todos", lambda: len(store.get_all_todos()))
    if api_server is not None:
        debug_vars.publish("pool", lambda: api_server.stats)
    debug_vars.register(server.router, "/debug/vars")

    health = HealthHandler()
    health.add_check("store", store_check(store))
    health.register(server.router, "/debug/health")

    return server, health
