"""
=============================================================================
TODO-API ENTRY POINT
=============================================================================

    python -m todosvc                         # settings from TODO_* env vars
    python -m todosvc --auth-mode=dev         # plain HTTP, packaged users
    python -m todosvc --api-host=:8080 --log-format=json
    todo-api --version                        # installed console script

Command line flags override the environment, which overrides defaults.

=============================================================================
STARTUP AND SHUTDOWN
=============================================================================

    1. read config (env + flags), validate    ConfigError → exit 1
    2. log CPU count and the effective config (secrets masked)
    3. build store, credential store, API and debug servers
    4. install SIGINT/SIGTERM handling
    5. start both servers in the background
    6. wait for the API server to finish
           (signal → graceful drain, or a startup error)
    7. stop the debug server, exit 0 (1 if the API never started)
=============================================================================
"""

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from . import __version__
from .app import build_api_server, build_debug_server, build_ssl_context, resolve_credentials
from .config import ServiceConfig, ConfigError, AUTH_MODES, LOG_FORMATS, LOG_LEVELS
from .lifecycle import InterruptContext, serve_async
from .server import setup_logging
from .store import MemoryPersistence


logger = logging.getLogger("todosvc.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="todo-api",
        description="Todo Item API: a small authenticated REST service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  todo-api --auth-mode=dev                   # local run, users bob/alice
  todo-api --api-host=0.0.0.0:8080           # custom API address
  TODO_WEB_READ_TIMEOUT=2s todo-api          # any setting via environment
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--api-host", help="API listen address (host:port)")
    parser.add_argument("--debug-host", help="Debug listen address (host:port)")

    # ─────────────────────────────────────────────────────────────────────
    # AUTH AND LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--auth-mode", choices=AUTH_MODES, help="dev or prod")
    parser.add_argument("--log-level", choices=LOG_LEVELS, type=str.upper)
    parser.add_argument("--log-format", choices=LOG_FORMATS)

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"todo-api {__version__}",
    )
    return parser


def load_config(args: argparse.Namespace, environ=None) -> ServiceConfig:
    """
    Environment first, then command line overrides.

    Raises:
        ConfigError: If the result is invalid.
    """
    config = ServiceConfig.from_env(environ=environ)

    if args.api_host:
        config.web.api_host = args.api_host
    if args.debug_host:
        config.web.debug_host = args.debug_host
    if args.auth_mode:
        config.auth.mode = args.auth_mode
    if args.log_level:
        config.log.level = args.log_level
    if args.log_format:
        config.log.format = args.log_format

    config.validate()
    return config


def run(argv: Optional[Sequence[str]] = None, environ=None) -> int:
    """
    Run the service until it is stopped.

    Returns:
        Process exit status.
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args, environ)
    except ConfigError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(config.log.level)
    logger.info(f"Have {os.cpu_count()} CPUs")
    logger.info(f"Config:\n{config.describe()}")
    logger.info("Starting todo-api service")

    store = MemoryPersistence()
    try:
        credentials = resolve_credentials(config)
        ssl_context = build_ssl_context(config)
    except (ConfigError, OSError, ValueError) as e:
        logger.error(f"Startup failed: {e}")
        return 1

    api = build_api_server(config, store, credentials, ssl_context)
    debug, health = build_debug_server(config, store, api)

    ctx = InterruptContext().install()
    try:
        debug_done = serve_async(ctx, debug, "debug")
        api_done = serve_async(ctx, api, "api")

        while not api_done.wait(0.5):
            if ctx.cancelled:
                health.mark_draining()

        ctx.cancel()
        debug_done.wait()
    finally:
        ctx.restore()

    logger.info("Shutdown complete")
    return 1 if api.start_error else 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
