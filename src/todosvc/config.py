"""
=============================================================================
CONFIGURATION
=============================================================================

Two layers:

    ServiceConfig                 what an operator sets (TODO_* env vars,
    ├── web: WebConfig            command line flags)
    ├── auth: AuthConfig
    ├── db: DBConfig
    ├── log: LogConfig
    └── version: VersionConfig
            │
            │ server_config("0.0.0.0:3000")
            ▼
    ServerConfig                  what one HTTP listener needs

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    TODO_WEB_READ_TIMEOUT=5s          TODO_AUTH_MODE=prod
    TODO_WEB_WRITE_TIMEOUT=10s        TODO_AUTH_KEYS_FOLDER=zarf/keys/
    TODO_WEB_IDLE_TIMEOUT=120s        TODO_DB_USER / _PASSWORD / _HOST / _NAME
    TODO_WEB_SHUTDOWN_TIMEOUT=20s     TODO_DB_MAX_IDLE_CONNS / _MAX_OPEN_CONNS
    TODO_WEB_API_HOST=0.0.0.0:3000    TODO_DB_DISABLE_TLS=true
    TODO_WEB_DEBUG_HOST=0.0.0.0:4000  TODO_LOG_LEVEL=INFO
    TODO_WEB_CERT_FILE=               TODO_LOG_FORMAT=text
    TODO_WEB_KEY_FILE=                TODO_VERSION_BUILD=develop
    TODO_WEB_MIN_WORKERS=4
    TODO_WEB_MAX_WORKERS=16

Durations take Go-style strings ("500ms", "5s", "1m30s") or plain
seconds ("2.5").
=============================================================================
"""

import os
import re
from dataclasses import dataclass, field, fields
from typing import Optional, Mapping, Union, Any


class ConfigError(ValueError):
    """Invalid configuration, raised at startup."""


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")
AUTH_MODES = ("dev", "prod")


# =============================================================================
# VALUE PARSING
# =============================================================================

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Parse a duration into seconds.

        >>> parse_duration("1m30s")
        90.0
        >>> parse_duration("500ms")
        0.5
        >>> parse_duration("2.5")
        2.5

    Raises:
        ConfigError: If the value is not a duration.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ConfigError(f"Invalid duration: {value!r}")
    return total


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_bool(value: Union[str, bool]) -> bool:
    """Parse 1/0, true/false, yes/no, on/off (any case)."""
    if isinstance(value, bool):
        return value
    text = value.strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean: {value!r}")


def split_host_port(host_port: str) -> tuple[str, int]:
    """
    Split "host:port" into its parts.

        "0.0.0.0:3000" → ("0.0.0.0", 3000)
        ":3000"        → ("0.0.0.0", 3000)
        "[::1]:3000"   → ("::1", 3000)

    Raises:
        ConfigError: If there is no port or it is out of range.
    """
    host, sep, port_text = host_port.rpartition(":")
    if not sep:
        raise ConfigError(f"Missing port in address: {host_port!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    host = host or "0.0.0.0"

    try:
        port = int(port_text)
    except ValueError:
        raise ConfigError(f"Invalid port in address: {host_port!r}") from None
    if not 0 <= port < 65536:
        raise ConfigError(f"Port out of range in address: {host_port!r}")

    return host, port


def _format_duration(seconds: float) -> str:
    if seconds and seconds == int(seconds):
        return f"{int(seconds)}s"
    return f"{seconds}s"


# =============================================================================
# HTTP LISTENER SETTINGS
# =============================================================================

@dataclass
class ServerConfig:
    """
    Settings for one HTTP listener (engine level).

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK      host, port, backlog, buffer_size
    TIMEOUTS     timeout, write_timeout, keep_alive_timeout, shutdown_timeout
    HTTP         keep_alive, max_request_size, server_name
    THREADING    min_workers, max_workers, max_queue_size
    LOGGING      log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """IP address to bind; "0.0.0.0" for all interfaces."""

    port: int = 3000
    """Port to listen on; 0 lets the OS pick a free one (tests)."""

    backlog: int = 128
    """Pending connections the kernel queues before refusing."""

    buffer_size: int = 8192
    """Bytes per recv() call."""

    # ─────────────────────────────────────────────────────────────────────
    # TIMEOUTS (seconds)
    # ─────────────────────────────────────────────────────────────────────

    timeout: float = 5.0
    """Time allowed for the first request on a new connection."""

    write_timeout: float = 10.0
    """Time allowed to send one response."""

    keep_alive_timeout: float = 120.0
    """Idle time between requests before a keep-alive connection closes."""

    shutdown_timeout: float = 20.0
    """How long in-flight requests may run after shutdown starts."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Serve several requests per connection (HTTP/1.1 default)."""

    max_request_size: int = 1024 * 1024
    """Largest accepted request, headers plus body, in bytes."""

    server_name: str = "Todo Item API"
    """Value of the Server response header."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads started with the listener."""

    max_workers: int = 16
    """Upper bound on worker threads."""

    max_queue_size: int = 128
    """Accepted connections waiting for a worker; beyond this → 503."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    def validate(self) -> None:
        """
        Fail fast on values that would only break later.

        Raises:
            ConfigError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")
        if self.max_queue_size < 1:
            raise ConfigError("max_queue_size must be >= 1")
        if self.buffer_size < 1024:
            raise ConfigError("buffer_size must be >= 1024")
        for name in ("timeout", "write_timeout", "keep_alive_timeout", "shutdown_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be > 0")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"Invalid log format: {self.log_format}")


# =============================================================================
# SERVICE SETTINGS
# =============================================================================

@dataclass
class WebConfig:
    read_timeout: float = 5.0
    write_timeout: float = 10.0
    idle_timeout: float = 120.0
    shutdown_timeout: float = 20.0
    api_host: str = "0.0.0.0:3000"
    debug_host: str = "0.0.0.0:4000"
    cert_file: str = ""
    key_file: str = ""
    min_workers: int = 4
    max_workers: int = 16


@dataclass
class AuthConfig:
    keys_folder: str = "zarf/keys/"
    mode: str = "prod"
    """dev: packaged static credential store and plain HTTP. prod: TLS."""


@dataclass
class DBConfig:
    """Accepted for deployment compatibility; the memory store ignores it."""
    user: str = "postgres"
    password: str = field(default="postgres", metadata={"secret": True})
    host: str = "localhost"
    name: str = "postgres"
    max_idle_conns: int = 0
    max_open_conns: int = 0
    disable_tls: bool = True


@dataclass
class LogConfig:
    level: str = "INFO"
    format: str = "text"


@dataclass
class VersionConfig:
    build: str = "develop"
    desc: str = "Todo Item API"


@dataclass
class ServiceConfig:
    """
    Complete service configuration.

        config = ServiceConfig.from_env()
        config.validate()
        api = config.server_config(config.web.api_host)
    """

    web: WebConfig = field(default_factory=WebConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    db: DBConfig = field(default_factory=DBConfig)
    log: LogConfig = field(default_factory=LogConfig)
    version: VersionConfig = field(default_factory=VersionConfig)

    @property
    def is_dev(self) -> bool:
        return self.auth.mode == "dev"

    @property
    def tls_enabled(self) -> bool:
        """TLS is used outside dev mode when both cert and key are set."""
        return not self.is_dev and bool(self.web.cert_file and self.web.key_file)

    @classmethod
    def from_env(
        cls,
        prefix: str = "TODO",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ServiceConfig":
        """
        Build a config from environment variables.

        Every field maps to PREFIX_SECTION_FIELD, e.g. web.read_timeout
        → TODO_WEB_READ_TIMEOUT. Unset variables keep the defaults.

        Args:
            prefix: Variable name prefix.
            environ: Mapping to read instead of os.environ (tests).

        Raises:
            ConfigError: If a variable holds an unparseable value.
        """
        env = os.environ if environ is None else environ
        config = cls()

        for section_field in fields(config):
            section = getattr(config, section_field.name)
            for f in fields(section):
                var = f"{prefix}_{section_field.name}_{f.name}".upper()
                if var not in env:
                    continue
                current = getattr(section, f.name)
                setattr(section, f.name, _convert(var, env[var], current))

        return config

    def validate(self) -> None:
        """
        Raises:
            ConfigError: On the first invalid value.
        """
        if self.auth.mode not in AUTH_MODES:
            raise ConfigError(
                f"Invalid auth mode: {self.auth.mode!r}. Must be one of {', '.join(AUTH_MODES)}."
            )
        if bool(self.web.cert_file) != bool(self.web.key_file):
            raise ConfigError("cert_file and key_file must be set together")

        split_host_port(self.web.api_host)
        split_host_port(self.web.debug_host)
        self.server_config(self.web.api_host).validate()

    def server_config(self, host_port: str) -> ServerConfig:
        """
        Derive the listener settings for one address.

            read → timeout, write → write_timeout,
            idle → keep_alive_timeout, shutdown → shutdown_timeout
        """
        host, port = split_host_port(host_port)
        return ServerConfig(
            host=host,
            port=port,
            timeout=self.web.read_timeout,
            write_timeout=self.web.write_timeout,
            keep_alive_timeout=self.web.idle_timeout,
            shutdown_timeout=self.web.shutdown_timeout,
            min_workers=self.web.min_workers,
            max_workers=self.web.max_workers,
            log_level=self.log.level,
            log_format=self.log.format,
            server_name=self.version.desc,
        )

    def as_dict(self, mask_secrets: bool = True) -> dict[str, Any]:
        """Flatten to {"web.read_timeout": 5.0, ...}."""
        result: dict[str, Any] = {}
        for section_field in fields(self):
            section = getattr(self, section_field.name)
            for f in fields(section):
                value = getattr(section, f.name)
                if mask_secrets and f.metadata.get("secret") and value:
                    value = "xxxxxx"
                result[f"{section_field.name}.{f.name}"] = value
        return result

    def describe(self) -> str:
        """Multi-line rendering for the startup log, secrets masked."""
        lines = []
        for key, value in self.as_dict().items():
            if key.endswith("_timeout"):
                value = _format_duration(value)
            lines.append(f"--{key.replace('.', '-').replace('_', '-')}={value}")
        return "\n".join(lines)


def _convert(var: str, raw: str, current: Any) -> Any:
    """Convert an env var string to the type of the field's default."""
    if isinstance(current, bool):
        return parse_bool(raw)
    if isinstance(current, float):
        return parse_duration(raw)
    if isinstance(current, int):
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{var}: expected an integer, got {raw!r}") from None
    return raw


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# ServerConfig   per-listener engine settings, validated by the server
# ServiceConfig  operator-facing tree built from TODO_* variables
# ConfigError    raised for anything invalid, always at startup
#
# Only durations, integers, booleans and strings occur, so the type of
# each field's default decides how its variable is parsed.
# =============================================================================
