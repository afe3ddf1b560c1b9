"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for both server modes.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── minihttpd static 8080 --root ./public                     │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTP_ROOT_DIR=./public minihttpd static 8080              │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The config is read once at startup and never changes while requests are
being served; handlers only ever read it.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    MODE
    - mode: "static" or "proxy"

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, max_connections
    - timeout, connect_timeout

    REQUEST LIMITS
    - max_line_size, max_header_lines, max_upload_size, max_response_size

    STATIC FILES
    - root_dir

    LOGGING / IDENTITY
    - log_level, server_name

    =========================================================================
    """

    mode: str = "static"
    """Which handler serves requests: "static" or "proxy"."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only
    - "0.0.0.0" - All network interfaces
    """

    port: int = 8080
    """Port to listen on. 0 lets the OS pick a free one."""

    backlog: int = 128
    """Kernel accept queue length (listen backlog)."""

    buffer_size: int = 8192
    """Read buffer size for client and upstream streams, in bytes."""

    max_connections: int = 10
    """
    Connections served at the same time.
    Connections beyond this are reset right after accept, with no response.
    """

    timeout: Optional[float] = None
    """
    Client socket timeout in seconds, per read/write.
    None = no deadline: an idle client holds its slot until it goes away.
    """

    connect_timeout: Optional[float] = None
    """Proxy mode: upstream dial and read/write timeout. None = no deadline."""

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_line_size: int = 8192
    """Longest request line or header line accepted (431 beyond)."""

    max_header_lines: int = 100
    """Most header lines accepted in one request (431 beyond)."""

    max_upload_size: int = 10 * 1024 * 1024  # 10 MB
    """Static mode: largest POST body stored (413 beyond)."""

    max_response_size: int = 64 * 1024 * 1024  # 64 MB
    """Proxy mode: largest upstream response relayed (502 beyond)."""

    # ─────────────────────────────────────────────────────────────────────
    # STATIC FILES
    # ─────────────────────────────────────────────────────────────────────

    root_dir: str = "files"
    """Static mode: the only directory files are read from and written to."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    server_name: str = "minihttpd/1.0"
    """Value of the Server header on responses the server writes itself."""

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_MODE             static | proxy (default: static)
        HTTP_HOST             Server host (default: 127.0.0.1)
        HTTP_PORT             Server port (default: 8080)
        HTTP_MAX_CONNECTIONS  Concurrent connection limit (default: 10)
        HTTP_ROOT_DIR         Static files directory (default: files)
        HTTP_TIMEOUT          Client timeout in seconds (default: none)
        HTTP_CONNECT_TIMEOUT  Upstream timeout in seconds (default: none)
        HTTP_LOG_LEVEL        Logging level (default: INFO)

        Keyword overrides win over the environment, which is how the CLI
        layers its arguments on top:

            ServerConfig.from_env(port=3000)

        Raises:
            ValueError: A variable holds something that isn't a number
                        where one is expected.
        =====================================================================
        """
        values = dict(
            mode=os.getenv("HTTP_MODE", cls.mode),
            host=os.getenv("HTTP_HOST", cls.host),
            port=_env_int("HTTP_PORT", cls.port),
            max_connections=_env_int("HTTP_MAX_CONNECTIONS", cls.max_connections),
            root_dir=os.getenv("HTTP_ROOT_DIR", cls.root_dir),
            timeout=_env_float("HTTP_TIMEOUT"),
            connect_timeout=_env_float("HTTP_CONNECT_TIMEOUT"),
            log_level=os.getenv("HTTP_LOG_LEVEL", cls.log_level),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values.

        Called once at startup so a bad value fails immediately, not on
        the first request.

        Raises:
            ValueError: Describing the first invalid field.
        """
        if self.mode not in ("static", "proxy"):
            raise ValueError(f"Invalid mode: {self.mode!r}. Must be 'static' or 'proxy'.")

        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be > 0")

        if self.max_line_size < 64:
            raise ValueError("max_line_size must be >= 64")

        if self.max_header_lines < 1:
            raise ValueError("max_header_lines must be >= 1")

        if self.max_upload_size < 0:
            raise ValueError("max_upload_size must be >= 0")

        if self.max_response_size < 1:
            raise ValueError("max_response_size must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str) -> Optional[float]:
    # Unset or empty means "no timeout"
    value = os.getenv(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")
