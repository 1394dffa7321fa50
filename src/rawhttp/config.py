"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable the server has lives on one dataclass, ServerConfig. It is
built from code, from environment variables, or from the command line,
and validated once at startup.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line arguments                                         │
    │      └── rawhttp --port 3000 --directory /tmp/files                 │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── RAWHTTP_PORT=3000 rawhttp                                  │
    │                                                                     │
    │   3. Defaults below                                                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK       host, port, backlog, buffer_size
    TIMEOUTS      idle_timeout, write_timeout
    PARSER LIMITS max_line_size, max_headers
    FILES         directory
    LOGGING       log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """IP address to bind to. "0.0.0.0" listens on every interface."""

    port: int = 4221
    """TCP port to listen on. 0 asks the OS for a free one."""

    backlog: int = 128
    """Maximum number of connections queued before accept()."""

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    # ─────────────────────────────────────────────────────────────────────
    # TIMEOUTS
    # ─────────────────────────────────────────────────────────────────────

    idle_timeout: float = 5.0
    """
    Idle-read deadline in seconds.

    Re-armed every time the server starts waiting for a request. The whole
    request (line, headers, body) must arrive before it expires, otherwise
    the connection is closed without a response.
    """

    write_timeout: Optional[float] = 30.0
    """Socket timeout for each response write. None blocks forever."""

    # ─────────────────────────────────────────────────────────────────────
    # PARSER LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_line_size: int = 8192
    """Longest request line or header line accepted, in bytes."""

    max_headers: int = 100
    """Most header lines accepted in one request."""

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    directory: Optional[str] = None
    """
    Base directory for /files/{name}.

    None disables file routes: every /files/ request answers 404.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG shows connection lifecycle, INFO shows access logs."""

    log_format: str = "text"
    """Access log format: 'text' (Apache-like) or 'json'."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        RAWHTTP_HOST          Bind address (default: 0.0.0.0)
        RAWHTTP_PORT          Listen port (default: 4221)
        RAWHTTP_DIRECTORY     Base directory for /files/ (default: unset)
        RAWHTTP_IDLE_TIMEOUT  Idle-read deadline in seconds (default: 5)
        RAWHTTP_LOG_LEVEL     Logging level (default: INFO)

        =====================================================================
        """
        return cls(
            host=os.getenv("RAWHTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("RAWHTTP_PORT", "4221")),
            directory=os.getenv("RAWHTTP_DIRECTORY") or None,
            idle_timeout=float(os.getenv("RAWHTTP_IDLE_TIMEOUT", "5")),
            log_level=os.getenv("RAWHTTP_LOG_LEVEL", "INFO"),
        )

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")
        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")
        if self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be > 0")
        if self.write_timeout is not None and self.write_timeout <= 0:
            raise ValueError("write_timeout must be > 0")
        if self.max_line_size < 64:
            raise ValueError("max_line_size must be >= 64")
        if self.max_headers < 1:
            raise ValueError("max_headers must be >= 1")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}")
