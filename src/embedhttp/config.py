"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable knob of the server lives in one dataclass. The server reads
it once at construction time and never mutates it afterwards (except for
the host/port overrides passed to listen()).

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    1. Defaults        ServerConfig()
    2. Code            ServerConfig(port=3000, workers=8)
    3. Environment     ServerConfig.from_env()
    4. Command line    python -m embedhttp --port 3000

All four end up as the same ServerConfig object, and validate() is run
before the server touches a socket, so a bad value fails at startup
instead of on the first request.

=============================================================================
THE SETTINGS THAT SHAPE THE CORE
=============================================================================

    buffer_size     One recv() call reads at most this many bytes, and
                    that single read IS the request. Anything larger is
                    truncated. Default 30 KB.

    read_timeout    How long a worker waits on an idle connection before
                    closing it. This is the only cancellation mechanism.

    workers         Number of long-lived worker threads. Defaults to the
                    number of CPUs the OS reports.

    queue_size      0 keeps the accept queue unbounded. A positive value
                    turns on reject-on-full backpressure (503).

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from . import __version__


def _default_workers() -> int:
    """Available hardware parallelism, falling back to 4."""
    return os.cpu_count() or 4


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    Development:
        ServerConfig(host="127.0.0.1", port=8080, log_level="DEBUG")

    Production-ish:
        ServerConfig(host="0.0.0.0", port=80, workers=32, log_format="json")
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Interface to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """TCP port. 0 asks the OS for a free ephemeral port (handy in tests)."""

    backlog: int = 10
    """Size of the kernel accept queue passed to listen()."""

    buffer_size: int = 30720
    """Bytes read per request. Bounds the maximum single-read request size."""

    read_timeout: float = 5.0
    """Seconds a worker waits for the next request on a connection."""

    # ─────────────────────────────────────────────────────────────────────
    # WORKER POOL
    # ─────────────────────────────────────────────────────────────────────

    workers: int = field(default_factory=_default_workers)
    """Number of worker threads serving connections."""

    queue_size: int = 0
    """Max queued connections. 0 means unbounded (no backpressure)."""

    # ─────────────────────────────────────────────────────────────────────
    # RESPONSE FRAMING
    # ─────────────────────────────────────────────────────────────────────

    reason_phrases: bool = False
    """
    When False every status line reads "<code> OK", whatever the code.
    Existing clients depend on that, so it stays the default. Set to True
    to emit the standard reason phrase ("404 Not Found").
    """

    server_name: str = f"embedhttp/{__version__}"
    """Value of the Server header."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    log_format: str = "text"
    """Access log format: "text" (common log style) or "json"."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

            HTTP_HOST           bind address      (default: 0.0.0.0)
            HTTP_PORT           port              (default: 8080)
            HTTP_WORKERS        worker threads    (default: cpu count)
            HTTP_BUFFER_SIZE    read buffer bytes (default: 30720)
            HTTP_READ_TIMEOUT   seconds           (default: 5)
            HTTP_LOG_LEVEL      logging level     (default: INFO)

        Usage:
            HTTP_PORT=3000 HTTP_LOG_LEVEL=DEBUG python -m embedhttp
        """
        workers: Optional[str] = os.getenv("HTTP_WORKERS")
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            workers=int(workers) if workers else _default_workers(),
            buffer_size=int(os.getenv("HTTP_BUFFER_SIZE", "30720")),
            read_timeout=float(os.getenv("HTTP_READ_TIMEOUT", "5")),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by HTTPServer.__init__ so that a bad value is reported
        before any socket or thread is created.

        Raises:
            ValueError: On the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.workers < 1:
            raise ValueError("workers must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.read_timeout <= 0:
            raise ValueError("read_timeout must be > 0")

        if self.queue_size < 0:
            raise ValueError("queue_size must be >= 0")

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {self.log_format!r}")
