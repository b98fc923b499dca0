"""
=============================================================================
TCP ACCEPTOR
=============================================================================

The SocketServer owns the listening socket and nothing else. It accepts
client connections, wraps each one in a Connection, and hands it to a
callback. It never reads from a client socket itself.

    ┌────────────────────────────────────────────────────────────────────┐
    │                                                                    │
    │   bind()            socket() → setsockopt() → bind() → listen()    │
    │     │                                                              │
    │     │               Raises ServerStartupError if any step fails,   │
    │     │               so "port in use" surfaces to the caller        │
    │     ▼                                                              │
    │   serve_forever(callback)                                          │
    │     │                                                              │
    │     └──► while running:                                            │
    │              accept()          (wakes every 0.5 s to check flag)   │
    │              Connection(...)   apply buffer size and read timeout  │
    │              callback(conn)    HTTPServer enqueues it              │
    │                                                                    │
    │   shutdown()        running = False; the loop exits within 0.5 s   │
    │                                                                    │
    └────────────────────────────────────────────────────────────────────┘

bind() and serve_forever() are separate so that a caller running the
accept loop on a background thread still gets bind errors (and the
bound port) synchronously.

=============================================================================
SOCKET OPTIONS
=============================================================================

    SO_REUSEADDR    restart immediately instead of waiting out TIME_WAIT
    SO_REUSEPORT    several processes may share the port (where supported)
    TCP_NODELAY     send small responses immediately (no Nagle delay)

=============================================================================
SIGNALS
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd, kill) trigger
shutdown(). Python only allows signal handlers to be installed from the
main thread, so when serve_forever() runs on any other thread the
handlers are left alone and the embedding application is responsible
for calling shutdown().

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 0.5

# Pause after a failed accept() so EMFILE/ENFILE do not spin the loop
ACCEPT_ERROR_BACKOFF = 0.1


class ServerStartupError(OSError):
    """The listening socket could not be created, bound, or put in listen mode."""


class SocketServer:
    """
    Low-level TCP acceptor.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.bind()                         # may raise ServerStartupError
        server.serve_forever(handle_connection)  # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The address actually bound.

        With port 0 the OS picks a free port, so this reads it back from
        the socket rather than from the config.
        """
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    # =========================================================================
    # SETUP
    # =========================================================================

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
        except (AttributeError, OSError):
            pass  # Not available on this platform

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes periodically so shutdown() is noticed
        sock.settimeout(ACCEPT_POLL_INTERVAL)

        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind, and listen.

        Returns:
            The bound (host, port).

        Raises:
            ServerStartupError: On any socket failure (address in use,
                                permission denied, bad host...).
        """
        if self._socket is not None:
            return self.address

        host, port = self.config.host, self.config.port

        try:
            sock = self._create_socket()
        except OSError as e:
            logger.error(f"Failed to create socket: {e}")
            raise ServerStartupError(e.errno, f"Failed to create socket: {e}") from e

        try:
            sock.bind((host, port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            raise ServerStartupError(e.errno, f"Failed to bind to {host}:{port}: {e}") from e

        self._socket = sock
        self._running = True
        self._shutdown_event.clear()

        bound_host, bound_port = self.address
        logger.info(f"Server listening on {bound_host}:{bound_port}")
        return bound_host, bound_port

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def serve_forever(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown() is called.

        Binds first if bind() has not been called yet.

        Args:
            connection_handler: Receives each new Connection. It must not
                                block for long: the next accept() waits
                                for it.
        """
        self.bind()
        self._setup_signals()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                # One failed accept (ECONNABORTED, EMFILE...) never stops the server
                logger.error(f"Accept error: {e}")
                self._shutdown_event.wait(ACCEPT_ERROR_BACKOFF)
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                read_timeout=self.config.read_timeout,
            )
            connection_handler(conn)

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self):
        """Stop accepting. Safe to call from any thread, more than once."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        logger.info("Socket server stopped")
