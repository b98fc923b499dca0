"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

A Connection wraps one accepted client socket for the worker that serves
it. The worker drives it through a small state machine:

                 ┌────────────────────────────────────────────┐
                 │                                            │
                 ▼                                            │
        ┌─────────────────┐  bytes   ┌────────────┐           │
   ───► │  AWAIT_REQUEST  │ ───────► │ PROCESSING │           │
        └────────┬────────┘          └─────┬──────┘           │
                 │                         │                  │
                 │ 0 bytes /               ▼                  │
                 │ timeout /         ┌────────────┐  keep     │
                 │ error             │  RESPOND   │ ──────► KEEP_OPEN
                 │                   └─────┬──────┘  alive
                 │                         │
                 │                         │ close requested /
                 ▼                         ▼ write failed
        ┌──────────────────────────────────────────┐
        │                 CLOSED                   │
        └──────────────────────────────────────────┘

=============================================================================
ONE READ, ONE REQUEST
=============================================================================

receive() performs exactly ONE recv() of at most buffer_size bytes and
hands the result to the parser. There is no reassembly across reads and
no Content-Length-driven body reading:

    - a request larger than buffer_size is truncated
    - a request split across TCP segments may arrive partial
      (the parser copes: missing blank line → headers only, empty body)

This is the contract of the embedded server. buffer_size bounds the
largest request it can serve.

=============================================================================
TIMEOUTS ARE NOT ERRORS
=============================================================================

The socket has a fixed read timeout (5 s by default). When it fires the
client simply has nothing more to say, so receive() returns None and the
connection is closed quietly. Same for a peer that closed its end and
for a reset connection.

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Where a connection is in its request/response cycle."""

    AWAIT_REQUEST = "await_request"   # Blocking on recv()
    PROCESSING = "processing"         # Parsing, middleware, handler
    RESPOND = "respond"               # Writing the response
    KEEP_OPEN = "keep_open"           # Response sent, looping for more
    CLOSED = "closed"                 # Socket released


@dataclass
class Connection:
    """
    One client connection.

    Usage (the server always uses the context manager, so the socket is
    released on every exit path, including a handler exception):

        with Connection(sock, addr, buffer_size=4096) as conn:
            while (data := conn.receive()) is not None:
                ...
                if not conn.send(response_bytes):
                    break

    Attributes:
        socket: The accepted client socket.
        address: Client (ip, port).
        id: Short identifier used in log lines.
        state: Current ConnectionState.
        buffer_size: Max bytes read per request.
        read_timeout: Seconds to wait for a request before closing.
        requests_handled: Completed request/response cycles.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.AWAIT_REQUEST
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 30720
    read_timeout: float = 5.0

    def __post_init__(self):
        # Blocking socket with a per-read timeout
        self.socket.settimeout(self.read_timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def receive(self) -> Optional[bytes]:
        """
        Wait for the next request.

        Returns:
            The bytes of one recv() call, or None if the peer closed the
            connection, the read timed out, or the socket failed. None
            means "close this connection", never "try again".
        """
        self.state = ConnectionState.AWAIT_REQUEST

        try:
            data = self.socket.recv(self.buffer_size)
        except socket.timeout:
            logger.debug(f"[{self.id}] Read timeout after {self.read_timeout}s")
            return None
        except OSError as e:
            logger.debug(f"[{self.id}] Read failed: {e}")
            return None

        if not data:
            logger.debug(f"[{self.id}] Peer closed connection")
            return None

        self.state = ConnectionState.PROCESSING
        return data

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Write a full response.

        sendall() loops until every byte is written, so a large response
        is never cut short by a partial send().

        Returns:
            True on success, False if the peer is gone.
        """
        self.state = ConnectionState.RESPOND

        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False

        self.requests_handled += 1
        return True

    def keep_open(self) -> None:
        """Mark the connection as waiting for another request."""
        self.state = ConnectionState.KEEP_OPEN

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Release the socket. Safe to call more than once.

        shutdown(SHUT_WR) sends FIN first so the client sees a clean end
        of stream after the last response instead of a reset.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Closed after {self.requests_handled} requests in {self.age:.2f}s"
        )

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False  # Don't suppress exceptions
