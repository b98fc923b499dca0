"""
pytest configuration and fixtures.
"""

import socket
from dataclasses import dataclass, field
from typing import Dict, Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from embedhttp import HTTPServer, ServerConfig
from embedhttp.__main__ import build_demo_app


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Cookie: session_id=12345; theme=dark\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "Ada", "age": 36, "admin": true}'
    return (
        b"POST /api/json HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration on an OS-assigned port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        workers=2,
        read_timeout=1.0,
        log_level="WARNING",
    )


# =============================================================================
# RAW SOCKET CLIENT
# =============================================================================

@dataclass
class RawResponse:
    """One response as read off the wire."""

    status_line: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def status_code(self) -> int:
        return int(self.status_line.split()[1])

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


class RawClient:
    """
    Minimal HTTP client over one TCP connection.

    Reads exactly one response per call (header block, then
    Content-Length bytes), so several requests can share the connection.
    """

    def __init__(self, address: Tuple[str, int], timeout: float = 5.0):
        self.sock = socket.create_connection(address, timeout=timeout)
        self._buffer = b""

    def send(self, data: bytes):
        self.sock.sendall(data)

    def _read_more(self) -> bool:
        chunk = self.sock.recv(65536)
        if not chunk:
            return False
        self._buffer += chunk
        return True

    def read_response(self) -> Optional[RawResponse]:
        """Next response, or None if the server closed the connection first."""
        while b"\r\n\r\n" not in self._buffer:
            if not self._read_more():
                return None

        head, _, self._buffer = self._buffer.partition(b"\r\n\r\n")
        lines = head.decode("utf-8").split("\r\n")

        response = RawResponse(status_line=lines[0])
        for line in lines[1:]:
            name, _, value = line.partition(": ")
            response.headers[name] = value

        length = int(response.headers.get("Content-Length", "0"))
        while len(self._buffer) < length:
            if not self._read_more():
                break
        response.body, self._buffer = self._buffer[:length], self._buffer[length:]
        return response

    def request(self, data: bytes) -> Optional[RawResponse]:
        self.send(data)
        return self.read_response()

    def get(self, path: str, headers: Optional[Dict[str, str]] = None) -> Optional[RawResponse]:
        lines = [f"GET {path} HTTP/1.1", "Host: localhost"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        return self.request(("\r\n".join(lines) + "\r\n\r\n").encode())

    def is_closed_by_server(self) -> bool:
        """True if the server has closed its end (recv returns EOF)."""
        try:
            return self.sock.recv(1) == b""
        except (ConnectionResetError, BrokenPipeError):
            return True

    def close(self):
        self.sock.close()


# =============================================================================
# RUNNING SERVERS
# =============================================================================

@pytest.fixture
def demo_server(config: ServerConfig) -> Generator[HTTPServer, None, None]:
    """The demo application running on a background thread."""
    server = build_demo_app(config)
    server.start()

    yield server

    server.shutdown()


@pytest.fixture
def connect(demo_server: HTTPServer) -> Generator:
    """Factory for RawClients connected to demo_server; closed after the test."""
    clients: List[RawClient] = []

    def _connect(server: Optional[HTTPServer] = None) -> RawClient:
        client = RawClient((server or demo_server).server_address)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        client.close()


@pytest.fixture
def launch() -> Generator:
    """
    Start any HTTPServer in the background.

    launch(server) returns a connect() function for RawClients to that
    server. Clients are closed, then servers shut down, after the test.
    """
    servers: List[HTTPServer] = []
    clients: List[RawClient] = []

    def _launch(server: HTTPServer):
        server.start()
        servers.append(server)

        def _connect() -> RawClient:
            client = RawClient(server.server_address)
            clients.append(client)
            return client

        return _connect

    yield _launch

    for client in clients:
        client.close()
    for server in servers:
        server.shutdown()
