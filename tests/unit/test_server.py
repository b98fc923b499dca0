"""
Unit tests for HTTPServer request handling and registration, without a listening socket.
"""

import socket
import time

import pytest

from embedhttp import GateResult, HTTPServer, ServerConfig
from embedhttp.__main__ import build_demo_app, config_from_args, parse_args
from embedhttp.core import Connection
from embedhttp.http.request import parse_request
from embedhttp.http.response import NOT_FOUND_BODY


def get(path: str, *headers: str) -> bytes:
    lines = [f"GET {path} HTTP/1.1", "Host: test", *headers]
    return ("\r\n".join(lines) + "\r\n\r\n").encode()


@pytest.fixture
def app(config: ServerConfig) -> HTTPServer:
    return build_demo_app(config)


class TestHandleRequest:
    """Tests for HTTPServer.handle_request against the demo app."""

    def test_index(self, app: HTTPServer):
        """Test the static index route."""
        response = app.handle_request(parse_request(get("/")))

        assert response.status_code == 200
        assert b"Hello from embedhttp" in response.body

    def test_user_param(self, app: HTTPServer):
        """Test a single path parameter."""
        response = app.handle_request(parse_request(get("/user/42")))
        assert response.body == b"User ID: 42"

    def test_post_comment_params(self, app: HTTPServer):
        """Test two path parameters."""
        response = app.handle_request(parse_request(get("/post/7/comment/3")))
        assert response.body == b"Post: 7, Comment: 3"

    def test_secret_requires_token(self, app: HTTPServer):
        """Test the auth gate stops the request."""
        response = app.handle_request(parse_request(get("/secret")))

        assert response.status_code == 401
        assert response.body == b"Unauthorized"

    def test_secret_with_token(self, app: HTTPServer):
        """Test the auth gate lets the right token through."""
        response = app.handle_request(parse_request(get("/secret", "Authorization: secret_token")))

        assert response.status_code == 200
        assert response.body == b"Welcome to the secret area!"

    def test_json_echo(self, app: HTTPServer, sample_post_request: bytes):
        """Test the JSON echo route."""
        response = app.handle_request(parse_request(sample_post_request))

        assert response.content_type == "application/json"
        assert response.body == b'{"received_name": "Ada"}'

    def test_json_echo_default_name(self, app: HTTPServer):
        """Test the fallback when no name is sent."""
        raw = b"POST /api/json HTTP/1.1\r\nContent-Type: application/json\r\n\r\n{}"
        response = app.handle_request(parse_request(raw))

        assert response.body == b'{"received_name": "Unknown"}'

    def test_login_sets_cookie(self, app: HTTPServer):
        """Test the login route queues a session cookie."""
        response = app.handle_request(parse_request(get("/login")))

        assert response.cookies == ["session_id=12345; Path=/; HttpOnly"]
        assert response.body == b"Cookie Set!"

    def test_dashboard_with_and_without_cookie(self, app: HTTPServer):
        """Test the dashboard reads the session cookie."""
        known = app.handle_request(parse_request(get("/dashboard", "Cookie: session_id=12345")))
        unknown = app.handle_request(parse_request(get("/dashboard")))

        assert known.body == b"Welcome back, user 12345!"
        assert unknown.body == b"Who are you? (No cookie found)"

    def test_not_found(self, app: HTTPServer):
        """Test the fixed 404 page."""
        response = app.handle_request(parse_request(get("/nonexistent")))

        assert response.status_code == 404
        assert response.body == NOT_FOUND_BODY.encode()

    def test_malformed_request_is_404(self, app: HTTPServer):
        """Test that garbage input is answered, not raised."""
        response = app.handle_request(parse_request(b"\r\n\r\n"))
        assert response.status_code == 404

    def test_gate_can_modify_then_continue(self, config: ServerConfig):
        """Test that headers set by a continuing gate survive the handler."""
        server = HTTPServer(config)

        def tag(request, response):
            response.set_header("X-Tag", "1")
            return GateResult.CONTINUE

        server.use(tag)
        server.get("/", lambda req, res: res.send("ok"))

        response = server.handle_request(parse_request(get("/")))
        assert response.headers["X-Tag"] == "1"
        assert response.body == b"ok"

    def test_handler_exception_propagates(self, config: ServerConfig):
        """Test that handle_request does not convert errors into responses."""
        server = HTTPServer(config)

        @server.get("/boom")
        def boom(request, response):
            raise ValueError("boom")

        with pytest.raises(ValueError):
            server.handle_request(parse_request(get("/boom")))


class TestReject:
    """Tests for the 503 written when the queue is full."""

    def test_slow_peer_does_not_stall(self):
        """Test that a peer that never reads cannot hold the acceptor for long."""
        server = HTTPServer(ServerConfig(port=0, read_timeout=5.0))
        server_sock, client_sock = socket.socketpair()
        try:
            server_sock.setblocking(False)
            try:
                while True:
                    server_sock.send(b"x" * 65536)
            except BlockingIOError:
                pass

            conn = Connection(server_sock, ("127.0.0.1", 1), read_timeout=5.0)

            started = time.monotonic()
            server._reject(conn)

            assert time.monotonic() - started < 2.0
        finally:
            server_sock.close()
            client_sock.close()


class TestRegistration:
    """Tests for the registration API."""

    def test_direct_and_decorator_forms(self, config: ServerConfig):
        """Test that both registration styles work."""
        server = HTTPServer(config)

        def direct(request, response):
            response.send("direct")

        assert server.put("/direct", direct) is direct

        @server.delete("/decorated")
        def decorated(request, response):
            response.send("decorated")

        assert server.router.resolve("PUT", "/direct").handler is direct
        assert server.router.resolve("DELETE", "/decorated").handler is decorated

    def test_use_chains(self, config: ServerConfig):
        """Test that use() returns the server."""
        server = HTTPServer(config)
        assert server.use(lambda req, res: None).use(lambda req, res: None) is server
        assert len(server.middleware) == 2

    def test_registration_after_start_raises(self, config: ServerConfig):
        """Test that the route table is frozen once the server runs."""
        server = HTTPServer(config)
        server.start()
        try:
            with pytest.raises(RuntimeError):
                server.get("/late", lambda req, res: None)
            with pytest.raises(RuntimeError):
                server.use(lambda req, res: None)
        finally:
            server.shutdown()

    def test_invalid_config_rejected(self):
        """Test that the constructor validates the config."""
        with pytest.raises(ValueError):
            HTTPServer(ServerConfig(workers=0))

    def test_servers_do_not_share_routes(self, config: ServerConfig):
        """Test that each server owns its route table."""
        a = HTTPServer(config)
        b = HTTPServer(ServerConfig(port=0))
        a.get("/only-a", lambda req, res: None)

        assert len(a.router) == 1
        assert len(b.router) == 0


class TestCLI:
    """Tests for command-line parsing."""

    def test_flags_override_environment(self, monkeypatch):
        """Test that flags beat environment variables."""
        monkeypatch.setenv("HTTP_PORT", "3000")
        monkeypatch.setenv("HTTP_WORKERS", "2")

        config = config_from_args(parse_args(["--port", "9000", "--buffer-size", "4096"]))

        assert config.port == 9000
        assert config.workers == 2
        assert config.buffer_size == 4096

    def test_version(self, capsys):
        """Test --version prints and exits."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "embedhttp" in capsys.readouterr().out
