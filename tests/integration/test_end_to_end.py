"""
Integration tests: real TCP sockets against running servers.
"""

import errno
import socket
import threading

import pytest

from embedhttp import HTTPServer, ServerConfig, ServerStartupError
from embedhttp.http.response import NOT_FOUND_BODY


class FailingOnceListener:
    """Listening socket wrapper whose first accept() fails like ECONNABORTED."""

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self.failed = threading.Event()

    def accept(self):
        if not self.failed.is_set():
            self.failed.set()
            raise ConnectionAbortedError(errno.ECONNABORTED, "Software caused connection abort")
        return self._sock.accept()

    def __getattr__(self, name):
        return getattr(self._sock, name)


class TestScenarios:
    """End-to-end request/response scenarios against the demo app."""

    def test_user_id(self, connect):
        """Test GET /user/42 answers with the path parameter."""
        response = connect().get("/user/42")

        assert response.status_code == 200
        assert response.text == "User ID: 42"

    def test_post_comment(self, connect):
        """Test two path parameters over the wire."""
        response = connect().get("/post/7/comment/3")
        assert response.text == "Post: 7, Comment: 3"

    def test_secret_unauthorized(self, connect):
        """Test that the auth gate answers 401 with the default "OK" phrase."""
        response = connect().get("/secret")

        assert response.status_line == "HTTP/1.1 401 OK"
        assert response.text == "Unauthorized"

    def test_secret_authorized(self, connect):
        """Test that the token opens the protected route."""
        response = connect().get("/secret", {"Authorization": "secret_token"})
        assert response.text == "Welcome to the secret area!"

    def test_json_name(self, connect, sample_post_request: bytes):
        """Test the JSON echo route end to end."""
        response = connect().request(sample_post_request)

        assert response.headers["Content-Type"] == "application/json"
        assert response.text == '{"received_name": "Ada"}'

    def test_not_found(self, connect):
        """Test the fixed 404 page."""
        response = connect().get("/nonexistent")

        assert response.status_code == 404
        assert response.text == NOT_FOUND_BODY

    def test_headers(self, connect, demo_server: HTTPServer):
        """Test the fixed response headers."""
        response = connect().get("/")

        assert response.headers["Server"] == demo_server.config.server_name
        assert response.headers["Content-Length"] == str(len(response.body))
        assert response.headers["Connection"] == "keep-alive"
        assert "X-Request-ID" in response.headers

    def test_cookie_roundtrip(self, connect):
        """Test login then dashboard with the returned cookie."""
        client = connect()

        login = client.get("/login")
        assert login.headers["Set-Cookie"] == "session_id=12345; Path=/; HttpOnly"

        dashboard = client.get("/dashboard", {"Cookie": "session_id=12345"})
        assert dashboard.text == "Welcome back, user 12345!"

    def test_concurrent_clients(self, connect):
        """Test that more clients than workers are all served."""
        clients = [connect() for _ in range(4)]
        results = {}

        def fetch(i, client):
            results[i] = client.get(f"/user/{i}", {"Connection": "close"}).text

        threads = [threading.Thread(target=fetch, args=(i, c)) for i, c in enumerate(clients)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(5.0)

        assert results == {i: f"User ID: {i}" for i in range(4)}


class TestKeepAlive:
    """Tests for connection reuse."""

    def test_multiple_requests_one_connection(self, connect):
        """Test that a connection serves several requests."""
        client = connect()

        assert client.get("/user/1").text == "User ID: 1"
        assert client.get("/user/2").text == "User ID: 2"
        assert client.get("/user/3").text == "User ID: 3"

    def test_connection_close(self, connect):
        """Test that Connection: close yields one response, then EOF."""
        client = connect()
        response = client.get("/user/9", {"Connection": "close"})

        assert response.headers["Connection"] == "close"
        assert response.text == "User ID: 9"
        assert client.is_closed_by_server()

    def test_idle_connection_times_out(self, connect):
        """Test that the server closes a connection that sends nothing."""
        client = connect()

        # read_timeout is 1 s in the test config, the client waits 5 s
        assert client.is_closed_by_server()


class TestFaults:
    """Tests for error paths."""

    def test_handler_exception_closes_connection(self, config: ServerConfig, launch):
        """Test that a failing handler drops its connection and the server survives."""
        server = HTTPServer(config)

        @server.get("/boom")
        def boom(request, response):
            raise RuntimeError("handler failed")

        @server.get("/ok")
        def ok(request, response):
            response.send("fine")

        connect = launch(server)

        broken = connect()
        assert broken.get("/boom") is None

        assert connect().get("/ok").text == "fine"

    def test_port_in_use(self, config: ServerConfig):
        """Test that binding a taken port raises ServerStartupError."""
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        server = HTTPServer(config)

        try:
            with pytest.raises(ServerStartupError):
                server.start(port=blocker.getsockname()[1])
        finally:
            blocker.close()

        assert not server.is_running

    def test_full_queue_answers_503(self, launch):
        """Test reject-on-full backpressure with a bounded queue."""
        started = threading.Event()
        release = threading.Event()

        server = HTTPServer(ServerConfig(
            host="127.0.0.1", port=0, workers=1, queue_size=1, read_timeout=1.0,
        ))

        @server.get("/slow")
        def slow(request, response):
            started.set()
            release.wait(5.0)
            response.send("slow")

        connect = launch(server)
        try:
            busy = connect()
            busy.send(b"GET /slow HTTP/1.1\r\nConnection: close\r\n\r\n")
            assert started.wait(5.0)

            connect()  # fills the single queue slot

            rejected = connect().read_response()
            assert rejected.status_code == 503
            assert rejected.headers["Connection"] == "close"
        finally:
            release.set()

    def test_accept_error_does_not_stop_server(self, config: ServerConfig, launch):
        """Test that a failed accept() is logged and the server keeps serving."""
        server = HTTPServer(config)
        server.get("/ok", lambda req, res: res.send("ok"))
        connect = launch(server)

        listener = FailingOnceListener(server._socket_server._socket)
        server._socket_server._socket = listener
        assert listener.failed.wait(5.0)

        response = connect().get("/ok")

        assert server.is_running
        assert response.status_code == 200
        assert response.text == "ok"


class TestLifecycle:
    """Tests for start and shutdown."""

    def test_start_returns_bound_address(self, config: ServerConfig):
        """Test that start() reports the OS-assigned port."""
        server = HTTPServer(config)
        try:
            host, port = server.start()

            assert host == "127.0.0.1"
            assert port > 0
            assert server.server_address == (host, port)
            assert server.is_running
        finally:
            server.shutdown()

        assert not server.is_running

    def test_shutdown_refuses_new_connections(self, config: ServerConfig):
        """Test that the listening socket is closed after shutdown."""
        server = HTTPServer(config)
        address = server.start()
        server.shutdown()

        with pytest.raises(OSError):
            socket.create_connection(address, timeout=1.0)

    def test_shutdown_is_idempotent(self, config: ServerConfig):
        """Test that shutting down twice (or never starting) is harmless."""
        server = HTTPServer(config)
        server.shutdown()

        server.start()
        server.shutdown()
        server.shutdown()

    def test_start_twice_raises(self, config: ServerConfig):
        """Test that a server can only be started once."""
        server = HTTPServer(config)
        server.start()
        try:
            with pytest.raises(RuntimeError):
                server.start()
        finally:
            server.shutdown()
