"""
=============================================================================
HTTP SERVER
=============================================================================

HTTPServer ties the pieces together. It owns its route table and its
middleware chain (no module-level registries), so two servers in one
process never see each other's routes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                   │
    │      ┌──────────────┬───────────┼────────────┬──────────────┐       │
    │      ▼              ▼           ▼            ▼              ▼       │
    │ ┌──────────┐  ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐   │
    │ │ Socket   │  │ Thread   │ │ Request  │ │Middleware│ │  Router  │   │
    │ │ Server   │  │ Pool     │ │ Parser   │ │  Chain   │ │          │   │
    │ └──────────┘  └──────────┘ └──────────┘ └──────────┘ └──────────┘   │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. Acceptor thread:  accept() → Connection → pool.submit()
    2. Worker thread:    one recv() → RequestParser.parse()
    3.                   MiddlewareChain.run()   (a gate may stop here)
    4.                   Router.dispatch()       (or the fixed 404 page)
    5.                   Response.to_bytes() → sendall()
    6.                   access log line
    7.                   Connection: close?  → close
                         otherwise           → back to step 2

A handler that raises is not turned into a 500: the exception leaves
the connection loop, the socket is closed without a response, and the
worker logs the traceback and moves on to the next connection.

=============================================================================
REGISTRATION IS SETUP-TIME ONLY
=============================================================================

Routes and middleware are added before listen()/start(). After that the
route table and chain are read concurrently by every worker without a
lock, so registering later raises RuntimeError instead of racing.

=============================================================================
"""

import logging
import threading
import time
from typing import Optional, Tuple, Union

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool, Worker
from .http import HTTPStatus, Request, RequestParser, Response, Router
from .http.router import Handler
from .middleware import AccessLogEntry, Middleware, MiddlewareChain
from .middleware.base import GateFunction
from .middleware.logging import REQUEST_ID_HEADER


logger = logging.getLogger(__name__)

# The 503 is written on the acceptor thread, so a slow peer gets this long at most
REJECT_SEND_TIMEOUT = 0.2


class HTTPServer:
    """
    Embedded HTTP/1.1 server.

    Usage:
        server = HTTPServer(ServerConfig(port=8080))

        server.use(LoggingMiddleware())

        @server.get("/user/:id")
        def show_user(request, response):
            response.send("User ID: " + request.get_param("id"))

        server.listen()          # blocks until Ctrl+C

    Or in the background (tests, embedding):

        host, port = server.start()
        ...
        server.shutdown()
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            num_workers=self.config.workers,
            max_queue_size=self.config.queue_size,
        )
        self._parser = RequestParser()
        self._router = Router()
        self._middleware = MiddlewareChain()

        self._started = False
        self._running = False
        self._serve_thread: Optional[threading.Thread] = None

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def _check_not_started(self):
        if self._started:
            raise RuntimeError("Cannot register routes or middleware after the server has started")

    def use(self, middleware: Union[Middleware, GateFunction]) -> "HTTPServer":
        """
        Append a gate to the middleware chain.

        Returns:
            Self for chaining: server.use(a).use(b)
        """
        self._check_not_started()
        self._middleware.add(middleware)
        return self

    def route(self, method: str, pattern: str, handler: Optional[Handler] = None):
        """
        Register a handler for METHOD + pattern.

        With a handler, registers it and returns it. Without one, returns
        a decorator:

            server.route("GET", "/", index)

            @server.route("GET", "/")
            def index(request, response): ...
        """
        self._check_not_started()
        if handler is None:
            return self._router.route(method, pattern)
        self._router.add_route(method, pattern, handler)
        return handler

    def get(self, pattern: str, handler: Optional[Handler] = None):
        """Register a GET route."""
        return self.route("GET", pattern, handler)

    def post(self, pattern: str, handler: Optional[Handler] = None):
        """Register a POST route."""
        return self.route("POST", pattern, handler)

    def put(self, pattern: str, handler: Optional[Handler] = None):
        return self.route("PUT", pattern, handler)

    def delete(self, pattern: str, handler: Optional[Handler] = None):
        return self.route("DELETE", pattern, handler)

    def patch(self, pattern: str, handler: Optional[Handler] = None):
        return self.route("PATCH", pattern, handler)

    @property
    def router(self) -> Router:
        return self._router

    @property
    def middleware(self) -> MiddlewareChain:
        return self._middleware

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def server_address(self) -> Tuple[str, int]:
        """Bound (host, port). Reflects the real port when configured with 0."""
        return self._socket_server.address

    def _prepare(self, host: Optional[str], port: Optional[int]) -> Tuple[str, int]:
        if self._started:
            raise RuntimeError("Server already started")

        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port
        self.config.validate()

        self._setup_logging()

        # Bind before starting workers: a port conflict leaves nothing running
        address = self._socket_server.bind()

        self._started = True
        self._running = True
        self._thread_pool.start()

        logger.info(
            f"Serving {len(self._router)} routes with {self.config.workers} workers "
            f"on http://{address[0]}:{address[1]}"
        )
        self._router.log_routes()
        return address

    def listen(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server and block until shutdown.

        On the main thread, SIGINT and SIGTERM trigger a graceful
        shutdown.

        Raises:
            ServerStartupError: If the socket cannot be bound.
        """
        self._prepare(host, port)
        self._serve()

    def start(self, host: Optional[str] = None, port: Optional[int] = None) -> Tuple[str, int]:
        """
        Start the server on a background thread and return immediately.

        Returns:
            The bound (host, port).

        Raises:
            ServerStartupError: If the socket cannot be bound.
        """
        address = self._prepare(host, port)

        self._serve_thread = threading.Thread(
            target=self._serve,
            name="Acceptor",
            daemon=True,
        )
        self._serve_thread.start()
        return address

    def _serve(self):
        try:
            self._socket_server.serve_forever(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._stop_workers()

    def shutdown(self):
        """
        Stop accepting, let in-flight requests finish, and stop the workers.

        Connections still waiting in the queue are closed without a
        response. Safe to call from any thread and more than once.
        """
        if not self._started:
            return

        logger.info("Shutting down server...")
        self._running = False
        self._socket_server.shutdown()

        # The acceptor stops the workers on its way out. Joining it from a
        # worker (a handler calling shutdown) would deadlock.
        current = threading.current_thread()
        thread = self._serve_thread
        if thread is not None and thread is not current and not isinstance(current, Worker):
            thread.join()

    def _stop_workers(self):
        self._running = False
        for task in self._thread_pool.shutdown(timeout=30.0):
            conn = task.args[0]
            conn.close()
        logger.info("Server stopped")

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("embedhttp").setLevel(level)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def handle_request(self, request: Request) -> Response:
        """
        Run one parsed request through the middleware chain and router.

        Usable without any socket, which is how most tests drive it:

            response = server.handle_request(parse_request(b"GET / HTTP/1.1\\r\\n\\r\\n"))

        Handler exceptions propagate.
        """
        response = Response()

        if request.path:
            logger.debug(f"{request.method} {request.path}")

        if not self._middleware.run(request, response):
            return response

        if not self._router.dispatch(request, response):
            response.not_found()

        return response

    def _handle_connection(self, conn: Connection):
        """Hand a freshly accepted connection to the pool (acceptor thread)."""
        if self._thread_pool.submit(self._process_connection, args=(conn,)):
            return

        if self._thread_pool.is_running:
            logger.warning(f"[{conn.id}] Queue full, rejecting connection from {conn.client_ip}")
            self._reject(conn)
        conn.close()

    def _reject(self, conn: Connection):
        conn.socket.settimeout(REJECT_SEND_TIMEOUT)
        response = Response(status_code=HTTPStatus.SERVICE_UNAVAILABLE)
        response.set_body("Service Unavailable")
        conn.send(response.to_bytes(
            keep_alive=False,
            server_name=self.config.server_name,
            reason_phrases=self.config.reason_phrases,
        ))

    def _process_connection(self, conn: Connection):
        """
        Serve one connection until it closes (worker thread).

            AWAIT_REQUEST ──► PROCESSING ──► RESPOND ──► KEEP_OPEN ─┐
                  ▲                                                 │
                  └─────────────────────────────────────────────────┘

        Exits on: read timeout, peer close, read or write error,
        "Connection: close", or server shutdown.
        """
        with conn:
            while self._running:
                data = conn.receive()
                if data is None:
                    break

                started = time.perf_counter()

                request = self._parser.parse(data, conn.address)
                response = self.handle_request(request)

                keep_alive = request.wants_keep_alive
                payload = response.to_bytes(
                    keep_alive=keep_alive,
                    server_name=self.config.server_name,
                    reason_phrases=self.config.reason_phrases,
                )

                if not conn.send(payload):
                    break

                self._log_access(conn, request, response, keep_alive, started)

                if not keep_alive:
                    break

                conn.keep_open()

    def _log_access(
        self,
        conn: Connection,
        request: Request,
        response: Response,
        keep_alive: bool,
        started: float,
    ):
        AccessLogEntry(
            method=request.method,
            path=request.path,
            client_ip=conn.client_ip,
            status_code=int(response.status_code),
            content_length=len(response.body),
            duration_ms=(time.perf_counter() - started) * 1000,
            keep_alive=keep_alive,
            request_id=response.headers.get(REQUEST_ID_HEADER, ""),
        ).emit(self.config.log_format)


def create_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """Factory for HTTPServer instances."""
    return HTTPServer(config)
