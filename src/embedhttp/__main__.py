"""
=============================================================================
EMBEDHTTP CLI ENTRY POINT
=============================================================================

Runs a small demo application that exercises every feature:

    GET  /                               static route
    GET  /user/:id                       one path parameter
    GET  /post/:postId/comment/:commentId   two path parameters
    GET  /secret                         protected by HeaderAuthMiddleware
    GET  /api/json                       fixed JSON document
    POST /api/json                       echoes the "name" field
    GET  /login                          sets a session cookie
    GET  /dashboard                      reads it back

=============================================================================
USAGE
=============================================================================

    python -m embedhttp                       # 0.0.0.0:8080
    python -m embedhttp --port 3000
    python -m embedhttp --workers 8 --log-level DEBUG

    curl localhost:8080/user/42
    curl -H "Authorization: secret_token" localhost:8080/secret
    curl -H "Content-Type: application/json" -d '{"name": "Ada"}' localhost:8080/api/json

Settings not given on the command line come from the environment
(HTTP_PORT, HTTP_WORKERS, ...), then from the defaults.

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig
from .core import ServerStartupError
from .middleware import HeaderAuthMiddleware, LoggingMiddleware
from .server import HTTPServer


SESSION_COOKIE = "session_id"
DEMO_SESSION = "12345"


def build_demo_app(config: Optional[ServerConfig] = None) -> HTTPServer:
    """Create a server with the demo routes and middleware registered."""
    server = HTTPServer(config)

    server.use(LoggingMiddleware())
    server.use(HeaderAuthMiddleware(["/secret"], token="secret_token"))

    @server.get("/")
    def index(request, response):
        response.send(f"<h1>Hello from embedhttp v{__version__}!</h1>")

    @server.get("/user/:id")
    def show_user(request, response):
        response.send("User ID: " + request.get_param("id"))

    @server.get("/post/:postId/comment/:commentId")
    def show_comment(request, response):
        post_id = request.get_param("postId")
        comment_id = request.get_param("commentId")
        response.send(f"Post: {post_id}, Comment: {comment_id}")

    @server.get("/secret")
    def secret(request, response):
        response.send("Welcome to the secret area!")

    @server.get("/api/json")
    def json_hello(request, response):
        response.json({"message": "Hello JSON", "status": "ok"})

    @server.post("/api/json")
    def json_echo(request, response):
        response.json({"received_name": request.get_json("name", "Unknown")})

    @server.get("/login")
    def login(request, response):
        response.set_cookie(SESSION_COOKIE, DEMO_SESSION, "Path=/; HttpOnly")
        response.send("Cookie Set!")

    @server.get("/dashboard")
    def dashboard(request, response):
        if request.get_cookie(SESSION_COOKIE) == DEMO_SESSION:
            response.send(f"Welcome back, user {DEMO_SESSION}!")
        else:
            response.send("Who are you? (No cookie found)")

    return server


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="embedhttp",
        description="Small embeddable HTTP/1.1 server (demo application)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=None,
                        help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, default=None,
                        help="Port to listen on (default: 8080)")

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--workers", "-w", type=int, default=None,
                        help="Worker threads (default: CPU count)")
    parser.add_argument("--buffer-size", type=int, default=None,
                        help="Max bytes read per request (default: 30720)")

    # ─────────────────────────────────────────────────────────────────────
    # META
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--log-level", "-l", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INFO)")
    parser.add_argument("--version", "-v", action="version",
                        version=f"embedhttp {__version__}")

    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment-based config, overridden by any flag that was given."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.workers = args.workers
    if args.buffer_size is not None:
        config.buffer_size = args.buffer_size
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        server = build_demo_app(config_from_args(args))
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    try:
        server.listen()
    except ServerStartupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
