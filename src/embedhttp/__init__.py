"""
=============================================================================
EMBEDHTTP - A Small Embeddable HTTP/1.1 Server
=============================================================================

Raw sockets, a fixed pool of worker threads, and just enough HTTP to put
a handful of routes in front of an application:

    - request parsing (query string, headers, cookies, form and flat
      JSON bodies) from a single socket read
    - static routes and ":param" templated routes
    - a chain of middleware gates that can answer early
    - keep-alive connections

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    embedhttp/
    ├── __init__.py          # Package exports
    ├── __main__.py          # CLI and demo app (python -m embedhttp)
    ├── server.py            # HTTPServer
    ├── config.py            # ServerConfig
    ├── core/
    │   ├── socket_server.py # Listening socket and accept loop
    │   ├── connection.py    # Per-client socket and state
    │   └── thread_pool.py   # Worker threads over a FIFO queue
    ├── http/
    │   ├── request.py       # Request + parser
    │   ├── response.py      # Response + serializer
    │   ├── router.py        # Route table
    │   ├── status_codes.py  # HTTPStatus
    │   └── mime_types.py    # Extension → Content-Type
    ├── middleware/
    │   ├── base.py          # GateResult, Middleware, MiddlewareChain
    │   ├── logging.py       # Request and access logging
    │   └── auth.py          # Header token gate
    └── handlers/
        ├── static.py        # File loading for send_file()
        └── templates.py     # {{key}} substitution for render()

=============================================================================
QUICK START
=============================================================================

    from embedhttp import HTTPServer, ServerConfig

    server = HTTPServer(ServerConfig(port=8080))

    @server.get("/user/:id")
    def show_user(request, response):
        response.send("User ID: " + request.get_param("id"))

    @server.post("/api/json")
    def echo(request, response):
        response.json({"received_name": request.get_json("name", "Unknown")})

    server.listen()

=============================================================================
"""

__version__ = "0.1.0"

from .config import ServerConfig
from .core import ServerStartupError
from .http import HTTPStatus, Request, Response, Router
from .middleware import GateResult, HeaderAuthMiddleware, LoggingMiddleware, Middleware
from .server import HTTPServer, create_app

__all__ = [
    "HTTPServer",
    "create_app",
    "ServerConfig",
    "ServerStartupError",
    "Request",
    "Response",
    "Router",
    "HTTPStatus",
    "GateResult",
    "Middleware",
    "LoggingMiddleware",
    "HeaderAuthMiddleware",
    "__version__",
]
