"""
=============================================================================
URL ROUTING
=============================================================================

The router maps (method, path) to a handler function.

    GET  /                              → index
    GET  /user/:id                      → show_user      params {"id": ...}
    GET  /post/:postId/comment/:cid     → show_comment
    POST /api/json                      → echo_json

=============================================================================
TWO KINDS OF ROUTES
=============================================================================

STATIC routes have no parameter segments. They live in a dict keyed by
"METHOD:path", so lookup is a single hash probe:

    {"GET:/": index, "POST:/api/json": echo_json}

    Registering the same METHOD:path again silently replaces the handler.

TEMPLATED routes contain at least one ":name" segment. They live in a
list and are matched segment by segment, in registration order:

    pattern   ["user", ":id"]
    path      ["user", "42"]     → match, params {"id": "42"}
    path      ["user"]           → segment count differs, no match
    path      ["users", "42"]    → literal differs, no match

=============================================================================
RESOLUTION ORDER
=============================================================================

    1. Exact static probe                 (always wins)
    2. Templated routes, first registered first
    3. Nothing matched                    → None (server sends 404)

Two templated routes with the same shape can both match a path. The one
registered first wins, every time. Do not reorder the list.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .request import Request
from .response import Response


logger = logging.getLogger(__name__)


# A handler fills in the response. Its return value is ignored.
Handler = Callable[[Request, Response], None]

PARAM_PREFIX = ":"


def split_path(path: str) -> List[str]:
    """
    Split a path into segments, dropping empty ones.

        "/post/7/comment/3"  → ["post", "7", "comment", "3"]
        "/user/42/"          → ["user", "42"]
        "/"                  → []
    """
    return [segment for segment in path.split("/") if segment]


@dataclass
class Route:
    """
    A registered route.

    Attributes:
        method:   Upper-case HTTP method
        path:     Pattern as registered ("/user/:id")
        handler:  Function called with (request, response)
        segments: Pattern split into segments
    """

    method: str
    path: str
    handler: Handler
    segments: List[str] = field(default_factory=list, repr=False)

    @property
    def is_templated(self) -> bool:
        return any(segment.startswith(PARAM_PREFIX) for segment in self.segments)

    @property
    def key(self) -> str:
        """Static lookup key, e.g. "GET:/about"."""
        return f"{self.method}:{self.path}"

    def match(self, path_segments: List[str]) -> Optional[Dict[str, str]]:
        """
        Match already-split path segments against this route's pattern.

        Returns the captured parameters, or None if the path does not fit.
        A ":name" segment captures the raw text of the path segment,
        including characters like "@", "." or "%20".
        """
        if len(path_segments) != len(self.segments):
            return None

        params: Dict[str, str] = {}
        for pattern_segment, path_segment in zip(self.segments, path_segments):
            if pattern_segment.startswith(PARAM_PREFIX):
                params[pattern_segment[len(PARAM_PREFIX):]] = path_segment
            elif pattern_segment != path_segment:
                return None
        return params


@dataclass
class RouteMatch:
    """
    Result of a successful resolve().

    Example:
        Pattern: /user/:id
        Path:    /user/42
        Result:  RouteMatch(route=<Route>, params={"id": "42"})
    """

    route: Route
    params: Dict[str, str]

    @property
    def handler(self) -> Handler:
        return self.route.handler


class Router:
    """
    Route table with static and templated routes.

    Routes are registered before the server starts and only read
    afterwards, so no locking is needed during request handling.

    Usage:
        router = Router()

        @router.get("/user/:id")
        def show_user(request, response):
            response.send(f"User ID: {request.get_param('id')}")

        match = router.resolve("GET", "/user/42")
        match.params        # {"id": "42"}
    """

    def __init__(self):
        self._static: Dict[str, Route] = {}
        self._templated: List[Route] = []

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def add_route(self, method: str, path: str, handler: Handler) -> Route:
        """
        Register a handler for METHOD + path pattern.

        A pattern with any ":name" segment is templated; everything else
        is static and overwrites an earlier handler with the same key.
        """
        route = Route(
            method=method.upper(),
            path=path,
            handler=handler,
            segments=split_path(path),
        )

        if route.is_templated:
            self._templated.append(route)
        else:
            if route.key in self._static:
                logger.debug(f"Replacing handler for {route.key}")
            self._static[route.key] = route

        return route

    def route(self, method: str, path: str) -> Callable[[Handler], Handler]:
        """
        Decorator form of add_route().

            @router.route("PUT", "/user/:id")
            def update_user(request, response):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(method, path, handler)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route("GET", path)

    def post(self, path: str) -> Callable[[Handler], Handler]:
        """Register a POST route."""
        return self.route("POST", path)

    def put(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("PUT", path)

    def delete(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("DELETE", path)

    def patch(self, path: str) -> Callable[[Handler], Handler]:
        return self.route("PATCH", path)

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the handler for a request.

        Args:
            method: Request method, compared as sent (after upper() on
                    the registered side, so "get" never matches "GET").
            path:   Request path without query string.

        Returns:
            RouteMatch, or None when nothing matches.
        """
        route = self._static.get(f"{method}:{path}")
        if route is not None:
            return RouteMatch(route=route, params={})

        path_segments = split_path(path)
        for route in self._templated:
            if route.method != method:
                continue
            params = route.match(path_segments)
            if params is not None:
                return RouteMatch(route=route, params=params)

        return None

    def dispatch(self, request: Request, response: Response) -> bool:
        """
        Resolve the request and run the matching handler.

        Path parameters are injected into request.params before the
        handler runs. Handler exceptions propagate to the caller.

        Returns:
            True if a handler ran, False if no route matched.
        """
        match = self.resolve(request.method, request.path)
        if match is None:
            return False

        if match.params:
            request.params = match.params
        match.handler(request, response)
        return True

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """All routes: static first, then templated in registration order."""
        return list(self._static.values()) + list(self._templated)

    def __len__(self) -> int:
        return len(self._static) + len(self._templated)

    def log_routes(self) -> None:
        """Log the route table at DEBUG level."""
        for route in self.routes():
            logger.debug(f"  {route.method:8} {route.path}")
