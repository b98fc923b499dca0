"""
Unit tests for URL router.
"""

import pytest

from embedhttp.http.router import Router, Route, split_path
from embedhttp.http.request import Request
from embedhttp.http.response import Response


def make_request(method: str, path: str) -> Request:
    """Helper to create a request for testing."""
    return Request(method=method, path=path)


def dummy_handler(request: Request, response: Response) -> None:
    """Dummy handler for testing."""
    response.send(request.path)


def named_handler(name: str):
    """Handler that writes its own name, to tell routes apart."""
    def handler(request: Request, response: Response) -> None:
        response.send(name)
    return handler


class TestSplitPath:
    """Tests for split_path."""

    @pytest.mark.parametrize("path,expected", [
        ("/post/7/comment/3", ["post", "7", "comment", "3"]),
        ("/user/42/", ["user", "42"]),
        ("//a///b", ["a", "b"]),
        ("/", []),
        ("", []),
    ])
    def test_empty_segments_dropped(self, path, expected):
        """Test that repeated and trailing slashes produce no segments."""
        assert split_path(path) == expected


class TestRouter:
    """Tests for Router class."""

    def test_add_static_route(self):
        """Test that a route without parameters is stored by key."""
        router = Router()
        route = router.add_route("get", "/users", dummy_handler)

        assert route.method == "GET"
        assert route.key == "GET:/users"
        assert not route.is_templated
        assert len(router) == 1

    def test_add_templated_route(self):
        """Test that a ':name' segment makes a route templated."""
        router = Router()
        route = router.add_route("GET", "/user/:id", dummy_handler)

        assert route.is_templated
        assert route.segments == ["user", ":id"]

    def test_match_static_path(self):
        """Test matching static paths."""
        router = Router()
        router.add_route("GET", "/users", dummy_handler)
        router.add_route("GET", "/posts", dummy_handler)

        match = router.resolve("GET", "/users")
        assert match is not None
        assert match.route.path == "/users"
        assert match.params == {}

    def test_match_with_method(self):
        """Test method-based routing."""
        router = Router()
        router.add_route("GET", "/users", named_handler("get"))
        router.add_route("POST", "/users", named_handler("post"))

        assert router.resolve("GET", "/users").route.method == "GET"
        assert router.resolve("POST", "/users").route.method == "POST"
        assert router.resolve("DELETE", "/users") is None

    def test_match_path_params(self):
        """Test path parameter extraction."""
        router = Router()
        router.add_route("GET", "/post/:postId/comment/:commentId", dummy_handler)

        match = router.resolve("GET", "/post/7/comment/3")
        assert match.params == {"postId": "7", "commentId": "3"}

    def test_param_captures_raw_text(self):
        """Test that parameters keep special characters untouched."""
        router = Router()
        router.add_route("GET", "/user/:id", dummy_handler)

        assert router.resolve("GET", "/user/ada@example.com").params == {"id": "ada@example.com"}
        assert router.resolve("GET", "/user/a%20b").params == {"id": "a%20b"}

    def test_templated_route_requires_same_method(self):
        """Test that templated matching is per method."""
        router = Router()
        router.add_route("GET", "/user/:id", dummy_handler)

        assert router.resolve("POST", "/user/42") is None

    def test_segment_count_must_match(self):
        """Test that extra or missing segments never match."""
        router = Router()
        router.add_route("GET", "/user/:id", dummy_handler)

        assert router.resolve("GET", "/user") is None
        assert router.resolve("GET", "/user/42/extra") is None

    def test_trailing_slash_matches_templated(self):
        """Test that empty segments are ignored for templated routes."""
        router = Router()
        router.add_route("GET", "/user/:id", dummy_handler)

        assert router.resolve("GET", "/user/42/").params == {"id": "42"}

    @pytest.mark.parametrize("static_first", [False, True])
    def test_static_takes_precedence(self, static_first):
        """Test that a static route beats a templated one in either registration order."""
        routes = [
            ("/user/:id", named_handler("templated")),
            ("/user/me", named_handler("static")),
        ]
        if static_first:
            routes.reverse()

        router = Router()
        for pattern, handler in routes:
            router.add_route("GET", pattern, handler)

        response = Response()
        router.dispatch(make_request("GET", "/user/me"), response)
        assert response.body == b"static"

    def test_first_templated_route_wins(self):
        """Test registration order among templated routes."""
        router = Router()
        router.add_route("GET", "/item/:a", named_handler("first"))
        router.add_route("GET", "/item/:b", named_handler("second"))

        match = router.resolve("GET", "/item/1")
        assert match.params == {"a": "1"}

    def test_static_reregistration_replaces(self):
        """Test that the last static registration wins."""
        router = Router()
        router.add_route("GET", "/", named_handler("old"))
        router.add_route("GET", "/", named_handler("new"))

        response = Response()
        router.dispatch(make_request("GET", "/"), response)
        assert response.body == b"new"
        assert len(router) == 1

    def test_no_match(self):
        """Test that unknown paths resolve to None."""
        router = Router()
        router.add_route("GET", "/users", dummy_handler)

        assert router.resolve("GET", "/nonexistent") is None


class TestDispatch:
    """Tests for Router.dispatch."""

    def test_dispatch_injects_params(self):
        """Test that params are visible to the handler."""
        router = Router()
        seen = {}

        @router.get("/user/:id")
        def handler(request, response):
            seen.update(request.params)
            response.send("User ID: " + request.get_param("id"))

        request = make_request("GET", "/user/42")
        response = Response()

        assert router.dispatch(request, response) is True
        assert seen == {"id": "42"}
        assert response.body == b"User ID: 42"

    def test_dispatch_no_match(self):
        """Test that dispatch reports a miss and leaves the response alone."""
        router = Router()
        response = Response()

        assert router.dispatch(make_request("GET", "/missing"), response) is False
        assert response.body == b""

    def test_handler_exception_propagates(self):
        """Test that the router does not swallow handler errors."""
        router = Router()

        @router.get("/boom")
        def boom(request, response):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            router.dispatch(make_request("GET", "/boom"), Response())

    def test_decorators_return_handler(self):
        """Test that the decorator leaves the function usable."""
        router = Router()

        @router.post("/x")
        def handler(request, response):
            pass

        assert callable(handler)
        assert router.resolve("POST", "/x").handler is handler

    def test_routes_listing(self):
        """Test that routes() lists static then templated routes."""
        router = Router()
        router.add_route("GET", "/a/:x", dummy_handler)
        router.add_route("GET", "/b", dummy_handler)

        assert [r.path for r in router.routes()] == ["/b", "/a/:x"]
        assert all(isinstance(r, Route) for r in router.routes())
