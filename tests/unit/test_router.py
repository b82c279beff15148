"""
Unit tests for URL router.
"""

from assetrelay.http.router import Router
from assetrelay.http.request import HTTPRequest
from assetrelay.http.response import HTTPResponse, ResponseBuilder, HTTPStatus


def make_request(method: str, path: str) -> HTTPRequest:
    """Helper to create a request for testing."""
    return HTTPRequest(method=method, target=path, raw_path=path, path=path)


def dummy_handler(request: HTTPRequest) -> HTTPResponse:
    """Dummy handler for testing."""
    return ResponseBuilder().json({"path": request.path}).build()


def asset_fallback(request: HTTPRequest) -> HTTPResponse:
    """Stands in for the asset dispatcher."""
    return ResponseBuilder().text(f"asset {request.path}").build()


class TestRouter:
    """Tests for Router class."""

    def test_add_route(self):
        """Test adding routes."""
        router = Router()
        router.add_route("/__status", dummy_handler, method="get")

        assert len(router.routes) == 1
        assert router.routes[0].path == "/__status"
        assert router.routes[0].method == "GET"

    def test_match_static_path(self):
        """Test matching static paths."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")
        router.add_route("/posts", dummy_handler, method="GET")

        assert router.match("GET", "/users").route.path == "/users"
        assert router.match("GET", "/posts/").route.path == "/posts"

    def test_match_root(self):
        """The root pattern only matches the root path."""
        router = Router()
        router.add_route("/", dummy_handler, method="GET")

        assert router.match("GET", "/") is not None
        assert router.match("GET", "/index.html") is None

    def test_match_dynamic_params(self):
        """Test dynamic path parameters."""
        router = Router()
        router.add_route("/users/:user_id/posts/:post_id", dummy_handler, method="GET")

        match = router.match("GET", "/users/456/posts/789")
        assert match is not None
        assert match.params == {"user_id": "456", "post_id": "789"}

    def test_match_wildcard(self):
        """Test wildcard path matching."""
        router = Router()
        router.add_route("/static/*path", dummy_handler, method="GET")

        match = router.match("GET", "/static/css/style.css")
        assert match is not None
        assert match.params == {"path": "css/style.css"}

    def test_no_match(self):
        """Test when no route matches."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")

        assert router.match("GET", "/posts") is None
        assert router.match("POST", "/users") is None

    def test_get_allowed_methods(self):
        """Test getting allowed methods for a path."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")
        router.add_route("/users", dummy_handler, method="DELETE")

        assert router.get_allowed_methods("/users") == ["DELETE", "GET"]
        assert router.get_allowed_methods("/other") == []

    def test_handle_success(self):
        """Test handling a request successfully."""
        router = Router()

        @router.get("/hello")
        def hello(request):
            return ResponseBuilder().text("Hello!").build()

        response = router.handle(make_request("GET", "/hello"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"Hello!"

    def test_handle_not_found(self):
        """Test 404 handling."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")

        response = router.handle(make_request("GET", "/posts"))

        assert response.status == HTTPStatus.NOT_FOUND

    def test_handle_method_not_allowed(self):
        """Test 405 handling."""
        router = Router()
        router.add_route("/users", dummy_handler, method="GET")

        response = router.handle(make_request("POST", "/users"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.headers["Allow"] == "GET"

    def test_path_params_in_request(self):
        """Test that path params are injected into request."""
        router = Router()
        captured_params = {}

        @router.get("/users/:id")
        def get_user(request):
            captured_params.update(request.path_params)
            return ResponseBuilder().json(request.path_params).build()

        router.handle(make_request("GET", "/users/42"))

        assert captured_params == {"id": "42"}


class TestRouterFallback:
    """Unmatched GET requests go to the asset fallback."""

    def test_unmatched_get_uses_fallback(self):
        router = Router(fallback=asset_fallback)

        response = router.handle(make_request("GET", "/main.dart.js"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"asset /main.dart.js"

    def test_routes_win_over_fallback(self):
        router = Router(fallback=asset_fallback)
        router.add_route("/__status", dummy_handler, method="GET")

        response = router.handle(make_request("GET", "/__status"))

        assert b'"path"' in response.body

    def test_non_get_is_not_sent_to_fallback(self):
        """Only GET requests are assets; anything else is 404."""
        router = Router(fallback=asset_fallback)

        response = router.handle(make_request("POST", "/main.dart.js"))

        assert response.status == HTTPStatus.NOT_FOUND

    def test_non_get_on_known_path_is_405(self):
        router = Router(fallback=asset_fallback)
        router.add_route("/__status", dummy_handler, method="GET")

        response = router.handle(make_request("DELETE", "/__status"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED


class TestRouterDecorators:
    """Tests for decorator-style route registration."""

    def test_get_decorator(self):
        """Test @router.get decorator."""
        router = Router()

        @router.get("/test")
        def test_handler(request):
            return ResponseBuilder().text("test").build()

        assert len(router.routes) == 1
        assert router.routes[0].method == "GET"

    def test_route_decorator_any_method(self):
        """A route without a method matches every method."""
        router = Router()

        @router.route("/echo", name="echo")
        def echo(request):
            return ResponseBuilder().text(request.method).build()

        assert router.routes[0].name == "echo"
        assert router.handle(make_request("PUT", "/echo")).body == b"PUT"
