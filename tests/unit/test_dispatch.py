"""
Unit tests for AssetDispatcher: mode selection and failure mapping.
"""

import json
import logging

import httpx
import pytest

from assetrelay.errors import InvalidConfiguration, FileNotFound
from assetrelay.handlers import AssetDispatcher
from assetrelay.http import HTTPStatus


DEV_SERVER = "http://localhost:8080"


def refused(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("[Errno 111] Connection refused", request=request)


class TestModeSelection:
    """Exactly one of build_dir / serve_url."""

    def test_build_mode(self, build_dir):
        dispatcher = AssetDispatcher(build_dir=build_dir)

        assert dispatcher.mode == "build"
        assert dispatcher.source == str(build_dir)
        assert "build" in repr(dispatcher)

    def test_serve_mode(self):
        dispatcher = AssetDispatcher(serve_url=DEV_SERVER)

        assert dispatcher.mode == "serve"
        assert dispatcher.source == "http://localhost:8080"

    def test_neither(self):
        with pytest.raises(InvalidConfiguration):
            AssetDispatcher()

    def test_both(self, build_dir):
        with pytest.raises(InvalidConfiguration):
            AssetDispatcher(build_dir=build_dir, serve_url=DEV_SERVER)

    def test_invalid_values_rejected_up_front(self):
        with pytest.raises(InvalidConfiguration):
            AssetDispatcher(build_dir="relative")
        with pytest.raises(InvalidConfiguration):
            AssetDispatcher(serve_url="ftp://localhost")


class TestHandleBuildMode:
    """Failure mapping when serving from the build directory."""

    def test_serves_file(self, build_dir, build_files, request_factory):
        dispatcher = AssetDispatcher(build_dir=build_dir)

        response = dispatcher.handle(request_factory("/index.html"))

        assert response.status == HTTPStatus.OK
        assert response.to_bytes().endswith(build_files["index.html"])

    def test_not_found_hides_path(self, build_dir, request_factory, caplog):
        dispatcher = AssetDispatcher(build_dir=build_dir)

        with caplog.at_level(logging.INFO, logger="assetrelay.handlers.dispatch"):
            response = dispatcher(request_factory("/missing.js"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert json.loads(response.body) == {"error": "Not Found"}
        assert str(build_dir).encode() not in response.body
        # ...but the log has it
        assert "missing.js" in caplog.text

    def test_traversal_is_bad_request(self, build_dir, request_factory):
        dispatcher = AssetDispatcher(build_dir=build_dir)

        response = dispatcher.handle(request_factory("/%2E%2E/secret.txt"))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert b"secret" not in response.body

    def test_respond_does_not_translate(self, build_dir, request_factory):
        dispatcher = AssetDispatcher(build_dir=build_dir)

        with pytest.raises(FileNotFound):
            dispatcher.respond(request_factory("/missing.js"))

    def test_configuration_error_propagates(self, build_dir, request_factory):
        dispatcher = AssetDispatcher(build_dir=build_dir)

        with pytest.raises(InvalidConfiguration):
            dispatcher.handle(request_factory("/index.html", method="PUT"))


class TestHandleServeMode:
    """Failure mapping when relaying to a development server."""

    def test_relays(self, request_factory):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"ok"))
        dispatcher = AssetDispatcher(serve_url=DEV_SERVER, transport=transport)

        response = dispatcher.handle(request_factory("/a.js"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"ok"

    def test_unavailable_is_bad_gateway(self, request_factory):
        dispatcher = AssetDispatcher(serve_url=DEV_SERVER, transport=httpx.MockTransport(refused))

        response = dispatcher.handle(request_factory("/a.js"))

        assert response.status == HTTPStatus.BAD_GATEWAY
        assert json.loads(response.body) == {
            "error": "development server unavailable: cannot connect"
        }

    def test_repeated_header_is_bad_request(self, request_factory):
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        dispatcher = AssetDispatcher(serve_url=DEV_SERVER, transport=transport)

        response = dispatcher.handle(
            request_factory("/a.js", raw_headers=[("X-Trace", "1"), ("X-Trace", "2")])
        )

        assert response.status == HTTPStatus.BAD_REQUEST
        assert b"x-trace" in response.body

    def test_upstream_timeout_setting(self, request_factory):
        seen = []

        def handler(request):
            seen.append(request.extensions["timeout"])
            return httpx.Response(200)

        dispatcher = AssetDispatcher(
            serve_url=DEV_SERVER, upstream_timeout=1.5, transport=httpx.MockTransport(handler)
        )
        dispatcher.handle(request_factory("/a.js"))

        assert seen[0]["connect"] == 1.5
