"""
Unit tests for serving assets from a build directory.
"""

import os

import pytest

from assetrelay.errors import BadRequest, FileNotFound, InvalidConfiguration
from assetrelay.handlers import static
from assetrelay.handlers.static import BuildDirectory, resolve_asset_path, respond_from_build
from assetrelay.http import HTTPStatus, MimeTable


def body_of(response) -> bytes:
    try:
        return b"".join(response.iter_body())
    finally:
        response.close()


class TestBuildDirectory:
    """Tests for BuildDirectory.parse()."""

    def test_absolute_path_is_normalised(self, tmp_path):
        parsed = BuildDirectory.parse(str(tmp_path / "a" / ".." / "build"))
        assert parsed.path == os.path.normpath(str(tmp_path / "build"))

    def test_accepts_path_objects_and_instances(self, build_dir):
        parsed = BuildDirectory.parse(build_dir)
        assert BuildDirectory.parse(parsed) is parsed
        assert str(parsed) == str(build_dir)

    @pytest.mark.parametrize("value", [None, "", "build", "./build"])
    def test_rejects_missing_or_relative(self, value):
        with pytest.raises(InvalidConfiguration):
            BuildDirectory.parse(value)

    def test_missing_directory_is_allowed(self, tmp_path):
        """A build may not have run yet; that is not a configuration error."""
        parsed = BuildDirectory.parse(tmp_path / "not-built-yet")
        assert parsed.path.endswith("not-built-yet")


class TestResolveAssetPath:
    """Tests for mapping request paths into the build directory."""

    def test_simple_path(self, build_dir, request_factory):
        root = BuildDirectory.parse(build_dir)
        path = resolve_asset_path(request_factory("/scripts/main.dart.js"), root)
        assert path == os.path.join(root.path, "scripts", "main.dart.js")

    def test_dot_and_empty_segments_dropped(self, build_dir, request_factory):
        root = BuildDirectory.parse(build_dir)
        path = resolve_asset_path(request_factory("/scripts/./main.dart.js"), root)
        assert path == os.path.join(root.path, "scripts", "main.dart.js")

        path = resolve_asset_path(request_factory("/scripts//main.dart.js"), root)
        assert path == os.path.join(root.path, "scripts", "main.dart.js")

    def test_root_maps_to_build_dir(self, build_dir, request_factory):
        root = BuildDirectory.parse(build_dir)
        assert resolve_asset_path(request_factory("/"), root) == root.path

    @pytest.mark.parametrize("target", [
        "/../secret.txt",
        "/scripts/../../secret.txt",
        "/scripts/%2E%2E/index.html",
        "/scripts/%2e%2e/%2e%2e/secret.txt",
        "/..%2Fsecret.txt",
        "/%2Fetc%2Fpasswd",
    ])
    def test_traversal_rejected(self, build_dir, request_factory, target):
        root = BuildDirectory.parse(build_dir)
        with pytest.raises(BadRequest) as exc_info:
            resolve_asset_path(request_factory(target), root)

        assert exc_info.value.request.target == target


class TestRespondFromBuild:
    """Tests for respond_from_build()."""

    def test_serves_file(self, build_dir, build_files, request_factory):
        response = respond_from_build(request_factory("/index.html"), str(build_dir))

        assert response.status == HTTPStatus.OK
        assert response.get_header("Content-Type") == "text/html; charset=utf-8"
        assert response.get_header("Content-Length") == str(len(build_files["index.html"]))
        assert body_of(response) == build_files["index.html"]

    def test_headers(self, build_dir, request_factory):
        response = respond_from_build(request_factory("/index.html"), build_dir)
        response.close()

        assert response.get_header("Last-Modified") == "Tue, 14 Nov 2023 22:13:20 GMT"
        assert response.get_header("Date").endswith(" GMT")

    def test_query_string_ignored(self, build_dir, build_files, request_factory):
        response = respond_from_build(request_factory("/scripts/main.dart.js?v=3"), build_dir)

        assert response.get_header("Content-Type") == "text/javascript"
        assert body_of(response) == build_files["scripts/main.dart.js"]

    def test_uppercase_extension(self, build_dir, request_factory):
        response = respond_from_build(request_factory("/styles/Site.CSS"), build_dir)
        response.close()

        assert response.get_header("Content-Type") == "text/css"

    def test_no_extension_is_octet_stream(self, build_dir, request_factory):
        response = respond_from_build(request_factory("/LICENSE"), build_dir)
        response.close()

        assert response.get_header("Content-Type") == "application/octet-stream"

    def test_encoded_name(self, build_dir, build_files, request_factory):
        response = respond_from_build(request_factory("/name%20with%20space.txt"), build_dir)

        assert body_of(response) == build_files["name with space.txt"]

    def test_nested_file(self, build_dir, build_files, request_factory):
        target = "/packages/app/deep/nested/data.json"
        response = respond_from_build(request_factory(target), build_dir)

        assert body_of(response) == build_files["packages/app/deep/nested/data.json"]

    def test_leading_double_slash_keeps_first_segment(self, build_dir, request_factory):
        """A leading double slash does not swallow the first directory."""
        (build_dir / "scripts" / "main.js").write_bytes(b"nested")
        (build_dir / "main.js").write_bytes(b"top")

        response = respond_from_build(request_factory("//scripts/main.js"), build_dir)

        assert body_of(response) == b"nested"

    def test_custom_mime_table(self, build_dir, request_factory):
        table = MimeTable({"js": "application/javascript"})
        response = respond_from_build(
            request_factory("/scripts/main.dart.js"), build_dir, mime_table=table
        )
        response.close()

        assert response.get_header("Content-Type") == "application/javascript"

    def test_streams_in_chunks(self, build_dir, build_files, request_factory):
        """The file is never read as a whole; chunks respect chunk_size."""
        response = respond_from_build(
            request_factory("/scripts/main.dart.js"), build_dir, chunk_size=100
        )

        chunks = list(response.iter_body())

        assert len(chunks) == len(build_files["scripts/main.dart.js"]) // 100
        assert all(len(chunk) <= 100 for chunk in chunks)
        assert b"".join(chunks) == build_files["scripts/main.dart.js"]
        assert response.stream.closed

    def test_missing_file(self, build_dir, request_factory):
        with pytest.raises(FileNotFound) as exc_info:
            respond_from_build(request_factory("/missing.js"), build_dir)

        assert exc_info.value.path == os.path.join(str(build_dir), "missing.js")
        assert exc_info.value.status_code == 404

    @pytest.mark.parametrize("target", ["/", "/scripts", "/scripts/"])
    def test_directory_is_not_found(self, build_dir, request_factory, target):
        """There is no directory index."""
        with pytest.raises(FileNotFound):
            respond_from_build(request_factory(target), build_dir)

    def test_missing_build_dir(self, tmp_path, request_factory):
        with pytest.raises(FileNotFound):
            respond_from_build(request_factory("/index.html"), tmp_path / "nope")

    def test_unreadable_file(self, build_dir, request_factory, monkeypatch):
        """A file that cannot be opened is reported as not found."""
        def refuse(path, mode="r"):
            raise PermissionError(13, "Permission denied", path)

        monkeypatch.setattr(static, "open", refuse, raising=False)

        with pytest.raises(FileNotFound) as exc_info:
            respond_from_build(request_factory("/index.html"), build_dir)

        assert "not readable" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, PermissionError)

    def test_traversal_never_reaches_disk(self, build_dir, request_factory):
        with pytest.raises(BadRequest):
            respond_from_build(request_factory("/..%2Fsecret.txt"), build_dir)

    def test_non_get_is_configuration_error(self, build_dir, request_factory):
        with pytest.raises(InvalidConfiguration) as exc_info:
            respond_from_build(request_factory("/index.html", method="POST"), build_dir)

        assert "not a HTTP GET request" in exc_info.value.message

    @pytest.mark.parametrize("value", [None, "", "relative/build"])
    def test_bad_build_dir(self, request_factory, value):
        with pytest.raises(InvalidConfiguration) as exc_info:
            respond_from_build(request_factory("/index.html"), value)

        assert exc_info.value.request is not None
