"""
Unit tests for the file store and /files/ handlers.
"""

import os
from pathlib import Path

import pytest

from rawhttp.handlers.files import FileHandler, FileStore
from rawhttp.http.errors import FileSystemError
from rawhttp.http.request import BodyReader, HTTPRequest
from rawhttp.http.response import FileBody
from rawhttp.http.status_codes import HTTPStatus


class BytesConnection:
    """Serves a fixed byte string through the read_some() interface."""

    def __init__(self, data: bytes):
        self.data = data

    def read_some(self, max_bytes: int) -> bytes:
        chunk, self.data = self.data[:max_bytes], self.data[max_bytes:]
        return chunk


def post_request(name: str, body: bytes, length=None) -> HTTPRequest:
    raw_length = str(len(body)) if length is None else length
    return HTTPRequest(
        method="POST",
        path=f"/files/{name}",
        body=BodyReader(BytesConnection(body), raw_length),
        path_params={"name": name},
    )


def get_request(name: str) -> HTTPRequest:
    return HTTPRequest(method="GET", path=f"/files/{name}", path_params={"name": name})


class TestFileStore:
    """Tests for FileStore."""

    def test_unconfigured(self):
        store = FileStore(None)

        assert not store.configured
        with pytest.raises(FileSystemError) as exc_info:
            store.resolve("a.txt")
        assert exc_info.value.status_code == 404

    def test_resolve_inside(self, files_dir: Path):
        store = FileStore(str(files_dir))
        assert store.resolve("a.txt") == files_dir.resolve() / "a.txt"

    @pytest.mark.parametrize("name", [
        "../secret",
        "../../etc/passwd",
        "/etc/passwd",
        "a/../../x",
        "bad\x00name",
    ])
    def test_resolve_rejects_escapes(self, files_dir: Path, name):
        store = FileStore(str(files_dir))

        with pytest.raises(FileSystemError) as exc_info:
            store.resolve(name)

        assert exc_info.value.status_code == 404

    @pytest.mark.parametrize("name", ["", ".", "a/.."])
    def test_resolve_base_directory(self, files_dir: Path, name):
        assert FileStore(str(files_dir)).resolve(name) == files_dir.resolve()

    def test_symlink_out_of_directory(self, files_dir: Path, tmp_path: Path):
        outside = tmp_path / "outside.txt"
        outside.write_bytes(b"secret")
        (files_dir / "link").symlink_to(outside)

        with pytest.raises(FileSystemError):
            FileStore(str(files_dir)).open("link")

    def test_open(self, files_dir: Path):
        (files_dir / "a.txt").write_bytes(b"hello")

        body = FileStore(str(files_dir)).open("a.txt")
        try:
            assert isinstance(body, FileBody)
            assert body.size == 5
            assert body.file.read() == b"hello"
        finally:
            body.close()

    def test_open_missing(self, files_dir: Path):
        with pytest.raises(FileSystemError) as exc_info:
            FileStore(str(files_dir)).open("missing")
        assert exc_info.value.status_code == 404

    def test_open_directory(self, files_dir: Path):
        (files_dir / "sub").mkdir()

        with pytest.raises(FileSystemError) as exc_info:
            FileStore(str(files_dir)).open("sub")
        assert exc_info.value.status_code == 404

    def test_write_creates_and_overwrites(self, files_dir: Path):
        store = FileStore(str(files_dir))

        store.write("a.txt", b"first")
        store.write("a.txt", b"second")

        assert (files_dir / "a.txt").read_bytes() == b"second"

    def test_write_leaves_no_temp_files(self, files_dir: Path):
        FileStore(str(files_dir)).write("a.txt", b"data")
        assert os.listdir(files_dir) == ["a.txt"]

    def test_write_into_missing_subdirectory(self, files_dir: Path):
        with pytest.raises(FileSystemError) as exc_info:
            FileStore(str(files_dir)).write("nope/a.txt", b"data")
        assert exc_info.value.status_code == 500

    def test_write_onto_directory(self, files_dir: Path):
        (files_dir / "sub").mkdir()

        with pytest.raises(FileSystemError) as exc_info:
            FileStore(str(files_dir)).write("sub", b"data")
        assert exc_info.value.status_code == 500
        assert os.listdir(files_dir / "sub") == []

    def test_write_onto_base_directory(self, files_dir: Path):
        with pytest.raises(FileSystemError) as exc_info:
            FileStore(str(files_dir)).write(".", b"data")

        assert exc_info.value.status_code == 500
        assert os.listdir(files_dir.parent) == [files_dir.name]


class TestFileHandler:
    """Tests for the GET/POST handlers."""

    def test_get(self, files_dir: Path):
        (files_dir / "a.txt").write_bytes(b"abc")
        handler = FileHandler(FileStore(str(files_dir)))

        response = handler.get(get_request("a.txt"))
        try:
            assert response.status == HTTPStatus.OK
            assert response.headers["Content-Type"] == "application/octet-stream"
            assert response.content_length == 3
        finally:
            response.close()

    def test_get_missing(self, files_dir: Path):
        response = FileHandler(FileStore(str(files_dir))).get(get_request("missing"))
        assert response.status == HTTPStatus.NOT_FOUND

    def test_get_without_directory(self):
        response = FileHandler(FileStore(None)).get(get_request("a.txt"))
        assert response.status == HTTPStatus.NOT_FOUND

    def test_post(self, files_dir: Path):
        handler = FileHandler(FileStore(str(files_dir)))

        response = handler.post(post_request("new.txt", b"payload"))

        assert response.status == HTTPStatus.CREATED
        assert (files_dir / "new.txt").read_bytes() == b"payload"

    def test_post_empty_body(self, files_dir: Path):
        response = FileHandler(FileStore(str(files_dir))).post(post_request("empty", b""))

        assert response.status == HTTPStatus.CREATED
        assert (files_dir / "empty").read_bytes() == b""

    def test_post_without_directory(self):
        response = FileHandler(FileStore(None)).post(post_request("a", b"x"))
        assert response.status == HTTPStatus.NOT_FOUND

    def test_post_without_content_length(self, files_dir: Path):
        request = HTTPRequest(method="POST", path="/files/a", path_params={"name": "a"})

        response = FileHandler(FileStore(str(files_dir))).post(request)

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.closes_connection

    @pytest.mark.parametrize("length", ["-1", "abc"])
    def test_post_bad_content_length(self, files_dir: Path, length):
        response = FileHandler(FileStore(str(files_dir))).post(post_request("a", b"x", length))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert not (files_dir / "a").exists()

    def test_post_short_body_creates_nothing(self, files_dir: Path):
        response = FileHandler(FileStore(str(files_dir))).post(post_request("a", b"abc", "10"))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert response.closes_connection
        assert os.listdir(files_dir) == []

    def test_post_traversal(self, files_dir: Path):
        response = FileHandler(FileStore(str(files_dir))).post(post_request("../x", b"x"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert not (files_dir.parent / "x").exists()

    def test_post_write_failure(self, files_dir: Path):
        response = FileHandler(FileStore(str(files_dir))).post(post_request("no/dir", b"x"))
        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR

    def test_post_onto_directory(self, files_dir: Path):
        (files_dir / "sub").mkdir()

        response = FileHandler(FileStore(str(files_dir))).post(post_request("sub", b"x"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert (files_dir / "sub").is_dir()

    def test_get_base_directory(self, files_dir: Path):
        response = FileHandler(FileStore(str(files_dir))).get(get_request("."))
        assert response.status == HTTPStatus.NOT_FOUND
