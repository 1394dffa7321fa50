"""
Unit tests for HTTP response building and framing.
"""

import gzip
import io

import pytest

from rawhttp.http.compression import accepts_gzip, gzip_body
from rawhttp.http.response import (
    FileBody,
    HTTPResponse,
    ResponseBuilder,
    bad_request,
    created,
    error_response,
    internal_error,
    method_not_allowed,
    not_found,
    ok,
)
from rawhttp.http.status_codes import HTTPStatus


class FakeConnection:
    """Records what a response writes."""

    def __init__(self, fail_send: bool = False):
        self.sent = b""
        self.fail_send = fail_send

    def send(self, data: bytes) -> bool:
        if self.fail_send:
            return False
        self.sent += data
        return True

    def send_file(self, file, count: int) -> bool:
        self.sent += file.read(count)
        return True


class TestHTTPResponse:
    """Tests for HTTPResponse serialization."""

    def test_status_line(self):
        response = HTTPResponse(status=HTTPStatus.NOT_FOUND)
        assert response.status_line == "HTTP/1.1 404 Not Found"

    def test_to_bytes_framing(self):
        response = ok("OK\n")

        assert response.to_bytes() == (
            b"HTTP/1.1 200 OK\r\n"
            b"Content-Type: text/plain\r\n"
            b"Content-Length: 3\r\n"
            b"\r\n"
            b"OK\n"
        )

    def test_empty_body_has_zero_length(self):
        """Every response carries Content-Length, including empty ones."""
        raw = not_found().to_bytes()

        assert b"Content-Length: 0\r\n" in raw
        assert raw.endswith(b"\r\n\r\n")

    def test_explicit_content_length_is_kept(self):
        response = HTTPResponse(headers={"Content-Length": "7"}, body=b"abc")
        assert b"Content-Length: 7\r\n" in response.head_bytes()

    def test_closes_connection(self):
        assert bad_request().closes_connection
        assert not ok("x").closes_connection

    def test_file_body_must_be_streamed(self):
        response = HTTPResponse(body=FileBody(io.BytesIO(b"abc"), 3))

        with pytest.raises(TypeError):
            response.to_bytes()

    def test_write_file_body(self):
        file = io.BytesIO(b"file bytes")
        response = ResponseBuilder().file(FileBody(file, 10)).build()
        conn = FakeConnection()

        assert response.write_to(conn) is True
        assert conn.sent.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Type: application/octet-stream\r\n" in conn.sent
        assert b"Content-Length: 10\r\n" in conn.sent
        assert conn.sent.endswith(b"\r\n\r\nfile bytes")
        assert file.closed

    def test_file_closed_when_send_fails(self):
        file = io.BytesIO(b"abc")
        response = ResponseBuilder().file(FileBody(file, 3)).build()

        assert response.write_to(FakeConnection(fail_send=True)) is False
        assert file.closed


class TestResponseBuilder:
    """Tests for ResponseBuilder."""

    def test_text(self):
        response = ResponseBuilder().text("hello").build()

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "text/plain"
        assert response.body == b"hello"

    def test_text_keeps_raw_bytes(self):
        """Surrogate-escaped text encodes back to the original bytes."""
        text = b"caf\xe9".decode("utf-8", "surrogateescape")
        response = ResponseBuilder().text(text).build()

        assert response.body == b"caf\xe9"

    def test_gzip(self):
        response = ResponseBuilder().text("abc").gzip().build()

        assert response.headers["Content-Encoding"] == "gzip"
        assert response.headers["Content-Length"] == str(len(response.body))
        assert gzip.decompress(response.body) == b"abc"

    def test_gzip_rejects_file_body(self):
        builder = ResponseBuilder().file(FileBody(io.BytesIO(b""), 0))

        with pytest.raises(TypeError):
            builder.gzip()

    def test_close_connection_stays_off_the_wire(self):
        response = ResponseBuilder().close_connection().build()

        assert response.closes_connection
        assert "Connection" not in response.headers
        assert b"Connection" not in response.to_bytes()


class TestConvenienceFunctions:
    """Tests for the response shortcuts."""

    def test_created(self):
        response = created()

        assert response.status == HTTPStatus.CREATED
        assert response.body == b""

    def test_bad_request_closes_by_default(self):
        assert bad_request().closes_connection
        assert not bad_request(close=False).closes_connection

    def test_method_not_allowed(self):
        response = method_not_allowed(["GET", "POST"])

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.headers["Allow"] == "GET, POST"
        assert response.body == b""

    def test_internal_error(self):
        assert internal_error().status == HTTPStatus.INTERNAL_SERVER_ERROR

    def test_error_response(self):
        assert error_response(400).closes_connection
        assert not error_response(404).closes_connection
        assert error_response(500, close=True).closes_connection


class TestStatusCodes:
    """Tests for HTTPStatus."""

    @pytest.mark.parametrize("status,phrase", [
        (HTTPStatus.OK, "OK"),
        (HTTPStatus.CREATED, "Created"),
        (HTTPStatus.BAD_REQUEST, "Bad Request"),
        (HTTPStatus.NOT_FOUND, "Not Found"),
        (HTTPStatus.METHOD_NOT_ALLOWED, "Method Not Allowed"),
        (HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error"),
    ])
    def test_phrases(self, status, phrase):
        assert status.phrase == phrase


class TestCompression:
    """Tests for gzip negotiation."""

    @pytest.mark.parametrize("header,expected", [
        ("gzip", True),
        ("deflate, gzip", True),
        ("GZIP", True),
        ("x-gzip", True),
        ("deflate", False),
        ("", False),
    ])
    def test_accepts_gzip(self, header, expected):
        assert accepts_gzip(header) is expected

    def test_gzip_is_deterministic(self):
        assert gzip_body(b"same") == gzip_body(b"same")
