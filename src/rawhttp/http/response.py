"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP responses and writes them back onto a connection.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTP/1.1 200 OK\r\n                  ← status line                │
    │  Content-Type: text/plain\r\n         ← headers                    │
    │  Content-Encoding: gzip\r\n                                         │
    │  Content-Length: 25\r\n               ← ALWAYS present             │
    │  \r\n                                 ← end of head                │
    │  <25 body bytes>                      ← body                       │
    └─────────────────────────────────────────────────────────────────────┘

Without chunked encoding, Content-Length is the only way a keep-alive
client knows where one response ends and the next begins. So every
response carries it, including the empty ones (Content-Length: 0).

=============================================================================
BODY SOURCES
=============================================================================

    bytes      In-memory body (text routes, errors). Length = len(body).

    FileBody   An open file plus its size from fstat(). The head is sent
               first, then the file is streamed with socket.sendfile().
               The file is never loaded into memory.

=============================================================================
USAGE
=============================================================================

    # Builder
    response = (ResponseBuilder()
        .status(HTTPStatus.OK)
        .text("hello")
        .gzip()
        .build())

    # Shortcuts
    return ok("OK\\n")
    return not_found()
    return method_not_allowed(["GET", "POST"])

=============================================================================
"""

from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Optional, Union

from .compression import gzip_body, DEFAULT_LEVEL
from .request import HEADER_ENCODING, HEADER_ERRORS
from .status_codes import HTTPStatus


TEXT_PLAIN = "text/plain"
OCTET_STREAM = "application/octet-stream"


@dataclass
class FileBody:
    """
    A response body streamed from an open file.

    Attributes:
        file: File object opened in binary mode.
        size: Number of bytes to send (from fstat at open time).
    """
    file: BinaryIO
    size: int

    def close(self):
        self.file.close()


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Use ResponseBuilder or the shortcut functions to create one.

        Handler returns        head_bytes()           Connection
        HTTPResponse   ─────►  + body        ─────►   send()/send_file()
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[bytes, FileBody] = b""
    version: str = "HTTP/1.1"

    # Hang up after writing. Read by the connection loop, never sent.
    closes_connection: bool = False

    @property
    def status_line(self) -> str:
        """Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE"""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def content_length(self) -> int:
        if isinstance(self.body, FileBody):
            return self.body.size
        return len(self.body)

    def head_bytes(self) -> bytes:
        """
        Serialize the status line and headers, up to the blank line.

        Content-Length is filled in from the body unless a handler set it
        explicitly (the gzip path sets it to the compressed size).
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(self.content_length))

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        return ("\r\n".join(lines) + "\r\n").encode(HEADER_ENCODING, HEADER_ERRORS)

    def to_bytes(self) -> bytes:
        """
        Serialize head + body in one piece.

        Only for in-memory bodies; file bodies go through write_to().
        """
        if isinstance(self.body, FileBody):
            raise TypeError("File-backed responses must be streamed with write_to()")
        return self.head_bytes() + self.body

    def write_to(self, conn) -> bool:
        """
        Write the response onto a connection.

        Returns:
            True if every byte went out, False if the peer is gone or a
            file body came up short.
        """
        if not isinstance(self.body, FileBody):
            return conn.send(self.to_bytes())

        try:
            if not conn.send(self.head_bytes()):
                return False
            return conn.send_file(self.body.file, self.body.size)
        finally:
            self.body.close()

    def close(self):
        """Release a file body that will never be written."""
        if isinstance(self.body, FileBody):
            self.body.close()


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .close_connection()
            .build())

    Each method returns `self` except build().
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: Union[bytes, FileBody] = b""
        self._close = False

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set a raw body. Strings are encoded byte-for-byte as received."""
        if isinstance(body, str):
            body = body.encode(HEADER_ENCODING, HEADER_ERRORS)
        self._body = body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Set a text/plain body."""
        return self.body(text).content_type(TEXT_PLAIN)

    def file(self, file_body: FileBody) -> "ResponseBuilder":
        """Stream an open file as application/octet-stream."""
        self._body = file_body
        return self.content_type(OCTET_STREAM)

    def gzip(self, level: int = DEFAULT_LEVEL) -> "ResponseBuilder":
        """
        Gzip the current in-memory body.

        Content-Length is pinned to the compressed size and
        Content-Encoding: gzip is added.
        """
        if isinstance(self._body, FileBody):
            raise TypeError("File bodies are not compressed")

        self._body = gzip_body(self._body, level)
        self._headers["Content-Encoding"] = "gzip"
        self._headers["Content-Length"] = str(len(self._body))
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Have the connection loop hang up after this response."""
        self._close = True
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            closes_connection=self._close,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Error responses carry no body, only Content-Length: 0.
#
# =============================================================================

def ok(text: str) -> HTTPResponse:
    """200 OK with a text/plain body."""
    return ResponseBuilder().text(text).build()


def created() -> HTTPResponse:
    """201 Created, empty body."""
    return ResponseBuilder().status(HTTPStatus.CREATED).build()


def bad_request(close: bool = True) -> HTTPResponse:
    """
    400 Bad Request, empty body.

    Closes the connection by default: after malformed input we cannot
    trust where the next request starts.
    """
    builder = ResponseBuilder().status(HTTPStatus.BAD_REQUEST)
    if close:
        builder.close_connection()
    return builder.build()


def not_found() -> HTTPResponse:
    """404 Not Found, empty body."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).build()


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 Method Not Allowed with the Allow header RFC 7231 requires."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .build())


def internal_error() -> HTTPResponse:
    """500 Internal Server Error, empty body."""
    return ResponseBuilder().status(HTTPStatus.INTERNAL_SERVER_ERROR).build()


def error_response(status_code: int, close: Optional[bool] = None) -> HTTPResponse:
    """
    Empty response for an arbitrary error status.

    Args:
        status_code: HTTP status to send.
        close: Close the connection afterwards. Defaults to True for 400.
    """
    status = HTTPStatus(status_code)
    builder = ResponseBuilder().status(status)
    if close or (close is None and status == HTTPStatus.BAD_REQUEST):
        builder.close_connection()
    return builder.build()
