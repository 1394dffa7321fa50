"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Reads one HTTP/1.1 request head off a live connection and turns it into an
HTTPRequest. The body is NOT read here; the request carries a BodyReader
that pulls exactly Content-Length bytes when a handler asks for them.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  POST /files/notes.txt HTTP/1.1\r\n      ← request line            │
    │  ──┬─ ────────┬─────── ───┬────                                    │
    │    │          │           └── must start with "HTTP/"              │
    │    │          └── path, used verbatim (no percent-decoding)        │
    │    └── method: GET, POST, anything else is UNSUPPORTED             │
    │                                                                     │
    │  Content-Length: 11\r\n                  ← headers                 │
    │  User-Agent: curl/8.0\r\n                                           │
    │  \r\n                                    ← end of head             │
    │                                                                     │
    │  hello world                             ← body (lazy, BodyReader) │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING RULES
=============================================================================

Request line:
    Split on whitespace. Exactly 3 fields, else BadRequestLine.
    Third field must start with "HTTP/", else UnsupportedProtocol.

Headers:
    Split each line on the FIRST colon, trim both sides.
    No colon, or colon at position 0 → skip the line silently.
    Names are case-insensitive and stored lowercase.
    Duplicates: the FIRST occurrence wins.

Body:
    Read on demand. A Content-Length that is negative or not a number is
    only an error (BadContentLength) once something tries to use it.

=============================================================================
WHY NOT READ THE BODY EAGERLY?
=============================================================================

A GET with a bogus Content-Length should still get its 200; only the
handlers that actually need a body (file upload) care whether the length
is valid. Reading lazily also lets the upload handler reject a request
(no directory configured, bad file name) before pulling megabytes off
the socket.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union
import logging

from .errors import (
    BadContentLength,
    BadRequestLine,
    ConnectionClosed,
    HeaderTooLarge,
    ShortBody,
    UnsupportedProtocol,
)


logger = logging.getLogger(__name__)

# Header bytes are decoded with surrogateescape so that any byte sequence
# survives a decode/encode round trip unchanged (echo, user-agent).
HEADER_ENCODING = "utf-8"
HEADER_ERRORS = "surrogateescape"


class Method(str, Enum):
    """
    Request methods the server understands.

    Anything other than GET or POST parses fine but becomes UNSUPPORTED;
    the router decides whether that matters for the matched path.
    """
    GET = "GET"
    POST = "POST"
    UNSUPPORTED = "UNSUPPORTED"

    @classmethod
    def parse(cls, token: str) -> "Method":
        """Map a request-line token to a Method. Case-sensitive per RFC 7230."""
        if token == "GET":
            return cls.GET
        if token == "POST":
            return cls.POST
        return cls.UNSUPPORTED


class BodyReader:
    """
    Bounded reader over the request body.

    Reads at most the declared Content-Length from the connection, and
    only when asked. Content-Length validation is deferred to the first
    use of `length`.

        reader = request.body
        reader.length      → 11 (or BadContentLength)
        reader.read()      → b"hello world" (or ShortBody)
        reader.read()      → b"" (exhausted)
    """

    def __init__(self, conn=None, raw_length: Optional[str] = None, chunk_size: int = 64 * 1024):
        """
        Args:
            conn: The Connection to read from. None means "no body".
            raw_length: Content-Length header value as received, or None.
            chunk_size: Largest single read from the connection.
        """
        self._conn = conn
        self._raw_length = raw_length
        self._chunk_size = chunk_size
        self._consumed = 0

    @classmethod
    def empty(cls) -> "BodyReader":
        """A reader for a request without a body."""
        return cls()

    @property
    def declared(self) -> bool:
        """True if the request carried a Content-Length header."""
        return self._raw_length is not None

    @property
    def length(self) -> int:
        """
        Declared body length in bytes (0 if absent).

        Raises:
            BadContentLength: If the header is negative or not a number.
        """
        if self._raw_length is None:
            return 0

        value = self._raw_length.strip()
        # str.isdigit alone accepts things like "²"; int() accepts "1_0"
        if not value.isascii() or not value.isdigit():
            raise BadContentLength(f"Invalid Content-Length: {self._raw_length!r}")
        return int(value)

    @property
    def remaining(self) -> int:
        return self.length - self._consumed

    @property
    def exhausted(self) -> bool:
        """True once every declared byte has been consumed."""
        return self.remaining == 0

    def read(self, size: int = -1) -> bytes:
        """
        Read body bytes, blocking until they arrive.

        Args:
            size: Number of bytes to read. -1 reads everything that is left.

        Returns:
            Exactly `size` bytes (or all remaining bytes for -1).

        Raises:
            BadContentLength: Invalid header, or `size` reaches past the body.
            ShortBody: The peer hung up or the deadline passed mid-body.
        """
        remaining = self.remaining
        if size < 0:
            size = remaining
        elif size > remaining:
            raise BadContentLength(
                f"Read of {size} bytes past declared body ({remaining} left)"
            )

        chunks = []
        wanted = size
        while wanted > 0:
            try:
                chunk = self._conn.read_some(min(wanted, self._chunk_size))
            except ConnectionClosed as e:
                # Includes Timeout: the deadline covers the body too
                raise ShortBody(self.length, self._consumed) from e
            if not chunk:
                raise ShortBody(self.length, self._consumed)
            chunks.append(chunk)
            self._consumed += len(chunk)
            wanted -= len(chunk)

        return b"".join(chunks)

    def drain(self):
        """
        Discard whatever is left of the body.

        Called by the connection loop after a response so the next
        keep-alive request starts at the right byte.
        """
        while self.remaining > 0:
            self.read(min(self.remaining, self._chunk_size))


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    =========================================================================
    FIELDS
    =========================================================================

        method:         Method.GET / Method.POST / Method.UNSUPPORTED
        raw_method:     The method token exactly as received ("DELETE")
        path:           Request target, verbatim ("/echo/abc%20def")
        version:        Protocol field ("HTTP/1.1")
        headers:        Lowercase name → value, first duplicate wins
        body:           BodyReader bound to Content-Length
        path_params:    Captures filled in by the router
                        "/files/a.txt" → {"name": "a.txt"}
        client_address: (ip, port) of the peer

    Lives for one iteration of the connection loop.
    =========================================================================
    """

    method: Union[Method, str]
    path: str
    version: str = "HTTP/1.1"
    raw_method: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: BodyReader = field(default_factory=BodyReader.empty, repr=False)
    path_params: Dict[str, str] = field(default_factory=dict)
    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        # Allow HTTPRequest(method="GET", ...) in tests and tools
        if not isinstance(self.method, Method):
            self.raw_method = self.raw_method or self.method
            self.method = Method.parse(self.method)
        elif not self.raw_method:
            self.raw_method = self.method.value

    # =========================================================================
    # HEADER SHORTCUTS
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def accept_encoding(self) -> str:
        return self.headers.get("accept-encoding", "")

    @property
    def wants_close(self) -> bool:
        """
        True if the client asked us to close after this response.

        HTTP/1.1 connections persist by default; only an explicit
        "Connection: close" ends them. The header is a token list, so
        "Connection: keep-alive, close" counts too.
        """
        tokens = self.headers.get("connection", "").lower().split(",")
        return "close" in (token.strip() for token in tokens)


class RequestParser:
    """
    Reads request heads off a Connection.

    ==========================================================================
    PARSER FLOW
    ==========================================================================

        Connection
            │
            ▼
        read_line() ──► request line ──► 3 fields? ──► HTTP/ prefix?
            │                              │ no             │ no
            │                              ▼                ▼
            │                        BadRequestLine   UnsupportedProtocol
            ▼
        read_line() until "" ──► headers (lowercase, first wins)
            │
            ▼
        HTTPRequest(body=BodyReader(conn, content-length))

    Transport failures (EOF, reset, deadline) propagate as ConnectionClosed
    or Timeout so the caller can tell "nobody is there" apart from
    "somebody sent garbage".
    ==========================================================================
    """

    PROTOCOL_PREFIX = "HTTP/"

    def __init__(self, max_line_size: int = 8192, max_headers: int = 100):
        """
        Args:
            max_line_size: Longest accepted request or header line, in bytes.
            max_headers: Most header lines accepted in one request.
        """
        self.max_line_size = max_line_size
        self.max_headers = max_headers

    def parse(self, conn) -> HTTPRequest:
        """
        Parse the next request head from `conn`.

        Raises:
            ConnectionClosed / Timeout: Transport failure before the head
                was complete.
            BadRequestLine / UnsupportedProtocol / HeaderTooLarge:
                Malformed head.
        """
        try:
            line = self._decode(conn.read_line(self.max_line_size))
        except HeaderTooLarge as e:
            raise BadRequestLine(f"Request line too long: {e}") from e

        method_token, path, version = self._parse_request_line(line)
        headers = self._parse_headers(conn)

        return HTTPRequest(
            method=Method.parse(method_token),
            raw_method=method_token,
            path=path,
            version=version,
            headers=headers,
            body=BodyReader(conn, headers.get("content-length")),
            client_address=getattr(conn, "address", ("", 0)),
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Split "METHOD PATH VERSION" into its three fields.

        Any whitespace separates fields, so "GET  /  HTTP/1.1" is fine,
        but "GET /" and "GET / HTTP/1.1 extra" are not.
        """
        parts = line.split()
        if len(parts) != 3:
            raise BadRequestLine(f"Malformed request line: {line!r}")

        method, path, version = parts
        if not version.startswith(self.PROTOCOL_PREFIX):
            raise UnsupportedProtocol(f"Unsupported protocol: {version!r}")

        return method, path, version

    def _parse_headers(self, conn) -> Dict[str, str]:
        """Read header lines up to the blank line that ends the head."""
        headers: Dict[str, str] = {}
        count = 0

        while True:
            line = self._decode(conn.read_line(self.max_line_size))
            if line == "":
                return headers

            count += 1
            if count > self.max_headers:
                raise HeaderTooLarge(f"More than {self.max_headers} header lines")

            colon = line.find(":")
            if colon <= 0:
                # No colon, or empty name: not a header, ignore it
                logger.debug(f"Skipping malformed header line: {line!r}")
                continue

            name = line[:colon].strip().lower()
            value = line[colon + 1:].strip()
            if name:
                headers.setdefault(name, value)  # First duplicate wins

    @staticmethod
    def _decode(raw: bytes) -> str:
        return raw.decode(HEADER_ENCODING, HEADER_ERRORS)
