"""
=============================================================================
PROTOCOL AND I/O ERRORS
=============================================================================

Every failure the server can run into while talking to a client is
represented by one exception class in this module. The connection loop
catches them at a single boundary and decides what the client sees.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR TAXONOMY                               │
    ├─────────────────────────┬───────────────────────────────────────────┤
    │ ConnectionClosed        │ Peer hung up (EOF, reset)                 │
    │   └── Timeout           │ Idle-read deadline expired                │
    │                         │ → close silently, write nothing           │
    ├─────────────────────────┼───────────────────────────────────────────┤
    │ BadRequest (400)        │ Malformed input                           │
    │   ├── BadRequestLine    │ Not "METHOD PATH VERSION"                 │
    │   ├── UnsupportedProtocol│ Version does not start with HTTP/        │
    │   ├── HeaderTooLarge    │ Header line or count over the limit       │
    │   ├── BadContentLength  │ Missing/negative/non-numeric length       │
    │   └── ShortBody         │ Stream ended before the declared length   │
    │                         │ → 400, then close                         │
    ├─────────────────────────┼───────────────────────────────────────────┤
    │ FileSystemError         │ open/stat/create/write failed             │
    │                         │ → 404 on read, 500 on write               │
    ├─────────────────────────┼───────────────────────────────────────────┤
    │ UnroutableMethod (405)  │ Method not supported on a matched prefix  │
    └─────────────────────────┴───────────────────────────────────────────┘

The distinction between ConnectionClosed and BadRequest matters: after a
peer has gone away there is nobody to answer, while after malformed input
the peer is still there and deserves a 400 before we hang up.

=============================================================================
"""

from typing import Optional, Tuple


class HTTPError(Exception):
    """
    Base class for every protocol-level failure.

    Carries the HTTP status code that should be returned to the client,
    if any response is sent at all.
    """

    status_code: int = 500

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or self.__class__.__name__)
        if status_code is not None:
            self.status_code = status_code


# =============================================================================
# TRANSPORT CONDITIONS (no response is sent)
# =============================================================================

class ConnectionClosed(HTTPError):
    """The peer closed or reset the connection."""


class Timeout(ConnectionClosed):
    """The idle-read deadline expired before the client finished sending."""


# =============================================================================
# MALFORMED INPUT (400, then close)
# =============================================================================

class BadRequest(HTTPError):
    """Malformed request. The byte stream position can no longer be trusted."""

    status_code = 400


class BadRequestLine(BadRequest):
    """The request line did not split into exactly three fields."""


class UnsupportedProtocol(BadRequest):
    """The protocol field does not start with ``HTTP/``."""


class HeaderTooLarge(BadRequest):
    """A header line, or the number of header lines, exceeded the limit."""


class BadContentLength(BadRequest):
    """Content-Length is missing, negative, or not a number."""


class ShortBody(BadRequest):
    """The stream ended (or timed out) before the declared body arrived."""

    def __init__(self, expected: int, received: int):
        super().__init__(f"Incomplete body: expected {expected} bytes, got {received}")
        self.expected = expected
        self.received = received


# =============================================================================
# RESOURCE FAILURES
# =============================================================================

class FileSystemError(HTTPError):
    """Opening, stating, creating or writing a file failed."""

    status_code = 500


class UnroutableMethod(HTTPError):
    """The path matched a route that does not support this method."""

    status_code = 405

    def __init__(self, method: str, path: str, allowed: Tuple[str, ...] = ()):
        super().__init__(f"{method} not allowed on {path}")
        self.allowed = allowed
