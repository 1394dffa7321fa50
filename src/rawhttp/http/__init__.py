"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows about the HTTP/1.1 wire format, and nothing that
knows about sockets beyond the Connection interface:

    request.py       Request line + header parsing, lazy BodyReader
    response.py      HTTPResponse, ResponseBuilder, FileBody framing
    compression.py   gzip negotiation for the echo route
    router.py        Immutable route table, tagged RouteKind dispatch
    errors.py        Exception taxonomy (transport vs malformed input)
    status_codes.py  The status codes this server sends

=============================================================================
"""

from .errors import (
    BadContentLength,
    BadRequest,
    BadRequestLine,
    ConnectionClosed,
    FileSystemError,
    HTTPError,
    HeaderTooLarge,
    ShortBody,
    Timeout,
    UnroutableMethod,
    UnsupportedProtocol,
)
from .request import BodyReader, HTTPRequest, Method, RequestParser
from .response import (
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
from .router import Handler, RouteKind, RouteMatch, RouteTable, Router
from .status_codes import HTTPStatus

__all__ = [
    # Errors
    "HTTPError",
    "ConnectionClosed",
    "Timeout",
    "BadRequest",
    "BadRequestLine",
    "UnsupportedProtocol",
    "HeaderTooLarge",
    "BadContentLength",
    "ShortBody",
    "FileSystemError",
    "UnroutableMethod",

    # Request parsing
    "BodyReader",
    "HTTPRequest",
    "Method",
    "RequestParser",

    # Response building
    "FileBody",
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "created",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "error_response",

    # Routing
    "Handler",
    "RouteKind",
    "RouteMatch",
    "RouteTable",
    "Router",

    # Status codes
    "HTTPStatus",
]
