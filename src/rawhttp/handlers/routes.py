"""
Text route handlers: /, /echo/{value} and /user-agent.
"""

from ..http.compression import accepts_gzip
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, ok


ROOT_BODY = "OK\n"


def root(request: HTTPRequest) -> HTTPResponse:
    """200 with "OK\\n" for any method."""
    return ok(ROOT_BODY)


def echo(request: HTTPRequest) -> HTTPResponse:
    """
    Return the captured path suffix as the body.

    The suffix is sent byte-for-byte as it appeared on the request line
    (no percent-decoding). Gzipped when the client accepts it.
    """
    builder = ResponseBuilder().text(request.path_params.get("value", ""))
    if accepts_gzip(request.accept_encoding):
        builder.gzip()
    return builder.build()


def user_agent(request: HTTPRequest) -> HTTPResponse:
    """Return the User-Agent header value, empty if absent."""
    return ok(request.user_agent)
