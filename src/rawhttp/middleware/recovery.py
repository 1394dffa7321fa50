"""
=============================================================================
ERROR RECOVERY MIDDLEWARE
=============================================================================

Turns exceptions that escape a route handler into responses, so the rest
of the chain (and the access log) always sees a status code:

    BadRequest family   → 400 with the connection marked for close
                          (a half-read body leaves the stream unusable)
    anything else       → 500, traceback logged

Sits directly around the router, inside LoggingMiddleware:

    LoggingMiddleware → ErrorMiddleware → router.handle

=============================================================================
"""

import logging

from .base import Middleware, NextHandler
from ..http.errors import BadRequest
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, error_response, internal_error


logger = logging.getLogger(__name__)


class ErrorMiddleware(Middleware):
    """Convert handler exceptions into 400 or 500 responses."""

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        try:
            return next(request)
        except BadRequest as e:
            logger.info(f"Bad request body from {request.client_address[0]}: {e}")
            return error_response(e.status_code)
        except Exception as e:
            logger.exception(f"Handler error on {request.raw_method} {request.path}: {e}")
            return internal_error()
