"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Middleware wraps the router so that cross-cutting work happens around
every request without the route handlers knowing about it.

    ┌─────────────────────────────────────────────────────────┐
    │  LoggingMiddleware                                      │
    │  ┌───────────────────────────────────────────────────┐  │
    │  │  ErrorMiddleware                                  │  │
    │  │  ┌─────────────────────────────────────────────┐  │  │
    │  │  │        FINAL HANDLER (router.handle)        │  │  │
    │  │  └─────────────────────────────────────────────┘  │  │
    │  └───────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────┘

The request flows inward (first added runs first), the response flows
back outward.

=============================================================================
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


# The next middleware, or the router at the end of the chain
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class Timing(Middleware):
            def __call__(self, request, next):
                start = time.monotonic()
                response = next(request)      # continue the chain
                ...                           # post-process
                return response

    A middleware may also return a response without calling next().
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming HTTP request
            next: The next handler in the chain

        Returns:
            HTTP response (either from next() or short-circuited)
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Chains middleware around a final handler.

        pipeline = MiddlewarePipeline(LoggingMiddleware(), ErrorMiddleware())
        handler = pipeline.wrap(router.handle)
        response = handler(request)
    """

    def __init__(self, *middleware: Middleware):
        self._middleware: List[Middleware] = []
        for mw in middleware:
            self.add(mw)

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware. First added = outermost. Returns self."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Wrap a handler with every middleware in the pipeline.

        Given [MW1, MW2] the result calls MW1 → MW2 → handler, so we wrap
        in reverse order.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = partial(_call_middleware, middleware, current)
        return current


def _call_middleware(middleware: Middleware, next_handler: NextHandler, request: HTTPRequest) -> HTTPResponse:
    return middleware(request, next_handler)
