"""
=============================================================================
URL ROUTER
=============================================================================

Maps a request's method and path onto one of a fixed set of route kinds,
then calls the handler bound to that kind.

=============================================================================
THE ROUTE TABLE
=============================================================================

    ┌──────────────────┬────────┬─────────────────┬───────────────────────┐
    │ Pattern          │ Match  │ Capture         │ Kind                  │
    ├──────────────────┼────────┼─────────────────┼───────────────────────┤
    │ /                │ exact  │ -               │ ROOT (any method)     │
    │ /user-agent      │ exact  │ -               │ USER_AGENT            │
    │ /echo/{value}    │ prefix │ rest, verbatim  │ ECHO                  │
    │ /files/{name}    │ prefix │ rest, verbatim  │ GET  → FILES_GET      │
    │                  │        │                 │ POST → FILES_POST     │
    │                  │        │                 │ else → 405            │
    │ (anything else)  │        │                 │ NOT_FOUND             │
    └──────────────────┴────────┴─────────────────┴───────────────────────┘

Exact matches are tried first, then prefixes. Every pattern is disjoint
from every other one, so the order never changes the result. The table
checks that when it is built instead of relying on it silently.

=============================================================================
TAGGED-VARIANT DISPATCH
=============================================================================

resolve() returns a RouteMatch whose `kind` says what happened. The two
unmatched outcomes (NOT_FOUND, METHOD_NOT_ALLOWED) are kinds like any
other, so the whole routing decision is a pure function that can be
tested exhaustively without a socket:

    table.resolve(Method.GET, "/files/a.txt")
        → RouteMatch(kind=FILES_GET, params={"name": "a.txt"})

    table.resolve(Method.UNSUPPORTED, "/files/a.txt")
        → RouteMatch(kind=METHOD_NOT_ALLOWED, allowed=("GET", "POST"))

The table is frozen and built once at startup. All connection threads
read it concurrently without locks.

=============================================================================
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from .errors import UnroutableMethod
from .request import HTTPRequest, Method
from .response import HTTPResponse, not_found, method_not_allowed


logger = logging.getLogger(__name__)


# Handler: takes a request, returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]


class RouteKind(Enum):
    """Outcome of routing a request."""
    ROOT = "root"
    ECHO = "echo"
    USER_AGENT = "user_agent"
    FILES_GET = "files_get"
    FILES_POST = "files_post"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"

    @property
    def matched(self) -> bool:
        """False for the two unmatched outcomes."""
        return self not in (RouteKind.NOT_FOUND, RouteKind.METHOD_NOT_ALLOWED)


@dataclass(frozen=True)
class PrefixRoute:
    """
    A route matched by literal path prefix.

    The rest of the path after the prefix is captured verbatim under
    `param`. Either `kind` applies to every method, or `by_method` lists
    the methods that are allowed.
    """
    prefix: str
    param: str
    kind: Optional[RouteKind] = None
    by_method: Tuple[Tuple[Method, RouteKind], ...] = ()

    def kind_for(self, method: Method) -> RouteKind:
        if self.kind is not None:
            return self.kind
        for allowed, kind in self.by_method:
            if allowed is method:
                return kind
        return RouteKind.METHOD_NOT_ALLOWED

    @property
    def allowed_methods(self) -> Tuple[str, ...]:
        return tuple(method.value for method, _ in self.by_method)


@dataclass(frozen=True)
class RouteMatch:
    """
    Result of resolving a request.

    Example:
        Path:    /echo/abc
        Result:  RouteMatch(kind=ECHO, params={"value": "abc"})
    """
    kind: RouteKind
    params: Mapping[str, str] = field(default_factory=dict)
    allowed: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RouteTable:
    """
    Immutable path → route kind table.

    Attributes:
        exact: (path, kind) pairs matched by equality, any method.
        prefixes: PrefixRoute entries matched by str.startswith.
    """
    exact: Tuple[Tuple[str, RouteKind], ...]
    prefixes: Tuple[PrefixRoute, ...]

    def __post_init__(self):
        """Refuse tables whose patterns overlap."""
        paths = [path for path, _ in self.exact]
        if len(set(paths)) != len(paths):
            raise ValueError("Duplicate exact route")

        for route in self.prefixes:
            for path in paths:
                if path.startswith(route.prefix):
                    raise ValueError(f"Exact route {path!r} overlaps prefix {route.prefix!r}")
            for other in self.prefixes:
                if other is not route and other.prefix.startswith(route.prefix):
                    raise ValueError(f"Prefix {other.prefix!r} overlaps prefix {route.prefix!r}")

        # Exact lookups go through a read-only dict
        object.__setattr__(self, "_exact_index", MappingProxyType(dict(self.exact)))

    @classmethod
    def default(cls) -> "RouteTable":
        """The server's fixed route table."""
        return cls(
            exact=(
                ("/", RouteKind.ROOT),
                ("/user-agent", RouteKind.USER_AGENT),
            ),
            prefixes=(
                PrefixRoute("/echo/", "value", kind=RouteKind.ECHO),
                PrefixRoute(
                    "/files/", "name",
                    by_method=(
                        (Method.GET, RouteKind.FILES_GET),
                        (Method.POST, RouteKind.FILES_POST),
                    ),
                ),
            ),
        )

    def resolve(self, method: Method, path: str) -> RouteMatch:
        """
        Resolve a method and raw path to a RouteMatch.

        The path is used exactly as it appeared on the request line: no
        percent-decoding, no normalisation of "//" or "..".
        """
        kind = self._exact_index.get(path)
        if kind is not None:
            return RouteMatch(kind)

        for route in self.prefixes:
            if path.startswith(route.prefix):
                kind = route.kind_for(method)
                if kind is RouteKind.METHOD_NOT_ALLOWED:
                    return RouteMatch(kind, allowed=route.allowed_methods)
                return RouteMatch(kind, {route.param: path[len(route.prefix):]})

        return RouteMatch(RouteKind.NOT_FOUND)

    def describe(self) -> List[str]:
        """One line per route, for startup logging."""
        lines = [f"  {'ANY':8} {path:16} → {kind.name}" for path, kind in self.exact]
        for route in self.prefixes:
            pattern = f"{route.prefix}{{{route.param}}}"
            if route.kind is not None:
                lines.append(f"  {'ANY':8} {pattern:16} → {route.kind.name}")
            for method, kind in route.by_method:
                lines.append(f"  {method.value:8} {pattern:16} → {kind.name}")
        return lines


class Router:
    """
    Dispatches requests through a RouteTable to bound handlers.

        router = Router()

        @router.route(RouteKind.ROOT)
        def root(request):
            return ok("OK\\n")

        response = router.handle(request)
    """

    def __init__(self, table: Optional[RouteTable] = None):
        self.table = table or RouteTable.default()
        self._handlers: Dict[RouteKind, Handler] = {}

    def add_route(self, kind: RouteKind, handler: Handler) -> None:
        """Bind a handler to a matched route kind."""
        if not kind.matched:
            raise ValueError(f"Cannot bind a handler to {kind.name}")
        self._handlers[kind] = handler

    def route(self, kind: RouteKind) -> Callable[[Handler], Handler]:
        """Decorator form of add_route()."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(kind, handler)
            return handler
        return decorator

    def match(self, request: HTTPRequest) -> RouteMatch:
        return self.table.resolve(request.method, request.path)

    def handler_for(self, request: HTTPRequest) -> Optional[Handler]:
        """
        Resolve a request to its bound handler, filling in path_params.

        Returns:
            The handler, or None when nothing matches (404).

        Raises:
            UnroutableMethod: The path matched but the method did not.
        """
        match = self.match(request)

        if match.kind is RouteKind.METHOD_NOT_ALLOWED:
            raise UnroutableMethod(request.raw_method, request.path, match.allowed)

        handler = self._handlers.get(match.kind)
        if handler is None:
            if match.kind.matched:
                logger.warning(f"No handler bound for {match.kind.name}")
            return None

        request.path_params = dict(match.params)
        return handler

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and return the handler's response.

        1. Resolve method + path against the table
        2. Unmatched → 404, wrong method → 405
        3. Store captures in request.path_params
        4. Call the bound handler
        """
        try:
            handler = self.handler_for(request)
        except UnroutableMethod as e:
            logger.debug(str(e))
            return method_not_allowed(list(e.allowed))

        if handler is None:
            return not_found()
        return handler(request)
