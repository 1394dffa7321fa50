"""
=============================================================================
MAIN HTTP SERVER
=============================================================================

Ties the transport (SocketServer, Connection), the protocol layer
(RequestParser, HTTPResponse), the Router and the middleware pipeline
together, and runs the per-connection loop.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐         │
    │    │ SocketServer │    │ RequestParser│    │    Router    │         │
    │    │ (accept)     │    │ (wire input) │    │ (RouteTable) │         │
    │    └──────┬───────┘    └──────────────┘    └──────┬───────┘         │
    │           │ one thread per connection             │                 │
    │           ▼                                       ▼                 │
    │    ┌──────────────┐                        ┌──────────────┐         │
    │    │  Connection  │                        │   Handlers   │         │
    │    └──────────────┘                        └──────────────┘         │
    │                                                                     │
    │           LoggingMiddleware → ErrorMiddleware → Router.handle       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE CONNECTION LOOP
=============================================================================

    ┌──► AWAITING_REQUEST   arm idle deadline, parse request head
    │        │   ├── EOF / reset / deadline ─────────────► CLOSED (silent)
    │        │   └── malformed head ─────── 400 + close ─► CLOSED
    │        ▼
    │    PARSED
    │        ▼
    │    DISPATCHED         middleware → router → handler
    │        │   └── handler crash → 500 (ErrorMiddleware)
    │        ▼
    │    RESPONDED          write response, drain unread body
    │        │   ├── write failed ─────────────────────────► CLOSED
    │        │   └── client sent Connection: close ───────► CLOSED
    └────────┘

One thread owns one connection for its whole life. Threads share nothing
but the immutable route table and the handlers, which keep no state
between requests.

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState
from .handlers import FileHandler, FileStore, routes
from .http import (
    BadContentLength,
    BadRequest,
    ConnectionClosed,
    HTTPRequest,
    HTTPResponse,
    RequestParser,
    RouteKind,
    Router,
    ShortBody,
    error_response,
)
from .middleware import ErrorMiddleware, LoggingMiddleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    HTTP/1.1 server over raw sockets.

    =========================================================================
    USAGE
    =========================================================================

        # Blocking, until Ctrl+C or SIGTERM
        server = HTTPServer(ServerConfig(directory="/tmp/files"))
        server.run()

        # In the background (tests, embedding)
        server = HTTPServer(ServerConfig(host="127.0.0.1", port=0))
        server.start()
        server.wait_until_ready()
        ... connect to ("127.0.0.1", server.port) ...
        server.shutdown()

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(
            max_line_size=self.config.max_line_size,
            max_headers=self.config.max_headers,
        )

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._files = FileHandler(FileStore(self.config.directory))
        self._router = Router()
        self._register_routes()

        self._middleware = MiddlewarePipeline(
            LoggingMiddleware(log_format=self.config.log_format),
            ErrorMiddleware(),
        )

        # ─────────────────────────────────────────────────────────────────
        # RUNTIME STATE
        # ─────────────────────────────────────────────────────────────────

        # middleware.wrap(router.handle), built when the server starts
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None

    def _register_routes(self):
        self._router.add_route(RouteKind.ROOT, routes.root)
        self._router.add_route(RouteKind.ECHO, routes.echo)
        self._router.add_route(RouteKind.USER_AGENT, routes.user_agent)
        self._router.add_route(RouteKind.FILES_GET, self._files.get)
        self._router.add_route(RouteKind.FILES_POST, self._files.post)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def port(self) -> Optional[int]:
        """The port actually bound, once the server is listening."""
        return self._socket_server.bound_port

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(self):
        """
        Start the server and block until it is shut down.

        Raises:
            OSError: If the listening socket cannot be bound.
        """
        self._setup_logging()
        self._handler = self._middleware.wrap(self._router.handle)
        self._running = True

        logger.info(f"Starting HTTP server on {self.config.host}:{self.config.port}")
        if self._files.store.configured:
            logger.info(f"Serving /files/ from {self._files.store.root}")
        else:
            logger.info("No --directory given, /files/ will answer 404")
        for line in self._router.table.describe():
            logger.debug(line)

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._running = False
            logger.info("Server stopped")

    def start(self) -> threading.Thread:
        """Run the server on a background daemon thread."""
        self._thread = threading.Thread(target=self.run, name="rawhttp-server", daemon=True)
        self._thread.start()
        return self._thread

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is up."""
        return self._socket_server.wait_until_ready(timeout)

    def shutdown(self, timeout: Optional[float] = None):
        """
        Stop accepting connections.

        In-flight connections finish their current exchange and then close;
        their threads are daemons, so they never hold the process open.
        """
        self._running = False
        self._socket_server.shutdown()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _setup_logging(self):
        """Configure logging based on config."""
        level = self.config.log_level_number

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("rawhttp").setLevel(level)

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Give each accepted connection its own daemon thread."""
        thread = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        thread.start()

    def _process_connection(self, conn: Connection):
        """
        Serve requests on one connection until it closes.

        Runs on the connection's own thread. Nothing raised in here
        escapes: every failure ends in closing this connection only.
        """
        with conn:
            while self._running:
                try:
                    if not self._serve_one(conn):
                        break
                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _serve_one(self, conn: Connection) -> bool:
        """
        One AWAITING_REQUEST → RESPONDED cycle.

        Returns:
            True to keep the connection for another request.
        """
        # ─────────────────────────────────────────────────────────────────
        # AWAITING_REQUEST
        # ─────────────────────────────────────────────────────────────────
        conn.state = ConnectionState.AWAITING_REQUEST
        conn.arm_deadline(self.config.idle_timeout)

        try:
            request = self._parser.parse(conn)
        except ConnectionClosed as e:
            # Includes Timeout: nobody to answer, close without writing
            logger.debug(f"[{conn.id}] {e}")
            return False
        except BadRequest as e:
            logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
            self._send_error(conn, e.status_code)
            return False

        # ─────────────────────────────────────────────────────────────────
        # PARSED → DISPATCHED
        # ─────────────────────────────────────────────────────────────────
        conn.state = ConnectionState.PARSED
        response = self._dispatch(conn, request)

        # ─────────────────────────────────────────────────────────────────
        # RESPONDED
        # ─────────────────────────────────────────────────────────────────
        keep_alive = self._should_keep_alive(request, response)

        sent = response.write_to(conn)
        conn.requests_handled += 1
        conn.state = ConnectionState.RESPONDED

        if not sent:
            logger.debug(f"[{conn.id}] Write failed, closing")
            return False
        if not keep_alive:
            return False

        # Skip whatever body the handler did not read
        try:
            request.body.drain()
        except ShortBody as e:
            logger.debug(f"[{conn.id}] {e}")
            return False

        return True

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        """Run the request through middleware and router."""
        conn.state = ConnectionState.DISPATCHED
        return self._handler(request)

    def _should_keep_alive(self, request: HTTPRequest, response: HTTPResponse) -> bool:
        """
        Decide whether the connection survives this exchange.

        Closes when the client asked for it, when the response says so, when
        the server is shutting down, or when an unread body cannot be
        skipped because its length is invalid.
        """
        if request.wants_close or response.closes_connection:
            return False
        if not self._running:
            return False
        try:
            request.body.length  # Raises when the body cannot be framed
        except BadContentLength:
            return False
        return True

    def _send_error(self, conn: Connection, status_code: int):
        """Send an empty error response that closes the connection."""
        response = error_response(status_code, close=True)
        conn.send(response.to_bytes())
