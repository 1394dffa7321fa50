"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Every accepted client is
wrapped in a Connection and handed to a callback; what happens after that
is the HTTP layer's business.

    socket() → setsockopt() → bind() → listen() → accept() ... → close()

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created once at startup
                    │                       │     Bound to 0.0.0.0:4221
                    └───────────┬───────────┘     Never sends/receives data
                                │ accept()
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌─────────┐            ┌─────────┐            ┌─────────┐
    │ Client  │            │ Client  │            │ Client  │
    │ Socket 1│            │ Socket 2│            │ Socket 3│
    └─────────┘            └─────────┘            └─────────┘

=============================================================================
INTERRUPTIBLE ACCEPT
=============================================================================

accept() blocks. To notice shutdown() we give the listening socket a
1-second timeout and re-check the running flag each time it fires:

    while running:
        try:
            accept()          # at most 1 second
        except timeout:
            continue          # check the flag again

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Callable, Optional

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 1.0

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class SocketServer:
    """
    Low-level TCP socket server.

        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown()

    start() may run on any thread. SIGINT/SIGTERM handlers are installed
    only when it runs on the main thread, since Python only allows signal
    handlers there.
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._listener: Optional[socket.socket] = None
        self._running = False
        self._bound_port: Optional[int] = None

        # Set once listen() succeeded, so other threads can wait for it
        self._ready = threading.Event()

        # Signal → handler that was installed before ours
        self._previous_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port (differs from config.port when that is 0)."""
        return self._bound_port

    # =========================================================================
    # SETUP
    # =========================================================================

    def _listen(self) -> socket.socket:
        """Create, bind and listen. Raises OSError if the address is taken."""
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        # Responses go out in one or two sends
        listener.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        listener.settimeout(ACCEPT_POLL_INTERVAL)

        address = (self.config.host, self.config.port)
        try:
            listener.bind(address)
            listener.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Cannot listen on {address[0]}:{address[1]}: {e}")
            listener.close()
            raise
        return listener

    def _install_signal_handlers(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, leaving signal handlers alone")
            return

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            self.shutdown()

        for signum in SHUTDOWN_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, on_signal)

    def _restore_signal_handlers(self):
        while self._previous_handlers:
            signum, handler = self._previous_handlers.popitem()
            signal.signal(signum, handler)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop until shutdown().

        Args:
            connection_handler: Called with each new Connection. Must not
                block for long; the HTTP server hands the connection to a
                new thread and returns.

        Raises:
            OSError: If binding fails (address in use, permission denied).
        """
        self._listener = self._listen()
        self._bound_port = self._listener.getsockname()[1]
        self._running = True
        self._install_signal_handlers()

        logger.info(f"Server listening on {self.config.host}:{self._bound_port}")
        self._ready.set()

        try:
            while self._running:
                conn = self._accept()
                if conn is not None:
                    self._hand_off(conn, connection_handler)
        finally:
            self._close_listener()

    def _accept(self) -> Optional[Connection]:
        """Wait up to one poll interval for a client. None if nobody came."""
        try:
            client_socket, client_address = self._listener.accept()
        except socket.timeout:
            return None
        except OSError as e:
            # The listener was closed under us, usually during shutdown
            if self._running:
                logger.error(f"Accept error: {e}")
            self._running = False
            return None

        return Connection(
            socket=client_socket,
            address=client_address,
            buffer_size=self.config.buffer_size,
            write_timeout=self.config.write_timeout,
        )

    def _hand_off(self, conn: Connection, connection_handler: Callable[[Connection], None]):
        logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}")
        try:
            connection_handler(conn)
        except Exception as e:
            # Only this connection is lost; keep accepting
            logger.exception(f"[{conn.id}] Connection hand-off failed: {e}")
            conn.close()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready.wait(timeout)

    def shutdown(self):
        """Stop the accept loop. Safe to call more than once, from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _close_listener(self):
        self._restore_signal_handlers()

        if self._listener is not None:
            self._listener.close()
            self._listener = None

        self._running = False
        self._ready.clear()
        logger.info("Socket server stopped")
