"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one accepted client socket with the buffered reading,
deadline handling and state tracking the connection loop needs.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

TCP only promises that bytes arrive in order. It says nothing about how
they are grouped. A client that sends

    GET /echo/abc HTTP/1.1\r\nUser-Agent: curl\r\n\r\n

in one write may show up on our side as

    recv() → b"GET /ec"
    recv() → b"ho/abc HTTP/1.1\r\nUser-Ag"
    recv() → b"ent: curl\r\n\r\n"

So we keep a receive buffer and carve lines out of it at CRLF boundaries.
Whatever is left over after a line stays in the buffer for the next call:
the start of a body, or the first bytes of the next keep-alive request.

    ┌────────────────────────────────────────────────────────────────────┐
    │                         _buffer                                    │
    ├────────────────────────────────────────────────────────────────────┤
    │  GET / HTTP/1.1\r\n │ Content-Length: 5\r\n │ \r\n │ hello │ GET.. │
    │  ─── read_line ───  │ ───── read_line ───── │ (end)│ read_ │ next  │
    │                     │                       │      │ some  │ req   │
    └────────────────────────────────────────────────────────────────────┘

=============================================================================
THE IDLE-READ DEADLINE
=============================================================================

A plain socket timeout restarts on every recv(), so a client trickling one
byte every 4 seconds could keep a connection alive forever. Instead we arm
an absolute deadline at the start of every request wait and shrink the
socket timeout to whatever is left of it before each recv():

    arm_deadline(5.0)          deadline = now + 5s
        │
        ├── recv()  timeout = 5.0s   → b"GET / HT"
        ├── recv()  timeout = 3.2s   → b"TP/1.1\r\n\r\n"
        │
        └── (next request) arm_deadline(5.0) again

When the deadline passes we raise Timeout and the connection loop closes
the socket without writing anything.

=============================================================================
CONNECTION STATES
=============================================================================

    AWAITING_REQUEST ──► PARSED ──► DISPATCHED ──► RESPONDED ──┐
           ▲                                                   │
           └──────────────── keep-alive ◄──────────────────────┤
                                                               ▼
                                                            CLOSED

Any state can jump straight to CLOSED (timeout, peer hang-up, bad request).

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Optional
import uuid

from ..http.errors import ConnectionClosed, HeaderTooLarge, Timeout


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """
    Connection lifecycle states.

    The connection loop moves through these once per request. They show
    up in debug logs and let tests assert the socket was really released.
    """
    AWAITING_REQUEST = "awaiting_request"  # Deadline armed, reading the head
    PARSED = "parsed"                      # Request line + headers parsed
    DISPATCHED = "dispatched"              # Handler is running
    RESPONDED = "responded"                # Response written
    CLOSED = "closed"                      # Socket released


@dataclass
class Connection:
    """
    One accepted client connection.

    Owned by exactly one connection-loop thread. Nothing here is shared
    between connections, so there is no locking.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used as a log prefix.
        state: Current lifecycle state.
        requests_handled: Responses written on this connection so far.
    """

    # Required parameters
    socket: socket.socket
    address: tuple[str, int]

    # Generated/default parameters
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.AWAITING_REQUEST
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    # Configuration (passed from ServerConfig)
    buffer_size: int = 8192           # How much to read per recv()
    write_timeout: Optional[float] = 30.0

    # Internal state
    _buffer: bytearray = field(default_factory=bytearray, repr=False)
    _deadline: Optional[float] = field(default=None, repr=False)

    def __post_init__(self):
        # We manage timeouts per call, so start from plain blocking mode
        self.socket.setblocking(True)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        """Get the client IP address."""
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # DEADLINE
    # =========================================================================

    def arm_deadline(self, seconds: Optional[float]):
        """
        (Re)arm the idle-read deadline.

        Every read after this call must complete before now + seconds.
        None disables the deadline (reads block indefinitely).
        """
        self._deadline = None if seconds is None else time.monotonic() + seconds

    def _remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise Timeout("Idle-read deadline exceeded")
        return remaining

    # =========================================================================
    # READING
    # =========================================================================

    def read_line(self, limit: int) -> bytes:
        """
        Read one LF-terminated line (CRLF in practice).

        Returns the line WITHOUT its terminator. Bytes after the line stay
        buffered for the next read.

        Args:
            limit: Maximum line length in bytes, terminator included.

        Raises:
            HeaderTooLarge: If no line end shows up within `limit` bytes.
            ConnectionClosed: If the peer hangs up first.
            Timeout: If the deadline passes first.
        """
        scanned = 0
        while True:
            newline = self._buffer.find(b"\n", scanned)
            if newline != -1:
                if newline + 1 > limit:
                    raise HeaderTooLarge(f"Line exceeds {limit} bytes")
                line = bytes(self._buffer[:newline + 1])
                del self._buffer[:newline + 1]
                return line.rstrip(b"\r\n")

            if len(self._buffer) >= limit:
                raise HeaderTooLarge(f"Line exceeds {limit} bytes")
            scanned = len(self._buffer)

            chunk = self._recv()
            if not chunk:
                raise ConnectionClosed("Connection closed by peer")
            self._buffer += chunk

    def read_some(self, max_bytes: int) -> bytes:
        """
        Read up to `max_bytes` bytes.

        Serves from the buffer first; only touches the socket when the
        buffer is empty. Returns b"" when the peer has closed.
        """
        if max_bytes <= 0:
            return b""

        if not self._buffer:
            chunk = self._recv()
            if not chunk:
                return b""
            self._buffer += chunk

        data = bytes(self._buffer[:max_bytes])
        del self._buffer[:max_bytes]
        return data

    def _recv(self) -> bytes:
        """
        Receive one chunk from the socket, honouring the deadline.

        Returns:
            Received bytes, or b"" if the peer closed or reset.

        Raises:
            Timeout: If the deadline passes while waiting.
        """
        self.socket.settimeout(self._remaining())
        try:
            return self.socket.recv(self.buffer_size)
        except socket.timeout:
            raise Timeout("Idle-read deadline exceeded") from None
        except (ConnectionResetError, BrokenPipeError):
            # Client disconnected abruptly
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> bool:
        """
        Send bytes to the client.

        Uses sendall() so partial sends are retried until everything is out.

        Returns:
            True if send succeeded, False if the connection is gone.
        """
        self.socket.settimeout(self.write_timeout)
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.debug(f"[{self.id}] Send failed: {e}")
            return False

    def send_file(self, file: BinaryIO, count: int) -> bool:
        """
        Stream `count` bytes of an open file to the client.

        socket.sendfile() uses os.sendfile() where available, so the bytes
        go from the page cache to the socket without a user-space copy.

        Returns:
            True only if exactly `count` bytes were sent.
        """
        if count == 0:
            return True

        self.socket.settimeout(self.write_timeout)
        try:
            sent = self.socket.sendfile(file, 0, count)
        except OSError as e:
            logger.debug(f"[{self.id}] sendfile failed: {e}")
            return False

        if sent != count:
            # File shrank under us; the framing we promised is now wrong
            logger.warning(f"[{self.id}] Sent {sent} of {count} file bytes")
            return False
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection. Safe to call more than once.

        1. shutdown(SHUT_WR) sends FIN so the client sees end-of-stream
           right after the last response byte.
        2. Drain whatever the client still has in flight. Closing a socket
           with unread data makes the kernel send RST, which can destroy a
           400 response the client has not read yet.
        3. close() releases the file descriptor.
        """
        if self.is_closed:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # socket.timeout is an OSError too

        try:
            self.socket.close()
        except OSError:
            pass

        self._buffer.clear()
        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests in {self.age:.1f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensure connection is closed."""
        self.close()
        return False  # Don't suppress exceptions
