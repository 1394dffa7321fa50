"""
pytest configuration and fixtures.
"""

import socket
from typing import Dict, Generator, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rawhttp import HTTPServer, ServerConfig
from rawhttp.core import Connection


IDLE_TIMEOUT = 1.0


class RawResponse:
    """A response read off the wire by RawClient."""

    def __init__(self, status: int, reason: str, headers: Dict[str, str], body: bytes):
        self.status = status
        self.reason = reason
        self.headers = headers
        self.body = body

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


class RawClient:
    """Minimal HTTP client over a plain socket, so tests see exact bytes."""

    def __init__(self, port: int, timeout: float = 5.0):
        self.sock = socket.create_connection(("127.0.0.1", port), timeout=timeout)
        self._buffer = b""

    def send(self, data: bytes):
        self.sock.sendall(data)

    def request(self, raw: bytes) -> RawResponse:
        self.send(raw)
        return self.read_response()

    def _fill(self) -> bool:
        chunk = self.sock.recv(65536)
        self._buffer += chunk
        return bool(chunk)

    def read_response(self) -> RawResponse:
        while b"\r\n\r\n" not in self._buffer:
            if not self._fill():
                raise ConnectionError(f"Closed before response head: {self._buffer!r}")

        head, self._buffer = self._buffer.split(b"\r\n\r\n", 1)
        lines = head.decode("latin-1").split("\r\n")
        _, status, reason = lines[0].split(" ", 2)

        headers = {}
        for line in lines[1:]:
            name, value = line.split(":", 1)
            headers[name.strip().lower()] = value.strip()

        length = int(headers["content-length"])
        while len(self._buffer) < length:
            if not self._fill():
                raise ConnectionError("Closed before response body")

        body, self._buffer = self._buffer[:length], self._buffer[length:]
        return RawResponse(int(status), reason, headers, body)

    def is_closed(self) -> bool:
        """True if the server has closed its end (recv returns EOF)."""
        try:
            return self.sock.recv(1) == b""
        except ConnectionResetError:
            return True

    def read_all(self) -> bytes:
        """Read until the server closes the connection."""
        data = self._buffer
        self._buffer = b""
        while True:
            try:
                chunk = self.sock.recv(65536)
            except ConnectionResetError:
                break
            if not chunk:
                break
            data += chunk
        return data

    def close(self):
        self.sock.close()


@pytest.fixture
def files_dir(tmp_path: Path) -> Path:
    """Directory served by /files/."""
    directory = tmp_path / "files"
    directory.mkdir()
    return directory


@pytest.fixture
def config(files_dir: Path) -> ServerConfig:
    """Test server configuration on an ephemeral port."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        directory=str(files_dir),
        idle_timeout=IDLE_TIMEOUT,
        write_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def running_server(config: ServerConfig) -> Generator[HTTPServer, None, None]:
    """An HTTPServer running on a background thread."""
    server = HTTPServer(config)
    server.start()
    if not server.wait_until_ready(timeout=5.0):
        raise RuntimeError("Server failed to start")

    yield server

    server.shutdown(timeout=5.0)


@pytest.fixture
def client(running_server: HTTPServer):
    """Factory for raw clients connected to the running server."""
    clients = []

    def connect() -> RawClient:
        c = RawClient(running_server.port)
        clients.append(c)
        return c

    yield connect

    for c in clients:
        c.close()


@pytest.fixture
def socket_pair() -> Generator[Tuple[Connection, socket.socket], None, None]:
    """A Connection wired to a plain socket acting as the client."""
    server_side, client_side = socket.socketpair()
    conn = Connection(socket=server_side, address=("127.0.0.1", 50000))
    conn.arm_deadline(2.0)

    yield conn, client_side

    client_side.close()
    conn.close()
