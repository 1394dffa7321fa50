"""
Unit tests for Connection: buffering, the idle-read deadline and closing.
"""

import io
import time

import pytest

from rawhttp.core import ConnectionState
from rawhttp.http.errors import ConnectionClosed, HeaderTooLarge, Timeout


class TestReading:
    """Tests for read_line() and read_some()."""

    def test_line_split_across_sends(self, socket_pair):
        conn, client = socket_pair
        client.sendall(b"GET / HT")
        client.sendall(b"TP/1.1\r\nnext")

        assert conn.read_line(limit=100) == b"GET / HTTP/1.1"
        assert conn.read_some(100) == b"next"

    def test_bare_lf_terminates_line(self, socket_pair):
        conn, client = socket_pair
        client.sendall(b"abc\n")

        assert conn.read_line(limit=100) == b"abc"

    def test_line_over_limit(self, socket_pair):
        conn, client = socket_pair
        client.sendall(b"x" * 50 + b"\r\n")

        with pytest.raises(HeaderTooLarge):
            conn.read_line(limit=20)

    def test_peer_close_mid_line(self, socket_pair):
        conn, client = socket_pair
        client.sendall(b"partial")
        client.close()

        with pytest.raises(ConnectionClosed):
            conn.read_line(limit=100)

    def test_read_some_after_close_is_empty(self, socket_pair):
        conn, client = socket_pair
        client.close()

        assert conn.read_some(10) == b""

    def test_read_some_zero(self, socket_pair):
        conn, _ = socket_pair
        assert conn.read_some(0) == b""


class TestDeadline:
    """The deadline is absolute, not per recv()."""

    def test_silence_times_out(self, socket_pair):
        conn, _ = socket_pair
        conn.arm_deadline(0.2)

        with pytest.raises(Timeout):
            conn.read_line(limit=100)

    def test_trickle_cannot_extend_deadline(self, socket_pair):
        conn, client = socket_pair
        conn.arm_deadline(0.3)
        client.sendall(b"G")
        time.sleep(0.2)
        client.sendall(b"E")
        start = time.monotonic()

        with pytest.raises(Timeout):
            conn.read_line(limit=100)

        assert time.monotonic() - start < 0.3

    def test_timeout_is_a_connection_close(self):
        assert issubclass(Timeout, ConnectionClosed)


class TestWriting:
    """Tests for send() and send_file()."""

    def test_send(self, socket_pair):
        conn, client = socket_pair

        assert conn.send(b"hello")
        assert client.recv(100) == b"hello"

    def test_send_file(self, socket_pair, tmp_path):
        conn, client = socket_pair
        path = tmp_path / "data"
        path.write_bytes(b"file body")

        with open(path, "rb") as f:
            assert conn.send_file(f, 9)

        assert client.recv(100) == b"file body"

    def test_send_file_short(self, socket_pair, tmp_path):
        conn, _ = socket_pair
        path = tmp_path / "data"
        path.write_bytes(b"abc")

        with open(path, "rb") as f:
            assert not conn.send_file(f, 10)

    def test_send_file_empty(self, socket_pair):
        conn, _ = socket_pair
        assert conn.send_file(io.BytesIO(), 0)


class TestClosing:
    """Tests for close()."""

    def test_close_is_idempotent(self, socket_pair):
        conn, client = socket_pair

        conn.close()
        conn.close()

        assert conn.state is ConnectionState.CLOSED
        assert client.recv(10) == b""

    def test_context_manager_closes(self, socket_pair):
        conn, _ = socket_pair

        with conn:
            pass

        assert conn.is_closed
