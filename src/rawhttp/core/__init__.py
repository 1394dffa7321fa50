"""
=============================================================================
CORE NETWORKING
=============================================================================

The transport layer, with no HTTP knowledge:

    SocketServer    Listening socket, accept loop, shutdown
    Connection      One client socket: buffered reads, idle-read
                    deadline, writes, idempotent close

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
]
