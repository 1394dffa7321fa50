"""
=============================================================================
RAWHTTP: AN HTTP/1.1 SERVER OVER RAW SOCKETS
=============================================================================

A small HTTP/1.1 server written directly against the socket module, with
no http.server or socketserver underneath.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  ANY  /                → 200 "OK\\n"                                 │
    │  ANY  /echo/{value}    → 200 value (gzip if Accept-Encoding allows) │
    │  ANY  /user-agent      → 200 User-Agent header                      │
    │  GET  /files/{name}    → 200 file bytes | 404                       │
    │  POST /files/{name}    → 201 | 400 | 404 | 500                      │
    │  else /files/{name}    → 405 (Allow: GET, POST)                     │
    │  anything else         → 404                                        │
    └─────────────────────────────────────────────────────────────────────┘

Connections are persistent by default and close on "Connection: close",
on malformed input, or after the idle-read deadline (5 seconds).

    $ python -m rawhttp --directory /tmp/files
    $ curl -v http://localhost:4221/echo/hello

=============================================================================
PACKAGE LAYOUT
=============================================================================

    rawhttp/
    ├── server.py          HTTPServer and the connection loop
    ├── config.py          ServerConfig
    ├── core/              SocketServer, Connection
    ├── http/              parsing, responses, routing, errors
    ├── handlers/          route handlers and the file store
    └── middleware/        access logging

=============================================================================
"""

__version__ = "1.0.0"

from .server import HTTPServer
from .config import ServerConfig

__all__ = ["HTTPServer", "ServerConfig", "__version__"]
