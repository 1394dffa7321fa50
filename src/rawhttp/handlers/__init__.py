"""
=============================================================================
HANDLERS
=============================================================================

Route handlers take an HTTPRequest and return an HTTPResponse. They never
touch the socket; the connection loop writes whatever they return.

    ┌──────────────────┬──────────────────────────────────────────────┐
    │ routes.root      │ /             → 200 "OK\\n"                   │
    │ routes.echo      │ /echo/{value} → 200 value (gzip if accepted) │
    │ routes.user_agent│ /user-agent   → 200 User-Agent header        │
    │ FileHandler.get  │ GET  /files/{name}                           │
    │ FileHandler.post │ POST /files/{name}                           │
    └──────────────────┴──────────────────────────────────────────────┘

=============================================================================
"""

from .files import FileHandler, FileStore
from .routes import echo, root, user_agent

__all__ = [
    "FileHandler",
    "FileStore",
    "echo",
    "root",
    "user_agent",
]
