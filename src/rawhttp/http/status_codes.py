"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The server only ever produces a handful of status codes:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  200   │ OK                  - root, echo, user-agent, file read   │
    │  201   │ Created             - file written                        │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  400   │ Bad Request         - malformed request, bad body length  │
    │  404   │ Not Found           - no route, no file, no directory     │
    │  405   │ Method Not Allowed  - /files/* with anything but GET/POST │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  500   │ Internal Server Error - file write failed, handler crash  │
    └────────┴───────────────────────────────────────────────────────────┘

Each member knows its reason phrase, which goes into the status line:

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── Reason phrase (HTTPStatus.phrase)
              └───────── Status code (int value)

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the server.

    IntEnum so members compare equal to plain ints:
        HTTPStatus.OK == 200  → True
    """

    OK = 200
    CREATED = 201

    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405

    INTERNAL_SERVER_ERROR = 500

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line (e.g. "Not Found")."""
        return _STATUS_PHRASES.get(self, "Unknown")

    def __str__(self) -> str:
        return str(self.value)


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}
