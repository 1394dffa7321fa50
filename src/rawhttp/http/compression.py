"""
=============================================================================
GZIP CONTENT NEGOTIATION
=============================================================================

    Client                                       Server
      │  GET /echo/hello                           │
      │  Accept-Encoding: deflate, gzip            │
      │ ─────────────────────────────────────────► │
      │                                            │  "gzip" in header?
      │                                            │  yes → compress body
      │  HTTP/1.1 200 OK                           │
      │  Content-Encoding: gzip                    │
      │  Content-Length: 25    ← COMPRESSED size   │
      │ ◄───────────────────────────────────────── │

Negotiation is a case-insensitive substring test on Accept-Encoding;
quality values ("gzip;q=0") are not interpreted. Only the echo route uses
this.

=============================================================================
"""

import gzip


DEFAULT_LEVEL = 6


def accepts_gzip(accept_encoding: str) -> bool:
    """True if an Accept-Encoding header value mentions gzip."""
    return "gzip" in accept_encoding.lower()


def gzip_body(body: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """
    Compress a response body.

    mtime=0 keeps the output deterministic: the same input always gives
    the same bytes, which makes responses (and tests) reproducible.
    """
    return gzip.compress(body, compresslevel=level, mtime=0)
