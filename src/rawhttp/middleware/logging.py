"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Emits one access-log line per request on the "rawhttp.access" logger:

    text:  127.0.0.1 - - [17/Oct/2026:10:02:11 +0000] "GET /echo/abc HTTP/1.1" 200 3 0.41ms
    json:  {"method": "GET", "path": "/echo/abc", "status_code": 200, ...}

The logger is separate from the module loggers so it can be routed or
silenced on its own:

    logging.getLogger("rawhttp.access").setLevel(logging.WARNING)

=============================================================================
"""

import time
import json
import logging
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("rawhttp.access")


@dataclass
class RequestLog:
    """
    Structured log entry for a request.

    Fields:
        method:         Method token as received ("DELETE", not UNSUPPORTED)
        path:           Request target, verbatim
        version:        Protocol field from the request line
        client_ip:      Peer address
        user_agent:     User-Agent header or "-"
        status_code:    Response status
        content_length: Response body size in bytes (compressed if gzipped)
        duration_ms:    Time spent in the handler chain
        timestamp:      Apache-style local time
    """
    method: str
    path: str
    version: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "path": self.path,
            "version": self.version,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache common log format plus the duration."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path} {self.version}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it first so it sees every request.

        pipeline.add(LoggingMiddleware(log_format="json"))
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        """
        Args:
            log_format: "text" (Apache-like) or "json".
            log_level: Level the access lines are logged at.
        """
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        start_time = time.monotonic()
        response = next(request)
        duration_ms = (time.monotonic() - start_time) * 1000

        if not logger.isEnabledFor(self.log_level):
            return response

        log_entry = RequestLog(
            method=request.raw_method,
            path=request.path,
            version=request.version,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=response.content_length,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(log_entry.to_dict()))
        else:
            logger.log(self.log_level, log_entry.to_text())

        return response
