"""
Middleware components.

    from rawhttp.middleware import ErrorMiddleware, LoggingMiddleware, MiddlewarePipeline

    pipeline = MiddlewarePipeline(LoggingMiddleware(), ErrorMiddleware())
    handler = pipeline.wrap(router.handle)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog
from .recovery import ErrorMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "ErrorMiddleware",
    "LoggingMiddleware",
    "RequestLog",
]
