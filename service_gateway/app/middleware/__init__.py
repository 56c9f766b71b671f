"""
Cross-cutting HTTP middleware for the Gateway.
"""

from .request_logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
