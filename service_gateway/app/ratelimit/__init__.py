"""
Rate limiting package for the Gateway.

Holds the Redis fixed-window limiter and the admission middleware that
runs ahead of every other gateway stage.
"""

from .fixed_window import FixedWindowRateLimiter, RateLimitMiddleware

__all__ = ["FixedWindowRateLimiter", "RateLimitMiddleware"]
