"""Rate limiting adapters.

This package provides a small abstraction layer so the API can start with an
in-memory limiter and later migrate to Redis or another shared store without
changing the HTTP layer.
"""

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
    RateLimitStats,
)
from app.adapters.rate_limit.in_memory import InMemoryRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryRateLimiter",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
    "RateLimitStats",
]
