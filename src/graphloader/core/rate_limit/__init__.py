"""Rate limiting for graph store writes.

Uses pyrate-limiter in-memory token buckets, one per partition.
"""

from graphloader.core.rate_limit.limiter import RateLimiter

__all__ = ["RateLimiter"]
