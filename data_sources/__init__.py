"""
Data Sources Package - Rate-limited HTTP layer.

Every collector reaches its upstream provider through the
HostRateLimiter, which paces and retries per host bucket.

Quick Start:
    from data_sources import AiohttpTransport, HostRateLimiter

    async def fetch_ping():
        async with AiohttpTransport(timeout=15) as transport:
            limiter = HostRateLimiter(transport=transport)
            response = await limiter.enqueue(
                "https://api.coingecko.com/api/v3/ping"
            )
            return response.json()

Adding New Hosts:
    1. Add a HostPolicy to DEFAULT_HOST_POLICIES (or pass a custom table)
    2. Patterns are substrings; the first matching entry wins
    3. Unmatched URLs use DEFAULT_POLICY
"""

from data_sources.models import (
    DEFAULT_HOST_POLICIES,
    DEFAULT_POLICY,
    HostBucketState,
    HostPolicy,
    HttpResponse,
    RateLimitedRequest,
)
from data_sources.rate_limiter import HostRateLimiter, RateLimiterState, Transport
from data_sources.transport import AiohttpTransport


__all__ = [
    "DEFAULT_HOST_POLICIES",
    "DEFAULT_POLICY",
    "HostBucketState",
    "HostPolicy",
    "HttpResponse",
    "RateLimitedRequest",
    "HostRateLimiter",
    "RateLimiterState",
    "Transport",
    "AiohttpTransport",
]
