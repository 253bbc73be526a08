"""
Data Source Models - Host policies, request and response structures.

Provides strict typing for the rate-limited HTTP layer shared by all
signal collectors.
"""

import asyncio
import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class HostPolicy:
    """
    Rate-limit policy for one upstream host bucket.

    A URL belongs to the first policy whose patterns contain a
    substring of the URL.
    """
    key: str
    patterns: Tuple[str, ...]
    requests_per_second: float
    max_retries: int = 3
    retry_delay_seconds: float = 1.0

    @property
    def min_interval_seconds(self) -> float:
        """Minimum spacing between two dispatches on this host."""
        return 1.0 / self.requests_per_second

    def matches(self, url: str) -> bool:
        return any(pattern in url for pattern in self.patterns)

    def validate(self) -> List[str]:
        """Validate policy, return list of errors."""
        errors = []
        if self.requests_per_second <= 0:
            errors.append(f"{self.key}: requests_per_second must be positive")
        if self.max_retries < 0:
            errors.append(f"{self.key}: max_retries must not be negative")
        if self.retry_delay_seconds < 0:
            errors.append(f"{self.key}: retry_delay_seconds must not be negative")
        return errors


@dataclass
class HttpResponse:
    """
    Fully-read HTTP response.

    The body is read inside the transport so the response outlives
    the aiohttp connection it came from.
    """
    status: int
    url: str
    body: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429

    def json(self) -> Any:
        """Decode the body as JSON."""
        return json.loads(self.body) if self.body else None


@dataclass
class RateLimitedRequest:
    """
    One queued outbound call.

    Owned by exactly one host queue until its future is settled.
    """
    url: str
    options: Dict[str, Any]
    future: "asyncio.Future[HttpResponse]"
    retries: int = 0
    last_status: Optional[int] = None


@dataclass
class HostBucketState:
    """Queue and pacing state of one host bucket."""
    queue: Deque[RateLimitedRequest] = field(default_factory=deque)
    last_dispatch_at: Optional[float] = None
    draining: bool = False

    # Counters
    dispatched: int = 0
    retried: int = 0
    exhausted: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queued": len(self.queue),
            "draining": self.draining,
            "dispatched": self.dispatched,
            "retried": self.retried,
            "exhausted": self.exhausted,
        }


# ============================================================
# DEFAULT HOST POLICY TABLE
# ============================================================

DEFAULT_POLICY = HostPolicy(
    key="default",
    patterns=(),
    requests_per_second=5.0,
    max_retries=3,
    retry_delay_seconds=1.0,
)

DEFAULT_HOST_POLICIES: Tuple[HostPolicy, ...] = (
    HostPolicy(
        key="coingecko",
        patterns=("api.coingecko.com", "pro-api.coingecko.com"),
        requests_per_second=8.0,
        max_retries=4,
        retry_delay_seconds=2.0,
    ),
    HostPolicy(
        key="binance_futures",
        patterns=("fapi.binance.com",),
        requests_per_second=20.0,
        max_retries=3,
        retry_delay_seconds=1.0,
    ),
    HostPolicy(
        key="alternative_me",
        patterns=("api.alternative.me",),
        requests_per_second=5.0,
        max_retries=3,
        retry_delay_seconds=1.0,
    ),
    HostPolicy(
        key="fred",
        patterns=("api.stlouisfed.org",),
        requests_per_second=10.0,
        max_retries=3,
        retry_delay_seconds=1.0,
    ),
    HostPolicy(
        key="yahoo_finance",
        patterns=("query1.finance.yahoo.com", "query2.finance.yahoo.com"),
        requests_per_second=6.0,
        max_retries=3,
        retry_delay_seconds=1.5,
    ),
    HostPolicy(
        key="cryptopanic",
        patterns=("cryptopanic.com",),
        requests_per_second=5.0,
        max_retries=3,
        retry_delay_seconds=2.0,
    ),
)
