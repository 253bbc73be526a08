"""
Data Ingestion - CryptoPanic Posts.

Shared fetch for the news/policy scanner and the social
sentiment source.

API endpoint: /posts/
Params:
- auth_token: API key
- filter: rising, hot, bullish, bearish, important
- public: true
- kind: news
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.clock import from_iso8601
from core.exceptions import CollectorError
from data_ingestion.types import CollectorConfig
from data_sources.rate_limiter import HostRateLimiter


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CryptoPanicPost:
    """One normalized CryptoPanic post."""
    id: str
    title: str
    content: str
    url: Optional[str]
    source: str
    published_at: datetime
    currencies: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def full_text(self) -> str:
        return f"{self.title} {self.content}".strip()


async def fetch_cryptopanic_posts(
    limiter: HostRateLimiter,
    config: CollectorConfig,
    post_filter: str = "hot",
) -> List[CryptoPanicPost]:
    """
    Fetch and normalize one page of CryptoPanic posts.

    Returns an empty list when no API key is configured.

    Raises:
        CollectorError: non-2xx response
        RateLimitExhaustedError: host retries exhausted
    """
    if not config.cryptopanic_api_key:
        logger.warning("CRYPTOPANIC_API_KEY not set, skipping CryptoPanic fetch")
        return []

    params = {
        "auth_token": config.cryptopanic_api_key,
        "filter": post_filter,
        "public": "true",
        "kind": "news",
    }
    response = await limiter.enqueue(config.cryptopanic_url, params=params)
    if not response.ok:
        raise CollectorError(
            f"CryptoPanic API error: {response.status}",
            domain="news",
            status_code=response.status,
        )

    data = response.json() or {}
    posts = []
    for item in data.get("results", []):
        post = parse_post(item)
        if post is not None:
            posts.append(post)
    return posts


def parse_post(item: Dict[str, Any]) -> Optional[CryptoPanicPost]:
    """Normalize one raw post; None when it has no id or title."""
    post_id = item.get("id")
    title = item.get("title")
    if post_id is None or not title:
        return None

    published = item.get("published_at") or item.get("created_at")
    try:
        published_at = from_iso8601(published) if published else datetime.now(timezone.utc)
    except (ValueError, TypeError):
        published_at = datetime.now(timezone.utc)

    source = item.get("source") or {}
    currencies = tuple(
        c.get("code", "").upper()
        for c in item.get("currencies") or []
        if c.get("code")
    )

    return CryptoPanicPost(
        id=str(post_id),
        title=title,
        content=item.get("description") or "",
        url=item.get("url"),
        source=source.get("title") or source.get("domain") or "cryptopanic",
        published_at=published_at,
        currencies=currencies,
    )


__all__ = [
    "CryptoPanicPost",
    "fetch_cryptopanic_posts",
    "parse_post",
]
