"""
Data Ingestion - Sentiment Collector.

Fear & Greed index from alternative.me plus a social score
from an external SentimentSource, clamped to [-100, 100].
"""

import logging
from typing import Dict, List, Optional, Protocol

from data_ingestion.collectors.base import BaseSignalCollector, clamp, to_float
from data_ingestion.collectors.cryptopanic import fetch_cryptopanic_posts
from data_ingestion.types import (
    CollectorConfig,
    SentimentSignals,
    SignalDomain,
    symbol_for,
)
from data_processing.sentiment import LexiconSentimentAnalyzer
from data_sources.rate_limiter import HostRateLimiter


# ============================================================
# SENTIMENT SOURCE PROTOCOL
# ============================================================

class SentimentSource(Protocol):
    """External social/text sentiment collaborator."""

    async def aggregate(self) -> int:
        """Refresh aggregated scores; returns the number of items scored."""
        ...

    async def overall_score(self, asset_id: str) -> Optional[float]:
        """Aggregated social score in [-100, 100], None when unknown."""
        ...

    def analyze_text(self, text: str) -> float:
        """Text sentiment in [-1, 1]."""
        ...


class CryptoPanicSentimentSource:
    """
    Default SentimentSource.

    Scores hot CryptoPanic posts with the lexicon analyzer and keeps
    the mean score per tagged currency until the next aggregate().
    """

    def __init__(
        self,
        limiter: HostRateLimiter,
        config: CollectorConfig,
        analyzer: Optional[LexiconSentimentAnalyzer] = None,
    ) -> None:
        self._limiter = limiter
        self._config = config
        self._analyzer = analyzer or LexiconSentimentAnalyzer()
        self._scores: Dict[str, float] = {}
        self._logger = logging.getLogger("sentiment.cryptopanic")

    async def aggregate(self) -> int:
        posts = await fetch_cryptopanic_posts(self._limiter, self._config, "hot")

        by_symbol: Dict[str, List[float]] = {}
        for post in posts:
            score = self._analyzer.analyze_text(post.full_text)
            for code in post.currencies:
                by_symbol.setdefault(code, []).append(score)

        self._scores = {
            symbol: sum(scores) / len(scores) * 100
            for symbol, scores in by_symbol.items()
        }
        self._logger.info(
            f"Sentiment aggregation: posts={len(posts)}, symbols={len(self._scores)}"
        )
        return len(posts)

    async def overall_score(self, asset_id: str) -> Optional[float]:
        return self._scores.get(symbol_for(asset_id))

    def analyze_text(self, text: str) -> float:
        return self._analyzer.analyze_text(text)


# ============================================================
# COLLECTOR
# ============================================================

class SentimentCollector(BaseSignalCollector[SentimentSignals]):
    """Collector for Fear & Greed and social sentiment."""

    domain = SignalDomain.SENTIMENT

    def __init__(
        self,
        config: CollectorConfig,
        limiter: Optional[HostRateLimiter],
        sentiment_source: Optional[SentimentSource] = None,
    ) -> None:
        super().__init__(config, limiter)
        self._sentiment_source = sentiment_source

    async def fetch_signals(self, asset_id: str) -> SentimentSignals:
        data = await self._get_json(
            self._config.fear_greed_url,
            asset_id=asset_id,
            params={"limit": "1"},
        )

        entries = data.get("data") or []
        fear_greed_index: Optional[int] = None
        fear_greed_label: Optional[str] = None
        if entries:
            value = to_float(entries[0].get("value"))
            fear_greed_index = int(value) if value is not None else None
            fear_greed_label = entries[0].get("value_classification")

        social_score: Optional[float] = None
        if self._sentiment_source is not None:
            raw = await self._sentiment_source.overall_score(asset_id)
            if raw is not None:
                social_score = clamp(raw, -100.0, 100.0)

        return SentimentSignals(
            fear_greed_index=fear_greed_index,
            fear_greed_label=fear_greed_label,
            social_score=social_score,
        )


__all__ = [
    "SentimentSource",
    "CryptoPanicSentimentSource",
    "SentimentCollector",
]
