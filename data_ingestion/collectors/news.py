"""
Data Ingestion - News Collector and News/Policy Scanner.

============================================================
PURPOSE
============================================================
NewsPolicyScanner (auxiliary run step):
- Fetches hot + important CryptoPanic posts
- Dedupes by post id
- Classifies each post once and stores the relevant ones

NewsCollector (per asset):
- Reads recently stored NewsEvents
- Derives NewsSignals (mean sentiment, high-impact count,
  dominant event type, regulatory risk)

============================================================
"""

import asyncio
import logging
from collections import Counter
from typing import List, Optional, Protocol, Sequence

from core.clock import ClockProtocol, SystemClock
from core.exceptions import PersistenceError
from data_ingestion.collectors.base import BaseSignalCollector, clamp
from data_ingestion.collectors.cryptopanic import CryptoPanicPost, fetch_cryptopanic_posts
from data_ingestion.types import (
    CollectorConfig,
    NewsEvent,
    NewsScanResult,
    NewsSignals,
    SignalDomain,
)
from data_processing.labeling.news_classifier import (
    REGULATORY_EVENT_TYPES,
    NewsClassifier,
)
from data_sources.rate_limiter import HostRateLimiter
from database.store import SnapshotStore


SUMMARY_MAX_CHARS = 500


class TextSentimentAnalyzer(Protocol):
    def analyze_text(self, text: str) -> float:
        ...


# ============================================================
# NEWS SIGNAL DERIVATION
# ============================================================

def derive_news_signals(events: Sequence[NewsEvent]) -> NewsSignals:
    """
    NewsSignals from stored events.

    With no events only the high-impact count is known (0).
    """
    if not events:
        return NewsSignals(recent_high_impact_count=0)

    sentiment = sum(e.sentiment_impact for e in events) / len(events)
    high_impact = sum(1 for e in events if e.is_high_impact)

    counts = Counter(e.event_type.value for e in events)
    dominant_event_type = counts.most_common(1)[0][0]

    regulatory = [e for e in events if e.event_type in REGULATORY_EVENT_TYPES]
    if regulatory:
        mean_regulatory = sum(e.sentiment_impact for e in regulatory) / len(regulatory)
        regulatory_risk = clamp(round(50 - mean_regulatory / 2), 0, 100)
    else:
        regulatory_risk = 50

    return NewsSignals(
        news_sentiment_score=round(sentiment),
        recent_high_impact_count=high_impact,
        dominant_event_type=dominant_event_type,
        regulatory_risk=regulatory_risk,
    )


class NewsCollector(BaseSignalCollector[NewsSignals]):
    """Collector reading classified news events from the store."""

    domain = SignalDomain.NEWS

    def __init__(
        self,
        config: CollectorConfig,
        store: SnapshotStore,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(config, limiter=None)
        self._store = store
        self._clock = clock or SystemClock()

    async def fetch_signals(self, asset_id: str) -> NewsSignals:
        since = self._clock.ago(hours=self._config.news_lookback_hours)
        events = self._store.get_recent_news_events(
            since=since,
            limit=self._config.news_event_limit,
        )
        return derive_news_signals(events)


# ============================================================
# NEWS / POLICY SCANNER
# ============================================================

class NewsPolicyScanner:
    """
    Scans CryptoPanic and stores classified policy-relevant events.

    Events are classified once here; stored events are never
    re-classified.
    """

    FILTERS = ("hot", "important")

    def __init__(
        self,
        limiter: HostRateLimiter,
        config: CollectorConfig,
        store: SnapshotStore,
        analyzer: TextSentimentAnalyzer,
        classifier: Optional[NewsClassifier] = None,
    ) -> None:
        self._limiter = limiter
        self._config = config
        self._store = store
        self._analyzer = analyzer
        self._classifier = classifier or NewsClassifier()
        self._logger = logging.getLogger("news_scanner")

    async def scan(self) -> NewsScanResult:
        """
        Run one scan.

        Raises:
            CollectorError / RateLimitExhaustedError: every feed failed
        """
        result = NewsScanResult()
        posts = await self._fetch_all()
        result.fetched = len(posts)

        for post in posts:
            event = self.build_event(post)
            if event is None:
                result.skipped += 1
                continue

            try:
                event_id = self._store.save_news_event(event)
            except PersistenceError as e:
                self._logger.warning(f"Failed to store news event {post.id}: {e}")
                result.skipped += 1
                continue

            if event_id is None:
                # Already stored
                result.skipped += 1
                continue

            result.new_events += 1
            if event.is_high_impact:
                result.high_impact += 1

        self._logger.info(
            f"News scan complete: fetched={result.fetched}, new={result.new_events}, "
            f"high_impact={result.high_impact}, skipped={result.skipped}"
        )
        return result

    def build_event(self, post: CryptoPanicPost) -> Optional[NewsEvent]:
        """Classify a post; None when it is not worth storing."""
        text = post.full_text
        sentiment = self._analyzer.analyze_text(text)
        classification = self._classifier.classify(text, post.source, sentiment)

        if not classification.is_relevant:
            return None

        return NewsEvent(
            timestamp=post.published_at,
            event_type=classification.event_type,
            source_type=classification.source_type,
            region=classification.region,
            country=classification.country,
            impact_level=classification.impact_level,
            sentiment_impact=classification.sentiment_impact,
            title=post.title,
            summary=post.content[:SUMMARY_MAX_CHARS] or None,
            source_url=post.url,
            external_id=post.id,
            affected_coins=tuple(classification.affected_coins),
            affected_sectors=tuple(classification.affected_sectors),
            importance_score=classification.importance_score,
        )

    async def _fetch_all(self) -> List[CryptoPanicPost]:
        results = await asyncio.gather(
            *(fetch_cryptopanic_posts(self._limiter, self._config, f) for f in self.FILTERS),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors and len(errors) == len(results):
            raise errors[0]
        for error in errors:
            self._logger.warning(f"CryptoPanic feed failed: {error}")

        seen = set()
        unique: List[CryptoPanicPost] = []
        for batch in results:
            if isinstance(batch, BaseException):
                continue
            for post in batch:
                if post.id in seen:
                    continue
                seen.add(post.id)
                unique.append(post)
        return unique


__all__ = [
    "derive_news_signals",
    "NewsCollector",
    "NewsPolicyScanner",
]
