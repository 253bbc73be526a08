"""
Tests for news signals, the news/policy scanner and the
CryptoPanic sentiment source.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple

import pytest

from core.clock import MockClock
from core.exceptions import CollectorError
from data_ingestion.collectors.cryptopanic import parse_post
from data_ingestion.collectors.news import (
    NewsCollector,
    NewsPolicyScanner,
    derive_news_signals,
)
from data_ingestion.collectors.sentiment import CryptoPanicSentimentSource
from data_ingestion.types import CollectorConfig, NewsEvent
from data_processing.labeling.news_classifier import (
    EventType,
    ImpactLevel,
    Region,
    SourceType,
)
from data_processing.sentiment import LexiconSentimentAnalyzer
from data_sources.models import HttpResponse
from database.store import InMemorySnapshotStore


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
CONFIG = CollectorConfig(cryptopanic_api_key="test-key")


class FeedLimiter:
    """Serves CryptoPanic pages keyed by the filter param."""

    def __init__(self, pages: Dict[str, Any]):
        self.pages = pages
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def enqueue(self, url: str, **options: Any) -> HttpResponse:
        self.calls.append((url, options))
        page = self.pages.get(options["params"]["filter"])
        if page is None:
            return HttpResponse(status=502, url=url)
        return HttpResponse(status=200, url=url, body=json.dumps({"results": page}))


def post(post_id: int, title: str, codes=("BTC",), source: str = "CoinDesk") -> Dict[str, Any]:
    return {
        "id": post_id,
        "title": title,
        "published_at": "2024-06-01T10:00:00Z",
        "url": f"https://cryptopanic.com/news/{post_id}",
        "source": {"title": source},
        "currencies": [{"code": code.lower()} for code in codes],
    }


def make_event(event_type: EventType, sentiment: int, impact: ImpactLevel, age_hours: int = 1) -> NewsEvent:
    return NewsEvent(
        timestamp=NOW - timedelta(hours=age_hours),
        event_type=event_type,
        source_type=SourceType.MEDIA,
        region=Region.GLOBAL,
        impact_level=impact,
        sentiment_impact=sentiment,
        title="headline",
    )


# ============================================================
# NEWS SIGNALS
# ============================================================

class TestNewsSignals:
    """Tests for deriving per-asset news signals from stored events."""

    def test_no_events(self):
        signals = derive_news_signals([])

        assert signals.recent_high_impact_count == 0
        assert signals.news_sentiment_score is None
        assert signals.dominant_event_type is None
        assert signals.regulatory_risk is None

    def test_aggregates(self):
        events = [
            make_event(EventType.ENFORCEMENT, -40, ImpactLevel.HIGH),
            make_event(EventType.ENFORCEMENT, -60, ImpactLevel.CRITICAL),
            make_event(EventType.NEWS, 30, ImpactLevel.LOW),
        ]

        signals = derive_news_signals(events)

        assert signals.news_sentiment_score == -23
        assert signals.recent_high_impact_count == 2
        assert signals.dominant_event_type == "enforcement"
        # 50 - (-50 / 2)
        assert signals.regulatory_risk == 75

    def test_no_regulatory_events_is_midpoint(self):
        signals = derive_news_signals([make_event(EventType.ETF, 20, ImpactLevel.HIGH)])

        assert signals.regulatory_risk == 50

    @pytest.mark.asyncio
    async def test_collector_reads_lookback_window(self):
        store = InMemorySnapshotStore()
        store.save_news_event(make_event(EventType.HACK, -80, ImpactLevel.CRITICAL, age_hours=2))
        store.save_news_event(make_event(EventType.ETF, 50, ImpactLevel.HIGH, age_hours=100))

        signals = await NewsCollector(CONFIG, store, clock=MockClock(NOW)).collect("bitcoin")

        assert signals.recent_high_impact_count == 1
        assert signals.dominant_event_type == "hack"


# ============================================================
# SCANNER
# ============================================================

class TestNewsPolicyScanner:
    """Tests for classify-once storage of relevant posts."""

    def make_scanner(self, limiter, store):
        return NewsPolicyScanner(limiter, CONFIG, store, LexiconSentimentAnalyzer())

    @pytest.mark.asyncio
    async def test_stores_only_relevant_posts(self):
        enforcement = post(1, "SEC sues exchange over token")
        plain = post(2, "Bitcoin price update")
        limiter = FeedLimiter({"hot": [enforcement, plain], "important": [enforcement]})
        store = InMemorySnapshotStore()

        result = await self.make_scanner(limiter, store).scan()

        assert result.fetched == 2
        assert result.new_events == 1
        assert result.high_impact == 1
        assert result.skipped == 1

        stored = list(store.news_events.values())
        assert len(stored) == 1
        assert stored[0].external_id == "1"
        assert stored[0].event_type == EventType.ENFORCEMENT
        assert stored[0].region == Region.NORTH_AMERICA
        assert stored[0].importance_score == 75

    @pytest.mark.asyncio
    async def test_rescan_skips_stored_posts(self):
        limiter = FeedLimiter({"hot": [post(1, "SEC sues exchange")], "important": []})
        store = InMemorySnapshotStore()
        scanner = self.make_scanner(limiter, store)

        await scanner.scan()
        second = await scanner.scan()

        assert second.new_events == 0
        assert second.skipped == 1
        assert len(store.news_events) == 1

    @pytest.mark.asyncio
    async def test_one_failed_feed_is_tolerated(self):
        limiter = FeedLimiter({"hot": [post(1, "Spot ETF approved")]})

        result = await self.make_scanner(limiter, InMemorySnapshotStore()).scan()

        assert result.new_events == 1

    @pytest.mark.asyncio
    async def test_all_feeds_failing_raises(self):
        with pytest.raises(CollectorError):
            await self.make_scanner(FeedLimiter({}), InMemorySnapshotStore()).scan()

    @pytest.mark.asyncio
    async def test_missing_api_key_is_empty_scan(self):
        limiter = FeedLimiter({})
        scanner = NewsPolicyScanner(
            limiter,
            CollectorConfig(),
            InMemorySnapshotStore(),
            LexiconSentimentAnalyzer(),
        )

        result = await scanner.scan()

        assert result.fetched == 0
        assert limiter.calls == []


# ============================================================
# CRYPTOPANIC
# ============================================================

class TestCryptoPanic:
    """Tests for post parsing and the social sentiment source."""

    def test_parse_post(self):
        parsed = parse_post(post(7, "Solana rally", codes=("SOL",), source="The Block"))

        assert parsed.id == "7"
        assert parsed.source == "The Block"
        assert parsed.currencies == ("SOL",)
        assert parsed.published_at == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)

    def test_parse_post_without_title(self):
        assert parse_post({"id": 1, "title": ""}) is None

    @pytest.mark.asyncio
    async def test_sentiment_source_scores_per_symbol(self):
        limiter = FeedLimiter({"hot": [
            post(1, "Bitcoin to the moon", codes=("BTC",)),
            post(2, "Exchange hacked, funds stolen", codes=("ETH",)),
        ]})
        source = CryptoPanicSentimentSource(limiter, CONFIG)

        count = await source.aggregate()

        assert count == 2
        assert await source.overall_score("bitcoin") == 100.0
        assert await source.overall_score("ethereum") == -100.0
        assert await source.overall_score("solana") is None
