"""
Tests for the Ingestion Orchestrator.

============================================================
TEST PRINCIPLES
============================================================
- Assets processed sequentially, in order
- One failing asset or auxiliary step never aborts the run
- Run types select which phases execute
- run_full_ingestion returns errors, never raises

============================================================
"""

from datetime import datetime, timedelta, timezone
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.clock import MockClock
from core.exceptions import CollectorError, PersistenceError
from data_ingestion.assembler import SnapshotAssembler
from data_ingestion.collectors.base import BaseSignalCollector
from data_ingestion.ingestion_service import IngestionOrchestrator
from data_ingestion.types import (
    CollectorConfig,
    Direction,
    IngestionConfig,
    IngestionOptions,
    MarketSignals,
    NewsEvent,
    OutcomeHorizon,
    RunState,
    RunType,
    SignalDomain,
    Snapshot,
    TechnicalSignals,
)
from data_processing.labeling.news_classifier import (
    EventType,
    ImpactLevel,
    Region,
    SourceType,
)
from database.store import InMemorySnapshotStore


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
COINS = ("bitcoin", "ethereum", "solana")
BULLISH_TECHNICALS = TechnicalSignals(rsi_14=25.0, macd_signal="bullish", ma200_position="above")


# ============================================================
# FIXTURES
# ============================================================

class StubCollector(BaseSignalCollector):
    """Collector whose result is computed per asset."""

    def __init__(self, domain: SignalDomain, result: Any):
        self.domain = domain
        super().__init__(CollectorConfig())
        self._result = result
        self.calls: List[str] = []

    async def fetch_signals(self, asset_id: str):
        self.calls.append(asset_id)
        result = self._result(asset_id) if callable(self._result) else self._result
        if isinstance(result, Exception):
            raise result
        return result


def market_for(failing: tuple = ()):
    def result(asset_id: str):
        if asset_id in failing:
            return CollectorError("HTTP 500", domain="market", asset_id=asset_id, status_code=500)
        return MarketSignals(price=100.0)
    return result


class Harness:
    """Orchestrator wired to stub collectors and an in-memory store."""

    def __init__(self, failing_markets: tuple = (), technical: Any = None, **kwargs):
        self.clock = MockClock(NOW)
        self.store = InMemorySnapshotStore()
        self.sleep = AsyncMock()
        self.market = StubCollector(SignalDomain.MARKET, market_for(failing_markets))
        self.technical = StubCollector(SignalDomain.TECHNICAL, technical or BULLISH_TECHNICALS)
        self.assembler = SnapshotAssembler(self.market, [self.technical], clock=self.clock)
        self.orchestrator = IngestionOrchestrator(
            self.assembler,
            self.store,
            clock=self.clock,
            sleep=self.sleep,
            **kwargs,
        )


def sentiment_source(side_effect=None):
    source = MagicMock()
    source.aggregate = AsyncMock(return_value=3, side_effect=side_effect)
    return source


# ============================================================
# PER-ASSET LOOP TESTS
# ============================================================

class TestPerAssetLoop:
    """Tests for the sequential per-asset loop."""

    @pytest.mark.asyncio
    async def test_assets_processed_in_order_with_delay(self):
        harness = Harness()

        result = await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.MARKET_ONLY, coins=COINS)
        )

        assert result.success is True
        assert result.state == RunState.DONE
        assert result.snapshots_created == 3
        assert harness.market.calls == list(COINS)
        # Delay only between assets
        assert harness.sleep.await_count == 2
        harness.sleep.assert_awaited_with(0.2)

    @pytest.mark.asyncio
    async def test_snapshots_are_scored_and_stored(self):
        harness = Harness()

        await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.MARKET_ONLY, coins=("bitcoin",))
        )

        stored = harness.store.get_snapshot("bitcoin")
        assert stored.id == 1
        assert stored.prediction == Direction.BULLISH
        assert stored.confidence is not None
        assert stored.reasons[0] == "RSI oversold (<30)"

    @pytest.mark.asyncio
    async def test_skip_prediction(self):
        harness = Harness()

        await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.MARKET_ONLY, coins=("bitcoin",), skip_prediction=True)
        )

        stored = harness.store.get_snapshot("bitcoin")
        assert stored.prediction is None
        assert stored.rsi_14 == 25.0

    @pytest.mark.asyncio
    async def test_failed_asset_is_isolated(self):
        harness = Harness(failing_markets=("ethereum",))

        result = await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.MARKET_ONLY, coins=COINS)
        )

        assert result.success is False
        assert result.state == RunState.PARTIAL_FAILURE
        assert result.snapshots_created == 2
        assert len(result.errors) == 1
        assert result.errors[0].startswith("ethereum: Failed to fetch market data")
        assert harness.store.get_snapshot("solana") is not None

    @pytest.mark.asyncio
    async def test_domain_details(self):
        harness = Harness(technical=CollectorError("OHLC unavailable", domain="technical"))

        result = await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.MARKET_ONLY, coins=("bitcoin",))
        )

        # Optional collector failures do not fail the run
        assert result.success is True
        assert result.details["market"] is True
        assert result.details["technical"] is False
        assert harness.store.get_snapshot("bitcoin").collector_errors == {
            "technical": "OHLC unavailable",
        }

    @pytest.mark.asyncio
    async def test_unexpected_exception_does_not_escape(self):
        harness = Harness()
        harness.store.save_snapshot = MagicMock(side_effect=RuntimeError("disk full"))

        result = await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.MARKET_ONLY, coins=("bitcoin",))
        )

        assert result.success is False
        assert "bitcoin: Unexpected error: disk full" in result.errors


# ============================================================
# RUN TYPE TESTS
# ============================================================

class TestRunTypes:
    """Tests for phase selection and auxiliary steps."""

    @pytest.mark.asyncio
    async def test_full_runs_auxiliary_then_assets(self):
        source = sentiment_source()
        harness = Harness(sentiment_source=source)

        result = await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.FULL, coins=("bitcoin",))
        )

        source.aggregate.assert_awaited_once()
        assert result.details["sentiment_aggregation"] is True
        assert result.snapshots_created == 1

    @pytest.mark.asyncio
    async def test_market_only_skips_auxiliary(self):
        source = sentiment_source()
        harness = Harness(sentiment_source=source)

        await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.MARKET_ONLY, coins=("bitcoin",))
        )

        source.aggregate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sentiment_only_skips_assets(self):
        source = sentiment_source()
        harness = Harness(sentiment_source=source)

        result = await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.SENTIMENT_ONLY, coins=COINS)
        )

        source.aggregate.assert_awaited_once()
        assert result.snapshots_created == 0
        assert harness.market.calls == []

    @pytest.mark.asyncio
    async def test_auxiliary_failure_is_recorded(self):
        source = sentiment_source(side_effect=RuntimeError("CryptoPanic down"))
        scanner = MagicMock()
        scanner.scan = AsyncMock(return_value="ok")
        harness = Harness(sentiment_source=source, news_scanner=scanner)

        result = await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.FULL, coins=("bitcoin",))
        )

        scanner.scan.assert_awaited_once()
        assert result.details["sentiment_aggregation"] is False
        assert result.details["news_scan"] is True
        assert "sentiment_aggregation: CryptoPanic down" in result.errors
        assert result.snapshots_created == 1
        assert result.state == RunState.PARTIAL_FAILURE


# ============================================================
# PERSISTENCE / READ TESTS
# ============================================================

class TestTrainingAndReads:
    """Tests for training records, backfill and policy-risk reads."""

    @pytest.mark.asyncio
    async def test_training_records_for_latest_snapshots(self):
        harness = Harness(failing_markets=("solana",))

        result = await harness.orchestrator.run_full_ingestion(
            IngestionOptions(type=RunType.MARKET_ONLY, coins=COINS, store_training_data=True)
        )

        records = list(harness.store.training_records.values())
        assert [r.asset_id for r in records] == ["bitcoin", "ethereum"]
        assert records[0].predicted_direction == Direction.BULLISH
        assert records[0].features["rsi_14"] == 25.0
        assert "prediction" not in records[0].features
        assert result.details["training_data"] is True

    @pytest.mark.asyncio
    async def test_scheduled_run_stores_training_data(self):
        harness = Harness(config=IngestionConfig(coins=("bitcoin",)))

        result = await harness.orchestrator.run_scheduled_ingestion()

        assert result.run_type == RunType.FULL
        assert len(harness.store.training_records) == 1

    @pytest.mark.asyncio
    async def test_create_snapshot_returns_stored_copy(self):
        harness = Harness()

        snapshot = await harness.orchestrator.create_snapshot("bitcoin")

        assert snapshot.id == 1
        assert harness.store.snapshots[1] == snapshot

    @pytest.mark.asyncio
    async def test_backfill_without_job(self):
        harness = Harness()

        result = await harness.orchestrator.backfill_realized_outcomes()

        assert result.error_count == 1

    def test_policy_risk_uses_trailing_window(self):
        harness = Harness()
        for age_days, title in ((1, "Regulator sues exchange"), (40, "Old lawsuit")):
            harness.store.save_news_event(NewsEvent(
                timestamp=NOW - timedelta(days=age_days),
                event_type=EventType.ENFORCEMENT,
                source_type=SourceType.REGULATOR,
                region=Region.EUROPE,
                impact_level=ImpactLevel.HIGH,
                sentiment_impact=-50,
                title=title,
            ))

        score = harness.orchestrator.policy_risk(Region.EUROPE)

        assert score.enforcement_risk == 20
        assert len(score.recent_events) == 1
        assert harness.orchestrator.policy_risk(Region.ASIA).enforcement_risk == 0

    def test_all_policy_risks_covers_every_region(self):
        harness = Harness()
        harness.store.save_news_event(NewsEvent(
            timestamp=NOW - timedelta(days=2),
            event_type=EventType.ENFORCEMENT,
            source_type=SourceType.REGULATOR,
            region=Region.ASIA,
            impact_level=ImpactLevel.HIGH,
            sentiment_impact=-60,
            title="Exchange ban announced",
        ))

        scores = harness.orchestrator.all_policy_risks()

        assert set(scores) == set(Region)
        assert scores[Region.ASIA].ban_risk == 25
        assert scores[Region.EUROPE].overall_risk == 0

    def test_unreadable_region_falls_back_to_neutral(self):
        harness = Harness()
        original = harness.store.get_recent_news_events

        def failing_for_europe(since, region=None, limit=50):
            if region == Region.EUROPE:
                raise PersistenceError("connection lost", table="news_policy_events")
            return original(since, region=region, limit=limit)

        harness.store.get_recent_news_events = failing_for_europe

        scores = harness.orchestrator.all_policy_risks()

        europe = scores[Region.EUROPE]
        assert europe.overall_risk == europe.ban_risk == europe.regulatory_clarity == 50
        assert europe.trend == "stable"
        assert scores[Region.ASIA].overall_risk == 0


# ============================================================
# PREDICTION PERFORMANCE TESTS
# ============================================================

def evaluated(asset_id: str, prediction: Direction, accuracy, age_days: int, confidence: int = 60) -> Snapshot:
    return Snapshot(
        timestamp=NOW - timedelta(days=age_days),
        asset_id=asset_id,
        price=100.0,
        prediction=prediction,
        confidence=confidence,
        accuracy=accuracy,
    )


class TestPredictionPerformance:
    """Tests for the accuracy and stats reads."""

    @pytest.fixture
    def harness(self):
        harness = Harness()
        for snapshot in (
            evaluated("bitcoin", Direction.BULLISH, 100, age_days=2),
            evaluated("bitcoin", Direction.BEARISH, 0, age_days=3),
            evaluated("bitcoin", Direction.BULLISH, 100, age_days=45),
            evaluated("ethereum", Direction.NEUTRAL, 100, age_days=1),
            evaluated("ethereum", Direction.BULLISH, None, age_days=1),
        ):
            harness.store.save_snapshot(snapshot)
        return harness

    def test_accuracy_across_assets(self, harness):
        report = harness.orchestrator.historical_accuracy()

        assert report.total_predictions == 4
        assert report.correct_predictions == 3
        assert report.asset_id is None

    def test_accuracy_for_asset_and_window(self, harness):
        report = harness.orchestrator.historical_accuracy(asset_id="bitcoin", days=30)

        assert report.asset_id == "bitcoin"
        assert report.total_predictions == 2
        assert report.accuracy == 50.0
        assert report.by_direction[Direction.BEARISH].total == 1

    def test_weekly_horizon_without_outcomes(self, harness):
        report = harness.orchestrator.historical_accuracy(horizon=OutcomeHorizon.D7)

        assert report.total_predictions == 0
        assert report.accuracy is None

    def test_prediction_stats_window(self, harness):
        stats = harness.orchestrator.prediction_stats("bitcoin", days=30)

        assert stats.total_predictions == 2
        assert stats.bullish_count == 1
        assert stats.bearish_count == 1
        assert stats.avg_confidence == 60

    def test_prediction_stats_unknown_asset(self, harness):
        stats = harness.orchestrator.prediction_stats("dogecoin")

        assert stats.total_predictions == 0
        assert stats.avg_confidence is None
