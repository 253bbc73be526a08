"""
Tests for realized-outcome backfill.

============================================================
TEST PRINCIPLES
============================================================
- Only snapshots past their horizon are updated
- Accuracy compares realized move to predicted direction
- Prediction fields are never modified
- Current price fetched once per asset per pass

============================================================
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from core.clock import MockClock
from core.exceptions import CollectorError, PersistenceError
from data_ingestion.backfill import (
    BackfillJob,
    build_outcome,
    compute_accuracy,
    compute_actual_impact,
)
from data_ingestion.types import (
    BackfillConfig,
    Direction,
    OutcomeHorizon,
    RiskLevel,
    Snapshot,
)
from database.store import InMemorySnapshotStore


T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_snapshot(price=100.0, prediction=Direction.BULLISH, asset_id="bitcoin", timestamp=T0) -> Snapshot:
    return Snapshot(
        timestamp=timestamp,
        asset_id=asset_id,
        price=price,
        prediction=prediction,
        confidence=70 if prediction else None,
        risk_level=RiskLevel.MEDIUM if prediction else None,
        reasons=("RSI oversold (<30)",) if prediction else (),
    )


def price_source(price: float) -> AsyncMock:
    source = AsyncMock()
    source.fetch_current_price = AsyncMock(return_value=price)
    return source


# ============================================================
# PURE FUNCTIONS
# ============================================================

class TestOutcomeMath:
    """Tests for impact and accuracy."""

    def test_actual_impact_percent(self):
        assert compute_actual_impact(100.0, 110.0) == pytest.approx(10.0)
        assert compute_actual_impact(200.0, 150.0) == pytest.approx(-25.0)

    @pytest.mark.parametrize("prediction,impact,expected", [
        (Direction.BULLISH, 10.0, 100),
        (Direction.BULLISH, -10.0, 0),
        (Direction.BULLISH, 0.0, 0),
        (Direction.BEARISH, -3.0, 100),
        (Direction.BEARISH, 3.0, 0),
        (Direction.NEUTRAL, 1.5, 100),
        (Direction.NEUTRAL, -2.0, 100),
        (Direction.NEUTRAL, 5.0, 0),
        (None, 5.0, None),
    ])
    def test_accuracy(self, prediction, impact, expected):
        assert compute_accuracy(prediction, impact, 2.0) == expected

    def test_build_outcome_requires_price(self):
        with pytest.raises(ValueError):
            build_outcome(make_snapshot(price=0.0), OutcomeHorizon.H24, 10.0, 2.0)


# ============================================================
# JOB TESTS
# ============================================================

class TestBackfillJob:
    """Tests for one backfill pass over the in-memory store."""

    @pytest.fixture
    def store(self):
        return InMemorySnapshotStore()

    @pytest.mark.asyncio
    async def test_correct_bullish_call(self, store):
        snapshot_id = store.save_snapshot(make_snapshot())
        clock = MockClock(T0 + timedelta(hours=25))

        result = await BackfillJob(store, price_source(110.0), clock=clock).run()

        updated = store.snapshots[snapshot_id]
        assert result.updated_count == 1
        assert result.error_count == 0
        assert updated.price_after_24h == 110.0
        assert updated.actual_impact == pytest.approx(10.0)
        assert updated.accuracy == 100
        # 7d horizon not reached yet
        assert updated.price_after_7d is None

    @pytest.mark.asyncio
    async def test_wrong_bullish_call_leaves_prediction(self, store):
        snapshot_id = store.save_snapshot(make_snapshot())
        clock = MockClock(T0 + timedelta(hours=25))

        await BackfillJob(store, price_source(90.0), clock=clock).run()

        updated = store.snapshots[snapshot_id]
        assert updated.accuracy == 0
        assert updated.actual_impact == pytest.approx(-10.0)
        assert updated.prediction == Direction.BULLISH
        assert updated.confidence == 70
        assert updated.risk_level == RiskLevel.MEDIUM
        assert updated.reasons == ("RSI oversold (<30)",)

    @pytest.mark.asyncio
    async def test_recent_snapshot_is_not_touched(self, store):
        snapshot_id = store.save_snapshot(make_snapshot())
        source = price_source(110.0)
        clock = MockClock(T0 + timedelta(hours=2))

        result = await BackfillJob(store, source, clock=clock).run()

        assert result.updated_count == 0
        assert store.snapshots[snapshot_id].price_after_24h is None
        source.fetch_current_price.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_both_horizons_share_one_price_fetch(self, store):
        snapshot_id = store.save_snapshot(make_snapshot())
        source = price_source(120.0)
        clock = MockClock(T0 + timedelta(days=8))

        result = await BackfillJob(store, source, clock=clock).run()

        updated = store.snapshots[snapshot_id]
        assert result.updated_count == 2
        assert updated.price_after_24h == 120.0
        assert updated.price_after_7d == 120.0
        assert updated.accuracy_7d == 100
        assert source.fetch_current_price.await_count == 1

    @pytest.mark.asyncio
    async def test_second_pass_is_a_no_op(self, store):
        store.save_snapshot(make_snapshot())
        clock = MockClock(T0 + timedelta(hours=25))
        job = BackfillJob(store, price_source(110.0), clock=clock)

        await job.run()
        second = await job.run()

        assert second.updated_count == 0

    @pytest.mark.asyncio
    async def test_unscored_snapshot_gets_no_accuracy(self, store):
        snapshot_id = store.save_snapshot(make_snapshot(prediction=None))
        clock = MockClock(T0 + timedelta(hours=25))

        await BackfillJob(store, price_source(105.0), clock=clock).run()

        updated = store.snapshots[snapshot_id]
        assert updated.price_after_24h == 105.0
        assert updated.accuracy is None

    @pytest.mark.asyncio
    async def test_neutral_band_is_configurable(self, store):
        snapshot_id = store.save_snapshot(make_snapshot(prediction=Direction.NEUTRAL))
        clock = MockClock(T0 + timedelta(hours=25))
        config = BackfillConfig(horizons=(OutcomeHorizon.H24,), neutral_band_percent=5.0)

        await BackfillJob(store, price_source(104.0), config=config, clock=clock).run()

        assert store.snapshots[snapshot_id].accuracy == 100

    @pytest.mark.asyncio
    async def test_price_failure_is_recorded_per_snapshot(self, store):
        store.save_snapshot(make_snapshot(asset_id="bitcoin"))
        eth_id = store.save_snapshot(make_snapshot(asset_id="ethereum"))
        clock = MockClock(T0 + timedelta(hours=25))

        async def fetch(asset_id: str) -> float:
            if asset_id == "bitcoin":
                raise CollectorError("HTTP 500", domain="market", asset_id=asset_id)
            return 110.0

        source = AsyncMock()
        source.fetch_current_price = AsyncMock(side_effect=fetch)
        config = BackfillConfig(horizons=(OutcomeHorizon.H24,))

        result = await BackfillJob(store, source, config=config, clock=clock).run()

        assert result.updated_count == 1
        assert result.error_count == 1
        assert "bitcoin" in result.errors[0]
        assert store.snapshots[eth_id].accuracy == 100

    @pytest.mark.asyncio
    async def test_store_rejection_is_recorded_and_pass_continues(self, store):
        kept_id = store.save_snapshot(make_snapshot(asset_id="bitcoin"))
        orphan = make_snapshot(asset_id="ethereum").with_id(999)
        real_pending = store.find_pending_outcomes
        store.find_pending_outcomes = lambda horizon, older_than, limit=100: (
            [orphan] + real_pending(horizon, older_than, limit)
        )
        clock = MockClock(T0 + timedelta(hours=25))
        config = BackfillConfig(horizons=(OutcomeHorizon.H24,))

        result = await BackfillJob(store, price_source(110.0), config=config, clock=clock).run()

        assert result.updated_count == 1
        assert result.error_count == 1
        assert "ethereum (999)" in result.errors[0]
        assert store.snapshots[kept_id].accuracy == 100

    def test_in_memory_store_rejects_unknown_id(self, store):
        outcome = build_outcome(make_snapshot(), OutcomeHorizon.H24, 110.0, 2.0)

        with pytest.raises(PersistenceError):
            store.attach_realized_outcome(42, outcome)
