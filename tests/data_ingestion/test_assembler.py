"""
Tests for the Snapshot Assembler.

============================================================
TEST PRINCIPLES
============================================================
- One failed collector never poisons the others
- Market data is mandatory
- Failed domains are listed in collector_errors

============================================================
"""

from datetime import datetime, timezone
from typing import Any, List

import pytest

from core.clock import MockClock
from core.exceptions import CollectorError, MandatorySignalMissingError
from data_ingestion.assembler import SnapshotAssembler
from data_ingestion.collectors.base import BaseSignalCollector
from data_ingestion.types import (
    CollectorConfig,
    MarketSignals,
    SentimentSignals,
    SignalDomain,
    TechnicalSignals,
)


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class StubCollector(BaseSignalCollector):
    """Collector returning a fixed bundle, or raising a fixed error."""

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


@pytest.fixture
def clock():
    return MockClock(NOW)


def make_assembler(clock, market_result, *others) -> SnapshotAssembler:
    return SnapshotAssembler(
        StubCollector(SignalDomain.MARKET, market_result),
        list(others),
        clock=clock,
    )


class TestAssemble:
    """Tests for fan-out and fusion."""

    @pytest.mark.asyncio
    async def test_sentiment_failure_keeps_other_fields(self, clock):
        assembler = make_assembler(
            clock,
            MarketSignals(price=100.0, volume_24h=5e9),
            StubCollector(SignalDomain.TECHNICAL, TechnicalSignals(rsi_14=40.0, macd_signal="bullish")),
            StubCollector(
                SignalDomain.SENTIMENT,
                CollectorError("Fear & Greed unavailable", domain="sentiment"),
            ),
        )

        snapshot = await assembler.assemble("bitcoin")

        assert snapshot.asset_id == "bitcoin"
        assert snapshot.price == 100.0
        assert snapshot.rsi_14 == 40.0
        assert snapshot.macd_signal == "bullish"
        assert snapshot.sentiment_social_score is None
        assert snapshot.fear_greed_index is None
        assert snapshot.collector_errors == {"sentiment": "Fear & Greed unavailable"}

    @pytest.mark.asyncio
    async def test_market_failure_aborts_asset(self, clock):
        technical = StubCollector(SignalDomain.TECHNICAL, TechnicalSignals(rsi_14=40.0))
        assembler = make_assembler(
            clock,
            CollectorError("HTTP 500", domain="market", status_code=500),
            technical,
        )

        with pytest.raises(MandatorySignalMissingError) as exc_info:
            await assembler.assemble("bitcoin")

        assert "Failed to fetch market data for bitcoin" in str(exc_info.value)
        # Every branch is still awaited
        assert technical.calls == ["bitcoin"]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_mapped_per_domain(self, clock):
        assembler = make_assembler(
            clock,
            MarketSignals(price=1.0),
            StubCollector(SignalDomain.TECHNICAL, ValueError("bad candle")),
        )

        snapshot = await assembler.assemble("ethereum")

        assert snapshot.collector_errors["technical"].startswith("Parse error")
        assert snapshot.rsi_14 is None

    @pytest.mark.asyncio
    async def test_bundle_names_map_to_snapshot_fields(self, clock):
        assembler = make_assembler(
            clock,
            MarketSignals(price=1.0),
            StubCollector(
                SignalDomain.SENTIMENT,
                SentimentSignals(fear_greed_index=20, fear_greed_label="Extreme Fear", social_score=55.0),
            ),
        )

        snapshot = await assembler.assemble("bitcoin")

        assert snapshot.sentiment_social_score == 55.0
        assert snapshot.fear_greed_label == "Extreme Fear"
        assert snapshot.collector_errors == {}

    @pytest.mark.asyncio
    async def test_timestamp_from_clock(self, clock):
        assembler = make_assembler(clock, MarketSignals(price=1.0))

        snapshot = await assembler.assemble("bitcoin")

        assert snapshot.timestamp == NOW
        assert snapshot.id is None

    def test_domains(self, clock):
        assembler = make_assembler(
            clock,
            MarketSignals(),
            StubCollector(SignalDomain.MACRO, None),
        )

        assert assembler.domains == ["market", "macro"]
