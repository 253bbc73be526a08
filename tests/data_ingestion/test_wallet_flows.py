"""
Tests for tracked-wallet flow aggregation.

============================================================
TEST PRINCIPLES
============================================================
- Buys and inbound transfers are buy side
- Only transactions inside the window, for the symbol and
  from wallets at or above the impact score are counted
- No transactions means no on-chain signal (all None)

============================================================
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.clock import MockClock
from data_ingestion.collectors.onchain import (
    OnChainCollector,
    StoredWalletFlowSource,
    aggregate_wallet_flows,
)
from data_ingestion.types import (
    CollectorConfig,
    WalletDirection,
    WalletSignals,
    WalletTransaction,
)
from database.store import InMemorySnapshotStore


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

_counter = iter(range(1, 10_000))


def tx(direction, amount, wallet="0xwhale1", symbol="BTC", hours_ago=1, impact=80) -> WalletTransaction:
    return WalletTransaction(
        timestamp=NOW - timedelta(hours=hours_ago),
        wallet_address=wallet,
        symbol=symbol,
        direction=WalletDirection(direction),
        amount_usd=amount,
        tx_hash=f"0xhash{next(_counter)}",
        impact_score=impact,
    )


# ============================================================
# AGGREGATION
# ============================================================

class TestAggregateWalletFlows:
    """Tests for aggregate_wallet_flows."""

    def test_no_transactions(self):
        assert aggregate_wallet_flows([]) == WalletSignals()

    def test_broad_buying_is_bullish_accumulation(self):
        signals = aggregate_wallet_flows([
            tx("buy", 1000.0, wallet="0xa"),
            tx("buy", 2000.0, wallet="0xb"),
            tx("transfer_in", 3000.0, wallet="0xc"),
        ])

        assert signals.buy_volume == 6000.0
        assert signals.sell_volume == 0.0
        assert signals.net_flow == 6000.0
        assert signals.wallets_buying == 3
        assert signals.wallets_selling == 0
        assert signals.whale_sentiment == "bullish"
        assert signals.smart_money_direction == "accumulating"
        # round(log10(6001) * 10 + 3 * 5)
        assert signals.confidence_level == 53

    def test_large_outflow_is_bearish(self):
        signals = aggregate_wallet_flows([
            tx("buy", 1000.0),
            tx("transfer_out", 5000.0),
        ])

        assert signals.net_flow == -4000.0
        assert signals.whale_sentiment == "bearish"
        # Equal transaction counts keep smart money neutral
        assert signals.smart_money_direction == "neutral"

    def test_many_sellers_are_distributing(self):
        signals = aggregate_wallet_flows([
            tx("sell", 100.0, wallet=f"0x{i}") for i in range(3)
        ])

        assert signals.wallets_selling == 3
        assert signals.whale_sentiment == "bearish"
        assert signals.smart_money_direction == "distributing"

    def test_balanced_flow_is_neutral(self):
        signals = aggregate_wallet_flows([
            tx("buy", 1000.0),
            tx("sell", 900.0),
        ])

        assert signals.net_flow == pytest.approx(100.0)
        assert signals.whale_sentiment == "neutral"
        assert signals.smart_money_direction == "neutral"

    def test_confidence_is_capped(self):
        signals = aggregate_wallet_flows([tx("buy", 1_000_000.0) for _ in range(20)])

        assert signals.confidence_level == 100


# ============================================================
# STORE-BACKED SOURCE
# ============================================================

@pytest.fixture
def clock():
    return MockClock(NOW)


@pytest.fixture
def store():
    store = InMemorySnapshotStore()
    for transaction in (
        tx("buy", 5000.0, wallet="0xa"),
        tx("buy", 7000.0, wallet="0xb", hours_ago=23),
        # Outside the 24h window
        tx("sell", 90000.0, wallet="0xc", hours_ago=30),
        # Below the impact threshold
        tx("sell", 80000.0, wallet="0xd", impact=20),
        # Other symbol
        tx("sell", 70000.0, wallet="0xe", symbol="ETH"),
    ):
        store.save_wallet_transaction(transaction)
    return store


class TestStoredWalletFlowSource:
    """Tests for StoredWalletFlowSource over the in-memory store."""

    @pytest.mark.asyncio
    async def test_window_symbol_and_impact_filters(self, store, clock):
        source = StoredWalletFlowSource(store, clock=clock, min_impact_score=50)

        signals = await source.get_wallet_signals("BTC", 24)

        assert signals.buy_volume == 12000.0
        assert signals.sell_volume == 0.0
        assert signals.wallets_buying == 2
        assert signals.smart_money_direction == "accumulating"

    @pytest.mark.asyncio
    async def test_lower_threshold_and_longer_window(self, store, clock):
        source = StoredWalletFlowSource(store, clock=clock, min_impact_score=0)

        signals = await source.get_wallet_signals("BTC", 48)

        assert signals.sell_volume == 170000.0
        assert signals.net_flow == -158000.0
        assert signals.whale_sentiment == "bearish"

    @pytest.mark.asyncio
    async def test_unknown_symbol_has_no_signal(self, store, clock):
        source = StoredWalletFlowSource(store, clock=clock)

        assert await source.get_wallet_signals("DOGE", 24) == WalletSignals()

    def test_duplicate_hash_is_skipped(self):
        store = InMemorySnapshotStore()
        transaction = tx("buy", 1.0)

        assert store.save_wallet_transaction(transaction) == 1
        assert store.save_wallet_transaction(transaction) is None
        assert len(store.wallet_transactions) == 1

    @pytest.mark.asyncio
    async def test_collector_labels_stored_flows(self, store, clock):
        source = StoredWalletFlowSource(store, clock=clock)

        bundle = await OnChainCollector(CollectorConfig(), source).collect("bitcoin")

        assert bundle.exchange_netflow == "inflow"
        assert bundle.whale_activity == "accumulating"
        assert bundle.smart_money_trend == "increasing"

    @pytest.mark.asyncio
    async def test_collector_without_flows_stays_none(self, clock):
        source = StoredWalletFlowSource(InMemorySnapshotStore(), clock=clock)

        bundle = await OnChainCollector(CollectorConfig(), source).collect("bitcoin")

        assert bundle.exchange_netflow is None
        assert bundle.whale_activity is None


# ============================================================
# IMPORT FORMAT
# ============================================================

class TestWalletTransactionFromDict:
    """Tests for parsing import-file entries."""

    def test_parses_entry(self):
        transaction = WalletTransaction.from_dict({
            "timestamp": "2024-06-01T11:00:00Z",
            "wallet_address": "0xabc",
            "symbol": "btc",
            "direction": "transfer_in",
            "amount_usd": "2500.5",
            "tx_hash": "0xdef",
            "impact_score": 75,
            "blockchain": "ethereum",
        })

        assert transaction.timestamp == NOW - timedelta(hours=1)
        assert transaction.symbol == "BTC"
        assert transaction.direction == WalletDirection.TRANSFER_IN
        assert transaction.amount_usd == 2500.5
        assert transaction.impact_score == 75

    def test_naive_timestamp_is_utc(self):
        transaction = WalletTransaction.from_dict({
            "timestamp": "2024-06-01T12:00:00",
            "wallet_address": "0xabc",
            "symbol": "ETH",
            "direction": "sell",
            "tx_hash": "0x1",
        })

        assert transaction.timestamp == NOW
        assert transaction.amount_usd == 0.0

    @pytest.mark.parametrize("entry", [
        {"timestamp": "2024-06-01T12:00:00Z", "wallet_address": "0xa", "symbol": "BTC", "direction": "hodl", "tx_hash": "0x1"},
        {"timestamp": "yesterday", "wallet_address": "0xa", "symbol": "BTC", "direction": "buy", "tx_hash": "0x1"},
        {"wallet_address": "0xa", "symbol": "BTC", "direction": "buy", "tx_hash": "0x1"},
    ])
    def test_malformed_entries_raise(self, entry):
        with pytest.raises((KeyError, ValueError)):
            WalletTransaction.from_dict(entry)
