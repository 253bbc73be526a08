"""
Data Ingestion - On-Chain Collector.

============================================================
PURPOSE
============================================================
StoredWalletFlowSource:
- Reads tracked-wallet transactions from the store
- Aggregates them per symbol over a time window into
  WalletSignals (net flow, whale sentiment, smart money)

OnChainCollector (per asset):
- Maps WalletSignals from any WalletFlowSource into
  exchange netflow, whale activity and smart-money labels

============================================================
"""

import math
from typing import Optional, Protocol, Sequence

from core.clock import ClockProtocol, SystemClock
from data_ingestion.collectors.base import BaseSignalCollector
from data_ingestion.types import (
    CollectorConfig,
    OnChainSignals,
    SignalDomain,
    WalletSignals,
    WalletTransaction,
    symbol_for,
)
from database.store import SnapshotStore


class WalletFlowSource(Protocol):
    """Wallet tracking collaborator."""

    async def get_wallet_signals(self, symbol: str, hours: int) -> WalletSignals:
        ...


WHALE_LABELS = {
    "bullish": "accumulating",
    "bearish": "distributing",
}

SMART_MONEY_LABELS = {
    "accumulating": "increasing",
    "distributing": "decreasing",
}

# Net wallet count that makes whale sentiment directional
WHALE_WALLET_MARGIN = 3
# Share of one side's volume the net flow must exceed
WHALE_FLOW_SHARE = 0.3


# ============================================================
# WALLET FLOW AGGREGATION
# ============================================================

def aggregate_wallet_flows(transactions: Sequence[WalletTransaction]) -> WalletSignals:
    """
    WalletSignals from one window of tracked-wallet transactions.

    Buys and inbound transfers count as buy side, each transaction
    once in the wallets_buying / wallets_selling tallies.
    With no transactions every signal stays None.
    """
    if not transactions:
        return WalletSignals()

    buy_volume = 0.0
    sell_volume = 0.0
    wallets_buying = 0
    wallets_selling = 0
    for tx in transactions:
        if tx.direction.is_buy_side:
            buy_volume += tx.amount_usd
            wallets_buying += 1
        else:
            sell_volume += tx.amount_usd
            wallets_selling += 1

    net_flow = buy_volume - sell_volume
    net_buyers = wallets_buying - wallets_selling

    if net_buyers >= WHALE_WALLET_MARGIN or net_flow > buy_volume * WHALE_FLOW_SHARE:
        whale_sentiment = "bullish"
    elif net_buyers <= -WHALE_WALLET_MARGIN or net_flow < -sell_volume * WHALE_FLOW_SHARE:
        whale_sentiment = "bearish"
    else:
        whale_sentiment = "neutral"

    if net_flow > 0 and wallets_buying > wallets_selling:
        smart_money_direction = "accumulating"
    elif net_flow < 0 and wallets_selling > wallets_buying:
        smart_money_direction = "distributing"
    else:
        smart_money_direction = "neutral"

    total_volume = buy_volume + sell_volume
    confidence = math.floor(math.log10(total_volume + 1) * 10 + len(transactions) * 5 + 0.5)

    return WalletSignals(
        net_flow=net_flow,
        whale_sentiment=whale_sentiment,
        smart_money_direction=smart_money_direction,
        buy_volume=buy_volume,
        sell_volume=sell_volume,
        wallets_buying=wallets_buying,
        wallets_selling=wallets_selling,
        confidence_level=min(100, confidence),
    )


class StoredWalletFlowSource:
    """WalletFlowSource over the wallet transactions kept in the store."""

    def __init__(
        self,
        store: SnapshotStore,
        clock: Optional[ClockProtocol] = None,
        min_impact_score: int = 50,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._min_impact_score = min_impact_score

    async def get_wallet_signals(self, symbol: str, hours: int) -> WalletSignals:
        transactions = self._store.get_wallet_transactions(
            symbol=symbol,
            since=self._clock.ago(hours=hours),
            min_impact_score=self._min_impact_score,
        )
        return aggregate_wallet_flows(transactions)


# ============================================================
# COLLECTOR
# ============================================================

class OnChainCollector(BaseSignalCollector[OnChainSignals]):
    """Collector for wallet-flow derived on-chain signals."""

    domain = SignalDomain.ONCHAIN

    def __init__(
        self,
        config: CollectorConfig,
        wallet_source: WalletFlowSource,
    ) -> None:
        super().__init__(config, limiter=None)
        self._wallet_source = wallet_source

    async def fetch_signals(self, asset_id: str) -> OnChainSignals:
        signals = await self._wallet_source.get_wallet_signals(
            symbol_for(asset_id),
            self._config.wallet_flow_hours,
        )
        return map_wallet_signals(signals)


def map_wallet_signals(signals: WalletSignals) -> OnChainSignals:
    """Label wallet signals; absent inputs stay None."""
    return OnChainSignals(
        exchange_netflow=_netflow_label(signals.net_flow),
        whale_activity=_label(signals.whale_sentiment, WHALE_LABELS, "neutral"),
        smart_money_trend=_label(signals.smart_money_direction, SMART_MONEY_LABELS, "stable"),
    )


def _netflow_label(net_flow: Optional[float]) -> Optional[str]:
    if net_flow is None:
        return None
    if net_flow > 0:
        return "inflow"
    if net_flow < 0:
        return "outflow"
    return "neutral"


def _label(value: Optional[str], labels: dict, default: str) -> Optional[str]:
    if value is None:
        return None
    return labels.get(value, default)


__all__ = [
    "WalletFlowSource",
    "StoredWalletFlowSource",
    "OnChainCollector",
    "aggregate_wallet_flows",
    "map_wallet_signals",
]
