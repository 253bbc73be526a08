"""
Database - Snapshot Store Interface.

============================================================
PURPOSE
============================================================
The persistence collaborator the ingestion layer writes to.

- SnapshotStore: protocol every store implements
- InMemorySnapshotStore: dict-backed store for tests and dry runs

The SQLAlchemy implementation lives in database.persistence.

============================================================
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence

from core.exceptions import PersistenceError
from data_ingestion.types import (
    NewsEvent,
    OutcomeHorizon,
    RealizedOutcome,
    Snapshot,
    TrainingRecord,
    WalletTransaction,
)
from data_processing.labeling.news_classifier import Region


logger = logging.getLogger(__name__)


# Snapshot field holding each horizon's realized price
HORIZON_PRICE_FIELDS: Dict[OutcomeHorizon, str] = {
    OutcomeHorizon.H24: "price_after_24h",
    OutcomeHorizon.D7: "price_after_7d",
}


class SnapshotStore(Protocol):
    """Persistence operations used by ingestion, backfill, news and wallet tracking."""

    def save_snapshot(self, snapshot: Snapshot) -> int:
        ...

    def get_snapshot(self, asset_id: str) -> Optional[Snapshot]:
        """Latest snapshot for the asset, or None."""
        ...

    def list_snapshots(
        self,
        asset_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[Snapshot]:
        """Snapshots newest first, optionally for one asset and from `since` on."""
        ...

    def save_training_record(self, record: TrainingRecord) -> int:
        ...

    def find_pending_outcomes(
        self,
        horizon: OutcomeHorizon,
        older_than: datetime,
        limit: int = 100,
    ) -> List[Snapshot]:
        """Snapshots at or before `older_than` still lacking the horizon's price."""
        ...

    def attach_realized_outcome(self, snapshot_id: int, outcome: RealizedOutcome) -> None:
        ...

    def save_news_event(self, event: NewsEvent) -> Optional[int]:
        """Store an event; None when its external id is already stored."""
        ...

    def get_recent_news_events(
        self,
        since: datetime,
        region: Optional[Region] = None,
        limit: int = 50,
    ) -> List[NewsEvent]:
        """Events newer than `since`, newest first."""
        ...

    def save_wallet_transaction(self, transaction: WalletTransaction) -> Optional[int]:
        """Store a transaction; None when its tx hash is already stored."""
        ...

    def get_wallet_transactions(
        self,
        symbol: str,
        since: datetime,
        min_impact_score: int = 0,
    ) -> List[WalletTransaction]:
        """Transactions of the symbol from `since` on, by wallets at or above the score."""
        ...


def is_pending(snapshot: Snapshot, horizon: OutcomeHorizon, older_than: datetime) -> bool:
    """True when the snapshot can take a realized outcome for the horizon."""
    return (
        snapshot.timestamp <= older_than
        and snapshot.price is not None
        and getattr(snapshot, HORIZON_PRICE_FIELDS[horizon]) is None
    )


class InMemorySnapshotStore:
    """
    Dict-backed SnapshotStore.

    Ids are assigned sequentially from 1 per record kind.
    """

    def __init__(self) -> None:
        self.snapshots: Dict[int, Snapshot] = {}
        self.training_records: Dict[int, TrainingRecord] = {}
        self.news_events: Dict[int, NewsEvent] = {}
        self.wallet_transactions: Dict[int, WalletTransaction] = {}
        self._next_ids: Dict[str, int] = {"snapshot": 1, "training": 1, "news": 1, "wallet": 1}

    def _next_id(self, kind: str) -> int:
        record_id = self._next_ids[kind]
        self._next_ids[kind] = record_id + 1
        return record_id

    # ---------------------------------------------------------
    # Snapshots
    # ---------------------------------------------------------

    def save_snapshot(self, snapshot: Snapshot) -> int:
        snapshot_id = self._next_id("snapshot")
        self.snapshots[snapshot_id] = snapshot.with_id(snapshot_id)
        logger.debug(f"Stored snapshot {snapshot_id} for {snapshot.asset_id}")
        return snapshot_id

    def get_snapshot(self, asset_id: str) -> Optional[Snapshot]:
        matching = [s for s in self.snapshots.values() if s.asset_id == asset_id]
        if not matching:
            return None
        return max(matching, key=lambda s: (s.timestamp, s.id))

    def list_snapshots(
        self,
        asset_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[Snapshot]:
        matching = [
            s for s in self.snapshots.values()
            if (asset_id is None or s.asset_id == asset_id)
            and (since is None or s.timestamp >= since)
        ]
        return sorted(matching, key=lambda s: (s.timestamp, s.id), reverse=True)[:limit]

    def find_pending_outcomes(
        self,
        horizon: OutcomeHorizon,
        older_than: datetime,
        limit: int = 100,
    ) -> List[Snapshot]:
        pending = [
            s for s in self.snapshots.values()
            if is_pending(s, horizon, older_than)
        ]
        pending.sort(key=lambda s: (s.timestamp, s.id))
        return pending[:limit]

    def attach_realized_outcome(self, snapshot_id: int, outcome: RealizedOutcome) -> None:
        snapshot = self.snapshots.get(snapshot_id)
        if snapshot is None:
            raise PersistenceError(f"Unknown snapshot id {snapshot_id}", table="prediction_snapshots")
        self.snapshots[snapshot_id] = snapshot.with_outcome(outcome)

    # ---------------------------------------------------------
    # Training records
    # ---------------------------------------------------------

    def save_training_record(self, record: TrainingRecord) -> int:
        record_id = self._next_id("training")
        self.training_records[record_id] = record
        return record_id

    # ---------------------------------------------------------
    # News events
    # ---------------------------------------------------------

    def save_news_event(self, event: NewsEvent) -> Optional[int]:
        if event.external_id is not None and any(
            e.external_id == event.external_id for e in self.news_events.values()
        ):
            return None
        event_id = self._next_id("news")
        self.news_events[event_id] = replace(event, id=event_id)
        return event_id

    def get_recent_news_events(
        self,
        since: datetime,
        region: Optional[Region] = None,
        limit: int = 50,
    ) -> List[NewsEvent]:
        events: Sequence[NewsEvent] = [
            e for e in self.news_events.values()
            if e.timestamp >= since and (region is None or e.region == region)
        ]
        return sorted(events, key=lambda e: (e.timestamp, e.id), reverse=True)[:limit]

    # ---------------------------------------------------------
    # Wallet transactions
    # ---------------------------------------------------------

    def save_wallet_transaction(self, transaction: WalletTransaction) -> Optional[int]:
        if any(t.tx_hash == transaction.tx_hash for t in self.wallet_transactions.values()):
            return None
        transaction_id = self._next_id("wallet")
        self.wallet_transactions[transaction_id] = replace(transaction, id=transaction_id)
        return transaction_id

    def get_wallet_transactions(
        self,
        symbol: str,
        since: datetime,
        min_impact_score: int = 0,
    ) -> List[WalletTransaction]:
        return [
            t for t in sorted(self.wallet_transactions.values(), key=lambda t: (t.timestamp, t.id))
            if t.symbol == symbol
            and t.timestamp >= since
            and t.impact_score >= min_impact_score
        ]


__all__ = [
    "SnapshotStore",
    "InMemorySnapshotStore",
    "HORIZON_PRICE_FIELDS",
    "is_pending",
]
