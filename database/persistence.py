"""
Database Persistence Functions.

============================================================
SQLALCHEMY SNAPSHOT STORE
============================================================

SnapshotStore backed by the ORM models in database.models.

Every write:
- Runs inside transaction_scope (commit or rollback)
- Logs structured output: "Persist table_name: inserted=N"
- Raises PersistenceError on failure

============================================================
"""

import logging
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from data_ingestion.types import (
    Direction,
    NewsEvent,
    OutcomeHorizon,
    RealizedOutcome,
    RiskLevel,
    Snapshot,
    TrainingRecord,
    WalletDirection,
    WalletTransaction,
)
from data_processing.labeling.news_classifier import (
    EventType,
    ImpactLevel,
    Region,
    SourceType,
)
from core.exceptions import PersistenceError

from .engine import transaction_scope
from .models import (
    NewsPolicyEvent,
    PredictionSnapshot,
    PredictionTrainingData,
    WalletTransactionRecord,
)
from .store import HORIZON_PRICE_FIELDS

logger = logging.getLogger(__name__)


# Snapshot fields stored as plain columns
_ENUM_FIELDS = {"prediction", "risk_level"}
_SPECIAL_FIELDS = {"id", "reasons", "collector_errors"} | _ENUM_FIELDS
SNAPSHOT_COLUMNS = tuple(
    f.name for f in fields(Snapshot) if f.name not in _SPECIAL_FIELDS
)


# =============================================================
# HELPER FUNCTIONS
# =============================================================

def _log_persistence(table_name: str, count: int, details: str = "") -> None:
    """Log persistence result in structured format."""
    if details:
        logger.info(f"Persist {table_name}: inserted={count} ({details})")
    else:
        logger.info(f"Persist {table_name}: inserted={count}")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite returns naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def snapshot_to_row(snapshot: Snapshot) -> PredictionSnapshot:
    values: Dict[str, Any] = {name: getattr(snapshot, name) for name in SNAPSHOT_COLUMNS}
    values["prediction"] = snapshot.prediction.value if snapshot.prediction else None
    values["risk_level"] = snapshot.risk_level.value if snapshot.risk_level else None
    values["reasons"] = list(snapshot.reasons)
    values["collector_errors"] = dict(snapshot.collector_errors)
    return PredictionSnapshot(**values)


def row_to_snapshot(row: PredictionSnapshot) -> Snapshot:
    values: Dict[str, Any] = {name: getattr(row, name) for name in SNAPSHOT_COLUMNS}
    values["timestamp"] = _as_utc(row.timestamp)
    return Snapshot(
        id=row.id,
        prediction=Direction(row.prediction) if row.prediction else None,
        risk_level=RiskLevel(row.risk_level) if row.risk_level else None,
        reasons=tuple(row.reasons or ()),
        collector_errors=dict(row.collector_errors or {}),
        **values,
    )


def event_to_row(event: NewsEvent) -> NewsPolicyEvent:
    return NewsPolicyEvent(
        timestamp=event.timestamp,
        external_id=event.external_id,
        event_type=event.event_type.value,
        source_type=event.source_type.value,
        region=event.region.value,
        country=event.country,
        impact_level=event.impact_level.value,
        sentiment_impact=event.sentiment_impact,
        importance_score=event.importance_score,
        title=event.title,
        summary=event.summary,
        source_url=event.source_url,
        affected_coins=list(event.affected_coins),
        affected_sectors=list(event.affected_sectors),
    )


def row_to_event(row: NewsPolicyEvent) -> NewsEvent:
    return NewsEvent(
        id=row.id,
        timestamp=_as_utc(row.timestamp),
        external_id=row.external_id,
        event_type=EventType(row.event_type),
        source_type=SourceType(row.source_type),
        region=Region(row.region),
        country=row.country,
        impact_level=ImpactLevel(row.impact_level),
        sentiment_impact=row.sentiment_impact,
        importance_score=row.importance_score,
        title=row.title,
        summary=row.summary,
        source_url=row.source_url,
        affected_coins=tuple(row.affected_coins or ()),
        affected_sectors=tuple(row.affected_sectors or ()),
    )


def row_to_wallet_transaction(row: WalletTransactionRecord) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,
        timestamp=_as_utc(row.timestamp),
        wallet_address=row.wallet_address,
        symbol=row.symbol,
        direction=WalletDirection(row.direction),
        amount_usd=row.amount_usd,
        tx_hash=row.tx_hash,
        impact_score=row.impact_score,
        blockchain=row.blockchain,
    )


# =============================================================
# STORE
# =============================================================

class SqlAlchemySnapshotStore:
    """
    SnapshotStore over a SQLAlchemy session factory.

    Each call is its own transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ---------------------------------------------------------
    # Snapshots
    # ---------------------------------------------------------

    def save_snapshot(self, snapshot: Snapshot) -> int:
        with transaction_scope(self._session_factory) as session:
            row = snapshot_to_row(snapshot)
            session.add(row)
            session.flush()
            snapshot_id = row.id

        _log_persistence("prediction_snapshots", 1, f"asset={snapshot.asset_id}")
        return snapshot_id

    def get_snapshot(self, asset_id: str) -> Optional[Snapshot]:
        with transaction_scope(self._session_factory) as session:
            row = session.execute(
                select(PredictionSnapshot)
                .where(PredictionSnapshot.asset_id == asset_id)
                .order_by(PredictionSnapshot.timestamp.desc(), PredictionSnapshot.id.desc())
                .limit(1)
            ).scalar_one_or_none()
            return row_to_snapshot(row) if row is not None else None

    def list_snapshots(
        self,
        asset_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[Snapshot]:
        query = select(PredictionSnapshot)
        if asset_id is not None:
            query = query.where(PredictionSnapshot.asset_id == asset_id)
        if since is not None:
            query = query.where(PredictionSnapshot.timestamp >= since)
        query = query.order_by(
            PredictionSnapshot.timestamp.desc(),
            PredictionSnapshot.id.desc(),
        ).limit(limit)

        with transaction_scope(self._session_factory) as session:
            rows = session.execute(query).scalars().all()
            return [row_to_snapshot(row) for row in rows]

    def find_pending_outcomes(
        self,
        horizon: OutcomeHorizon,
        older_than: datetime,
        limit: int = 100,
    ) -> List[Snapshot]:
        price_column = getattr(PredictionSnapshot, HORIZON_PRICE_FIELDS[horizon])
        with transaction_scope(self._session_factory) as session:
            rows = session.execute(
                select(PredictionSnapshot)
                .where(PredictionSnapshot.timestamp <= older_than)
                .where(PredictionSnapshot.price.is_not(None))
                .where(price_column.is_(None))
                .order_by(PredictionSnapshot.timestamp.asc(), PredictionSnapshot.id.asc())
                .limit(limit)
            ).scalars().all()
            return [row_to_snapshot(row) for row in rows]

    def attach_realized_outcome(self, snapshot_id: int, outcome: RealizedOutcome) -> None:
        with transaction_scope(self._session_factory) as session:
            row = session.get(PredictionSnapshot, snapshot_id)
            if row is None:
                raise PersistenceError(
                    f"Unknown snapshot id {snapshot_id}",
                    table="prediction_snapshots",
                )
            for name, value in outcome.snapshot_fields().items():
                setattr(row, name, value)

        logger.info(
            f"Persist prediction_snapshots: updated=1 "
            f"(id={snapshot_id}, horizon={outcome.horizon.value})"
        )

    # ---------------------------------------------------------
    # Training records
    # ---------------------------------------------------------

    def save_training_record(self, record: TrainingRecord) -> int:
        with transaction_scope(self._session_factory) as session:
            row = PredictionTrainingData(
                snapshot_id=record.snapshot_id,
                asset_id=record.asset_id,
                snapshot_timestamp=record.snapshot_timestamp,
                features=_json_features(record.features),
                price_at_snapshot=record.price_at_snapshot,
                predicted_direction=(
                    record.predicted_direction.value if record.predicted_direction else None
                ),
            )
            session.add(row)
            session.flush()
            record_id = row.id

        _log_persistence("prediction_training_data", 1, f"snapshot={record.snapshot_id}")
        return record_id

    # ---------------------------------------------------------
    # News events
    # ---------------------------------------------------------

    def save_news_event(self, event: NewsEvent) -> Optional[int]:
        with transaction_scope(self._session_factory) as session:
            if event.external_id is not None:
                existing = session.execute(
                    select(NewsPolicyEvent.id)
                    .where(NewsPolicyEvent.external_id == event.external_id)
                ).scalar_one_or_none()
                if existing is not None:
                    return None

            row = event_to_row(event)
            session.add(row)
            session.flush()
            event_id = row.id

        _log_persistence("news_policy_events", 1, f"type={event.event_type.value}")
        return event_id

    def get_recent_news_events(
        self,
        since: datetime,
        region: Optional[Region] = None,
        limit: int = 50,
    ) -> List[NewsEvent]:
        query = select(NewsPolicyEvent).where(NewsPolicyEvent.timestamp >= since)
        if region is not None:
            query = query.where(NewsPolicyEvent.region == region.value)
        query = query.order_by(
            NewsPolicyEvent.timestamp.desc(),
            NewsPolicyEvent.id.desc(),
        ).limit(limit)

        with transaction_scope(self._session_factory) as session:
            rows = session.execute(query).scalars().all()
            return [row_to_event(row) for row in rows]

    # ---------------------------------------------------------
    # Wallet transactions
    # ---------------------------------------------------------

    def save_wallet_transaction(self, transaction: WalletTransaction) -> Optional[int]:
        with transaction_scope(self._session_factory) as session:
            existing = session.execute(
                select(WalletTransactionRecord.id)
                .where(WalletTransactionRecord.tx_hash == transaction.tx_hash)
            ).scalar_one_or_none()
            if existing is not None:
                return None

            row = WalletTransactionRecord(
                timestamp=transaction.timestamp,
                tx_hash=transaction.tx_hash,
                wallet_address=transaction.wallet_address,
                blockchain=transaction.blockchain,
                symbol=transaction.symbol,
                direction=transaction.direction.value,
                amount_usd=transaction.amount_usd,
                impact_score=transaction.impact_score,
            )
            session.add(row)
            session.flush()
            transaction_id = row.id

        _log_persistence("wallet_transactions", 1, f"symbol={transaction.symbol}")
        return transaction_id

    def get_wallet_transactions(
        self,
        symbol: str,
        since: datetime,
        min_impact_score: int = 0,
    ) -> List[WalletTransaction]:
        query = (
            select(WalletTransactionRecord)
            .where(WalletTransactionRecord.symbol == symbol)
            .where(WalletTransactionRecord.timestamp >= since)
            .where(WalletTransactionRecord.impact_score >= min_impact_score)
            .order_by(WalletTransactionRecord.timestamp.asc(), WalletTransactionRecord.id.asc())
        )
        with transaction_scope(self._session_factory) as session:
            rows = session.execute(query).scalars().all()
            return [row_to_wallet_transaction(row) for row in rows]


def _json_features(features: Dict[str, Any]) -> Dict[str, Any]:
    """Enum values to plain strings for the JSON column."""
    return {
        key: value.value if hasattr(value, "value") else value
        for key, value in features.items()
    }


__all__ = [
    "SqlAlchemySnapshotStore",
    "snapshot_to_row",
    "row_to_snapshot",
    "event_to_row",
    "row_to_event",
    "row_to_wallet_transaction",
]
