"""
Database ORM Models - All Tables.

============================================================
SIGNAL INGESTION SCHEMA
============================================================

Tables:
1. prediction_snapshots      one fused record per asset per run
2. prediction_training_data  feature vectors of scored snapshots
3. news_policy_events        classified news/policy events
4. wallet_transactions       tracked wallet flows

Generic JSON columns keep the schema portable between
PostgreSQL and SQLite.

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Float,
    DateTime, JSON, ForeignKey, Index,
)

from .engine import Base


# =============================================================
# HELPER FUNCTIONS
# =============================================================

def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


# =============================================================
# 1. PREDICTION SNAPSHOTS TABLE
# =============================================================

class PredictionSnapshot(Base):
    """
    Fused signal snapshot with its prediction.

    Source: data_ingestion.ingestion_service
    Update Frequency: Per ingestion run, per asset
    Mutability: Only realized-outcome columns change after insert
    """
    __tablename__ = "prediction_snapshots"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    asset_id = Column(String(64), nullable=False, index=True)

    # Market
    price = Column(Float, nullable=True)
    price_change_24h = Column(Float, nullable=True)
    price_change_7d = Column(Float, nullable=True)
    volume_24h = Column(Float, nullable=True)
    market_cap = Column(Float, nullable=True)

    # Technical
    rsi_14 = Column(Float, nullable=True)
    macd_signal = Column(String(16), nullable=True)
    ma50_position = Column(String(16), nullable=True)
    ma200_position = Column(String(16), nullable=True)
    bollinger_position = Column(String(16), nullable=True)

    # Sentiment
    fear_greed_index = Column(Integer, nullable=True)
    fear_greed_label = Column(String(32), nullable=True)
    sentiment_social_score = Column(Float, nullable=True)

    # News
    news_sentiment_score = Column(Float, nullable=True)
    recent_high_impact_count = Column(Integer, nullable=True)
    dominant_event_type = Column(String(32), nullable=True)
    regulatory_risk = Column(Float, nullable=True)

    # On-chain
    exchange_netflow = Column(String(16), nullable=True)
    whale_activity = Column(String(16), nullable=True)
    smart_money_trend = Column(String(16), nullable=True)

    # Macro
    vix = Column(Float, nullable=True)
    dxy = Column(Float, nullable=True)
    fed_funds_rate = Column(Float, nullable=True)
    treasury_10y = Column(Float, nullable=True)
    risk_environment = Column(String(16), nullable=True)

    # Derivatives
    funding_rate = Column(Float, nullable=True)
    open_interest_change_24h = Column(Float, nullable=True)
    liquidations_24h = Column(Float, nullable=True)

    # Prediction
    prediction = Column(String(16), nullable=True)
    confidence = Column(Integer, nullable=True)
    risk_level = Column(String(16), nullable=True)
    reasons = Column(JSON, nullable=True)

    # Realized outcome
    price_after_24h = Column(Float, nullable=True)
    price_after_7d = Column(Float, nullable=True)
    actual_impact = Column(Float, nullable=True)
    accuracy = Column(Integer, nullable=True)
    actual_impact_7d = Column(Float, nullable=True)
    accuracy_7d = Column(Integer, nullable=True)

    # Domain -> error message
    collector_errors = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_prediction_snapshots_asset_timestamp", "asset_id", "timestamp"),
    )


# =============================================================
# 2. PREDICTION TRAINING DATA TABLE
# =============================================================

class PredictionTrainingData(Base):
    """
    Feature vector of a scored snapshot, for offline model training.

    Source: data_ingestion.ingestion_service (store_training_data)
    """
    __tablename__ = "prediction_training_data"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    snapshot_id = Column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("prediction_snapshots.id"),
        nullable=False,
        index=True,
    )
    asset_id = Column(String(64), nullable=False, index=True)
    snapshot_timestamp = Column(DateTime(timezone=True), nullable=False)

    features = Column(JSON, nullable=False)
    price_at_snapshot = Column(Float, nullable=True)
    predicted_direction = Column(String(16), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


# =============================================================
# 3. NEWS POLICY EVENTS TABLE
# =============================================================

class NewsPolicyEvent(Base):
    """
    Classified news/policy event. Immutable once stored.

    Source: data_ingestion.collectors.news (NewsPolicyScanner)
    Dedup key: external_id
    """
    __tablename__ = "news_policy_events"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    external_id = Column(String(255), nullable=True, unique=True)

    event_type = Column(String(32), nullable=False, index=True)
    source_type = Column(String(32), nullable=False)
    region = Column(String(32), nullable=False, index=True)
    country = Column(String(64), nullable=True)
    impact_level = Column(String(16), nullable=False)
    sentiment_impact = Column(Integer, nullable=False)
    importance_score = Column(Integer, nullable=True)

    title = Column(Text, nullable=False)
    summary = Column(Text, nullable=True)
    source_url = Column(Text, nullable=True)

    affected_coins = Column(JSON, nullable=True)
    affected_sectors = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_news_policy_events_region_timestamp", "region", "timestamp"),
    )


# =============================================================
# 4. WALLET TRANSACTIONS TABLE
# =============================================================

class WalletTransactionRecord(Base):
    """
    Transaction of a tracked wallet, input to the on-chain signals.

    Source: orchestrator.cli import-wallets
    Dedup key: tx_hash
    """
    __tablename__ = "wallet_transactions"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    tx_hash = Column(String(128), nullable=False, unique=True)

    wallet_address = Column(String(128), nullable=False, index=True)
    blockchain = Column(String(32), nullable=True)
    symbol = Column(String(16), nullable=False)
    direction = Column(String(16), nullable=False)
    amount_usd = Column(Float, nullable=False)
    impact_score = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_wallet_transactions_symbol_timestamp", "symbol", "timestamp"),
    )


__all__ = [
    "PredictionSnapshot",
    "PredictionTrainingData",
    "NewsPolicyEvent",
    "WalletTransactionRecord",
]
