"""
Data Ingestion Package.

Collects per-asset signals, fuses them into snapshots and
drives ingestion runs.

Sub-packages:
- collectors: One collector per signal domain

Modules:
- types: Shared types (imported here)
- assembler: SnapshotAssembler
- ingestion_service: IngestionOrchestrator
- backfill: Realized-outcome backfill

Only types are re-exported; import the service modules directly.
"""

from data_ingestion.types import (
    SignalDomain,
    Direction,
    RiskLevel,
    RunType,
    RunState,
    OutcomeHorizon,
    WalletDirection,
    DEFAULT_COINS,
    symbol_for,
    CollectorConfig,
    IngestionConfig,
    BackfillConfig,
    SignalBundle,
    MarketSignals,
    TechnicalSignals,
    SentimentSignals,
    NewsSignals,
    OnChainSignals,
    MacroSignals,
    DerivativesSignals,
    WalletSignals,
    WalletTransaction,
    Snapshot,
    RealizedOutcome,
    TrainingRecord,
    NewsEvent,
    PolicyRiskScore,
    DirectionAccuracy,
    AccuracyReport,
    PredictionStats,
    NewsScanResult,
    IngestionOptions,
    IngestionRunResult,
    BackfillResult,
)


__all__ = [
    "SignalDomain",
    "Direction",
    "RiskLevel",
    "RunType",
    "RunState",
    "OutcomeHorizon",
    "WalletDirection",
    "DEFAULT_COINS",
    "symbol_for",
    "CollectorConfig",
    "IngestionConfig",
    "BackfillConfig",
    "SignalBundle",
    "MarketSignals",
    "TechnicalSignals",
    "SentimentSignals",
    "NewsSignals",
    "OnChainSignals",
    "MacroSignals",
    "DerivativesSignals",
    "WalletSignals",
    "WalletTransaction",
    "Snapshot",
    "RealizedOutcome",
    "TrainingRecord",
    "NewsEvent",
    "PolicyRiskScore",
    "DirectionAccuracy",
    "AccuracyReport",
    "PredictionStats",
    "NewsScanResult",
    "IngestionOptions",
    "IngestionRunResult",
    "BackfillResult",
]
