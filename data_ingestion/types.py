"""
Data Ingestion - Type Definitions.

============================================================
PURPOSE
============================================================
Shared types for the signal ingestion layer.

- Configuration dataclasses
- Signal bundles (one per domain)
- Snapshot, training record and realized outcome
- News event and policy risk aggregate
- Run and backfill result types

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable data structures where possible
- Every signal field is Optional; None means "unknown"
- No business logic
- Serializable for monitoring

============================================================
"""

import os
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from data_processing.labeling.news_classifier import (
    EventType,
    ImpactLevel,
    Region,
    SourceType,
)


# =============================================================
# ENUMS
# =============================================================

class SignalDomain(str, Enum):
    """Identifiers for signal collectors."""
    MARKET = "market"
    TECHNICAL = "technical"
    SENTIMENT = "sentiment"
    NEWS = "news"
    ONCHAIN = "onchain"
    MACRO = "macro"
    DERIVATIVES = "derivatives"


class Direction(str, Enum):
    """Directional forecast label."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class RiskLevel(str, Enum):
    """Risk tier derived from VIX."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class RunType(str, Enum):
    """Ingestion run types."""
    FULL = "full"
    INCREMENTAL = "incremental"
    MARKET_ONLY = "market_only"
    SENTIMENT_ONLY = "sentiment_only"

    @property
    def runs_auxiliary(self) -> bool:
        return self != RunType.MARKET_ONLY

    @property
    def runs_assets(self) -> bool:
        return self != RunType.SENTIMENT_ONLY


class RunState(str, Enum):
    """Ingestion run state machine."""
    IDLE = "idle"
    COLLECTING_AUXILIARY = "collecting_auxiliary"
    PER_ASSET_LOOP = "per_asset_loop"
    PERSISTING = "persisting"
    DONE = "done"
    PARTIAL_FAILURE = "partial_failure"


class WalletDirection(str, Enum):
    """Direction of a tracked wallet transaction."""
    BUY = "buy"
    SELL = "sell"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"

    @property
    def is_buy_side(self) -> bool:
        return self in (WalletDirection.BUY, WalletDirection.TRANSFER_IN)


class OutcomeHorizon(str, Enum):
    """Backfill horizons."""
    H24 = "24h"
    D7 = "7d"

    @property
    def delta(self) -> timedelta:
        return timedelta(hours=24) if self == OutcomeHorizon.H24 else timedelta(days=7)


# =============================================================
# ASSET DEFAULTS
# =============================================================

DEFAULT_COINS: Tuple[str, ...] = (
    "bitcoin",
    "ethereum",
    "solana",
    "cardano",
    "polkadot",
    "avalanche-2",
    "polygon",
    "chainlink",
    "uniswap",
    "arbitrum",
)

ASSET_SYMBOLS: Dict[str, str] = {
    "bitcoin": "BTC",
    "ethereum": "ETH",
    "solana": "SOL",
    "cardano": "ADA",
    "polkadot": "DOT",
    "avalanche-2": "AVAX",
    "polygon": "MATIC",
    "chainlink": "LINK",
    "uniswap": "UNI",
    "arbitrum": "ARB",
}


def symbol_for(asset_id: str) -> str:
    """Ticker symbol for a CoinGecko asset id."""
    return ASSET_SYMBOLS.get(asset_id, asset_id.upper()[:4])


# =============================================================
# CONFIGURATION TYPES
# =============================================================

@dataclass(frozen=True)
class CollectorConfig:
    """Endpoints and credentials for all signal collectors."""
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: Optional[str] = None
    fear_greed_url: str = "https://api.alternative.me/fng/"
    fred_base_url: str = "https://api.stlouisfed.org/fred/series/observations"
    fred_api_key: str = "DEMO_KEY"
    yahoo_chart_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    binance_futures_url: str = "https://fapi.binance.com"
    cryptopanic_url: str = "https://cryptopanic.com/api/v1/posts/"
    cryptopanic_api_key: Optional[str] = None
    ohlc_days: int = 30
    news_lookback_hours: int = 72
    news_event_limit: int = 50
    wallet_flow_hours: int = 24
    whale_min_impact_score: int = 50
    http_timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "CollectorConfig":
        """Load configuration from environment variables."""
        return cls(
            coingecko_api_key=os.getenv("COINGECKO_API_KEY") or None,
            fred_api_key=os.getenv("FRED_API_KEY", "DEMO_KEY"),
            cryptopanic_api_key=os.getenv("CRYPTOPANIC_API_KEY") or None,
            whale_min_impact_score=int(os.getenv("WHALE_MIN_IMPACT_SCORE", "50")),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []
        if self.ohlc_days < 1:
            errors.append("ohlc_days must be at least 1")
        if self.news_lookback_hours < 1:
            errors.append("news_lookback_hours must be at least 1")
        if self.wallet_flow_hours < 1:
            errors.append("wallet_flow_hours must be at least 1")
        if not 0 <= self.whale_min_impact_score <= 100:
            errors.append("whale_min_impact_score must be between 0 and 100")
        if self.http_timeout_seconds <= 0:
            errors.append("http_timeout_seconds must be positive")
        return errors


@dataclass(frozen=True)
class IngestionConfig:
    """Configuration for the ingestion orchestrator."""
    coins: Tuple[str, ...] = DEFAULT_COINS
    inter_asset_delay_seconds: float = 0.2
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "IngestionConfig":
        """Load configuration from environment variables."""
        coins_env = os.getenv("INGESTION_COINS", "")
        coins = tuple(c.strip() for c in coins_env.split(",") if c.strip())
        return cls(
            coins=coins or DEFAULT_COINS,
            inter_asset_delay_seconds=float(os.getenv("INTER_ASSET_DELAY_SECONDS", "0.2")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []
        if not self.coins:
            errors.append("coins must not be empty")
        if self.inter_asset_delay_seconds < 0:
            errors.append("inter_asset_delay_seconds must not be negative")
        return errors


@dataclass(frozen=True)
class BackfillConfig:
    """Configuration for realized-outcome backfill."""
    horizons: Tuple[OutcomeHorizon, ...] = (OutcomeHorizon.H24, OutcomeHorizon.D7)
    neutral_band_percent: float = 2.0
    batch_limit: int = 100

    def validate(self) -> List[str]:
        errors = []
        if self.neutral_band_percent < 0:
            errors.append("neutral_band_percent must not be negative")
        if self.batch_limit < 1:
            errors.append("batch_limit must be at least 1")
        return errors


# =============================================================
# SIGNAL BUNDLES
# =============================================================

@dataclass(frozen=True)
class SignalBundle:
    """Base for per-domain signal groups; every field is Optional."""
    domain: ClassVar[SignalDomain]
    # Bundle field name -> snapshot field name, where they differ
    snapshot_names: ClassVar[Dict[str, str]] = {}

    def snapshot_fields(self) -> Dict[str, Any]:
        """Fields flattened under their snapshot names."""
        return {
            self.snapshot_names.get(f.name, f.name): getattr(self, f.name)
            for f in fields(self)
        }


@dataclass(frozen=True)
class MarketSignals(SignalBundle):
    domain: ClassVar[SignalDomain] = SignalDomain.MARKET

    price: Optional[float] = None
    price_change_24h: Optional[float] = None
    price_change_7d: Optional[float] = None
    volume_24h: Optional[float] = None
    market_cap: Optional[float] = None


@dataclass(frozen=True)
class TechnicalSignals(SignalBundle):
    domain: ClassVar[SignalDomain] = SignalDomain.TECHNICAL

    rsi_14: Optional[float] = None
    macd_signal: Optional[str] = None          # bullish | bearish | neutral
    ma50_position: Optional[str] = None        # above | below | unknown
    ma200_position: Optional[str] = None       # above | below | unknown
    bollinger_position: Optional[str] = None   # above | below | middle


@dataclass(frozen=True)
class SentimentSignals(SignalBundle):
    domain: ClassVar[SignalDomain] = SignalDomain.SENTIMENT
    snapshot_names: ClassVar[Dict[str, str]] = {"social_score": "sentiment_social_score"}

    fear_greed_index: Optional[int] = None
    fear_greed_label: Optional[str] = None
    social_score: Optional[float] = None       # [-100, 100]


@dataclass(frozen=True)
class NewsSignals(SignalBundle):
    domain: ClassVar[SignalDomain] = SignalDomain.NEWS

    news_sentiment_score: Optional[float] = None
    recent_high_impact_count: Optional[int] = None
    dominant_event_type: Optional[str] = None
    regulatory_risk: Optional[float] = None


@dataclass(frozen=True)
class OnChainSignals(SignalBundle):
    domain: ClassVar[SignalDomain] = SignalDomain.ONCHAIN

    exchange_netflow: Optional[str] = None     # inflow | outflow | neutral
    whale_activity: Optional[str] = None       # accumulating | distributing | neutral
    smart_money_trend: Optional[str] = None    # increasing | decreasing | stable


@dataclass(frozen=True)
class MacroSignals(SignalBundle):
    domain: ClassVar[SignalDomain] = SignalDomain.MACRO

    vix: Optional[float] = None
    dxy: Optional[float] = None
    fed_funds_rate: Optional[float] = None
    treasury_10y: Optional[float] = None
    risk_environment: Optional[str] = None     # risk_on | risk_off | neutral


@dataclass(frozen=True)
class DerivativesSignals(SignalBundle):
    domain: ClassVar[SignalDomain] = SignalDomain.DERIVATIVES

    funding_rate: Optional[float] = None       # percent
    open_interest_change_24h: Optional[float] = None
    liquidations_24h: Optional[float] = None


@dataclass(frozen=True)
class WalletSignals:
    """Output of a wallet-flow source. All None when no tracked wallet moved."""
    net_flow: Optional[float] = None
    whale_sentiment: Optional[str] = None          # bullish | bearish | neutral
    smart_money_direction: Optional[str] = None    # accumulating | distributing | neutral
    buy_volume: Optional[float] = None
    sell_volume: Optional[float] = None
    wallets_buying: int = 0
    wallets_selling: int = 0
    confidence_level: int = 0                      # 0-100


@dataclass(frozen=True)
class WalletTransaction:
    """
    One transaction of a tracked wallet.

    impact_score is the wallet's profile score (0-100); flows are
    only aggregated for wallets at or above a threshold.
    """
    timestamp: datetime
    wallet_address: str
    symbol: str
    direction: WalletDirection
    amount_usd: float
    tx_hash: str
    impact_score: int = 0
    blockchain: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WalletTransaction":
        """
        Build from a JSON object, e.g. one entry of an import file.

        Raises:
            KeyError / ValueError: required field missing or malformed
        """
        timestamp = datetime.fromisoformat(str(data["timestamp"]).replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            timestamp=timestamp,
            wallet_address=str(data["wallet_address"]),
            symbol=str(data["symbol"]).upper(),
            direction=WalletDirection(data["direction"]),
            amount_usd=float(data.get("amount_usd") or 0.0),
            tx_hash=str(data["tx_hash"]),
            impact_score=int(data.get("impact_score") or 0),
            blockchain=data.get("blockchain"),
        )


# =============================================================
# SNAPSHOT
# =============================================================

# Fields written by the backfill job; everything else is frozen after scoring
OUTCOME_FIELDS: Tuple[str, ...] = (
    "price_after_24h",
    "price_after_7d",
    "actual_impact",
    "accuracy",
    "actual_impact_7d",
    "accuracy_7d",
)

PREDICTION_FIELDS: Tuple[str, ...] = (
    "prediction",
    "confidence",
    "risk_level",
    "reasons",
)


@dataclass(frozen=True)
class Snapshot:
    """One fused record for one asset at one point in time."""
    timestamp: datetime
    asset_id: str
    id: Optional[int] = None

    # Market
    price: Optional[float] = None
    price_change_24h: Optional[float] = None
    price_change_7d: Optional[float] = None
    volume_24h: Optional[float] = None
    market_cap: Optional[float] = None

    # Technical
    rsi_14: Optional[float] = None
    macd_signal: Optional[str] = None
    ma50_position: Optional[str] = None
    ma200_position: Optional[str] = None
    bollinger_position: Optional[str] = None

    # Sentiment
    fear_greed_index: Optional[int] = None
    fear_greed_label: Optional[str] = None
    sentiment_social_score: Optional[float] = None

    # News
    news_sentiment_score: Optional[float] = None
    recent_high_impact_count: Optional[int] = None
    dominant_event_type: Optional[str] = None
    regulatory_risk: Optional[float] = None

    # On-chain
    exchange_netflow: Optional[str] = None
    whale_activity: Optional[str] = None
    smart_money_trend: Optional[str] = None

    # Macro
    vix: Optional[float] = None
    dxy: Optional[float] = None
    fed_funds_rate: Optional[float] = None
    treasury_10y: Optional[float] = None
    risk_environment: Optional[str] = None

    # Derivatives
    funding_rate: Optional[float] = None
    open_interest_change_24h: Optional[float] = None
    liquidations_24h: Optional[float] = None

    # Prediction
    prediction: Optional[Direction] = None
    confidence: Optional[int] = None
    risk_level: Optional[RiskLevel] = None
    reasons: Tuple[str, ...] = ()

    # Realized outcome
    price_after_24h: Optional[float] = None
    price_after_7d: Optional[float] = None
    actual_impact: Optional[float] = None
    accuracy: Optional[int] = None
    actual_impact_7d: Optional[float] = None
    accuracy_7d: Optional[int] = None

    # Domain -> error message for collectors that failed
    collector_errors: Dict[str, str] = field(default_factory=dict)

    def with_id(self, snapshot_id: int) -> "Snapshot":
        return replace(self, id=snapshot_id)

    def with_outcome(self, outcome: "RealizedOutcome") -> "Snapshot":
        """Copy with one horizon's realized-outcome fields attached."""
        return replace(self, **outcome.snapshot_fields())

    def features(self) -> Dict[str, Any]:
        """Signal fields only, for training records."""
        excluded = {"id", "timestamp", "asset_id", "collector_errors"}
        excluded.update(PREDICTION_FIELDS)
        excluded.update(OUTCOME_FIELDS)
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name not in excluded
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/storage."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["prediction"] = self.prediction.value if self.prediction else None
        data["risk_level"] = self.risk_level.value if self.risk_level else None
        data["reasons"] = list(self.reasons)
        return data


@dataclass(frozen=True)
class RealizedOutcome:
    """Price delta observed after one horizon."""
    horizon: OutcomeHorizon
    price_after: float
    actual_impact: float
    accuracy: Optional[int]                      # None when no prediction was made

    def snapshot_fields(self) -> Dict[str, Any]:
        if self.horizon == OutcomeHorizon.H24:
            return {
                "price_after_24h": self.price_after,
                "actual_impact": self.actual_impact,
                "accuracy": self.accuracy,
            }
        return {
            "price_after_7d": self.price_after,
            "actual_impact_7d": self.actual_impact,
            "accuracy_7d": self.accuracy,
        }


@dataclass(frozen=True)
class TrainingRecord:
    """Feature vector of a scored snapshot."""
    snapshot_id: int
    asset_id: str
    snapshot_timestamp: datetime
    features: Dict[str, Any]
    price_at_snapshot: Optional[float]
    predicted_direction: Optional[Direction] = None

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "TrainingRecord":
        if snapshot.id is None:
            raise ValueError("snapshot must be persisted before building a training record")
        return cls(
            snapshot_id=snapshot.id,
            asset_id=snapshot.asset_id,
            snapshot_timestamp=snapshot.timestamp,
            features=snapshot.features(),
            price_at_snapshot=snapshot.price,
            predicted_direction=snapshot.prediction,
        )


# =============================================================
# NEWS / POLICY TYPES
# =============================================================

@dataclass(frozen=True)
class NewsEvent:
    """A classified news article. Immutable once stored."""
    timestamp: datetime
    event_type: EventType
    source_type: SourceType
    region: Region
    impact_level: ImpactLevel
    sentiment_impact: int
    title: str
    country: Optional[str] = None
    summary: Optional[str] = None
    source_url: Optional[str] = None
    external_id: Optional[str] = None
    affected_coins: Tuple[str, ...] = ()
    affected_sectors: Tuple[str, ...] = ()
    importance_score: Optional[int] = None
    id: Optional[int] = None

    @property
    def is_high_impact(self) -> bool:
        return self.impact_level in (ImpactLevel.CRITICAL, ImpactLevel.HIGH)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "source_type": self.source_type.value,
            "region": self.region.value,
            "country": self.country,
            "impact_level": self.impact_level.value,
            "sentiment_impact": self.sentiment_impact,
            "title": self.title,
            "affected_coins": list(self.affected_coins),
            "affected_sectors": list(self.affected_sectors),
        }


@dataclass(frozen=True)
class PolicyRiskScore:
    """Read-time policy risk aggregate for one region."""
    region: Region
    overall_risk: int
    regulatory_clarity: int
    enforcement_risk: int
    ban_risk: int
    taxation_risk: int
    trend: str                                   # improving | worsening | stable
    recent_events: Tuple[NewsEvent, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region.value,
            "overall_risk": self.overall_risk,
            "regulatory_clarity": self.regulatory_clarity,
            "enforcement_risk": self.enforcement_risk,
            "ban_risk": self.ban_risk,
            "taxation_risk": self.taxation_risk,
            "trend": self.trend,
            "recent_events": [e.to_dict() for e in self.recent_events],
        }


# =============================================================
# PREDICTION PERFORMANCE TYPES
# =============================================================

@dataclass
class DirectionAccuracy:
    """Evaluated / correct counts for one predicted direction."""
    total: int = 0
    correct: int = 0


@dataclass
class AccuracyReport:
    """Hit rate of evaluated predictions for one horizon."""
    horizon: OutcomeHorizon
    total_predictions: int = 0
    correct_predictions: int = 0
    by_direction: Dict[Direction, DirectionAccuracy] = field(
        default_factory=lambda: {d: DirectionAccuracy() for d in Direction}
    )
    asset_id: Optional[str] = None

    @property
    def accuracy(self) -> Optional[float]:
        """Percent correct; None while nothing has been evaluated."""
        if self.total_predictions == 0:
            return None
        return self.correct_predictions / self.total_predictions * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "horizon": self.horizon.value,
            "total_predictions": self.total_predictions,
            "correct_predictions": self.correct_predictions,
            "accuracy": round(self.accuracy, 2) if self.accuracy is not None else None,
            "by_direction": {
                d.value: {"total": s.total, "correct": s.correct}
                for d, s in self.by_direction.items()
            },
        }


@dataclass(frozen=True)
class PredictionStats:
    """Direction mix and confidence of one asset's recent predictions."""
    asset_id: str
    total_predictions: int = 0
    bullish_count: int = 0
    bearish_count: int = 0
    neutral_count: int = 0
    avg_confidence: Optional[int] = None
    recent_trend: str = "neutral"                # bullish | bearish | neutral

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NewsScanResult:
    """Result of one news/policy scan."""
    fetched: int = 0
    new_events: int = 0
    high_impact: int = 0
    skipped: int = 0


# =============================================================
# RUN RESULT TYPES
# =============================================================

@dataclass(frozen=True)
class IngestionOptions:
    """Options for one ingestion run."""
    type: RunType = RunType.FULL
    coins: Optional[Tuple[str, ...]] = None
    skip_prediction: bool = False
    store_training_data: bool = False


@dataclass
class IngestionRunResult:
    """Result of one ingestion run. Never raised, always returned."""
    success: bool = False
    snapshots_created: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: int = 0
    state: RunState = RunState.IDLE
    run_type: RunType = RunType.FULL

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Step name -> completed flag
    details: Dict[str, bool] = field(default_factory=dict)

    def add_error(self, scope: str, message: str) -> None:
        """Add an error message as '<scope>: <message>'."""
        self.errors.append(f"{scope}: {message}")

    def mark_complete(self, completed_at: datetime) -> None:
        """Close the run and settle its final state."""
        self.completed_at = completed_at
        if self.started_at:
            delta = completed_at - self.started_at
            self.duration_ms = int(delta.total_seconds() * 1000)
        self.success = not self.errors
        self.state = RunState.DONE if self.success else RunState.PARTIAL_FAILURE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/monitoring."""
        return {
            "success": self.success,
            "run_type": self.run_type.value,
            "state": self.state.value,
            "snapshots_created": self.snapshots_created,
            "duration_ms": self.duration_ms,
            "error_count": len(self.errors),
            "errors": self.errors[:10],
            "details": dict(self.details),
        }


@dataclass
class BackfillResult:
    """Result of one backfill pass."""
    updated_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.error_count += 1
        self.errors.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updated_count": self.updated_count,
            "error_count": self.error_count,
            "errors": self.errors[:10],
        }
