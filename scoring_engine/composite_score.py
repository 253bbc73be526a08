"""
Scoring Engine - Composite Score.

============================================================
RESPONSIBILITY
============================================================
Fuses a snapshot's signals into a directional prediction.

Each known signal adds points to a bullish or a bearish
tally. Unknown (None) signals contribute nothing.

============================================================
EVALUATION ORDER
============================================================
1. RSI                 <30 bull / >70 bear
2. MACD cross          bullish / bearish
3. MA50 position       above / below
4. MA200 position      above / below
5. Fear & Greed        <25 bull / >75 bear (contrarian)
6. Social score        >50 bull / <-50 bear
7. Exchange netflow    outflow bull / inflow bear
8. Whale activity      accumulating / distributing
9. VIX                 >30 bear
10. Risk environment   risk_on / risk_off
11. Funding rate       < -0.01 bull / > 0.05 bear

Reasons are kept in this order; the first three are reported.

============================================================
OUTPUT
============================================================
diff = bullish - bearish
direction:  diff > 20 BULLISH, diff < -20 BEARISH, else NEUTRAL
confidence: clamp(round(|diff|) + 30, 30, 95)
risk_level: from VIX (risk_score)

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from data_ingestion.types import Direction, RiskLevel, Snapshot

from .risk_score import risk_level_from_vix


logger = logging.getLogger("scoring_engine")


# =============================================================
# CONFIGURATION
# =============================================================

@dataclass(frozen=True)
class ScoringWeights:
    """Points and thresholds for the composite score."""
    # Points
    rsi: float = 15
    macd: float = 10
    ma50: float = 8
    ma200: float = 10
    fear_greed: float = 12
    social: float = 8
    exchange_netflow: float = 10
    whale: float = 12
    high_vix: float = 8
    risk_environment: float = 10
    funding: float = 10

    # Thresholds
    rsi_oversold: float = 30
    rsi_overbought: float = 70
    extreme_fear: float = 25
    extreme_greed: float = 75
    social_threshold: float = 50
    high_vix_level: float = 30
    negative_funding: float = -0.01
    high_funding: float = 0.05

    # Output
    direction_threshold: float = 20
    confidence_base: int = 30
    min_confidence: int = 30
    max_confidence: int = 95
    max_reasons: int = 3

    def validate(self) -> List[str]:
        """Validate weights, return list of errors."""
        errors = []
        if self.direction_threshold < 0:
            errors.append("direction_threshold must not be negative")
        if self.min_confidence > self.max_confidence:
            errors.append("min_confidence must not exceed max_confidence")
        if self.rsi_oversold >= self.rsi_overbought:
            errors.append("rsi_oversold must be below rsi_overbought")
        if self.max_reasons < 0:
            errors.append("max_reasons must not be negative")
        return errors


# =============================================================
# RESULT
# =============================================================

@dataclass(frozen=True)
class Prediction:
    """Scoring output for one snapshot."""
    direction: Direction
    confidence: int
    risk_level: RiskLevel
    reasons: Tuple[str, ...]
    bullish_score: float
    bearish_score: float

    @property
    def score_diff(self) -> float:
        return self.bullish_score - self.bearish_score


@dataclass
class _Tally:
    bullish: float = 0.0
    bearish: float = 0.0
    reasons: List[str] = field(default_factory=list)

    def bull(self, points: float, reason: Optional[str] = None) -> None:
        self.bullish += points
        if reason:
            self.reasons.append(reason)

    def bear(self, points: float, reason: Optional[str] = None) -> None:
        self.bearish += points
        if reason:
            self.reasons.append(reason)


# =============================================================
# ENGINE
# =============================================================

class ScoringEngine:
    """
    Weighted-sum composite scorer.

    Pure: the snapshot is never modified.
    """

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights()

    def score(self, snapshot: Snapshot) -> Prediction:
        """
        Score one snapshot.

        Args:
            snapshot: Snapshot with signal fields (any may be None)

        Returns:
            Prediction with direction, confidence, risk level and reasons
        """
        w = self.weights
        tally = _Tally()

        # --------------------------------------------------
        # Technical
        # --------------------------------------------------
        if snapshot.rsi_14 is not None:
            if snapshot.rsi_14 < w.rsi_oversold:
                tally.bull(w.rsi, "RSI oversold (<30)")
            elif snapshot.rsi_14 > w.rsi_overbought:
                tally.bear(w.rsi, "RSI overbought (>70)")

        if snapshot.macd_signal == "bullish":
            tally.bull(w.macd, "MACD bullish crossover")
        elif snapshot.macd_signal == "bearish":
            tally.bear(w.macd, "MACD bearish crossover")

        if snapshot.ma50_position == "above":
            tally.bull(w.ma50)
        elif snapshot.ma50_position == "below":
            tally.bear(w.ma50)

        if snapshot.ma200_position == "above":
            tally.bull(w.ma200, "Price above 200 MA (uptrend)")
        elif snapshot.ma200_position == "below":
            tally.bear(w.ma200, "Price below 200 MA (downtrend)")

        # --------------------------------------------------
        # Sentiment
        # --------------------------------------------------
        if snapshot.fear_greed_index is not None:
            if snapshot.fear_greed_index < w.extreme_fear:
                tally.bull(w.fear_greed, "Extreme fear (contrarian bullish)")
            elif snapshot.fear_greed_index > w.extreme_greed:
                tally.bear(w.fear_greed, "Extreme greed (contrarian bearish)")

        if snapshot.sentiment_social_score is not None:
            if snapshot.sentiment_social_score > w.social_threshold:
                tally.bull(w.social)
            elif snapshot.sentiment_social_score < -w.social_threshold:
                tally.bear(w.social)

        # --------------------------------------------------
        # On-chain
        # --------------------------------------------------
        if snapshot.exchange_netflow == "outflow":
            tally.bull(w.exchange_netflow, "Exchange outflow (accumulation)")
        elif snapshot.exchange_netflow == "inflow":
            tally.bear(w.exchange_netflow, "Exchange inflow (distribution)")

        if snapshot.whale_activity == "accumulating":
            tally.bull(w.whale, "Whale accumulation detected")
        elif snapshot.whale_activity == "distributing":
            tally.bear(w.whale, "Whale distribution detected")

        # --------------------------------------------------
        # Macro
        # --------------------------------------------------
        if snapshot.vix is not None and snapshot.vix > w.high_vix_level:
            tally.bear(w.high_vix, "High VIX (risk-off environment)")

        if snapshot.risk_environment == "risk_off":
            tally.bear(w.risk_environment, "Risk-off macro environment")
        elif snapshot.risk_environment == "risk_on":
            tally.bull(w.risk_environment, "Risk-on macro environment")

        # --------------------------------------------------
        # Derivatives
        # --------------------------------------------------
        if snapshot.funding_rate is not None:
            if snapshot.funding_rate < w.negative_funding:
                tally.bull(w.funding, "Negative funding (shorts paying)")
            elif snapshot.funding_rate > w.high_funding:
                tally.bear(w.funding, "High funding (longs overleveraged)")

        prediction = self._build_prediction(tally, snapshot.vix)
        logger.debug(
            f"Scored {snapshot.asset_id}: {prediction.direction.value} "
            f"bull={tally.bullish} bear={tally.bearish} conf={prediction.confidence}"
        )
        return prediction

    def _build_prediction(self, tally: _Tally, vix: Optional[float]) -> Prediction:
        w = self.weights
        diff = tally.bullish - tally.bearish

        if diff > w.direction_threshold:
            direction = Direction.BULLISH
        elif diff < -w.direction_threshold:
            direction = Direction.BEARISH
        else:
            direction = Direction.NEUTRAL

        confidence = round(abs(diff)) + w.confidence_base
        confidence = max(w.min_confidence, min(w.max_confidence, confidence))

        return Prediction(
            direction=direction,
            confidence=confidence,
            risk_level=risk_level_from_vix(vix),
            reasons=tuple(tally.reasons[:w.max_reasons]),
            bullish_score=tally.bullish,
            bearish_score=tally.bearish,
        )


__all__ = [
    "ScoringWeights",
    "Prediction",
    "ScoringEngine",
]
