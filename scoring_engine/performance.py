"""
Scoring Engine - Prediction Performance.

============================================================
RESPONSIBILITY
============================================================
Read-side statistics over stored snapshots:

- historical_accuracy: hit rate of evaluated predictions for
  one horizon, overall and per predicted direction
- prediction_stats: direction mix, mean confidence and the
  trend of the latest predictions for one asset

Only snapshots carrying a prediction are counted. A snapshot
counts as evaluated once the backfill job set its accuracy
for the horizon (100 correct, 0 wrong).

============================================================
"""

import math
from typing import Optional, Sequence

from data_ingestion.types import (
    AccuracyReport,
    Direction,
    OutcomeHorizon,
    PredictionStats,
    Snapshot,
)


# Accuracy column written by the backfill job per horizon
HORIZON_ACCURACY_FIELDS = {
    OutcomeHorizon.H24: "accuracy",
    OutcomeHorizon.D7: "accuracy_7d",
}

CORRECT_ACCURACY = 100

# Latest predictions used for the recent trend
RECENT_TREND_WINDOW = 5
# Lead one direction needs over the other to set the trend
RECENT_TREND_MARGIN = 1


def historical_accuracy(
    snapshots: Sequence[Snapshot],
    horizon: OutcomeHorizon = OutcomeHorizon.H24,
    asset_id: Optional[str] = None,
) -> AccuracyReport:
    """Accuracy report over the evaluated snapshots."""
    field_name = HORIZON_ACCURACY_FIELDS[horizon]
    report = AccuracyReport(horizon=horizon, asset_id=asset_id)

    for snapshot in snapshots:
        accuracy = getattr(snapshot, field_name)
        if snapshot.prediction is None or accuracy is None:
            continue

        correct = accuracy == CORRECT_ACCURACY
        report.total_predictions += 1
        bucket = report.by_direction[snapshot.prediction]
        bucket.total += 1
        if correct:
            report.correct_predictions += 1
            bucket.correct += 1

    return report


def prediction_stats(asset_id: str, snapshots: Sequence[Snapshot]) -> PredictionStats:
    """
    Prediction mix of one asset.

    Args:
        asset_id: Asset the snapshots belong to
        snapshots: The asset's snapshots, newest first

    Returns:
        PredictionStats; avg_confidence None when nothing was scored
    """
    scored = [s for s in snapshots if s.prediction is not None]
    if not scored:
        return PredictionStats(asset_id=asset_id)

    counts = {direction: 0 for direction in Direction}
    for snapshot in scored:
        counts[snapshot.prediction] += 1

    mean_confidence = sum(s.confidence or 0 for s in scored) / len(scored)

    recent = scored[:RECENT_TREND_WINDOW]
    recent_bullish = sum(1 for s in recent if s.prediction == Direction.BULLISH)
    recent_bearish = sum(1 for s in recent if s.prediction == Direction.BEARISH)
    if recent_bullish > recent_bearish + RECENT_TREND_MARGIN:
        recent_trend = "bullish"
    elif recent_bearish > recent_bullish + RECENT_TREND_MARGIN:
        recent_trend = "bearish"
    else:
        recent_trend = "neutral"

    return PredictionStats(
        asset_id=asset_id,
        total_predictions=len(scored),
        bullish_count=counts[Direction.BULLISH],
        bearish_count=counts[Direction.BEARISH],
        neutral_count=counts[Direction.NEUTRAL],
        avg_confidence=math.floor(mean_confidence + 0.5),
        recent_trend=recent_trend,
    )


__all__ = [
    "HORIZON_ACCURACY_FIELDS",
    "historical_accuracy",
    "prediction_stats",
]
