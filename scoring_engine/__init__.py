"""
Scoring Engine Package.

Turns fused snapshots into directional predictions.

Modules:
- composite_score: Weighted-sum scoring of all signals
- risk_score: VIX-based risk tier
- performance: Accuracy and prediction statistics of stored snapshots
"""

from .composite_score import Prediction, ScoringEngine, ScoringWeights
from .performance import historical_accuracy, prediction_stats
from .risk_score import risk_level_from_vix


__all__ = [
    "Prediction",
    "ScoringEngine",
    "ScoringWeights",
    "risk_level_from_vix",
    "historical_accuracy",
    "prediction_stats",
]
