"""
Scoring Engine - Risk Score.

============================================================
RESPONSIBILITY
============================================================
Maps market volatility (VIX) to a risk tier.

VIX > 40  EXTREME
VIX > 30  HIGH
VIX < 15  LOW
otherwise MEDIUM

Unknown VIX is MEDIUM.

============================================================
"""

from typing import Optional

from data_ingestion.types import RiskLevel


EXTREME_VIX = 40.0
HIGH_VIX = 30.0
LOW_VIX = 15.0


def risk_level_from_vix(vix: Optional[float]) -> RiskLevel:
    """Risk tier for a VIX reading."""
    if vix is None:
        return RiskLevel.MEDIUM
    if vix > EXTREME_VIX:
        return RiskLevel.EXTREME
    if vix > HIGH_VIX:
        return RiskLevel.HIGH
    if vix < LOW_VIX:
        return RiskLevel.LOW
    return RiskLevel.MEDIUM


__all__ = [
    "risk_level_from_vix",
]
