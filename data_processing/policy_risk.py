"""
Data Processing - Policy Risk Aggregate.

============================================================
RESPONSIBILITY
============================================================
Derives a regional PolicyRiskScore from stored news events.
Recomputed on every read; never persisted.

============================================================
SCORING
============================================================
- enforcement event         +20 enforcement score
- legislation / regulation  +10 regulation score
- "ban" in title            +1 ban mention
- "tax" in title            +1 tax mention

enforcement_risk   = min(100, enforcement score)
regulatory_clarity = max(0, 100 - 2 * regulation score)
ban_risk           = min(100, 25 * ban mentions)
taxation_risk      = min(100, 20 * tax mentions)
overall            = 0.3 enforcement + 0.2 (100 - clarity)
                   + 0.3 ban + 0.2 tax   (capped at 100)

Trend compares mean sentiment of the newer half of the
events against the older half (+/-10 threshold).

A region whose events cannot be read reports 50 on every
axis with a stable trend (neutral_policy_risk).

============================================================
"""

from typing import Sequence

from data_ingestion.types import NewsEvent, PolicyRiskScore
from data_processing.labeling.news_classifier import EventType, Region


POLICY_WINDOW_DAYS = 30
RECENT_EVENT_LIMIT = 5
TREND_THRESHOLD = 10
NEUTRAL_RISK = 50


def calculate_policy_risk(region: Region, events: Sequence[NewsEvent]) -> PolicyRiskScore:
    """
    Aggregate policy risk for one region.

    Args:
        region: Region the events belong to
        events: Events of the trailing window, newest first
    """
    enforcement_score = 0
    regulation_score = 0
    ban_mentions = 0
    tax_mentions = 0

    for event in events:
        if event.event_type == EventType.ENFORCEMENT:
            enforcement_score += 20
        if event.event_type in (EventType.LEGISLATION, EventType.REGULATION):
            regulation_score += 10
        title = event.title.lower()
        if "ban" in title:
            ban_mentions += 1
        if "tax" in title:
            tax_mentions += 1

    enforcement_risk = min(100, enforcement_score)
    regulatory_clarity = max(0, 100 - regulation_score * 2)
    ban_risk = min(100, ban_mentions * 25)
    taxation_risk = min(100, tax_mentions * 20)

    overall_risk = min(
        100,
        enforcement_risk * 0.3
        + (100 - regulatory_clarity) * 0.2
        + ban_risk * 0.3
        + taxation_risk * 0.2,
    )

    return PolicyRiskScore(
        region=region,
        overall_risk=round(overall_risk),
        regulatory_clarity=round(regulatory_clarity),
        enforcement_risk=round(enforcement_risk),
        ban_risk=round(ban_risk),
        taxation_risk=round(taxation_risk),
        trend=sentiment_trend(events),
        recent_events=tuple(events[:RECENT_EVENT_LIMIT]),
    )


def sentiment_trend(events: Sequence[NewsEvent]) -> str:
    """improving / worsening / stable for events ordered newest first."""
    half = len(events) // 2
    newer = events[:half]
    older = events[half:]

    newer_avg = _mean_sentiment(newer)
    older_avg = _mean_sentiment(older)

    diff = newer_avg - older_avg
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "worsening"
    return "stable"


def _mean_sentiment(events: Sequence[NewsEvent]) -> float:
    if not events:
        return 0.0
    return sum(e.sentiment_impact for e in events) / len(events)


def neutral_policy_risk(region: Region) -> PolicyRiskScore:
    """Mid-scale placeholder for a region whose events could not be read."""
    return PolicyRiskScore(
        region=region,
        overall_risk=NEUTRAL_RISK,
        regulatory_clarity=NEUTRAL_RISK,
        enforcement_risk=NEUTRAL_RISK,
        ban_risk=NEUTRAL_RISK,
        taxation_risk=NEUTRAL_RISK,
        trend="stable",
    )


__all__ = [
    "POLICY_WINDOW_DAYS",
    "calculate_policy_risk",
    "neutral_policy_risk",
    "sentiment_trend",
]
