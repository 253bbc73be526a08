"""
Data Processing - Labeling Package.

Modules:
- news_classifier: Event type, region, source and impact classification
"""

from .news_classifier import (
    EventType,
    ImpactLevel,
    NewsClassification,
    NewsClassifier,
    Region,
    SourceType,
)

__all__ = [
    "EventType",
    "ImpactLevel",
    "NewsClassification",
    "NewsClassifier",
    "Region",
    "SourceType",
]
