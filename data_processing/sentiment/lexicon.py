"""
Data Processing - Lexicon Sentiment Analyzer.

Keyword-count text sentiment for headlines and short posts.
Strong terms count double. Output is in [-1, 1]; text with no
lexicon hits scores 0.
"""

from dataclasses import dataclass, field
from typing import List, Tuple


VERY_BULLISH_TERMS: Tuple[str, ...] = (
    "moon", "mooning", "rocket", "🚀", "parabolic", "100x",
    "all time high", "ath", "breakout", "diamond hands", "send it",
    "record high", "soaring", "surge",
)

BULLISH_TERMS: Tuple[str, ...] = (
    "buy", "long", "bullish", "accumulate", "accumulation", "hodl",
    "support", "bounce", "recovery", "rally", "undervalued",
    "opportunity", "adoption", "partnership", "institutional",
    "upgrade", "launch", "mainnet", "approval", "approved", "gain",
    "profit", "green", "📈",
)

BEARISH_TERMS: Tuple[str, ...] = (
    "sell", "short", "bearish", "dump", "resistance", "rejection",
    "overbought", "correction", "pullback", "overvalued", "bubble",
    "weak", "concern", "warning", "lawsuit", "investigation",
    "delay", "loss", "drop", "fall", "decline", "red", "📉",
)

VERY_BEARISH_TERMS: Tuple[str, ...] = (
    "crash", "scam", "fraud", "rug", "ponzi", "worthless", "rekt",
    "liquidated", "bankrupt", "collapse", "disaster", "exit scam",
    "hack", "hacked", "stolen", "ban", "banned", "capitulation",
    "bloodbath", "💀",
)


@dataclass
class TextSentiment:
    """Scored text."""
    score: float
    label: str
    keywords: List[str] = field(default_factory=list)


class LexiconSentimentAnalyzer:
    """
    Default text analyzer used by the news scanner and the
    social sentiment source.
    """

    STRONG_WEIGHT = 2.0

    def analyze(self, text: str) -> TextSentiment:
        text_lower = text.lower()
        keywords: List[str] = []

        bullish = 0.0
        bearish = 0.0
        for term in VERY_BULLISH_TERMS:
            if term in text_lower:
                bullish += self.STRONG_WEIGHT
                keywords.append(term)
        for term in BULLISH_TERMS:
            if term in text_lower:
                bullish += 1
                keywords.append(term)
        for term in BEARISH_TERMS:
            if term in text_lower:
                bearish += 1
                keywords.append(term)
        for term in VERY_BEARISH_TERMS:
            if term in text_lower:
                bearish += self.STRONG_WEIGHT
                keywords.append(term)

        total = bullish + bearish
        if total == 0:
            return TextSentiment(score=0.0, label="neutral")

        score = max(-1.0, min(1.0, (bullish - bearish) / total))
        return TextSentiment(score=score, label=_label(score), keywords=keywords)

    def analyze_text(self, text: str) -> float:
        """Sentiment score in [-1, 1]."""
        return self.analyze(text).score


def _label(score: float) -> str:
    if score >= 0.6:
        return "very_bullish"
    if score >= 0.2:
        return "bullish"
    if score <= -0.6:
        return "very_bearish"
    if score <= -0.2:
        return "bearish"
    return "neutral"


__all__ = [
    "TextSentiment",
    "LexiconSentimentAnalyzer",
]
