"""
Data Processing - Sentiment Package.

Modules:
- lexicon: Keyword-count text sentiment
"""

from .lexicon import LexiconSentimentAnalyzer, TextSentiment

__all__ = [
    "LexiconSentimentAnalyzer",
    "TextSentiment",
]
