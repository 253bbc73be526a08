"""
Data Ingestion - Collectors Package.

One collector per signal domain. Each returns a typed
SignalBundle or raises CollectorError.

Collectors:
- market: CoinGecko market data (mandatory)
- technical: OHLC-derived indicators
- sentiment: Fear & Greed + social score
- news: Stored news events -> news signals; news/policy scanner
- onchain: Stored wallet flows -> wallet-flow labels
- macro: FRED + Yahoo Finance
- derivatives: Binance futures
"""

from data_ingestion.collectors.base import BaseSignalCollector
from data_ingestion.collectors.derivatives import DerivativesCollector
from data_ingestion.collectors.macro import MacroCollector
from data_ingestion.collectors.market import MarketCollector
from data_ingestion.collectors.news import NewsCollector, NewsPolicyScanner
from data_ingestion.collectors.onchain import (
    OnChainCollector,
    StoredWalletFlowSource,
    WalletFlowSource,
)
from data_ingestion.collectors.sentiment import (
    CryptoPanicSentimentSource,
    SentimentCollector,
    SentimentSource,
)
from data_ingestion.collectors.technical import TechnicalCollector


__all__ = [
    "BaseSignalCollector",
    "MarketCollector",
    "TechnicalCollector",
    "SentimentCollector",
    "SentimentSource",
    "CryptoPanicSentimentSource",
    "NewsCollector",
    "NewsPolicyScanner",
    "OnChainCollector",
    "WalletFlowSource",
    "StoredWalletFlowSource",
    "MacroCollector",
    "DerivativesCollector",
]
