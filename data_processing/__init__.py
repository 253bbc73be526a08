"""
Data Processing Package.

Pure computations used by the collectors.

Sub-packages:
- labeling: News and policy classification tables
- sentiment: Lexicon text sentiment

Main modules:
- indicators: RSI, EMA, MACD, Bollinger, correlation
- policy_risk: Regional policy risk aggregate
"""
