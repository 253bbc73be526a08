"""
Data Processing - Indicator Math.

============================================================
RESPONSIBILITY
============================================================
Pure numeric functions used by the technical collector.

- RSI (Wilder smoothing)
- SMA / EMA
- MACD with signal line
- Population standard deviation, Bollinger bands
- Pearson correlation

============================================================
DESIGN PRINCIPLES
============================================================
- No I/O, deterministic for a given input
- Series outputs are aligned with their input
- Undefined positions are None, never NaN or 0

============================================================
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence


# ============================================================
# RESULT TYPES
# ============================================================


@dataclass(frozen=True)
class MACDResult:
    """MACD line, signal line and histogram, aligned with the input prices."""
    macd: List[Optional[float]]
    signal: List[Optional[float]]
    histogram: List[Optional[float]]

    def latest_cross(self) -> Optional[str]:
        """
        bullish / bearish / neutral from the sign of the latest MACD - signal.

        None while the series is too short for a MACD value.
        """
        if not self.macd:
            return None
        macd_value = self.macd[-1]
        signal_value = self.signal[-1]
        if macd_value is None or signal_value is None:
            return None
        diff = macd_value - signal_value
        if diff > 0:
            return "bullish"
        if diff < 0:
            return "bearish"
        return "neutral"


@dataclass(frozen=True)
class BollingerBands:
    """Latest Bollinger band values."""
    upper: float
    middle: float
    lower: float

    def position(self, price: float) -> str:
        if price > self.upper:
            return "above"
        if price < self.lower:
            return "below"
        return "middle"


# ============================================================
# MOVING AVERAGES
# ============================================================


def sma(values: Sequence[float], period: int) -> Optional[float]:
    """Arithmetic mean of the trailing `period` values."""
    if period <= 0 or len(values) < period:
        return None
    window = values[-period:]
    return sum(window) / period


def ema(values: Sequence[float], period: int) -> List[Optional[float]]:
    """
    Exponential moving average.

    Seeded with the SMA of the first `period` values at index period-1.
    Positions before the seed are None.
    """
    result: List[Optional[float]] = [None] * len(values)
    if period <= 0 or len(values) < period:
        return result

    k = 2 / (period + 1)
    current = sum(values[:period]) / period
    result[period - 1] = current

    for i in range(period, len(values)):
        current = values[i] * k + current * (1 - k)
        result[i] = current

    return result


# ============================================================
# MOMENTUM
# ============================================================


def rsi(closes: Sequence[float], period: int = 14) -> List[Optional[float]]:
    """
    Relative Strength Index using Wilder smoothing.

    The first value (index `period`) uses the simple average gain and
    loss of the first `period` deltas; later values use
    avg = (avg * (period - 1) + new) / period.

    Returns:
        Series aligned with closes, None where fewer than period+1
        closes are available. Average loss of 0 gives 100.
    """
    result: List[Optional[float]] = [None] * len(closes)
    if period <= 0 or len(closes) < period + 1:
        return result

    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]

    avg_gain = sum(d for d in deltas[:period] if d > 0) / period
    avg_loss = sum(-d for d in deltas[:period] if d < 0) / period
    result[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(deltas)):
        delta = deltas[i]
        gain = delta if delta > 0 else 0.0
        loss = -delta if delta < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        result[i + 1] = _rsi_value(avg_gain, avg_loss)

    return result


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))


def macd(
    prices: Sequence[float],
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACDResult:
    """
    MACD = EMA(fast) - EMA(slow); signal = EMA(MACD, signal).

    The signal EMA runs over a copy of the MACD series where None is
    replaced by 0. The returned MACD series keeps its None entries.
    """
    ema_fast = ema(prices, fast)
    ema_slow = ema(prices, slow)

    macd_line: List[Optional[float]] = []
    for f, s in zip(ema_fast, ema_slow):
        macd_line.append(None if f is None or s is None else f - s)

    seeded = [value if value is not None else 0.0 for value in macd_line]
    signal_line = ema(seeded, signal)

    histogram: List[Optional[float]] = []
    for m, s in zip(macd_line, signal_line):
        histogram.append(None if m is None or s is None else m - s)

    return MACDResult(macd=macd_line, signal=signal_line, histogram=histogram)


# ============================================================
# DISPERSION
# ============================================================


def std_dev(values: Sequence[float]) -> Optional[float]:
    """Population standard deviation (divides by N)."""
    if not values:
        return None
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance)


def bollinger_bands(
    values: Sequence[float],
    period: int = 20,
    num_std: float = 2.0,
) -> Optional[BollingerBands]:
    """Bollinger bands over the trailing `period` values."""
    if period <= 0 or len(values) < period:
        return None
    window = values[-period:]
    middle = sum(window) / period
    deviation = std_dev(window) or 0.0
    return BollingerBands(
        upper=middle + num_std * deviation,
        middle=middle,
        lower=middle - num_std * deviation,
    )


# ============================================================
# CORRELATION
# ============================================================


def pearson_correlation(a: Sequence[float], b: Sequence[float]) -> Optional[float]:
    """
    Pearson correlation over the first min(len(a), len(b)) elements.

    Returns None with fewer than 3 points or when either series is
    constant. Constancy is checked on the values themselves: the
    summed squared deviations of a float constant such as [0.1] * 3
    round to a tiny positive number, not 0.
    """
    n = min(len(a), len(b))
    if n < 3:
        return None

    xs = a[:n]
    ys = b[:n]
    if max(xs) == min(xs) or max(ys) == min(ys):
        return None

    mean_x = sum(xs) / n
    mean_y = sum(ys) / n

    covariance = 0.0
    var_x = 0.0
    var_y = 0.0
    for x, y in zip(xs, ys):
        dx = x - mean_x
        dy = y - mean_y
        covariance += dx * dy
        var_x += dx * dx
        var_y += dy * dy

    if var_x == 0 or var_y == 0:
        return None

    return covariance / math.sqrt(var_x * var_y)


def latest(series: Sequence[Optional[float]]) -> Optional[float]:
    """Last element of a series, None when empty."""
    return series[-1] if series else None


__all__ = [
    "MACDResult",
    "BollingerBands",
    "sma",
    "ema",
    "rsi",
    "macd",
    "std_dev",
    "bollinger_bands",
    "pearson_correlation",
    "latest",
]
