"""
Series Math for technical indicators.

Pure functions over an ordered numeric sequence (oldest first). Every function
returns None on insufficient data, empty input or a non-positive period; none
of them raise for those cases.
"""

from typing import NamedTuple, Optional, Sequence

import numpy as np


class BollingerBands(NamedTuple):
    lower: float
    middle: float
    upper: float


def _as_array(series: Sequence[float]) -> np.ndarray:
    return np.asarray(series, dtype=float)


def moving_average(series: Sequence[float], period: int) -> Optional[float]:
    """
    Simple moving average of the trailing window.

    Args:
        series: Values, newest last
        period: Window length

    Returns:
        Mean of the last `period` values, or None if there are fewer
    """
    if period <= 0 or len(series) < period:
        return None
    values = _as_array(series)
    return float(np.mean(values[-period:]))


def exponential_moving_average(series: Sequence[float], period: int) -> Optional[float]:
    """
    Exponential moving average seeded with the mean of the first window.

    Args:
        series: Values, newest last
        period: EMA period

    Returns:
        EMA after consuming the whole series, or None on insufficient data
    """
    if period <= 0 or len(series) < period:
        return None

    values = _as_array(series)
    multiplier = 2 / (period + 1)
    ema = float(np.mean(values[:period]))

    for price in values[period:]:
        ema = (float(price) - ema) * multiplier + ema

    return ema


def bollinger_bands(
    series: Sequence[float], period: int, std_dev_multiplier: float
) -> Optional[BollingerBands]:
    """
    Bollinger Bands over the trailing window.

    Uses the population standard deviation of the same window as the middle band.

    Args:
        series: Values, newest last
        period: Window length
        std_dev_multiplier: Band width in standard deviations

    Returns:
        BollingerBands(lower, middle, upper), or None on insufficient data
    """
    if period <= 0 or len(series) < period:
        return None

    window = _as_array(series)[-period:]
    middle = float(np.mean(window))
    std_dev = float(np.std(window))
    width = std_dev_multiplier * std_dev

    return BollingerBands(lower=middle - width, middle=middle, upper=middle + width)


def relative_strength_index(series: Sequence[float], period: int) -> Optional[float]:
    """
    Relative Strength Index with Wilder smoothing.

    The seed averages are the sums of the first `period` gains and losses
    divided by `period`; every later step is smoothed as
    (avg * (period - 1) + value) / period.

    Args:
        series: Values, newest last
        period: RSI period

    Returns:
        RSI in [0, 100], or None on insufficient data
    """
    if period <= 0 or len(series) < period:
        return None

    deltas = np.diff(_as_array(series))
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas > 0, 0.0, -deltas)

    avg_gain = float(np.sum(gains[:period])) / period
    avg_loss = float(np.sum(losses[:period])) / period

    for i in range(period, len(gains)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return float(100 - (100 / (1 + rs)))


def average_true_range(
    highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int
) -> Optional[float]:
    """
    Average True Range over the first `period` true ranges.

    The average covers the first window of true ranges rather than the most
    recent one. Consumers rely on this value, so it is kept as is.

    Args:
        highs: High prices, newest last
        lows: Low prices, newest last
        closes: Close prices, newest last
        period: ATR period

    Returns:
        ATR value, or None on insufficient data
    """
    if period <= 0:
        return None
    if len(highs) < period or len(lows) < period or len(closes) < period:
        return None

    count = min(len(highs), len(lows), len(closes))
    high = _as_array(highs)[:count]
    low = _as_array(lows)[:count]
    close = _as_array(closes)[:count]

    high_low = high[1:] - low[1:]
    high_close = np.abs(high[1:] - close[:-1])
    low_close = np.abs(low[1:] - close[:-1])
    true_ranges = np.maximum(high_low, np.maximum(high_close, low_close))

    if len(true_ranges) < period:
        return None

    return float(np.mean(true_ranges[:period]))
