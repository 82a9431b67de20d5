"""
Technical indicator computation.

Series math (MA, EMA, Bollinger Bands, RSI, ATR) and the builder that turns
the current bar and auxiliary series into an immutable IndicatorSnapshot.
"""

from .builder import IndicatorPeriods, IndicatorSnapshot, SeriesIndicators, build_indicator_snapshot
from .series_math import (
    BollingerBands,
    average_true_range,
    bollinger_bands,
    exponential_moving_average,
    moving_average,
    relative_strength_index,
)

__all__ = [
    "BollingerBands",
    "IndicatorPeriods",
    "IndicatorSnapshot",
    "SeriesIndicators",
    "average_true_range",
    "bollinger_bands",
    "build_indicator_snapshot",
    "exponential_moving_average",
    "moving_average",
    "relative_strength_index",
]
