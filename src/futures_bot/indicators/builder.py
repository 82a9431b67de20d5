"""
Indicator Set Builder.

Assembles one immutable IndicatorSnapshot from the bar series and the optional
auxiliary price and index series. Each indicator is computed independently, so
an absent auxiliary series never blocks the bar indicators.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence

from ..models import Bar, HistoryPoint
from .series_math import (
    BollingerBands,
    average_true_range,
    bollinger_bands,
    exponential_moving_average,
    moving_average,
    relative_strength_index,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndicatorPeriods:
    """Look-back windows used for every series."""
    ma: int = 14
    ema: int = 12
    bollinger: int = 12
    bollinger_std_dev: float = 2.0
    rsi: int = 9
    atr: int = 7


@dataclass(frozen=True)
class SeriesIndicators:
    """Indicators of one series. A field is None when data is insufficient."""
    ma: Optional[float] = None
    ema: Optional[float] = None
    bollinger: Optional[BollingerBands] = None
    rsi: Optional[float] = None
    atr: Optional[float] = None  # bar series only


@dataclass(frozen=True)
class IndicatorSnapshot:
    """
    Immutable set of indicator values computed at one instant.

    Replaced wholesale on every refresh; never mutated in place.
    """
    bars: SeriesIndicators = field(default_factory=SeriesIndicators)
    price: SeriesIndicators = field(default_factory=SeriesIndicators)
    index: SeriesIndicators = field(default_factory=SeriesIndicators)
    bar_count: int = 0
    computed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )

    @property
    def is_empty(self) -> bool:
        """True when no bar indicator could be computed."""
        return self.bars == SeriesIndicators()


def _closes_are_valid(closes: Sequence[float]) -> bool:
    return all(math.isfinite(c) and c >= 0 for c in closes)


def _value_indicators(values: Sequence[float], periods: IndicatorPeriods) -> SeriesIndicators:
    return SeriesIndicators(
        ma=moving_average(values, periods.ma),
        ema=exponential_moving_average(values, periods.ema),
        bollinger=bollinger_bands(values, periods.bollinger, periods.bollinger_std_dev),
        rsi=relative_strength_index(values, periods.rsi),
    )


def build_bar_indicators(bars: Sequence[Bar], periods: IndicatorPeriods) -> SeriesIndicators:
    """
    Compute the indicators of the OHLC bar series.

    Args:
        bars: Bars ordered by time, oldest first
        periods: Look-back windows

    Returns:
        SeriesIndicators including ATR
    """
    closes = [bar.close for bar in bars]
    highs = [bar.high for bar in bars]
    lows = [bar.low for bar in bars]

    bands = None
    if _closes_are_valid(closes):
        bands = bollinger_bands(closes, periods.bollinger, periods.bollinger_std_dev)
    else:
        logger.warning("Bar closes contain non-finite or negative values, skipping Bollinger Bands")

    return SeriesIndicators(
        ma=moving_average(closes, periods.ma),
        ema=exponential_moving_average(closes, periods.ema),
        bollinger=bands,
        rsi=relative_strength_index(closes, periods.rsi),
        atr=average_true_range(highs, lows, closes, periods.atr),
    )


def build_indicator_snapshot(
    bars: Sequence[Bar],
    periods: IndicatorPeriods,
    price_series: Optional[Sequence[HistoryPoint]] = None,
    index_series: Optional[Sequence[HistoryPoint]] = None,
) -> IndicatorSnapshot:
    """
    Build a full snapshot from the current series.

    Deterministic: identical inputs give equal snapshots (the computation
    timestamp is excluded from equality).

    Args:
        bars: Primary OHLC bars, oldest first
        periods: Look-back windows
        price_series: Optional auxiliary price history
        index_series: Optional auxiliary index history

    Returns:
        IndicatorSnapshot
    """
    price = SeriesIndicators()
    if price_series:
        price = _value_indicators([p.value for p in price_series], periods)

    index = SeriesIndicators()
    if index_series:
        index = _value_indicators([p.value for p in index_series], periods)

    snapshot = IndicatorSnapshot(
        bars=build_bar_indicators(bars, periods),
        price=price,
        index=index,
        bar_count=len(bars),
    )
    logger.debug(f"Built indicator snapshot from {len(bars)} bars")
    return snapshot
