"""
Signal Fusion Engine.

Combines the latest tick price with an IndicatorSnapshot into a weighted score
and maps the score to a discrete Signal. Pure: no state, no I/O.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..indicators.builder import IndicatorSnapshot, SeriesIndicators
from ..models import Side

logger = logging.getLogger(__name__)

STRONG_THRESHOLD = 1.55
WEAK_THRESHOLD = 0.2

# ATR thresholds as fractions of price
HIGH_VOLATILITY_RATIO = 0.005
BUY_THRESHOLD_FACTOR = 1.5
SELL_THRESHOLD_FACTOR = 1.75


class Signal(str, Enum):
    STRONG_SELL = "strong_sell"
    SELL = "sell"
    HOLD = "hold"
    BUY = "buy"
    STRONG_BUY = "strong_buy"
    UNDEFINED = "undefined"

    @property
    def side(self) -> Optional[Side]:
        """Trade side for directional signals, None for Hold and Undefined."""
        if self in (Signal.BUY, Signal.STRONG_BUY):
            return Side.LONG
        if self in (Signal.SELL, Signal.STRONG_SELL):
            return Side.SHORT
        return None

    @property
    def is_directional(self) -> bool:
        return self.side is not None

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass(frozen=True)
class SignalWeights:
    """Per-indicator weights. Expected to sum to 1.0."""
    bollinger: float = 0.25
    rsi: float = 0.30
    ma_ema: float = 0.20  # shared by MA and EMA
    atr: float = 0.25

    @property
    def total(self) -> float:
        return self.bollinger + self.rsi + self.ma_ema + self.atr


@dataclass(frozen=True)
class SignalSettings:
    weights: SignalWeights = field(default_factory=SignalWeights)
    gap_value: float = 15.0


@dataclass(frozen=True)
class FusionResult:
    signal: Signal
    score: Optional[float]  # None when inputs failed validation


def validate_inputs(price: float, indicators: SeriesIndicators) -> Optional[str]:
    """
    Check fusion inputs.

    Args:
        price: Latest tick price
        indicators: Bar-series indicators

    Returns:
        A description of the first problem found, or None if inputs are valid
    """
    if not price > 0:
        return f"price must be positive, got {price}"

    bands = indicators.bollinger
    if bands is not None and min(bands) < 0:
        return f"Bollinger Bands must be non-negative, got {tuple(bands)}"

    if indicators.rsi is not None and not 0 <= indicators.rsi <= 100:
        return f"RSI must be within [0, 100], got {indicators.rsi}"

    for name in ("ma", "ema", "atr"):
        value = getattr(indicators, name)
        if value is not None and value < 0:
            return f"{name.upper()} must be non-negative, got {value}"

    return None


def _level_score(price: float, level: float, gap: float, weight: float) -> float:
    """Score price against an MA/EMA level."""
    if price > level + gap:
        return -2 * weight
    if price > level:
        return -weight
    if price < level - gap:
        return 2 * weight
    if price < level:
        return weight
    return 0.0


def calculate_score(price: float, indicators: SeriesIndicators, settings: SignalSettings) -> float:
    """
    Weighted score of price against each indicator. Absent indicators add 0.

    Args:
        price: Latest tick price
        indicators: Bar-series indicators
        settings: Weights and gap value

    Returns:
        Combined score; positive is bullish, negative bearish
    """
    weights = settings.weights
    gap = settings.gap_value
    score = 0.0

    bands = indicators.bollinger
    if bands is not None:
        if price > bands.upper + gap:
            score -= 2 * weights.bollinger
        elif price < bands.lower - gap:
            score += 2 * weights.bollinger
        elif price > bands.upper:
            score -= weights.bollinger
        elif price < bands.lower:
            score += weights.bollinger

    rsi = indicators.rsi
    if rsi is not None:
        if rsi > 80:
            score -= 2 * weights.rsi
        elif rsi > 70:
            score -= weights.rsi
        elif rsi < 20:
            score += 2 * weights.rsi
        elif rsi < 30:
            score += weights.rsi

    if indicators.ma is not None:
        score += _level_score(price, indicators.ma, gap, weights.ma_ema)
    if indicators.ema is not None:
        score += _level_score(price, indicators.ema, gap, weights.ma_ema)

    atr = indicators.atr
    if atr is not None:
        high_volatility = HIGH_VOLATILITY_RATIO * price
        buy_threshold = BUY_THRESHOLD_FACTOR * high_volatility
        sell_threshold = SELL_THRESHOLD_FACTOR * high_volatility

        if atr > sell_threshold and price > atr + sell_threshold:
            score -= 2 * weights.atr
        elif atr > sell_threshold and price < atr - buy_threshold:
            score += 2 * weights.atr
        elif atr > high_volatility and price > atr:
            score -= weights.atr
        elif atr > high_volatility and price < atr:
            score += weights.atr

    return score


def score_to_signal(score: float) -> Signal:
    """Map a fused score onto the discrete signal scale."""
    if score >= STRONG_THRESHOLD:
        return Signal.STRONG_BUY
    if score > WEAK_THRESHOLD:
        return Signal.BUY
    if score <= -STRONG_THRESHOLD:
        return Signal.STRONG_SELL
    if score < -WEAK_THRESHOLD:
        return Signal.SELL
    return Signal.HOLD


def fuse_signal(price: float, snapshot: IndicatorSnapshot, settings: SignalSettings) -> FusionResult:
    """
    Fuse the latest price and indicator snapshot into a signal.

    Invalid inputs yield Signal.UNDEFINED, which downstream treats like Hold.

    Args:
        price: Latest tick price
        snapshot: Current indicator snapshot
        settings: Weights and gap value

    Returns:
        FusionResult with the signal and its score
    """
    problem = validate_inputs(price, snapshot.bars)
    if problem is not None:
        logger.warning(f"Signal inputs rejected: {problem}")
        return FusionResult(signal=Signal.UNDEFINED, score=None)

    score = calculate_score(price, snapshot.bars, settings)
    return FusionResult(signal=score_to_signal(score), score=score)
