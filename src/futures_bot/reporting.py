"""Human-readable audit lines for bot parameters, indicators and trades."""

import logging
from typing import Optional

from .indicators.builder import IndicatorSnapshot, SeriesIndicators
from .models import Account, MarketLimits
from .risk.gate import GateDecision

logger = logging.getLogger(__name__)


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def format_series(name: str, indicators: SeriesIndicators) -> str:
    bands = indicators.bollinger
    bands_text = "n/a" if bands is None else f"{bands.lower:.2f}/{bands.middle:.2f}/{bands.upper:.2f}"
    text = (
        f"{name}: MA={_fmt(indicators.ma)} EMA={_fmt(indicators.ema)} "
        f"BB={bands_text} RSI={_fmt(indicators.rsi)}"
    )
    if name == "bars":
        text += f" ATR={_fmt(indicators.atr)}"
    return text


def log_snapshot(snapshot: IndicatorSnapshot) -> None:
    logger.info(f"Indicators from {snapshot.bar_count} bars, {format_series('bars', snapshot.bars)}")
    if snapshot.price != SeriesIndicators():
        logger.info(format_series("price", snapshot.price))
    if snapshot.index != SeriesIndicators():
        logger.info(format_series("index", snapshot.index))


def log_bot_params(account: Account, limits: MarketLimits, snapshot: IndicatorSnapshot) -> None:
    """Startup summary: account, market limits and initial indicators."""
    logger.info(f"Account {account.username or '<unknown>'}: balance {account.balance} sats")
    logger.info(
        f"Market limits: quantity [{limits.quantity_min}, {limits.quantity_max}], "
        f"leverage [{limits.leverage_min}, {limits.leverage_max}], "
        f"max open trades {limits.max_open_trade_count}, {len(limits.fee_tiers)} fee tiers"
    )
    log_snapshot(snapshot)


def log_forecast_trade(decision: GateDecision) -> None:
    """Log the expected outcome of an approved trade before it is placed."""
    order, sizing, targets = decision.order, decision.sizing, decision.targets
    if order is None or sizing is None or targets is None:
        return
    logger.info(
        f"Forecast {order.side.value} trade: entry={decision.entry_price:.2f} "
        f"quantity={order.quantity:.0f} leverage={order.leverage:g} "
        f"takeprofit={targets.takeprofit:.2f} stoploss={targets.stoploss:.2f} "
        f"margin={sizing.margin} sats liquidation={sizing.liquidation_price:.2f} "
        f"maintenance={sizing.maintenance_margin} sats"
    )
