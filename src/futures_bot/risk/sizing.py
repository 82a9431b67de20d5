"""
Risk-based position sizing for inverse BTC futures.

Quantity is sized from the account balance, the per-trade risk budget and the
current ATR; stop and target distances scale with ATR and leverage. Margin,
liquidation price and maintenance margin follow the exchange's inverse
contract formulas.

Rounding policy: margin is floored to whole base units (satoshis), so the
estimate never exceeds what the exchange will lock.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from ..exceptions import SizingError
from ..models import FeeTier, MarketLimits, Side

logger = logging.getLogger(__name__)

BASE_UNITS_PER_WHOLE = 100_000_000


@dataclass(frozen=True)
class RiskConfig:
    """Risk parameters applied to every trade."""
    risk_per_trade_percent: float = 0.01   # fraction of balance at risk, split across open slots
    risk_to_reward_ratio: float = 0.8      # target distance as a multiple of ATR * leverage
    risk_to_loss_ratio: float = 0.75       # stop distance as a multiple of ATR * leverage
    trade_gap_seconds: float = 5.0         # minimum time between approved trades
    leverage: float = 20.0


@dataclass(frozen=True)
class TradeTargets:
    stoploss: float
    takeprofit: float


@dataclass(frozen=True)
class TradeSizing:
    """Derived per decision, never persisted."""
    quantity: float
    margin: int                  # base units
    liquidation_price: float
    maintenance_margin: int      # base units


def floor_to_base_unit(amount: float) -> int:
    """
    Convert an amount in whole units to base units, rounding down.

    Args:
        amount: Amount in whole units (BTC)

    Returns:
        Amount in base units (satoshis)
    """
    return math.floor(amount * BASE_UNITS_PER_WHOLE)


def calculate_trade_quantity(
    balance: int,
    price: float,
    atr: Optional[float],
    risk: RiskConfig,
    limits: MarketLimits,
) -> float:
    """
    Size a position from the risk budget and ATR.

    Args:
        balance: Account balance in base units
        price: Current price in quote currency
        atr: Current ATR of the bar series
        risk: Risk parameters
        limits: Market limits used for the clamp and the open-trade split

    Returns:
        Quantity clamped to the market's [min, max]

    Raises:
        SizingError: If ATR is missing or not positive, or inputs are unusable
    """
    if atr is None or not atr > 0:
        raise SizingError("ATR is required for the trade.")
    if not price > 0:
        raise SizingError(f"Price must be positive, got {price}")
    if limits.max_open_trade_count <= 0:
        raise SizingError("Market allows no open trades")

    balance_quote = balance * price / BASE_UNITS_PER_WHOLE
    per_trade_cap = balance_quote * risk.risk_per_trade_percent / limits.max_open_trade_count
    raw_quantity = per_trade_cap * risk.leverage * (1 / atr)
    quantity = min(max(raw_quantity, limits.quantity_min), limits.quantity_max)

    logger.debug(
        f"Quantity sizing: balance_quote={balance_quote:.2f}, per_trade_cap={per_trade_cap:.2f}, "
        f"raw={raw_quantity:.4f}, final={quantity:.4f}"
    )
    return quantity


def round_to_contracts(quantity: float, limits: MarketLimits) -> float:
    """
    Floor a quantity to whole contracts, then clamp it into the whole-contract
    range of the market limits.

    Args:
        quantity: Sized quantity, possibly fractional
        limits: Market limits

    Returns:
        Whole-contract quantity within [ceil(min), floor(max)]

    Raises:
        SizingError: If no whole contract count fits the limits
    """
    low = math.ceil(limits.quantity_min)
    high = math.floor(limits.quantity_max)
    if low > high or high <= 0:
        raise SizingError(
            f"No whole contract quantity within [{limits.quantity_min}, {limits.quantity_max}]"
        )
    return float(min(max(math.floor(quantity), low, 1), high))


def calculate_stoploss_takeprofit(side: Side, entry_price: float, atr: Optional[float], risk: RiskConfig) -> TradeTargets:
    """
    Derive stop-loss and take-profit levels from ATR and leverage.

    Args:
        side: Trade side
        entry_price: Expected entry price
        atr: Current ATR
        risk: Risk parameters

    Returns:
        TradeTargets; long stops sit below entry, short stops above

    Raises:
        SizingError: If ATR is missing or not positive
    """
    if atr is None or not atr > 0:
        raise SizingError("ATR value must be greater than 0.")

    distance = atr * risk.leverage
    stop_distance = distance * risk.risk_to_loss_ratio
    target_distance = distance * risk.risk_to_reward_ratio

    if side is Side.LONG:
        targets = TradeTargets(stoploss=entry_price - stop_distance, takeprofit=entry_price + target_distance)
    else:
        targets = TradeTargets(stoploss=entry_price + stop_distance, takeprofit=entry_price - target_distance)

    if targets.stoploss <= 0 or targets.takeprofit <= 0:
        raise SizingError(f"Stop-loss or take-profit is not positive: {targets}")
    return targets


def select_fee_rate(tiers: Sequence[FeeTier], margin: int) -> float:
    """
    Pick the fee rate of the highest tier whose minimum volume the margin reaches.

    Raises:
        SizingError: If no tier qualifies
    """
    eligible = [tier for tier in tiers if tier.min_volume <= margin]
    if not eligible:
        raise SizingError("No matching fee tier found")
    return max(eligible, key=lambda tier: tier.min_volume).fees


def calculate_liquidation_price(side: Side, entry_price: float, margin: float, quantity: float) -> float:
    """
    Liquidation price of an inverse contract.

    Args:
        side: Trade side
        entry_price: Entry price
        margin: Margin in whole units
        quantity: Position quantity in quote currency

    Returns:
        Liquidation price; infinite for a short that cannot be liquidated
    """
    if side is Side.LONG:
        return 1 / (1 / entry_price + margin / quantity)

    denominator = 1 / entry_price - margin / quantity
    if denominator <= 0:
        return math.inf
    return 1 / denominator


def calculate_trade_sizing(
    side: Side,
    entry_price: float,
    quantity: float,
    leverage: float,
    limits: MarketLimits,
) -> TradeSizing:
    """
    Compute margin, liquidation price and maintenance margin for a position.

    Args:
        side: Trade side
        entry_price: Expected entry price
        quantity: Position quantity
        leverage: Leverage applied
        limits: Market limits carrying the leverage range and fee tiers

    Returns:
        TradeSizing

    Raises:
        SizingError: If inputs are out of range or no fee tier applies
    """
    if not entry_price > 0:
        raise SizingError(f"Entry price must be positive, got {entry_price}")
    if not quantity > 0:
        raise SizingError(f"Quantity must be positive, got {quantity}")
    if not limits.leverage_min <= leverage <= limits.leverage_max:
        raise SizingError(
            f"Leverage {leverage} outside market limits [{limits.leverage_min}, {limits.leverage_max}]"
        )

    margin = floor_to_base_unit(quantity / (entry_price * leverage))
    margin_whole = margin / BASE_UNITS_PER_WHOLE
    fee_rate = select_fee_rate(limits.fee_tiers, margin)
    liquidation_price = calculate_liquidation_price(side, entry_price, margin_whole, quantity)

    exposure = quantity / entry_price
    if math.isfinite(liquidation_price):
        exposure += quantity / liquidation_price
    maintenance_margin = floor_to_base_unit(exposure * fee_rate)

    return TradeSizing(
        quantity=quantity,
        margin=margin,
        liquidation_price=liquidation_price,
        maintenance_margin=maintenance_margin,
    )
