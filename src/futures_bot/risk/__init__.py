"""
Risk sizing and trade gating.

Provides:

- Quantity sizing from balance, per-trade risk budget and ATR
- Stop-loss and take-profit levels scaled by ATR and leverage
- Margin, liquidation and maintenance margin estimates for inverse contracts
- The trade gate: directional signal, open-trade cap, trade gap, balance
"""

from .gate import GateDecision, GateState, TradeGate
from .sizing import (
    BASE_UNITS_PER_WHOLE,
    RiskConfig,
    TradeSizing,
    TradeTargets,
    calculate_stoploss_takeprofit,
    calculate_trade_quantity,
    calculate_trade_sizing,
    floor_to_base_unit,
)

__all__ = [
    "BASE_UNITS_PER_WHOLE",
    "GateDecision",
    "GateState",
    "RiskConfig",
    "TradeGate",
    "TradeSizing",
    "TradeTargets",
    "calculate_stoploss_takeprofit",
    "calculate_trade_quantity",
    "calculate_trade_sizing",
    "floor_to_base_unit",
]
