"""
Execution layer.

Runtime orchestration of the bot's loops, the periodic bar refresher and the
order dispatcher.
"""

from .dispatcher import OrderDispatcher
from .refresher import IndicatorRefresher, calculate_initial_delay
from .runtime import TradingBot

__all__ = ['IndicatorRefresher', 'OrderDispatcher', 'TradingBot', 'calculate_initial_delay']
