"""
Trade gate.

Decides whether a fused signal may turn into an order. Checks run in a fixed
order and the first failure short-circuits with a reason:

1. the signal is directional (Hold and Undefined pass silently, no action)
2. market limits are known and the market is active
3. open positions are below the market's maximum
4. the trade gap since the last approved trade has elapsed
5. the balance strictly exceeds the required margin

Trades enter at the ticker ask for longs and the ticker bid for shorts.

A rejection is a normal outcome reported through GateDecision.reason, never
an exception. Collaborator failures propagate to the caller.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..exceptions import SizingError
from ..gateway import ExchangeGateway
from ..models import MarketLimits, OrderKind, OrderRequest, Side
from ..signals.fusion import Signal
from .sizing import (
    RiskConfig,
    TradeSizing,
    TradeTargets,
    calculate_stoploss_takeprofit,
    calculate_trade_quantity,
    calculate_trade_sizing,
    round_to_contracts,
)

logger = logging.getLogger(__name__)

TRADE_LIMIT_REACHED = "Trade limit reached"
TRADE_GAP_NOT_ELAPSED = "Trade gap not elapsed"
INSUFFICIENT_BALANCE = "Insufficient balance for creating a trade"
MARKET_LIMITS_UNAVAILABLE = "Market limits unavailable"
MARKET_INACTIVE = "Market is not active"


@dataclass
class GateState:
    """Monotonic time of the last approved trade; None until the first one."""
    last_trade_timestamp: Optional[float] = None


@dataclass(frozen=True)
class GateDecision:
    approved: bool
    signal: Signal
    reason: Optional[str] = None
    order: Optional[OrderRequest] = None
    sizing: Optional[TradeSizing] = None
    targets: Optional[TradeTargets] = None
    entry_price: Optional[float] = None

    @property
    def requires_action(self) -> bool:
        """False for Hold/Undefined, which are not reported as rejections."""
        return self.signal.is_directional


class TradeGate:
    """
    Applies the trade gate to each signal and sizes approved trades.

    The gate state is guarded by an asyncio.Lock; exchange calls are made
    outside the lock and the gap is re-checked before recording a pass.
    """

    def __init__(
        self,
        exchange: ExchangeGateway,
        risk: RiskConfig,
        market_limits: Optional[MarketLimits] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the gate.

        Args:
            exchange: Gateway used for open-trade count, ticker and balance
            risk: Risk parameters
            market_limits: Initial market limits, refreshed via update_market_limits
            clock: Monotonic clock in seconds
        """
        self.exchange = exchange
        self.risk = risk
        self.market_limits = market_limits
        self.state = GateState()
        self._clock = clock
        self._lock = asyncio.Lock()

    def update_market_limits(self, limits: MarketLimits) -> None:
        self.market_limits = limits

    async def _gap_remaining(self) -> float:
        async with self._lock:
            last = self.state.last_trade_timestamp
            if last is None:
                return 0.0
            return self.risk.trade_gap_seconds - (self._clock() - last)

    async def _record_pass(self) -> bool:
        """Record an approved trade if the gap still holds. Returns False if it does not."""
        async with self._lock:
            now = self._clock()
            last = self.state.last_trade_timestamp
            if last is not None and now - last < self.risk.trade_gap_seconds:
                return False
            self.state.last_trade_timestamp = now
            return True

    def _reject(self, signal: Signal, reason: str) -> GateDecision:
        return GateDecision(approved=False, signal=signal, reason=reason)

    async def evaluate(self, signal: Signal, atr: Optional[float]) -> GateDecision:
        """
        Run the gate for one signal.

        Args:
            signal: Fused signal
            atr: Current ATR of the bar series

        Returns:
            GateDecision; approved decisions carry the order to dispatch

        Raises:
            ExchangeError: If the exchange cannot be queried
        """
        side = signal.side
        if side is None:
            return GateDecision(approved=False, signal=signal)

        limits = self.market_limits
        if limits is None:
            return self._reject(signal, MARKET_LIMITS_UNAVAILABLE)
        if not limits.active:
            return self._reject(signal, MARKET_INACTIVE)

        open_count = await self.exchange.get_open_trade_count()
        if open_count >= limits.max_open_trade_count:
            return self._reject(signal, TRADE_LIMIT_REACHED)

        remaining = await self._gap_remaining()
        if remaining > 0:
            return self._reject(signal, f"{TRADE_GAP_NOT_ELAPSED} ({remaining:.1f}s remaining)")

        ticker = await self.exchange.get_ticker()
        price = ticker.ask_price if side is Side.LONG else ticker.bid_price

        account = await self.exchange.get_account()
        try:
            quantity = calculate_trade_quantity(account.balance, price, atr, self.risk, limits)
            quantity = round_to_contracts(quantity, limits)
            targets = calculate_stoploss_takeprofit(side, price, atr, self.risk)
            sizing = calculate_trade_sizing(side, price, quantity, self.risk.leverage, limits)
        except SizingError as e:
            return self._reject(signal, str(e))

        if account.balance <= sizing.margin:
            return self._reject(signal, INSUFFICIENT_BALANCE)

        if not await self._record_pass():
            return self._reject(signal, TRADE_GAP_NOT_ELAPSED)

        order = OrderRequest(
            side=side,
            kind=OrderKind.MARKET,
            leverage=self.risk.leverage,
            quantity=quantity,
            stoploss=targets.stoploss,
            takeprofit=targets.takeprofit,
        )
        return GateDecision(
            approved=True,
            signal=signal,
            order=order,
            sizing=sizing,
            targets=targets,
            entry_price=price,
        )
