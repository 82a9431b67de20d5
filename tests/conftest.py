import asyncio
from typing import List, Optional

import pytest

from futures_bot.exceptions import ExchangeError
from futures_bot.gateway import ExchangeGateway
from futures_bot.indicators.builder import IndicatorSnapshot, SeriesIndicators
from futures_bot.indicators.series_math import BollingerBands
from futures_bot.models import (
    Account,
    Bar,
    FeeTier,
    HistoryPoint,
    MarketLimits,
    OrderConfirmation,
    OrderRequest,
    Tick,
    Ticker,
)

MINUTE_MS = 60_000


def make_bars(closes, start_ms: int = 0, spread: float = 1.0) -> List[Bar]:
    """Bars one minute apart with high/low at close +/- spread."""
    return [
        Bar(
            time=start_ms + i * MINUTE_MS,
            open=close,
            high=close + spread,
            low=close - spread,
            close=close,
            volume=1.0,
        )
        for i, close in enumerate(closes)
    ]


def make_points(values, start_ms: int = 0) -> List[HistoryPoint]:
    return [HistoryPoint(time=start_ms + i * MINUTE_MS, value=v) for i, v in enumerate(values)]


def make_tick(price: float, time_ms: int = 0) -> Tick:
    return Tick(last_price=price, last_tick_direction="PlusTick", time=time_ms)


def make_limits(**overrides) -> MarketLimits:
    values = dict(
        quantity_min=1,
        quantity_max=500_000,
        leverage_min=1,
        leverage_max=100,
        max_open_trade_count=3,
        fee_tiers=[FeeTier(min_volume=0, fees=0.001), FeeTier(min_volume=250_000_000, fees=0.0008)],
    )
    values.update(overrides)
    return MarketLimits(**values)


def strong_buy_snapshot(atr: Optional[float] = 30.0) -> IndicatorSnapshot:
    """Indicators that fuse to Strong Buy at a price of 95,000."""
    return IndicatorSnapshot(
        bars=SeriesIndicators(
            ma=98_500.0,
            ema=98_800.0,
            bollinger=BollingerBands(97_000.0, 98_000.0, 99_000.0),
            rsi=10.0,
            atr=atr,
        ),
        bar_count=20,
    )


class FakeExchange(ExchangeGateway):
    """In-memory exchange gateway recording every call."""

    def __init__(
        self,
        bars=None,
        balance: int = 100_000_000,
        limits: Optional[MarketLimits] = None,
        ask_price: float = 50_000.0,
        bid_price: float = 50_000.0,
    ):
        self.bars: List[Bar] = list(bars or [])
        self.price_points: List[HistoryPoint] = []
        self.index_points: List[HistoryPoint] = []
        self.balance = balance
        self.limits = limits or make_limits()
        self.ask_price = ask_price
        self.bid_price = bid_price
        self.open_trades = 0
        self.orders: List[OrderRequest] = []
        self.calls: List[str] = []
        self.fail_with: Optional[Exception] = None

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    async def get_bar_history(self, bar_range, from_ms, to_ms, limit=1000):
        self._record("get_bar_history")
        return [bar for bar in self.bars if from_ms <= bar.time <= to_ms]

    async def get_price_history(self, from_ms, to_ms, limit=1000):
        self._record("get_price_history")
        return [p for p in self.price_points if from_ms <= p.time <= to_ms]

    async def get_index_history(self, from_ms, to_ms, limit=1000):
        self._record("get_index_history")
        return [p for p in self.index_points if from_ms <= p.time <= to_ms]

    async def get_account(self):
        self._record("get_account")
        return Account(balance=self.balance, username="tester")

    async def get_market_limits(self):
        self._record("get_market_limits")
        return self.limits

    async def get_ticker(self):
        self._record("get_ticker")
        mid = (self.ask_price + self.bid_price) / 2
        return Ticker(index=mid, last_price=mid, ask_price=self.ask_price, bid_price=self.bid_price)

    async def get_open_trade_count(self):
        self._record("get_open_trade_count")
        return self.open_trades

    async def place_order(self, order):
        self._record("place_order")
        self.orders.append(order)
        self.open_trades += 1
        return OrderConfirmation(id=f"trade-{len(self.orders)}", side=order.side.code)


class FakeFeed:
    """Price feed that emits a fixed list of prices, then idles until shutdown."""

    def __init__(self, prices):
        self.prices = list(prices)
        self.sent = 0

    async def run(self, sink, shutdown: asyncio.Event) -> None:
        for i, price in enumerate(self.prices):
            if shutdown.is_set():
                return
            await sink(make_tick(price, time_ms=i * 1000))
            self.sent += 1
        await shutdown.wait()


class StaticRefresher:
    """Refresher stand-in serving one prepared snapshot."""

    def __init__(self, snapshot: IndicatorSnapshot):
        self.snapshot = snapshot

    async def load_initial(self):
        return self.snapshot

    async def run(self, publish, shutdown: asyncio.Event) -> None:
        await shutdown.wait()


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def limits():
    return make_limits()


@pytest.fixture
def exchange(limits):
    return FakeExchange(limits=limits)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def failing_exchange():
    fake = FakeExchange()
    fake.fail_with = ExchangeError("exchange unavailable", status=503)
    return fake
