"""
Periodic bar refresh and indicator recomputation.

Holds a fixed-length window of bars (and the optional auxiliary price and
index series), refetches whatever is newer than the last known point on every
bar boundary, and publishes a fresh IndicatorSnapshot when new bars arrived.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from ..config import BotConfig
from ..gateway import ExchangeGateway
from ..history import merge_bars, merge_points
from ..indicators.builder import IndicatorSnapshot, build_indicator_snapshot
from ..models import Bar, HistoryPoint

logger = logging.getLogger(__name__)

SnapshotSink = Callable[[IndicatorSnapshot], Awaitable[None]]


def calculate_initial_delay(now: float, interval: int) -> float:
    """
    Seconds until one second past the next multiple of `interval` since the epoch.

    Args:
        now: Current epoch time in seconds
        interval: Refresh interval in seconds

    Returns:
        Delay in seconds, always greater than 1
    """
    next_aligned = (int(now) // interval + 1) * interval
    return next_aligned - now + 1.0


async def wait_for_shutdown(shutdown: asyncio.Event, timeout: float) -> bool:
    """Sleep up to `timeout` seconds. Returns True if shutdown was requested."""
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=max(timeout, 0))
        return True
    except asyncio.TimeoutError:
        return shutdown.is_set()


class IndicatorRefresher:
    """Keeps the bar window current and turns it into indicator snapshots."""

    def __init__(
        self,
        exchange: ExchangeGateway,
        config: BotConfig,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the refresher.

        Args:
            exchange: Gateway for bar and auxiliary history
            config: Bot configuration (range, periods, history window, flags)
            clock: Wall clock in epoch seconds
        """
        self.exchange = exchange
        self.config = config
        self._clock = clock
        self.bars: List[Bar] = []
        self.price_points: List[HistoryPoint] = []
        self.index_points: List[HistoryPoint] = []
        self.window = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def build_snapshot(self) -> IndicatorSnapshot:
        return build_indicator_snapshot(
            self.bars,
            self.config.periods,
            price_series=self.price_points if self.config.include_price_data else None,
            index_series=self.index_points if self.config.include_index_data else None,
        )

    async def load_initial(self) -> IndicatorSnapshot:
        """
        Fetch the initial history window and compute the first snapshot.

        Returns:
            Initial IndicatorSnapshot

        Raises:
            ExchangeError: If the history cannot be fetched
        """
        to_ms = self._now_ms()
        from_ms = to_ms - self.config.history_minutes * 60 * 1000

        self.bars = await self.exchange.get_bar_history(self.config.bar_range, from_ms, to_ms)
        self.window = len(self.bars)
        logger.info(f"Loaded {self.window} bars for range {self.config.bar_range}")

        if self.config.include_price_data:
            self.price_points = await self.exchange.get_price_history(from_ms, to_ms)
            logger.info(f"Loaded {len(self.price_points)} price history points")
        if self.config.include_index_data:
            self.index_points = await self.exchange.get_index_history(from_ms, to_ms)
            logger.info(f"Loaded {len(self.index_points)} index history points")

        return self.build_snapshot()

    async def _extend_auxiliary(self, to_ms: int) -> None:
        if self.config.include_price_data and self.price_points:
            since = self.price_points[-1].time + 1
            new_points = await self.exchange.get_price_history(since, to_ms)
            self.price_points = merge_points(self.price_points, new_points, window=len(self.price_points))
        if self.config.include_index_data and self.index_points:
            since = self.index_points[-1].time + 1
            new_points = await self.exchange.get_index_history(since, to_ms)
            self.index_points = merge_points(self.index_points, new_points, window=len(self.index_points))

    async def refresh_once(self) -> Optional[IndicatorSnapshot]:
        """
        Fetch bars newer than the last known one and recompute indicators.

        Returns:
            New snapshot, or None if no new bar arrived

        Raises:
            ExchangeError: If the exchange cannot be queried
        """
        since = self.bars[-1].time if self.bars else 0
        to_ms = self._now_ms()

        fetched = await self.exchange.get_bar_history(self.config.bar_range, since, to_ms)
        new_bars = [bar for bar in fetched if bar.time > since]
        if not new_bars:
            logger.debug("No new bars since last refresh")
            return None

        window = self.window or len(new_bars)
        self.bars = merge_bars(self.bars, new_bars, window=window)
        self.window = window
        await self._extend_auxiliary(to_ms)

        logger.info(f"Received {len(new_bars)} new bars, window holds {len(self.bars)}")
        return self.build_snapshot()

    async def run(self, publish: SnapshotSink, shutdown: asyncio.Event) -> None:
        """
        Refresh on every bar boundary until shutdown.

        Args:
            publish: Coroutine receiving each new snapshot
            shutdown: Shutdown event
        """
        interval = self.config.refresh_interval
        delay = calculate_initial_delay(self._clock(), interval)
        logger.info(f"Bar refresh every {interval}s, first refresh in {delay:.1f}s")

        if await wait_for_shutdown(shutdown, delay):
            return

        while not shutdown.is_set():
            started = self._clock()
            try:
                snapshot = await self.refresh_once()
                if snapshot is not None:
                    await publish(snapshot)
            except Exception as e:
                logger.error(f"Error updating bar data: {e}")

            elapsed = self._clock() - started
            if await wait_for_shutdown(shutdown, interval - elapsed):
                break

        logger.info("Bar refresher stopped")
