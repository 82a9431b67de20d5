"""
Trading bot runtime.

Wires the collaborators and the decision core together as asyncio tasks:

- price feed -> merger (price slot)
- bar refresher -> indicator builder -> merger (indicator slot)
- market limits refresher -> trade gate
- merger -> signal queue -> trade gate -> order dispatcher

All loops observe one shutdown event. Shutdown drains the channels in order
(producers, then merger, then gate) so an approved decision is always
dispatched before the bot exits.
"""

import asyncio
import logging
from typing import List, Optional

from ..config import BotConfig
from ..engine.merger import DecisionMerger, SignalEvent
from ..exceptions import StartupError
from ..gateway import ExchangeGateway
from ..exchanges.price_feed import PriceFeed
from ..reporting import log_bot_params, log_snapshot
from ..risk.gate import TradeGate
from .dispatcher import OrderDispatcher
from .refresher import IndicatorRefresher, wait_for_shutdown

logger = logging.getLogger(__name__)


class TradingBot:
    """
    Runtime managing the bot's concurrent loops.

    Call initialize() once, then run() until request_shutdown() is called or
    the process receives a termination signal.
    """

    def __init__(
        self,
        config: BotConfig,
        exchange: ExchangeGateway,
        price_feed: PriceFeed,
        refresher: Optional[IndicatorRefresher] = None,
        gate: Optional[TradeGate] = None,
        dispatcher: Optional[OrderDispatcher] = None,
    ):
        """
        Initialize the runtime.

        Args:
            config: Bot configuration
            exchange: Exchange gateway
            price_feed: Tick source; anything with an async run(sink, shutdown)
            refresher: Bar refresher (built from config by default)
            gate: Trade gate (built from config by default)
            dispatcher: Order dispatcher (built from config by default)
        """
        self.config = config
        self.exchange = exchange
        self.price_feed = price_feed
        self.refresher = refresher or IndicatorRefresher(exchange, config)
        self.gate = gate or TradeGate(exchange, config.risk)
        self.dispatcher = dispatcher or OrderDispatcher(exchange, dry_run=config.dry_run)

        self.shutdown = asyncio.Event()
        self.signal_queue: "asyncio.Queue[Optional[SignalEvent]]" = asyncio.Queue(
            maxsize=config.channel_capacity
        )
        self.merger = DecisionMerger(config.signal, self.signal_queue, capacity=config.channel_capacity)
        self.is_running = False
        self._initialized = False
        self._tasks: List[asyncio.Task] = []

    def request_shutdown(self) -> None:
        if not self.shutdown.is_set():
            logger.info("Shutdown requested")
            self.shutdown.set()

    async def initialize(self) -> None:
        """
        Load market limits, account state and the first indicator snapshot.

        Raises:
            StartupError: If the initial state cannot be assembled
        """
        try:
            limits = await self.exchange.get_market_limits()
            account = await self.exchange.get_account()
            snapshot = await self.refresher.load_initial()
        except Exception as e:
            raise StartupError(f"Could not load initial bot state: {e}") from e

        if snapshot.is_empty:
            raise StartupError(
                f"Not enough bar history to compute indicators ({snapshot.bar_count} bars)"
            )

        self.gate.update_market_limits(limits)
        await self.merger.submit_snapshot(snapshot)
        log_bot_params(account, limits, snapshot)
        self._initialized = True

    async def _publish_snapshot(self, snapshot) -> None:
        log_snapshot(snapshot)
        await self.merger.submit_snapshot(snapshot)

    async def _market_limits_loop(self) -> None:
        interval = self.config.market_refresh_seconds
        while not await wait_for_shutdown(self.shutdown, interval):
            try:
                self.gate.update_market_limits(await self.exchange.get_market_limits())
                logger.debug("Refreshed market limits")
            except Exception as e:
                logger.error(f"Error refreshing market limits: {e}")

    async def _process_event(self, event: SignalEvent) -> None:
        decision = await self.gate.evaluate(event.signal, event.snapshot.bars.atr)
        if not decision.requires_action:
            return
        if not decision.approved:
            logger.info(f"No trade created: {decision.reason}")
            return
        await self.dispatcher.dispatch(decision)

    async def _gate_loop(self) -> None:
        """Consume signal events until the merger closes the queue."""
        logger.info("Trade gate loop started")

        while True:
            event = await self.signal_queue.get()
            if event is None:
                break
            if self.shutdown.is_set():
                logger.debug(f"Shutting down, {event.signal.label} signal skipped")
                continue

            try:
                await self._process_event(event)
            except Exception as e:
                logger.error(f"Error creating trade: {e}")

        logger.info("Trade gate loop stopped")

    async def run(self) -> None:
        """
        Run every loop until shutdown, then drain and stop them in order.

        Raises:
            RuntimeError: If initialize() was not called
        """
        if not self._initialized:
            raise RuntimeError("initialize() must complete before run()")
        if self.is_running:
            logger.warning("Bot is already running")
            return

        self.is_running = True
        logger.info("Starting trading bot")

        producers = [
            asyncio.create_task(self.price_feed.run(self.merger.submit_tick, self.shutdown)),
            asyncio.create_task(self.refresher.run(self._publish_snapshot, self.shutdown)),
            asyncio.create_task(self._market_limits_loop()),
        ]
        merger_task = asyncio.create_task(self.merger.run())
        gate_task = asyncio.create_task(self._gate_loop())
        self._tasks = producers + [merger_task, gate_task]

        try:
            await self.shutdown.wait()
            results = await asyncio.gather(*producers, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Producer task failed: {result}")

            await self.merger.close()
            await merger_task
            await gate_task
        finally:
            await self._cleanup_tasks()
            self.is_running = False
            logger.info("Trading bot stopped")

    async def _cleanup_tasks(self) -> None:
        """Cancel whatever is still running."""
        for task in self._tasks:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._tasks.clear()
