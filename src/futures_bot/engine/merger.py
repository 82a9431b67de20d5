"""
Decision Context Merger.

Fan-in of the tick stream and the indicator refresher into one decision
context. Producers send tagged updates into a bounded inbox; a single merger
task applies each update to its slot (merge-latest, no barrier between
producers) and, once both slots are populated, re-runs signal fusion and emits
a SignalEvent on a bounded outbox.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple, Union

from ..indicators.builder import IndicatorSnapshot
from ..models import Tick
from ..signals.fusion import Signal, SignalSettings, fuse_signal

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_CAPACITY = 15


@dataclass(frozen=True)
class TickUpdate:
    tick: Tick


@dataclass(frozen=True)
class IndicatorUpdate:
    snapshot: IndicatorSnapshot


ContextUpdate = Union[TickUpdate, IndicatorUpdate]


@dataclass(frozen=True)
class SignalEvent:
    """A fused signal together with the inputs it was computed from."""
    signal: Signal
    score: Optional[float]
    tick: Tick
    snapshot: IndicatorSnapshot
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class DecisionContext:
    """
    Latest tick and latest indicator snapshot.

    Each slot has exactly one writer. Both slots are read together under the
    same lock so a consumer never sees a torn pair.
    """

    def __init__(self):
        self._tick: Optional[Tick] = None
        self._snapshot: Optional[IndicatorSnapshot] = None
        self._lock = asyncio.Lock()

    async def update_tick(self, tick: Tick) -> Tuple[Optional[Tick], Optional[IndicatorSnapshot]]:
        """Replace the price slot and return a consistent copy of both slots."""
        async with self._lock:
            self._tick = tick
            return self._tick, self._snapshot

    async def update_indicators(
        self, snapshot: IndicatorSnapshot
    ) -> Tuple[Optional[Tick], Optional[IndicatorSnapshot]]:
        """Replace the indicator slot and return a consistent copy of both slots."""
        async with self._lock:
            self._snapshot = snapshot
            return self._tick, self._snapshot

    async def current(self) -> Tuple[Optional[Tick], Optional[IndicatorSnapshot]]:
        async with self._lock:
            return self._tick, self._snapshot


class DecisionMerger:
    """
    Single-owner task that applies context updates and emits fused signals.

    Producers block on a full inbox; the merger blocks on a full outbox. No
    update or signal is dropped while the bot is running.
    """

    def __init__(
        self,
        settings: SignalSettings,
        outbox: "asyncio.Queue[Optional[SignalEvent]]",
        capacity: int = DEFAULT_CHANNEL_CAPACITY,
        context: Optional[DecisionContext] = None,
    ):
        """
        Initialize the merger.

        Args:
            settings: Fusion weights and gap value
            outbox: Queue receiving SignalEvents, and None once the merger stops
            capacity: Inbox capacity
            context: Decision context to own (a fresh one by default)
        """
        self.settings = settings
        self.outbox = outbox
        self.inbox: "asyncio.Queue[Optional[ContextUpdate]]" = asyncio.Queue(maxsize=capacity)
        self.context = context or DecisionContext()
        self.signals_emitted = 0

    async def submit(self, update: ContextUpdate) -> None:
        """Enqueue an update, waiting while the inbox is full."""
        await self.inbox.put(update)

    async def submit_tick(self, tick: Tick) -> None:
        await self.submit(TickUpdate(tick))

    async def submit_snapshot(self, snapshot: IndicatorSnapshot) -> None:
        await self.submit(IndicatorUpdate(snapshot))

    async def close(self) -> None:
        """Ask the merger to stop once every update queued so far is applied."""
        await self.inbox.put(None)

    async def _apply(self, update: ContextUpdate) -> Tuple[Optional[Tick], Optional[IndicatorSnapshot]]:
        if isinstance(update, TickUpdate):
            return await self.context.update_tick(update.tick)
        if isinstance(update, IndicatorUpdate):
            return await self.context.update_indicators(update.snapshot)
        raise TypeError(f"Unknown context update: {update!r}")

    async def run(self) -> None:
        """Consume the inbox until closed, then forward the close to the outbox."""
        logger.info("Decision merger started")

        while True:
            update = await self.inbox.get()
            if update is None:
                break

            try:
                tick, snapshot = await self._apply(update)
                if tick is None or snapshot is None:
                    continue

                result = fuse_signal(tick.last_price, snapshot, self.settings)
            except Exception as e:
                logger.error(f"Error merging context update: {e}")
                continue

            score = "n/a" if result.score is None else f"{result.score:.2f}"
            logger.info(f"Signal: {result.signal.label} (score {score}) at price {tick.last_price}")

            await self.outbox.put(
                SignalEvent(signal=result.signal, score=result.score, tick=tick, snapshot=snapshot)
            )
            self.signals_emitted += 1

        await self.outbox.put(None)
        logger.info("Decision merger stopped")
