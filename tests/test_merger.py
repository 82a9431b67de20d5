import asyncio

from conftest import make_tick, strong_buy_snapshot

from futures_bot.engine.merger import (
    DecisionContext,
    DecisionMerger,
    IndicatorUpdate,
    TickUpdate,
)
from futures_bot.indicators.builder import IndicatorSnapshot, SeriesIndicators
from futures_bot.signals.fusion import Signal, SignalSettings


async def drain(queue):
    events = []
    while True:
        event = await asyncio.wait_for(queue.get(), timeout=2)
        if event is None:
            return events
        events.append(event)


async def run_merger(updates, outbox_size=100):
    outbox = asyncio.Queue(maxsize=outbox_size)
    merger = DecisionMerger(SignalSettings(), outbox, capacity=4)
    task = asyncio.create_task(merger.run())
    collector = asyncio.create_task(drain(outbox))
    for update in updates:
        await merger.submit(update)
    await merger.close()
    await asyncio.wait_for(task, timeout=2)
    return await collector


def test_no_signal_until_both_slots_are_populated():
    events = asyncio.run(run_merger([TickUpdate(make_tick(95_000.0)), TickUpdate(make_tick(95_100.0))]))
    assert events == []

    events = asyncio.run(run_merger([IndicatorUpdate(strong_buy_snapshot())]))
    assert events == []


def test_every_update_fuses_with_latest_other_slot():
    snapshot = strong_buy_snapshot()
    events = asyncio.run(run_merger([
        TickUpdate(make_tick(95_000.0, time_ms=1)),
        IndicatorUpdate(snapshot),
        TickUpdate(make_tick(95_050.0, time_ms=2)),
    ]))

    assert [e.signal for e in events] == [Signal.STRONG_BUY, Signal.STRONG_BUY]
    assert events[0].tick.time == 1
    assert events[1].tick.time == 2
    assert all(e.snapshot is snapshot for e in events)


def test_latest_snapshot_wins():
    neutral = IndicatorSnapshot(bars=SeriesIndicators(ma=98_000.0))
    bullish = strong_buy_snapshot()
    events = asyncio.run(run_merger([
        IndicatorUpdate(neutral),
        IndicatorUpdate(bullish),
        TickUpdate(make_tick(95_000.0)),
    ]))

    assert len(events) == 1
    assert events[0].snapshot is bullish
    assert events[0].signal is Signal.STRONG_BUY


def test_invalid_price_emits_undefined():
    events = asyncio.run(run_merger([
        IndicatorUpdate(strong_buy_snapshot()),
        TickUpdate(make_tick(0.0)),
    ]))
    assert events[0].signal is Signal.UNDEFINED
    assert events[0].score is None


def test_slow_consumer_applies_backpressure_without_loss():
    async def scenario():
        outbox = asyncio.Queue(maxsize=1)
        merger = DecisionMerger(SignalSettings(), outbox, capacity=1)
        task = asyncio.create_task(merger.run())

        async def produce():
            await merger.submit_snapshot(strong_buy_snapshot())
            for i in range(10):
                await merger.submit_tick(make_tick(95_000.0 + i, time_ms=i))
            await merger.close()

        producer = asyncio.create_task(produce())
        received = []
        while True:
            event = await asyncio.wait_for(outbox.get(), timeout=2)
            if event is None:
                break
            received.append(event)
            await asyncio.sleep(0.01)

        await producer
        await task
        return received, merger.signals_emitted

    received, emitted = asyncio.run(scenario())
    assert [e.tick.time for e in received] == list(range(10))
    assert emitted == 10


def test_context_accessors_return_consistent_pair():
    async def scenario():
        context = DecisionContext()
        assert await context.current() == (None, None)
        tick = make_tick(1.0)
        assert await context.update_tick(tick) == (tick, None)
        snapshot = strong_buy_snapshot()
        assert await context.update_indicators(snapshot) == (tick, snapshot)
        return await context.current()

    tick, snapshot = asyncio.run(scenario())
    assert tick.last_price == 1.0
    assert snapshot.bars.rsi == 10.0
