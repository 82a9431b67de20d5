"""
Streaming last-price feed over WebSocket.

Subscribes to the exchange's last-price channel with a JSON-RPC request and
delivers parsed Tick objects, in arrival order, to an async sink. Connection
loss is handled by reconnecting; it never crashes the feed.
"""

import asyncio
import json
import logging
import uuid
from typing import Awaitable, Callable, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from ..config import ExchangeConfig
from ..models import Tick

logger = logging.getLogger(__name__)

TickSink = Callable[[Tick], Awaitable[None]]


def parse_tick_message(message) -> Optional[Tick]:
    """
    Extract a tick from a raw subscription message.

    Args:
        message: Raw text frame

    Returns:
        Tick, or None for acknowledgements and messages without price data
    """
    try:
        payload = json.loads(message)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-JSON message: {message!r:.100}")
        return None

    params = payload.get("params") if isinstance(payload, dict) else None
    data = params.get("data") if isinstance(params, dict) else None
    if not isinstance(data, dict):
        return None

    try:
        return Tick.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed tick: {e}")
        return None


class PriceFeed:
    """Reconnecting WebSocket subscriber for last-price ticks."""

    def __init__(
        self,
        config: ExchangeConfig,
        reconnect_delay: float = 5.0,
        ping_interval: float = 5.0,
    ):
        """
        Initialize the feed.

        Args:
            config: Endpoint, subscribe method and channel
            reconnect_delay: Pause before reconnecting after a failure
            ping_interval: Heartbeat interval in seconds
        """
        self.endpoint = config.ws_endpoint
        self.method = config.price_method
        self.channel = config.price_channel
        self.reconnect_delay = reconnect_delay
        self.ping_interval = ping_interval
        self.ticks_received = 0

    def subscribe_request(self) -> str:
        return json.dumps({
            "jsonrpc": "2.0",
            "method": self.method,
            "params": [self.channel],
            "id": str(uuid.uuid4()),
        })

    async def _pump(self, websocket, sink: TickSink) -> None:
        async for message in websocket:
            tick = parse_tick_message(message)
            if tick is None:
                continue
            self.ticks_received += 1
            await sink(tick)

    async def _session(self, sink: TickSink, shutdown: asyncio.Event) -> bool:
        """Run one connection. Returns True when stopped by shutdown."""
        async with websockets.connect(
            self.endpoint, ping_interval=self.ping_interval, ping_timeout=self.ping_interval * 2
        ) as websocket:
            await websocket.send(self.subscribe_request())
            logger.info(f"Subscribed to {self.channel} at {self.endpoint}")

            reader = asyncio.create_task(self._pump(websocket, sink))
            stopper = asyncio.create_task(shutdown.wait())
            done, _ = await asyncio.wait({reader, stopper}, return_when=asyncio.FIRST_COMPLETED)

            if stopper in done:
                reader.cancel()
                await asyncio.gather(reader, return_exceptions=True)
                logger.info("Closing price feed connection")
                return True

            stopper.cancel()
            await asyncio.gather(stopper, return_exceptions=True)
            # propagate connection errors from the reader
            reader.result()
            logger.warning("Price feed closed by server")
            return False

    async def run(self, sink: TickSink, shutdown: asyncio.Event) -> None:
        """
        Stream ticks into `sink` until `shutdown` is set.

        Args:
            sink: Coroutine receiving each tick; may block to apply backpressure
            shutdown: Event observed between and during connections
        """
        while not shutdown.is_set():
            try:
                if await self._session(sink, shutdown):
                    break
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.error(f"Price feed connection error: {e}. Reconnecting in {self.reconnect_delay}s")

            try:
                await asyncio.wait_for(shutdown.wait(), timeout=self.reconnect_delay)
            except asyncio.TimeoutError:
                pass

        logger.info("Price feed stopped")
