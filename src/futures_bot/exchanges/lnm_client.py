"""
LN Markets futures REST client.

Async aiohttp client implementing the ExchangeGateway contract, with
HMAC-SHA256 request signing, retries on transient failures and paginated
history downloads.
"""

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode, urlsplit

import aiohttp

from ..config import ExchangeConfig
from ..exceptions import ExchangeError
from ..history import merge_bars, merge_points
from ..models import (
    Account,
    Bar,
    HistoryPoint,
    MarketLimits,
    OrderConfirmation,
    OrderRequest,
    Ticker,
)
from ..gateway import ExchangeGateway

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


def sign_request(secret: str, timestamp: str, method: str, path: str, data: str) -> str:
    """
    Compute the request signature.

    Args:
        secret: API secret
        timestamp: Request timestamp in epoch milliseconds, as sent in the header
        method: HTTP method, upper case
        path: Full request path including the API version prefix
        data: Query string for GET/DELETE, JSON body otherwise

    Returns:
        Base64 encoded HMAC-SHA256 digest
    """
    payload = f"{timestamp}{method}{path}{data}"
    digest = hmac.new(secret.encode(), payload.encode(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


class LNMarketsClient(ExchangeGateway):
    """
    Async LN Markets futures client with retries and request signing.

    Use as an async context manager or call connect()/close() explicitly.
    """

    def __init__(
        self,
        config: ExchangeConfig,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        page_delay: float = 1.0,
    ):
        """
        Initialize the client.

        Args:
            config: Endpoints and credentials
            max_retries: Attempts per request for transient failures
            retry_delay: Base delay between attempts, grows linearly
            page_delay: Pause between history pages
        """
        self.config = config
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.page_delay = page_delay
        self.session: Optional[aiohttp.ClientSession] = None
        self._base_path = urlsplit(config.api_url).path.rstrip("/")
        self._connection_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Create the HTTP session if needed."""
        async with self._connection_lock:
            if self.session is not None and not self.session.closed:
                return
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
                headers={"Content-Type": "application/json"},
            )
            logger.info(f"Connected to exchange API at {self.config.api_url}")

    async def close(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()
            logger.info("Closed exchange API session")
        self.session = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _auth_headers(self, method: str, path: str, data: str) -> Dict[str, str]:
        if not self.config.has_credentials:
            raise ExchangeError("Exchange credentials are not configured")
        timestamp = str(int(time.time() * 1000))
        return {
            "LNM-ACCESS-KEY": self.config.api_key,
            "LNM-ACCESS-PASSPHRASE": self.config.api_passphrase,
            "LNM-ACCESS-TIMESTAMP": timestamp,
            "LNM-ACCESS-SIGNATURE": sign_request(
                self.config.api_secret, timestamp, method, self._base_path + path, data
            ),
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        """
        Send a request and decode its JSON response.

        Args:
            method: HTTP method
            path: Path below the API base URL, e.g. '/futures'
            params: Query parameters (GET/DELETE)
            body: JSON body (POST/PUT)
            authenticated: Whether to sign the request

        Returns:
            Decoded JSON response

        Raises:
            ExchangeError: On a non-retryable error status or when retries are exhausted
        """
        if self.session is None or self.session.closed:
            await self.connect()

        method = method.upper()
        query = urlencode(params or {})
        data = json.dumps(body, separators=(",", ":")) if body is not None else ""
        url = self.config.api_url.rstrip("/") + path + (f"?{query}" if query else "")

        last_error = ExchangeError(f"{method} {path} was not attempted")
        for attempt in range(self.max_retries):
            headers = {}
            if authenticated:
                headers = self._auth_headers(method, path, query if method in ("GET", "DELETE") else data)

            try:
                async with self.session.request(method, url, data=data or None, headers=headers) as response:
                    text = await response.text()
                    if response.status < 400:
                        return json.loads(text) if text else None

                    message = f"{method} {path} failed with status {response.status}: {text[:200]}"
                    if response.status not in RETRYABLE_STATUSES:
                        raise ExchangeError(message, status=response.status, body=text)
                    logger.warning(f"{message} (attempt {attempt + 1}/{self.max_retries})")
                    last_error = ExchangeError(message, status=response.status, body=text)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning(f"{method} {path} error (attempt {attempt + 1}/{self.max_retries}): {e}")
                last_error = ExchangeError(f"{method} {path} failed: {e}")

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_delay * (attempt + 1))

        raise last_error

    async def get_bar_history(self, bar_range: str, from_ms: int, to_ms: int, limit: int = 1000) -> List[Bar]:
        """
        Fetch OHLC bars, paging forward from `from_ms` until `to_ms` is reached.

        Args:
            bar_range: Bar range, e.g. '1' or '1D'
            from_ms: Start time in epoch milliseconds
            to_ms: End time in epoch milliseconds
            limit: Page size

        Returns:
            Bars ascending and deduplicated by time
        """
        bars: List[Bar] = []
        cursor = from_ms

        while cursor <= to_ms:
            page = await self._request(
                "GET",
                "/futures/ohlcs",
                params={"range": bar_range, "from": cursor, "to": to_ms, "limit": limit},
                authenticated=False,
            )
            page_bars = [Bar.model_validate(item) for item in page or []]
            if not page_bars:
                break

            bars = merge_bars(bars, page_bars)
            next_cursor = bars[-1].time + 1
            if len(page_bars) < limit or next_cursor <= cursor:
                break
            cursor = next_cursor
            await asyncio.sleep(self.page_delay)

        logger.debug(f"Fetched {len(bars)} bars for range {bar_range}")
        return bars

    async def _get_point_history(self, path: str, from_ms: int, to_ms: int, limit: int) -> List[HistoryPoint]:
        """Fetch a history series paging backward from `to_ms` until `from_ms` is covered."""
        points: List[HistoryPoint] = []
        cursor = to_ms

        while cursor >= from_ms:
            page = await self._request(
                "GET", path, params={"from": from_ms, "to": cursor, "limit": limit}, authenticated=False
            )
            page_points = [HistoryPoint.model_validate(item) for item in page or []]
            if not page_points:
                break

            points = merge_points(points, page_points)
            earliest = points[0].time
            if len(page_points) < limit or earliest <= from_ms:
                break
            cursor = earliest - 1
            await asyncio.sleep(self.page_delay)

        return [point for point in points if from_ms <= point.time <= to_ms]

    async def get_price_history(self, from_ms: int, to_ms: int, limit: int = 1000) -> List[HistoryPoint]:
        return await self._get_point_history("/futures/history/price", from_ms, to_ms, limit)

    async def get_index_history(self, from_ms: int, to_ms: int, limit: int = 1000) -> List[HistoryPoint]:
        return await self._get_point_history("/futures/history/index", from_ms, to_ms, limit)

    async def get_account(self) -> Account:
        return Account.model_validate(await self._request("GET", "/user"))

    async def get_market_limits(self) -> MarketLimits:
        payload = await self._request("GET", "/futures/market", authenticated=False)
        return MarketLimits.from_market_payload(payload)

    async def get_ticker(self) -> Ticker:
        return Ticker.model_validate(await self._request("GET", "/futures/ticker", authenticated=False))

    async def get_open_trade_count(self) -> int:
        trades = await self._request("GET", "/futures", params={"type": "running"})
        return len(trades or [])

    async def place_order(self, order: OrderRequest) -> OrderConfirmation:
        """
        Create a futures trade.

        Args:
            order: Validated order request

        Returns:
            Exchange confirmation

        Raises:
            ExchangeError: If the exchange rejects the order
        """
        payload = order.to_payload()
        result = await self._request("POST", "/futures", body=payload)
        logger.info(f"Placed {order.side.value} {order.kind.value} order: {payload}")
        return OrderConfirmation.model_validate(result)

    async def close_trade(self, trade_id: str) -> Dict[str, Any]:
        """Close one running trade by id."""
        if not trade_id:
            raise ValueError("trade_id is required")
        result = await self._request("DELETE", "/futures", params={"id": trade_id})
        logger.info(f"Closed trade {trade_id}")
        return result

    async def close_all_trades(self) -> Any:
        """Close every running trade."""
        result = await self._request("DELETE", "/futures/all/close")
        logger.info("Closed all running trades")
        return result
