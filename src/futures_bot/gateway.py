"""
Exchange gateway interface.

The decision core only talks to the exchange through this interface, which
keeps it testable against in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import List

from .models import Account, Bar, HistoryPoint, MarketLimits, OrderConfirmation, OrderRequest, Ticker


class ExchangeGateway(ABC):
    """Collaborator contract used by the bot's runtime, gate and dispatcher."""

    @abstractmethod
    async def get_bar_history(self, bar_range: str, from_ms: int, to_ms: int, limit: int = 1000) -> List[Bar]:
        """Bars in [from_ms, to_ms], ascending and deduplicated by time."""

    @abstractmethod
    async def get_price_history(self, from_ms: int, to_ms: int, limit: int = 1000) -> List[HistoryPoint]:
        """Auxiliary price history, ascending and deduplicated by time."""

    @abstractmethod
    async def get_index_history(self, from_ms: int, to_ms: int, limit: int = 1000) -> List[HistoryPoint]:
        """Auxiliary index history, ascending and deduplicated by time."""

    @abstractmethod
    async def get_account(self) -> Account:
        """Current account state; balance in base units."""

    @abstractmethod
    async def get_market_limits(self) -> MarketLimits:
        """Current market limits and fee tiers."""

    @abstractmethod
    async def get_ticker(self) -> Ticker:
        """Current futures ticker; ask and bid are the entry prices for new trades."""

    @abstractmethod
    async def get_open_trade_count(self) -> int:
        """Number of currently running trades."""

    @abstractmethod
    async def place_order(self, order: OrderRequest) -> OrderConfirmation:
        """Submit an order and return the exchange confirmation."""

    async def close(self) -> None:
        """Release network resources. No-op by default."""
