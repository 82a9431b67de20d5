"""
Market data and order models.

Wire shapes returned by the exchange are parsed into frozen pydantic models
so the core never touches raw JSON. Side and order kind are closed enums; the
exchange's single-letter codes only exist at the payload boundary.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def code(self) -> str:
        """Exchange code for this side ('b' or 's')."""
        return "b" if self is Side.LONG else "s"


class OrderKind(str, Enum):
    MARKET = "market"
    LIMIT = "limit"

    @property
    def code(self) -> str:
        """Exchange code for this order kind ('m' or 'l')."""
        return "m" if self is OrderKind.MARKET else "l"


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Bar(_WireModel):
    """One OHLC bar. `time` is the bar open in epoch milliseconds."""
    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


class Tick(_WireModel):
    """Last-price update from the streaming feed."""
    last_price: float = Field(alias="lastPrice")
    last_tick_direction: str = Field(default="", alias="lastTickDirection")
    time: int


class HistoryPoint(_WireModel):
    """Single point of the auxiliary price or index series."""
    time: int
    value: float


class Account(_WireModel):
    """Account summary. `balance` is expressed in base units (satoshis)."""
    balance: int
    username: Optional[str] = None
    synthetic_usd_balance: Optional[float] = None


class Ticker(_WireModel):
    index: float
    last_price: float = Field(alias="lastPrice")
    ask_price: float = Field(alias="askPrice")
    bid_price: float = Field(alias="bidPrice")
    carry_fee_rate: Optional[float] = Field(default=None, alias="carryFeeRate")
    carry_fee_timestamp: Optional[int] = Field(default=None, alias="carryFeeTimestamp")


class FeeTier(_WireModel):
    min_volume: int = Field(alias="minVolume")
    fees: float


class MarketLimits(_WireModel):
    """
    Exchange trading limits read by the gate.

    Refreshed periodically from the market endpoint; read-only to the
    decision core.
    """
    quantity_min: float
    quantity_max: float
    leverage_min: float
    leverage_max: float
    max_open_trade_count: int
    fee_tiers: List[FeeTier] = Field(default_factory=list)
    active: bool = True

    @classmethod
    def from_market_payload(cls, payload: Dict[str, Any]) -> "MarketLimits":
        """
        Build limits from the exchange's market document.

        Args:
            payload: Decoded JSON of the futures market endpoint

        Returns:
            MarketLimits instance
        """
        limits = payload["limits"]
        return cls(
            quantity_min=limits["quantity"]["min"],
            quantity_max=limits["quantity"]["max"],
            leverage_min=limits["leverage"]["min"],
            leverage_max=limits["leverage"]["max"],
            max_open_trade_count=limits["count"]["max"],
            fee_tiers=payload.get("fees", {}).get("trading", {}).get("tiers", []),
            active=payload.get("active", True),
        )


class OrderRequest(_WireModel):
    """Validated order handed to the exchange gateway."""
    side: Side
    kind: OrderKind = OrderKind.MARKET
    leverage: float = Field(gt=0)
    quantity: float = Field(gt=0)
    price: Optional[float] = Field(default=None, gt=0)
    stoploss: Optional[float] = Field(default=None, ge=0)
    takeprofit: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _limit_needs_price(self) -> "OrderRequest":
        if self.kind is OrderKind.LIMIT and self.price is None:
            raise ValueError("Limit orders require a price")
        return self

    def to_payload(self) -> Dict[str, Any]:
        """
        Render the exchange request body.

        Quantity, stoploss and takeprofit are truncated to whole units as the
        exchange expects integers for them.
        """
        payload: Dict[str, Any] = {
            "side": self.side.code,
            "type": self.kind.code,
            "leverage": self.leverage,
            "quantity": int(self.quantity),
        }
        if self.price is not None:
            payload["price"] = self.price
        if self.stoploss is not None:
            payload["stoploss"] = int(self.stoploss)
        if self.takeprofit is not None:
            payload["takeprofit"] = int(self.takeprofit)
        return payload


class OrderConfirmation(_WireModel):
    """Subset of the exchange's trade document returned on creation."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id: str
    side: Optional[str] = None
    type: Optional[str] = None
    quantity: Optional[float] = None
    price: Optional[float] = None
    leverage: Optional[float] = None
    margin: Optional[float] = None
    stoploss: Optional[float] = None
    takeprofit: Optional[float] = None
