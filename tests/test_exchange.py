import asyncio
import base64
import hashlib
import hmac
import json

import pytest
from pydantic import ValidationError

from futures_bot.config import ExchangeConfig
from futures_bot.exceptions import ExchangeError
from futures_bot.exchanges.lnm_client import LNMarketsClient, sign_request
from futures_bot.exchanges.price_feed import PriceFeed, parse_tick_message
from futures_bot.models import MarketLimits, OrderKind, OrderRequest, Side

MARKET_PAYLOAD = {
    "active": True,
    "limits": {
        "quantity": {"min": 1, "max": 500000},
        "leverage": {"min": 1, "max": 100},
        "count": {"max": 50},
    },
    "fees": {
        "carry": {"min": 0.0001, "hours": [4, 12, 20]},
        "trading": {
            "tiers": [
                {"minVolume": 0, "fees": 0.001},
                {"minVolume": 250000, "fees": 0.0008},
            ]
        },
    },
}


def make_config(**overrides):
    values = dict(api_key="key", api_secret="secret", api_passphrase="passphrase")
    values.update(overrides)
    return ExchangeConfig(**values)


def test_signature_is_base64_hmac_sha256():
    expected = base64.b64encode(
        hmac.new(b"secret", b"1700000000000GET/v2/futurestype=running", hashlib.sha256).digest()
    ).decode()
    assert sign_request("secret", "1700000000000", "GET", "/v2/futures", "type=running") == expected


def test_auth_headers_sign_versioned_path():
    client = LNMarketsClient(make_config())
    headers = client._auth_headers("GET", "/futures", "type=running")

    assert headers["LNM-ACCESS-KEY"] == "key"
    assert headers["LNM-ACCESS-PASSPHRASE"] == "passphrase"
    timestamp = headers["LNM-ACCESS-TIMESTAMP"]
    assert headers["LNM-ACCESS-SIGNATURE"] == sign_request(
        "secret", timestamp, "GET", "/v2/futures", "type=running"
    )


def test_auth_headers_require_credentials():
    client = LNMarketsClient(ExchangeConfig())
    with pytest.raises(ExchangeError, match="credentials"):
        client._auth_headers("GET", "/user", "")


def test_market_limits_from_payload():
    limits = MarketLimits.from_market_payload(MARKET_PAYLOAD)
    assert limits.quantity_min == 1
    assert limits.quantity_max == 500000
    assert limits.leverage_max == 100
    assert limits.max_open_trade_count == 50
    assert [tier.min_volume for tier in limits.fee_tiers] == [0, 250000]
    assert limits.fee_tiers[1].fees == 0.0008


def test_order_payload_uses_exchange_codes():
    order = OrderRequest(
        side=Side.SHORT, leverage=20, quantity=33.0, stoploss=51_500.7, takeprofit=48_400.2
    )
    assert order.kind is OrderKind.MARKET
    assert order.to_payload() == {
        "side": "s",
        "type": "m",
        "leverage": 20,
        "quantity": 33,
        "stoploss": 51_500,
        "takeprofit": 48_400,
    }


def test_limit_order_requires_price():
    with pytest.raises(ValidationError):
        OrderRequest(side=Side.LONG, kind=OrderKind.LIMIT, leverage=10, quantity=1)
    order = OrderRequest(side=Side.LONG, kind=OrderKind.LIMIT, leverage=10, quantity=1, price=50_000)
    assert order.to_payload()["type"] == "l"
    assert order.to_payload()["side"] == "b"


@pytest.mark.parametrize("quantity", [0, -5])
def test_order_rejects_non_positive_quantity(quantity):
    with pytest.raises(ValidationError):
        OrderRequest(side=Side.LONG, leverage=10, quantity=quantity)


def test_parse_tick_message():
    message = json.dumps({
        "jsonrpc": "2.0",
        "method": "subscription",
        "params": {
            "channel": "futures:btc_usd:last-price",
            "data": {"lastPrice": 97_123.5, "lastTickDirection": "PlusTick", "time": 1_700_000_000_000},
        },
    })
    tick = parse_tick_message(message)
    assert tick.last_price == 97_123.5
    assert tick.last_tick_direction == "PlusTick"
    assert tick.time == 1_700_000_000_000


@pytest.mark.parametrize(
    "message",
    [
        "not json",
        json.dumps({"jsonrpc": "2.0", "id": "abc", "result": True}),
        json.dumps({"params": {"data": {"lastPrice": "n/a", "time": 1}}}),
        json.dumps([1, 2, 3]),
    ],
)
def test_parse_tick_message_ignores_other_frames(message):
    assert parse_tick_message(message) is None


def test_subscribe_request():
    feed = PriceFeed(make_config())
    request = json.loads(feed.subscribe_request())
    assert request["jsonrpc"] == "2.0"
    assert request["method"] == "v1/public/subscribe"
    assert request["params"] == ["futures:btc_usd:last-price"]
    assert request["id"]


class RecordedRequests:
    """Stands in for LNMarketsClient._request, replaying canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, method, path, params=None, body=None, authenticated=True):
        self.calls.append((method, path, params))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def client_with(*responses):
    client = LNMarketsClient(make_config(), page_delay=0)
    client._request = RecordedRequests(*responses)
    return client


def raw_bar(time_ms, close=50_000.0):
    return {"time": time_ms, "open": close, "high": close, "low": close, "close": close, "volume": 1}


def test_bar_history_pages_forward():
    client = client_with(
        [raw_bar(0), raw_bar(60_000)],
        [raw_bar(120_000)],
    )
    bars = asyncio.run(client.get_bar_history("1", 0, 600_000, limit=2))

    assert [bar.time for bar in bars] == [0, 60_000, 120_000]
    assert [call[2]["from"] for call in client._request.calls] == [0, 60_001]


def test_bar_history_stops_when_cursor_does_not_advance():
    # the server ignores "from" and keeps returning the same full page
    client = client_with([raw_bar(0), raw_bar(60_000)])
    bars = asyncio.run(client.get_bar_history("1", 0, 10**12, limit=2))

    assert [bar.time for bar in bars] == [0, 60_000]
    assert len(client._request.calls) == 2


def test_ticker_parsing():
    client = client_with({"index": 97_000.5, "lastPrice": 97_010, "askPrice": 97_011, "bidPrice": 97_009})
    ticker = asyncio.run(client.get_ticker())
    assert (ticker.ask_price, ticker.bid_price) == (97_011, 97_009)
    assert client._request.calls == [("GET", "/futures/ticker", None)]


def test_close_trade():
    client = client_with({"id": "abc", "closed": True})
    result = asyncio.run(client.close_trade("abc"))
    assert result["closed"]
    assert client._request.calls == [("DELETE", "/futures", {"id": "abc"})]


def test_close_trade_requires_id():
    with pytest.raises(ValueError):
        asyncio.run(client_with({}).close_trade(""))


def test_close_all_trades():
    client = client_with([{"id": "a"}, {"id": "b"}])
    assert len(asyncio.run(client.close_all_trades())) == 2
    assert client._request.calls == [("DELETE", "/futures/all/close", None)]


def test_inactive_market_payload():
    limits = MarketLimits.from_market_payload({**MARKET_PAYLOAD, "active": False})
    assert not limits.active
