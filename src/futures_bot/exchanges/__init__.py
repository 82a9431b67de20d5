"""
Exchange connectors.

The LN Markets REST client implementing ExchangeGateway and the streaming
last-price feed.
"""

from .lnm_client import LNMarketsClient, sign_request
from .price_feed import PriceFeed, parse_tick_message

__all__ = ['LNMarketsClient', 'PriceFeed', 'parse_tick_message', 'sign_request']
