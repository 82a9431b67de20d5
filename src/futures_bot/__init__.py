"""
Futures Signal Bot

An automated trading agent for inverse BTC futures: ingests a live price
stream and periodic OHLC history, derives technical indicators, fuses them
into a directional signal and dispatches risk-sized orders behind a trade gate.
"""

__version__ = "1.0.0"
__author__ = "Futures Signal Bot Team"
__license__ = "MIT"
