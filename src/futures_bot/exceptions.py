"""Exception hierarchy shared across the bot."""

from typing import Optional


class FuturesBotError(Exception):
    """Base class for all bot errors."""


class ConfigError(FuturesBotError, ValueError):
    """Raised when configuration values are missing or invalid."""


class ExchangeError(FuturesBotError):
    """
    Raised when the exchange rejects a request or cannot be reached.

    Attributes:
        status: HTTP status code, if a response was received
        body: Raw response body, if any
    """

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class SizingError(FuturesBotError):
    """Raised when a trade cannot be sized from the current inputs."""


class StartupError(FuturesBotError):
    """Raised when the bot cannot assemble its initial decision state."""
