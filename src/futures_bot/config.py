"""Configuration loading and validation from environment variables."""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from .exceptions import ConfigError
from .indicators.builder import IndicatorPeriods
from .risk.sizing import RiskConfig
from .signals.fusion import SignalSettings, SignalWeights

logger = logging.getLogger(__name__)

# Bar range -> refresh interval in seconds
BAR_RANGE_SECONDS = {
    "1": 60,
    "3": 3 * 60,
    "5": 5 * 60,
    "10": 10 * 60,
    "15": 15 * 60,
    "30": 30 * 60,
    "45": 45 * 60,
    "60": 60 * 60,
    "120": 120 * 60,
    "180": 180 * 60,
    "240": 240 * 60,
    "1D": 24 * 60 * 60,
    "1W": 7 * 24 * 60 * 60,
    "1M": 30 * 24 * 60 * 60,
    "3M": 90 * 24 * 60 * 60,
}
DEFAULT_REFRESH_SECONDS = 60

WEIGHT_SUM_TOLERANCE = 0.001


def refresh_interval_seconds(bar_range: str) -> int:
    """
    Refresh interval for a bar range.

    Args:
        bar_range: One of BAR_RANGE_SECONDS keys

    Returns:
        Interval in seconds; 60 for an unknown range
    """
    return BAR_RANGE_SECONDS.get(bar_range, DEFAULT_REFRESH_SECONDS)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class ExchangeConfig:
    """Exchange endpoints and credentials."""

    api_url: str = "https://api.lnmarkets.com/v2"
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    api_passphrase: Optional[str] = None
    ws_endpoint: str = "wss://api.lnmarkets.com"
    price_method: str = "v1/public/subscribe"
    price_channel: str = "futures:btc_usd:last-price"
    request_timeout: float = 30.0

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret and self.api_passphrase)

    @classmethod
    def from_env(cls) -> 'ExchangeConfig':
        """Create configuration from environment variables"""
        return cls(
            api_url=os.getenv('LNM_API_URL', cls.api_url),
            api_key=os.getenv('LNM_API_KEY'),
            api_secret=os.getenv('LNM_API_SECRET'),
            api_passphrase=os.getenv('LNM_API_PASSPHRASE'),
            ws_endpoint=os.getenv('LNM_WS_ENDPOINT', cls.ws_endpoint),
            price_method=os.getenv('LNM_PRICE_METHOD', cls.price_method),
            price_channel=os.getenv('LNM_PRICE_CHANNEL', cls.price_channel),
            request_timeout=_env_number('LNM_REQUEST_TIMEOUT', cls.request_timeout, float),
        )


@dataclass
class BotConfig:
    """Complete bot configuration."""

    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    periods: IndicatorPeriods = field(default_factory=IndicatorPeriods)
    signal: SignalSettings = field(default_factory=SignalSettings)
    risk: RiskConfig = field(default_factory=RiskConfig)

    # Data
    bar_range: str = "1"
    history_minutes: int = 60
    include_price_data: bool = False
    include_index_data: bool = False

    # Runtime
    dry_run: bool = False
    market_refresh_seconds: float = 300.0
    channel_capacity: int = 15
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def refresh_interval(self) -> int:
        return refresh_interval_seconds(self.bar_range)

    @classmethod
    def from_env(cls) -> 'BotConfig':
        """Create configuration from environment variables"""
        periods = IndicatorPeriods(
            ma=_env_number('MA_PERIOD', 14, int),
            ema=_env_number('EMA_PERIOD', 12, int),
            bollinger=_env_number('BB_PERIOD', 12, int),
            bollinger_std_dev=_env_number('BB_STD_DEV_MULTIPLIER', 2.0, float),
            rsi=_env_number('RSI_PERIOD', 9, int),
            atr=_env_number('ATR_PERIOD', 7, int),
        )
        signal = SignalSettings(
            weights=SignalWeights(
                bollinger=_env_number('SIGNAL_BOLLINGER_WEIGHT', 0.25, float),
                rsi=_env_number('SIGNAL_RSI_WEIGHT', 0.30, float),
                ma_ema=_env_number('SIGNAL_MA_EMA_WEIGHT', 0.20, float),
                atr=_env_number('SIGNAL_ATR_WEIGHT', 0.25, float),
            ),
            gap_value=_env_number('SIGNAL_GAP_VALUE', 15.0, float),
        )
        risk = RiskConfig(
            risk_per_trade_percent=_env_number('RISK_PER_TRADE_PERCENT', 0.01, float),
            risk_to_reward_ratio=_env_number('RISK_TO_REWARD_RATIO', 0.8, float),
            risk_to_loss_ratio=_env_number('RISK_TO_LOSS_RATIO', 0.75, float),
            trade_gap_seconds=_env_number('TRADE_GAP_SECONDS', 5.0, float),
            leverage=_env_number('LEVERAGE', 20.0, float),
        )
        return cls(
            exchange=ExchangeConfig.from_env(),
            periods=periods,
            signal=signal,
            risk=risk,
            bar_range=os.getenv('BOT_RANGE', '1').strip(),
            history_minutes=_env_number('BOT_HISTORY_MINUTES', 60, int),
            include_price_data=_env_bool('INCLUDE_PRICE_DATA'),
            include_index_data=_env_bool('INCLUDE_INDEX_DATA'),
            dry_run=_env_bool('DRY_RUN'),
            market_refresh_seconds=_env_number('MARKET_REFRESH_SECONDS', 300.0, float),
            channel_capacity=_env_number('CHANNEL_CAPACITY', 15, int),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_file=os.getenv('LOG_FILE') or None,
        )

    def validate(self) -> List[str]:
        """
        Validate configuration values.

        Returns:
            Warnings for suspicious but usable values

        Raises:
            ConfigError: If a value makes the bot unable to run
        """
        warnings: List[str] = []

        if self.bar_range not in BAR_RANGE_SECONDS:
            raise ConfigError(
                f"BOT_RANGE must be one of {', '.join(BAR_RANGE_SECONDS)}, got {self.bar_range!r}"
            )

        for name in ("ma", "ema", "bollinger", "rsi", "atr"):
            if getattr(self.periods, name) <= 0:
                raise ConfigError(f"{name} period must be positive")
        if self.periods.bollinger_std_dev <= 0:
            raise ConfigError("Bollinger Bands std dev multiplier must be positive")

        weights = self.signal.weights
        if min(weights.bollinger, weights.rsi, weights.ma_ema, weights.atr) < 0:
            raise ConfigError("Signal weights must be non-negative")
        if abs(weights.total - 1.0) > WEIGHT_SUM_TOLERANCE:
            warnings.append(f"Signal weights sum to {weights.total:.3f} instead of 1.0")
        if self.signal.gap_value < 0:
            raise ConfigError("Signal gap value must be non-negative")

        if not 0 < self.risk.risk_per_trade_percent <= 1:
            raise ConfigError("RISK_PER_TRADE_PERCENT must be in (0, 1]")
        if self.risk.risk_to_reward_ratio <= 0 or self.risk.risk_to_loss_ratio <= 0:
            raise ConfigError("Risk to reward and risk to loss ratios must be positive")
        if self.risk.trade_gap_seconds < 0:
            raise ConfigError("TRADE_GAP_SECONDS must be non-negative")
        if self.risk.leverage <= 0:
            raise ConfigError("LEVERAGE must be positive")

        if self.history_minutes <= 0:
            raise ConfigError("BOT_HISTORY_MINUTES must be positive")
        if self.channel_capacity <= 0:
            raise ConfigError("CHANNEL_CAPACITY must be positive")
        if self.market_refresh_seconds <= 0:
            raise ConfigError("MARKET_REFRESH_SECONDS must be positive")

        if not self.exchange.has_credentials:
            if self.dry_run:
                warnings.append("Exchange credentials not set - authenticated requests will fail")
            else:
                raise ConfigError("LNM_API_KEY, LNM_API_SECRET and LNM_API_PASSPHRASE must be set")

        for warning in warnings:
            logger.warning(warning)
        return warnings
