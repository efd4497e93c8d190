"""
Multi-timeframe Bot — Configuration
All tunable parameters in one place.
"""

import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv


@dataclass
class ExchangeConfig:
    api_key: str = ""
    api_secret: str = ""
    base_url: str = "https://api.bitvavo.com/v2"
    request_timeout_sec: float = 30.0
    max_clock_drift_ms: int = 2000      # Warn above this on startup


@dataclass
class RetryConfig:
    max_attempts: int = 5               # Total attempts per request
    base_delay_sec: float = 1.0         # Doubles after every failed attempt
    rate_limit_floor: int = 0           # Hold requests below this budget (0 = off)


@dataclass
class StrategyConfig:
    intervals: Tuple[str, ...] = ("1m", "5m", "15m", "1h")
    fast_interval: str = "5m"
    medium_interval: str = "15m"
    slow_interval: str = "1h"
    candle_limit: int = 50              # Candles fetched per interval per cycle
    max_stored_candles: int = 1000      # Per interval; older candles are dropped (0 = unbounded)
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0

    @property
    def signal_intervals(self) -> Tuple[str, str, str]:
        return (self.fast_interval, self.medium_interval, self.slow_interval)


@dataclass
class TradingConfig:
    market: str = "BTC-EUR"
    simulation: bool = True             # Paper mode: internal balances, no real orders
    max_position_size: float = 0.25     # Fraction of fiat balance per buy
    min_fiat_balance: float = 50.0      # Buy only above this
    dust_threshold: float = 0.00001     # Sell only above this crypto balance
    sim_initial_fiat: float = 1000.0
    poll_interval_sec: float = 10.0
    ticker_retry_sec: float = 5.0       # Wait after a cycle without a ticker price

    @property
    def crypto_asset(self) -> str:
        return self.market.split("-")[0]

    @property
    def fiat_asset(self) -> str:
        parts = self.market.split("-")
        return parts[1] if len(parts) > 1 else ""


@dataclass
class StorageConfig:
    data_dir: str = "./data"
    csv_save_interval_min: float = 10.0

    def trade_log_path(self, simulation: bool) -> str:
        name = "sim_trades.log" if simulation else "trades.log"
        return os.path.join(self.data_dir, name)

    def ledger_path(self, simulation: bool) -> str:
        name = "sim_log.txt" if simulation else "log.txt"
        return os.path.join(self.data_dir, name)


@dataclass
class NotificationConfig:
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    enabled: bool = True


@dataclass
class BotConfig:
    exchange: ExchangeConfig = field(default_factory=ExchangeConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    trading: TradingConfig = field(default_factory=TradingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Load config with environment variable (and .env) overrides."""
        load_dotenv()
        config = cls()
        config.exchange.api_key = os.getenv("BITVAVO_API_KEY", "")
        config.exchange.api_secret = os.getenv("BITVAVO_API_SECRET", "")
        config.exchange.base_url = os.getenv("BITVAVO_BASE_URL", config.exchange.base_url)
        config.trading.market = os.getenv("BOT_MARKET", config.trading.market).upper()
        config.trading.simulation = os.getenv("SIMULATION", "true").lower() == "true"
        # Entered as a percentage, e.g. 25 for 25%
        config.trading.max_position_size = float(os.getenv("MAX_POSITION_PCT", "25")) / 100.0
        config.storage.data_dir = os.getenv("DATA_DIR", config.storage.data_dir)
        config.notifications.telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN", "")
        config.notifications.telegram_chat_id = os.getenv("TELEGRAM_CHAT_ID", "")
        config.log_level = os.getenv("LOG_LEVEL", "INFO")
        return config
