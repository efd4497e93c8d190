"""
Data models for the multi-timeframe bot.
Candles keep exchange prices as Decimal; indicator math and position
bookkeeping run on floats.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Sequence, Union


class Side(Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class Candle:
    """Standard OHLCV candle. Immutable once stored."""
    timestamp: int          # Open time, Unix ms
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    @classmethod
    def from_row(cls, row: Sequence[Union[str, int, float]]) -> "Candle":
        """
        Build a candle from a raw exchange row:
        [openTime, open, high, low, close, volume, ...]
        Numeric fields may arrive as numbers or numeric strings.
        """
        if len(row) < 6:
            raise ValueError(f"candle row has {len(row)} fields, need 6")
        try:
            return cls(
                timestamp=int(Decimal(str(row[0]))),
                open=Decimal(str(row[1])),
                high=Decimal(str(row[2])),
                low=Decimal(str(row[3])),
                close=Decimal(str(row[4])),
                volume=Decimal(str(row[5])),
            )
        except InvalidOperation as e:
            raise ValueError(f"non-numeric candle field in {row!r}") from e

    def to_csv_row(self) -> list:
        return [
            self.timestamp, str(self.open), str(self.high),
            str(self.low), str(self.close), str(self.volume),
        ]


@dataclass
class IndicatorSnapshot:
    """
    Indicator values for one candle index.
    Fields are 0.0 before their lookback window is filled.
    """
    rsi: float = 0.0
    macd: float = 0.0
    macd_signal: float = 0.0
    macd_hist: float = 0.0
    ema: float = 0.0
    bb_middle: float = 0.0
    bb_upper: float = 0.0
    bb_lower: float = 0.0
    atr: float = 0.0


@dataclass(frozen=True)
class RateLimitState:
    """Remaining request budget and reset time. -1 means unknown."""
    remaining: int = -1
    reset_at_ms: int = -1

    @property
    def known(self) -> bool:
        return self.remaining != -1 and self.reset_at_ms != -1


@dataclass
class Position:
    """Single market position. Never partially filled."""
    entry_price: float = 0.0
    quantity: float = 0.0
    open: bool = False

    def unrealized_pnl(self, price: float) -> float:
        if not self.open:
            return 0.0
        return (price - self.entry_price) * self.quantity


@dataclass
class Balances:
    """Available balances for the traded pair."""
    fiat: float = 0.0
    crypto: float = 0.0


@dataclass
class Fill:
    """Result of a completed market order."""
    side: Side
    amount: float           # Crypto quantity bought or sold
    price: float            # Average fill price in fiat
