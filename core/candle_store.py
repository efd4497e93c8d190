"""
Candle Store — Append-only OHLCV history per interval.
Repeated polling windows overlap; only strictly newer candles are kept.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional
from exchange.models import Candle
import logging

logger = logging.getLogger(__name__)


class CandleStore:
    """
    Owns every candle series.
    Invariant: timestamps strictly increase within an interval.
    With max_len set, the oldest candles are trimmed once a series outgrows it.
    """

    def __init__(self, max_len: Optional[int] = None):
        self.max_len = max_len
        # interval -> candles, oldest first
        self._series: Dict[str, List[Candle]] = {}

    def merge(self, interval: str, incoming: Iterable[Candle]) -> int:
        """
        Append candles newer than the last stored one.
        Incoming candles must be sorted oldest-first.
        Returns the number of appended candles.
        """
        series = self._series.setdefault(interval, [])
        last_ts = series[-1].timestamp if series else None

        appended = 0
        for candle in incoming:
            if last_ts is not None and candle.timestamp <= last_ts:
                continue
            series.append(candle)
            last_ts = candle.timestamp
            appended += 1

        if self.max_len and len(series) > self.max_len:
            del series[:len(series) - self.max_len]

        if appended:
            logger.debug(f"[STORE] {interval}: +{appended} candles, {len(series)} total")
        return appended

    def get(self, interval: str) -> List[Candle]:
        """Stored series for an interval (empty if none)."""
        return list(self._series.get(interval, []))

    def tail(self, interval: str, count: int) -> List[Candle]:
        """Newest `count` candles, oldest first."""
        if count <= 0:
            return []
        return self._series.get(interval, [])[-count:]

    def last_timestamp(self, interval: str) -> Optional[int]:
        series = self._series.get(interval)
        return series[-1].timestamp if series else None

    def size(self, interval: str) -> int:
        return len(self._series.get(interval, []))

    def intervals(self) -> List[str]:
        return list(self._series.keys())
