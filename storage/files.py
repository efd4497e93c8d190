"""
File Storage Layer.
Cumulative P/L ledger, human-readable trade log and per-interval CSV
candle dumps. Written only from the polling loop.
"""

from __future__ import annotations
import csv
import os
from datetime import datetime
from typing import Dict, Iterable, Optional
from exchange.errors import PersistenceError
from exchange.models import Candle, Side
import logging

logger = logging.getLogger(__name__)


def _ensure_parent(path: str):
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


class ProfitLedger:
    """Single-scalar file holding the cumulative profit/loss."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> float:
        """Stored cumulative P/L, 0.0 when the file does not exist yet."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = f.read().strip()
        except FileNotFoundError:
            return 0.0
        except OSError as e:
            raise PersistenceError(f"cannot read ledger {self.path}: {e}") from e

        if not raw:
            return 0.0
        try:
            return float(raw)
        except ValueError:
            logger.warning(f"[LEDGER] {self.path} holds {raw!r}, starting from 0")
            return 0.0

    def save(self, total: float):
        """Overwrite the file with the new cumulative P/L."""
        try:
            _ensure_parent(self.path)
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(repr(float(total)))
        except OSError as e:
            raise PersistenceError(f"cannot write ledger {self.path}: {e}") from e


class TradeLog:
    """Append-only, one line per executed trade."""

    def __init__(self, path: str, simulation: bool):
        self.path = path
        self.mode = "[SIMULATION]" if simulation else "[REAL]"

    def format_line(
        self,
        side: Side,
        amount: float,
        price: float,
        pnl: Optional[float] = None,
        total_pnl: Optional[float] = None,
        when: Optional[datetime] = None,
    ) -> str:
        stamp = (when or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
        line = (
            f"{self.mode} [{stamp}] {side.value.upper()} "
            f"| Amount: {amount:.8f} | Price: {price:.8g}"
        )
        if side == Side.SELL:
            line += f" | Profit/Loss: {pnl or 0.0:.2f} | Total Profit/Loss: {total_pnl or 0.0:.2f}"
        return line

    def append(self, side: Side, amount: float, price: float, pnl: Optional[float] = None,
               total_pnl: Optional[float] = None, when: Optional[datetime] = None):
        line = self.format_line(side, amount, price, pnl, total_pnl, when)
        try:
            _ensure_parent(self.path)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            raise PersistenceError(f"unable to open {self.path} for writing: {e}") from e


class CandleCsvWriter:
    """
    Appends OHLCV rows to {market}_{interval}_candles.csv.
    Resumes after the newest timestamp already in the file.
    """

    def __init__(self, data_dir: str, market: str):
        self.data_dir = data_dir
        self.market = market
        # interval -> last saved open time
        self._last_saved: Dict[str, int] = {}

    def path(self, interval: str) -> str:
        return os.path.join(self.data_dir, f"{self.market}_{interval}_candles.csv")

    def last_saved(self, interval: str) -> int:
        if interval not in self._last_saved:
            self._last_saved[interval] = self._read_last_timestamp(self.path(interval))
        return self._last_saved[interval]

    def append(self, interval: str, candles: Iterable[Candle]) -> int:
        """Write candles newer than the last saved one. Returns rows written."""
        last = self.last_saved(interval)
        path = self.path(interval)
        written = 0
        try:
            _ensure_parent(path)
            with open(path, "a", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                for candle in candles:
                    if candle.timestamp <= last:
                        continue
                    writer.writerow(candle.to_csv_row())
                    last = candle.timestamp
                    written += 1
        except OSError as e:
            raise PersistenceError(f"failed to open {path} for writing: {e}") from e
        finally:
            self._last_saved[interval] = last

        if written:
            logger.info(f"[CSV] Appended {written} new candles for {interval} to {path}")
        return written

    @staticmethod
    def _read_last_timestamp(path: str) -> int:
        last = 0
        try:
            with open(path, "r", newline="", encoding="utf-8") as f:
                for row in csv.reader(f):
                    if not row:
                        continue
                    try:
                        last = max(last, int(row[0]))
                    except ValueError:
                        continue
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise PersistenceError(f"cannot read {path}: {e}") from e
        return last
