"""
Indicator Engine — RSI, MACD, EMA, Bollinger Bands and ATR.

Pure functions over a candle series, recomputed from scratch on every
call. Output is index-aligned with the input: one snapshot per candle,
fields left at 0.0 until their lookback window is filled.
"""

from __future__ import annotations
import math
from typing import List, Sequence
from exchange.models import Candle, IndicatorSnapshot

EMA_PERIOD = 20
MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
RSI_PERIOD = 14
BB_PERIOD = 20
BB_STD_MULT = 2.0
ATR_PERIOD = 14

# Shortest series whose last snapshot has every field defined
WARMUP_CANDLES = max(BB_PERIOD, RSI_PERIOD + 1, ATR_PERIOD + 1)


def ema_series(values: Sequence[float], period: int) -> List[float]:
    """
    EMA seeded at the first value.
    EMA[i] = v[i] * k + EMA[i-1] * (1 - k), k = 2 / (period + 1)
    """
    if not values:
        return []
    k = 2.0 / (period + 1.0)
    out = [0.0] * len(values)
    out[0] = values[0]
    for i in range(1, len(values)):
        out[i] = values[i] * k + out[i - 1] * (1.0 - k)
    return out


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    rs = 100.0 if avg_loss == 0 else avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def rsi_series(closes: Sequence[float], period: int = RSI_PERIOD) -> List[float]:
    """
    Wilder RSI.

    Seed averages are the mean gain/loss over indices 1..period, giving
    the first value at index `period`. After that:
    avg = (avg * (period - 1) + new) / period
    """
    n = len(closes)
    out = [0.0] * n
    if n <= period:
        return out

    gains = [0.0] * n
    losses = [0.0] * n
    for i in range(1, n):
        delta = closes[i] - closes[i - 1]
        if delta > 0:
            gains[i] = delta
        else:
            losses[i] = -delta

    avg_gain = sum(gains[1:period + 1]) / period
    avg_loss = sum(losses[1:period + 1]) / period
    out[period] = _rsi_from_averages(avg_gain, avg_loss)

    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        out[i] = _rsi_from_averages(avg_gain, avg_loss)
    return out


def macd_series(
    closes: Sequence[float],
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
    signal: int = MACD_SIGNAL,
):
    """
    Returns (macd, signal, histogram) lists.
    The signal line is the EMA of the MACD line, re-seeded at MACD[0];
    it stays at zero for series shorter than the signal period.
    """
    n = len(closes)
    ema_fast = ema_series(closes, fast)
    ema_slow = ema_series(closes, slow)
    macd = [ema_fast[i] - ema_slow[i] for i in range(n)]

    if n < signal:
        return macd, [0.0] * n, [0.0] * n

    signal_line = ema_series(macd, signal)
    hist = [macd[i] - signal_line[i] for i in range(n)]
    return macd, signal_line, hist


def bollinger_series(
    closes: Sequence[float],
    period: int = BB_PERIOD,
    mult: float = BB_STD_MULT,
):
    """
    Returns (middle, upper, lower) lists.
    Middle is the simple mean of the window, sigma the population
    standard deviation over the same window.
    """
    n = len(closes)
    middle = [0.0] * n
    upper = [0.0] * n
    lower = [0.0] * n

    for i in range(period - 1, n):
        window = closes[i - period + 1:i + 1]
        mean = sum(window) / period
        variance = sum((c - mean) ** 2 for c in window) / period
        std = math.sqrt(variance)
        middle[i] = mean
        upper[i] = mean + mult * std
        lower[i] = mean - mult * std
    return middle, upper, lower


def true_range_series(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
) -> List[float]:
    """TR[i] = max(H-L, |H-prevC|, |L-prevC|). TR[0] is 0 (no previous close)."""
    n = len(closes)
    tr = [0.0] * n
    for i in range(1, n):
        prev_close = closes[i - 1]
        tr[i] = max(
            highs[i] - lows[i],
            abs(highs[i] - prev_close),
            abs(lows[i] - prev_close),
        )
    return tr


def atr_series(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = ATR_PERIOD,
) -> List[float]:
    """
    ATR[period] = mean(TR[1..period]), then Wilder smoothing:
    ATR[i] = (ATR[i-1] * (period - 1) + TR[i]) / period
    """
    n = len(closes)
    out = [0.0] * n
    if n <= period:
        return out

    tr = true_range_series(highs, lows, closes)
    out[period] = sum(tr[1:period + 1]) / period
    for i in range(period + 1, n):
        out[i] = (out[i - 1] * (period - 1) + tr[i]) / period
    return out


def compute_indicators(candles: Sequence[Candle]) -> List[IndicatorSnapshot]:
    """Full indicator set for a candle series, one snapshot per candle."""
    if not candles:
        return []

    closes = [float(c.close) for c in candles]
    highs = [float(c.high) for c in candles]
    lows = [float(c.low) for c in candles]

    rsi = rsi_series(closes)
    macd, macd_signal, macd_hist = macd_series(closes)
    ema = ema_series(closes, EMA_PERIOD)
    bb_middle, bb_upper, bb_lower = bollinger_series(closes)
    atr = atr_series(highs, lows, closes)

    return [
        IndicatorSnapshot(
            rsi=rsi[i],
            macd=macd[i],
            macd_signal=macd_signal[i],
            macd_hist=macd_hist[i],
            ema=ema[i],
            bb_middle=bb_middle[i],
            bb_upper=bb_upper[i],
            bb_lower=bb_lower[i],
            atr=atr[i],
        )
        for i in range(len(candles))
    ]
