"""
Signal Engine — Multi-timeframe buy/sell evaluation.

A buy needs every timeframe oversold below its lower band with a rising
MACD histogram; a sell needs every timeframe overbought above its upper
band with a falling histogram.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence, TYPE_CHECKING
from core.indicators import WARMUP_CANDLES
from exchange.models import IndicatorSnapshot
import logging

if TYPE_CHECKING:
    from config import StrategyConfig

logger = logging.getLogger(__name__)


@dataclass
class TimeframeView:
    """Latest indicator snapshot and reference price for one interval."""
    interval: str
    snapshot: IndicatorSnapshot
    price: float


@dataclass
class SignalDecision:
    buy: bool = False
    sell: bool = False


def latest_view(
    interval: str,
    snapshots: Sequence[IndicatorSnapshot],
    price: float,
) -> Optional[TimeframeView]:
    """
    View on the newest snapshot, or None while the series is still
    inside the indicator warm-up (fields there are zero, not real values).
    """
    if len(snapshots) < WARMUP_CANDLES:
        return None
    return TimeframeView(interval=interval, snapshot=snapshots[-1], price=price)


class SignalEvaluator:
    """Combines per-timeframe conditions into one decision."""

    def __init__(self, rsi_oversold: float = 30.0, rsi_overbought: float = 70.0):
        self.rsi_oversold = rsi_oversold
        self.rsi_overbought = rsi_overbought

    @classmethod
    def from_config(cls, config: "StrategyConfig") -> "SignalEvaluator":
        return cls(rsi_oversold=config.rsi_oversold, rsi_overbought=config.rsi_overbought)

    def is_buy(self, view: TimeframeView) -> bool:
        s = view.snapshot
        return view.price < s.bb_lower and s.rsi < self.rsi_oversold and s.macd_hist > 0

    def is_sell(self, view: TimeframeView) -> bool:
        s = view.snapshot
        return view.price > s.bb_upper and s.rsi > self.rsi_overbought and s.macd_hist < 0

    def evaluate(self, views: Sequence[Optional[TimeframeView]]) -> SignalDecision:
        """
        Both flags are the AND over all timeframes.
        A missing view (not enough history) yields no signal at all.
        """
        if not views or any(v is None for v in views):
            return SignalDecision()

        for v in views:
            s = v.snapshot
            logger.info(
                f"[SIGNAL] {v.interval} -> RSI:{s.rsi:.2f} MACD Hist:{s.macd_hist:.4f} "
                f"BB Lower:{s.bb_lower:.2f} BB Upper:{s.bb_upper:.2f}"
            )

        return SignalDecision(
            buy=all(self.is_buy(v) for v in views),
            sell=all(self.is_sell(v) for v in views),
        )
