"""
Trade Coordinator — One polling cycle end to end.

fetch candles -> indicators -> multi-timeframe signal -> order,
then persistence and status reporting. Owns the position and the
cumulative P/L ledger.

States: FLAT -> OPEN (successful buy) -> FLAT (successful sell).
Buys are only considered while FLAT, sells only while OPEN.
"""

from __future__ import annotations
import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING
from core.candle_store import CandleStore
from core.indicators import compute_indicators
from core.signal_engine import SignalEvaluator, latest_view
from exchange.errors import AuthError, InsufficientBalanceError, PersistenceError
from exchange.models import Balances, IndicatorSnapshot, Position, Side
from storage.files import CandleCsvWriter, ProfitLedger, TradeLog
import logging

if TYPE_CHECKING:
    from config import BotConfig
    from exchange.bitvavo_rest import BitvavoRestClient
    from notifications.telegram import TelegramNotifier

logger = logging.getLogger(__name__)


class CoordinatorState(Enum):
    FLAT = "FLAT"
    OPEN = "OPEN"


class TradeCoordinator:
    """Runs the polling loop and the position state machine."""

    def __init__(
        self,
        config: "BotConfig",
        client: "BitvavoRestClient",
        executor: Any,
        store: Optional[CandleStore] = None,
        evaluator: Optional[SignalEvaluator] = None,
        ledger: Optional[ProfitLedger] = None,
        trade_log: Optional[TradeLog] = None,
        csv_writer: Optional[CandleCsvWriter] = None,
        notifier: Optional["TelegramNotifier"] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.client = client
        self.executor = executor
        self.market = config.trading.market
        self.simulation = config.trading.simulation
        self.store = store or CandleStore(config.strategy.max_stored_candles)
        self.evaluator = evaluator or SignalEvaluator.from_config(config.strategy)
        self.ledger = ledger or ProfitLedger(config.storage.ledger_path(self.simulation))
        self.trade_log = trade_log or TradeLog(
            config.storage.trade_log_path(self.simulation), self.simulation,
        )
        self.csv_writer = csv_writer or CandleCsvWriter(config.storage.data_dir, self.market)
        self.notifier = notifier

        self.position = Position()
        self.total_pnl = self.ledger.load()
        # interval -> snapshots aligned with the stored candles
        self.indicators: Dict[str, List[IndicatorSnapshot]] = {}

        self._sleep = sleep
        self._monotonic = monotonic
        self._last_csv_save = monotonic()
        self._running = False
        self._stop_event = asyncio.Event()

        logger.info(
            f"[BOT] {self.market} | Mode: {'SIMULATION' if self.simulation else 'REAL'} | "
            f"Max position: {config.trading.max_position_size * 100:.1f}% | "
            f"Total P/L: {self.total_pnl:.2f}"
        )

    @property
    def state(self) -> CoordinatorState:
        return CoordinatorState.OPEN if self.position.open else CoordinatorState.FLAT

    # ==================== Run Loop ====================

    async def run(self, max_cycles: Optional[int] = None):
        """
        Poll until stop() is called (or max_cycles cycles have run).
        A failing cycle is logged and the loop carries on; AuthError ends it.
        Returns at once if stop() was already requested.
        """
        if self._stop_event.is_set():
            logger.info("[BOT] Stop requested before polling started")
            return
        self._running = True
        cycles = 0

        while self._running:
            logger.info("*#" * 30)
            try:
                completed = await self.run_cycle()
            except AuthError:
                logger.critical("[BOT] Authentication rejected by the exchange. Stopping.")
                self._running = False
                raise
            except Exception as e:
                logger.error(f"[BOT] Cycle error: {e}", exc_info=True)
                completed = True

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            if not self._running:
                break

            if completed:
                delay = self.config.trading.poll_interval_sec
                logger.info(f"[BOT] Next update in {delay:g} seconds...")
            else:
                delay = self.config.trading.ticker_retry_sec
                logger.info(f"[BOT] Failed to fetch ticker price. Retrying in {delay:g} seconds...")
            await self._wait(delay)

        self._running = False
        logger.info(f"[BOT] Polling stopped after {cycles} cycles")

    def stop(self):
        """Finish the in-flight cycle, then leave the loop."""
        self._running = False
        self._stop_event.set()

    async def _wait(self, seconds: float):
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ==================== Cycle ====================

    async def run_cycle(self) -> bool:
        """
        One pass through the pipeline.
        Returns False when no ticker price was available.
        """
        await self.refresh_candles()

        price = await self.client.get_ticker_price(self.market)
        if not price:
            logger.warning(f"[BOT] {self.market}: No ticker price this cycle")
            return False

        balances = await self.executor.get_balances()
        if balances is None:
            logger.warning(f"[BOT] {self.market}: Balance lookup failed, no trading this cycle")
        else:
            logger.info(
                f"[BOT] Market: {self.market} | Ticker Price: {price} | "
                f"Fiat Balance ({self.config.trading.fiat_asset}): {balances.fiat:.2f} | "
                f"Crypto Balance ({self.config.trading.crypto_asset}): {balances.crypto:.8f}"
            )
            self._log_recent_candles(self.config.strategy.slow_interval, 3)
            self._log_potential_profit(price)
            await self.evaluate_and_act(price, balances)

        self._maybe_save_candles()
        self._log_report(price)
        return True

    async def refresh_candles(self):
        """Fetch every interval, merge, and recompute indicators where needed."""
        strategy = self.config.strategy
        for interval in strategy.intervals:
            candles = await self.client.get_candles(self.market, interval, strategy.candle_limit)
            appended = self.store.merge(interval, candles)
            if candles:
                logger.info(
                    f"[DATA] Fetched {len(candles)} candles for {self.market} ({interval}), "
                    f"stored {self.store.size(interval)} total"
                )
            else:
                logger.warning(f"[DATA] No valid candles for {self.market} ({interval})")

            if appended or (interval not in self.indicators and self.store.size(interval)):
                self.indicators[interval] = compute_indicators(self.store.get(interval))

    async def evaluate_and_act(self, price: float, balances: Balances):
        views = [
            latest_view(interval, self.indicators.get(interval, []), price)
            for interval in self.config.strategy.signal_intervals
        ]
        if any(v is None for v in views):
            logger.info("[SIGNAL] Not enough candle history on every timeframe yet")
            return

        decision = self.evaluator.evaluate(views)
        trading = self.config.trading

        if self.state == CoordinatorState.FLAT:
            # Holdings the bot did not buy itself block new entries
            if (balances.crypto <= trading.dust_threshold
                    and balances.fiat > trading.min_fiat_balance and decision.buy):
                await self._buy(price, balances)
        elif balances.crypto > trading.dust_threshold and decision.sell:
            await self._sell(price, balances)

    # ==================== Orders ====================

    async def _buy(self, price: float, balances: Balances):
        size = self.config.trading.max_position_size * balances.fiat
        logger.info(f"[TRADE] Buy signal detected on all timeframes! Size: {size:.2f}")

        try:
            fill = await self.executor.place_market_order(Side.BUY, size, price, available=balances.fiat)
        except InsufficientBalanceError as e:
            logger.warning(f"[TRADE] Buy skipped: {e}")
            return
        if fill is None:
            logger.warning("[TRADE] Buy not filled. Staying flat, retry next cycle")
            return

        self.position = Position(entry_price=fill.price, quantity=fill.amount, open=True)
        logger.info(f"[TRADE] BUY {fill.amount:.8f} @ {fill.price} -> OPEN")
        self._record_trade(Side.BUY, fill.amount, fill.price)
        if self.notifier:
            await self.notifier.send_buy(self.market, fill.amount, fill.price, self.simulation)

    async def _sell(self, price: float, balances: Balances):
        # Only what the open position bought, never other holdings
        quantity = min(self.position.quantity, balances.crypto)
        logger.info(f"[TRADE] Sell signal detected on all timeframes! Amount: {quantity:.8f}")

        try:
            fill = await self.executor.place_market_order(Side.SELL, quantity, price, available=balances.crypto)
        except InsufficientBalanceError as e:
            logger.warning(f"[TRADE] Sell skipped: {e}")
            return
        if fill is None:
            logger.warning("[TRADE] Sell not filled. Position stays open, retry next cycle")
            return

        pnl = (fill.price - self.position.entry_price) * min(fill.amount, self.position.quantity)
        self.total_pnl += pnl
        try:
            self.ledger.save(self.total_pnl)
        except PersistenceError as e:
            logger.error(f"[LEDGER] {e}")

        self.position = Position()
        logger.info(f"[TRADE] SELL {fill.amount:.8f} @ {fill.price} | P/L: {pnl:.2f} -> FLAT")
        self._record_trade(Side.SELL, fill.amount, fill.price, pnl)
        if self.notifier:
            await self.notifier.send_sell(
                self.market, fill.amount, fill.price, pnl, self.total_pnl, self.simulation,
            )

    def _record_trade(self, side: Side, amount: float, price: float, pnl: Optional[float] = None):
        try:
            self.trade_log.append(side, amount, price, pnl, self.total_pnl)
        except PersistenceError as e:
            logger.error(f"[TRADELOG] {e}")

    # ==================== Persistence & Reporting ====================

    def _maybe_save_candles(self):
        now = self._monotonic()
        if now - self._last_csv_save < self.config.storage.csv_save_interval_min * 60:
            return
        for interval in self.config.strategy.intervals:
            try:
                self.csv_writer.append(interval, self.store.get(interval))
            except PersistenceError as e:
                logger.error(f"[CSV] {e}")
        self._last_csv_save = now

    def _log_recent_candles(self, interval: str, count: int):
        snapshots = self.indicators.get(interval, [])
        size = self.store.size(interval)
        if not size or len(snapshots) != size:
            logger.info(f"[DATA] No candle data available for {interval}.")
            return

        candles = self.store.tail(interval, count)
        for candle, ind in zip(candles, snapshots[-len(candles):]):
            opened = datetime.fromtimestamp(candle.timestamp / 1000, tz=timezone.utc)
            logger.info(
                f"[DATA] {interval} {opened:%Y-%m-%d %H:%M:%S} | Close: {candle.close} | "
                f"RSI: {ind.rsi:.2f} | MACD: {ind.macd:.2f} | EMA: {ind.ema:.2f} | "
                f"BB Upper: {ind.bb_upper:.2f} | ATR: {ind.atr:.2f}"
            )

    def _log_potential_profit(self, price: float):
        if not self.position.open or self.position.entry_price <= 0:
            logger.info("[BOT] No open position.")
            return
        pnl = self.position.unrealized_pnl(price)
        pct = (price - self.position.entry_price) / self.position.entry_price * 100
        logger.info(
            f"[BOT] Potential Profit/Loss if sold now: {pnl:.2f} "
            f"{self.config.trading.fiat_asset} ({pct:.2f}%)"
        )

    def _log_report(self, price: float):
        limits = self.client.rate_limiter.snapshot()
        if limits.known:
            reset_at = datetime.fromtimestamp(limits.reset_at_ms / 1000, tz=timezone.utc)
            logger.info(
                f"[RATE] Remaining: {limits.remaining} | Reset At: {reset_at:%Y-%m-%d %H:%M:%S} UTC"
            )

        logger.info(f"[BOT] Total Profit/Loss: {self.total_pnl:.2f} {self.config.trading.fiat_asset}")

        if self.simulation and hasattr(self.executor, "performance_pct"):
            logger.info(
                f"[SIM] Performance: {self.executor.performance_pct(price):.2f}% | "
                f"Current Total Value: {self.executor.total_value(price):.2f} "
                f"{self.config.trading.fiat_asset}"
            )
