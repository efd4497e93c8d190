"""
Multi-timeframe Trading Bot — Main Orchestrator.
Builds the components, checks the exchange connection, runs the
polling loop and shuts down cleanly on SIGINT/SIGTERM.
"""

from __future__ import annotations
import asyncio
import os
import signal
import sys
import time
import logging

from config import BotConfig
from exchange.bitvavo_rest import BitvavoRestClient
from exchange.errors import AuthError
from exchange.rate_limiter import RateLimiter
from notifications.telegram import TelegramNotifier
from trading.coordinator import TradeCoordinator
from trading.order_executor import LiveOrderExecutor, SimulatedOrderExecutor

logger = logging.getLogger(__name__)


def setup_logging(config: BotConfig):
    os.makedirs(config.storage.data_dir, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(config.storage.data_dir, "bot.log")),
        ],
    )


class Bot:
    """Main bot orchestrator."""

    def __init__(self, config: BotConfig):
        self.config = config

        self.rate_limiter = RateLimiter()
        self.client = BitvavoRestClient(
            api_key=config.exchange.api_key,
            api_secret=config.exchange.api_secret,
            base_url=config.exchange.base_url,
            retry=config.retry,
            rate_limiter=self.rate_limiter,
            timeout_sec=config.exchange.request_timeout_sec,
        )
        self.notifier = TelegramNotifier(
            bot_token=config.notifications.telegram_bot_token,
            chat_id=config.notifications.telegram_chat_id,
            enabled=config.notifications.enabled,
        )

        trading = config.trading
        if trading.simulation:
            executor = SimulatedOrderExecutor(
                fiat_asset=trading.fiat_asset,
                crypto_asset=trading.crypto_asset,
                initial_fiat=trading.sim_initial_fiat,
            )
        else:
            executor = LiveOrderExecutor(self.client, trading.market)

        self.coordinator = TradeCoordinator(
            config=config,
            client=self.client,
            executor=executor,
            notifier=self.notifier,
        )

    async def check_clock(self):
        """Warn when the local clock drifts from the exchange clock."""
        server_time = await self.client.get_server_time()
        if server_time is None:
            logger.warning("[BOOT] Failed to fetch server time. Please check your API connection.")
            return

        drift = abs(server_time - int(time.time() * 1000))
        if drift > self.config.exchange.max_clock_drift_ms:
            logger.warning(f"[BOOT] Local time is out of sync with server time by {drift} ms.")
        else:
            logger.info("[BOOT] Time is properly synchronized with the server.")

    async def start(self):
        logger.info("=" * 60)
        logger.info("   MULTI-TIMEFRAME TRADING BOT — STARTING")
        logger.info("=" * 60)

        await self.check_clock()
        await self.notifier.send_bot_status(
            f"Started ✅\nMarket: {self.config.trading.market}\n"
            f"Mode: {'SIMULATION' if self.config.trading.simulation else 'REAL'}"
        )
        await self.coordinator.run()

    def request_stop(self):
        self.coordinator.stop()

    async def close(self):
        """Release network resources."""
        await self.client.close()
        await self.notifier.send_bot_status("Stopped 🔴")
        await self.notifier.close()
        logger.info("[SHUTDOWN] Complete.")


async def main():
    """Entry point."""
    config = BotConfig.from_env()
    setup_logging(config)

    if not config.exchange.api_key or not config.exchange.api_secret:
        logger.critical("BITVAVO_API_KEY and BITVAVO_API_SECRET must be set!")
        sys.exit(1)

    if not 0 < config.trading.max_position_size <= 1:
        logger.critical("MAX_POSITION_PCT must be between 0 and 100")
        sys.exit(1)

    bot = Bot(config)

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}. Finishing current cycle...")
            bot.request_stop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

    exit_code = 0
    try:
        await bot.start()
    except AuthError as e:
        logger.critical(f"Invalid API credentials: {e}")
        exit_code = 1
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        exit_code = 1
    finally:
        await bot.close()

    if exit_code:
        sys.exit(exit_code)


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
