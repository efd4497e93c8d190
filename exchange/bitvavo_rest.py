"""
Bitvavo V2 REST API Client.
Handles authentication, rate limit tracking, retry with exponential
backoff, and the endpoints the bot needs.
"""

from __future__ import annotations
import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlparse
import aiohttp
import logging

from config import RetryConfig
from exchange.errors import (
    AuthError,
    HttpStatusError,
    ParseError,
    RateLimitedError,
    RetryableError,
    TransportError,
)
from exchange.models import Candle, Side
from exchange.rate_limiter import RateLimiter
from exchange.signer import sign

logger = logging.getLogger(__name__)

FATAL_STATUSES = (401, 403)


def format_amount(value: float) -> str:
    """Plain decimal string without exponent or trailing zeros."""
    text = f"{value:.8f}".rstrip("0").rstrip(".")
    return text or "0"


class BitvavoRestClient:
    """Async Bitvavo REST wrapper with bounded retry."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        retry: Optional[RetryConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        timeout_sec: float = 30.0,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.retry = retry or RetryConfig()
        self.rate_limiter = rate_limiter or RateLimiter()
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._clock = clock
        self._timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._path_prefix = urlparse(self.base_url).path.rstrip("/")

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or (self._owns_session and self._session.closed):
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    def _auth_headers(self, timestamp: int, signature: str) -> Dict[str, str]:
        return {
            "Bitvavo-Access-Key": self.api_key,
            "Bitvavo-Access-Timestamp": str(timestamp),
            "Bitvavo-Access-Signature": signature,
            "Content-Type": "application/json",
        }

    async def request(self, endpoint: str, method: str = "GET", body: str = "") -> Optional[Any]:
        """
        Make a signed API request with retry.

        Returns the parsed JSON payload, or None once every attempt failed.
        Raises AuthError on 401/403 without retrying.
        """
        max_attempts = self.retry.max_attempts

        for attempt in range(1, max_attempts + 1):
            await self._respect_rate_limit()
            try:
                return await self._attempt(endpoint, method, body)
            except AuthError as e:
                logger.error(f"[REST] {method} {endpoint}: Fatal HTTP error {e.status}. Not retrying.")
                raise
            except RetryableError as e:
                delay = self.retry.base_delay_sec * (2 ** (attempt - 1))
                logger.warning(
                    f"[REST] {method} {endpoint}: {type(e).__name__}: {e}. "
                    f"Attempt {attempt} of {max_attempts}. Retrying after {delay:g}s"
                )
                await self._sleep(delay)

        logger.error(f"[REST] {method} {endpoint}: Max retries reached. Returning empty payload.")
        return None

    async def _attempt(self, endpoint: str, method: str, body: str) -> Any:
        """Single HTTP exchange. Raises a classified ExchangeError on failure."""
        session = await self._get_session()
        url = f"{self.base_url}/{endpoint}"
        timestamp = int(self._clock() * 1000)
        path = f"{self._path_prefix}/{endpoint}"
        signature = sign(self.api_secret, timestamp, method, path, body)
        headers = self._auth_headers(timestamp, signature)

        try:
            async with session.request(method, url, headers=headers, data=body or None) as resp:
                self.rate_limiter.update_from_headers(resp.headers)
                status = resp.status
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__, endpoint) from e

        if status == 429:
            raise RateLimitedError("HTTP 429 Too Many Requests", endpoint, status)
        if status in FATAL_STATUSES:
            raise AuthError(f"HTTP {status}: {text[:200]}", endpoint, status)
        if not 200 <= status < 300:
            raise HttpStatusError(f"HTTP {status}: {text[:200]}", endpoint, status)

        try:
            return json.loads(text)
        except ValueError as e:
            raise ParseError(f"JSON parse error: {e}. Response: {text[:200]}", endpoint, status) from e

    async def _respect_rate_limit(self):
        delay = self.rate_limiter.throttle_delay(
            int(self._clock() * 1000), self.retry.rate_limit_floor,
        )
        if delay > 0:
            logger.warning(f"[RATE] Budget below {self.retry.rate_limit_floor}. Waiting {delay:.1f}s for reset")
            await self._sleep(delay)

    # ==================== Public Endpoints ====================

    async def get_server_time(self) -> Optional[int]:
        """Server time in Unix ms."""
        data = await self.request("time")
        if isinstance(data, dict) and "time" in data:
            return int(data["time"])
        return None

    async def get_candles(self, market: str, interval: str, limit: int = 50) -> List[Candle]:
        """
        Get candle history for one interval, oldest first.
        Rows that cannot be parsed are skipped.
        """
        data = await self.request(f"{market}/candles?interval={interval}&limit={limit}")
        if not isinstance(data, list):
            if data is not None:
                logger.warning(f"[REST] {market} ({interval}): Unexpected candle payload: {str(data)[:200]}")
            return []

        candles = []
        for row in data:
            if not isinstance(row, (list, tuple)):
                logger.warning(f"[REST] Bad candle row: {row!r}")
                continue
            try:
                candles.append(Candle.from_row(row))
            except ValueError as e:
                logger.warning(f"[REST] Bad candle row: {row!r}: {e}")
        candles.sort(key=lambda c: c.timestamp)
        return candles

    async def get_ticker_price(self, market: str) -> Optional[float]:
        data = await self.request(f"ticker/price?market={market}")
        if isinstance(data, dict) and "price" in data:
            try:
                return float(data["price"])
            except (TypeError, ValueError):
                logger.warning(f"[REST] {market}: Bad ticker price {data['price']!r}")
        return None

    # ==================== Account Endpoints ====================

    async def get_balances(self) -> Optional[Dict[str, float]]:
        """Available balance per asset symbol. None when the call failed."""
        data = await self.request("balance")
        if not isinstance(data, list):
            return None
        balances: Dict[str, float] = {}
        for entry in data:
            if not isinstance(entry, dict) or "symbol" not in entry:
                continue
            try:
                balances[entry["symbol"]] = float(entry.get("available", 0))
            except (TypeError, ValueError):
                logger.warning(f"[REST] Bad balance entry: {entry!r}")
        return balances

    async def place_order(
        self,
        market: str,
        side: Side,
        amount_quote: Optional[float] = None,
        amount: Optional[float] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Place a market order.
        Buys are sized in fiat (amountQuote), sells in the asset (amount).
        """
        order: Dict[str, Any] = {
            "market": market,
            "side": side.value,
            "orderType": "market",
        }
        if side == Side.BUY:
            order["amountQuote"] = format_amount(amount_quote or 0.0)
        else:
            order["amount"] = format_amount(amount or 0.0)

        logger.info(f"[ORDER] Placing: {side.value} {market} {order.get('amountQuote') or order.get('amount')}")
        data = await self.request("order", "POST", json.dumps(order))
        if isinstance(data, dict) and data:
            return data
        return None
