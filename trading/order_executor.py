"""
Order Executor — Market order placement and balance lookup.

LiveOrderExecutor goes through the exchange API.
SimulatedOrderExecutor keeps an internal fiat/crypto pair and fills at
the reference price.
"""

from __future__ import annotations
from typing import Any, Dict, Optional, TYPE_CHECKING
from exchange.errors import InsufficientBalanceError
from exchange.models import Balances, Fill, Side
import logging

if TYPE_CHECKING:
    from exchange.bitvavo_rest import BitvavoRestClient

logger = logging.getLogger(__name__)


def _check_amount(asset: str, amount: float, available: float):
    """Local precondition, evaluated before any order leaves the process."""
    if amount <= 0 or amount > available:
        raise InsufficientBalanceError(asset, amount, available)


class SimulatedOrderExecutor:
    """Paper trading against internal balances."""

    simulation = True

    def __init__(self, fiat_asset: str, crypto_asset: str, initial_fiat: float = 1000.0):
        self.fiat_asset = fiat_asset
        self.crypto_asset = crypto_asset
        self.initial_fiat = initial_fiat
        self.fiat = initial_fiat
        self.crypto = 0.0

    async def get_balances(self) -> Optional[Balances]:
        return Balances(fiat=self.fiat, crypto=self.crypto)

    async def place_market_order(
        self,
        side: Side,
        amount: float,
        price: float,
        available: Optional[float] = None,
    ) -> Optional[Fill]:
        """
        Buy `amount` fiat worth, or sell `amount` crypto, at `price`.
        `available` is ignored; internal balances are authoritative.
        """
        if price <= 0:
            logger.error("[SIM] No valid price for simulated fill")
            return None

        if side == Side.BUY:
            _check_amount(self.fiat_asset, amount, self.fiat)
            qty = amount / price
            self.fiat -= amount
            self.crypto += qty
            logger.info(f"[SIM] Bought {qty:.8f} {self.crypto_asset} @ {price} for {amount:.2f} {self.fiat_asset}")
            return Fill(side=side, amount=qty, price=price)

        _check_amount(self.crypto_asset, amount, self.crypto)
        self.crypto -= amount
        self.fiat += amount * price
        logger.info(f"[SIM] Sold {amount:.8f} {self.crypto_asset} @ {price}")
        return Fill(side=side, amount=amount, price=price)

    def total_value(self, price: float) -> float:
        return self.fiat + self.crypto * price

    def performance_pct(self, price: float) -> float:
        if self.initial_fiat <= 0:
            return 0.0
        return (self.total_value(price) / self.initial_fiat - 1.0) * 100.0


class LiveOrderExecutor:
    """Real orders through the REST client."""

    simulation = False

    def __init__(self, client: "BitvavoRestClient", market: str):
        self.client = client
        self.market = market
        parts = market.split("-")
        self.crypto_asset = parts[0]
        self.fiat_asset = parts[1] if len(parts) > 1 else ""

    async def get_balances(self) -> Optional[Balances]:
        """Balances for the traded pair. None when the lookup failed."""
        balances = await self.client.get_balances()
        if balances is None:
            return None
        return Balances(
            fiat=balances.get(self.fiat_asset, 0.0),
            crypto=balances.get(self.crypto_asset, 0.0),
        )

    async def place_market_order(
        self,
        side: Side,
        amount: float,
        price: float,
        available: Optional[float] = None,
    ) -> Optional[Fill]:
        """
        Buy `amount` fiat worth, or sell `amount` crypto.
        Returns None when the exchange did not confirm the order.
        """
        asset = self.fiat_asset if side == Side.BUY else self.crypto_asset
        _check_amount(asset, amount, amount if available is None else available)

        if side == Side.BUY:
            response = await self.client.place_order(self.market, side, amount_quote=amount)
        else:
            response = await self.client.place_order(self.market, side, amount=amount)

        if response is None:
            logger.error(f"[EXEC] {self.market}: {side.value} order not confirmed")
            return None

        logger.info(f"[EXEC] Order placed: {response}")
        return self._fill_from_response(side, amount, price, response)

    @staticmethod
    def _fill_from_response(side: Side, amount: float, price: float, response: Dict[str, Any]) -> Fill:
        """
        Prefer the exchange's reported fill; fall back to the reference price.
        """
        try:
            filled = float(response.get("filledAmount", 0) or 0)
            filled_quote = float(response.get("filledAmountQuote", 0) or 0)
        except (TypeError, ValueError):
            filled = filled_quote = 0.0

        if filled > 0 and filled_quote > 0:
            return Fill(side=side, amount=filled, price=filled_quote / filled)

        qty = amount / price if side == Side.BUY and price > 0 else amount
        return Fill(side=side, amount=qty, price=price)
