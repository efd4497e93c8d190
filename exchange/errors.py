"""
Error taxonomy for the API layer and local trading preconditions.

Retryable API failures are absorbed by the client's retry loop.
AuthError is fatal and propagates to the process boundary.
"""

from __future__ import annotations
from typing import Optional


class BotError(Exception):
    """Base class for all bot errors."""


class ExchangeError(BotError):
    """Failure while talking to the exchange API."""

    def __init__(self, message: str, endpoint: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status


class RetryableError(ExchangeError):
    """API failure worth another attempt after a backoff delay."""


class TransportError(RetryableError):
    """Connection, DNS, TLS or timeout failure."""


class RateLimitedError(RetryableError):
    """HTTP 429."""


class HttpStatusError(RetryableError):
    """Any other non-2xx status."""


class ParseError(RetryableError):
    """2xx response whose body is not valid JSON."""


class AuthError(ExchangeError):
    """HTTP 401/403. Credentials are invalid; retrying cannot help."""


class InsufficientBalanceError(BotError):
    """Order amount is not covered by the available balance."""

    def __init__(self, asset: str, required: float, available: float):
        super().__init__(
            f"insufficient {asset} balance: need {required:.8f}, have {available:.8f}"
        )
        self.asset = asset
        self.required = required
        self.available = available


class PersistenceError(BotError):
    """Trade log, ledger or candle dump could not be written."""
