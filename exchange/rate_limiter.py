"""
Rate limit tracking from response headers.
Last writer wins; every completed HTTP exchange reports in.
"""

from __future__ import annotations
import threading
from typing import Mapping, Optional
from exchange.models import RateLimitState
import logging

logger = logging.getLogger(__name__)

REMAINING_HEADER = "bitvavo-ratelimit-remaining"
RESET_AT_HEADER = "bitvavo-ratelimit-resetat"


class RateLimiter:
    """Owns the remaining request budget and its reset time."""

    def __init__(self):
        self._lock = threading.Lock()
        self._remaining = -1
        self._reset_at_ms = -1

    def update(self, remaining: int, reset_at_ms: int):
        """Overwrite both values unconditionally."""
        with self._lock:
            self._remaining = remaining
            self._reset_at_ms = reset_at_ms

    def update_from_headers(self, headers: Mapping[str, str]):
        """
        Read rate limit headers (case-insensitive).
        Missing or malformed values leave the stored value untouched.
        """
        lowered = {str(k).lower(): v for k, v in headers.items()}
        remaining = self._parse(lowered, REMAINING_HEADER)
        reset_at = self._parse(lowered, RESET_AT_HEADER)

        with self._lock:
            if remaining is not None:
                self._remaining = remaining
            if reset_at is not None:
                self._reset_at_ms = reset_at

    def snapshot(self) -> RateLimitState:
        with self._lock:
            return RateLimitState(remaining=self._remaining, reset_at_ms=self._reset_at_ms)

    def throttle_delay(self, now_ms: int, floor: int) -> float:
        """
        Seconds to hold off before the next request.
        Non-zero only when the known budget dropped below `floor`
        and the reset time is still ahead.
        """
        state = self.snapshot()
        if floor <= 0 or not state.known:
            return 0.0
        if state.remaining >= floor or state.reset_at_ms <= now_ms:
            return 0.0
        return (state.reset_at_ms - now_ms) / 1000.0

    @staticmethod
    def _parse(headers: Mapping[str, str], key: str) -> Optional[int]:
        raw = headers.get(key)
        if raw is None:
            return None
        try:
            return int(str(raw).strip())
        except ValueError:
            logger.warning(f"[RATE] Invalid value for {key} in header: {raw!r}")
            return None
