"""
Shared fakes for HTTP and candle fixtures.
"""
from decimal import Decimal
from typing import List, Sequence

import pytest

from exchange.models import Candle

HOUR_MS = 3_600_000
BASE_TS = 1_700_000_000_000


class FakeResponse:
    def __init__(self, status=200, body="{}", headers=None):
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Replays queued responses. An exception instance in the queue is raised
    from request(); the last item repeats once the queue runs dry.
    """

    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []
        self.closed = False

    def request(self, method, url, headers=None, data=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "data": data})
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_candles(
    closes: Sequence[float],
    start_ts: int = BASE_TS,
    step_ms: int = HOUR_MS,
    spread: float = 1.0,
) -> List[Candle]:
    """Candles opening at the previous close, high/low `spread` around the close."""
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        candles.append(Candle(
            timestamp=start_ts + i * step_ms,
            open=Decimal(str(prev)),
            high=Decimal(str(max(prev, close) + spread)),
            low=Decimal(str(min(prev, close) - spread)),
            close=Decimal(str(close)),
            volume=Decimal("1.5"),
        ))
        prev = close
    return candles


def downtrend_closes() -> List[float]:
    """
    30 strictly falling closes: a steep slide that flattens out.
    RSI sits at 0 and the MACD histogram has turned positive by the end.
    """
    steep = [1000.0 - 10.0 * i for i in range(20)]
    tail = [round(810.0 - 0.01 * (i + 1), 2) for i in range(10)]
    return steep + tail


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
