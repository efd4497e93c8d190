"""
CandleStore tests.
"""
from core.candle_store import CandleStore
from conftest import HOUR_MS, BASE_TS, make_candles


class TestMerge:

    def test_empty_series_takes_whole_batch(self):
        store = CandleStore()
        batch = make_candles([1.0, 2.0, 3.0])
        assert store.merge("1h", batch) == 3
        assert store.get("1h") == batch

    def test_overlap_appends_only_newer(self):
        store = CandleStore()
        store.merge("1h", make_candles([1.0, 2.0, 3.0]))
        # Window shifted by one candle
        shifted = make_candles([2.0, 3.0, 4.0], start_ts=BASE_TS + HOUR_MS)
        assert store.merge("1h", shifted) == 1
        assert [c.timestamp for c in store.get("1h")] == [BASE_TS + i * HOUR_MS for i in range(4)]

    def test_resubmission_is_idempotent(self):
        store = CandleStore()
        batch = make_candles([1.0, 2.0, 3.0, 4.0])
        store.merge("5m", batch)
        assert store.merge("5m", batch) == 0
        assert store.size("5m") == 4

    def test_older_candles_dropped(self):
        store = CandleStore()
        store.merge("1h", make_candles([5.0], start_ts=BASE_TS + 10 * HOUR_MS))
        assert store.merge("1h", make_candles([1.0, 2.0])) == 0
        assert store.last_timestamp("1h") == BASE_TS + 10 * HOUR_MS

    def test_gap_is_kept(self):
        store = CandleStore()
        store.merge("1h", make_candles([1.0]))
        later = make_candles([9.0], start_ts=BASE_TS + 5 * HOUR_MS)
        assert store.merge("1h", later) == 1
        assert store.size("1h") == 2

    def test_intervals_are_independent(self):
        store = CandleStore()
        store.merge("1h", make_candles([1.0, 2.0]))
        store.merge("5m", make_candles([1.0]))
        assert store.size("1h") == 2
        assert store.size("5m") == 1
        assert sorted(store.intervals()) == ["1h", "5m"]

    def test_unknown_interval(self):
        store = CandleStore()
        assert store.get("15m") == []
        assert store.last_timestamp("15m") is None

    def test_get_returns_copy(self):
        store = CandleStore()
        store.merge("1h", make_candles([1.0]))
        store.get("1h").clear()
        assert store.size("1h") == 1


class TestBoundedStore:

    def test_oldest_trimmed_past_max_len(self):
        store = CandleStore(max_len=3)
        store.merge("1m", make_candles([1.0, 2.0, 3.0, 4.0, 5.0]))
        assert [c.timestamp for c in store.get("1m")] == [BASE_TS + i * HOUR_MS for i in range(2, 5)]

    def test_trimmed_series_still_rejects_older(self):
        store = CandleStore(max_len=2)
        batch = make_candles([1.0, 2.0, 3.0, 4.0])
        store.merge("1m", batch)
        assert store.merge("1m", batch) == 0
        assert store.size("1m") == 2

    def test_unbounded_by_default(self):
        store = CandleStore()
        store.merge("1m", make_candles([float(i) for i in range(50)]))
        assert store.size("1m") == 50

    def test_tail(self):
        store = CandleStore()
        batch = make_candles([1.0, 2.0, 3.0, 4.0])
        store.merge("1h", batch)
        assert store.tail("1h", 2) == batch[2:]
        assert store.tail("1h", 10) == batch
        assert store.tail("15m", 3) == []
