"""
Signer and RateLimiter tests.
"""
import hashlib
import hmac

from exchange.rate_limiter import RateLimiter
from exchange.signer import sign


class TestSign:

    def test_message_is_plain_concatenation(self):
        expected = hmac.new(
            b"secret", b"1700000000000GET/v2/time", hashlib.sha256,
        ).hexdigest()
        assert sign("secret", 1700000000000, "GET", "/v2/time") == expected

    def test_body_is_appended_last(self):
        body = '{"market":"BTC-EUR"}'
        expected = hmac.new(
            b"k", ("5POST/v2/order" + body).encode(), hashlib.sha256,
        ).hexdigest()
        assert sign("k", 5, "POST", "/v2/order", body) == expected

    def test_deterministic_lowercase_hex(self):
        a = sign("s", 1, "GET", "/v2/balance")
        b = sign("s", 1, "GET", "/v2/balance")
        assert a == b
        assert len(a) == 64
        assert a == a.lower()

    def test_any_field_changes_signature(self):
        base = sign("s", 1, "GET", "/v2/balance", "")
        assert sign("s", 2, "GET", "/v2/balance", "") != base
        assert sign("s", 1, "POST", "/v2/balance", "") != base
        assert sign("s", 1, "GET", "/v2/time", "") != base
        assert sign("s", 1, "GET", "/v2/balance", "x") != base


class TestRateLimiter:

    def test_unknown_until_first_update(self):
        state = RateLimiter().snapshot()
        assert state.remaining == -1
        assert state.reset_at_ms == -1
        assert state.known is False

    def test_update_overwrites(self):
        rl = RateLimiter()
        rl.update(900, 1000)
        rl.update(950, 500)
        state = rl.snapshot()
        assert (state.remaining, state.reset_at_ms) == (950, 500)

    def test_headers_case_insensitive(self):
        rl = RateLimiter()
        rl.update_from_headers({
            "Bitvavo-RateLimit-Remaining": "998",
            "BITVAVO-RATELIMIT-RESETAT": "1700000060000",
        })
        state = rl.snapshot()
        assert state.remaining == 998
        assert state.reset_at_ms == 1700000060000

    def test_missing_headers_leave_state(self):
        rl = RateLimiter()
        rl.update(10, 20)
        rl.update_from_headers({"content-type": "application/json"})
        assert rl.snapshot().remaining == 10

    def test_partial_and_invalid_headers(self):
        rl = RateLimiter()
        rl.update(10, 20)
        rl.update_from_headers({
            "bitvavo-ratelimit-remaining": "abc",
            "bitvavo-ratelimit-resetat": "30",
        })
        state = rl.snapshot()
        assert state.remaining == 10
        assert state.reset_at_ms == 30

    def test_throttle_disabled_by_default(self):
        rl = RateLimiter()
        rl.update(0, 10_000)
        assert rl.throttle_delay(now_ms=0, floor=0) == 0.0

    def test_throttle_waits_until_reset(self):
        rl = RateLimiter()
        rl.update(5, 12_000)
        assert rl.throttle_delay(now_ms=10_000, floor=10) == 2.0
        # Plenty of budget, or reset already passed
        assert rl.throttle_delay(now_ms=10_000, floor=5) == 0.0
        assert rl.throttle_delay(now_ms=13_000, floor=10) == 0.0
