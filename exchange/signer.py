"""
Request signing for authenticated Bitvavo calls.
"""

from __future__ import annotations
import hashlib
import hmac


def sign(secret: str, timestamp_ms: int, method: str, path: str, body: str = "") -> str:
    """
    Generate the HMAC-SHA256 signature (lowercase hex).

    The server recomputes timestamp + method + path + body with no
    delimiters, so the concatenation order must not change.
    """
    message = f"{timestamp_ms}{method}{path}{body}"
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
