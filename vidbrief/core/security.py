# vidbrief/core/security.py

import hashlib
import hmac
import time


def verify_mux_signature(header: str | None, body: bytes, secret: str, tolerance_seconds: int,
                         now: float | None = None) -> bool:
    """
    Check a `mux-signature` header of the form ``t=<unix>,v1=<hex>``.

    The signed payload is ``"<t>." + body`` hashed with HMAC-SHA256.
    """
    if not header:
        return False
    parts = {}
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        parts.setdefault(key, []).append(value)
    timestamps = parts.get("t") or []
    signatures = parts.get("v1") or []
    if not timestamps or not signatures:
        return False
    try:
        timestamp = int(timestamps[0])
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance_seconds:
        return False
    expected = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, sig) for sig in signatures)
