"""
Paddle-Signature verification (Billing, HMAC-SHA256).

Header format: ``ts=<unix-seconds>;h1=<hex digest>``. The digest covers
``"{ts}:" + raw_body`` using the exact bytes received; re-serialized JSON would
not match.
"""
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SignatureCheck:
    valid: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


def parse_signature_header(signature: str) -> Dict[str, str]:
    parts: Dict[str, str] = {}
    for chunk in signature.split(";"):
        chunk = chunk.strip()
        if not chunk or "=" not in chunk:
            continue
        k, v = chunk.split("=", 1)
        parts[k.strip()] = v.strip()
    return parts


def compute_signature(raw: bytes, ts: str, secret: str) -> str:
    payload = ts.encode("utf-8") + b":" + raw
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(
    raw: bytes,
    signature: Optional[str],
    secret: Optional[str],
    *,
    max_skew_seconds: int = 0,
    now: Optional[float] = None,
) -> SignatureCheck:
    """Verify a Paddle-Signature header; fails closed and never raises."""

    secret = (secret or "").strip()
    if not secret:
        logger.warning("[PADDLE] no webhook secret configured; rejecting")
        return SignatureCheck(False, "missing_secret")

    if not signature or not signature.strip():
        logger.warning("[PADDLE] missing Paddle-Signature header")
        return SignatureCheck(False, "missing_header")

    parts = parse_signature_header(signature)
    ts = parts.get("ts")
    provided = parts.get("h1")
    if not ts or not provided:
        logger.warning("[PADDLE] signature header missing ts/h1 component")
        return SignatureCheck(False, "malformed_header")

    if max_skew_seconds and max_skew_seconds > 0:
        try:
            ts_value = int(ts)
        except ValueError:
            logger.warning("[PADDLE] signature timestamp is not an integer: %s", ts)
            return SignatureCheck(False, "malformed_header")
        current = time.time() if now is None else now
        if abs(current - ts_value) > max_skew_seconds:
            logger.warning("[PADDLE] signature timestamp outside tolerance: ts=%s", ts)
            return SignatureCheck(False, "timestamp_out_of_tolerance")

    expected = compute_signature(raw, ts, secret)
    if hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8")):
        return SignatureCheck(True)

    logger.error("[PADDLE] signature mismatch")
    return SignatureCheck(False, "signature_mismatch")
