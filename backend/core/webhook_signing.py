"""HMAC signatures for trigger callbacks.

When a trigger request carries a callback URL, the run envelope is POSTed
there. Receivers holding the organization's callback secret can check the
body was produced by this service and is recent:

    signed   = f"{timestamp}.{body}"
    header   = "sha256=" + hex(HMAC_SHA256(secret, signed))

The timestamp travels in its own header so replays outside the tolerance
window can be rejected.
"""

import hashlib
import hmac
import secrets
import time
from typing import Optional
from uuid import uuid4

SIGNATURE_HEADER = "X-Workflow-Signature"
TIMESTAMP_HEADER = "X-Workflow-Timestamp"
DELIVERY_HEADER = "X-Workflow-Delivery"

SIGNATURE_SCHEME = "sha256"
SECRET_PREFIX = "whsec_"

# Receivers reject callbacks older (or newer) than this many seconds.
DEFAULT_TOLERANCE_SECONDS = 300


def _digest(secret: str, timestamp: int, body: bytes) -> str:
    signed = str(timestamp).encode() + b"." + body
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def sign_webhook_payload(
    payload: bytes,
    secret: str,
    timestamp: Optional[int] = None,
    delivery_id: Optional[str] = None,
) -> dict[str, str]:
    """Build the headers that accompany a signed callback body."""
    ts = int(time.time()) if timestamp is None else timestamp
    return {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: f"{SIGNATURE_SCHEME}={_digest(secret, ts, payload)}",
        TIMESTAMP_HEADER: str(ts),
        DELIVERY_HEADER: delivery_id or str(uuid4()),
    }


def verify_webhook_signature(
    payload: bytes,
    secret: str,
    signature_header: str,
    timestamp_header: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    """Check a received callback. Never raises; malformed headers are simply invalid."""
    scheme, sep, received = (signature_header or "").partition("=")
    if not sep or scheme != SIGNATURE_SCHEME:
        return False

    try:
        ts = int(timestamp_header)
    except (TypeError, ValueError):
        return False

    if abs(time.time() - ts) > tolerance:
        return False

    return hmac.compare_digest(received, _digest(secret, ts, payload))


def generate_webhook_secret() -> str:
    """New per-organization callback secret."""
    return SECRET_PREFIX + secrets.token_urlsafe(32)
