"""Slack request signature verification (signing secret, v0 scheme)."""
import hashlib
import hmac
import time
from typing import Optional


def verify_slack_signature(
    body: bytes,
    timestamp_header: str,
    signature_header: str,
    signing_secret: str,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> bool:
    """Verify a Slack request signature.

    Args:
        body: Raw request body as bytes
        timestamp_header: X-Slack-Request-Timestamp header value
        signature_header: X-Slack-Signature header value (format: v0=<hex>)
        signing_secret: App signing secret
        tolerance_seconds: Maximum age of the request (replay window)
        now: Current unix time, for tests

    Returns:
        True if the signature is valid and the request is fresh
    """
    if not signing_secret or not signature_header or not signature_header.startswith("v0="):
        return False

    try:
        timestamp = int(timestamp_header)
    except (TypeError, ValueError):
        return False

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance_seconds:
        return False

    computed = sign_slack_request(body, timestamp, signing_secret)

    # Constant-time comparison to prevent timing attacks
    return hmac.compare_digest(computed, signature_header)


def sign_slack_request(body: bytes, timestamp: int, signing_secret: str) -> str:
    """Compute the X-Slack-Signature header for ``body`` (used by tests and tooling)."""
    basestring = b"v0:" + str(timestamp).encode("utf-8") + b":" + body
    return "v0=" + hmac.new(
        key=signing_secret.encode("utf-8"),
        msg=basestring,
        digestmod=hashlib.sha256,
    ).hexdigest()
