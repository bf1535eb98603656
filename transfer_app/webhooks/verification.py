"""Chainrails webhook signature verification (timestamped HMAC-SHA256).

Chainrails signs every delivery with:
    X-Chainrails-Timestamp: <unix seconds>
    X-Chainrails-Signature: sha256=<hex HMAC-SHA256 of "<timestamp>.<raw body>">

Security contract:
- Signature computed over the raw request bytes, never a re-encoded payload
- Comparison is constant-time (hmac.compare_digest) after a length check
- Timestamp tolerance: 300s either side (replay + clock skew)
- Missing secret -> verification skipped with a WARNING on every delivery
  (development mode only)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
from enum import Enum

logger = logging.getLogger(__name__)

REPLAY_WINDOW_SECONDS = 300
SIGNATURE_PREFIX = "sha256="

SIGNATURE_HEADER = "x-chainrails-signature"
TIMESTAMP_HEADER = "x-chainrails-timestamp"
EVENT_TYPE_HEADER = "x-chainrails-event-type"
EVENT_ID_HEADER = "x-chainrails-event-id"

_TIMESTAMP_RE = re.compile(r"\d+", re.ASCII)


class VerificationFailure(str, Enum):
    """Which check rejected a delivery."""

    INVALID_TIMESTAMP = "invalid_timestamp"
    STALE_OR_FUTURE_TIMESTAMP = "stale_or_future_timestamp"
    SIGNATURE_MISMATCH = "signature_mismatch"
    INVALID_PAYLOAD = "invalid_payload"


class WebhookVerificationError(Exception):
    """Base exception for rejected webhook deliveries."""

    def __init__(self, message: str, kind: VerificationFailure) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind


class InvalidTimestampError(WebhookVerificationError):
    """Timestamp header missing or not a decimal integer."""

    def __init__(self, raw: str | None) -> None:
        super().__init__(
            f"Invalid webhook timestamp header: {raw!r}",
            VerificationFailure.INVALID_TIMESTAMP,
        )


class StaleTimestampError(WebhookVerificationError):
    """Timestamp outside the replay window."""

    def __init__(self, timestamp: int, now: int) -> None:
        super().__init__(
            f"Webhook timestamp {timestamp} is {abs(now - timestamp)}s from now "
            f"(window {REPLAY_WINDOW_SECONDS}s)",
            VerificationFailure.STALE_OR_FUTURE_TIMESTAMP,
        )
        self.timestamp = timestamp
        self.now = now


class SignatureMismatchError(WebhookVerificationError):
    """Signature header missing or does not match the computed HMAC."""

    def __init__(self) -> None:
        super().__init__("Webhook signature mismatch", VerificationFailure.SIGNATURE_MISMATCH)


class InvalidPayloadError(WebhookVerificationError):
    """Authentic body that is not a JSON object."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid webhook payload: {reason}", VerificationFailure.INVALID_PAYLOAD)


def parse_timestamp(raw: str | None) -> int:
    """Parse the timestamp header as Unix seconds."""
    if raw is None:
        raise InvalidTimestampError(raw)
    value = raw.strip()
    if not _TIMESTAMP_RE.fullmatch(value):
        raise InvalidTimestampError(raw)
    try:
        return int(value)
    except (ValueError, TypeError):
        raise InvalidTimestampError(raw) from None


def compute_signature(body: bytes, secret: str, timestamp: int) -> str:
    """Return the expected signature header value for *body* at *timestamp*."""
    signed_payload = f"{timestamp}.".encode("utf-8") + body
    digest = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def sign_payload(body: bytes, secret: str, timestamp: int | None = None) -> tuple[str, str]:
    """Sign *body* the way Chainrails does.

    Returns:
        (signature_header, timestamp_header)
    """
    ts = int(time.time()) if timestamp is None else timestamp
    return compute_signature(body, secret, ts), str(ts)


def signatures_match(expected: str, received: str | None) -> bool:
    """Constant-time comparison; unequal lengths are rejected up front."""
    if not received:
        return False
    expected_bytes = expected.encode("utf-8")
    received_bytes = received.encode("utf-8")
    if len(expected_bytes) != len(received_bytes):
        return False
    return hmac.compare_digest(expected_bytes, received_bytes)


def verify_signature(
    body: bytes,
    signature_header: str | None,
    timestamp_header: str | None,
    secret: str | None,
    now: float | None = None,
) -> int | None:
    """Verify a Chainrails webhook delivery.

    Args:
        body: Raw request body bytes, exactly as received
        signature_header: Value of X-Chainrails-Signature ("sha256=<hex>")
        timestamp_header: Value of X-Chainrails-Timestamp (Unix seconds)
        secret: Shared webhook secret; empty/None skips verification
        now: Current Unix time (defaults to time.time())

    Returns:
        The verified timestamp, or None when verification was skipped

    Raises:
        InvalidTimestampError, StaleTimestampError, SignatureMismatchError
    """
    if not secret:
        logger.warning(
            "CHAINRAILS_WEBHOOK_SECRET not set, skipping webhook verification "
            "(development only)"
        )
        return None

    timestamp = parse_timestamp(timestamp_header)

    current = int(time.time() if now is None else now)
    if abs(current - timestamp) > REPLAY_WINDOW_SECONDS:
        raise StaleTimestampError(timestamp, current)

    expected = compute_signature(body, secret, timestamp)
    if not signatures_match(expected, signature_header):
        raise SignatureMismatchError()

    return timestamp
