"""Webhook correlator: verify a delivery, then record it against its intent.

Deliveries are correlated by ``data.intent_address``, the deposit address
Chainrails assigns to each transfer intent. An authentic delivery without an
address is acknowledged but not stored anywhere.

Failure semantics:
- Verification failures are terminal for that delivery; Chainrails owns retries
- The correlator never raises for a bad delivery, it returns a rejected receipt
- The HTTP layer decides which status code the sender sees
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any

from transfer_app.config import get_settings
from transfer_app.webhooks import idempotency
from transfer_app.webhooks.store import EventLog, WebhookEvent
from transfer_app.webhooks.verification import (
    InvalidPayloadError,
    VerificationFailure,
    WebhookVerificationError,
    verify_signature,
)

logger = logging.getLogger(__name__)


@dataclass
class WebhookReceipt:
    """Outcome of a single webhook delivery."""

    accepted: bool
    correlated: bool = False
    event_id: str | None = None
    event_type: str | None = None
    correlation_address: str | None = None
    failure: VerificationFailure | None = None
    duplicate: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "correlated": self.correlated,
            "eventId": self.event_id,
            "eventType": self.event_type,
            "intentAddress": self.correlation_address,
            "failure": self.failure.value if self.failure else None,
            "duplicate": self.duplicate,
        }


def _parse_payload(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidPayloadError("body is not valid JSON") from None
    if not isinstance(payload, dict):
        raise InvalidPayloadError(f"expected a JSON object, got {type(payload).__name__}")
    return payload


def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


class WebhookCorrelator:
    """Owns the event log and the verify-then-record flow."""

    def __init__(self, log: EventLog | None = None, dedupe: bool = False) -> None:
        self.log = log if log is not None else EventLog()
        self.dedupe = dedupe

    def verify_and_record(
        self,
        body: bytes,
        signature_header: str | None,
        timestamp_header: str | None,
        secret: str | None,
    ) -> WebhookReceipt:
        """Verify a delivery and append it to its intent's event log.

        Args:
            body: Raw request body (the exact bytes Chainrails signed)
            signature_header: X-Chainrails-Signature value
            timestamp_header: X-Chainrails-Timestamp value
            secret: Shared webhook secret (empty -> verification skipped)

        Returns:
            WebhookReceipt; ``accepted`` is False when any check failed
        """
        try:
            verify_signature(body, signature_header, timestamp_header, secret)
            payload = _parse_payload(body)
        except WebhookVerificationError as e:
            logger.warning("Webhook rejected (%s): %s", e.kind.value, e.message)
            return WebhookReceipt(accepted=False, failure=e.kind)

        event_id = _str_or_none(payload.get("id"))
        event_type = _str_or_none(payload.get("type"))
        data = payload.get("data")
        if not isinstance(data, dict):
            data = {}
        address = _str_or_none(data.get("intent_address"))

        receipt = WebhookReceipt(
            accepted=True,
            event_id=event_id,
            event_type=event_type,
            correlation_address=address,
        )

        if address is None:
            logger.info("Webhook %s (%s) has no intent_address, not recorded", event_id, event_type)
            return receipt
        if event_id is None:
            logger.warning("Webhook for %s has no event id, not recorded", address)
            return receipt

        if self.dedupe and idempotency.is_duplicate(event_id):
            receipt.duplicate = True
            return receipt

        event = WebhookEvent(
            id=event_id,
            type=event_type or "unknown",
            created_at=payload.get("created_at"),
            data=data,
        )
        count = self.log.append(address, event)
        receipt.correlated = True
        logger.info(
            "Recorded webhook %s (%s) for %s [%d events]",
            event_id,
            event_type,
            address,
            count,
        )
        return receipt

    def record_transfer_created(self, address: str) -> None:
        """Start tracking a freshly created intent (keeps existing events)."""
        if self.log.ensure(address):
            logger.debug("Tracking webhook events for %s", address)

    def get_events(self, address: str) -> list[WebhookEvent]:
        """Events recorded for *address*, in arrival order."""
        return self.log.get(address)


_correlator: WebhookCorrelator | None = None
_correlator_lock = threading.Lock()


def get_correlator() -> WebhookCorrelator:
    """Get or create the process-wide correlator.

    Webhooks (threadpool) and transfer routes can hit this concurrently on the
    first requests; exactly one instance is ever published.
    """
    global _correlator
    if _correlator is None:
        with _correlator_lock:
            if _correlator is None:
                _correlator = WebhookCorrelator(dedupe=get_settings().webhook_dedupe)
    return _correlator


def reset_correlator() -> None:
    """Drop the process-wide correlator (and its events)."""
    global _correlator
    with _correlator_lock:
        _correlator = None
