"""Webhook HTTP handlers: FastAPI routes for inbound Chainrails webhooks.

The handler:
1. Reads the raw body (needed for HMAC verification)
2. Verifies signature and timestamp, records the event
3. Returns 200 with the event id/type, or 401 on rejection

Security contract:
- Never return error details to the webhook caller (the log gets them)
- Authentic but uncorrelated events still get 200
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import logging
import time
from collections import Counter

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from transfer_app.config import get_settings
from transfer_app.webhooks.correlator import WebhookReceipt, get_correlator
from transfer_app.webhooks.verification import (
    EVENT_ID_HEADER,
    EVENT_TYPE_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
)

logger = logging.getLogger(__name__)

# Delivery outcomes since process start
_webhook_counts: Counter[str] = Counter()


def _outcome(receipt: WebhookReceipt) -> str:
    if not receipt.accepted:
        return receipt.failure.value if receipt.failure else "rejected"
    if receipt.duplicate:
        return "duplicate"
    return "recorded" if receipt.correlated else "uncorrelated"


def _log_webhook(receipt: WebhookReceipt, headers: dict[str, str]) -> None:
    """Audit log for webhook activity (falls back to the informational headers)."""
    status = _outcome(receipt)
    _webhook_counts[status] += 1
    logger.info(
        "WEBHOOK_AUDIT event=%s id=%s intent=%s status=%s count=%d",
        receipt.event_type or headers.get(EVENT_TYPE_HEADER, "unknown"),
        receipt.event_id or headers.get(EVENT_ID_HEADER, "unknown"),
        receipt.correlation_address or "-",
        status,
        sum(_webhook_counts.values()),
    )


async def handle_chainrails_webhook(request: Request) -> JSONResponse:
    """Verify and record one Chainrails delivery.

    Returns 200 when accepted, 401 when any verification check fails.
    """
    start = time.time()

    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}

    # Dedup may block on Redis; keep it off the event loop
    receipt = await run_in_threadpool(
        get_correlator().verify_and_record,
        body,
        headers.get(SIGNATURE_HEADER),
        headers.get(TIMESTAMP_HEADER),
        get_settings().webhook_secret,
    )
    _log_webhook(receipt, headers)

    if not receipt.accepted:
        return JSONResponse({"status": "unauthorized"}, status_code=401)

    elapsed_ms = (time.time() - start) * 1000
    logger.debug("Webhook processed in %.1fms: %s", elapsed_ms, receipt.event_id)

    return JSONResponse(
        {
            "received": True,
            "eventId": receipt.event_id,
            "eventType": receipt.event_type,
        },
        status_code=200,
    )


def register_webhook_routes(app: FastAPI) -> None:
    """Register webhook endpoint routes on the FastAPI app."""

    @app.post("/app/webhook")
    async def chainrails_webhook(request: Request):
        """Receive Chainrails webhooks (signature-verified)."""
        return await handle_chainrails_webhook(request)

    @app.get("/app/events/{intent_address}")
    async def intent_events(intent_address: str):
        """Webhook events recorded for an intent address."""
        events = get_correlator().get_events(intent_address)
        return {
            "intentAddress": intent_address,
            "events": [e.to_dict() for e in events],
        }

    @app.get("/webhooks/status")
    async def webhook_status():
        """Webhook delivery counts by outcome, and how many intents have a log."""
        return {
            "counts": dict(_webhook_counts),
            "trackedIntents": len(get_correlator().log),
        }

    logger.info("Webhook routes registered: /app/webhook")
