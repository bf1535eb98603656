"""Shared fixtures for the transfer app test suite."""

from __future__ import annotations

import json

import pytest

from transfer_app.webhooks import correlator as correlator_module
from transfer_app.webhooks import handlers
from transfer_app.webhooks.verification import sign_payload

WEBHOOK_SECRET = "whsec_test_secret"
INTENT_ADDRESS = "0x7f3a0000000000000000000000000000000000c1"


@pytest.fixture(autouse=True)
def _fresh_correlator():
    """Every test starts with an empty event log and zeroed counters."""
    correlator_module.reset_correlator()
    handlers._webhook_counts.clear()
    yield
    correlator_module.reset_correlator()
    handlers._webhook_counts.clear()


@pytest.fixture
def make_event():
    """Factory for Chainrails webhook payloads (raw bytes)."""

    def _make(
        event_id: str = "evt_001",
        event_type: str = "intent.funded",
        intent_address: str | None = INTENT_ADDRESS,
        **data,
    ) -> bytes:
        if intent_address is not None:
            data["intent_address"] = intent_address
        payload = {
            "id": event_id,
            "type": event_type,
            "created_at": "2026-10-17T12:00:00Z",
            "data": data,
        }
        return json.dumps(payload).encode()

    return _make


@pytest.fixture
def sign():
    """Sign a body with the test secret. Returns (signature, timestamp) headers."""

    def _sign(body: bytes, timestamp: int | None = None, secret: str = WEBHOOK_SECRET):
        return sign_payload(body, secret, timestamp)

    return _sign
