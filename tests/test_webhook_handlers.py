"""Webhook handler integration tests.

Verifies the full HTTP request flow through the webhook handler:
- Signature verification at HTTP level (200 accepted, 401 rejected)
- No information disclosure in rejection responses
- Recorded events visible through /app/events and /app/status
- Delivery counters on /webhooks/status
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from transfer_app.config import Settings
from transfer_app.serve import create_app
from transfer_app.webhooks.correlator import WebhookCorrelator

from conftest import INTENT_ADDRESS, WEBHOOK_SECRET


@pytest.fixture
def client():
    with TestClient(create_app(), raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def secret_configured():
    with patch(
        "transfer_app.webhooks.handlers.get_settings",
        return_value=Settings(webhook_secret=WEBHOOK_SECRET),
    ):
        yield


def _headers(sig: str, ts: str) -> dict[str, str]:
    return {
        "X-Chainrails-Signature": sig,
        "X-Chainrails-Timestamp": ts,
        "Content-Type": "application/json",
    }


@pytest.mark.usefixtures("secret_configured")
class TestWebhookEndpoint:
    def test_valid_webhook_returns_200(self, client, make_event, sign):
        body = make_event("evt_1", "intent.funded")
        resp = client.post("/app/webhook", content=body, headers=_headers(*sign(body)))

        assert resp.status_code == 200
        assert resp.json() == {"received": True, "eventId": "evt_1", "eventType": "intent.funded"}

    def test_valid_webhook_is_recorded(self, client, make_event, sign):
        body = make_event("evt_1")
        client.post("/app/webhook", content=body, headers=_headers(*sign(body)))

        resp = client.get(f"/app/events/{INTENT_ADDRESS}")
        assert resp.status_code == 200
        events = resp.json()["events"]
        assert [e["id"] for e in events] == ["evt_1"]
        assert "receivedAt" in events[0]

    def test_invalid_signature_returns_401(self, client, make_event):
        body = make_event()
        resp = client.post(
            "/app/webhook",
            content=body,
            headers=_headers("sha256=" + "0" * 64, str(int(time.time()))),
        )
        assert resp.status_code == 401
        assert client.get(f"/app/events/{INTENT_ADDRESS}").json()["events"] == []

    def test_tampered_body_returns_401(self, client, make_event, sign):
        body = make_event("evt_1", "intent.funded")
        headers = _headers(*sign(body))
        resp = client.post("/app/webhook", content=body.replace(b"evt_1", b"evt_2"), headers=headers)
        assert resp.status_code == 401

    def test_stale_timestamp_returns_401(self, client, make_event, sign):
        body = make_event()
        sig, ts = sign(body, timestamp=int(time.time()) - 600)
        resp = client.post("/app/webhook", content=body, headers=_headers(sig, ts))
        assert resp.status_code == 401

    def test_missing_headers_returns_401(self, client, make_event):
        resp = client.post("/app/webhook", content=make_event(), headers={"Content-Type": "application/json"})
        assert resp.status_code == 401

    def test_rejection_discloses_nothing(self, client, make_event):
        resp = client.post("/app/webhook", content=make_event(), headers=_headers("sha256=x", "abc"))
        assert resp.json() == {"status": "unauthorized"}

    def test_uncorrelated_event_still_200(self, client, make_event, sign):
        body = make_event("evt_ping", "ping", intent_address=None)
        resp = client.post("/app/webhook", content=body, headers=_headers(*sign(body)))
        assert resp.status_code == 200
        assert resp.json()["eventId"] == "evt_ping"

    def test_status_counts_outcomes(self, client, make_event, sign):
        body = make_event("evt_1")
        client.post("/app/webhook", content=body, headers=_headers(*sign(body)))
        client.post("/app/webhook", content=body, headers=_headers("sha256=bad", str(int(time.time()))))
        orphan = make_event("evt_2", intent_address=None)
        client.post("/app/webhook", content=orphan, headers=_headers(*sign(orphan)))

        counts = client.get("/webhooks/status").json()["counts"]
        assert counts == {"recorded": 1, "signature_mismatch": 1, "uncorrelated": 1}

    def test_status_reports_tracked_intents(self, client, make_event, sign):
        body = make_event("evt_1")
        client.post("/app/webhook", content=body, headers=_headers(*sign(body)))
        assert client.get("/webhooks/status").json()["trackedIntents"] == 1

    def test_recording_runs_off_the_event_loop(self, client, make_event, sign):
        seen = []
        original = WebhookCorrelator.verify_and_record

        def spy(self, *args):
            try:
                asyncio.get_running_loop()
                seen.append("loop")
            except RuntimeError:
                seen.append("worker")
            return original(self, *args)

        body = make_event("evt_1")
        with patch.object(WebhookCorrelator, "verify_and_record", spy):
            resp = client.post("/app/webhook", content=body, headers=_headers(*sign(body)))

        assert resp.status_code == 200
        assert seen == ["worker"]


class TestDevelopmentMode:
    def test_no_secret_accepts_unsigned(self, client, make_event):
        with patch(
            "transfer_app.webhooks.handlers.get_settings",
            return_value=Settings(webhook_secret=""),
        ):
            resp = client.post("/app/webhook", content=make_event("evt_dev"))
        assert resp.status_code == 200
        events = client.get(f"/app/events/{INTENT_ADDRESS}").json()["events"]
        assert [e["id"] for e in events] == ["evt_dev"]


class TestEventsEndpoint:
    def test_unknown_address_returns_empty_list(self, client):
        resp = client.get("/app/events/0xnothing")
        assert resp.status_code == 200
        assert resp.json() == {"intentAddress": "0xnothing", "events": []}


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
