"""In-memory webhook event log, keyed by intent address.

Each intent address maps to an append-only list of events in arrival order.
The log lives for the lifetime of the process; a restart drops every event.
For production, back it with a durable store exposing the same
ensure/append/get operations.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class WebhookEvent:
    """A verified webhook delivery recorded against an intent."""

    id: str
    type: str
    created_at: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    received_at: str = field(default_factory=_utc_now_iso)  # local clock, not sender's

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "created_at": self.created_at,
            "data": self.data,
            "receivedAt": self.received_at,
        }


class EventLog:
    """Thread-safe mapping of intent address -> ordered webhook events."""

    def __init__(self) -> None:
        self._events: dict[str, list[WebhookEvent]] = {}
        self._lock = threading.Lock()

    def ensure(self, address: str) -> bool:
        """Create an empty sequence for *address* if absent. Never overwrites.

        Returns True if the entry was created.
        """
        with self._lock:
            if address in self._events:
                return False
            self._events[address] = []
            return True

    def append(self, address: str, event: WebhookEvent) -> int:
        """Append *event* under *address*. Returns the new sequence length."""
        with self._lock:
            events = self._events.setdefault(address, [])
            events.append(event)
            return len(events)

    def get(self, address: str) -> list[WebhookEvent]:
        """Return a copy of the events for *address* ([] if unknown)."""
        with self._lock:
            return list(self._events.get(address, ()))

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._events

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
