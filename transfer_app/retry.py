"""Retry policy for outbound Chainrails calls.

Only idempotent methods are retried. A POST /intents that timed out or got a
502 may still have created the intent upstream, and sending it again would
hand the user a second funding address. Those requests go out exactly once.

Transient failures on reads (429/5xx, connect errors, timeouts) are retried
with exponential backoff and jitter; Retry-After wins when present.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable

import httpx

from transfer_app.config import Settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class RetryPolicy:
    """How many times, and how patiently, a read is retried."""

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    jitter: float = 0.3

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_retries=settings.http_max_retries,
            base_delay=settings.http_retry_base_delay,
            max_delay=settings.http_retry_max_delay,
        )

    def attempts_for(self, method: str) -> int:
        """Total attempts allowed for *method* (1 = no retry)."""
        if method.upper() not in IDEMPOTENT_METHODS:
            return 1
        return max(self.max_retries, 0) + 1

    def delay(self, attempt: int, response: httpx.Response | None = None) -> float:
        """Seconds to wait before retry *attempt* (0-based), capped at max_delay."""
        if response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    return min(float(retry_after), self.max_delay)
                except ValueError:
                    pass  # HTTP-date form, use backoff

        delay = min(self.base_delay * (2**attempt), self.max_delay)
        spread = delay * self.jitter
        return max(0.0, delay + random.uniform(-spread, spread))


def is_transient(exc: httpx.HTTPError) -> bool:
    """Failures worth another try on an idempotent request."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


def send_with_retry(
    send: Callable[[], httpx.Response],
    method: str,
    path: str,
    policy: RetryPolicy,
) -> httpx.Response:
    """Call *send* until it returns, retrying transient errors on reads.

    *send* must raise httpx.HTTPStatusError for non-2xx responses. The last
    error is re-raised unchanged once attempts run out.
    """
    attempts = policy.attempts_for(method)
    for attempt in range(attempts):
        try:
            return send()
        except httpx.HTTPError as e:
            if attempt + 1 >= attempts or not is_transient(e):
                raise
            response = e.response if isinstance(e, httpx.HTTPStatusError) else None
            delay = policy.delay(attempt, response)
            logger.warning(
                "Chainrails %s %s failed (%s), retry %d/%d in %.1fs",
                method,
                path,
                response.status_code if response is not None else type(e).__name__,
                attempt + 1,
                attempts - 1,
                delay,
            )
        time.sleep(delay)
    raise AssertionError("unreachable")
