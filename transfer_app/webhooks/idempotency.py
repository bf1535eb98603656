"""Webhook redelivery dedup, backed by Redis.

Chainrails retries a delivery it considers failed (immediately, then after
10s, 1m, 10m, 1h, 6h and 24h), so the same event id can arrive up to seven
times. When CHAINRAILS_WEBHOOK_DEDUPE is on, each event id is marked in Redis
with a TTL covering the whole retry schedule.

Security contract:
- Key pattern: webhook:seen:chainrails:{event_id}, 24h TTL
- SET NX EX gives an atomic check-and-mark
- Empty event id is never a duplicate (nothing to key on)
- Redis down -> fail open (delivery is recorded, WARNING logged)
"""

from __future__ import annotations

import logging

import redis

from transfer_app.config import get_settings

logger = logging.getLogger(__name__)

_DEDUP_TTL_SECONDS = 86400

_KEY_PREFIX = "webhook:seen:chainrails"

_redis_client: redis.Redis | None = None


def _get_redis() -> redis.Redis:
    """Get (or lazily create) the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(get_settings().redis_url, decode_responses=True)
    return _redis_client


def _key(event_id: str) -> str:
    return f"{_KEY_PREFIX}:{event_id}"


def is_duplicate(event_id: str | None) -> bool:
    """Check-and-mark an event id.

    Returns:
        True if this event id has already been recorded
    """
    if not event_id:
        return False

    try:
        was_set = _get_redis().set(_key(event_id), "1", nx=True, ex=_DEDUP_TTL_SECONDS)
    except redis.RedisError:
        logger.warning(
            "Redis unavailable for webhook dedup, allowing event %s",
            event_id,
            exc_info=True,
        )
        return False

    if not was_set:
        logger.info("Duplicate webhook delivery ignored: %s", event_id)
        return True
    return False
