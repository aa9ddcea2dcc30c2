"""
Redis-backed memory of processed webhook deliveries.

CACHING STRATEGY
================

What we cache:
  - Ids of processor events that were fully handled
  - Key pattern: "webhooks:processed:{event_id}", value "1", TTL WEBHOOK_DEDUPE_TTL

Why:
  - The processor delivers at least once and retries aggressively during
    incidents; a cache hit acknowledges a redelivery without touching Postgres

What it is NOT:
  - The correctness mechanism. Conditional sale transitions already make
    every handler idempotent, so the cache fails open: if Redis is down or
    disabled every delivery is simply processed again.
  - Marked only after the transaction commits, so a failed attempt is never
    remembered as done.
"""

from typing import Optional

import redis.asyncio as redis
from ticketing.core.config import get_settings
from ticketing.core.logging import get_logger
from ticketing.core.metrics import redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

PROCESSED_KEY_PREFIX = "webhooks:processed:"


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            redis_connection_errors.inc()
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_processed_key(event_id: str) -> str:
    return f"{PROCESSED_KEY_PREFIX}{event_id}"


async def was_event_processed(event_id: Optional[str]) -> bool:
    if not event_id:
        return False
    client = await get_redis()
    if not client:
        return False

    key = _make_processed_key(event_id)
    try:
        return bool(await client.exists(key))
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))
        redis_connection_errors.inc()
        return False


async def mark_event_processed(event_id: Optional[str]) -> None:
    if not event_id:
        return
    client = await get_redis()
    if not client:
        return

    key = _make_processed_key(event_id)
    try:
        await client.setex(key, settings.WEBHOOK_DEDUPE_TTL, "1")
        logger.debug("cache_set", key=key, ttl=settings.WEBHOOK_DEDUPE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))
        redis_connection_errors.inc()


async def get_cache_stats() -> dict:
    """Get Redis status for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        return {
            "status": "connected",
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
