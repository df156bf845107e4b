"""
Redis cache for the public event listing.

Keys are namespaced by a generation number:

    events:list:gen                      -> 17
    events:list:17:page=1&size=20&up=1   -> {"events": [...], "total": ...}

Anything that changes counts shown in the listing (RSVP, cancellation,
promotion, approval) bumps the generation with one INCR; pages from older
generations are never read again and age out on their TTL.

Capacity decisions never read from here. They recount rows in the database
every time.

Redis is optional: disabled or unreachable, every function degrades to a
no-op and the listing is served from the database.
"""

import json
from typing import Optional

import redis.asyncio as redis

from campusrsvp.core.config import get_settings
from campusrsvp.core.logging import get_logger
from campusrsvp.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

LISTING_NAMESPACE = "events:list"
GENERATION_KEY = f"{LISTING_NAMESPACE}:gen"

_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """The shared client, or None when caching is off or Redis is down."""
    global _client

    if not settings.REDIS_ENABLED:
        return None
    if _client is not None:
        return _client

    candidate = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=1,
        socket_timeout=1,
    )
    try:
        await candidate.ping()
    except redis.RedisError as e:
        await candidate.aclose()
        logger.warning("listing_cache_unreachable", error=str(e))
        return None

    _client = candidate
    logger.info("listing_cache_connected")
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def listing_key(generation: int, page: int, page_size: int, upcoming_only: bool) -> str:
    return f"{LISTING_NAMESPACE}:{generation}:page={page}&size={page_size}&up={int(upcoming_only)}"


async def _generation(client: redis.Redis) -> int:
    return int(await client.get(GENERATION_KEY) or 0)


async def get_cached_events(page: int, page_size: int, upcoming_only: bool) -> Optional[dict]:
    client = await get_redis()
    if client is None:
        return None

    try:
        key = listing_key(await _generation(client), page, page_size, upcoming_only)
        raw = await client.get(key)
    except redis.RedisError as e:
        record_cache_operation("get", "error")
        logger.warning("listing_cache_read_failed", error=str(e))
        return None

    record_cache_operation("get", "hit" if raw else "miss")
    return json.loads(raw) if raw else None


async def set_cached_events(page: int, page_size: int, upcoming_only: bool, data: dict) -> None:
    client = await get_redis()
    if client is None:
        return

    try:
        key = listing_key(await _generation(client), page, page_size, upcoming_only)
        await client.set(key, json.dumps(data), ex=settings.REDIS_CACHE_TTL)
    except redis.RedisError as e:
        record_cache_operation("set", "error")
        logger.warning("listing_cache_write_failed", error=str(e))


async def invalidate_event_cache() -> None:
    """Retire every cached listing page at once."""
    client = await get_redis()
    if client is None:
        return

    try:
        generation = await client.incr(GENERATION_KEY)
    except redis.RedisError as e:
        record_cache_operation("invalidate", "error")
        logger.error("listing_cache_invalidate_failed", error=str(e))
        return
    logger.debug("listing_cache_invalidated", generation=generation)


async def get_cache_stats() -> dict:
    client = await get_redis()
    if client is None:
        return {"status": "disabled"}

    try:
        generation = await _generation(client)
        info = await client.info("stats")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "generation": generation,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
