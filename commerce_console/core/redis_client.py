"""
Redis client for Commerce Console

Caches the full taxonomy row set, which the storefront reads on every
category page and changes only through the admin console.

Every helper degrades gracefully: with no REDIS_URL, or when Redis errors,
callers fall through to the database.
"""
import json
import logging
from typing import List, Optional

import redis.asyncio as redis

from commerce_console.core.config import settings

logger = logging.getLogger(__name__)

# Global Redis client (initialized lazily)
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get Redis client, initializing if needed.

    Returns None if REDIS_URL not configured (graceful degradation).
    """
    global _redis_client

    if not settings.REDIS_URL:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True
            )
            await _redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed: {e}. Falling back to database reads.")
            _redis_client = None

    return _redis_client


async def close_redis():
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


# ----- Taxonomy Cache -----

TAXONOMY_CACHE_KEY = "taxonomy:all"


async def get_taxonomy_cached() -> Optional[List[dict]]:
    """Get the cached taxonomy rows.

    Returns None if not cached or Redis unavailable.
    """
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(TAXONOMY_CACHE_KEY)
        if data:
            return json.loads(data)
    except Exception as e:
        logger.debug(f"Redis cache miss for taxonomy: {e}")

    return None


async def set_taxonomy_cached(rows: List[dict], ttl_seconds: Optional[int] = None) -> bool:
    """Cache taxonomy rows.

    Returns True if successfully cached, False if Redis unavailable.
    """
    client = await get_redis()
    if not client:
        return False

    try:
        await client.setex(
            TAXONOMY_CACHE_KEY,
            ttl_seconds or settings.TAXONOMY_CACHE_TTL_SECONDS,
            json.dumps(rows, default=str)
        )
        return True
    except Exception as e:
        logger.debug(f"Redis cache set failed for taxonomy: {e}")
        return False


async def invalidate_taxonomy_cache() -> bool:
    """Drop cached taxonomy rows after a category write."""
    client = await get_redis()
    if not client:
        return False
    try:
        await client.delete(TAXONOMY_CACHE_KEY)
        return True
    except Exception as e:
        logger.debug(f"Redis cache delete failed for taxonomy: {e}")
        return False
