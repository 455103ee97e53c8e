"""Redis connection management.

Mirrors the pattern in engine.py: when REDIS_URL is configured we create
a real connection pool; when it's None (local dev, tests) the rate
limiter falls back to its in-memory implementation.

Redis holds only ephemeral, shared counters here (token buckets for the
public verification endpoint).  Certificate state lives in PostgreSQL
and is never cached in Redis.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from cert_service.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirrors lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured; rate limiting is per-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]  # redis stubs mistype async ping as bool
        logger.info("Redis connected")
    except Exception:
        logger.exception("Redis connection failed on startup")
        # Keep serving; the limiter degrades rather than the whole app.
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
