"""Rate limiting dependency for FastAPI routes.

A dependency rather than middleware, so only the routes that declare it
pay for it:

  GET  /v1/verify/{id}   limited per client IP (enumeration guard)
  POST /v1/verify/scan   same bucket as above
  GET  /health           never limited

The bucket is chosen from the client address alone.  Bearer tokens are
not consulted: the routes are public, and an unverified claim would let
a caller mint a fresh bucket per request.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from cert_service.core.metrics import RATE_LIMIT_HITS
from cert_service.db.redis import redis_pool
from cert_service.services.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimiter,
    RedisRateLimiter,
    bucket_key,
)

logger = logging.getLogger(__name__)

_rate_limiter: RateLimiter
if redis_pool is not None:
    _rate_limiter = RedisRateLimiter(redis_pool)
else:
    _rate_limiter = InMemoryRateLimiter()


# Burst of 30 lookups, then one every two seconds.
VERIFY_RATE_LIMIT = RateLimitConfig(name="verify", capacity=30, refill_rate=0.5)


def require_rate_limit(config: RateLimitConfig):
    """Dependency factory: enforce a token bucket on a route.

        router = APIRouter(dependencies=[Depends(require_rate_limit(VERIFY_RATE_LIMIT))])
    """

    async def _check(request: Request) -> None:
        key = bucket_key(config, request.client.host if request.client else None)
        result = await _rate_limiter.check(key, config)

        request.state.rate_limit_headers = {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
        }

        if not result.allowed:
            RATE_LIMIT_HITS.labels(policy=config.name).inc()
            logger.warning("Rate limit exceeded key=%s", key)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded",
                headers={
                    "Retry-After": str(int(result.retry_after) + 1),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return _check
