"""Token-bucket limits for the public verification surface.

Verification is unauthenticated, so it is the endpoint an attacker
would hammer to enumerate certificate ids.  Identifier entropy makes
guessing hopeless; the bucket makes it slow and noisy too.

A bucket holds up to ``capacity`` tokens and refills at ``refill_rate``
tokens per second.  Each lookup costs one token; an empty bucket means
429.  Buckets are keyed by policy name and client address only.  Nothing
the client sends (headers, tokens, query strings) can move it to another
bucket.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    """retry_after: seconds until the next token is available (0 if allowed)."""

    allowed: bool
    remaining: int
    limit: int
    retry_after: float


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """A named policy.  capacity is the burst; refill_rate is tokens/second."""

    name: str
    capacity: int
    refill_rate: float

    @property
    def idle_ttl_seconds(self) -> int:
        # A bucket untouched this long is full again and can be forgotten.
        return math.ceil(self.capacity / self.refill_rate) + 60


def bucket_key(config: RateLimitConfig, client_host: str | None) -> str:
    return f"{config.name}:ip:{client_host or 'unknown'}"


def take_token(
    tokens: float, last_refill: float, now: float, config: RateLimitConfig
) -> tuple[float, RateLimitResult]:
    """Refill for the elapsed time, then try to spend one token.

    Returns the new token count and the outcome.
    """
    tokens = min(config.capacity, tokens + (now - last_refill) * config.refill_rate)
    if tokens >= 1:
        tokens -= 1
        return tokens, RateLimitResult(
            allowed=True, remaining=int(tokens), limit=config.capacity, retry_after=0
        )
    return tokens, RateLimitResult(
        allowed=False,
        remaining=0,
        limit=config.capacity,
        retry_after=(1 - tokens) / config.refill_rate,
    )


@runtime_checkable
class RateLimiter(Protocol):
    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult: ...
    async def reset(self, key: str) -> None: ...


class InMemoryRateLimiter:
    """Per-process buckets for dev and tests.

    Each API process keeps its own buckets; use Redis when running more
    than one instance.
    """

    def __init__(self) -> None:
        # key -> (tokens_remaining, last_refill_timestamp)
        self._buckets: dict[str, tuple[float, float]] = {}

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = time.monotonic()
        tokens, last_refill = self._buckets.get(key, (config.capacity, now))
        tokens, result = take_token(tokens, last_refill, now, config)
        self._buckets[key] = (tokens, now)
        return result

    async def reset(self, key: str) -> None:
        self._buckets.pop(key, None)


class RedisRateLimiter:
    """Buckets shared by every API instance.

    The Lua script is take_token() run atomically inside Redis, so two
    instances cannot spend the same token.
    """

    # KEYS[1] = bucket key
    # ARGV = capacity, refill_rate, now, ttl
    # Returns {allowed (0/1), remaining, retry_after_ms}
    _LUA_SCRIPT = """
    local capacity = tonumber(ARGV[1])
    local refill_rate = tonumber(ARGV[2])
    local now = tonumber(ARGV[3])
    local ttl = tonumber(ARGV[4])

    local bucket = redis.call('HMGET', KEYS[1], 'tokens', 'last_refill')
    local tokens = tonumber(bucket[1]) or capacity
    local last_refill = tonumber(bucket[2]) or now

    tokens = math.min(capacity, tokens + (now - last_refill) * refill_rate)
    local allowed = 0
    local retry_after_ms = 0
    if tokens >= 1 then
        tokens = tokens - 1
        allowed = 1
    else
        retry_after_ms = math.ceil((1 - tokens) / refill_rate * 1000)
    end

    redis.call('HSET', KEYS[1], 'tokens', tokens, 'last_refill', now)
    redis.call('EXPIRE', KEYS[1], ttl)
    return {allowed, math.floor(tokens) * allowed, retry_after_ms}
    """

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._script = self._redis.register_script(self._LUA_SCRIPT)

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        allowed, remaining, retry_after_ms = await self._script(
            keys=[f"ratelimit:{key}"],
            args=[
                config.capacity,
                config.refill_rate,
                time.time(),
                config.idle_ttl_seconds,
            ],
        )
        return RateLimitResult(
            allowed=bool(allowed),
            remaining=int(remaining),
            limit=config.capacity,
            retry_after=retry_after_ms / 1000,
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"ratelimit:{key}")
