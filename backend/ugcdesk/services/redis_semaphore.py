"""
Redis-based distributed semaphore.

Used to serialize derived-asset jobs per content item when
SERIALIZE_ASSET_JOBS_PER_CONTENT is on, so parallel submissions for the same
content do not hit the enhancement services at the same time.

Uses a Redis sorted set (ZSET) where:
- key: sem:{name}
- members: unique tokens (UUIDs)
- scores: expiry timestamps (unix epoch)

Expired tokens are cleaned up on every acquire attempt.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from ugcdesk.settings import get_settings

logger = logging.getLogger(__name__)

_redis_client: aioredis.Redis | None = None


def _get_redis() -> aioredis.Redis:
    """Get or create a shared async Redis client."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_client


def _sem_key(name: str) -> str:
    return f"sem:{name}"


async def acquire(
    name: str,
    limit: int,
    *,
    ttl_sec: int | None = None,
    wait_timeout_sec: int | None = None,
) -> str:
    """Acquire a semaphore slot.

    Returns a token that must be passed to release().
    Raises TimeoutError if no slot frees up within wait_timeout_sec.
    """
    settings = get_settings()
    if ttl_sec is None:
        ttl_sec = settings.redis_semaphore_ttl_sec
    if wait_timeout_sec is None:
        wait_timeout_sec = settings.semaphore_wait_timeout_sec

    r = _get_redis()
    key = _sem_key(name)
    token = str(uuid.uuid4())
    deadline = time.monotonic() + wait_timeout_sec
    backoff = 1.0

    while True:
        now_ts = time.time()
        await r.zremrangebyscore(key, "-inf", now_ts)
        current = await r.zcard(key)

        if current < limit:
            added = await r.zadd(key, {token: now_ts + ttl_sec}, nx=True)
            if added:
                # Double-check we didn't exceed limit (race condition guard)
                new_count = await r.zcard(key)
                if new_count > limit:
                    await r.zrem(key, token)
                else:
                    logger.info(f"[semaphore] Acquired '{name}' (token={token[:8]}…, count={new_count}/{limit})")
                    return token

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(
                f"Semaphore '{name}': timed out waiting {wait_timeout_sec}s "
                f"for slot (limit={limit}, current={current})"
            )

        wait = min(backoff, remaining)
        logger.debug(f"[semaphore] '{name}' full ({current}/{limit}), waiting {wait:.1f}s")
        await asyncio.sleep(wait)
        backoff = min(backoff * 1.5, 5.0)


async def release(name: str, token: str) -> None:
    r = _get_redis()
    removed = await r.zrem(_sem_key(name), token)
    if removed:
        logger.info(f"[semaphore] Released '{name}' (token={token[:8]}…)")
    else:
        logger.warning(f"[semaphore] Release '{name}': token {token[:8]}… not found (expired or released)")


@asynccontextmanager
async def hold(name: str, limit: int = 1):
    token = await acquire(name, limit)
    try:
        yield token
    finally:
        await release(name, token)
