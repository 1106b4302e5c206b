"""Redis client for idempotency keys on bond creation.

Usage:
    redis = await connect_redis(settings)
    guard = IdempotencyGuard(redis, ttl_seconds=settings.redis_idempotency_ttl_seconds)
    await guard.claim("create-bond:abc")   # raises DuplicateOperationError on reuse
"""

from __future__ import annotations

import redis.asyncio as aioredis

from escrow_bonds.domain.exceptions import DuplicateOperationError
from escrow_bonds.logging_config import get_logger

logger = get_logger(__name__)


async def connect_redis(url: str) -> aioredis.Redis:
    """Create a Redis client and verify connectivity. Called during app startup."""
    client = aioredis.from_url(url, decode_responses=True)
    await client.ping()
    logger.info("redis.connected", url=url)
    return client


async def close_redis(client: aioredis.Redis | None) -> None:
    if client is not None:
        await client.aclose()
        logger.info("redis.disconnected")


class IdempotencyGuard:
    """Claims idempotency keys with a TTL.

    With no Redis client the guard is disabled and every claim succeeds;
    the app keeps serving when Redis is down.
    """

    def __init__(self, client: aioredis.Redis | None, ttl_seconds: int = 86400) -> None:
        self._client = client
        self._ttl = ttl_seconds

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def claim(self, key: str, value: str = "1") -> None:
        """Atomically reserve ``key``. Raises DuplicateOperationError if already used."""
        if self._client is None:
            logger.warning("idempotency.disabled", key=key)
            return
        stored = await self._client.set(f"idempotency:{key}", value, ex=self._ttl, nx=True)
        if not stored:
            raise DuplicateOperationError(key)

    async def release(self, key: str) -> None:
        """Forget a claimed key so a failed operation can be retried with it."""
        if self._client is not None:
            await self._client.delete(f"idempotency:{key}")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        return bool(await self._client.ping())
