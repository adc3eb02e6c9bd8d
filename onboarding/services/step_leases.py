from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import uuid4

import redis.asyncio as redis

from onboarding.core.config import settings
from onboarding.core.step_machine import active_step_key

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class StepLeaseManager:
    """Short-lived per (candidate, step) lease around guard-check-and-dispatch."""

    def __init__(
        self,
        redis_url: str | None = None,
        ttl_seconds: int | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        self._redis_url = (redis_url if redis_url is not None else settings.redis_url or "").strip()
        self._ttl_ms = int((ttl_seconds or settings.step_lease_seconds) * 1000)
        self._redis: redis.Redis | None = client
        self._redis_lock = asyncio.Lock()
        self._held: set[str] = set()
        self._local_lock = asyncio.Lock()

    async def _ensure_redis(self) -> redis.Redis | None:
        if self._redis is not None:
            return self._redis
        if not self._redis_url:
            return None
        async with self._redis_lock:
            if self._redis is None:
                self._redis = redis.from_url(self._redis_url, decode_responses=True)
        return self._redis

    @staticmethod
    def _key(candidate_id: int, step_number: int) -> str:
        return f"ob:step-lease:{active_step_key(candidate_id, step_number)}"

    async def acquire(self, candidate_id: int, step_number: int) -> str | None:
        key = self._key(candidate_id, step_number)
        token = uuid4().hex
        client = await self._ensure_redis()
        if client is not None:
            ok = await client.set(key, token, nx=True, px=self._ttl_ms)
            return token if ok else None
        async with self._local_lock:
            if key in self._held:
                return None
            self._held.add(key)
        return token

    async def release(self, candidate_id: int, step_number: int, token: str) -> None:
        key = self._key(candidate_id, step_number)
        client = await self._ensure_redis()
        if client is not None:
            await client.eval(_RELEASE_SCRIPT, 1, key, token)
            return
        async with self._local_lock:
            self._held.discard(key)

    @asynccontextmanager
    async def hold(self, candidate_id: int, step_number: int) -> AsyncIterator[bool]:
        """Yields True when the lease was taken, False when someone else holds it."""
        token = await self.acquire(candidate_id, step_number)
        if token is None:
            logger.info(
                "step_lease_busy",
                extra={"candidate_id": candidate_id, "step_number": step_number},
            )
            yield False
            return
        try:
            yield True
        finally:
            try:
                await self.release(candidate_id, step_number, token)
            except redis.RedisError:
                # Lease expires on its own after the TTL.
                logger.warning(
                    "step_lease_release_failed",
                    extra={"candidate_id": candidate_id, "step_number": step_number},
                )


step_leases = StepLeaseManager()
