"""Async dual-cache (primary + stale + lock pattern) for computed aggregates.

Used for the global rollup, which is a full scan of stored click history:
  1. Return live data if the primary key exists.
  2. Return stale data if the primary expired; refresh in the background.
  3. On a full miss, compute under a short lock and populate both keys.
  4. On lock contention or a Redis error, compute directly so the dashboard
     always gets an answer.

Background refreshes are fire-and-forget tasks; their errors are logged and
swallowed so the request is never affected.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)


class DualCache:
    def __init__(
        self,
        redis_client: Optional[aioredis.Redis],
        primary_ttl: int = 30,
        stale_ttl: int = 120,
        lock_ttl: int = 10,
    ) -> None:
        self._redis = redis_client
        self.primary_ttl = primary_ttl
        self.stale_ttl = stale_ttl
        self.lock_ttl = lock_ttl
        self._tasks: set[asyncio.Task] = set()

    async def _lock(self, key: str) -> bool:
        """Acquire a Redis SET NX EX lock. Returns True if acquired."""
        result = await self._redis.set(key, "1", nx=True, ex=self.lock_ttl)
        return bool(result)

    async def _store(self, base_key: str, data: Any) -> None:
        serialized = json.dumps(data)
        await self._redis.setex(f"{base_key}:live", self.primary_ttl, serialized)
        await self._redis.setex(f"{base_key}:stale", self.stale_ttl, serialized)

    async def get_or_set(
        self, base_key: str, query_fn: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return cached data, or call query_fn and populate the cache.

        Exceptions raised by query_fn propagate; Redis failures do not.
        """
        if self._redis is None:
            return await query_fn()

        lock_key = f"{base_key}:lock"
        try:
            # 1. Primary hit
            raw = await self._redis.get(f"{base_key}:live")
            if raw:
                return json.loads(raw)

            # 2. Stale hit: return stale, refresh in the background
            stale = await self._redis.get(f"{base_key}:stale")
            if stale:
                if await self._lock(lock_key):
                    task = asyncio.create_task(self._refresh(base_key, query_fn))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                return json.loads(stale)

            locked = await self._lock(lock_key)
        except RedisError as e:
            log.warning(
                "dual_cache_redis_error",
                base_key=base_key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return await query_fn()

        # 3. Full miss (or 4. contention, which computes without caching)
        data = await query_fn()
        if locked:
            try:
                await self._store(base_key, data)
                await self._redis.delete(lock_key)
            except RedisError as e:
                log.warning(
                    "dual_cache_store_failed",
                    base_key=base_key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
        else:
            log.debug("dual_cache_lock_contention", base_key=base_key)
        return data

    async def _refresh(
        self, base_key: str, query_fn: Callable[[], Awaitable[Any]]
    ) -> None:
        """Background refresh. Errors are logged and swallowed."""
        try:
            await self._store(base_key, await query_fn())
        except Exception as e:
            log.error(
                "cache_refresh_failed",
                base_key=base_key,
                error=str(e),
                error_type=type(e).__name__,
            )

