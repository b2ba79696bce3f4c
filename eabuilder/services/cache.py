"""
EA Builder Model List Cache

Read-through cache of per-owner model list snapshots, shared by every worker
process through Redis.

Features:
- TTL-based expiration (SET PX)
- Explicit invalidation per owner on writes
- Generation tokens so a snapshot read before a write is never stored after it
- Hit/miss/error statistics

Readers take a generation token before querying the store and hand it back to
set(). invalidate() and clear() bump the owner generation or the global epoch,
so a snapshot computed from pre-write rows is discarded instead of cached.

CACHE_BACKEND=memory keeps snapshots in the current process only; it exists
for tests and single-process development.
"""

import copy
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from ..config.settings import settings

logger = logging.getLogger(__name__)

Snapshot = List[Dict[str, Any]]


@dataclass
class CacheEntry:
    """Cached list snapshot with metadata."""
    key: int
    value: Snapshot
    expires_at: float
    created_at: float = field(default_factory=time.monotonic)


@dataclass
class CacheStats:
    """Cache statistics."""
    hits: int = 0
    misses: int = 0
    sets: int = 0
    stale_sets: int = 0
    invalidations: int = 0
    evictions: int = 0
    errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "stale_sets": self.stale_sets,
            "invalidations": self.invalidations,
            "evictions": self.evictions,
            "errors": self.errors,
            "hit_rate": round(self.hit_rate, 4),
        }


class ModelListCache:
    """
    Owner id -> list of serialized EA models.

    Subclasses implement the storage; callers only use the coroutines below.
    """

    backend = "none"

    def __init__(self, ttl_seconds: float = 30.0, enabled: bool = True):
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    async def generation(self, owner_id: int) -> Hashable:
        """Token to pass to set(); changes whenever the owner is invalidated."""
        raise NotImplementedError

    async def get(self, owner_id: int) -> Optional[Snapshot]:
        """Return the cached snapshot, or None when absent or expired."""
        raise NotImplementedError

    async def set(self, owner_id: int, value: Snapshot, generation: Hashable) -> bool:
        """Store value unless the owner was invalidated since `generation` was taken."""
        raise NotImplementedError

    async def invalidate(self, *owner_ids: int) -> None:
        """Drop the snapshots of the given owners."""
        raise NotImplementedError

    async def clear(self) -> None:
        """Drop every snapshot."""
        raise NotImplementedError

    async def size(self) -> int:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


class MemoryModelListCache(ModelListCache):
    """Single-process storage with oldest-entry eviction."""

    backend = "memory"

    def __init__(
        self,
        ttl_seconds: float = 30.0,
        max_entries: int = 10_000,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(ttl_seconds=ttl_seconds, enabled=enabled)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[int, CacheEntry]" = OrderedDict()
        self._generations: Dict[int, int] = {}
        self._epoch = 0

    async def generation(self, owner_id: int) -> Hashable:
        return (self._epoch, self._generations.get(owner_id, 0))

    async def get(self, owner_id: int) -> Optional[Snapshot]:
        if not self.enabled:
            return None

        entry = self._entries.get(owner_id)
        if entry is None:
            self._stats.misses += 1
            return None
        if entry.expires_at <= self._clock():
            del self._entries[owner_id]
            self._stats.misses += 1
            self._stats.evictions += 1
            return None
        self._stats.hits += 1
        return copy.deepcopy(entry.value)

    async def set(self, owner_id: int, value: Snapshot, generation: Hashable) -> bool:
        if not self.enabled:
            return False
        if generation != await self.generation(owner_id):
            self._stats.stale_sets += 1
            return False

        self._entries.pop(owner_id, None)
        self._entries[owner_id] = CacheEntry(
            key=owner_id,
            value=copy.deepcopy(value),
            expires_at=self._clock() + self.ttl_seconds,
        )
        self._stats.sets += 1
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            self._stats.evictions += 1
        return True

    async def invalidate(self, *owner_ids: int) -> None:
        for owner_id in owner_ids:
            self._generations[owner_id] = self._generations.get(owner_id, 0) + 1
            if self._entries.pop(owner_id, None) is not None:
                self._stats.invalidations += 1
                logger.debug(f"Invalidated model list cache for owner {owner_id}")

    async def clear(self) -> None:
        self._epoch += 1
        self._stats.invalidations += len(self._entries)
        self._entries.clear()

    async def size(self) -> int:
        return len(self._entries)


class RedisModelListCache(ModelListCache):
    """
    Snapshots shared by all workers through Redis.

    Keys:
        {prefix}:owner:{id}       JSON snapshot, expires after ttl_seconds
        {prefix}:generation:{id}  INCR'd on every invalidation of the owner
        {prefix}:epoch            INCR'd on clear()

    Redis failures degrade to cache misses and are counted in stats.errors;
    they never fail the request.
    """

    backend = "redis"

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl_seconds: float = 30.0,
        enabled: bool = True,
        key_prefix: str = "ea_models",
        client: Optional[aioredis.Redis] = None,
    ):
        super().__init__(ttl_seconds=ttl_seconds, enabled=enabled)
        self.key_prefix = key_prefix
        self._redis = client if client is not None else aioredis.from_url(url, decode_responses=True)

    def _list_key(self, owner_id: int) -> str:
        return f"{self.key_prefix}:owner:{owner_id}"

    def _generation_key(self, owner_id: int) -> str:
        return f"{self.key_prefix}:generation:{owner_id}"

    @property
    def _epoch_key(self) -> str:
        return f"{self.key_prefix}:epoch"

    def _record_error(self, operation: str, error: Exception) -> None:
        self._stats.errors += 1
        logger.error(f"Redis cache {operation} failed: {error}")

    @staticmethod
    def _token(values: List[Optional[str]]) -> Hashable:
        return tuple(value or "0" for value in values)

    async def generation(self, owner_id: int) -> Hashable:
        try:
            return self._token(await self._redis.mget(self._epoch_key, self._generation_key(owner_id)))
        except RedisError as e:
            self._record_error("generation", e)
            return None

    async def get(self, owner_id: int) -> Optional[Snapshot]:
        if not self.enabled:
            return None
        try:
            raw = await self._redis.get(self._list_key(owner_id))
        except RedisError as e:
            self._record_error("get", e)
            return None

        if raw is None:
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        return json.loads(raw)

    async def set(self, owner_id: int, value: Snapshot, generation: Hashable) -> bool:
        if not self.enabled or generation is None:
            return False

        epoch_key = self._epoch_key
        generation_key = self._generation_key(owner_id)
        payload = json.dumps(value)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(epoch_key, generation_key)
                current = self._token(await pipe.mget(epoch_key, generation_key))
                if current != generation:
                    self._stats.stale_sets += 1
                    return False
                pipe.multi()
                pipe.set(self._list_key(owner_id), payload, px=int(self.ttl_seconds * 1000))
                await pipe.execute()
        except WatchError:
            self._stats.stale_sets += 1
            return False
        except RedisError as e:
            self._record_error("set", e)
            return False

        self._stats.sets += 1
        return True

    async def invalidate(self, *owner_ids: int) -> None:
        if not owner_ids:
            return
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                for owner_id in owner_ids:
                    pipe.incr(self._generation_key(owner_id))
                    pipe.delete(self._list_key(owner_id))
                await pipe.execute()
        except RedisError as e:
            self._record_error("invalidate", e)
            return
        self._stats.invalidations += len(owner_ids)

    async def clear(self) -> None:
        try:
            await self._redis.incr(self._epoch_key)
            batch: List[str] = []
            async for key in self._redis.scan_iter(match=f"{self.key_prefix}:owner:*", count=500):
                batch.append(key)
                if len(batch) >= 500:
                    self._stats.invalidations += await self._redis.delete(*batch)
                    batch = []
            if batch:
                self._stats.invalidations += await self._redis.delete(*batch)
        except RedisError as e:
            self._record_error("clear", e)

    async def size(self) -> int:
        try:
            count = 0
            async for _ in self._redis.scan_iter(match=f"{self.key_prefix}:owner:*", count=500):
                count += 1
            return count
        except RedisError as e:
            self._record_error("size", e)
            return 0

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            self._record_error("ping", e)
            return False

    async def close(self) -> None:
        await self._redis.aclose()


def create_model_cache() -> ModelListCache:
    """Build the cache selected by CACHE_BACKEND."""
    cfg = settings.cache
    if cfg.backend == "memory":
        return MemoryModelListCache(
            ttl_seconds=cfg.ttl_seconds,
            max_entries=cfg.max_entries,
            enabled=cfg.enabled,
        )
    return RedisModelListCache(
        url=cfg.redis_url,
        ttl_seconds=cfg.ttl_seconds,
        enabled=cfg.enabled,
        key_prefix=cfg.key_prefix,
    )


_model_cache: Optional[ModelListCache] = None


def get_model_cache() -> ModelListCache:
    """Get the process-wide model list cache."""
    global _model_cache
    if _model_cache is None:
        _model_cache = create_model_cache()
        logger.info(f"Model list cache backend: {_model_cache.backend}")
    return _model_cache


async def close_model_cache() -> None:
    """Close the process-wide cache; the next call builds a fresh one."""
    global _model_cache
    if _model_cache is not None:
        await _model_cache.close()
        _model_cache = None


def reset_model_cache() -> None:
    """Discard the process-wide cache without closing connections."""
    global _model_cache
    _model_cache = None
