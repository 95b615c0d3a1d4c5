import json
import logging
from collections import Counter

import redis.asyncio as redis
from redis.exceptions import RedisError

from bloglite.config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Cache-aside store for public read-model queries.

    Values are JSON documents under ``<namespace>:<kind>:<args...>`` keys.
    With no Redis connection every lookup is a miss and every write is a
    no-op, so callers never branch on cache availability.

    The read model only changes when the outbox dispatcher commits a batch,
    so the dispatcher (not the command handlers) drops the namespace through
    ``invalidate_articles``.
    """

    def __init__(self, namespace: str = "articles", unlink_chunk: int = 500) -> None:
        self.namespace = namespace
        self.unlink_chunk = unlink_chunk
        self._redis: redis.Redis | None = None
        self._counts: Counter[str] = Counter()

    async def connect(self) -> None:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except RedisError as exc:
            logger.warning("Redis unreachable at %s, caching off: %s", settings.REDIS_URL, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Article cache using %s (namespace=%r)", settings.REDIS_URL, self.namespace)

    async def disconnect(self) -> None:
        client, self._redis = self._redis, None
        if client is not None:
            await client.aclose()

    @property
    def connected(self) -> bool:
        return self._redis is not None

    def key(self, kind: str, *args) -> str:
        return ":".join([self.namespace, kind, *(str(a) for a in args)])

    async def get(self, key: str) -> dict | list | None:
        """Cached JSON value for *key*; None on a miss or a Redis error."""
        raw = None
        if self._redis is not None:
            try:
                raw = await self._redis.get(key)
            except RedisError as exc:
                self._counts["errors"] += 1
                logger.debug("cache read failed for %s: %s", key, exc)
        if raw is None:
            self._counts["misses"] += 1
            return None
        self._counts["hits"] += 1
        return json.loads(raw)

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except RedisError as exc:
            self._counts["errors"] += 1
            logger.debug("cache write failed for %s: %s", key, exc)

    async def delete_pattern(self, pattern: str) -> int:
        """UNLINK every key matching *pattern*; returns how many were dropped."""
        if self._redis is None:
            return 0
        dropped = 0
        batch: list[str] = []
        try:
            async for key in self._redis.scan_iter(match=pattern, count=self.unlink_chunk):
                batch.append(key)
                if len(batch) >= self.unlink_chunk:
                    dropped += await self._redis.unlink(*batch)
                    batch.clear()
            if batch:
                dropped += await self._redis.unlink(*batch)
        except RedisError as exc:
            self._counts["errors"] += 1
            logger.debug("cache purge of %s failed after %d key(s): %s", pattern, dropped, exc)
        return dropped

    async def invalidate_articles(self, *_args) -> None:
        """Drop the whole namespace. Extra arguments are ignored (after_commit hook)."""
        self._counts["invalidations"] += 1
        dropped = await self.delete_pattern(f"{self.namespace}:*")
        if dropped:
            logger.debug("Invalidated %d cached article key(s)", dropped)

    @property
    def stats(self) -> dict:
        lookups = self._counts["hits"] + self._counts["misses"]
        return {
            "connected": self.connected,
            "hits": self._counts["hits"],
            "misses": self._counts["misses"],
            "errors": self._counts["errors"],
            "hit_rate": round(100 * self._counts["hits"] / lookups, 1) if lookups else 0.0,
            "invalidations": self._counts["invalidations"],
        }


cache = CacheManager()
