"""
Redis Cache Adapter
===================

Adapter for Redis as the trust score cache.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from product_trust.adapters.outbound.redis_client import connect_with_retries
from product_trust.domain.results import TrustScore
from product_trust.ports.cache import TrustScoreCache

if TYPE_CHECKING:
    import redis.asyncio as redis

    from product_trust.infrastructure.config import RedisSettings

logger = logging.getLogger(__name__)

CACHE_PREFIX = "pt:score:"
INDEX_PREFIX = "pt:score-index:"


class RedisTrustScoreCache(TrustScoreCache):
    """
    Adapter for Redis as a trust score cache.

    Supports:
    - Exact lookup by (product id, fingerprint)
    - TTL-based expiration
    - Per-product invalidation through a key index set

    Read and write failures are logged and treated as misses; the cache
    never fails a request.
    """

    def __init__(self, settings: RedisSettings) -> None:
        """
        Initialize the adapter with configuration.

        Args:
            settings: Redis connection settings.
        """
        self._settings = settings
        self._client: redis.Redis | None = None  # type: ignore[type-arg]
        self._default_ttl = settings.cache_ttl_seconds

    @property
    def client(self) -> redis.Redis | None:  # type: ignore[type-arg]
        """The connected client, shared with the Redis history stores."""
        return self._client

    async def connect(self) -> None:
        """Establish connection to Redis with retries."""
        self._client = await connect_with_retries(self._settings)

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("Disconnected from Redis")

    async def health_check(self) -> bool:
        """Check if Redis is reachable."""
        if self._client is None:
            return False
        try:
            await self._client.ping()  # type: ignore[misc]
            return True
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def _make_key(self, product_id: str, fingerprint: str) -> str:
        """Create full cache key with prefix."""
        return f"{CACHE_PREFIX}{product_id}:{fingerprint}"

    def _make_index_key(self, product_id: str) -> str:
        return f"{INDEX_PREFIX}{product_id}"

    async def get(self, product_id: str, fingerprint: str) -> TrustScore | None:
        if self._client is None:
            logger.warning("Redis client not connected")
            return None

        full_key = self._make_key(product_id, fingerprint)
        try:
            data = await self._client.get(full_key)
            if data is None:
                return None
            json_data = json.loads(data)
            return TrustScore.model_validate(json_data)

        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to deserialize cached score {full_key}: {e}")
            await self._delete(full_key)
            return None
        except Exception as e:
            logger.error(f"Cache get failed: {e}")
            return None

    async def set(
        self,
        product_id: str,
        fingerprint: str,
        score: TrustScore,
        ttl_seconds: int | None = None,
    ) -> None:
        if self._client is None:
            logger.warning("Redis client not connected")
            return

        try:
            full_key = self._make_key(product_id, fingerprint)
            index_key = self._make_index_key(product_id)
            ttl = ttl_seconds or self._default_ttl
            pipe = self._client.pipeline()
            pipe.set(full_key, score.model_dump_json(), ex=ttl)
            pipe.sadd(index_key, full_key)
            pipe.expire(index_key, ttl)
            await pipe.execute()
            logger.debug(f"Cached score for {product_id}/{fingerprint} with TTL {ttl}s")

        except Exception as e:
            logger.error(f"Cache set failed: {e}")

    async def invalidate_product(self, product_id: str) -> int:
        if self._client is None:
            return 0

        try:
            index_key = self._make_index_key(product_id)
            members = await self._client.smembers(index_key)  # type: ignore[misc]
            if not members:
                return 0
            deleted = await self._client.delete(*members)
            await self._client.delete(index_key)
            return int(deleted)
        except Exception as e:
            logger.error(f"Cache invalidate failed for {product_id}: {e}")
            return 0

    async def clear(self) -> int:
        """Delete every score and index key; other data in the DB is kept."""
        if self._client is None:
            return 0

        try:
            count = 0
            for pattern in (f"{CACHE_PREFIX}*", f"{INDEX_PREFIX}*"):
                async for key in self._client.scan_iter(match=pattern):
                    count += await self._client.delete(key)
            logger.info(f"Cleared {count} cache key(s)")
            return count
        except Exception as e:
            logger.error(f"Cache clear failed: {e}")
            return 0

    async def get_stats(self) -> dict[str, Any]:
        if self._client is None:
            return {"connected": False}

        try:
            cached_scores = 0
            async for _ in self._client.scan_iter(match=f"{CACHE_PREFIX}*"):
                cached_scores += 1
            info = await self._client.info("stats")
            return {
                "connected": True,
                "cached_scores": cached_scores,
                "keyspace_hits": info.get("keyspace_hits", 0),
                "keyspace_misses": info.get("keyspace_misses", 0),
            }
        except Exception as e:
            logger.error(f"Failed to get cache stats: {e}")
            return {"connected": True, "error": str(e)}

    async def _delete(self, key: str) -> None:
        if self._client is None:
            return
        try:
            await self._client.delete(key)
        except Exception as e:
            logger.error(f"Cache delete failed: {e}")
