"""Redis cache access for link destinations.

The cache is advisory: every method here classifies and logs Redis failures
and then behaves as if the cache were cold, so a broken cache can slow the
service down but never change the outcome of create or consume.

Key Schema
==========
::
    <CACHE_KEY_PREFIX>:<link id>  →  destination URL   (SETEX, CACHE_TTL_SECONDS)

Functions:
    create_cache_client():  Builds the redis.asyncio client from settings.

Classes:
    LinkCache:  get / put / evict / ping on top of a redis.asyncio client.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from fuselink.config import Settings
from fuselink.exceptions import classify_cache_error

__all__ = ["LinkCache", "create_cache_client"]

logger = logging.getLogger("fuselink.cache")


def create_cache_client(settings: Settings) -> redis.Redis:
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
    )


class LinkCache:
    def __init__(self, client: redis.Redis, settings: Settings):
        self._client = client
        self._prefix = settings.CACHE_KEY_PREFIX
        self._ttl = settings.CACHE_TTL_SECONDS

    @property
    def client(self) -> redis.Redis:
        return self._client

    def key(self, link_id: str) -> str:
        return f"{self._prefix}:{link_id}"

    async def get(self, link_id: str) -> Optional[str]:
        try:
            return await self._client.get(self.key(link_id))
        except Exception as exc:
            error = classify_cache_error(exc)
            logger.warning(f"Cache read failed for {link_id}, falling back to store: {error}")
            return None

    async def put(self, link_id: str, destination: str) -> bool:
        try:
            await self._client.setex(self.key(link_id), self._ttl, destination)
            return True
        except Exception as exc:
            error = classify_cache_error(exc)
            logger.warning(f"Cache population failed for {link_id}: {error}")
            return False

    async def evict(self, link_id: str) -> bool:
        try:
            await self._client.delete(self.key(link_id))
            return True
        except Exception as exc:
            error = classify_cache_error(exc)
            logger.error(f"Cache eviction failed for {link_id}, entry lives until its TTL: {error}")
            return False

    async def ping(self) -> bool:
        try:
            await self._client.ping()
            return True
        except Exception as exc:
            logger.error(f"Cache ping failed: {classify_cache_error(exc)}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
