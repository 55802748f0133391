"""Secure erasure of link records.

Erasure evicts the cache entry, overwrites the stored destination with random
noise, deletes the row, commits, and evicts the cache entry once more. The
overwrite and the delete share the caller's transaction, so a row locked by
``LinkStore.lock`` stays locked until it is gone. The last row version the
store writes for an erased link holds noise, not the destination.
"""

import logging

from nanoid import generate

from fuselink.cache import LinkCache
from fuselink.store import LinkStore

__all__ = ["NOISE_ALPHABET", "SecureEraser", "make_noise"]

logger = logging.getLogger("fuselink.erasure")

NOISE_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def make_noise(length: int) -> str:
    return generate(NOISE_ALPHABET, length)


class SecureEraser:
    def __init__(self, store: LinkStore, cache: LinkCache, noise_length: int = 256):
        self._store = store
        self._cache = cache
        self._noise_length = noise_length

    async def erase(self, link_id: str) -> bool:
        """Overwrite, then delete the record for ``link_id`` and evict it from the cache.

        Args:
            link_id: Identifier of the record to destroy.

        Returns:
            bool: True if a row was deleted, False if it was already gone.

        Raises:
            StorageError: If the overwrite, the delete or the commit fails. The
                transaction is rolled back and the record may still be readable.
        """
        await self._cache.evict(link_id)

        overwritten = await self._store.overwrite_destination(link_id, make_noise(self._noise_length))
        deleted = await self._store.delete(link_id)
        await self._store.commit()

        # A read that missed the first eviction may have re-cached the destination.
        await self._cache.evict(link_id)

        if deleted:
            logger.info(f"Securely erased link {link_id} (overwritten={overwritten})")
        else:
            logger.debug(f"Erasure of {link_id} found no row, already erased")
        return deleted
