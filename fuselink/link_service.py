"""Link Service Layer - Core Lifecycle Logic

This module coordinates identifier allocation, the two-tier read path
(Redis cache in front of the durable store), destruction-policy enforcement
and secure erasure.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                      LinkService                             │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │ IdentifierGen.  │  │  Policy Engine  │  │ SecureEraser │ │
    │  │                 │  │                 │  │              │ │
    │  │ • Sample emoji  │  │ • Permit/Deny   │  │ • Overwrite  │ │
    │  │ • Check store   │  │ • Decrement     │  │ • Delete     │ │
    │  │ • Retry         │  │ • Signal erase  │  │ • Evict      │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                                        │
                ▼                                        ▼
    ┌─────────────────┐                      ┌─────────────────┐
    │   PostgreSQL    │                      │     Redis       │
    │ (source of truth)│                     │ (advisory cache)│
    └─────────────────┘                      └─────────────────┘

Request Flow Diagrams
=====================

Link Creation Flow
------------------
::
    ┌─────────────┐
    │  POST /api  │
    │  /shorten    │
    └──────┬──────┘
           ▼
    ┌─────────────┐   taken   ┌─────────────┐
    │ Custom alias├──────────►│ 409 Conflict│
    │ or allocate │           └─────────────┘
    └──────┬──────┘
           ▼
    ┌─────────────┐  PK clash (generated id)
    │ INSERT row  ├────────► allocate again
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ SETEX cache │  (failure logged, ignored)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ 201 Created │
    └─────────────┘

Consume Flow
------------
::
    ┌─────────────┐
    │  GET /:id    │
    └──────┬──────┘
           ▼
    ┌─────────────┐   HIT
    │ Redis GET   ├────────► return destination (policy NOT evaluated)
    └──────┬──────┘
       MISS│
           ▼
    ┌─────────────┐   none
    │ SELECT row  ├────────► 404 Not Found
    └──────┬──────┘
           ▼
    ┌─────────────┐   PERMIT, nothing to write
    │ evaluate()  ├────────► re-cache if Permanent, 307 Redirect
    └──────┬──────┘
           │ counts, expires or exhausts
           ▼
    ┌─────────────┐   row gone
    │ lock row    ├────────► 410 Gone (an earlier read erased it)
    │ (re-read)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐   DENY
    │ evaluate()  ├────────► erase, 410 Gone
    └──────┬──────┘
     PERMIT│
           ▼
    ┌─────────────┐
    │ erase if    │  (exhausting read)
    │ signalled,  │
    │ else save   │
    │ and COMMIT  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ 307 Redirect│
    └─────────────┘

Key Behaviours
===============
- The store is written first; the cache only ever copies committed state.
- A cache hit skips policy evaluation until the entry's TTL runs out.
- Reads that change policy state hold the row lock from evaluation to commit,
  so concurrent reads of the same link are applied one after another.
- The read that exhausts a ClickFuse returns the destination, then erases.
- Cache failures are logged and never change the result.
- Destinations are not logged on the read path.

Example
=======
```python
service = LinkService.from_context(ctx)
link = await service.create_link("https://example.com", policy=ClickFuse(remaining=2))
destination = await service.consume(link.id)
```
"""

import datetime
import time
from typing import Callable, Optional

from prometheus_client import Counter, Histogram

from fuselink.enums import CacheStatus, ErasureReason, RequestStatus
from fuselink.erasure import SecureEraser
from fuselink.exceptions import (
    FuseLinkError,
    IdentifierSpaceExhaustedError,
    LinkConflictError,
    LinkGoneError,
    LinkNotFoundError,
    LinkValidationError,
)
from fuselink.identifiers import IdentifierGenerator, is_identifier
from fuselink.models import Link
from fuselink.policy import DestructionPolicy, Permanent, dump_policy, evaluate
from fuselink.store import IdentifierTakenError, LinkStore

__all__ = ["LinkService", "utcnow"]


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "fuselink_creation_requests_total",
    "Total link creation requests",
    ["status"],
)
LINK_CONSUME_REQUESTS_TOTAL = Counter(
    "fuselink_consume_requests_total",
    "Total link consume requests",
    ["status", "cache_hit"],
)
LINK_CREATION_DURATION = Histogram(
    "fuselink_creation_duration_seconds",
    "Time taken to create links",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
LINK_CONSUME_DURATION = Histogram(
    "fuselink_consume_duration_seconds",
    "Time taken to resolve links",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
CACHE_HITS_TOTAL = Counter(
    "fuselink_cache_hits_total",
    "Total cache hits for link lookups",
)
CACHE_MISSES_TOTAL = Counter(
    "fuselink_cache_misses_total",
    "Total cache misses for link lookups",
)
LINK_ERASURES_TOTAL = Counter(
    "fuselink_erasures_total",
    "Total links securely erased",
    ["reason"],
)
IDENTIFIER_COLLISIONS_TOTAL = Counter(
    "fuselink_identifier_collisions_total",
    "Generated identifiers rejected by the store at insert time",
)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _request_status(exc: FuseLinkError) -> RequestStatus:
    if isinstance(exc, LinkValidationError):
        return RequestStatus.VALIDATION_ERROR
    if isinstance(exc, LinkConflictError):
        return RequestStatus.CONFLICT
    if isinstance(exc, LinkNotFoundError):
        return RequestStatus.NOT_FOUND
    if isinstance(exc, LinkGoneError):
        return RequestStatus.GONE
    return RequestStatus.ERROR


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================

class LinkService:
    """Coordinator for the link lifecycle.

    One instance serves one request: it owns the request's store session and
    shares the process-wide cache client through the request context.

    Example:
        >>> service = LinkService.from_context(ctx)
        >>> link = await service.create_link("https://example.com")
        >>> await service.consume(link.id)
        'https://example.com'
    """

    def __init__(self, ctx: "RequestContext", clock: Optional[Callable[[], datetime.datetime]] = None):
        """Initialize service from a request context.

        Args:
            ctx: Request context with the store session, cache, logger and settings
            clock: Source of the evaluation time, defaults to the UTC wall clock
        """
        self._settings = ctx.settings
        self._logger = ctx.logger
        self._cache = ctx.cache
        self._store = LinkStore(ctx.database)
        self._clock = clock or utcnow
        self._generator = IdentifierGenerator(
            self._store,
            max_attempts=self._settings.ID_MAX_ATTEMPTS,
            length=self._settings.ID_SYMBOL_COUNT,
        )
        self._eraser = SecureEraser(
            self._store,
            self._cache,
            noise_length=self._settings.ERASURE_NOISE_LENGTH,
        )

    @classmethod
    def from_context(
        cls, ctx: "RequestContext", clock: Optional[Callable[[], datetime.datetime]] = None
    ) -> "LinkService":
        return cls(ctx, clock=clock)

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_link(
        self,
        original_url: str,
        custom_alias: Optional[str] = None,
        policy: Optional[DestructionPolicy] = None,
    ) -> Link:
        """Persist a new link, then populate the cache.

        Args:
            original_url: Destination URL, already validated
            custom_alias: Requested identifier; generated when omitted
            policy: Destruction policy, Permanent when omitted

        Returns:
            Link: The committed record

        Raises:
            LinkValidationError: If the alias is not a valid identifier
            LinkConflictError: If the alias is already taken
            InternalServiceError: On store failure or identifier exhaustion
        """
        start_time = time.perf_counter()
        policy = policy if policy is not None else Permanent()

        try:
            if custom_alias is not None:
                link = await self._insert_with_alias(original_url, custom_alias, policy)
            else:
                link = await self._insert_with_generated_id(original_url, policy)

            await self._cache.put(link.id, link.destination)

            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
            self._logger.info(f"Link created: {link.id} ({policy.kind})")
            return link

        except FuseLinkError as exc:
            status = _request_status(exc)
            LINK_CREATION_REQUESTS_TOTAL.labels(status=status).inc()
            if status is RequestStatus.ERROR:
                self._logger.error(f"Link creation error: {exc}")
            else:
                self._logger.warning(f"Link creation rejected: {exc}")
            raise

        finally:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)

    async def consume(self, link_id: str) -> str:
        """Resolve ``link_id`` to its destination, enforcing its destruction policy.

        Args:
            link_id: Identifier to resolve

        Returns:
            str: The destination URL

        Raises:
            LinkNotFoundError: If no record exists
            LinkGoneError: If the policy denied access (the record is erased)
            InternalServiceError: On store failure, including a failed erasure
        """
        start_time = time.perf_counter()
        cache_status = CacheStatus.MISS

        try:
            cached = await self._cache.get(link_id)
            if cached is not None:
                cache_status = CacheStatus.HIT
                CACHE_HITS_TOTAL.inc()
                LINK_CONSUME_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=cache_status).inc()
                self._logger.debug(f"Cache hit for {link_id}")
                return cached

            CACHE_MISSES_TOTAL.inc()
            destination = await self._consume_from_store(link_id)
            LINK_CONSUME_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=cache_status).inc()
            return destination

        except FuseLinkError as exc:
            status = _request_status(exc)
            LINK_CONSUME_REQUESTS_TOTAL.labels(status=status, cache_hit=cache_status).inc()
            if status is RequestStatus.ERROR:
                self._logger.error(f"Consume error for {link_id}: {exc}")
            else:
                self._logger.info(f"Consume of {link_id} refused: {status}")
            raise

        finally:
            LINK_CONSUME_DURATION.observe(time.perf_counter() - start_time)

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _insert_with_alias(self, original_url: str, alias: str, policy: DestructionPolicy) -> Link:
        if not is_identifier(alias, self._settings.ID_SYMBOL_COUNT):
            raise LinkValidationError("Custom alias must be exactly three emoji symbols")

        if await self._store.exists(alias):
            raise LinkConflictError("Emoji combination already exists")

        try:
            return await self._store.insert(self._new_link(alias, original_url, policy))
        except IdentifierTakenError as exc:
            raise LinkConflictError("Emoji combination already exists") from exc

    async def _insert_with_generated_id(self, original_url: str, policy: DestructionPolicy) -> Link:
        for _ in range(self._settings.ID_MAX_ATTEMPTS):
            link_id = await self._generator.allocate()
            try:
                return await self._store.insert(self._new_link(link_id, original_url, policy))
            except IdentifierTakenError:
                IDENTIFIER_COLLISIONS_TOTAL.inc()
                self._logger.warning(f"Identifier {link_id} taken at insert, allocating again")

        raise IdentifierSpaceExhaustedError(
            f"Insert kept colliding after {self._settings.ID_MAX_ATTEMPTS} attempts"
        )

    @staticmethod
    def _new_link(link_id: str, original_url: str, policy: DestructionPolicy) -> Link:
        return Link(id=link_id, destination=original_url, policy=dump_policy(policy), version=0)

    async def _consume_from_store(self, link_id: str) -> str:
        link = await self._store.fetch(link_id)
        if link is None:
            raise LinkNotFoundError("Not Found")

        verdict = evaluate(link.destruction_policy, self._clock())
        if verdict.permitted and not verdict.consumed and not verdict.erase:
            # No state to write, so no lock to take.
            if isinstance(verdict.policy, Permanent):
                await self._cache.put(link_id, link.destination)
            return link.destination

        link = await self._store.lock(link_id)
        if link is None:
            # Erased by the read that held the lock before this one.
            raise LinkGoneError("Link expired")

        try:
            verdict = evaluate(link.destruction_policy, self._clock())
            destination = link.destination
            if not verdict.permitted:
                await self._erase(link_id, ErasureReason.DENIED)
            elif verdict.erase:
                await self._erase(link_id, ErasureReason.EXHAUSTED)
            else:
                if verdict.consumed:
                    await self._store.save_policy(link, verdict.policy)
                await self._store.commit()
        except Exception:
            await self._store.rollback()
            raise

        if not verdict.permitted:
            raise LinkGoneError("Link expired")
        return destination

    async def _erase(self, link_id: str, reason: ErasureReason) -> None:
        await self._eraser.erase(link_id)
        LINK_ERASURES_TOTAL.labels(reason=reason).inc()
        self._logger.info(f"Link {link_id} erased ({reason})")
