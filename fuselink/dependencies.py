"""Dependency injection around an explicitly constructed service manager.

The ``ServiceManager`` owns the process-wide handles (store engine, session
factory, Redis client, logger). It is built in the application lifespan,
stored on ``app.state`` and torn down at shutdown; nothing connects at import
time. Each request gets its own ``AsyncSession`` and a ``RequestContext``
bundling it with the shared handles.
"""

import logging
import time
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from fuselink.cache import LinkCache, create_cache_client
from fuselink.config import Settings, get_settings
from fuselink.database import close_db, create_engine, create_session_factory, init_db
from fuselink.link_service import LinkService


# ============================================================================
# SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Holder of the shared resources for one process.

    Args:
        settings: Application settings
        engine: Async engine of the durable store
        cache_client: redis.asyncio client of the cache
    """

    def __init__(self, settings: Settings, engine: AsyncEngine, cache_client: redis.Redis):
        self.settings = settings
        self.engine = engine
        self.session_factory = create_session_factory(engine)
        self.cache = LinkCache(cache_client, settings)
        self.logger = self._setup_logger()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ServiceManager":
        settings = settings or get_settings()
        return cls(settings, create_engine(settings), create_cache_client(settings))

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("fuselink")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL)
        return logger

    async def startup(self) -> None:
        """Create tables on startup."""
        await init_db(self.engine)
        self.logger.info(f"{self.settings.APP_NAME} started ({self.settings.APP_ENV})")

    async def cleanup(self) -> None:
        """Release shared resources at shutdown."""
        await self.cache.close()
        await close_db(self.engine)
        self.logger.info(f"{self.settings.APP_NAME} stopped")


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request view of the shared resources.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Shared resources of the process
        request_id: Unique identifier for this request
        client_ip: Client IP address
        user_agent: Client user agent string
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def cache(self) -> LinkCache:
        return self.service_manager.cache

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
                "tags": ",".join(self.tags),
            },
        )

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_service_manager(request: Request) -> ServiceManager:
    return request.app.state.service_manager


async def get_db(manager: ServiceManager = Depends(get_service_manager)) -> AsyncGenerator[AsyncSession, None]:
    async with manager.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        database=db,
        service_manager=manager,
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_link_service(ctx: RequestContext = Depends(get_request_context)) -> LinkService:
    """Create the link service for this request.

    Args:
        ctx: Request context with shared resources and tracking

    Returns:
        LinkService: Service instance bound to the request's session
    """
    return LinkService.from_context(ctx)
