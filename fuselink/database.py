"""Database engine and session management for fuselink.

This module provides SQLAlchemy async engine setup, session factories and
database lifecycle operations. Nothing is connected at import time: the
engine is built by the ``ServiceManager`` at startup and disposed at shutdown.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │  lifespan   │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ create_     │
    │ engine()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ init_db()    │
    │ (tables)    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ get_db()     │
    │ per request │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ close_db()   │
    │ (shutdown)  │
    └─────────────┘

How to Use
===========
**Step 1 — Build the engine**::
    engine = create_engine(settings)
    await init_db(engine)

**Step 2 — Open sessions**::
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        ...

**Step 3 — Cleanup on shutdown**::
    await close_db(engine)

Key Behaviours
===============
- PostgreSQL engines get a sized connection pool with pre-ping.
- SQLite engines keep SQLAlchemy's default pool (used by the test suite).
- Sessions do not expire attributes on commit.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    create_engine():  Builds the async engine from settings.
    create_session_factory():  Builds the session factory for an engine.
    init_db():  Creates all tables on startup.
    close_db():  Disposes the engine on shutdown.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from fuselink.config import Settings

__all__ = ["Base", "create_engine", "create_session_factory", "init_db", "close_db"]


class Base(DeclarativeBase):
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    if settings.DATABASE_URL.startswith("sqlite"):
        return create_async_engine(settings.DATABASE_URL, echo=False)

    return create_async_engine(
        settings.DATABASE_URL,
        echo=(settings.APP_ENV == "development"),
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    # Tables must be registered on Base.metadata before create_all runs.
    import fuselink.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
