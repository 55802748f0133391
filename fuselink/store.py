"""Durable store access for link records.

``LinkStore`` wraps one ``AsyncSession`` and exposes the row-level operations
the lifecycle engine relies on. Every SQLAlchemy failure leaves through
``classify_store_error`` so callers only ever see the error taxonomy.

Operation Overview
==================
::
    exists(id)                      SELECT 1 ... WHERE id = :id
    insert(link)                    INSERT + COMMIT, IntegrityError → IdentifierTakenError
    fetch(id)                       SELECT ... WHERE id = :id (fresh row, no identity-map reuse)
    lock(id)                        UPDATE ... SET version = version + 1 WHERE id = :id, then SELECT
    save_policy(link, policy)       UPDATE links SET policy = :p, click_count = click_count + 1
    overwrite_destination(id, s)    UPDATE links SET destination = :s
    delete(id)                      DELETE ... WHERE id = :id
    commit() / rollback()           end the transaction, releasing the row lock

Key Behaviours
===============
- ``insert`` commits its own transaction. Every other write joins the open
  transaction and is made durable by ``commit``.
- ``lock`` holds the row's write lock until the transaction ends. Concurrent
  lockers of the same row queue behind it and then read what it committed,
  or nothing if it deleted the row.
- A failed statement is rolled back before the error is raised.
"""

import logging
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fuselink.exceptions import FuseLinkError, classify_store_error
from fuselink.models import Link
from fuselink.policy import DestructionPolicy, dump_policy

__all__ = ["IdentifierTakenError", "LinkStore"]

logger = logging.getLogger("fuselink.store")


class IdentifierTakenError(FuseLinkError):
    """Raised by ``insert`` when the primary key already exists."""

    error_code = "store:identifier_taken"
    status_code = 409


class LinkStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def exists(self, link_id: str) -> bool:
        try:
            result = await self._session.execute(select(Link.id).where(Link.id == link_id))
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as exc:
            raise classify_store_error(exc) from exc

    async def insert(self, link: Link) -> Link:
        """Insert ``link`` and commit.

        Raises:
            IdentifierTakenError: If a row with the same id already exists.
            StorageError: On any other store failure.
        """
        try:
            self._session.add(link)
            await self._session.commit()
            await self._session.refresh(link)
            return link
        except IntegrityError as exc:
            await self._session.rollback()
            raise IdentifierTakenError(f"Identifier '{link.id}' is already taken") from exc
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise classify_store_error(exc) from exc

    async def fetch(self, link_id: str) -> Optional[Link]:
        try:
            return await self._select(link_id)
        except SQLAlchemyError as exc:
            raise classify_store_error(exc) from exc

    async def lock(self, link_id: str) -> Optional[Link]:
        """Take the write lock on ``link_id`` and return the row as of that moment.

        The lock lasts until ``commit`` or ``rollback``. The version bump is the
        write that takes it, so it works the same on every backend, including
        those that ignore ``SELECT ... FOR UPDATE``.

        Returns:
            Optional[Link]: The locked row, or None if it no longer exists (the
            transaction is already rolled back in that case).
        """
        stmt = (
            update(Link)
            .where(Link.id == link_id)
            .values(version=Link.version + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
            if result.rowcount == 0:
                await self._session.rollback()
                return None
            return await self._select(link_id)
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise classify_store_error(exc) from exc

    async def save_policy(self, link: Link, policy: DestructionPolicy) -> None:
        """Persist the post-evaluation ``policy`` of a locked row and count one click."""
        stmt = (
            update(Link)
            .where(Link.id == link.id)
            .values(policy=dump_policy(policy), click_count=(link.click_count or 0) + 1)
            .execution_options(synchronize_session=False)
        )
        await self._write(stmt)

    async def overwrite_destination(self, link_id: str, content: str) -> bool:
        stmt = (
            update(Link)
            .where(Link.id == link_id)
            .values(destination=content)
            .execution_options(synchronize_session=False)
        )
        return await self._write(stmt) > 0

    async def delete(self, link_id: str) -> bool:
        stmt = delete(Link).where(Link.id == link_id).execution_options(synchronize_session=False)
        return await self._write(stmt) > 0

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise classify_store_error(exc) from exc

    async def rollback(self) -> None:
        await self._session.rollback()

    async def ping(self) -> None:
        try:
            await self._session.execute(select(1))
        except SQLAlchemyError as exc:
            raise classify_store_error(exc) from exc

    async def _select(self, link_id: str) -> Optional[Link]:
        result = await self._session.execute(
            select(Link).where(Link.id == link_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _write(self, stmt) -> int:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise classify_store_error(exc) from exc
        return result.rowcount
