"""SQLAlchemy ORM models for fuselink.

Data Model Layout
=================
::
    links table
    ├─ id (VARCHAR(32) PRIMARY KEY)
    ├─ destination (TEXT NOT NULL)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    ├─ click_count (INTEGER NULL)
    ├─ policy (JSONB NOT NULL)
    └─ version (INTEGER DEFAULT 0)

How to Use
===========
**Step 1 — Create a link**::
    link = Link(id="🍕🚀☕", destination="https://example.com", policy=dump_policy(Permanent()))
    db.add(link)
    await db.commit()

**Step 2 — Read its policy**::
    policy = link.destruction_policy

Key Behaviours
===============
- ``id`` is the primary key, so a racing insert of the same id fails with IntegrityError.
- ``click_count`` stays NULL until the first consuming read.
- ``version`` counts locked evaluations; bumping it is how a read takes the row lock.
- ``destination`` is only rewritten by secure erasure, right before the row is deleted.

Classes:
    Link:  A short identifier mapped to a destination under a destruction policy.
"""

import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fuselink.database import Base
from fuselink.policy import DestructionPolicy, load_policy

__all__ = ["Link"]


class Link(Base):
    __tablename__ = "links"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    destination: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    click_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    policy: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    @property
    def destruction_policy(self) -> DestructionPolicy:
        return load_policy(self.policy)

    def __repr__(self) -> str:
        return f"<Link(id='{self.id}', click_count={self.click_count}, version={self.version})>"
