"""Pydantic schemas for request/response validation in fuselink.

Schema Hierarchy
=================
::
    LinkCreate (Input)
    ├─ url: str (validated URL)
    ├─ custom_alias: str | None (three emoji symbols)
    └─ destruction: DestructionPolicy (defaults to Permanent)

    LinkResponse (Output)
    ├─ id: str
    ├─ short_url: str (computed)
    ├─ original_url: str
    ├─ created_at: datetime
    └─ destruction: DestructionPolicy

    HealthResponse (Output)
    ├─ status: str
    ├─ database: str
    └─ cache: str

    ErrorResponse (Output)
    └─ detail: str

How to Use
===========
**Step 1 — Input validation**::
    @router.post("/api/shorten")
    async def shorten_url(payload: LinkCreate):
        # payload is already validated
        ...

**Step 2 — Time-bombed single-use link**::
    LinkCreate(
        url="https://example.com",
        destruction={
            "kind": "kombinatio",
            "left": {"kind": "click_fuse", "remaining": 1},
            "right": {"kind": "time_bomb", "deadline": "2030-01-01T00:00:00Z"},
        },
    )

Key Behaviours
===============
- URL validation uses the validators library for RFC compliance.
- Custom aliases must be exactly three symbols from the identifier ranges.
- Error bodies never contain a destination or policy detail.
"""

import datetime

import validators
from pydantic import BaseModel, Field, field_validator

from fuselink.enums import HealthStatus
from fuselink.identifiers import is_identifier
from fuselink.policy import DestructionPolicy, Permanent

__all__ = ["LinkCreate", "LinkResponse", "HealthResponse", "ErrorResponse"]


class LinkCreate(BaseModel):
    url: str
    custom_alias: str | None = None
    destruction: DestructionPolicy = Field(default_factory=Permanent)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not validators.url(v):
            raise ValueError("Invalid URL provided")
        return v

    @field_validator("custom_alias")
    @classmethod
    def validate_custom_alias(cls, v: str | None) -> str | None:
        if v is not None and not is_identifier(v):
            raise ValueError("Custom alias must be exactly three emoji symbols")
        return v


class LinkResponse(BaseModel):
    id: str
    short_url: str
    original_url: str
    created_at: datetime.datetime
    destruction: DestructionPolicy


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus


class ErrorResponse(BaseModel):
    detail: str
