"""Shared enums for fuselink.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "ErasureReason"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"

    @classmethod
    def from_bool(cls, ok: bool) -> "HealthStatus":
        return cls.HEALTHY if ok else cls.UNHEALTHY


class RequestStatus(StrEnum):
    """Outcome labels for request metrics."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    GONE = "gone"
    ERROR = "error"


class CacheStatus(StrEnum):
    HIT = "hit"
    MISS = "miss"


class ErasureReason(StrEnum):
    """Why a link was erased."""

    EXHAUSTED = "exhausted"
    DENIED = "denied"
