"""Error taxonomy for the link lifecycle and the classifiers that map
low-level store and cache failures into it.

Classes:
    FuseLinkError:
        Base class, carries ``error_code`` and the HTTP ``status_code``.

    LinkValidationError:
        Malformed input rejected before the lifecycle engine runs.

    LinkConflictError:
        The requested identifier is already taken.

    LinkNotFoundError:
        No record exists: it never existed or has been fully erased.

    LinkGoneError:
        The record existed but its destruction policy denied access.

    InternalServiceError:
        Store, serialization or allocation failure. Never exposes details.

    CacheError:
        Redis failure. Swallowed and logged by the cache layer, never
        surfaced as the result of create or consume.

Example:
    >>> from fuselink.exceptions import classify_store_error
    >>> try:
    ...     await session.execute(stmt)
    ... except SQLAlchemyError as exc:
    ...     raise classify_store_error(exc) from exc
"""

from redis.exceptions import RedisError
from sqlalchemy.exc import NoResultFound, SQLAlchemyError

__all__ = [
    "FuseLinkError",
    "LinkValidationError",
    "LinkConflictError",
    "LinkNotFoundError",
    "LinkGoneError",
    "InternalServiceError",
    "StorageError",
    "PolicySerializationError",
    "IdentifierSpaceExhaustedError",
    "CacheError",
    "classify_store_error",
    "classify_cache_error",
]


class FuseLinkError(Exception):
    """Base exception for all application-specific errors."""

    error_code = "app:fuselink_error"
    status_code = 500


class LinkValidationError(FuseLinkError):
    """Raised when input is malformed."""

    error_code = "link:validation_error"
    status_code = 400


class LinkConflictError(FuseLinkError):
    """Raised when an identifier is already taken."""

    error_code = "link:conflict"
    status_code = 409


class LinkNotFoundError(FuseLinkError):
    """Raised when no record exists for an identifier."""

    error_code = "link:not_found"
    status_code = 404


class LinkGoneError(FuseLinkError):
    """Raised when a record's destruction policy denied access."""

    error_code = "link:gone"
    status_code = 410


class InternalServiceError(FuseLinkError):
    """Base exception for failures that surface as a generic 5xx."""

    error_code = "app:internal_error"
    status_code = 500


class StorageError(InternalServiceError):
    """Raised when the durable store fails (connection, timeout, constraint...)."""

    error_code = "store:storage_error"


class PolicySerializationError(InternalServiceError):
    """Raised when a stored destruction policy cannot be parsed."""

    error_code = "store:policy_serialization_error"


class IdentifierSpaceExhaustedError(InternalServiceError):
    """Raised when no free identifier was found within the attempt budget."""

    error_code = "id:space_exhausted"


class CacheError(FuseLinkError):
    """Raised when the cache fails. Never surfaced to callers of the service."""

    error_code = "cache:cache_error"


def classify_store_error(exc: Exception) -> FuseLinkError:
    """Map a durable store failure into the taxonomy."""
    if isinstance(exc, FuseLinkError):
        return exc
    if isinstance(exc, NoResultFound):
        return LinkNotFoundError("Not Found")
    if isinstance(exc, SQLAlchemyError):
        return StorageError(f"{type(exc).__name__}: {exc}")
    return InternalServiceError(f"{type(exc).__name__}: {exc}")


def classify_cache_error(exc: Exception) -> CacheError:
    """Map a cache failure into the taxonomy."""
    if isinstance(exc, CacheError):
        return exc
    if isinstance(exc, RedisError):
        return CacheError(f"{type(exc).__name__}: {exc}")
    return CacheError(f"Unexpected cache failure {type(exc).__name__}: {exc}")
