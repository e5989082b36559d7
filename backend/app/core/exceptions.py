"""
Forum error types.

Every failure surfaced by the forum engine derives from ForumError so the
API layer can translate it into a response in one place.
"""

from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

T = TypeVar("T")


class ForumError(Exception):
    """Base class for forum failures."""

    code = "forum_error"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ForumError):
    """Missing or malformed input. Nothing was written."""

    code = "validation_error"


class NotFoundError(ForumError):
    """Referenced topic, reply or category does not exist."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(ForumError):
    """Caller may not perform the operation on this target."""

    code = "permission_denied"


class StoreError(ForumError):
    """Underlying persistence failure."""

    code = "store_error"


def translate_store_errors(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Re-raise SQLAlchemy failures from an async call as StoreError."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as e:
            raise StoreError(f"Store operation failed: {e.__class__.__name__}") from e

    return wrapper
