"""Domain exceptions raised by repository and conversion code.

The server maps each class to one HTTP status. Missing rows keep raising a
``ValueError`` subclass so callers that only catch ``ValueError`` still work.
"""

from __future__ import annotations

from typing import Optional


class LarderError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(LarderError):
    status_code = 401


class Forbidden(LarderError):
    status_code = 403


class NotFound(LarderError, ValueError):
    status_code = 404


class ValidationFailure(LarderError, ValueError):
    """Input that is well-formed JSON but semantically unusable."""

    status_code = 400

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DuplicateItem(LarderError):
    """An article is already on the target shopping list."""

    status_code = 409

    def __init__(self, list_id: int, article_id: int):
        super().__init__(f"Article {article_id} is already on list {list_id}")
        self.list_id = list_id
        self.article_id = article_id


__all__ = [
    "LarderError",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "ValidationFailure",
    "DuplicateItem",
]
