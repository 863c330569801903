"""Visibility rules shared by every catalog entity and shopping list."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from larder.models.shopping import ListAccess


class Shareable(Protocol):
    """Anything that is either visible to everyone or owned by one user."""

    is_general: bool
    created_by_id: Optional[int]


class ListShareLike(Protocol):
    user_id: int
    can_edit: bool


def accessible(entity: Shareable, user_id: Optional[int]) -> bool:
    """Return True when the entity is general or was created by ``user_id``."""

    if entity.is_general:
        return True
    return user_id is not None and entity.created_by_id == user_id


def list_access(owner_id: int, shares: Iterable[ListShareLike], user_id: int) -> ListAccess:
    """Resolve a user's rights on a list from its owner and share rows."""

    if owner_id == user_id:
        return ListAccess(has_access=True, can_edit=True, is_owner=True)
    for share in shares:
        if share.user_id == user_id:
            return ListAccess(has_access=True, can_edit=bool(share.can_edit))
    return ListAccess()


__all__ = ["Shareable", "accessible", "list_access"]
