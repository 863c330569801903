"""Shopping list persistence helpers."""
# mypy: ignore-errors

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from larder.access import accessible, list_access
from larder.errors import DuplicateItem, Forbidden, NotFound, ValidationFailure
from larder.models.shopping import ListAccess, ShoppingList, ShoppingListItem

from .catalog import require_accessible_store, require_store_offer, to_article_ref
from .models import ArticleORM, ItemORM, ListShareORM, ShoppingListORM, UserORM
from .repository import session_scope

logger = logging.getLogger(__name__)

_UNSET = object()


def _to_list(row: ShoppingListORM) -> ShoppingList:
    return ShoppingList.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "owner_id": row.owner_id,
            "created_at": row.created_at,
        }
    )


def _to_model(row: ItemORM) -> ShoppingListItem:
    return ShoppingListItem.model_validate(
        {
            "id": row.id,
            "shopping_list_id": row.shopping_list_id,
            "article": to_article_ref(row.article),
            "quantity": row.quantity,
            "unit": row.unit,
            "checked": row.checked,
            "purchased_quantity": row.purchased_quantity,
            "price": row.price,
            "notes": row.notes,
            "store": (
                {"id": row.store.id, "name": row.store.name, "type": row.store.type}
                if row.store is not None
                else None
            ),
            "added_by": (
                {"id": row.added_by.id, "name": row.added_by.name}
                if row.added_by is not None
                else None
            ),
            "created_at": row.created_at,
            "updated_at": row.updated_at,
        }
    )


def is_duplicate_item_error(exc: IntegrityError) -> bool:
    """True when the violation comes from the one-article-per-list constraint."""

    message = str(exc.orig).lower()
    return "unique" in message and "items" in message


def create_list(*, name: str, owner_id: int) -> ShoppingList:
    with session_scope() as session:
        if session.get(UserORM, owner_id) is None:
            raise NotFound(f"User {owner_id} not found")
        row = ShoppingListORM(name=name.strip(), owner_id=owner_id)
        session.add(row)
        session.flush()
        return _to_list(row)


def get_list(list_id: int) -> Optional[ShoppingList]:
    with session_scope() as session:
        row = session.get(ShoppingListORM, list_id)
        if row is None:
            return None
        return _to_list(row)


def lists_for_user(user_id: int) -> List[ShoppingList]:
    """Lists owned by or shared with the user, newest first."""

    with session_scope() as session:
        shared_ids = select(ListShareORM.shopping_list_id).where(ListShareORM.user_id == user_id)
        rows = (
            session.execute(
                select(ShoppingListORM)
                .where(
                    or_(
                        ShoppingListORM.owner_id == user_id,
                        ShoppingListORM.id.in_(shared_ids),
                    )
                )
                .order_by(ShoppingListORM.created_at.desc(), ShoppingListORM.id.desc())
            )
            .scalars()
            .all()
        )
        return [_to_list(row) for row in rows]


def delete_list(list_id: int) -> None:
    with session_scope() as session:
        row = session.get(ShoppingListORM, list_id)
        if row is None:
            raise NotFound(f"Shopping list {list_id} not found")
        session.delete(row)


def share_list(list_id: int, *, user_id: int, can_edit: bool = False) -> ListAccess:
    """Grant (or update) another user's access to a list."""

    with session_scope() as session:
        shopping_list = session.get(ShoppingListORM, list_id)
        if shopping_list is None:
            raise NotFound(f"Shopping list {list_id} not found")
        if session.get(UserORM, user_id) is None:
            raise NotFound(f"User {user_id} not found")
        if shopping_list.owner_id == user_id:
            raise ValidationFailure("The owner already has full access", field="user_id")

        share = session.execute(
            select(ListShareORM).where(
                ListShareORM.shopping_list_id == list_id,
                ListShareORM.user_id == user_id,
            )
        ).scalar_one_or_none()
        if share is None:
            share = ListShareORM(shopping_list_id=list_id, user_id=user_id)
            session.add(share)
        share.can_edit = bool(can_edit)
        session.flush()
        return ListAccess(has_access=True, can_edit=share.can_edit)


def revoke_share(list_id: int, user_id: int) -> None:
    """Remove another user's access to a list."""

    with session_scope() as session:
        if session.get(ShoppingListORM, list_id) is None:
            raise NotFound(f"Shopping list {list_id} not found")
        share = session.execute(
            select(ListShareORM).where(
                ListShareORM.shopping_list_id == list_id,
                ListShareORM.user_id == user_id,
            )
        ).scalar_one_or_none()
        if share is None:
            raise NotFound(f"User {user_id} has no access to list {list_id}")
        session.delete(share)
    logger.info("Revoked access to list %s", list_id, extra={"list_id": list_id, "user_id": user_id})


def get_list_access(list_id: int, user_id: int) -> Optional[ListAccess]:
    """Return the user's rights on a list, or None when the list does not exist."""

    with session_scope() as session:
        row = session.get(ShoppingListORM, list_id)
        if row is None:
            return None
        return list_access(row.owner_id, row.shares, user_id)


def require_list_access(list_id: int, user_id: int, *, edit: bool = False) -> ListAccess:
    access = get_list_access(list_id, user_id)
    if access is None:
        raise NotFound(f"Shopping list {list_id} not found")
    if not access.has_access:
        raise Forbidden("Forbidden")
    if edit and not access.can_edit:
        raise Forbidden("You do not have permission to edit this list")
    return access


def list_items(list_id: int) -> List[ShoppingListItem]:
    """Return the list's items, unchecked first."""

    with session_scope() as session:
        rows = (
            session.execute(
                select(ItemORM)
                .where(ItemORM.shopping_list_id == list_id)
                .order_by(ItemORM.checked.asc(), ItemORM.created_at.asc(), ItemORM.id.asc())
            )
            .scalars()
            .all()
        )
        return [_to_model(row) for row in rows]


def get_item(list_id: int, item_id: int) -> Optional[ShoppingListItem]:
    with session_scope() as session:
        row = session.get(ItemORM, item_id)
        if row is None or row.shopping_list_id != list_id:
            return None
        return _to_model(row)


def create_item(
    list_id: int,
    *,
    article_id: int,
    quantity: float,
    unit: str,
    added_by_id: int,
    store_id: Optional[int] = None,
    notes: Optional[str] = None,
    price: Optional[float] = None,
) -> ShoppingListItem:
    """Add one article to a list; a second add of the same article raises DuplicateItem."""

    try:
        with session_scope() as session:
            article = session.get(ArticleORM, article_id)
            if article is None or not accessible(article, added_by_id):
                raise NotFound("Article not found or not accessible")
            if store_id is not None:
                require_accessible_store(session, store_id, added_by_id)

            row = ItemORM(
                shopping_list_id=list_id,
                article_id=article_id,
                quantity=float(quantity),
                unit=unit.strip(),
                price=float(price) if price is not None else article.suggested_price,
                notes=notes,
                store_id=store_id,
                added_by_id=added_by_id,
                checked=False,
            )
            session.add(row)
            session.flush()
            return _to_model(row)
    except IntegrityError as exc:
        if is_duplicate_item_error(exc):
            raise DuplicateItem(list_id, article_id) from exc
        raise


def create_item_from_store(
    list_id: int,
    *,
    article_id: int,
    store_id: int,
    quantity: float,
    unit: str,
    added_by_id: int,
    notes: Optional[str] = None,
) -> ShoppingListItem:
    """Add an article the user picked from a store's offer.

    The item is priced with the store's shelf price, falling back to the
    article's suggested price when the store has none recorded.
    """

    try:
        with session_scope() as session:
            article = session.get(ArticleORM, article_id)
            if article is None or not accessible(article, added_by_id):
                raise NotFound("Article not found or not accessible")
            require_accessible_store(session, store_id, added_by_id)
            offer = require_store_offer(session, article_id, store_id)

            row = ItemORM(
                shopping_list_id=list_id,
                article_id=article_id,
                quantity=float(quantity),
                unit=unit.strip(),
                price=offer.price if offer.price is not None else article.suggested_price,
                notes=notes or None,
                store_id=store_id,
                added_by_id=added_by_id,
                checked=False,
            )
            session.add(row)
            session.flush()
            return _to_model(row)
    except IntegrityError as exc:
        if is_duplicate_item_error(exc):
            raise DuplicateItem(list_id, article_id) from exc
        raise


def update_item(
    list_id: int,
    item_id: int,
    *,
    user_id: int,
    quantity: float | object = _UNSET,
    unit: str | object = _UNSET,
    checked: bool | object = _UNSET,
    purchased_quantity: float | None | object = _UNSET,
    price: float | None | object = _UNSET,
    notes: str | None | object = _UNSET,
    store_id: int | None | object = _UNSET,
) -> ShoppingListItem:
    with session_scope() as session:
        row = session.get(ItemORM, item_id)
        if row is None or row.shopping_list_id != list_id:
            raise NotFound(f"Item {item_id} not found")

        if quantity is not _UNSET:
            row.quantity = float(quantity)
        if unit is not _UNSET:
            row.unit = str(unit).strip()
        if checked is not _UNSET:
            row.checked = bool(checked)
        if purchased_quantity is not _UNSET:
            row.purchased_quantity = (
                float(purchased_quantity) if purchased_quantity is not None else None
            )
        if price is not _UNSET:
            row.price = float(price) if price is not None else None
        if notes is not _UNSET:
            row.notes = notes
        if store_id is not _UNSET:
            if store_id is not None:
                require_accessible_store(session, store_id, user_id)
            row.store_id = store_id

        if row.purchased_quantity is not None and row.purchased_quantity > row.quantity:
            raise ValidationFailure(
                "Purchased quantity cannot exceed the requested quantity",
                field="purchased_quantity",
            )

        session.flush()
        session.refresh(row)
        return _to_model(row)


def delete_item(list_id: int, item_id: int) -> None:
    with session_scope() as session:
        row = session.get(ItemORM, item_id)
        if row is None or row.shopping_list_id != list_id:
            raise NotFound(f"Item {item_id} not found")
        session.delete(row)


def reset_checked_items(list_id: int) -> int:
    """Uncheck every checked item on a list and return how many changed."""

    with session_scope() as session:
        result = session.execute(
            update(ItemORM)
            .where(ItemORM.shopping_list_id == list_id, ItemORM.checked.is_(True))
            .values(checked=False)
        )
        return int(result.rowcount or 0)


def existing_article_ids(list_id: int, article_ids: Iterable[int]) -> set[int]:
    """Subset of ``article_ids`` that already has an item on the list."""

    ids = set(article_ids)
    if not ids:
        return set()
    with session_scope() as session:
        rows = session.execute(
            select(ItemORM.article_id).where(
                ItemORM.shopping_list_id == list_id,
                ItemORM.article_id.in_(ids),
            )
        ).scalars()
        return set(rows)


def _draft_row(list_id: int, draft: Mapping[str, Any], added_by_id: int) -> ItemORM:
    return ItemORM(
        shopping_list_id=list_id,
        article_id=draft["article_id"],
        quantity=float(draft["quantity"]),
        unit=draft["unit"],
        price=draft.get("price"),
        notes=draft.get("notes"),
        store_id=draft.get("store_id"),
        added_by_id=added_by_id,
        checked=False,
    )


def insert_items(
    list_id: int,
    drafts: Sequence[Mapping[str, Any]],
    *,
    added_by_id: int,
) -> Tuple[List[ShoppingListItem], int]:
    """Insert item drafts in one transaction and return ``(created, duplicates)``.

    When another writer added one of the articles in the meantime the unique
    constraint rejects the batch; each draft is then retried in its own
    transaction and the ones still rejected are reported as duplicates.
    """

    if not drafts:
        return [], 0

    try:
        with session_scope() as session:
            rows = [_draft_row(list_id, draft, added_by_id) for draft in drafts]
            session.add_all(rows)
            session.flush()
            return [_to_model(row) for row in rows], 0
    except IntegrityError as exc:
        if not is_duplicate_item_error(exc):
            raise
        logger.info(
            "Concurrent item insert on list %s; retrying %s draft(s) individually",
            list_id,
            len(drafts),
        )

    created: List[ShoppingListItem] = []
    duplicates = 0
    for draft in drafts:
        try:
            with session_scope() as session:
                row = _draft_row(list_id, draft, added_by_id)
                session.add(row)
                session.flush()
                created.append(_to_model(row))
        except IntegrityError as exc:
            if not is_duplicate_item_error(exc):
                raise
            logger.debug("Article %s already on list %s", draft["article_id"], list_id)
            duplicates += 1
    return created, duplicates


__all__ = [
    "create_list",
    "get_list",
    "lists_for_user",
    "delete_list",
    "share_list",
    "revoke_share",
    "get_list_access",
    "require_list_access",
    "list_items",
    "get_item",
    "create_item",
    "create_item_from_store",
    "update_item",
    "delete_item",
    "reset_checked_items",
    "existing_article_ids",
    "insert_items",
    "is_duplicate_item_error",
]
