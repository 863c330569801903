"""Dependency definitions for the Larder API server."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence

from fastapi import Depends, HTTPException, Request, status

from larder.config import Settings, get_settings
from larder.conversion import add_recipe_to_list
from larder.db.catalog import get_user
from larder.db.purchases import (
    get_purchase,
    list_purchases,
    reconcile_purchase,
    record_purchase,
)
from larder.db.shopping_list import (
    create_item,
    create_item_from_store,
    delete_item,
    list_items,
    reset_checked_items,
    update_item,
)
from larder.errors import Unauthorized
from larder.models.catalog import User
from larder.models.purchase import Purchase, PurchaseItemEdit
from larder.models.recipe import IngredientSelection
from larder.models.shopping import RecipeConversionResult, ShoppingListItem

RecipeConverter = Callable[
    [int, int, int, Optional[int], Optional[Mapping[int, IngredientSelection]]],
    RecipeConversionResult,
]
PurchaseRecorder = Callable[[int, Optional[datetime], Optional[str]], Purchase]
PurchaseReconciler = Callable[[int, dict, Sequence[PurchaseItemEdit]], Purchase]
PurchaseFetcher = Callable[[int], Optional[Purchase]]
PurchaseListProvider = Callable[[int], List[Purchase]]
ItemListProvider = Callable[[int], List[ShoppingListItem]]
ItemCreator = Callable[[int, int, dict], ShoppingListItem]
StoreItemCreator = Callable[[int, int, dict], ShoppingListItem]
ItemUpdater = Callable[[int, int, int, dict], ShoppingListItem]
ItemDeleter = Callable[[int, int], None]
ItemResetter = Callable[[int], int]


def get_recipe_converter() -> RecipeConverter:
    """Return the recipe-to-list conversion implementation."""

    return lambda list_id, recipe_id, user_id, servings=None, selections=None: add_recipe_to_list(
        list_id,
        recipe_id=recipe_id,
        user_id=user_id,
        servings=servings,
        selections=selections,
    )


def get_purchase_recorder() -> PurchaseRecorder:
    return lambda list_id, purchased_at=None, notes=None: record_purchase(
        list_id,
        purchased_at=purchased_at,
        notes=notes,
    )


def get_purchase_reconciler() -> PurchaseReconciler:
    return lambda purchase_id, changes, edits: reconcile_purchase(
        purchase_id,
        edits=edits,
        **changes,
    )


def get_purchase_fetcher() -> PurchaseFetcher:
    return get_purchase


def get_purchase_list_provider() -> PurchaseListProvider:
    return list_purchases


def get_item_list_provider() -> ItemListProvider:
    return list_items


def get_item_creator() -> ItemCreator:
    return lambda list_id, user_id, payload: create_item(list_id, added_by_id=user_id, **payload)


def get_store_item_creator() -> StoreItemCreator:
    return lambda list_id, user_id, payload: create_item_from_store(
        list_id, added_by_id=user_id, **payload
    )


def get_item_updater() -> ItemUpdater:
    return lambda list_id, item_id, user_id, payload: update_item(
        list_id, item_id, user_id=user_id, **payload
    )


def get_item_deleter() -> ItemDeleter:
    return delete_item


def get_item_resetter() -> ItemResetter:
    return reset_checked_items


def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> User:
    """Resolve the acting user from the configured identity header."""

    raw_user_id = request.headers.get(settings.user_header)
    if not raw_user_id:
        raise Unauthorized("Unauthorized")
    try:
        user_id = int(raw_user_id.strip())
    except ValueError as exc:
        raise Unauthorized("Unauthorized") from exc

    user = get_user(user_id)
    if user is None:
        raise Unauthorized("Unauthorized")
    request.state.user_id = user.id
    return user


def require_api_token(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Ensure requests carry the configured API token when required."""

    token = settings.api_token
    if not token:
        return

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.split("Bearer ")[-1].strip() == token:
        return

    if request.headers.get("X-API-Key") == token:
        return

    if request.query_params.get("api_token") == token:
        return

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
