"""ASGI application for Larder."""
# mypy: ignore-errors

from __future__ import annotations

import logging
from datetime import datetime
from time import perf_counter
from typing import Any, Optional
from uuid import uuid4

from fastapi import Body, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field

from larder import __version__, metrics
from larder.access import accessible
from larder.config import Settings, get_settings
from larder.db.catalog import (
    assign_article_store,
    list_article_stores,
    list_articles_for_product,
)
from larder.db.purchases import purchase_list_id
from larder.db.recipes import get_recipe, set_ingredient_article
from larder.db.shopping_list import (
    create_list,
    delete_list,
    get_list,
    lists_for_user,
    require_list_access,
    revoke_share,
    share_list,
)
from larder.errors import Forbidden, LarderError, NotFound
from larder.logging_utils import configure_logging as configure_app_logging
from larder.models.catalog import Article, ArticleStoreEntry, User
from larder.models.purchase import Purchase, PurchaseItemEdit
from larder.models.recipe import IngredientSelection, Recipe, RecipeIngredient
from larder.models.shopping import (
    ListAccess,
    RecipeConversionResult,
    ShoppingList,
    ShoppingListItem,
)
from larder.server import deps

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    """Convert non-serializable values into JSON-safe representations."""

    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (list, tuple)):
        return [_json_safe(entry) for entry in value]
    if isinstance(value, dict):
        return {key: _json_safe(sub_value) for key, sub_value in value.items()}
    return repr(value)


def _normalize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Ensure validation error payloads can be serialized to JSON."""

    return [{key: _json_safe(value) for key, value in error.items()} for error in errors]


def _configure_logging(settings: Settings) -> None:
    configure_app_logging(settings.log_level, settings.log_format, [settings.api_token or ""])


def _request_extra(request: Request) -> dict[str, Any]:
    extra: dict[str, Any] = {}
    if request_id := getattr(request.state, "request_id", None):
        extra["request_id"] = request_id
    if user_id := getattr(request.state, "user_id", None):
        extra["user_id"] = user_id
    return extra


def _require_purchase_access(purchase_id: int, user: User, *, edit: bool = False) -> None:
    list_id = purchase_list_id(purchase_id)
    if list_id is None:
        raise NotFound(f"Purchase {purchase_id} not found")
    try:
        require_list_access(list_id, user.id, edit=edit)
    except Forbidden as exc:
        if edit:
            raise Forbidden("You do not have permission to edit this purchase") from exc
        raise


def create_app() -> FastAPI:
    """Create and configure a FastAPI application instance."""

    settings = get_settings()
    _configure_logging(settings)

    application = FastAPI(title="Larder", version=__version__)
    logger.debug("Application created with log level %s", settings.log_level)

    access_logger = logging.getLogger("larder.access")

    @application.middleware("http")
    async def log_request_response(request: Request, call_next):
        """Tag each request with an id, time it and record access metrics."""

        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        start = perf_counter()
        method = request.method
        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = (perf_counter() - start) * 1000
            path = getattr(request.scope.get("route"), "path", request.url.path)
            access_logger.exception(
                "HTTP %s %s status=500 duration_ms=%.2f",
                method,
                request.url.path,
                duration_ms,
                extra=_request_extra(request),
            )
            metrics.REQUEST_COUNT.labels(method=method, path=path, status="500").inc()
            metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(duration_ms / 1000.0)
            raise

        duration_ms = (perf_counter() - start) * 1000
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        response.headers.setdefault("X-Request-ID", request_id)
        if settings.log_requests:
            access_logger.info(
                "HTTP %s %s status=%s duration_ms=%.2f",
                method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra=_request_extra(request),
            )
        metrics.REQUEST_COUNT.labels(
            method=method,
            path=path,
            status=str(response.status_code),
        ).inc()
        metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(duration_ms / 1000.0)
        return response

    @application.exception_handler(LarderError)
    async def larder_error_handler(request: Request, exc: LarderError):
        level = logging.INFO if exc.status_code < 500 else logging.ERROR
        logger.log(
            level,
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
            extra=_request_extra(request),
        )
        content: dict[str, Any] = {"detail": exc.message}
        if field := getattr(exc, "field", None):
            content["field"] = field
        return JSONResponse(status_code=exc.status_code, content=content)

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "Validation error on %s %s: %s",
            request.method,
            request.url.path,
            exc.errors(),
            extra=_request_extra(request),
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": _normalize_validation_errors(exc.errors())},
        )

    @application.get("/lists", response_model=list[ShoppingList], summary="List shopping lists")
    def lists_list(user: User = Depends(deps.get_current_user)) -> list[ShoppingList]:
        return lists_for_user(user.id)

    @application.post(
        "/lists",
        response_model=ShoppingList,
        status_code=status.HTTP_201_CREATED,
        summary="Create shopping list",
    )
    def lists_create(
        payload: ListCreateRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
    ) -> ShoppingList:
        return create_list(name=payload.name, owner_id=user.id)

    @application.get(
        "/lists/{list_id}",
        response_model=ShoppingList,
        summary="Get shopping list",
    )
    def lists_get(list_id: int, user: User = Depends(deps.get_current_user)) -> ShoppingList:
        require_list_access(list_id, user.id)
        shopping_list = get_list(list_id)
        if shopping_list is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="List not found")
        return shopping_list

    @application.delete(
        "/lists/{list_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary="Delete shopping list",
    )
    def lists_delete(
        list_id: int,
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
    ) -> None:
        access = require_list_access(list_id, user.id)
        if not access.is_owner:
            raise Forbidden("Only the owner can delete a list")
        delete_list(list_id)

    @application.post(
        "/lists/{list_id}/share",
        response_model=ListAccess,
        status_code=status.HTTP_201_CREATED,
        summary="Share shopping list",
    )
    def lists_share(
        list_id: int,
        payload: ListShareRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
    ) -> ListAccess:
        access = require_list_access(list_id, user.id)
        if not access.is_owner:
            raise Forbidden("Only the owner can share a list")
        return share_list(list_id, user_id=payload.user_id, can_edit=payload.can_edit)

    @application.delete(
        "/lists/{list_id}/share/{user_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary="Revoke a user's access to a shopping list",
    )
    def lists_unshare(
        list_id: int,
        user_id: int,
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
    ) -> None:
        access = require_list_access(list_id, user.id)
        if not access.is_owner:
            raise Forbidden("Only the owner can remove access")
        revoke_share(list_id, user_id)

    @application.get(
        "/lists/{list_id}/items",
        response_model=list[ShoppingListItem],
        summary="List shopping list items",
    )
    def items_list(
        list_id: int,
        user: User = Depends(deps.get_current_user),
        provider: deps.ItemListProvider = Depends(deps.get_item_list_provider),
    ) -> list[ShoppingListItem]:
        require_list_access(list_id, user.id)
        return provider(list_id)

    @application.post(
        "/lists/{list_id}/items",
        response_model=ItemEnvelope,
        status_code=status.HTTP_201_CREATED,
        summary="Add article to shopping list",
    )
    def items_create(
        list_id: int,
        payload: ItemCreateRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
        creator: deps.ItemCreator = Depends(deps.get_item_creator),
        settings: Settings = Depends(get_settings),
    ) -> ItemEnvelope:
        require_list_access(list_id, user.id, edit=True)
        create_payload = payload.model_dump()
        create_payload["unit"] = create_payload.get("unit") or settings.default_unit
        logger.debug("Creating list item list=%s payload=%s", list_id, create_payload)
        return ItemEnvelope(item=creator(list_id, user.id, create_payload))

    @application.post(
        "/lists/{list_id}/items/from-store",
        response_model=ItemEnvelope,
        status_code=status.HTTP_201_CREATED,
        summary="Add article available at a store",
    )
    def items_from_store(
        list_id: int,
        payload: StoreItemCreateRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
        creator: deps.StoreItemCreator = Depends(deps.get_store_item_creator),
        settings: Settings = Depends(get_settings),
    ) -> ItemEnvelope:
        require_list_access(list_id, user.id, edit=True)
        create_payload = payload.model_dump()
        create_payload["unit"] = create_payload.get("unit") or settings.default_unit
        return ItemEnvelope(item=creator(list_id, user.id, create_payload))

    @application.post(
        "/lists/{list_id}/items/from-recipe",
        response_model=RecipeConversionResult,
        status_code=status.HTTP_201_CREATED,
        summary="Add a recipe's ingredients to a shopping list",
    )
    def items_from_recipe(
        list_id: int,
        response: Response,
        payload: RecipeToListRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
        converter: deps.RecipeConverter = Depends(deps.get_recipe_converter),
    ) -> RecipeConversionResult:
        result = converter(
            list_id,
            payload.recipe_id,
            user.id,
            payload.servings,
            payload.ingredient_selections,
        )
        if result.added == 0:
            response.status_code = status.HTTP_200_OK
        return result

    @application.post(
        "/lists/{list_id}/items/reset",
        response_model=ResetResult,
        summary="Uncheck all checked items",
    )
    def items_reset(
        list_id: int,
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
        resetter: deps.ItemResetter = Depends(deps.get_item_resetter),
    ) -> ResetResult:
        require_list_access(list_id, user.id, edit=True)
        count = resetter(list_id)
        return ResetResult(message=f"Reset {count} item(s)", reset_count=count)

    @application.put(
        "/lists/{list_id}/items/{item_id}",
        response_model=ItemEnvelope,
        summary="Update shopping list item",
    )
    def items_update(
        list_id: int,
        item_id: int,
        payload: ItemUpdateRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
        updater: deps.ItemUpdater = Depends(deps.get_item_updater),
    ) -> ItemEnvelope:
        require_list_access(list_id, user.id, edit=True)
        update_payload = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key in NULLABLE_ITEM_FIELDS
        }
        if not update_payload:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No fields provided for update",
            )
        return ItemEnvelope(item=updater(list_id, item_id, user.id, update_payload))

    @application.delete(
        "/lists/{list_id}/items/{item_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        summary="Remove shopping list item",
    )
    def items_delete(
        list_id: int,
        item_id: int,
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
        deleter: deps.ItemDeleter = Depends(deps.get_item_deleter),
    ) -> None:
        require_list_access(list_id, user.id, edit=True)
        deleter(list_id, item_id)

    @application.post(
        "/lists/{list_id}/purchases",
        response_model=PurchaseEnvelope,
        status_code=status.HTTP_201_CREATED,
        summary="Record checked items as a purchase",
    )
    def purchases_create(
        list_id: int,
        payload: Optional[PurchaseCreateRequest] = Body(default=None),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
        recorder: deps.PurchaseRecorder = Depends(deps.get_purchase_recorder),
    ) -> PurchaseEnvelope:
        require_list_access(list_id, user.id, edit=True)
        payload = payload or PurchaseCreateRequest()
        return PurchaseEnvelope(purchase=recorder(list_id, payload.purchased_at, payload.notes))

    @application.get(
        "/lists/{list_id}/purchases",
        response_model=PurchasesEnvelope,
        summary="List purchases of a shopping list",
    )
    def purchases_list(
        list_id: int,
        user: User = Depends(deps.get_current_user),
        provider: deps.PurchaseListProvider = Depends(deps.get_purchase_list_provider),
    ) -> PurchasesEnvelope:
        require_list_access(list_id, user.id)
        return PurchasesEnvelope(purchases=provider(list_id))

    @application.get(
        "/purchases/{purchase_id}",
        response_model=PurchaseEnvelope,
        summary="Get purchase",
    )
    def purchases_get(
        purchase_id: int,
        user: User = Depends(deps.get_current_user),
        fetcher: deps.PurchaseFetcher = Depends(deps.get_purchase_fetcher),
    ) -> PurchaseEnvelope:
        _require_purchase_access(purchase_id, user)
        purchase = fetcher(purchase_id)
        if purchase is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Purchase not found")
        return PurchaseEnvelope(purchase=purchase)

    @application.put(
        "/purchases/{purchase_id}",
        response_model=PurchaseEnvelope,
        summary="Correct a recorded purchase",
    )
    def purchases_update(
        purchase_id: int,
        payload: PurchaseUpdateRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
        reconciler: deps.PurchaseReconciler = Depends(deps.get_purchase_reconciler),
    ) -> PurchaseEnvelope:
        _require_purchase_access(purchase_id, user, edit=True)
        changes: dict[str, Any] = {}
        if "purchased_at" in payload.model_fields_set and payload.purchased_at is not None:
            changes["purchased_at"] = payload.purchased_at
        if "notes" in payload.model_fields_set:
            changes["notes"] = payload.notes
        logger.debug(
            "Updating purchase %s changes=%s edits=%s",
            purchase_id,
            changes,
            len(payload.items or []),
        )
        return PurchaseEnvelope(purchase=reconciler(purchase_id, changes, payload.items or []))

    @application.get(
        "/recipes/{recipe_id}",
        response_model=Recipe,
        summary="Get recipe with ingredients",
    )
    def recipes_get(recipe_id: int, user: User = Depends(deps.get_current_user)) -> Recipe:
        recipe = get_recipe(recipe_id)
        if recipe is None:
            raise NotFound(f"Recipe {recipe_id} not found")
        if not accessible(recipe, user.id):
            raise Forbidden("No access to this recipe")
        return recipe

    @application.get(
        "/products/{product_id}/articles",
        response_model=list[Article],
        summary="Articles selectable for a product",
    )
    def product_articles(
        product_id: int,
        user: User = Depends(deps.get_current_user),
    ) -> list[Article]:
        return list_articles_for_product(product_id, user.id)

    @application.put(
        "/recipes/{recipe_id}/ingredients/{ingredient_id}/article",
        response_model=RecipeIngredient,
        summary="Preselect the article for a recipe ingredient",
    )
    def recipes_set_ingredient_article(
        recipe_id: int,
        ingredient_id: int,
        payload: IngredientArticleRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
    ) -> RecipeIngredient:
        return set_ingredient_article(recipe_id, ingredient_id, payload.article_id, user_id=user.id)

    @application.get(
        "/articles/{article_id}/stores",
        response_model=ArticleStoresEnvelope,
        summary="Stores carrying an article",
    )
    def article_stores_list(
        article_id: int,
        user: User = Depends(deps.get_current_user),
    ) -> ArticleStoresEnvelope:
        return ArticleStoresEnvelope(stores=list_article_stores(article_id, user.id))

    @application.post(
        "/articles/{article_id}/stores",
        response_model=ArticleStoreEntry,
        status_code=status.HTTP_201_CREATED,
        summary="Record an article's availability at a store",
    )
    def article_stores_assign(
        article_id: int,
        payload: ArticleStoreRequest = Body(...),
        auth: None = Depends(deps.require_api_token),
        user: User = Depends(deps.get_current_user),
    ) -> ArticleStoreEntry:
        return assign_article_store(
            article_id,
            payload.store_id,
            price=payload.price,
            available=payload.available,
            user_id=user.id,
        )

    @application.get("/metrics", include_in_schema=False)
    def metrics_endpoint() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    return application


NULLABLE_ITEM_FIELDS = frozenset({"purchased_quantity", "price", "notes", "store_id"})


class ListCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class ListShareRequest(BaseModel):
    user_id: int = Field(alias="userId", ge=1)
    can_edit: bool = Field(default=False, alias="canEdit")

    model_config = ConfigDict(populate_by_name=True)


class ItemCreateRequest(BaseModel):
    article_id: int = Field(alias="articleId", ge=1)
    quantity: float = Field(gt=0)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=32)
    store_id: Optional[int] = Field(default=None, alias="storeId", ge=1)
    notes: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(populate_by_name=True)


class StoreItemCreateRequest(BaseModel):
    article_id: int = Field(alias="articleId", ge=1)
    store_id: int = Field(alias="storeId", ge=1)
    quantity: float = Field(gt=0)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=32)
    notes: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(populate_by_name=True)


class ItemUpdateRequest(BaseModel):
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=32)
    checked: Optional[bool] = Field(default=None)
    purchased_quantity: Optional[float] = Field(default=None, gt=0, alias="purchasedQuantity")
    price: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)
    store_id: Optional[int] = Field(default=None, alias="storeId", ge=1)

    model_config = ConfigDict(populate_by_name=True)


class ItemEnvelope(BaseModel):
    item: ShoppingListItem


class ResetResult(BaseModel):
    message: str
    reset_count: int


class RecipeToListRequest(BaseModel):
    recipe_id: int = Field(alias="recipeId", ge=1)
    servings: Optional[int] = Field(default=None, gt=0)
    ingredient_selections: Optional[dict[int, IngredientSelection]] = Field(
        default=None, alias="ingredientSelections"
    )

    model_config = ConfigDict(populate_by_name=True)


class IngredientArticleRequest(BaseModel):
    article_id: Optional[int] = Field(alias="articleId", ge=1)

    model_config = ConfigDict(populate_by_name=True)


class ArticleStoreRequest(BaseModel):
    store_id: int = Field(alias="storeId", ge=1)
    price: Optional[float] = Field(default=None, gt=0)
    available: bool = Field(default=True)

    model_config = ConfigDict(populate_by_name=True)


class ArticleStoresEnvelope(BaseModel):
    stores: list[ArticleStoreEntry]


class PurchaseCreateRequest(BaseModel):
    purchased_at: Optional[datetime] = Field(default=None, alias="purchasedAt")
    notes: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(populate_by_name=True)


class PurchaseUpdateRequest(BaseModel):
    purchased_at: Optional[datetime] = Field(default=None, alias="purchasedAt")
    notes: Optional[str] = Field(default=None, max_length=1000)
    items: Optional[list[PurchaseItemEdit]] = Field(default=None)

    model_config = ConfigDict(populate_by_name=True)


class PurchaseEnvelope(BaseModel):
    purchase: Purchase


class PurchasesEnvelope(BaseModel):
    purchases: list[Purchase]


app = create_app()

__all__ = ["app", "create_app"]
