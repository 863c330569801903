"""Shopping list models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from larder.models.catalog import ProductSummary, StoreSummary, UserSummary


class ArticleRef(BaseModel):
    """Article projection embedded in list items and purchase lines."""

    id: int
    name: str
    brand: Optional[str] = Field(default=None)
    product: ProductSummary

    model_config = ConfigDict(frozen=True)


class ShoppingList(BaseModel):
    id: int
    name: str
    owner_id: int
    created_at: datetime

    model_config = ConfigDict(frozen=True)


class ListAccess(BaseModel):
    """What the acting user may do on a shopping list."""

    has_access: bool = False
    can_edit: bool = False
    is_owner: bool = False

    model_config = ConfigDict(frozen=True)


class ShoppingListItem(BaseModel):
    """Single line on a shopping list."""

    id: int
    shopping_list_id: int
    article: ArticleRef
    quantity: float
    unit: str
    checked: bool = Field(default=False)
    purchased_quantity: Optional[float] = Field(default=None)
    price: Optional[float] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    store: Optional[StoreSummary] = Field(default=None)
    added_by: Optional[UserSummary] = Field(default=None)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(frozen=True)


class RecipeConversionResult(BaseModel):
    """Outcome of adding a recipe's ingredients to a list."""

    message: str
    added: int
    skipped: int
    unresolved: int = 0
    items: list[ShoppingListItem] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


__all__ = [
    "ArticleRef",
    "ShoppingList",
    "ListAccess",
    "ShoppingListItem",
    "RecipeConversionResult",
]
