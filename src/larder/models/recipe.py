"""Recipe models and per-request ingredient selections."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from larder.models.catalog import ProductSummary


class RecipeIngredient(BaseModel):
    """Quantity of a product a recipe needs, with an optional preselected article."""

    id: int
    product: ProductSummary
    quantity: float = Field(gt=0)
    unit: str
    article_id: Optional[int] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    is_optional: bool = Field(default=False)
    position: int = Field(default=0)

    model_config = ConfigDict(frozen=True)

    @property
    def product_id(self) -> int:
        return self.product.id


class Recipe(BaseModel):
    id: int
    name: str
    description: Optional[str] = Field(default=None)
    servings: Optional[int] = Field(default=None)
    is_general: bool = Field(default=False)
    created_by_id: Optional[int] = Field(default=None)
    ingredients: list[RecipeIngredient] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(frozen=True)

    @property
    def ingredient_ids(self) -> set[int]:
        return {ingredient.id for ingredient in self.ingredients}


class IngredientSelection(BaseModel):
    """Article chosen for one recipe ingredient, optionally overriding quantity/unit."""

    article_id: int = Field(alias="articleId", ge=1)
    quantity: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(
        default=None,
        alias="unitId",
        min_length=1,
        max_length=32,
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)


__all__ = ["Recipe", "RecipeIngredient", "IngredientSelection"]
