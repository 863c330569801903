"""Pydantic models defining shared data contracts."""

from larder.models.catalog import (
    Article,
    ArticleStoreEntry,
    Product,
    ProductSummary,
    Store,
    StoreSummary,
    User,
    UserSummary,
)
from larder.models.purchase import Purchase, PurchaseItem, PurchaseItemEdit
from larder.models.recipe import IngredientSelection, Recipe, RecipeIngredient
from larder.models.shopping import (
    ArticleRef,
    ListAccess,
    RecipeConversionResult,
    ShoppingList,
    ShoppingListItem,
)

__all__ = [
    "Article",
    "ArticleStoreEntry",
    "Product",
    "ProductSummary",
    "Store",
    "StoreSummary",
    "User",
    "UserSummary",
    "Purchase",
    "PurchaseItem",
    "PurchaseItemEdit",
    "IngredientSelection",
    "Recipe",
    "RecipeIngredient",
    "ArticleRef",
    "ListAccess",
    "RecipeConversionResult",
    "ShoppingList",
    "ShoppingListItem",
]
