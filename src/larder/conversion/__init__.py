"""Recipe to shopping list conversion."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from larder.access import accessible
from larder.db.recipes import get_recipe
from larder.db.shopping_list import require_list_access
from larder.errors import Forbidden, NotFound
from larder.models.recipe import IngredientSelection
from larder.models.shopping import RecipeConversionResult

from .materializer import Materialization, materialize
from .resolver import Resolution, ResolvedIngredient, resolve_ingredients
from .scaler import scale_ingredients, serving_multiplier

logger = logging.getLogger(__name__)


def add_recipe_to_list(
    list_id: int,
    *,
    recipe_id: int,
    user_id: int,
    servings: Optional[int] = None,
    selections: Optional[Mapping[int, IngredientSelection]] = None,
) -> RecipeConversionResult:
    """Resolve, scale and add a recipe's ingredients to a shopping list."""

    require_list_access(list_id, user_id, edit=True)

    recipe = get_recipe(recipe_id)
    if recipe is None:
        raise NotFound(f"Recipe {recipe_id} not found")
    if not accessible(recipe, user_id):
        raise Forbidden("No access to this recipe")

    resolution = resolve_ingredients(recipe, selections, user_id=user_id)
    scaled = scale_ingredients(resolution.ingredients, servings, recipe.servings)
    outcome = materialize(list_id, scaled, user_id=user_id)

    if outcome.added:
        message = f"Added {outcome.added} article(s) to the list"
    else:
        message = "All recipe articles are already on the list"
    logger.info(
        "Recipe %s added to list %s: added=%s skipped=%s unresolved=%s",
        recipe_id,
        list_id,
        outcome.added,
        outcome.skipped,
        resolution.unresolved,
        extra={"list_id": list_id, "user_id": user_id},
    )
    return RecipeConversionResult(
        message=message,
        added=outcome.added,
        skipped=outcome.skipped,
        unresolved=resolution.unresolved,
        items=list(outcome.items),
    )


__all__ = [
    "add_recipe_to_list",
    "Materialization",
    "materialize",
    "Resolution",
    "ResolvedIngredient",
    "resolve_ingredients",
    "scale_ingredients",
    "serving_multiplier",
]
