"""Serving-based quantity scaling."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional

from larder.errors import ValidationFailure

from .resolver import ResolvedIngredient


def serving_multiplier(requested: Optional[float], base: Optional[float]) -> float:
    """Return ``requested / base``; a missing base counts as 1 serving."""

    base_servings = 1 if base is None else base
    if base_servings <= 0:
        raise ValidationFailure("Recipe servings must be positive", field="servings")
    target = base_servings if requested is None else requested
    if target <= 0:
        raise ValidationFailure("Requested servings must be positive", field="servings")
    return target / base_servings


def scale_ingredients(
    ingredients: Iterable[ResolvedIngredient],
    requested: Optional[float],
    base: Optional[float],
) -> List[ResolvedIngredient]:
    """Multiply every quantity by the serving multiplier. Units are left as-is."""

    multiplier = serving_multiplier(requested, base)
    if multiplier == 1:
        return list(ingredients)
    return [replace(ingredient, quantity=ingredient.quantity * multiplier) for ingredient in ingredients]


__all__ = ["serving_multiplier", "scale_ingredients"]
