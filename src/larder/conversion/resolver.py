"""Resolve recipe ingredients to concrete, accessible articles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Optional, Tuple

from larder.access import accessible
from larder.db.catalog import fetch_articles
from larder.errors import Forbidden, NotFound, ValidationFailure
from larder.models.catalog import Article
from larder.models.recipe import IngredientSelection, Recipe, RecipeIngredient

logger = logging.getLogger(__name__)

ArticleFetcher = Callable[[Iterable[int]], Mapping[int, Article]]


@dataclass(frozen=True)
class ResolvedIngredient:
    """Recipe ingredient bound to the article that will be bought for it."""

    ingredient_id: int
    article: Article
    quantity: float
    unit: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class Resolution:
    ingredients: Tuple[ResolvedIngredient, ...]
    unresolved: int


def _candidate_article_id(
    ingredient: RecipeIngredient,
    selections: Mapping[int, IngredientSelection],
) -> Optional[int]:
    selection = selections.get(ingredient.id)
    if selection is not None:
        return selection.article_id
    return ingredient.article_id


def _check_selection_keys(recipe: Recipe, selections: Mapping[int, IngredientSelection]) -> None:
    unknown = sorted(set(selections) - recipe.ingredient_ids)
    if unknown:
        raise ValidationFailure(
            f"Ingredient {unknown[0]} is not part of recipe {recipe.name}",
            field="ingredient_selections",
        )


def resolve_ingredients(
    recipe: Recipe,
    selections: Optional[Mapping[int, IngredientSelection]] = None,
    *,
    user_id: int,
    article_fetcher: ArticleFetcher = fetch_articles,
) -> Resolution:
    """Pick an article for every ingredient that has one selected or preselected.

    Ingredients without a candidate article are left out and counted. A
    missing, inaccessible or mismatched article aborts the whole resolution.
    """

    selections = selections or {}
    _check_selection_keys(recipe, selections)

    candidates = [
        (ingredient, article_id)
        for ingredient in recipe.ingredients
        if (article_id := _candidate_article_id(ingredient, selections)) is not None
    ]
    unresolved = len(recipe.ingredients) - len(candidates)
    if not candidates:
        raise ValidationFailure(
            "No articles selected: choose at least one article for the recipe ingredients",
            field="ingredient_selections",
        )

    articles = article_fetcher(article_id for _, article_id in candidates)

    resolved = []
    for ingredient, article_id in candidates:
        article = articles.get(article_id)
        if article is None:
            raise NotFound(f"Article not found: {article_id}")
        if not accessible(article, user_id):
            raise Forbidden(f"No access to article: {article.name}")
        if article.product_id != ingredient.product_id:
            raise ValidationFailure(
                f"Article {article.name} does not belong to product {ingredient.product.name}",
                field="ingredient_selections",
            )

        selection = selections.get(ingredient.id)
        quantity = ingredient.quantity
        unit = ingredient.unit
        if selection is not None:
            quantity = selection.quantity or quantity
            unit = selection.unit or unit
        resolved.append(
            ResolvedIngredient(
                ingredient_id=ingredient.id,
                article=article,
                quantity=quantity,
                unit=unit,
                notes=ingredient.notes,
            )
        )

    logger.debug(
        "Resolved %s of %s ingredient(s) for recipe %s",
        len(resolved),
        len(recipe.ingredients),
        recipe.id,
    )
    return Resolution(ingredients=tuple(resolved), unresolved=unresolved)


__all__ = ["ResolvedIngredient", "Resolution", "resolve_ingredients"]
