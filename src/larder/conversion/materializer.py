"""Turn resolved ingredients into shopping list items."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from larder import metrics
from larder.db.shopping_list import existing_article_ids, insert_items
from larder.models.shopping import ShoppingListItem

from .resolver import ResolvedIngredient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Materialization:
    items: Tuple[ShoppingListItem, ...]
    skipped: int

    @property
    def added(self) -> int:
        return len(self.items)


def _draft(ingredient: ResolvedIngredient) -> Dict[str, Any]:
    return {
        "article_id": ingredient.article.id,
        "quantity": ingredient.quantity,
        "unit": ingredient.unit,
        "price": ingredient.article.suggested_price,
        "notes": ingredient.notes,
    }


def materialize(
    list_id: int,
    ingredients: Sequence[ResolvedIngredient],
    *,
    user_id: int,
) -> Materialization:
    """Add each ingredient's article to the list unless it is already there.

    The price snapshot is the article's suggested price at insertion time.
    Articles already present, whether found up front or rejected by the
    list/article unique constraint during insertion, count as skipped.
    """

    seen: set[int] = set()
    unique: List[ResolvedIngredient] = []
    for ingredient in ingredients:
        if ingredient.article.id in seen:
            continue
        seen.add(ingredient.article.id)
        unique.append(ingredient)
    repeated = len(ingredients) - len(unique)

    present = existing_article_ids(list_id, seen)
    to_add = [ingredient for ingredient in unique if ingredient.article.id not in present]
    skipped = repeated + (len(unique) - len(to_add))

    created: List[ShoppingListItem] = []
    if to_add:
        created, duplicates = insert_items(
            list_id,
            [_draft(ingredient) for ingredient in to_add],
            added_by_id=user_id,
        )
        skipped += duplicates

    metrics.RECIPE_ITEMS.labels(result="added").inc(len(created))
    metrics.RECIPE_ITEMS.labels(result="skipped").inc(skipped)
    logger.info(
        "Materialized list=%s added=%s skipped=%s",
        list_id,
        len(created),
        skipped,
        extra={"list_id": list_id, "user_id": user_id},
    )
    return Materialization(items=tuple(created), skipped=skipped)


__all__ = ["Materialization", "materialize"]
