"""Recipe persistence helpers."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select

from larder.access import accessible
from larder.errors import Forbidden, NotFound, ValidationFailure
from larder.models.recipe import Recipe, RecipeIngredient

from .models import ArticleORM, ProductORM, RecipeIngredientORM, RecipeORM
from .repository import session_scope

MAX_NOTES_LENGTH = 1000


def _to_ingredient(row: RecipeIngredientORM) -> RecipeIngredient:
    return RecipeIngredient.model_validate(
        {
            "id": row.id,
            "product": {"id": row.product.id, "name": row.product.name},
            "quantity": row.quantity,
            "unit": row.unit,
            "article_id": row.article_id,
            "notes": row.notes,
            "is_optional": row.is_optional,
            "position": row.position,
        }
    )


def _to_model(row: RecipeORM) -> Recipe:
    return Recipe.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "description": row.description,
            "servings": row.servings,
            "is_general": row.is_general,
            "created_by_id": row.created_by_id,
            "ingredients": [_to_ingredient(ingredient) for ingredient in row.ingredients],
            "created_at": row.created_at,
        }
    )


def create_recipe(
    *,
    name: str,
    servings: Optional[int] = None,
    description: Optional[str] = None,
    is_general: bool = False,
    created_by_id: Optional[int] = None,
) -> Recipe:
    if servings is not None and servings <= 0:
        raise ValidationFailure("Servings must be positive", field="servings")
    with session_scope() as session:
        row = RecipeORM(
            name=name.strip(),
            servings=servings,
            description=description,
            is_general=is_general,
            created_by_id=created_by_id,
        )
        session.add(row)
        session.flush()
        return _to_model(row)


def add_recipe_ingredient(
    recipe_id: int,
    *,
    product_id: int,
    quantity: float,
    unit: str,
    article_id: Optional[int] = None,
    notes: Optional[str] = None,
    is_optional: bool = False,
) -> RecipeIngredient:
    """Append an ingredient to a recipe, keeping insertion order."""

    if quantity <= 0:
        raise ValidationFailure("Ingredient quantity must be positive", field="quantity")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationFailure(
            f"Ingredient notes must be at most {MAX_NOTES_LENGTH} characters", field="notes"
        )
    with session_scope() as session:
        if session.get(RecipeORM, recipe_id) is None:
            raise NotFound(f"Recipe {recipe_id} not found")
        if session.get(ProductORM, product_id) is None:
            raise NotFound(f"Product {product_id} not found")
        if article_id is not None:
            _check_default_article(session, article_id, product_id)

        position = session.execute(
            select(func.coalesce(func.max(RecipeIngredientORM.position), -1)).where(
                RecipeIngredientORM.recipe_id == recipe_id
            )
        ).scalar_one()
        row = RecipeIngredientORM(
            recipe_id=recipe_id,
            product_id=product_id,
            quantity=float(quantity),
            unit=unit.strip(),
            article_id=article_id,
            notes=notes,
            is_optional=is_optional,
            position=int(position) + 1,
        )
        session.add(row)
        session.flush()
        session.refresh(row)
        return _to_ingredient(row)


def set_ingredient_article(
    recipe_id: int,
    ingredient_id: int,
    article_id: Optional[int],
    *,
    user_id: int,
) -> RecipeIngredient:
    """Store (or clear) the article preselected for an ingredient.

    Only the creator of a private recipe may change its defaults; general
    recipes have to be copied first.
    """

    with session_scope() as session:
        recipe = session.get(RecipeORM, recipe_id)
        if recipe is None:
            raise NotFound(f"Recipe {recipe_id} not found")
        if not accessible(recipe, user_id) or recipe.created_by_id != user_id:
            raise Forbidden("Only the recipe owner can change ingredient articles")
        if recipe.is_general:
            raise ValidationFailure(
                "General recipes cannot be edited; copy the recipe first", field="recipe_id"
            )
        row = session.get(RecipeIngredientORM, ingredient_id)
        if row is None or row.recipe_id != recipe_id:
            raise NotFound(f"Ingredient {ingredient_id} not found in recipe {recipe_id}")
        if article_id is not None:
            article = session.get(ArticleORM, article_id)
            if article is None:
                raise NotFound(f"Article {article_id} not found")
            if not accessible(article, user_id):
                raise Forbidden("Article is not accessible")
            _check_default_article(session, article_id, row.product_id)
        row.article_id = article_id
        session.flush()
        return _to_ingredient(row)


def get_recipe(recipe_id: int) -> Optional[Recipe]:
    with session_scope() as session:
        row = session.get(RecipeORM, recipe_id)
        if row is None:
            return None
        return _to_model(row)


def _check_default_article(session, article_id: int, product_id: int) -> None:
    article = session.get(ArticleORM, article_id)
    if article is None:
        raise NotFound(f"Article {article_id} not found")
    if article.product_id != product_id:
        raise ValidationFailure(
            f"Article {article.name} does not belong to product {product_id}",
            field="article_id",
        )


__all__ = [
    "create_recipe",
    "add_recipe_ingredient",
    "set_ingredient_article",
    "get_recipe",
]
