"""Unit tests for serving-based quantity scaling."""

from __future__ import annotations

import pytest

from larder.conversion.resolver import ResolvedIngredient
from larder.conversion.scaler import scale_ingredients, serving_multiplier
from larder.errors import ValidationFailure
from larder.models.catalog import Article, ProductSummary

FLOUR = Article(id=1, name="Wheat flour", product=ProductSummary(id=1, name="Flour"), is_general=True)


def _ingredient(quantity: float, unit: str = "g") -> ResolvedIngredient:
    return ResolvedIngredient(ingredient_id=10, article=FLOUR, quantity=quantity, unit=unit)


@pytest.mark.parametrize(
    ("requested", "base", "expected"),
    [
        (2, 4, 0.5),
        (8, 4, 2.0),
        (4, 4, 1.0),
        (None, 4, 1.0),
        (3, None, 3.0),
        (None, None, 1.0),
    ],
)
def test_serving_multiplier(requested, base, expected):
    assert serving_multiplier(requested, base) == pytest.approx(expected)


@pytest.mark.parametrize(("requested", "base"), [(2, 0), (2, -1), (0, 4), (-2, 4)])
def test_serving_multiplier_rejects_non_positive_values(requested, base):
    with pytest.raises(ValidationFailure):
        serving_multiplier(requested, base)


def test_halving_servings_halves_quantities():
    scaled = scale_ingredients([_ingredient(500)], 2, 4)

    assert scaled[0].quantity == pytest.approx(250)
    assert scaled[0].unit == "g"
    assert scaled[0].article == FLOUR


def test_same_servings_is_identity():
    ingredients = [_ingredient(500), _ingredient(2, "un")]

    assert scale_ingredients(ingredients, 4, 4) == ingredients


def test_missing_base_servings_counts_as_one():
    scaled = scale_ingredients([_ingredient(1.5, "l")], 3, None)

    assert scaled[0].quantity == pytest.approx(4.5)
