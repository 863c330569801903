"""Integration tests for adding recipes to shopping lists."""

from __future__ import annotations

import pytest
from fastapi import status

from larder.db.recipes import add_recipe_ingredient, create_recipe
from larder.models.shopping import RecipeConversionResult
from larder.server import deps
from tests.integration.utils import auth_headers


def _url(catalog) -> str:
    return f"/lists/{catalog.shopping_list.id}/items/from-recipe"


def test_recipe_conversion_scales_and_deduplicates(client, catalog):
    headers = auth_headers(catalog.owner.id)

    response = client.post(
        _url(catalog), json={"recipeId": catalog.recipe.id, "servings": 2}, headers=headers
    )
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["added"] == 2
    assert body["skipped"] == 0
    assert body["unresolved"] == 1
    quantities = {item["article"]["id"]: item["quantity"] for item in body["items"]}
    assert quantities[catalog.flour_article.id] == pytest.approx(250)
    assert quantities[catalog.eggs_article.id] == pytest.approx(2)

    response = client.post(_url(catalog), json={"recipe_id": catalog.recipe.id}, headers=headers)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["added"] == 0
    assert body["skipped"] == 2
    assert body["message"] == "All recipe articles are already on the list"


def test_ingredient_selections_from_json(client, catalog):
    milk_ingredient = catalog.ingredient_id(catalog.milk)
    payload = {
        "recipeId": catalog.recipe.id,
        "ingredientSelections": {
            str(milk_ingredient): {"articleId": catalog.milk_article.id, "quantity": 2, "unitId": "l"}
        },
    }

    response = client.post(_url(catalog), json=payload, headers=auth_headers(catalog.editor.id))

    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["added"] == 3
    assert body["unresolved"] == 0
    milk = next(item for item in body["items"] if item["article"]["id"] == catalog.milk_article.id)
    assert milk["quantity"] == pytest.approx(2)
    assert milk["unit"] == "l"
    assert milk["price"] is None


@pytest.mark.parametrize(
    ("payload_factory", "expected"),
    [
        (lambda c: {"recipeId": c.recipe.id, "servings": 0}, status.HTTP_400_BAD_REQUEST),
        (lambda c: {"recipeId": 9999}, status.HTTP_404_NOT_FOUND),
        (
            lambda c: {
                "recipeId": c.recipe.id,
                "ingredientSelections": {"9999": {"articleId": c.flour_article.id}},
            },
            status.HTTP_400_BAD_REQUEST,
        ),
        (
            lambda c: {
                "recipeId": c.recipe.id,
                "ingredientSelections": {
                    str(c.ingredient_id(c.flour)): {"articleId": c.eggs_article.id}
                },
            },
            status.HTTP_400_BAD_REQUEST,
        ),
        (
            lambda c: {
                "recipeId": c.recipe.id,
                "ingredientSelections": {
                    str(c.ingredient_id(c.flour)): {"articleId": c.private_article.id}
                },
            },
            status.HTTP_403_FORBIDDEN,
        ),
    ],
)
def test_conversion_errors(client, catalog, payload_factory, expected):
    response = client.post(
        _url(catalog), json=payload_factory(catalog), headers=auth_headers(catalog.owner.id)
    )
    assert response.status_code == expected

    items = client.get(
        f"/lists/{catalog.shopping_list.id}/items", headers=auth_headers(catalog.owner.id)
    )
    assert items.json() == []


def test_conversion_access_rules(client, catalog):
    payload = {"recipeId": catalog.recipe.id}

    response = client.post(_url(catalog), json=payload)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

    response = client.post(_url(catalog), json=payload, headers=auth_headers(catalog.viewer.id))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(
        f"/lists/{catalog.shopping_list.id + 100}/items/from-recipe",
        json=payload,
        headers=auth_headers(catalog.owner.id),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_converter_dependency_can_be_overridden(app, client, catalog):
    calls = []

    def fake_converter(list_id, recipe_id, user_id, servings=None, selections=None):
        calls.append((list_id, recipe_id, user_id, servings, selections))
        return RecipeConversionResult(message="stub", added=0, skipped=3)

    app.dependency_overrides[deps.get_recipe_converter] = lambda: fake_converter

    response = client.post(
        _url(catalog),
        json={"recipeId": catalog.recipe.id, "servings": 6},
        headers=auth_headers(catalog.owner.id),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["message"] == "stub"
    assert calls == [(catalog.shopping_list.id, catalog.recipe.id, catalog.owner.id, 6, None)]


def test_long_ingredient_notes_are_copied_to_the_list(client, catalog):
    recipe = create_recipe(name="Toast", servings=1, is_general=True)
    notes = "n" * 1000
    add_recipe_ingredient(
        recipe.id,
        product_id=catalog.milk.id,
        quantity=0.2,
        unit="l",
        article_id=catalog.milk_article.id,
        notes=notes,
    )

    response = client.post(
        _url(catalog), json={"recipeId": recipe.id}, headers=auth_headers(catalog.owner.id)
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["items"][0]["notes"] == notes
    listed = client.get(
        f"/lists/{catalog.shopping_list.id}/items", headers=auth_headers(catalog.owner.id)
    )
    assert listed.status_code == status.HTTP_200_OK
