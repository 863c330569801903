"""Integration tests for shopping list and sharing endpoints."""

from __future__ import annotations

from fastapi import status

from larder.db.catalog import create_store
from larder.db.recipes import add_recipe_ingredient, create_recipe
from tests.integration.utils import auth_headers


def test_list_crud_and_sharing(client, catalog):
    owner = auth_headers(catalog.owner.id)

    response = client.post("/lists", json={"name": "Party"}, headers=owner)
    assert response.status_code == status.HTTP_201_CREATED
    created = response.json()
    assert created["name"] == "Party"
    assert created["owner_id"] == catalog.owner.id

    response = client.get("/lists", headers=owner)
    assert response.status_code == status.HTTP_200_OK
    assert {entry["id"] for entry in response.json()} == {created["id"], catalog.shopping_list.id}

    response = client.get(f"/lists/{created['id']}", headers=auth_headers(catalog.outsider.id))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(
        f"/lists/{created['id']}/share",
        json={"userId": catalog.outsider.id, "canEdit": True},
        headers=owner,
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json() == {"has_access": True, "can_edit": True, "is_owner": False}

    response = client.get(f"/lists/{created['id']}", headers=auth_headers(catalog.outsider.id))
    assert response.status_code == status.HTTP_200_OK

    response = client.delete(f"/lists/{created['id']}", headers=auth_headers(catalog.outsider.id))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"/lists/{created['id']}", headers=owner)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    response = client.get(f"/lists/{created['id']}", headers=owner)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_only_owner_can_share(client, catalog):
    response = client.post(
        f"/lists/{catalog.shopping_list.id}/share",
        json={"user_id": catalog.outsider.id},
        headers=auth_headers(catalog.editor.id),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_sharing_with_owner_reports_field(client, catalog):
    response = client.post(
        f"/lists/{catalog.shopping_list.id}/share",
        json={"user_id": catalog.owner.id},
        headers=auth_headers(catalog.owner.id),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["field"] == "user_id"


def test_invalid_list_payload_returns_400(client, catalog):
    response = client.post("/lists", json={"name": ""}, headers=auth_headers(catalog.owner.id))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert isinstance(response.json()["detail"], list)


def test_product_articles_respect_visibility(client, catalog):
    response = client.get(
        f"/products/{catalog.flour.id}/articles", headers=auth_headers(catalog.owner.id)
    )
    assert response.status_code == status.HTTP_200_OK
    names = [article["name"] for article in response.json()]
    assert names == ["Rye flour", "Wheat flour"]

    response = client.get(
        f"/products/{catalog.flour.id}/articles", headers=auth_headers(catalog.outsider.id)
    )
    assert "Oscar's spelt" in [article["name"] for article in response.json()]


def test_recipe_endpoint(client, catalog):
    response = client.get(f"/recipes/{catalog.recipe.id}", headers=auth_headers(catalog.viewer.id))
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["servings"] == 4
    assert [ing["product"]["name"] for ing in body["ingredients"]] == ["Flour", "Eggs", "Milk"]

    response = client.get("/recipes/9999", headers=auth_headers(catalog.viewer.id))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_owner_revokes_share(client, catalog):
    list_id = catalog.shopping_list.id
    url = f"/lists/{list_id}/share/{catalog.viewer.id}"

    response = client.delete(url, headers=auth_headers(catalog.editor.id))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Only the owner can remove access"

    response = client.delete(url, headers=auth_headers(catalog.owner.id))
    assert response.status_code == status.HTTP_204_NO_CONTENT

    response = client.get(f"/lists/{list_id}", headers=auth_headers(catalog.viewer.id))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(url, headers=auth_headers(catalog.owner.id))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_set_ingredient_article_endpoint(client, catalog):
    recipe = create_recipe(name="Porridge", servings=1, created_by_id=catalog.owner.id)
    ingredient = add_recipe_ingredient(recipe.id, product_id=catalog.milk.id, quantity=0.3, unit="l")
    url = f"/recipes/{recipe.id}/ingredients/{ingredient.id}/article"

    response = client.put(
        url, json={"articleId": catalog.milk_article.id}, headers=auth_headers(catalog.owner.id)
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["article_id"] == catalog.milk_article.id

    response = client.put(url, json={"articleId": None}, headers=auth_headers(catalog.owner.id))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["article_id"] is None

    response = client.put(
        url, json={"articleId": catalog.flour_article.id}, headers=auth_headers(catalog.owner.id)
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["field"] == "article_id"

    response = client.put(
        url, json={"articleId": catalog.milk_article.id}, headers=auth_headers(catalog.editor.id)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_general_recipe_ingredient_article_cannot_be_changed(client, catalog):
    url = (
        f"/recipes/{catalog.recipe.id}/ingredients/"
        f"{catalog.ingredient_id(catalog.milk)}/article"
    )

    response = client.put(
        url, json={"articleId": catalog.milk_article.id}, headers=auth_headers(catalog.owner.id)
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "copy the recipe" in response.json()["detail"]


def test_article_store_endpoints(client, catalog):
    store = create_store(name="Oscar's deli", created_by_id=catalog.outsider.id)
    url = f"/articles/{catalog.private_article.id}/stores"
    outsider = auth_headers(catalog.outsider.id)

    response = client.post(url, json={"storeId": store.id, "price": 3.75}, headers=outsider)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["store"]["name"] == "Oscar's deli"
    assert response.json()["available"] is True

    response = client.get(url, headers=outsider)
    assert response.status_code == status.HTTP_200_OK
    assert [entry["price"] for entry in response.json()["stores"]] == [3.75]

    response = client.get(url, headers=auth_headers(catalog.owner.id))
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = client.post(
        f"/articles/{catalog.flour_article.id}/stores",
        json={"storeId": catalog.store.id},
        headers=auth_headers(catalog.owner.id),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(url, json={"storeId": store.id, "price": -1}, headers=outsider)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
