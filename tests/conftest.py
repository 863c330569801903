"""Shared pytest fixtures for the Larder test suite."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from larder.config import get_settings
from larder.db.catalog import create_article, create_product, create_store, create_user
from larder.db.recipes import add_recipe_ingredient, create_recipe, get_recipe
from larder.db.repository import reset_repository_state
from larder.db.shopping_list import create_list, share_list
from larder.models.catalog import Article, Product, Store, User
from larder.models.recipe import Recipe
from larder.models.shopping import ShoppingList
from larder.server.app import create_app


@dataclass
class Catalog:
    """Users, catalog rows, a recipe and a shared list used across tests."""

    owner: User
    editor: User
    viewer: User
    outsider: User
    flour: Product
    eggs: Product
    milk: Product
    flour_article: Article
    rye_article: Article
    eggs_article: Article
    milk_article: Article
    private_article: Article
    store: Store
    recipe: Recipe
    shopping_list: ShoppingList

    def ingredient_id(self, product: Product) -> int:
        return next(ing.id for ing in self.recipe.ingredients if ing.product_id == product.id)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Ensure each test uses an isolated SQLite database location."""

    db_path = tmp_path / "test_larder.db"
    monkeypatch.setenv("LARDER_DATABASE_PATH", str(db_path))
    monkeypatch.delenv("LARDER_API_TOKEN", raising=False)
    get_settings.cache_clear()
    reset_repository_state()
    yield
    reset_repository_state()
    monkeypatch.delenv("LARDER_DATABASE_PATH", raising=False)
    get_settings.cache_clear()


@pytest.fixture()
def app() -> Generator[FastAPI, None, None]:
    """Create a new FastAPI app instance for each test and reset overrides."""

    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> TestClient:
    """Return a test client bound to the FastAPI app."""

    return TestClient(app)


@pytest.fixture()
def catalog() -> Catalog:
    """Seed a small catalog.

    The pancake recipe serves 4: 500 g flour (wheat flour preselected), 4 eggs
    (eggs preselected) and 1 l milk with no article chosen. The owner's list
    is shared read-only with ``viewer`` and editable by ``editor``.
    """

    owner = create_user(name="Olivia", email="olivia@example.com")
    editor = create_user(name="Eddie", email="eddie@example.com")
    viewer = create_user(name="Vera", email="vera@example.com")
    outsider = create_user(name="Oscar", email="oscar@example.com")

    flour = create_product(name="Flour", is_general=True)
    eggs = create_product(name="Eggs", is_general=True)
    milk = create_product(name="Milk", is_general=True)

    flour_article = create_article(
        product_id=flour.id, name="Wheat flour", brand="Mill Co", suggested_price=1.5, is_general=True
    )
    rye_article = create_article(
        product_id=flour.id, name="Rye flour", suggested_price=2.25, is_general=True
    )
    eggs_article = create_article(
        product_id=eggs.id, name="Free range eggs", suggested_price=0.25, is_general=True
    )
    milk_article = create_article(product_id=milk.id, name="Whole milk", is_general=True)
    private_article = create_article(
        product_id=flour.id,
        name="Oscar's spelt",
        suggested_price=4.0,
        created_by_id=outsider.id,
    )
    store = create_store(name="Corner Market", type="supermarket", is_general=True)

    recipe = create_recipe(name="Pancakes", servings=4, is_general=True, created_by_id=owner.id)
    add_recipe_ingredient(
        recipe.id, product_id=flour.id, quantity=500, unit="g", article_id=flour_article.id
    )
    add_recipe_ingredient(
        recipe.id, product_id=eggs.id, quantity=4, unit="un", article_id=eggs_article.id
    )
    add_recipe_ingredient(recipe.id, product_id=milk.id, quantity=1, unit="l")

    shopping_list = create_list(name="Weekly shop", owner_id=owner.id)
    share_list(shopping_list.id, user_id=editor.id, can_edit=True)
    share_list(shopping_list.id, user_id=viewer.id, can_edit=False)

    return Catalog(
        owner=owner,
        editor=editor,
        viewer=viewer,
        outsider=outsider,
        flour=flour,
        eggs=eggs,
        milk=milk,
        flour_article=flour_article,
        rye_article=rye_article,
        eggs_article=eggs_article,
        milk_article=milk_article,
        private_article=private_article,
        store=store,
        recipe=get_recipe(recipe.id),
        shopping_list=shopping_list,
    )
