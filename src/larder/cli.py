"""Command-line interface for Larder."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

import typer

from larder.config import get_settings
from larder.db.catalog import (
    assign_article_store,
    create_article,
    create_product,
    create_store,
    create_user,
    get_user_by_email,
)
from larder.db.purchases import get_purchase, record_purchase
from larder.db.recipes import add_recipe_ingredient, create_recipe
from larder.db.repository import get_engine
from larder.db.shopping_list import create_item, create_list, require_list_access
from larder.errors import LarderError
from larder.logging_utils import configure_logging

app = typer.Typer(help="Larder shopping list and purchase ledger commands.")

DEMO_EMAIL = "demo@larder.local"

DEMO_CATALOG = [
    # product, description, article, brand, variant, suggested price
    ("Milk", "Dairy", "Whole milk", "generic", "whole", 1.20),
    ("Bread", "Bakery", "Sliced bread", "generic", "sliced", 0.95),
    ("Eggs", "Hen eggs", "Free range eggs", "generic", "size L", 2.50),
    ("Tomatoes", "Fresh tomatoes", "Plum tomatoes", "generic", "plum", 2.80),
]


def _echo_json(payload: Any, pretty: bool) -> None:
    typer.echo(json.dumps(payload, indent=2 if pretty else None, sort_keys=pretty))


def _fail(exc: LarderError) -> None:
    typer.secho(f"Error: {exc.message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.callback()
def _setup() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format, [settings.api_token or ""])


@app.command("init-db")
def init_db() -> None:
    """Create the SQLite database and all tables."""

    get_engine()
    typer.echo(f"Database ready at {get_settings().database_path}")


@app.command()
def seed(
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print output JSON."),
) -> None:
    """
    Load a demo user, catalog, store, recipe and shopping list.

    Running it again is a no-op once the demo user exists.
    """

    existing = get_user_by_email(DEMO_EMAIL)
    if existing is not None:
        typer.echo(f"Demo data already present (user {existing.id}).")
        return

    user = create_user(name="Demo User", email=DEMO_EMAIL)
    articles = {}
    for product_name, description, article_name, brand, variant, price in DEMO_CATALOG:
        product = create_product(name=product_name, description=description, is_general=True)
        articles[product_name] = create_article(
            product_id=product.id,
            name=article_name,
            brand=brand,
            variant=variant,
            suggested_price=price,
            is_general=True,
        )
    store = create_store(name="Corner Market", type="supermarket", is_general=True)
    for product_name, *_, price in DEMO_CATALOG:
        assign_article_store(articles[product_name].id, store.id, price=price)

    recipe = create_recipe(
        name="Tomato toast",
        description="Toasted bread with tomato and a fried egg",
        servings=2,
        is_general=True,
        created_by_id=user.id,
    )
    add_recipe_ingredient(
        recipe.id,
        product_id=articles["Bread"].product_id,
        quantity=4,
        unit="slice",
        article_id=articles["Bread"].id,
    )
    add_recipe_ingredient(
        recipe.id,
        product_id=articles["Tomatoes"].product_id,
        quantity=250,
        unit="g",
        article_id=articles["Tomatoes"].id,
    )
    add_recipe_ingredient(
        recipe.id,
        product_id=articles["Eggs"].product_id,
        quantity=2,
        unit="un",
        is_optional=True,
    )

    shopping_list = create_list(name="Weekly shop", owner_id=user.id)
    create_item(
        shopping_list.id,
        article_id=articles["Milk"].id,
        quantity=2,
        unit="l",
        added_by_id=user.id,
        store_id=store.id,
    )

    _echo_json(
        {
            "user_id": user.id,
            "list_id": shopping_list.id,
            "recipe_id": recipe.id,
            "store_id": store.id,
            "article_ids": {name: article.id for name, article in articles.items()},
        },
        pretty,
    )


@app.command("record-purchase")
def record_purchase_command(
    list_id: int = typer.Argument(..., help="Shopping list whose checked items were bought."),
    user_id: int = typer.Option(..., "--user", help="Acting user id."),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-form purchase notes."),
    purchased_at: Optional[datetime] = typer.Option(
        None,
        "--at",
        help="Purchase timestamp (defaults to now).",
    ),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print output JSON."),
) -> None:
    """Record the list's checked items as a purchase."""

    try:
        require_list_access(list_id, user_id, edit=True)
        purchase = record_purchase(list_id, purchased_at=purchased_at, notes=notes)
    except LarderError as exc:
        _fail(exc)
        return
    _echo_json(purchase.model_dump(mode="json"), pretty)


@app.command("show-purchase")
def show_purchase(
    purchase_id: int = typer.Argument(..., help="Purchase id."),
    pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print output JSON."),
) -> None:
    """Print a recorded purchase and its lines."""

    purchase = get_purchase(purchase_id)
    if purchase is None:
        typer.secho(f"Error: Purchase {purchase_id} not found", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    _echo_json(purchase.model_dump(mode="json"), pretty)


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for `python -m larder`."""
    app(prog_name="larder", args=argv)


if __name__ == "__main__":
    main()
