"""Unit tests for the shopping list repository helpers."""

from __future__ import annotations

import pytest

from larder.db.catalog import assign_article_store, create_store
from larder.db.shopping_list import (
    create_item,
    create_item_from_store,
    delete_item,
    delete_list,
    existing_article_ids,
    get_item,
    insert_items,
    list_items,
    lists_for_user,
    require_list_access,
    reset_checked_items,
    revoke_share,
    share_list,
    update_item,
)
from larder.errors import DuplicateItem, Forbidden, NotFound, ValidationFailure


def _add(catalog, article, quantity=1, **kwargs):
    return create_item(
        catalog.shopping_list.id,
        article_id=article.id,
        quantity=quantity,
        unit="un",
        added_by_id=catalog.owner.id,
        **kwargs,
    )


def test_create_item_snapshots_suggested_price(catalog):
    item = _add(catalog, catalog.flour_article, quantity=2)

    assert item.price == pytest.approx(1.5)
    assert item.checked is False
    assert item.article.name == "Wheat flour"
    assert item.article.product.name == "Flour"
    assert item.added_by.id == catalog.owner.id

    explicit = _add(catalog, catalog.eggs_article, price=0.4)
    assert explicit.price == pytest.approx(0.4)

    unpriced = _add(catalog, catalog.milk_article)
    assert unpriced.price is None


def test_adding_same_article_twice_raises_duplicate(catalog):
    _add(catalog, catalog.flour_article)

    with pytest.raises(DuplicateItem):
        _add(catalog, catalog.flour_article, quantity=5)

    assert len(list_items(catalog.shopping_list.id)) == 1


def test_private_article_of_another_user_cannot_be_added(catalog):
    with pytest.raises(NotFound):
        _add(catalog, catalog.private_article)


def test_update_item_fields(catalog):
    item = _add(catalog, catalog.flour_article, quantity=3)

    updated = update_item(
        catalog.shopping_list.id,
        item.id,
        user_id=catalog.owner.id,
        checked=True,
        purchased_quantity=2,
        price=1.75,
        notes="organic",
        store_id=catalog.store.id,
    )

    assert updated.checked is True
    assert updated.purchased_quantity == pytest.approx(2)
    assert updated.price == pytest.approx(1.75)
    assert updated.notes == "organic"
    assert updated.store.name == "Corner Market"

    cleared = update_item(
        catalog.shopping_list.id, item.id, user_id=catalog.owner.id, price=None, store_id=None
    )
    assert cleared.price is None
    assert cleared.store is None
    assert cleared.notes == "organic"


def test_purchased_quantity_cannot_exceed_quantity(catalog):
    item = _add(catalog, catalog.flour_article, quantity=1)

    with pytest.raises(ValidationFailure):
        update_item(catalog.shopping_list.id, item.id, user_id=catalog.owner.id, purchased_quantity=2)

    assert get_item(catalog.shopping_list.id, item.id).purchased_quantity is None


def test_update_item_on_other_list_raises(catalog):
    item = _add(catalog, catalog.flour_article)

    with pytest.raises(ValueError):
        update_item(catalog.shopping_list.id + 1, item.id, user_id=catalog.owner.id, checked=True)


def test_reset_and_delete_items(catalog):
    first = _add(catalog, catalog.flour_article)
    second = _add(catalog, catalog.eggs_article)
    update_item(catalog.shopping_list.id, first.id, user_id=catalog.owner.id, checked=True)
    update_item(catalog.shopping_list.id, second.id, user_id=catalog.owner.id, checked=True)

    assert reset_checked_items(catalog.shopping_list.id) == 2
    assert all(not item.checked for item in list_items(catalog.shopping_list.id))

    delete_item(catalog.shopping_list.id, first.id)
    assert get_item(catalog.shopping_list.id, first.id) is None
    with pytest.raises(NotFound):
        delete_item(catalog.shopping_list.id, first.id)


def test_list_access_rules(catalog):
    list_id = catalog.shopping_list.id

    assert require_list_access(list_id, catalog.owner.id, edit=True).is_owner
    assert require_list_access(list_id, catalog.editor.id, edit=True).can_edit
    assert require_list_access(list_id, catalog.viewer.id).has_access

    with pytest.raises(Forbidden, match="permission to edit"):
        require_list_access(list_id, catalog.viewer.id, edit=True)
    with pytest.raises(Forbidden):
        require_list_access(list_id, catalog.outsider.id)
    with pytest.raises(NotFound):
        require_list_access(list_id + 100, catalog.owner.id)


def test_sharing_with_owner_is_rejected(catalog):
    with pytest.raises(ValidationFailure):
        share_list(catalog.shopping_list.id, user_id=catalog.owner.id)


def test_revoke_share_removes_access(catalog):
    list_id = catalog.shopping_list.id

    revoke_share(list_id, catalog.viewer.id)

    with pytest.raises(Forbidden):
        require_list_access(list_id, catalog.viewer.id)
    assert lists_for_user(catalog.viewer.id) == []
    assert require_list_access(list_id, catalog.editor.id, edit=True).can_edit

    with pytest.raises(NotFound):
        revoke_share(list_id, catalog.viewer.id)
    with pytest.raises(NotFound):
        revoke_share(list_id + 100, catalog.editor.id)


def test_lists_for_user_includes_shared_lists(catalog):
    assert [entry.id for entry in lists_for_user(catalog.viewer.id)] == [catalog.shopping_list.id]
    assert lists_for_user(catalog.outsider.id) == []


def test_delete_list_cascades_items(catalog):
    _add(catalog, catalog.flour_article)

    delete_list(catalog.shopping_list.id)

    assert list_items(catalog.shopping_list.id) == []
    assert lists_for_user(catalog.owner.id) == []


def test_insert_items_counts_rows_added_concurrently(catalog):
    list_id = catalog.shopping_list.id
    # Simulates another writer adding flour between the pre-check and the insert.
    _add(catalog, catalog.flour_article)
    drafts = [
        {"article_id": catalog.flour_article.id, "quantity": 500, "unit": "g"},
        {"article_id": catalog.eggs_article.id, "quantity": 4, "unit": "un", "price": 0.25},
    ]

    created, duplicates = insert_items(list_id, drafts, added_by_id=catalog.owner.id)

    assert [item.article.id for item in created] == [catalog.eggs_article.id]
    assert duplicates == 1
    assert existing_article_ids(list_id, [catalog.flour_article.id, catalog.eggs_article.id]) == {
        catalog.flour_article.id,
        catalog.eggs_article.id,
    }
    flour_items = [item for item in list_items(list_id) if item.article.id == catalog.flour_article.id]
    assert flour_items[0].quantity == pytest.approx(1)


def _from_store(catalog, article, store, **kwargs):
    return create_item_from_store(
        catalog.shopping_list.id,
        article_id=article.id,
        store_id=store.id,
        quantity=kwargs.pop("quantity", 2),
        unit="un",
        added_by_id=catalog.owner.id,
        **kwargs,
    )


def test_item_from_store_uses_store_price(catalog):
    assign_article_store(catalog.flour_article.id, catalog.store.id, price=1.1)
    assign_article_store(catalog.milk_article.id, catalog.store.id)

    flour = _from_store(catalog, catalog.flour_article, catalog.store, notes="bottom shelf")
    milk = _from_store(catalog, catalog.milk_article, catalog.store)

    assert flour.store.id == catalog.store.id
    assert flour.price == pytest.approx(1.1)
    assert flour.notes == "bottom shelf"
    assert milk.price is None


def test_item_from_store_falls_back_to_suggested_price(catalog):
    assign_article_store(catalog.eggs_article.id, catalog.store.id)

    item = _from_store(catalog, catalog.eggs_article, catalog.store, quantity=6)

    assert item.price == pytest.approx(0.25)
    assert item.quantity == pytest.approx(6)


def test_item_from_store_requires_availability(catalog):
    with pytest.raises(ValidationFailure, match="not available at this store"):
        _from_store(catalog, catalog.flour_article, catalog.store)

    assign_article_store(catalog.flour_article.id, catalog.store.id, available=False)
    with pytest.raises(ValidationFailure, match="currently unavailable"):
        _from_store(catalog, catalog.flour_article, catalog.store)

    assert list_items(catalog.shopping_list.id) == []


def test_item_from_store_checks_visibility_and_duplicates(catalog):
    hidden = create_store(name="Oscar's deli", created_by_id=catalog.outsider.id)
    assign_article_store(catalog.flour_article.id, hidden.id)
    assign_article_store(catalog.flour_article.id, catalog.store.id)
    assign_article_store(catalog.private_article.id, catalog.store.id)

    with pytest.raises(NotFound):
        _from_store(catalog, catalog.flour_article, hidden)
    with pytest.raises(NotFound):
        _from_store(catalog, catalog.private_article, catalog.store)

    _from_store(catalog, catalog.flour_article, catalog.store)
    with pytest.raises(DuplicateItem):
        _from_store(catalog, catalog.flour_article, catalog.store)
