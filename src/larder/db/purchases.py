"""Purchase recording and ledger reconciliation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select

from larder import metrics
from larder.errors import NotFound, ValidationFailure
from larder.ledger import line_subtotal, snapshot_line, total_paid
from larder.models.purchase import Purchase, PurchaseItem, PurchaseItemEdit

from .catalog import to_article_ref
from .models import ItemORM, PurchaseItemORM, PurchaseORM, ShoppingListORM
from .repository import session_scope

logger = logging.getLogger(__name__)

_UNSET = object()


def _to_item_model(row: PurchaseItemORM) -> PurchaseItem:
    return PurchaseItem.model_validate(
        {
            "id": row.id,
            "item_id": row.item_id,
            "article": to_article_ref(row.article),
            "quantity": row.quantity,
            "purchased_quantity": row.purchased_quantity,
            "unit": row.unit,
            "price": row.price,
            "subtotal": row.subtotal,
            "store": (
                {"id": row.store.id, "name": row.store.name, "type": row.store.type}
                if row.store is not None
                else None
            ),
            "notes": row.notes,
        }
    )


def _to_model(row: PurchaseORM) -> Purchase:
    return Purchase.model_validate(
        {
            "id": row.id,
            "shopping_list_id": row.shopping_list_id,
            "shopping_list_name": row.shopping_list.name,
            "purchased_at": row.purchased_at,
            "notes": row.notes,
            "total_paid": row.total_paid,
            "items": [_to_item_model(item) for item in row.items],
        }
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def record_purchase(
    list_id: int,
    *,
    purchased_at: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Purchase:
    """Snapshot the list's checked items into a new purchase.

    The purchase and all of its lines are written in one transaction. Lines
    are copies: later ledger edits never touch the originating items.
    """

    with session_scope() as session:
        if session.get(ShoppingListORM, list_id) is None:
            raise NotFound(f"Shopping list {list_id} not found")

        checked = (
            session.execute(
                select(ItemORM)
                .where(ItemORM.shopping_list_id == list_id, ItemORM.checked.is_(True))
                .order_by(ItemORM.created_at.asc(), ItemORM.id.asc())
            )
            .scalars()
            .all()
        )
        if not checked:
            raise ValidationFailure("No checked items to record as a purchase")

        lines: List[PurchaseItemORM] = []
        for item in checked:
            purchased_quantity, price, subtotal = snapshot_line(
                item.quantity, item.purchased_quantity, item.price
            )
            lines.append(
                PurchaseItemORM(
                    item_id=item.id,
                    article_id=item.article_id,
                    quantity=item.quantity,
                    purchased_quantity=purchased_quantity,
                    unit=item.unit,
                    price=price,
                    subtotal=subtotal,
                    store_id=item.store_id,
                    notes=item.notes,
                )
            )

        purchase = PurchaseORM(
            shopping_list_id=list_id,
            purchased_at=_naive_utc(purchased_at) if purchased_at else _utcnow(),
            notes=notes or None,
            total_paid=total_paid(lines),
            items=lines,
        )
        session.add(purchase)
        session.flush()
        session.refresh(purchase)

        metrics.PURCHASES_RECORDED.inc()
        logger.info(
            "Recorded purchase %s for list %s lines=%s total_paid=%s",
            purchase.id,
            list_id,
            len(lines),
            purchase.total_paid,
            extra={"list_id": list_id, "purchase_id": purchase.id},
        )
        return _to_model(purchase)


def reconcile_purchase(
    purchase_id: int,
    *,
    purchased_at: datetime | object = _UNSET,
    notes: str | None | object = _UNSET,
    edits: Sequence[PurchaseItemEdit] = (),
) -> Purchase:
    """Apply post-checkout corrections and recompute subtotals and the total.

    Edits that reference lines of another purchase are ignored. Only fields
    present on an edit are applied; the total is rebuilt from every stored
    line once all edits are flushed.
    """

    with session_scope() as session:
        purchase = session.get(PurchaseORM, purchase_id)
        if purchase is None:
            raise NotFound(f"Purchase {purchase_id} not found")

        if purchased_at is not _UNSET:
            purchase.purchased_at = _naive_utc(purchased_at)  # type: ignore[arg-type]
        if notes is not _UNSET:
            purchase.notes = notes  # type: ignore[assignment]

        applied = 0
        for edit in edits:
            line = session.get(PurchaseItemORM, edit.id)
            if line is None or line.purchase_id != purchase_id:
                logger.info(
                    "Ignoring edit for purchase item %s outside purchase %s",
                    edit.id,
                    purchase_id,
                )
                continue

            fields = edit.model_fields_set
            repriced = False
            if "purchased_quantity" in fields and edit.purchased_quantity is not None:
                line.purchased_quantity = float(edit.purchased_quantity)
                repriced = True
            if "price" in fields and edit.price is not None:
                line.price = float(edit.price)
                repriced = True
            if "notes" in fields:
                line.notes = edit.notes
            if repriced:
                line.subtotal = line_subtotal(line.purchased_quantity, line.price)
            applied += 1

        session.flush()
        lines = (
            session.execute(select(PurchaseItemORM).where(PurchaseItemORM.purchase_id == purchase_id))
            .scalars()
            .all()
        )
        purchase.total_paid = total_paid(lines)
        session.flush()
        session.refresh(purchase)

        metrics.PURCHASE_RECONCILIATIONS.inc()
        logger.info(
            "Reconciled purchase %s edits_applied=%s total_paid=%s",
            purchase_id,
            applied,
            purchase.total_paid,
            extra={"purchase_id": purchase_id},
        )
        return _to_model(purchase)


def get_purchase(purchase_id: int) -> Optional[Purchase]:
    with session_scope() as session:
        row = session.get(PurchaseORM, purchase_id)
        if row is None:
            return None
        return _to_model(row)


def purchase_list_id(purchase_id: int) -> Optional[int]:
    """Return the id of the list a purchase belongs to."""

    with session_scope() as session:
        return session.execute(
            select(PurchaseORM.shopping_list_id).where(PurchaseORM.id == purchase_id)
        ).scalar_one_or_none()


def list_purchases(list_id: int) -> List[Purchase]:
    """Return a list's purchases, most recent first."""

    with session_scope() as session:
        rows = (
            session.execute(
                select(PurchaseORM)
                .where(PurchaseORM.shopping_list_id == list_id)
                .order_by(PurchaseORM.purchased_at.desc(), PurchaseORM.id.desc())
            )
            .scalars()
            .all()
        )
        return [_to_model(row) for row in rows]


__all__ = [
    "record_purchase",
    "reconcile_purchase",
    "get_purchase",
    "purchase_list_id",
    "list_purchases",
]
