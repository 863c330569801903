"""Purchase ledger models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from larder.models.catalog import StoreSummary
from larder.models.shopping import ArticleRef


class PurchaseItem(BaseModel):
    """Frozen purchase line."""

    id: int
    item_id: Optional[int] = Field(default=None)
    article: ArticleRef
    quantity: float
    purchased_quantity: float
    unit: str
    price: float
    subtotal: float
    store: Optional[StoreSummary] = Field(default=None)
    notes: Optional[str] = Field(default=None)

    model_config = ConfigDict(frozen=True)


class Purchase(BaseModel):
    id: int
    shopping_list_id: int
    shopping_list_name: str
    purchased_at: datetime
    notes: Optional[str] = Field(default=None)
    total_paid: Optional[float] = Field(default=None)
    items: list[PurchaseItem] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class PurchaseItemEdit(BaseModel):
    """Post-checkout correction for one purchase line."""

    id: int
    purchased_quantity: Optional[float] = Field(default=None, gt=0, alias="purchasedQuantity")
    price: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(frozen=True, populate_by_name=True)


__all__ = ["Purchase", "PurchaseItem", "PurchaseItemEdit"]
