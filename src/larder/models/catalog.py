"""Catalog models: users, products, stores and articles."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserSummary(BaseModel):
    """Minimal user projection embedded in other payloads."""

    id: int
    name: str

    model_config = ConfigDict(frozen=True)


class User(UserSummary):
    email: str


class ProductSummary(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(frozen=True)


class Product(ProductSummary):
    """Abstract product that recipes ask for."""

    description: Optional[str] = Field(default=None)
    is_general: bool = Field(default=False)
    created_by_id: Optional[int] = Field(default=None)


class StoreSummary(BaseModel):
    id: int
    name: str
    type: Optional[str] = Field(default=None)

    model_config = ConfigDict(frozen=True)


class Store(StoreSummary):
    is_general: bool = Field(default=False)
    created_by_id: Optional[int] = Field(default=None)


class Article(BaseModel):
    """Concrete purchasable variant of a product."""

    id: int
    name: str
    brand: Optional[str] = Field(default=None)
    variant: Optional[str] = Field(default=None)
    suggested_price: Optional[float] = Field(default=None, ge=0)
    is_general: bool = Field(default=False)
    created_by_id: Optional[int] = Field(default=None)
    product: ProductSummary

    model_config = ConfigDict(frozen=True)

    @property
    def product_id(self) -> int:
        return self.product.id


class ArticleStoreEntry(BaseModel):
    """Where an article can be bought and at what price."""

    store: StoreSummary
    price: Optional[float] = Field(default=None, ge=0)
    available: bool = Field(default=True)
    last_checked_at: datetime

    model_config = ConfigDict(frozen=True)


__all__ = [
    "UserSummary",
    "User",
    "ProductSummary",
    "Product",
    "StoreSummary",
    "Store",
    "Article",
    "ArticleStoreEntry",
]
