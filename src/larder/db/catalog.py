"""Catalog persistence helpers: users, products, stores and articles."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from larder.access import accessible
from larder.errors import Forbidden, NotFound, ValidationFailure
from larder.models.catalog import Article, ArticleStoreEntry, Product, Store, User
from larder.models.shopping import ArticleRef

from .models import ArticleORM, ArticleStoreORM, ProductORM, StoreORM, UserORM
from .repository import session_scope

logger = logging.getLogger(__name__)


def _to_user(row: UserORM) -> User:
    return User.model_validate({"id": row.id, "name": row.name, "email": row.email})


def _to_product(row: ProductORM) -> Product:
    return Product.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "description": row.description,
            "is_general": row.is_general,
            "created_by_id": row.created_by_id,
        }
    )


def _to_store(row: StoreORM) -> Store:
    return Store.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "type": row.type,
            "is_general": row.is_general,
            "created_by_id": row.created_by_id,
        }
    )


def to_article(row: ArticleORM) -> Article:
    return Article.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "brand": row.brand,
            "variant": row.variant,
            "suggested_price": row.suggested_price,
            "is_general": row.is_general,
            "created_by_id": row.created_by_id,
            "product": {"id": row.product.id, "name": row.product.name},
        }
    )


def to_article_ref(row: ArticleORM) -> ArticleRef:
    return ArticleRef.model_validate(
        {
            "id": row.id,
            "name": row.name,
            "brand": row.brand,
            "product": {"id": row.product.id, "name": row.product.name},
        }
    )


def create_user(*, name: str, email: str) -> User:
    with session_scope() as session:
        row = UserORM(name=name.strip(), email=email.strip().lower())
        session.add(row)
        session.flush()
        return _to_user(row)


def get_user(user_id: int) -> Optional[User]:
    with session_scope() as session:
        row = session.get(UserORM, user_id)
        if row is None:
            return None
        return _to_user(row)


def get_user_by_email(email: str) -> Optional[User]:
    with session_scope() as session:
        row = session.execute(
            select(UserORM).where(UserORM.email == email.strip().lower())
        ).scalar_one_or_none()
        if row is None:
            return None
        return _to_user(row)


def create_product(
    *,
    name: str,
    description: Optional[str] = None,
    is_general: bool = False,
    created_by_id: Optional[int] = None,
) -> Product:
    with session_scope() as session:
        row = ProductORM(
            name=name.strip(),
            description=description,
            is_general=is_general,
            created_by_id=created_by_id,
        )
        session.add(row)
        session.flush()
        return _to_product(row)


def create_store(
    *,
    name: str,
    type: Optional[str] = None,
    is_general: bool = False,
    created_by_id: Optional[int] = None,
) -> Store:
    with session_scope() as session:
        row = StoreORM(
            name=name.strip(),
            type=type,
            is_general=is_general,
            created_by_id=created_by_id,
        )
        session.add(row)
        session.flush()
        return _to_store(row)


def create_article(
    *,
    product_id: int,
    name: str,
    brand: Optional[str] = None,
    variant: Optional[str] = None,
    suggested_price: Optional[float] = None,
    is_general: bool = False,
    created_by_id: Optional[int] = None,
) -> Article:
    with session_scope() as session:
        if session.get(ProductORM, product_id) is None:
            raise NotFound(f"Product {product_id} not found")
        row = ArticleORM(
            product_id=product_id,
            name=name.strip(),
            brand=brand,
            variant=variant,
            suggested_price=float(suggested_price) if suggested_price is not None else None,
            is_general=is_general,
            created_by_id=created_by_id,
        )
        session.add(row)
        session.flush()
        session.refresh(row)
        return to_article(row)


def get_article(article_id: int) -> Optional[Article]:
    with session_scope() as session:
        row = session.get(ArticleORM, article_id)
        if row is None:
            return None
        return to_article(row)


def fetch_articles(article_ids: Iterable[int]) -> dict[int, Article]:
    """Return the requested articles keyed by id; unknown ids are absent."""

    ids = set(article_ids)
    if not ids:
        return {}
    with session_scope() as session:
        rows = session.execute(select(ArticleORM).where(ArticleORM.id.in_(ids))).scalars().all()
        return {row.id: to_article(row) for row in rows}


def list_articles_for_product(product_id: int, user_id: int) -> List[Article]:
    """Articles of a product the user may pick, general ones first."""

    with session_scope() as session:
        rows = (
            session.execute(
                select(ArticleORM)
                .where(ArticleORM.product_id == product_id)
                .order_by(ArticleORM.is_general.desc(), ArticleORM.name.asc())
            )
            .scalars()
            .all()
        )
        return [to_article(row) for row in rows if accessible(row, user_id)]


def require_accessible_store(session: Session, store_id: int, user_id: int) -> StoreORM:
    """Return the store row or raise when it is missing or private to someone else."""

    store = session.get(StoreORM, store_id)
    if store is None or not accessible(store, user_id):
        raise NotFound("Store not found or not accessible")
    return store


def _to_article_store(row: ArticleStoreORM) -> ArticleStoreEntry:
    return ArticleStoreEntry.model_validate(
        {
            "store": {"id": row.store.id, "name": row.store.name, "type": row.store.type},
            "price": row.price,
            "available": row.available,
            "last_checked_at": row.last_checked_at,
        }
    )


def list_article_stores(article_id: int, user_id: int) -> List[ArticleStoreEntry]:
    """Stores carrying an article, limited to stores the user can see."""

    with session_scope() as session:
        article = session.get(ArticleORM, article_id)
        if article is None or not accessible(article, user_id):
            raise NotFound("Article not found or not accessible")
        rows = (
            session.execute(
                select(ArticleStoreORM)
                .join(StoreORM, StoreORM.id == ArticleStoreORM.store_id)
                .where(ArticleStoreORM.article_id == article_id)
                .order_by(StoreORM.name.asc())
            )
            .scalars()
            .all()
        )
        return [_to_article_store(row) for row in rows if accessible(row.store, user_id)]


def assign_article_store(
    article_id: int,
    store_id: int,
    *,
    price: Optional[float] = None,
    available: bool = True,
    user_id: Optional[int] = None,
) -> ArticleStoreEntry:
    """Create or refresh the availability of an article at a store.

    With ``user_id`` set, only the article's creator may change its stores;
    without it (seeding, maintenance) no ownership check applies.
    """

    if price is not None and price < 0:
        raise ValidationFailure("Price must not be negative", field="price")
    with session_scope() as session:
        article = session.get(ArticleORM, article_id)
        if article is None or (user_id is not None and not accessible(article, user_id)):
            raise NotFound("Article not found or not accessible")
        if user_id is not None:
            if article.created_by_id != user_id:
                raise Forbidden("Only the article creator can assign stores")
            require_accessible_store(session, store_id, user_id)
        elif session.get(StoreORM, store_id) is None:
            raise NotFound(f"Store {store_id} not found")

        row = session.execute(
            select(ArticleStoreORM).where(
                ArticleStoreORM.article_id == article_id,
                ArticleStoreORM.store_id == store_id,
            )
        ).scalar_one_or_none()
        if row is None:
            row = ArticleStoreORM(article_id=article_id, store_id=store_id)
            session.add(row)
        row.price = float(price) if price is not None else None
        row.available = bool(available)
        row.last_checked_at = datetime.now(timezone.utc).replace(tzinfo=None)
        session.flush()
        session.refresh(row)
        logger.info(
            "Article %s at store %s available=%s price=%s", article_id, store_id, available, price
        )
        return _to_article_store(row)


def require_store_offer(session: Session, article_id: int, store_id: int) -> ArticleStoreORM:
    """Return the article's availability row at a store or raise ValidationFailure."""

    offer = session.execute(
        select(ArticleStoreORM).where(
            ArticleStoreORM.article_id == article_id,
            ArticleStoreORM.store_id == store_id,
        )
    ).scalar_one_or_none()
    if offer is None:
        raise ValidationFailure("Article is not available at this store", field="store_id")
    if not offer.available:
        raise ValidationFailure(
            "Article is currently unavailable at this store", field="store_id"
        )
    return offer


__all__ = [
    "create_user",
    "get_user",
    "get_user_by_email",
    "create_product",
    "create_store",
    "create_article",
    "get_article",
    "fetch_articles",
    "list_articles_for_product",
    "require_accessible_store",
    "list_article_stores",
    "assign_article_store",
    "require_store_offer",
    "to_article",
    "to_article_ref",
]
