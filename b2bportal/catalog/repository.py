"""Product and catalog repositories.

Read access to active catalog entries joined with their products, and
the only write paths to product stock: conditional, quantity-bounded
updates executed as single SQL statements.
"""

from collections.abc import Sequence
from enum import Enum

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from b2bportal.catalog.models import CatalogEntry, Product
from b2bportal.domain.entities import CatalogProduct


class StockOutcome(str, Enum):
    """Result of a conditional stock decrement."""

    COMMITTED = "committed"
    INSUFFICIENT_STOCK = "insufficient_stock"
    PRODUCT_MISSING = "product_missing"


def to_catalog_product(entry: CatalogEntry, product: Product) -> CatalogProduct:
    """Join a catalog entry and its product into the domain read model.

    Args:
        entry: Catalog entry row.
        product: Product row.

    Returns:
        CatalogProduct instance.
    """
    return CatalogProduct(
        product_id=product.id,
        catalog_entry_id=entry.id,
        seller_id=product.seller_id,
        seller_name=product.seller_name,
        title=product.title,
        description=product.description,
        category=product.category,
        sku=product.sku,
        image_url=product.image_url,
        base_price_cents=product.price_cents,
        corporate_price_cents=entry.corporate_price_cents,
        min_order_qty=entry.min_order_qty,
        max_order_qty=entry.max_order_qty,
        tags=list(entry.tags or []),
        stock=product.stock,
        order_count=product.order_count,
        is_active=product.is_active,
        created_at=product.created_at,
    )


class CatalogRepository:
    """Repository for corporate catalog reads.

    Example usage:
        async with session_factory() as session:
            repo = CatalogRepository(session)
            entry = await repo.get_active_entry("product-id")
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def get_active_entry(self, product_id: str) -> CatalogEntry | None:
        """Get the active catalog entry for a product.

        Args:
            product_id: Product ID.

        Returns:
            CatalogEntry with its product loaded, or None.
        """
        query = (
            select(CatalogEntry)
            .where(
                and_(
                    CatalogEntry.product_id == product_id,
                    CatalogEntry.is_active.is_(True),
                )
            )
            .options(selectinload(CatalogEntry.product))
            .order_by(CatalogEntry.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_active_entries(self) -> Sequence[CatalogEntry]:
        """List active catalog entries with products loaded.

        Returns:
            Sequence of active entries.
        """
        query = (
            select(CatalogEntry)
            .where(CatalogEntry.is_active.is_(True))
            .options(selectinload(CatalogEntry.product))
        )
        result = await self.session.execute(query)
        return result.scalars().all()


class ProductRepository:
    """Repository for Product database operations.

    Stock is the contended resource: every mutation is one UPDATE whose
    WHERE clause carries the guard, so concurrent callers can never
    drive stock below zero.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def save(self, product: Product) -> Product:
        """Save a product to database.

        Args:
            product: Product to save.

        Returns:
            Saved product.
        """
        self.session.add(product)
        await self.session.flush()
        return product

    async def get_by_id(self, product_id: str) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.

        Returns:
            Product if found, None otherwise.
        """
        query = (
            select(Product)
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def decrement_if_available(self, product_id: str, quantity: int) -> StockOutcome:
        """Take units out of stock only if enough are on hand.

        Increments ``order_count`` in the same statement.

        Args:
            product_id: Product ID.
            quantity: Units to take.

        Returns:
            COMMITTED when the row was updated, otherwise why it was not.
        """
        statement = (
            update(Product)
            .where(and_(Product.id == product_id, Product.stock >= quantity))
            .values(
                stock=Product.stock - quantity,
                order_count=Product.order_count + quantity,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        if result.rowcount == 1:
            return StockOutcome.COMMITTED

        exists = await self.session.execute(select(Product.id).where(Product.id == product_id))
        if exists.scalar_one_or_none() is None:
            return StockOutcome.PRODUCT_MISSING
        return StockOutcome.INSUFFICIENT_STOCK

    async def restore(self, product_id: str, quantity: int) -> bool:
        """Put units back into stock and reduce ``order_count``.

        Args:
            product_id: Product ID.
            quantity: Units to return.

        Returns:
            True if the product row was updated.
        """
        statement = (
            update(Product)
            .where(Product.id == product_id)
            .values(
                stock=Product.stock + quantity,
                order_count=Product.order_count - quantity,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1
