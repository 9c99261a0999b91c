"""SQLAlchemy models for the product catalog.

Defines Product and CatalogEntry tables. A catalog entry links a product
to its corporate price and order-quantity bounds.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from b2bportal.infrastructure.database import Base


class Product(Base):
    """Product sold by a seller.

    Attributes:
        id: Unique product identifier (UUID).
        seller_id: Seller that fulfils this product.
        seller_name: Seller display name.
        sku: Stock Keeping Unit.
        title: Product title.
        description: Product description.
        category: Category slug.
        price_cents: Base price in minor units.
        image_url: Primary product image URL.
        stock: Units in stock, never negative.
        order_count: Units sold.
        is_active: Whether the product can be ordered.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    seller_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    seller_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    image_url: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    catalog_entries: Mapped[list["CatalogEntry"]] = relationship(
        "CatalogEntry",
        back_populates="product",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku}, stock={self.stock})>"


class CatalogEntry(Base):
    """Corporate catalog entry for a product.

    Never mutated by the order workflow.
    """

    __tablename__ = "catalog_entries"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    corporate_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_order_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_order_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    product: Mapped["Product"] = relationship("Product", back_populates="catalog_entries")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CatalogEntry(product_id={self.product_id}, "
            f"qty=[{self.min_order_qty}, {self.max_order_qty}])>"
        )
