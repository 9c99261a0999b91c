"""Catalog service for corporate product lookup.

Joins active catalog entries with active, in-stock products and applies
filters and sorting in memory. The corporate catalog is small and
curated, so the full join is cheap.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from b2bportal.catalog.repository import CatalogRepository, to_catalog_product
from b2bportal.domain.entities import CatalogProduct
from b2bportal.domain.exceptions import (
    CatalogProductNotFoundError,
    NotInCatalogError,
    ProductUnavailableError,
)

T = TypeVar("T")


class CatalogSort(str, Enum):
    """Supported catalog orderings."""

    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    POPULAR = "popular"
    NEWEST = "newest"


@dataclass
class ProductFilter:
    """Filter parameters for catalog browsing.

    Attributes:
        search: Case-insensitive text search in title/description.
        category: Exact category match.
        min_price: Minimum effective price in minor units.
        max_price: Maximum effective price in minor units.
        tag: Catalog tag.
    """

    search: str | None = None
    category: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    tag: str | None = None

    def matches(self, product: CatalogProduct) -> bool:
        """Check a catalog product against every set filter."""
        if self.search:
            needle = self.search.lower()
            haystacks = [product.title or "", product.description or ""]
            if not any(needle in h.lower() for h in haystacks):
                return False
        if self.category and product.category != self.category:
            return False
        price = product.effective_price_cents
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        return True


@dataclass
class PaginationParams:
    """Pagination parameters.

    Attributes:
        page: Page number (1-indexed).
        page_size: Items per page.
    """

    page: int = 1
    page_size: int = 24

    @property
    def offset(self) -> int:
        """Calculate offset from page number."""
        return (self.page - 1) * self.page_size


@dataclass
class PaginatedResult(Generic[T]):
    """Paginated result container.

    Attributes:
        items: List of items.
        total: Total count.
        page: Current page.
        page_size: Items per page.
        tags: All tags across the active catalog, for filter sidebars.
    """

    items: list[T]
    total: int
    page: int
    page_size: int
    tags: list[str] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return (self.total + self.page_size - 1) // self.page_size


def sort_products(products: list[CatalogProduct], sort: CatalogSort) -> list[CatalogProduct]:
    """Order catalog products.

    Args:
        products: Products to order.
        sort: Requested ordering.

    Returns:
        New sorted list.
    """
    if sort == CatalogSort.PRICE_ASC:
        return sorted(products, key=lambda p: p.effective_price_cents)
    if sort == CatalogSort.PRICE_DESC:
        return sorted(products, key=lambda p: p.effective_price_cents, reverse=True)
    if sort == CatalogSort.POPULAR:
        return sorted(products, key=lambda p: p.order_count, reverse=True)
    return sorted(products, key=lambda p: p.created_at, reverse=True)


class CatalogService:
    """Read-only catalog lookup.

    Example usage:
        async with session_factory() as session:
            service = CatalogService(session)
            page = await service.browse(ProductFilter(search="mug"))
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service.

        Args:
            session: Async SQLAlchemy session.
        """
        self.repo = CatalogRepository(session)

    async def browse(
        self,
        filters: ProductFilter | None = None,
        sort: CatalogSort = CatalogSort.NEWEST,
        pagination: PaginationParams | None = None,
    ) -> PaginatedResult[CatalogProduct]:
        """Browse active, in-stock catalog products.

        Args:
            filters: Filters to apply.
            sort: Ordering.
            pagination: Page to return.

        Returns:
            Page of catalog products plus all known tags.
        """
        filters = filters or ProductFilter()
        pagination = pagination or PaginationParams()

        entries = await self.repo.list_active_entries()
        all_tags = sorted({tag for e in entries for tag in (e.tags or [])})

        products = [
            to_catalog_product(e, e.product)
            for e in entries
            if e.product is not None and e.product.is_active and e.product.stock > 0
            and (not filters.tag or filters.tag in (e.tags or []))
        ]
        products = [p for p in products if filters.matches(p)]
        products = sort_products(products, sort)

        start = pagination.offset
        return PaginatedResult(
            items=products[start : start + pagination.page_size],
            total=len(products),
            page=pagination.page,
            page_size=pagination.page_size,
            tags=all_tags,
        )

    async def get_product(self, product_id: str) -> CatalogProduct:
        """Get a single catalog product for display.

        Args:
            product_id: Product ID.

        Returns:
            CatalogProduct.

        Raises:
            CatalogProductNotFoundError: If no active entry or active product exists.
        """
        entry = await self.repo.get_active_entry(product_id)
        if entry is None or entry.product is None or not entry.product.is_active:
            raise CatalogProductNotFoundError(product_id)
        return to_catalog_product(entry, entry.product)

    async def resolve_for_order(self, product_id: str) -> CatalogProduct:
        """Resolve a product for ordering.

        Args:
            product_id: Product ID.

        Returns:
            CatalogProduct with corporate pricing and quantity bounds.

        Raises:
            NotInCatalogError: If there is no active catalog entry.
            ProductUnavailableError: If the product is missing or inactive.
        """
        entry = await self.repo.get_active_entry(product_id)
        if entry is None:
            raise NotInCatalogError(product_id)
        if entry.product is None or not entry.product.is_active:
            raise ProductUnavailableError(product_id)
        return to_catalog_product(entry, entry.product)
