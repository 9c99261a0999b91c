"""Corporate catalog API endpoints.

- GET /corporate/catalog - browse with filters, sorting and pagination
- GET /corporate/catalog/{product_id} - product detail
"""

from fastapi import APIRouter, Query

from b2bportal.api.dependencies import CurrentBuyer, SessionFactoryDep
from b2bportal.api.schemas import (
    CatalogListResponse,
    CatalogProductSchema,
    ErrorResponse,
    PriceSchema,
)
from b2bportal.catalog.service import (
    CatalogService,
    CatalogSort,
    PaginationParams,
    ProductFilter,
)
from b2bportal.domain.entities import CatalogProduct
from b2bportal.infrastructure.config import settings

router = APIRouter(prefix="/corporate/catalog", tags=["Catalog"])


def product_to_schema(product: CatalogProduct) -> CatalogProductSchema:
    """Convert a CatalogProduct to its API schema."""
    currency = settings.currency
    return CatalogProductSchema(
        product_id=product.product_id,
        catalog_entry_id=product.catalog_entry_id,
        title=product.title,
        description=product.description,
        category=product.category,
        seller_id=product.seller_id,
        seller_name=product.seller_name,
        sku=product.sku,
        image_url=product.image_url,
        price=PriceSchema(amount=product.effective_price_cents, currency=currency),
        base_price=PriceSchema(amount=product.base_price_cents, currency=currency),
        min_order_qty=product.min_order_qty,
        max_order_qty=product.max_order_qty,
        tags=product.tags,
        stock=product.stock,
    )


@router.get(
    "",
    response_model=CatalogListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Browse corporate catalog",
)
async def list_catalog(
    buyer: CurrentBuyer,
    session_factory: SessionFactoryDep,
    search: str | None = Query(default=None, max_length=200, description="Text search"),
    category: str | None = Query(default=None, description="Category filter"),
    min_price: int | None = Query(default=None, ge=0, description="Minimum price (paise)"),
    max_price: int | None = Query(default=None, ge=0, description="Maximum price (paise)"),
    tag: str | None = Query(default=None, description="Catalog tag"),
    sort: CatalogSort = Query(default=CatalogSort.NEWEST, description="Sort order"),
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=24, ge=1, le=100, description="Items per page"),
) -> CatalogListResponse:
    """Browse active, in-stock catalog products."""
    async with session_factory() as session:
        result = await CatalogService(session).browse(
            ProductFilter(
                search=search,
                category=category,
                min_price=min_price,
                max_price=max_price,
                tag=tag,
            ),
            sort=sort,
            pagination=PaginationParams(page=page, page_size=page_size),
        )

    return CatalogListResponse(
        items=[product_to_schema(p) for p in result.items],
        tags=result.tags,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_more=(result.page * result.page_size) < result.total,
    )


@router.get(
    "/{product_id}",
    response_model=CatalogProductSchema,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get catalog product",
)
async def get_catalog_product(
    product_id: str,
    buyer: CurrentBuyer,
    session_factory: SessionFactoryDep,
) -> CatalogProductSchema:
    """Get one active catalog product."""
    async with session_factory() as session:
        product = await CatalogService(session).get_product(product_id)
    return product_to_schema(product)
