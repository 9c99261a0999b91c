"""Corporate catalog.

Provides catalog models, conditional stock mutation and the read-only
catalog lookup used by browsing and order assembly.
"""

from b2bportal.catalog.models import CatalogEntry, Product
from b2bportal.catalog.repository import (
    CatalogRepository,
    ProductRepository,
    StockOutcome,
    to_catalog_product,
)
from b2bportal.catalog.service import (
    CatalogService,
    CatalogSort,
    PaginatedResult,
    PaginationParams,
    ProductFilter,
)

__all__ = [
    # Models
    "CatalogEntry",
    "Product",
    # Repository
    "CatalogRepository",
    "ProductRepository",
    "StockOutcome",
    "to_catalog_product",
    # Service
    "CatalogService",
    "CatalogSort",
    "PaginatedResult",
    "PaginationParams",
    "ProductFilter",
]
