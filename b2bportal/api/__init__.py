"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from b2bportal.api.catalog import router as catalog_router
from b2bportal.api.health import router as health_router
from b2bportal.api.orders import router as orders_router
from b2bportal.api.quotes import router as quotes_router

__all__ = [
    "catalog_router",
    "health_router",
    "orders_router",
    "quotes_router",
]
