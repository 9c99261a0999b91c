"""Fixtures for application service tests."""

import pytest
import pytest_asyncio

from b2bportal.application.order_service import CheckoutResult, OrderLineRequest, OrderService
from b2bportal.application.payment_service import PaymentService
from b2bportal.catalog.repository import ProductRepository
from b2bportal.infrastructure.repositories import OrderRepository


@pytest.fixture
def order_service(session_factory, gateway) -> OrderService:
    """Order service wired to the stub gateway."""
    return OrderService(session_factory, gateway)


@pytest.fixture
def payment_service(session_factory, gateway) -> PaymentService:
    """Payment service wired to the stub gateway."""
    return PaymentService(session_factory, gateway)


@pytest_asyncio.fixture
async def checkout(order_service, seed, shipping_address) -> CheckoutResult:
    """Two-seller checkout: 5 x P at 100.00 and 3 x Q at 50.00."""
    return await order_service.place_order(
        seed.buyer,
        [
            OrderLineRequest(product_id=seed.product_p, quantity=5),
            OrderLineRequest(product_id=seed.product_q, quantity=3),
        ],
        shipping_address,
    )


@pytest.fixture
def stock_of(session_factory):
    """Read a product's (stock, order_count)."""

    async def _read(product_id: str) -> tuple[int, int]:
        async with session_factory() as session:
            product = await ProductRepository(session).get_by_id(product_id)
        return product.stock, product.order_count

    return _read


@pytest.fixture
def load_order(session_factory):
    """Load an order by ID."""

    async def _load(order_id: str):
        async with session_factory() as session:
            return await OrderRepository(session).get(order_id)

    return _load
