"""Order application service.

Orchestrates corporate order assembly:
- Validating requested lines against the corporate catalog
- Splitting the cart into one order per fulfilling seller
- Opening one payment session for the combined total

Also serves the buyer's order history.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from b2bportal.catalog.service import CatalogService
from b2bportal.domain.entities import Buyer, Order, OrderItem, group_items_by_seller
from b2bportal.domain.exceptions import (
    OrderNotFoundError,
    PaymentGatewayUnavailableError,
    ShippingAddressRequiredError,
    ValidationError,
)
from b2bportal.domain.state_machines import OrderStatus, OrderType
from b2bportal.domain.value_objects import ShippingAddress
from b2bportal.infrastructure.config import Settings, settings
from b2bportal.infrastructure.identifiers import IdentifierGenerator, OrderNumberGenerator
from b2bportal.infrastructure.payment_gateway import (
    GatewayCustomer,
    PaymentGateway,
    PaymentGatewayError,
    normalize_phone,
)
from b2bportal.infrastructure.repositories import OrderRepository

logger = structlog.get_logger()


# ============================================================================
# Data Transfer Objects
# ============================================================================


@dataclass
class OrderLineRequest:
    """One requested catalog line."""

    product_id: str
    quantity: int


@dataclass
class CheckoutResult:
    """Orders created by one checkout and the payment session covering them."""

    orders: list[Order]
    gateway_order_id: str
    payment_session_id: str
    amount_cents: int
    app_id: str
    env: str


@dataclass
class OrderPage:
    """Page of a buyer's orders."""

    orders: list[Order] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


# ============================================================================
# Payment Session Helper
# ============================================================================


async def open_payment_session(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: PaymentGateway,
    buyer: Buyer,
    orders: list[Order],
    gateway_order_id: str,
    amount_cents: int,
    config: Settings,
) -> str:
    """Request one payment session and record it on every order.

    The orders are already committed; if the gateway fails they stay
    pending and unpaid.

    Args:
        session_factory: Database session factory.
        gateway: Payment gateway.
        buyer: Paying buyer.
        orders: Persisted orders covered by the session.
        gateway_order_id: Identifier shared by the orders.
        amount_cents: Amount the session is opened for.
        config: Application settings.

    Returns:
        Payment session ID.

    Raises:
        PaymentGatewayUnavailableError: If the gateway rejects the request.
    """
    address = orders[0].shipping_address
    customer = GatewayCustomer(
        customer_id=buyer.id,
        email=buyer.email,
        phone=normalize_phone(buyer.phone or address.phone),
        name=buyer.company_name,
    )
    return_url = f"{config.return_base_url}/corporate/orders?cf_id={gateway_order_id}"

    try:
        session = await gateway.create_session(gateway_order_id, amount_cents, customer, return_url)
    except PaymentGatewayError as e:
        logger.error(
            "Payment session creation failed",
            gateway_order_id=gateway_order_id,
            order_ids=[o.id for o in orders],
            error=e.message,
        )
        raise PaymentGatewayUnavailableError("create_session", e.message) from e

    async with session_factory.begin() as db:
        await OrderRepository(db).attach_payment_session(
            [o.id for o in orders], gateway_order_id, session.payment_session_id
        )
    for order in orders:
        order.gateway_order_id = gateway_order_id
        order.payment_session_id = session.payment_session_id
    return session.payment_session_id


# ============================================================================
# Order Service
# ============================================================================


class OrderService:
    """Application service for assembling and reading corporate orders.

    Example usage:
        service = OrderService(get_session_factory(), CashfreeGateway())
        result = await service.place_order(
            buyer,
            [OrderLineRequest(product_id="p-1", quantity=5)],
            shipping_address,
        )
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGateway,
        identifiers: IdentifierGenerator | None = None,
        config: Settings | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session_factory: Database session factory.
            gateway: Payment gateway.
            identifiers: Order number source.
            config: Application settings.
        """
        self.session_factory = session_factory
        self.gateway = gateway
        self.config = config or settings
        self.identifiers = identifiers or OrderNumberGenerator(self.config.order_number_prefix)

    async def place_order(
        self,
        buyer: Buyer,
        lines: list[OrderLineRequest],
        shipping_address: ShippingAddress | None,
    ) -> CheckoutResult:
        """Create one order per seller and a payment session for the total.

        Every line is validated before anything is written.

        Args:
            buyer: Ordering buyer.
            lines: Requested catalog lines.
            shipping_address: Delivery address.

        Returns:
            CheckoutResult with the persisted orders.

        Raises:
            ValidationError: If the cart is empty or a line breaks a catalog rule.
            ShippingAddressRequiredError: If no address is given.
            PaymentGatewayUnavailableError: If the session cannot be opened.
        """
        if not lines:
            raise ValidationError("No items")
        if shipping_address is None:
            raise ShippingAddressRequiredError()

        items: list[OrderItem] = []
        async with self.session_factory() as session:
            catalog = CatalogService(session)
            for line in lines:
                product = await catalog.resolve_for_order(line.product_id)
                product.check_quantity(line.quantity)
                items.append(OrderItem.from_catalog_product(product, line.quantity))

        now = datetime.now(timezone.utc)
        gateway_order_id = self.identifiers.next_gateway_order_id()
        orders: list[Order] = []
        for seller_id, seller_items in group_items_by_seller(items).items():
            item_total = sum(i.line_total_cents for i in seller_items)
            orders.append(
                Order(
                    id=str(uuid4()),
                    order_number=self.identifiers.next_order_number(),
                    order_type=OrderType.DIRECT,
                    buyer_id=buyer.id,
                    customer_email=buyer.email,
                    customer_phone=buyer.phone or shipping_address.phone,
                    seller_id=seller_id or None,
                    shipping_address=shipping_address,
                    items=seller_items,
                    item_total_cents=item_total,
                    total_cents=item_total,
                    seller_amount_cents=item_total,
                    currency=self.config.currency,
                    gateway_order_id=gateway_order_id,
                    notes=f"Corporate order by {buyer.company_name} ({buyer.email})",
                    created_at=now,
                    updated_at=now,
                )
            )

        async with self.session_factory.begin() as session:
            repo = OrderRepository(session)
            for order in orders:
                await repo.add(order)

        for order in orders:
            logger.info(
                "Corporate order created",
                order_id=order.id,
                order_number=order.order_number,
                buyer_id=buyer.id,
                seller_id=order.seller_id,
                total_cents=order.total_cents,
                gateway_order_id=gateway_order_id,
            )

        amount = sum(o.total_cents for o in orders)
        session_id = await open_payment_session(
            self.session_factory,
            self.gateway,
            buyer,
            orders,
            gateway_order_id,
            amount,
            self.config,
        )

        return CheckoutResult(
            orders=orders,
            gateway_order_id=gateway_order_id,
            payment_session_id=session_id,
            amount_cents=amount,
            app_id=self.config.cashfree_app_id,
            env=self.config.cashfree_env,
        )

    async def list_orders(
        self,
        buyer: Buyer,
        page: int = 1,
        page_size: int = 20,
        status: OrderStatus | None = None,
    ) -> OrderPage:
        """List the buyer's orders, newest first."""
        async with self.session_factory() as session:
            orders, total = await OrderRepository(session).list_for_buyer(
                buyer.id, status=status, page=page, page_size=page_size
            )
        return OrderPage(orders=orders, total=total, page=page, page_size=page_size)

    async def get_order(self, buyer: Buyer, order_id: str) -> Order:
        """Get one of the buyer's orders.

        Raises:
            OrderNotFoundError: If the order does not exist or is not the buyer's.
        """
        async with self.session_factory() as session:
            order = await OrderRepository(session).get_for_buyer(order_id, buyer.id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order
