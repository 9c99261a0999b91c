"""Payment reconciliation service.

Confirms gateway-reported payment success and applies the local order
and stock changes. Each order of a checkout is confirmed in its own
transaction: the paid transition is a compare-and-set, and stock is only
taken when this call won that transition, so repeating verification for
the same gateway order never touches stock twice.

An order the buyer cancelled before paying keeps its cancelled status;
the captured payment is recorded on it and refunded.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from b2bportal.application.cancellation_service import refund_order
from b2bportal.catalog.repository import ProductRepository, StockOutcome
from b2bportal.domain.entities import Buyer, Order
from b2bportal.domain.exceptions import (
    NoMatchingOrdersError,
    PaymentGatewayUnavailableError,
    PaymentNotCompleteError,
)
from b2bportal.domain.state_machines import OrderStatus, PaymentStatus
from b2bportal.infrastructure.payment_gateway import (
    PaymentGateway,
    PaymentGatewayError,
    find_successful_payment,
)
from b2bportal.infrastructure.repositories import OrderRepository

logger = structlog.get_logger()


@dataclass
class StockShortfall:
    """A line whose units could not be taken out of stock."""

    order_id: str
    product_id: str
    quantity: int
    reason: StockOutcome


@dataclass
class VerificationResult:
    """Outcome of a payment verification."""

    gateway_order_id: str
    orders: list[Order]
    confirmed_order_ids: list[str] = field(default_factory=list)
    shortfalls: list[StockShortfall] = field(default_factory=list)
    refund_order_ids: list[str] = field(default_factory=list)


class PaymentService:
    """Application service for payment reconciliation.

    Example usage:
        service = PaymentService(get_session_factory(), gateway)
        result = await service.verify_payment(buyer, "GFT-B2B-20261018-3F9A0C21BE")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGateway,
    ) -> None:
        self.session_factory = session_factory
        self.gateway = gateway

    async def verify_payment(self, buyer: Buyer, gateway_order_id: str) -> VerificationResult:
        """Verify a checkout's payment and confirm its orders.

        Args:
            buyer: Buyer the orders must belong to.
            gateway_order_id: Identifier shared by the checkout's orders.

        Returns:
            VerificationResult with the orders in their current state.

        Raises:
            PaymentGatewayUnavailableError: If the gateway cannot be queried.
            PaymentNotCompleteError: If the gateway does not report the order paid.
            NoMatchingOrdersError: If the buyer has no orders for the identifier.
        """
        try:
            gateway_order = await self.gateway.get_order(gateway_order_id)
        except PaymentGatewayError as e:
            raise PaymentGatewayUnavailableError("get_order", e.message) from e

        if not gateway_order.is_paid:
            logger.info(
                "Payment not complete",
                gateway_order_id=gateway_order_id,
                gateway_status=gateway_order.order_status,
            )
            raise PaymentNotCompleteError(gateway_order_id, gateway_order.order_status)

        try:
            payments = await self.gateway.list_payments(gateway_order_id)
        except PaymentGatewayError as e:
            raise PaymentGatewayUnavailableError("list_payments", e.message) from e
        payment = find_successful_payment(payments)
        payment_id = payment.payment_id if payment else None

        async with self.session_factory() as session:
            orders = await OrderRepository(session).list_by_gateway_order(
                gateway_order_id, buyer.id
            )
        if not orders:
            raise NoMatchingOrdersError(gateway_order_id)

        result = VerificationResult(gateway_order_id=gateway_order_id, orders=[])
        for order in orders:
            if order.payment_status != PaymentStatus.UNPAID:
                continue
            if order.status == OrderStatus.CANCELLED:
                if await self._refund_cancelled_order(order, payment_id):
                    result.refund_order_ids.append(order.id)
                continue
            if await self._confirm_order(order, payment_id, result):
                result.confirmed_order_ids.append(order.id)
                continue
            # Lost the race; a concurrent cancel still needs its payment refunded
            async with self.session_factory() as session:
                current = await OrderRepository(session).get(order.id)
            if (
                current is not None
                and current.status == OrderStatus.CANCELLED
                and current.payment_status == PaymentStatus.UNPAID
                and await self._refund_cancelled_order(current, payment_id)
            ):
                result.refund_order_ids.append(order.id)

        async with self.session_factory() as session:
            result.orders = await OrderRepository(session).list_by_gateway_order(
                gateway_order_id, buyer.id
            )
        return result

    async def _refund_cancelled_order(self, order: Order, payment_id: str | None) -> bool:
        """Record the payment of an order cancelled before it was paid, then refund it.

        Returns:
            False if another caller already recorded the payment.
        """
        now = datetime.now(timezone.utc)
        async with self.session_factory.begin() as session:
            if not await OrderRepository(session).mark_paid_after_cancel(
                order.id, payment_id, now
            ):
                return False

        logger.warning(
            "Payment captured for cancelled order",
            order_id=order.id,
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=payment_id,
        )
        await refund_order(self.session_factory, self.gateway, order, PaymentStatus.PAID)
        return True

    async def _confirm_order(
        self,
        order: Order,
        payment_id: str | None,
        result: VerificationResult,
    ) -> bool:
        """Mark one order paid and take its stock in a single transaction.

        Returns:
            False if another caller confirmed the order first.
        """
        now = datetime.now(timezone.utc)
        shortfalls: list[StockShortfall] = []

        async with self.session_factory.begin() as session:
            orders = OrderRepository(session)
            if not await orders.mark_paid(order.id, payment_id, now):
                logger.info("Order already confirmed", order_id=order.id)
                return False

            products = ProductRepository(session)
            for item in order.items:
                outcome = await products.decrement_if_available(item.product_id, item.quantity)
                if outcome == StockOutcome.COMMITTED:
                    await orders.mark_item_stock_committed(item.id)
                else:
                    shortfalls.append(
                        StockShortfall(
                            order_id=order.id,
                            product_id=item.product_id,
                            quantity=item.quantity,
                            reason=outcome,
                        )
                    )

        logger.info(
            "Corporate payment verified",
            order_id=order.id,
            order_number=order.order_number,
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=payment_id,
        )
        for shortfall in shortfalls:
            logger.warning(
                "Stock not committed for paid order",
                order_id=shortfall.order_id,
                product_id=shortfall.product_id,
                quantity=shortfall.quantity,
                reason=shortfall.reason.value,
            )
        result.shortfalls.extend(shortfalls)
        return True
