"""Cancellation and refund service.

Cancels a buyer's order, returns committed stock and refunds paid
orders. A refund the gateway does not accept leaves the order in
``refund_pending``; the cancellation itself still succeeds.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from b2bportal.catalog.repository import ProductRepository
from b2bportal.domain.entities import Buyer, Order
from b2bportal.domain.exceptions import (
    InvalidStateTransitionError,
    OrderNotFoundError,
    PaymentGatewayUnavailableError,
)
from b2bportal.domain.state_machines import (
    OrderStatus,
    PaymentStatus,
    validate_order_transition,
)
from b2bportal.infrastructure.config import Settings, settings
from b2bportal.infrastructure.notifications import LoggingNotifier, Notifier
from b2bportal.infrastructure.payment_gateway import PaymentGateway, PaymentGatewayError
from b2bportal.infrastructure.repositories import OrderRepository

logger = structlog.get_logger()

# Attempts at the cancel compare-and-set before giving up on a moving order
MAX_CANCEL_ATTEMPTS = 3


@dataclass
class CancellationResult:
    """Cancelled order and what happened to its payment."""

    order: Order
    refund_attempted: bool = False
    refunded: bool = False


class CancellationService:
    """Application service for order cancellation and refunds."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGateway,
        notifier: Notifier | None = None,
        config: Settings | None = None,
    ) -> None:
        """Initialize service.

        Args:
            session_factory: Database session factory.
            gateway: Payment gateway used for refunds.
            notifier: Buyer notification sender.
            config: Application settings.
        """
        self.session_factory = session_factory
        self.gateway = gateway
        self.notifier = notifier or LoggingNotifier()
        self.config = config or settings

    async def _load(self, buyer: Buyer, order_id: str) -> Order:
        async with self.session_factory() as session:
            order = await OrderRepository(session).get_for_buyer(order_id, buyer.id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def cancel_order(
        self,
        buyer: Buyer,
        order_id: str,
        reason: str | None = None,
    ) -> CancellationResult:
        """Cancel an order and refund it if it was paid.

        Args:
            buyer: Buyer owning the order.
            order_id: Order ID.
            reason: Free-text reason, a default is used when empty.

        Returns:
            CancellationResult with the order in its final state.

        Raises:
            OrderNotFoundError: If the order is not the buyer's.
            InvalidStateTransitionError: If the order cannot be cancelled.
        """
        reason = (reason or "").strip() or self.config.default_cancel_reason

        for _ in range(MAX_CANCEL_ATTEMPTS):
            order = await self._load(buyer, order_id)
            validate_order_transition(order.id, order.status, OrderStatus.CANCELLED)
            if await self._cancel_observed(order, reason):
                break
            logger.info("Order changed during cancellation, retrying", order_id=order.id)
        else:
            order = await self._load(buyer, order_id)
            raise InvalidStateTransitionError(
                entity_type="Order",
                entity_id=order.id,
                current_state=order.status.value,
                target_state=OrderStatus.CANCELLED.value,
                allowed_transitions=[s.value for s in order.status.allowed_transitions()],
            )

        logger.info(
            "Corporate order cancelled",
            order_id=order.id,
            order_number=order.order_number,
            reason=reason,
            was_paid=order.is_paid,
        )

        result = CancellationResult(order=order)
        if order.is_paid:
            result.refund_attempted = True
            result.refunded = await self._refund(order, PaymentStatus.PAID)

        result.order = await self._load(buyer, order_id)
        await self.notifier.send_order_status(buyer, result.order, "order.cancelled")
        return result

    async def _cancel_observed(self, order: Order, reason: str) -> bool:
        """Cancel the order if it is still in the state we read.

        Paid orders get back exactly the stock their confirmation took.
        """
        now = datetime.now(timezone.utc)
        async with self.session_factory.begin() as session:
            cancelled = await OrderRepository(session).mark_cancelled(
                order.id, order.status, order.payment_status, reason, now
            )
            if not cancelled:
                return False
            if order.is_paid:
                products = ProductRepository(session)
                for item in order.items:
                    if item.stock_committed:
                        await products.restore(item.product_id, item.quantity)
        return True

    async def _refund(self, order: Order, expected_status: PaymentStatus) -> bool:
        return await refund_order(self.session_factory, self.gateway, order, expected_status)

    async def retry_refund(self, buyer: Buyer, order_id: str) -> Order:
        """Re-attempt the refund of a cancelled order left in refund_pending.

        Args:
            buyer: Buyer owning the order.
            order_id: Order ID.

        Returns:
            The refunded order.

        Raises:
            OrderNotFoundError: If the order is not the buyer's.
            InvalidStateTransitionError: If the order is not awaiting a refund.
            PaymentGatewayUnavailableError: If the gateway rejects the refund again.
        """
        order = await self._load(buyer, order_id)
        if order.payment_status != PaymentStatus.REFUND_PENDING:
            raise InvalidStateTransitionError(
                entity_type="Payment",
                entity_id=order.id,
                current_state=order.payment_status.value,
                target_state=PaymentStatus.REFUNDED.value,
                allowed_transitions=[s.value for s in order.payment_status.allowed_transitions()],
            )
        if not await self._refund(order, PaymentStatus.REFUND_PENDING):
            raise PaymentGatewayUnavailableError("create_refund", "Refund is still pending")

        order = await self._load(buyer, order_id)
        await self.notifier.send_order_status(buyer, order, "order.refunded")
        return order


async def refund_order(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: PaymentGateway,
    order: Order,
    expected_status: PaymentStatus,
) -> bool:
    """Refund the full order total with its deterministic refund ID.

    A refund of a PAID order that the gateway rejects moves the order to
    ``refund_pending``; a rejected retry leaves it there.

    Args:
        session_factory: Database session factory.
        gateway: Payment gateway.
        order: Cancelled order to refund.
        expected_status: PAID or REFUND_PENDING.

    Returns:
        True if the gateway accepted the refund.
    """
    refund_id = order.refund_reference()
    now = datetime.now(timezone.utc)

    try:
        if not order.gateway_order_id:
            raise PaymentGatewayError("create_refund", "Order has no gateway order")
        await gateway.create_refund(order.gateway_order_id, order.total_cents, refund_id)
    except PaymentGatewayError as e:
        logger.error(
            "Refund failed",
            order_id=order.id,
            refund_id=refund_id,
            error=e.message,
        )
        if expected_status == PaymentStatus.PAID:
            async with session_factory.begin() as session:
                await OrderRepository(session).mark_refund_pending(order.id, refund_id, now)
        return False

    async with session_factory.begin() as session:
        await OrderRepository(session).mark_refunded(order.id, expected_status, refund_id, now)
    logger.info(
        "Refund issued",
        order_id=order.id,
        refund_id=refund_id,
        amount_cents=order.total_cents,
    )
    return True
