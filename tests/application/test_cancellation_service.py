"""Tests for cancellation and refunds."""

from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy import update

from b2bportal.application.cancellation_service import CancellationService
from b2bportal.catalog.models import Product
from b2bportal.domain.exceptions import (
    InvalidStateTransitionError,
    OrderNotFoundError,
    PaymentGatewayUnavailableError,
)
from b2bportal.domain.state_machines import OrderStatus, PaymentStatus
from b2bportal.infrastructure.repositories import OrderRepository


@pytest.fixture
def cancellation_service(session_factory, gateway, notifier) -> CancellationService:
    """Cancellation service with the stub gateway and recording notifier."""
    return CancellationService(session_factory, gateway, notifier)


@pytest_asyncio.fixture
async def paid_checkout(payment_service, checkout, seed):
    """The two-seller checkout after successful payment verification."""
    await payment_service.verify_payment(seed.buyer, checkout.gateway_order_id)
    return checkout


class TestCancelUnpaidOrder:
    """Tests for cancelling orders that were never paid."""

    @pytest.mark.asyncio
    async def test_cancel_pending_order(
        self, cancellation_service, gateway, notifier, checkout, seed, stock_of
    ) -> None:
        """Pending orders cancel without a refund or stock change."""
        order_id = checkout.orders[0].id

        result = await cancellation_service.cancel_order(seed.buyer, order_id, "Budget cut")

        assert result.order.status == OrderStatus.CANCELLED
        assert result.order.payment_status == PaymentStatus.UNPAID
        assert result.order.cancel_reason == "Budget cut"
        assert result.order.cancelled_at is not None
        assert result.refund_attempted is False
        assert gateway.refunds == []
        assert await stock_of(seed.product_p) == (20, 0)
        assert notifier.events == [(order_id, "order.cancelled")]

    @pytest.mark.asyncio
    async def test_default_reason(self, cancellation_service, checkout, seed) -> None:
        """A blank reason is replaced by the configured default."""
        result = await cancellation_service.cancel_order(seed.buyer, checkout.orders[0].id, "  ")

        assert result.order.cancel_reason == cancellation_service.config.default_cancel_reason

    @pytest.mark.asyncio
    async def test_cancel_twice(self, cancellation_service, checkout, seed) -> None:
        """A cancelled order cannot be cancelled again."""
        order_id = checkout.orders[0].id
        await cancellation_service.cancel_order(seed.buyer, order_id)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await cancellation_service.cancel_order(seed.buyer, order_id)

        assert exc_info.value.current_state == "cancelled"

    @pytest.mark.asyncio
    async def test_foreign_order(self, cancellation_service, checkout, seed) -> None:
        """Buyers cannot cancel other buyers' orders."""
        with pytest.raises(OrderNotFoundError):
            await cancellation_service.cancel_order(seed.other_buyer, checkout.orders[0].id)


class TestCancelPaidOrder:
    """Tests for cancelling paid orders."""

    @pytest.mark.asyncio
    async def test_restores_stock_and_refunds(
        self, cancellation_service, gateway, paid_checkout, seed, stock_of
    ) -> None:
        """Cancelling a paid order returns stock and refunds the total."""
        p_order = paid_checkout.orders[0]

        result = await cancellation_service.cancel_order(seed.buyer, p_order.id)

        assert result.refund_attempted and result.refunded
        assert result.order.status == OrderStatus.CANCELLED
        assert result.order.payment_status == PaymentStatus.REFUNDED
        assert result.order.refund_id == f"refund_{p_order.order_number}"
        assert result.order.refunded_at is not None
        assert gateway.refunds == [
            {
                "gateway_order_id": paid_checkout.gateway_order_id,
                "amount_cents": 50000,
                "refund_id": f"refund_{p_order.order_number}",
            }
        ]
        assert await stock_of(seed.product_p) == (20, 0)
        assert await stock_of(seed.product_q) == (7, 3)

    @pytest.mark.asyncio
    async def test_refund_failure_leaves_refund_pending(
        self, cancellation_service, gateway, paid_checkout, seed, stock_of
    ) -> None:
        """A rejected refund downgrades to refund_pending but still cancels."""
        gateway.fail_refund = True
        q_order = paid_checkout.orders[1]

        result = await cancellation_service.cancel_order(seed.buyer, q_order.id)

        assert result.refund_attempted is True
        assert result.refunded is False
        assert result.order.status == OrderStatus.CANCELLED
        assert result.order.payment_status == PaymentStatus.REFUND_PENDING
        assert result.order.refund_id == f"refund_{q_order.order_number}"
        assert await stock_of(seed.product_q) == (10, 0)

    @pytest.mark.asyncio
    async def test_only_committed_stock_is_restored(
        self, cancellation_service, payment_service, checkout, seed, session_factory, stock_of
    ) -> None:
        """Lines whose stock was never taken are not restored."""
        async with session_factory.begin() as session:
            await session.execute(
                update(Product).where(Product.id == seed.product_q).values(stock=1)
            )
        await payment_service.verify_payment(seed.buyer, checkout.gateway_order_id)

        await cancellation_service.cancel_order(seed.buyer, checkout.orders[1].id)

        assert await stock_of(seed.product_q) == (1, 0)

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_cancel(
        self, session_factory, gateway, failing_notifier, paid_checkout, seed
    ) -> None:
        """A failing notifier never affects the cancellation."""
        service = CancellationService(session_factory, gateway, failing_notifier)

        result = await service.cancel_order(seed.buyer, paid_checkout.orders[0].id)

        assert result.order.status == OrderStatus.CANCELLED
        assert result.refunded is True

    @pytest.mark.asyncio
    async def test_concurrent_change_is_retried(
        self, cancellation_service, paid_checkout, seed, stock_of
    ) -> None:
        """A lost compare-and-set re-reads the order and tries again."""
        original = cancellation_service._cancel_observed
        calls = []

        async def flaky(order, reason):
            calls.append(order.status)
            if len(calls) == 1:
                return False
            return await original(order, reason)

        with patch.object(cancellation_service, "_cancel_observed", side_effect=flaky):
            result = await cancellation_service.cancel_order(seed.buyer, paid_checkout.orders[0].id)

        assert len(calls) == 2
        assert result.order.status == OrderStatus.CANCELLED
        assert await stock_of(seed.product_p) == (20, 0)


class TestRetryRefund:
    """Tests for CancellationService.retry_refund."""

    @pytest.mark.asyncio
    async def test_retry_reuses_refund_id(
        self, cancellation_service, gateway, notifier, paid_checkout, seed
    ) -> None:
        """A later retry refunds with the same identifier."""
        order = paid_checkout.orders[0]
        gateway.fail_refund = True
        await cancellation_service.cancel_order(seed.buyer, order.id)

        gateway.fail_refund = False
        refunded = await cancellation_service.retry_refund(seed.buyer, order.id)

        assert refunded.payment_status == PaymentStatus.REFUNDED
        assert [r["refund_id"] for r in gateway.refunds] == [f"refund_{order.order_number}"]
        assert (order.id, "order.refunded") in notifier.events

    @pytest.mark.asyncio
    async def test_retry_failure_stays_pending(
        self, cancellation_service, gateway, paid_checkout, seed, session_factory
    ) -> None:
        """A retry the gateway rejects again reports an upstream error."""
        order = paid_checkout.orders[0]
        gateway.fail_refund = True
        await cancellation_service.cancel_order(seed.buyer, order.id)

        with pytest.raises(PaymentGatewayUnavailableError):
            await cancellation_service.retry_refund(seed.buyer, order.id)

        async with session_factory() as session:
            stored = await OrderRepository(session).get(order.id)
        assert stored.payment_status == PaymentStatus.REFUND_PENDING

    @pytest.mark.asyncio
    async def test_retry_requires_refund_pending(
        self, cancellation_service, paid_checkout, seed
    ) -> None:
        """Only orders awaiting a refund can be retried."""
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await cancellation_service.retry_refund(seed.buyer, paid_checkout.orders[0].id)

        assert exc_info.value.details["entity_type"] == "Payment"
        assert exc_info.value.current_state == "paid"
