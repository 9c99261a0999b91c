"""Tests for order, quote and buyer repositories."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from b2bportal.domain.entities import Order, OrderItem
from b2bportal.domain.state_machines import (
    BuyerStatus,
    OrderStatus,
    OrderType,
    PaymentStatus,
    QuoteStatus,
)
from b2bportal.infrastructure.repositories import (
    BuyerRepository,
    OrderRepository,
    QuoteRepository,
)


@pytest.fixture
def new_order(seed, shipping_address):
    """Factory for unsaved orders belonging to the seeded buyer."""

    def _make(number: str = "GFT-B2B-20261018-0000000001", **overrides) -> Order:
        data = dict(
            id=str(uuid4()),
            order_number=number,
            order_type=OrderType.DIRECT,
            buyer_id=seed.buyer.id,
            customer_email=seed.buyer.email,
            customer_phone=seed.buyer.phone,
            seller_id="seller-s1",
            shipping_address=shipping_address,
            items=[
                OrderItem(
                    product_id=seed.product_p,
                    title="Engraved Desk Organiser",
                    quantity=5,
                    unit_price_cents=10000,
                    seller_id="seller-s1",
                )
            ],
            item_total_cents=50000,
            total_cents=50000,
            gateway_order_id="GFT-B2B-GW-1",
        )
        data.update(overrides)
        return Order(**data)

    return _make


class TestOrderRepository:
    """Tests for OrderRepository."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, session_factory, new_order) -> None:
        """Orders persist with their items and address."""
        order = new_order()
        async with session_factory.begin() as session:
            await OrderRepository(session).add(order)

        async with session_factory() as session:
            loaded = await OrderRepository(session).get(order.id)

        assert loaded.order_number == order.order_number
        assert loaded.status == OrderStatus.PENDING
        assert loaded.payment_status == PaymentStatus.UNPAID
        assert loaded.items[0].line_total_cents == 50000
        assert loaded.items[0].id is not None
        assert loaded.shipping_address.city == "Bengaluru"

    @pytest.mark.asyncio
    async def test_get_for_buyer_hides_foreign_orders(self, session_factory, seed, new_order) -> None:
        """Another buyer's order is not returned."""
        order = new_order()
        async with session_factory.begin() as session:
            await OrderRepository(session).add(order)

        async with session_factory() as session:
            repo = OrderRepository(session)
            assert await repo.get_for_buyer(order.id, seed.buyer.id) is not None
            assert await repo.get_for_buyer(order.id, seed.other_buyer.id) is None

    @pytest.mark.asyncio
    async def test_list_for_buyer_newest_first(self, session_factory, seed, new_order) -> None:
        """Orders list newest first with a total count."""
        now = datetime.now(timezone.utc)
        older = new_order("GFT-B2B-A", created_at=now - timedelta(hours=1))
        newer = new_order("GFT-B2B-B", created_at=now)
        async with session_factory.begin() as session:
            repo = OrderRepository(session)
            await repo.add(older)
            await repo.add(newer)

        async with session_factory() as session:
            orders, total = await OrderRepository(session).list_for_buyer(
                seed.buyer.id, page=1, page_size=1
            )

        assert total == 2
        assert [o.id for o in orders] == [newer.id]

    @pytest.mark.asyncio
    async def test_mark_paid_is_compare_and_set(self, session_factory, new_order) -> None:
        """Only the first mark_paid performs the transition."""
        order = new_order()
        async with session_factory.begin() as session:
            await OrderRepository(session).add(order)

        now = datetime.now(timezone.utc)
        async with session_factory.begin() as session:
            first = await OrderRepository(session).mark_paid(order.id, "cf_pay_1", now)
        async with session_factory.begin() as session:
            second = await OrderRepository(session).mark_paid(order.id, "cf_pay_2", now)

        async with session_factory() as session:
            loaded = await OrderRepository(session).get(order.id)

        assert (first, second) == (True, False)
        assert loaded.status == OrderStatus.CONFIRMED
        assert loaded.payment_status == PaymentStatus.PAID
        assert loaded.gateway_payment_id == "cf_pay_1"

    @pytest.mark.asyncio
    async def test_mark_cancelled_requires_observed_state(self, session_factory, new_order) -> None:
        """Cancelling with a stale view of the order does nothing."""
        order = new_order()
        async with session_factory.begin() as session:
            await OrderRepository(session).add(order)

        now = datetime.now(timezone.utc)
        async with session_factory.begin() as session:
            await OrderRepository(session).mark_paid(order.id, "cf_pay_1", now)
        async with session_factory.begin() as session:
            stale = await OrderRepository(session).mark_cancelled(
                order.id, OrderStatus.PENDING, PaymentStatus.UNPAID, "changed mind", now
            )
        async with session_factory.begin() as session:
            current = await OrderRepository(session).mark_cancelled(
                order.id, OrderStatus.CONFIRMED, PaymentStatus.PAID, "changed mind", now
            )

        async with session_factory() as session:
            loaded = await OrderRepository(session).get(order.id)

        assert (stale, current) == (False, True)
        assert loaded.status == OrderStatus.CANCELLED
        assert loaded.cancel_reason == "changed mind"

    @pytest.mark.asyncio
    async def test_refund_pending_then_refunded(self, session_factory, new_order) -> None:
        """A pending refund can later be completed."""
        order = new_order()
        async with session_factory.begin() as session:
            await OrderRepository(session).add(order)

        now = datetime.now(timezone.utc)
        async with session_factory.begin() as session:
            repo = OrderRepository(session)
            await repo.mark_paid(order.id, "cf_pay_1", now)
            assert await repo.mark_refund_pending(order.id, order.refund_reference(), now)
            assert not await repo.mark_refunded(
                order.id, PaymentStatus.PAID, order.refund_reference(), now
            )
            assert await repo.mark_refunded(
                order.id, PaymentStatus.REFUND_PENDING, order.refund_reference(), now
            )

        async with session_factory() as session:
            loaded = await OrderRepository(session).get(order.id)

        assert loaded.payment_status == PaymentStatus.REFUNDED
        assert loaded.refund_id == f"refund_{order.order_number}"


class TestQuoteRepository:
    """Tests for QuoteRepository."""

    @pytest.mark.asyncio
    async def test_list_matches_id_or_email(self, session_factory, seed, make_quote) -> None:
        """Quotes addressed by buyer ID or contact email are listed."""
        await make_quote("quote-by-id")
        await make_quote("quote-by-email", buyer_id=None, contact_email="PROCUREMENT@acme.example")
        await make_quote("quote-foreign", buyer_id="buyer-2", contact_email="buyer@globex.example")

        async with session_factory() as session:
            quotes = await QuoteRepository(session).list_for_buyer(seed.buyer, list(QuoteStatus))

        assert {q.id for q in quotes} == {"quote-by-id", "quote-by-email"}

    @pytest.mark.asyncio
    async def test_transition_only_from_expected(self, session_factory, make_quote) -> None:
        """A quote moves only out of the expected status."""
        await make_quote("quote-1")

        async with session_factory.begin() as session:
            repo = QuoteRepository(session)
            assert await repo.transition("quote-1", QuoteStatus.SENT, QuoteStatus.REJECTED,
                                         client_notes="too pricey")
            assert not await repo.transition("quote-1", QuoteStatus.SENT, QuoteStatus.APPROVED)

        async with session_factory() as session:
            quote = await QuoteRepository(session).get("quote-1")

        assert quote.status == QuoteStatus.REJECTED
        assert quote.client_notes == "too pricey"
        assert quote.items[0].quantity == 40

    @pytest.mark.asyncio
    async def test_reservation_is_exclusive(self, session_factory, make_quote) -> None:
        """One order holds the reservation and only it may approve the quote."""
        await make_quote("quote-1")

        async with session_factory.begin() as session:
            repo = QuoteRepository(session)
            assert await repo.reserve("quote-1", "order-a")
            assert not await repo.reserve("quote-1", "order-b")
            assert not await repo.transition("quote-1", QuoteStatus.SENT, QuoteStatus.REJECTED)
            assert not await repo.transition(
                "quote-1", QuoteStatus.SENT, QuoteStatus.APPROVED, reserved_for="order-b"
            )
            assert await repo.transition(
                "quote-1", QuoteStatus.SENT, QuoteStatus.APPROVED, reserved_for="order-a"
            )

        async with session_factory() as session:
            quote = await QuoteRepository(session).get("quote-1")

        assert quote.status == QuoteStatus.APPROVED
        assert quote.converted_order_id == "order-a"

    @pytest.mark.asyncio
    async def test_release_frees_reservation(self, session_factory, make_quote) -> None:
        """A released quote can be claimed again."""
        await make_quote("quote-1")

        async with session_factory.begin() as session:
            repo = QuoteRepository(session)
            await repo.reserve("quote-1", "order-a")
            await repo.release("quote-1", "order-a")
            assert await repo.reserve("quote-1", "order-b")


class TestBuyerRepository:
    """Tests for BuyerRepository."""

    @pytest.mark.asyncio
    async def test_buyer_loads_addresses_and_status(self, session_factory, seed) -> None:
        """Saved addresses and account status are mapped."""
        async with session_factory() as session:
            repo = BuyerRepository(session)
            buyer = await repo.get(seed.buyer.id)
            suspended = await repo.get(seed.suspended_buyer.id)
            missing = await repo.get("nobody")

        assert buyer.default_address().is_default
        assert len(buyer.shipping_addresses) == 2
        assert suspended.status == BuyerStatus.SUSPENDED
        assert missing is None
