"""Repositories for orders, quotes and corporate buyers.

Translate between ORM rows and domain entities. Status changes go
through conditional UPDATE statements whose WHERE clause names the
expected current state; a rowcount of zero means another caller got
there first.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from b2bportal.domain.entities import Buyer, Order, OrderItem, Quote, QuoteItem
from b2bportal.domain.state_machines import (
    BuyerStatus,
    OrderStatus,
    OrderType,
    PaymentStatus,
    QuoteStatus,
)
from b2bportal.domain.value_objects import ShippingAddress
from b2bportal.infrastructure.models import (
    CorporateUserModel,
    OrderItemModel,
    OrderModel,
    QuoteItemModel,
    QuoteModel,
)

# ============================================================================
# Row <-> Entity Mapping
# ============================================================================


def order_to_entity(row: OrderModel) -> Order:
    """Build an Order entity from a row with items loaded."""
    return Order(
        id=row.id,
        order_number=row.order_number,
        order_type=OrderType(row.order_type),
        buyer_id=row.buyer_id,
        customer_email=row.customer_email,
        customer_phone=row.customer_phone,
        seller_id=row.seller_id,
        shipping_address=ShippingAddress(
            name=row.shipping_name,
            phone=row.shipping_phone,
            line1=row.shipping_line1,
            line2=row.shipping_line2,
            city=row.shipping_city,
            state=row.shipping_state,
            postal_code=row.shipping_postal_code,
            country=row.shipping_country,
        ),
        items=[
            OrderItem(
                id=item.id,
                product_id=item.product_id,
                seller_id=item.seller_id,
                sku=item.sku,
                title=item.title,
                image_url=item.image_url,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                stock_committed=item.stock_committed,
            )
            for item in row.items
        ],
        item_total_cents=row.item_total_cents,
        shipping_cost_cents=row.shipping_cost_cents,
        total_cents=row.total_cents,
        currency=row.currency,
        commission_rate=row.commission_rate,
        commission_cents=row.commission_cents,
        gateway_fee_cents=row.gateway_fee_cents,
        seller_amount_cents=row.seller_amount_cents,
        status=OrderStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        gateway_order_id=row.gateway_order_id,
        payment_session_id=row.payment_session_id,
        gateway_payment_id=row.gateway_payment_id,
        refund_id=row.refund_id,
        cancel_reason=row.cancel_reason,
        notes=row.notes,
        source_quote_id=row.source_quote_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        paid_at=row.paid_at,
        cancelled_at=row.cancelled_at,
        refunded_at=row.refunded_at,
    )


def order_to_row(order: Order) -> OrderModel:
    """Build a new OrderModel (with item rows) from an Order entity."""
    address = order.shipping_address
    return OrderModel(
        id=order.id,
        order_number=order.order_number,
        order_type=order.order_type.value,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        status=order.status.value,
        payment_status=order.payment_status.value,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        shipping_name=address.name,
        shipping_phone=address.phone,
        shipping_line1=address.line1,
        shipping_line2=address.line2,
        shipping_city=address.city,
        shipping_state=address.state,
        shipping_postal_code=address.postal_code,
        shipping_country=address.country,
        item_total_cents=order.item_total_cents,
        shipping_cost_cents=order.shipping_cost_cents,
        total_cents=order.total_cents,
        currency=order.currency,
        commission_rate=order.commission_rate,
        commission_cents=order.commission_cents,
        gateway_fee_cents=order.gateway_fee_cents,
        seller_amount_cents=order.seller_amount_cents,
        gateway_order_id=order.gateway_order_id,
        payment_session_id=order.payment_session_id,
        notes=order.notes,
        source_quote_id=order.source_quote_id,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=[
            OrderItemModel(
                position=position,
                product_id=item.product_id,
                seller_id=item.seller_id,
                sku=item.sku,
                title=item.title,
                image_url=item.image_url,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                line_total_cents=item.line_total_cents,
                stock_committed=item.stock_committed,
            )
            for position, item in enumerate(order.items)
        ],
    )


def quote_to_entity(row: QuoteModel) -> Quote:
    """Build a Quote entity from a row with items loaded."""
    return Quote(
        id=row.id,
        quote_number=row.quote_number,
        buyer_id=row.corporate_user_id,
        contact_email=row.contact_email,
        company_name=row.company_name,
        seller_id=row.seller_id,
        status=QuoteStatus(row.status),
        items=[
            QuoteItem(
                product_id=item.product_id,
                title=item.title,
                image_url=item.image_url,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
            )
            for item in row.items
        ],
        total_amount_cents=row.total_amount_cents,
        final_amount_cents=row.final_amount_cents,
        valid_until=row.valid_until,
        converted_order_id=row.converted_order_id,
        client_notes=row.client_notes,
        created_at=row.created_at,
    )


def quote_to_row(quote: Quote) -> QuoteModel:
    """Build a new QuoteModel (with item rows) from a Quote entity."""
    return QuoteModel(
        id=quote.id,
        quote_number=quote.quote_number,
        corporate_user_id=quote.buyer_id,
        contact_email=quote.contact_email,
        company_name=quote.company_name,
        seller_id=quote.seller_id,
        status=quote.status.value,
        total_amount_cents=quote.total_amount_cents,
        final_amount_cents=quote.final_amount_cents,
        valid_until=quote.valid_until,
        converted_order_id=quote.converted_order_id,
        client_notes=quote.client_notes,
        created_at=quote.created_at,
        items=[
            QuoteItemModel(
                position=position,
                product_id=item.product_id,
                title=item.title,
                image_url=item.image_url,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
            )
            for position, item in enumerate(quote.items)
        ],
    )


def buyer_to_entity(row: CorporateUserModel) -> Buyer:
    """Build a Buyer entity from a corporate user row."""
    return Buyer(
        id=row.id,
        email=row.email,
        company_name=row.company_name,
        phone=row.phone,
        status=BuyerStatus(row.status),
        shipping_addresses=[
            ShippingAddress.from_dict(data) for data in (row.shipping_addresses or [])
        ],
    )


# ============================================================================
# Order Repository
# ============================================================================


class OrderRepository:
    """Repository for Order database operations.

    Example usage:
        async with session_factory() as session:
            repo = OrderRepository(session)
            order = await repo.get_for_buyer(order_id, buyer.id)
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    def _select(self):
        return (
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .execution_options(populate_existing=True)
        )

    async def add(self, order: Order) -> None:
        """Insert a new order and its items.

        Args:
            order: Order entity with a preassigned id.
        """
        self.session.add(order_to_row(order))
        await self.session.flush()

    async def get(self, order_id: str) -> Order | None:
        """Get order by ID.

        Args:
            order_id: Order ID.

        Returns:
            Order if found, None otherwise.
        """
        result = await self.session.execute(self._select().where(OrderModel.id == order_id))
        row = result.scalar_one_or_none()
        return order_to_entity(row) if row else None

    async def get_for_buyer(self, order_id: str, buyer_id: str) -> Order | None:
        """Get an order only if it belongs to the buyer.

        Args:
            order_id: Order ID.
            buyer_id: Owning buyer ID.

        Returns:
            Order if found and owned, None otherwise.
        """
        query = self._select().where(
            and_(OrderModel.id == order_id, OrderModel.buyer_id == buyer_id)
        )
        result = await self.session.execute(query)
        row = result.scalar_one_or_none()
        return order_to_entity(row) if row else None

    async def list_by_gateway_order(self, gateway_order_id: str, buyer_id: str) -> list[Order]:
        """List the buyer's orders created by one checkout.

        Args:
            gateway_order_id: Shared gateway order identifier.
            buyer_id: Owning buyer ID.

        Returns:
            Orders in creation order.
        """
        query = (
            self._select()
            .where(
                and_(
                    OrderModel.gateway_order_id == gateway_order_id,
                    OrderModel.buyer_id == buyer_id,
                )
            )
            .order_by(OrderModel.created_at, OrderModel.order_number)
        )
        result = await self.session.execute(query)
        return [order_to_entity(row) for row in result.scalars().all()]

    async def list_for_buyer(
        self,
        buyer_id: str,
        status: OrderStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]:
        """List a buyer's orders with pagination, newest first.

        Args:
            buyer_id: Owning buyer ID.
            status: Optional status filter.
            page: Page number (1-indexed).
            page_size: Items per page.

        Returns:
            Tuple of (orders, total count).
        """
        conditions = [OrderModel.buyer_id == buyer_id]
        if status is not None:
            conditions.append(OrderModel.status == status.value)

        count_query = select(func.count()).select_from(OrderModel).where(and_(*conditions))
        total = (await self.session.execute(count_query)).scalar_one()

        query = (
            self._select()
            .where(and_(*conditions))
            .order_by(OrderModel.created_at.desc(), OrderModel.order_number.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(query)
        return [order_to_entity(row) for row in result.scalars().all()], total

    async def attach_payment_session(
        self,
        order_ids: Iterable[str],
        gateway_order_id: str,
        payment_session_id: str,
    ) -> None:
        """Record the gateway order and session on a checkout's orders.

        Args:
            order_ids: Orders created by the checkout.
            gateway_order_id: Gateway order identifier.
            payment_session_id: Gateway session identifier.
        """
        statement = (
            update(OrderModel)
            .where(OrderModel.id.in_(list(order_ids)))
            .values(gateway_order_id=gateway_order_id, payment_session_id=payment_session_id)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(statement)

    async def mark_paid(
        self,
        order_id: str,
        gateway_payment_id: str | None,
        paid_at: datetime,
    ) -> bool:
        """Move a pending, unpaid order to confirmed and paid.

        Args:
            order_id: Order ID.
            gateway_payment_id: Identifier of the successful payment.
            paid_at: Payment timestamp.

        Returns:
            True if this call performed the transition.
        """
        return await self._compare_and_set(
            order_id,
            expected={"status": OrderStatus.PENDING, "payment_status": PaymentStatus.UNPAID},
            values={
                "status": OrderStatus.CONFIRMED.value,
                "payment_status": PaymentStatus.PAID.value,
                "gateway_payment_id": gateway_payment_id,
                "paid_at": paid_at,
                "updated_at": paid_at,
            },
        )

    async def mark_paid_after_cancel(
        self,
        order_id: str,
        gateway_payment_id: str | None,
        paid_at: datetime,
    ) -> bool:
        """Record a payment captured for an order cancelled while unpaid.

        The order stays cancelled and no stock is taken.

        Returns:
            True if this call recorded the payment.
        """
        return await self._compare_and_set(
            order_id,
            expected={"status": OrderStatus.CANCELLED, "payment_status": PaymentStatus.UNPAID},
            values={
                "payment_status": PaymentStatus.PAID.value,
                "gateway_payment_id": gateway_payment_id,
                "paid_at": paid_at,
                "updated_at": paid_at,
            },
        )

    async def mark_item_stock_committed(self, item_id: str) -> None:
        """Flag an order line whose units were taken out of stock."""
        statement = (
            update(OrderItemModel)
            .where(OrderItemModel.id == item_id)
            .values(stock_committed=True)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(statement)

    async def mark_cancelled(
        self,
        order_id: str,
        expected_status: OrderStatus,
        expected_payment_status: PaymentStatus,
        reason: str,
        cancelled_at: datetime,
    ) -> bool:
        """Cancel an order if it is still in the observed state.

        Args:
            order_id: Order ID.
            expected_status: Status observed before cancelling.
            expected_payment_status: Payment status observed before cancelling.
            reason: Cancellation reason.
            cancelled_at: Cancellation timestamp.

        Returns:
            True if this call performed the transition.
        """
        return await self._compare_and_set(
            order_id,
            expected={"status": expected_status, "payment_status": expected_payment_status},
            values={
                "status": OrderStatus.CANCELLED.value,
                "cancel_reason": reason,
                "cancelled_at": cancelled_at,
                "updated_at": cancelled_at,
            },
        )

    async def mark_refunded(
        self,
        order_id: str,
        expected_payment_status: PaymentStatus,
        refund_id: str,
        refunded_at: datetime,
    ) -> bool:
        """Record a successful refund.

        Args:
            order_id: Order ID.
            expected_payment_status: PAID or REFUND_PENDING.
            refund_id: Refund identifier sent to the gateway.
            refunded_at: Refund timestamp.

        Returns:
            True if this call performed the transition.
        """
        return await self._compare_and_set(
            order_id,
            expected={"payment_status": expected_payment_status},
            values={
                "payment_status": PaymentStatus.REFUNDED.value,
                "refund_id": refund_id,
                "refunded_at": refunded_at,
                "updated_at": refunded_at,
            },
        )

    async def mark_refund_pending(self, order_id: str, refund_id: str, now: datetime) -> bool:
        """Record a refund that the gateway did not accept.

        Args:
            order_id: Order ID.
            refund_id: Refund identifier to retry with.
            now: Update timestamp.

        Returns:
            True if this call performed the transition.
        """
        return await self._compare_and_set(
            order_id,
            expected={"payment_status": PaymentStatus.PAID},
            values={
                "payment_status": PaymentStatus.REFUND_PENDING.value,
                "refund_id": refund_id,
                "updated_at": now,
            },
        )

    async def _compare_and_set(
        self,
        order_id: str,
        expected: dict[str, Any],
        values: dict[str, Any],
    ) -> bool:
        conditions = [OrderModel.id == order_id]
        for column, value in expected.items():
            conditions.append(getattr(OrderModel, column) == value.value)
        statement = (
            update(OrderModel)
            .where(and_(*conditions))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1


# ============================================================================
# Quote Repository
# ============================================================================


class QuoteRepository:
    """Repository for Quote database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    def _select(self):
        return (
            select(QuoteModel)
            .options(selectinload(QuoteModel.items))
            .execution_options(populate_existing=True)
        )

    async def add(self, quote: Quote) -> None:
        """Insert a quote and its items."""
        self.session.add(quote_to_row(quote))
        await self.session.flush()

    async def get(self, quote_id: str) -> Quote | None:
        """Get quote by ID.

        Args:
            quote_id: Quote ID.

        Returns:
            Quote if found, None otherwise.
        """
        result = await self.session.execute(self._select().where(QuoteModel.id == quote_id))
        row = result.scalar_one_or_none()
        return quote_to_entity(row) if row else None

    async def list_for_buyer(
        self,
        buyer: Buyer,
        statuses: Iterable[QuoteStatus],
    ) -> list[Quote]:
        """List quotes addressed to a buyer by id or contact email.

        Args:
            buyer: Requesting buyer.
            statuses: Statuses to include.

        Returns:
            Quotes, newest first.
        """
        query = (
            self._select()
            .where(
                and_(
                    (QuoteModel.corporate_user_id == buyer.id)
                    | (func.lower(QuoteModel.contact_email) == buyer.email.lower()),
                    QuoteModel.status.in_([s.value for s in statuses]),
                )
            )
            .order_by(QuoteModel.created_at.desc())
        )
        result = await self.session.execute(query)
        return [quote_to_entity(row) for row in result.scalars().all()]

    async def transition(
        self,
        quote_id: str,
        expected_status: QuoteStatus,
        target_status: QuoteStatus,
        reserved_for: str | None = None,
        **values: Any,
    ) -> bool:
        """Move a quote between statuses if it is still in the expected one.

        A quote reserved by an approval in progress only moves for that
        approval.

        Args:
            quote_id: Quote ID.
            expected_status: Status observed before the change.
            target_status: New status.
            reserved_for: Order ID holding the reservation, None for an unreserved quote.
            **values: Extra columns to set.

        Returns:
            True if this call performed the transition.
        """
        reservation = (
            QuoteModel.converted_order_id.is_(None)
            if reserved_for is None
            else QuoteModel.converted_order_id == reserved_for
        )
        statement = (
            update(QuoteModel)
            .where(
                and_(
                    QuoteModel.id == quote_id,
                    QuoteModel.status == expected_status.value,
                    reservation,
                )
            )
            .values(status=target_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1

    async def reserve(self, quote_id: str, order_id: str) -> bool:
        """Claim a sent, unreserved quote for the order an approval is creating.

        Returns:
            True if this call won the reservation.
        """
        statement = (
            update(QuoteModel)
            .where(
                and_(
                    QuoteModel.id == quote_id,
                    QuoteModel.status == QuoteStatus.SENT.value,
                    QuoteModel.converted_order_id.is_(None),
                )
            )
            .values(converted_order_id=order_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(statement)
        return result.rowcount == 1

    async def release(self, quote_id: str, order_id: str) -> None:
        """Drop a reservation whose approval failed."""
        statement = (
            update(QuoteModel)
            .where(
                and_(
                    QuoteModel.id == quote_id,
                    QuoteModel.status == QuoteStatus.SENT.value,
                    QuoteModel.converted_order_id == order_id,
                )
            )
            .values(converted_order_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(statement)


# ============================================================================
# Buyer Repository
# ============================================================================


class BuyerRepository:
    """Read access to corporate buyer accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, buyer_id: str) -> Buyer | None:
        """Get buyer by ID.

        Args:
            buyer_id: Corporate user ID.

        Returns:
            Buyer if found, None otherwise.
        """
        query = (
            select(CorporateUserModel)
            .where(CorporateUserModel.id == buyer_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        row = result.scalar_one_or_none()
        return buyer_to_entity(row) if row else None

    async def add(self, buyer: Buyer) -> None:
        """Insert a corporate user row for a buyer."""
        self.session.add(
            CorporateUserModel(
                id=buyer.id,
                email=buyer.email,
                phone=buyer.phone,
                company_name=buyer.company_name,
                status=buyer.status.value,
                shipping_addresses=[a.to_dict() for a in buyer.shipping_addresses],
            )
        )
        await self.session.flush()
