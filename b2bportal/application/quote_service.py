"""Quote application service.

Lets a buyer read the quotes addressed to them and approve or reject
them. Approving converts the quote into a single order and opens a
payment session for the quote's final amount, exactly like a direct
checkout.
"""

from datetime import datetime, timezone
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from b2bportal.application.order_service import CheckoutResult, open_payment_session
from b2bportal.domain.entities import Buyer, Order, OrderItem, Quote
from b2bportal.domain.exceptions import (
    PaymentGatewayUnavailableError,
    QuoteExpiredError,
    QuoteNotFoundError,
    ShippingAddressRequiredError,
)
from b2bportal.domain.state_machines import (
    BUYER_VISIBLE_QUOTE_STATUSES,
    OrderStatus,
    OrderType,
    PaymentStatus,
    QuoteStatus,
    validate_quote_transition,
)
from b2bportal.domain.value_objects import ShippingAddress
from b2bportal.infrastructure.config import Settings, settings
from b2bportal.infrastructure.identifiers import IdentifierGenerator, OrderNumberGenerator
from b2bportal.infrastructure.payment_gateway import PaymentGateway
from b2bportal.infrastructure.repositories import OrderRepository, QuoteRepository

logger = structlog.get_logger()


class QuoteService:
    """Application service for buyer-side quote handling.

    Example usage:
        service = QuoteService(get_session_factory(), gateway)
        result = await service.approve_quote(buyer, quote_id)
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

    async def list_quotes(self, buyer: Buyer) -> list[Quote]:
        """List quotes addressed to the buyer, newest first."""
        async with self.session_factory() as session:
            return await QuoteRepository(session).list_for_buyer(
                buyer, BUYER_VISIBLE_QUOTE_STATUSES
            )

    async def get_quote(self, buyer: Buyer, quote_id: str) -> Quote:
        """Get a quote addressed to the buyer.

        Raises:
            QuoteNotFoundError: If the quote does not exist or is not the buyer's.
        """
        async with self.session_factory() as session:
            quote = await QuoteRepository(session).get(quote_id)
        if (
            quote is None
            or quote.status not in BUYER_VISIBLE_QUOTE_STATUSES
            or not quote.is_addressed_to(buyer)
        ):
            raise QuoteNotFoundError(quote_id)
        return quote

    async def _get_actionable(self, buyer: Buyer, quote_id: str) -> Quote:
        async with self.session_factory() as session:
            quote = await QuoteRepository(session).get(quote_id)
        if quote is None or not quote.status.is_actionable() or not quote.is_addressed_to(buyer):
            raise QuoteNotFoundError(quote_id, "Quote not found or cannot be approved")
        return quote

    async def approve_quote(
        self,
        buyer: Buyer,
        quote_id: str,
        shipping_address: ShippingAddress | None = None,
    ) -> CheckoutResult:
        """Convert a sent quote into an order with a payment session.

        An expired quote is moved to ``expired`` before the error is raised.

        Args:
            buyer: Buyer the quote is addressed to.
            quote_id: Quote ID.
            shipping_address: Delivery address, defaults to the buyer's saved one.

        Returns:
            CheckoutResult with the single created order.

        Raises:
            QuoteNotFoundError: If the quote is not sent or not the buyer's.
            QuoteExpiredError: If the validity deadline has passed.
            ShippingAddressRequiredError: If no address is available.
            PaymentGatewayUnavailableError: If the session cannot be opened.
        """
        quote = await self._get_actionable(buyer, quote_id)

        if quote.is_expired():
            async with self.session_factory.begin() as session:
                await QuoteRepository(session).transition(
                    quote.id,
                    QuoteStatus.SENT,
                    QuoteStatus.EXPIRED,
                    updated_at=datetime.now(timezone.utc),
                )
            logger.info("Quote expired", quote_id=quote.id, quote_number=quote.quote_number)
            raise QuoteExpiredError(quote.id)

        address = shipping_address or buyer.default_address()
        if address is None:
            raise ShippingAddressRequiredError()

        validate_quote_transition(quote.id, quote.status, QuoteStatus.APPROVED)

        now = datetime.now(timezone.utc)
        order_number = self.identifiers.next_order_number()
        gateway_order_id = self.identifiers.next_gateway_order_id()
        order = Order(
            id=str(uuid4()),
            order_number=order_number,
            order_type=OrderType.QUOTE,
            buyer_id=buyer.id,
            customer_email=buyer.email,
            customer_phone=buyer.phone or address.phone,
            seller_id=quote.seller_id,
            shipping_address=address,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    title=item.title,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    seller_id=quote.seller_id,
                    image_url=item.image_url,
                )
                for item in quote.items
            ],
            item_total_cents=quote.total_amount_cents,
            total_cents=quote.final_amount_cents,
            seller_amount_cents=quote.final_amount_cents,
            currency=self.config.currency,
            gateway_order_id=gateway_order_id,
            source_quote_id=quote.id,
            notes=f"From quote {quote.quote_number}",
            created_at=now,
            updated_at=now,
        )

        async with self.session_factory.begin() as session:
            if not await QuoteRepository(session).reserve(quote.id, order.id):
                raise QuoteNotFoundError(quote_id, "Quote not found or cannot be approved")
            await OrderRepository(session).add(order)
        logger.info(
            "Quote order created",
            order_id=order.id,
            order_number=order.order_number,
            quote_id=quote.id,
            total_cents=order.total_cents,
        )

        try:
            session_id = await open_payment_session(
                self.session_factory,
                self.gateway,
                buyer,
                [order],
                gateway_order_id,
                quote.final_amount_cents,
                self.config,
            )
        except PaymentGatewayUnavailableError:
            await self._abandon_approval(quote, order)
            raise

        async with self.session_factory.begin() as session:
            await QuoteRepository(session).transition(
                quote.id,
                QuoteStatus.SENT,
                QuoteStatus.APPROVED,
                reserved_for=order.id,
                updated_at=datetime.now(timezone.utc),
            )
        logger.info("Quote approved", quote_id=quote.id, order_id=order.id)

        return CheckoutResult(
            orders=[order],
            gateway_order_id=gateway_order_id,
            payment_session_id=session_id,
            amount_cents=quote.final_amount_cents,
            app_id=self.config.cashfree_app_id,
            env=self.config.cashfree_env,
        )

    async def _abandon_approval(self, quote: Quote, order: Order) -> None:
        """Cancel the unpaid quote order and give the quote back to the buyer."""
        now = datetime.now(timezone.utc)
        async with self.session_factory.begin() as session:
            await OrderRepository(session).mark_cancelled(
                order.id,
                OrderStatus.PENDING,
                PaymentStatus.UNPAID,
                "Payment session could not be opened",
                now,
            )
            await QuoteRepository(session).release(quote.id, order.id)
        logger.warning(
            "Quote approval abandoned",
            quote_id=quote.id,
            order_id=order.id,
        )

    async def reject_quote(self, buyer: Buyer, quote_id: str, notes: str | None = None) -> Quote:
        """Reject a sent quote, keeping the buyer's note.

        Raises:
            QuoteNotFoundError: If the quote is not sent or not the buyer's.
        """
        quote = await self._get_actionable(buyer, quote_id)
        validate_quote_transition(quote.id, quote.status, QuoteStatus.REJECTED)

        async with self.session_factory.begin() as session:
            rejected = await QuoteRepository(session).transition(
                quote.id,
                QuoteStatus.SENT,
                QuoteStatus.REJECTED,
                client_notes=notes or "",
                updated_at=datetime.now(timezone.utc),
            )
        if not rejected:
            raise QuoteNotFoundError(quote_id, "Quote not found or cannot be rejected")

        logger.info("Quote rejected", quote_id=quote.id, quote_number=quote.quote_number)
        return await self.get_quote(buyer, quote_id)
