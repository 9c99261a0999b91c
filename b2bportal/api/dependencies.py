"""FastAPI dependencies.

Wires the session factory, payment gateway, notifier and the
authenticated buyer into route handlers. Tests replace these through
``app.dependency_overrides``.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

import structlog
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from b2bportal.application.cancellation_service import CancellationService
from b2bportal.application.order_service import OrderService
from b2bportal.application.payment_service import PaymentService
from b2bportal.application.quote_service import QuoteService
from b2bportal.domain.entities import Buyer
from b2bportal.domain.exceptions import BuyerNotActiveError
from b2bportal.infrastructure import database
from b2bportal.infrastructure.auth import InvalidBuyerTokenError, verify_buyer_token
from b2bportal.infrastructure.notifications import Notifier, build_notifier
from b2bportal.infrastructure.payment_gateway import CashfreeGateway, PaymentGateway
from b2bportal.infrastructure.repositories import BuyerRepository

logger = structlog.get_logger()


# ============================================================================
# Infrastructure
# ============================================================================


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the application session factory."""
    return database.get_session_factory()


async def get_payment_gateway(request: Request) -> AsyncGenerator[PaymentGateway, None]:
    """Yield a gateway client correlated with the request, closing it afterwards."""
    gateway = CashfreeGateway(request_id=getattr(request.state, "request_id", None))
    try:
        yield gateway
    finally:
        await gateway.close()


def get_notifier() -> Notifier:
    """Get the configured notifier."""
    return build_notifier()


SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
GatewayDep = Annotated[PaymentGateway, Depends(get_payment_gateway)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]


# ============================================================================
# Authentication
# ============================================================================


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error_code": "UNAUTHORIZED", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_buyer(
    session_factory: SessionFactoryDep,
    authorization: Annotated[str | None, Header()] = None,
) -> Buyer:
    """Resolve the active buyer from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or names no buyer.
        BuyerNotActiveError: If the buyer's account is not active.
    """
    if not authorization:
        raise _unauthorized("Not authenticated")

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _unauthorized("Invalid Authorization header format. Use 'Bearer <token>'")

    try:
        buyer_id = verify_buyer_token(parts[1].strip())
    except InvalidBuyerTokenError as e:
        logger.warning("Buyer token rejected", reason=str(e))
        raise _unauthorized("Invalid or expired token") from e

    async with session_factory() as session:
        buyer = await BuyerRepository(session).get(buyer_id)
    if buyer is None:
        raise _unauthorized("Invalid or expired token")

    if not buyer.is_active:
        raise BuyerNotActiveError(buyer.id, buyer.status.value)

    structlog.contextvars.bind_contextvars(buyer_id=buyer.id)
    return buyer


CurrentBuyer = Annotated[Buyer, Depends(get_current_buyer)]


# ============================================================================
# Services
# ============================================================================


def get_order_service(session_factory: SessionFactoryDep, gateway: GatewayDep) -> OrderService:
    return OrderService(session_factory, gateway)


def get_payment_service(session_factory: SessionFactoryDep, gateway: GatewayDep) -> PaymentService:
    return PaymentService(session_factory, gateway)


def get_cancellation_service(
    session_factory: SessionFactoryDep,
    gateway: GatewayDep,
    notifier: NotifierDep,
) -> CancellationService:
    return CancellationService(session_factory, gateway, notifier)


def get_quote_service(session_factory: SessionFactoryDep, gateway: GatewayDep) -> QuoteService:
    return QuoteService(session_factory, gateway)
