"""Shared fixtures.

Every test gets its own file-backed SQLite database, a seeded catalog
with two sellers, buyers in each account status, an in-test payment
gateway and a recording notifier.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from b2bportal.api.dependencies import get_notifier, get_payment_gateway, get_session_factory
from b2bportal.catalog.models import CatalogEntry, Product
from b2bportal.domain.entities import Buyer, Order, Quote, QuoteItem
from b2bportal.domain.state_machines import BuyerStatus, QuoteStatus
from b2bportal.domain.value_objects import ShippingAddress
from b2bportal.infrastructure.auth import issue_buyer_token
from b2bportal.infrastructure.database import create_engine_for, init_models
from b2bportal.infrastructure.notifications import Notifier
from b2bportal.infrastructure.payment_gateway import (
    GatewayCustomer,
    GatewayOrder,
    GatewayPayment,
    GatewayRefund,
    GatewaySession,
    PaymentGateway,
    PaymentGatewayError,
)
from b2bportal.infrastructure.repositories import BuyerRepository, QuoteRepository
from b2bportal.main import app


# ============================================================================
# Collaborator Doubles
# ============================================================================


class StubGateway(PaymentGateway):
    """In-memory payment gateway with switchable failures."""

    def __init__(self) -> None:
        self.sessions: list[dict[str, Any]] = []
        self.refunds: list[dict[str, Any]] = []
        self.order_status = "PAID"
        self.payments = [
            GatewayPayment(payment_id="cf_pay_failed", payment_status="FAILED", amount_cents=0),
            GatewayPayment(payment_id="cf_pay_1001", payment_status="SUCCESS", amount_cents=0),
        ]
        self.fail_session = False
        self.fail_refund = False
        self.fail_get_order = False

    async def create_session(
        self,
        gateway_order_id: str,
        amount_cents: int,
        customer: GatewayCustomer,
        return_url: str,
    ) -> GatewaySession:
        if self.fail_session:
            raise PaymentGatewayError("create_session", "gateway down", 503)
        self.sessions.append(
            {
                "gateway_order_id": gateway_order_id,
                "amount_cents": amount_cents,
                "customer": customer,
                "return_url": return_url,
            }
        )
        return GatewaySession(
            gateway_order_id=gateway_order_id,
            payment_session_id=f"session_{gateway_order_id}",
            amount_cents=amount_cents,
        )

    async def get_order(self, gateway_order_id: str) -> GatewayOrder:
        if self.fail_get_order:
            raise PaymentGatewayError("get_order", "timeout")
        return GatewayOrder(
            gateway_order_id=gateway_order_id,
            order_status=self.order_status,
            amount_cents=0,
        )

    async def list_payments(self, gateway_order_id: str) -> list[GatewayPayment]:
        return list(self.payments)

    async def create_refund(
        self,
        gateway_order_id: str,
        amount_cents: int,
        refund_id: str,
    ) -> GatewayRefund:
        if self.fail_refund:
            raise PaymentGatewayError("create_refund", "refund rejected", 400)
        self.refunds.append(
            {
                "gateway_order_id": gateway_order_id,
                "amount_cents": amount_cents,
                "refund_id": refund_id,
            }
        )
        return GatewayRefund(refund_id=refund_id, refund_status="SUCCESS", amount_cents=amount_cents)


class RecordingNotifier(Notifier):
    """Notifier that records events, optionally failing every delivery."""

    def __init__(self, fail: bool = False) -> None:
        self.events: list[tuple[str, str]] = []
        self.fail = fail

    async def _deliver(self, buyer: Buyer, order: Order, event: str) -> None:
        if self.fail:
            raise RuntimeError("mail server unavailable")
        self.events.append((order.id, event))


# ============================================================================
# Seed Data
# ============================================================================

SELLER_ONE = "seller-s1"
SELLER_TWO = "seller-s2"


@dataclass
class Seed:
    """Identifiers of the seeded rows."""

    buyer: Buyer
    pending_buyer: Buyer
    suspended_buyer: Buyer
    other_buyer: Buyer
    product_p: str
    product_q: str
    inactive_product: str
    uncatalogued_product: str


def make_address(**overrides: Any) -> ShippingAddress:
    """Build a shipping address for tests."""
    data: dict[str, Any] = {
        "name": "Priya Raman",
        "phone": "+91 98765 43210",
        "line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postal_code": "560001",
    }
    data.update(overrides)
    return ShippingAddress(**data)


def address_payload(**overrides: Any) -> dict[str, Any]:
    """Build a JSON shipping address for API requests."""
    payload: dict[str, Any] = {
        "name": "Priya Raman",
        "phone": "+91 98765 43210",
        "line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postal_code": "560001",
        "country": "IN",
    }
    payload.update(overrides)
    return payload


def _product(product_id: str, seller_id: str, title: str, price_cents: int, stock: int, **kw: Any):
    return Product(
        id=product_id,
        seller_id=seller_id,
        seller_name=seller_id.upper(),
        sku=f"SKU-{product_id}",
        title=title,
        description=kw.pop("description", f"{title} for corporate gifting"),
        category=kw.pop("category", "gifts"),
        price_cents=price_cents,
        image_url=f"https://img.example.com/{product_id}.jpg",
        stock=stock,
        **kw,
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Create a file-backed SQLite engine with all tables."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'b2bportal.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def seed(session_factory) -> Seed:
    """Seed buyers, products and catalog entries.

    Product P: seller S1, base 120.00, corporate 100.00, qty [2, 10], stock 20.
    Product Q: seller S2, base 50.00, no corporate price, qty [1, 50], stock 10.
    """
    address = make_address(is_default=True)
    buyer = Buyer(
        id="buyer-1",
        email="procurement@acme.example",
        company_name="Acme Corp",
        phone="+91-98765-43210",
        shipping_addresses=[make_address(name="Warehouse"), address],
    )
    pending_buyer = Buyer(
        id="buyer-pending",
        email="new@initech.example",
        company_name="Initech",
        status=BuyerStatus.PENDING,
    )
    suspended_buyer = Buyer(
        id="buyer-suspended",
        email="ops@umbrella.example",
        company_name="Umbrella",
        status=BuyerStatus.SUSPENDED,
    )
    other_buyer = Buyer(
        id="buyer-2",
        email="buyer@globex.example",
        company_name="Globex",
    )

    async with session_factory.begin() as session:
        buyers = BuyerRepository(session)
        for b in (buyer, pending_buyer, suspended_buyer, other_buyer):
            await buyers.add(b)

        now = datetime.now(timezone.utc)
        session.add_all(
            [
                _product("prod-p", SELLER_ONE, "Engraved Desk Organiser", 12000, 20,
                         created_at=now - timedelta(days=3)),
                _product("prod-q", SELLER_TWO, "Ceramic Mug Set", 5000, 10,
                         category="kitchen", created_at=now - timedelta(days=1)),
                _product("prod-r", SELLER_ONE, "Retired Notebook", 3000, 5, is_active=False),
                _product("prod-n", SELLER_TWO, "Uncatalogued Pen", 1000, 100),
            ]
        )
        await session.flush()
        session.add_all(
            [
                CatalogEntry(
                    product_id="prod-p",
                    corporate_price_cents=10000,
                    min_order_qty=2,
                    max_order_qty=10,
                    tags=["desk", "premium"],
                ),
                CatalogEntry(
                    product_id="prod-q",
                    corporate_price_cents=None,
                    min_order_qty=1,
                    max_order_qty=50,
                    tags=["kitchen"],
                ),
                CatalogEntry(product_id="prod-r", min_order_qty=1, max_order_qty=10, tags=[]),
            ]
        )

    return Seed(
        buyer=buyer,
        pending_buyer=pending_buyer,
        suspended_buyer=suspended_buyer,
        other_buyer=other_buyer,
        product_p="prod-p",
        product_q="prod-q",
        inactive_product="prod-r",
        uncatalogued_product="prod-n",
    )


@pytest.fixture
def make_quote(session_factory, seed):
    """Factory inserting a quote addressed to the seeded buyer."""

    async def _make(
        quote_id: str = "quote-1",
        status: QuoteStatus = QuoteStatus.SENT,
        valid_until: datetime | None = None,
        buyer_id: str | None = "buyer-1",
        contact_email: str = "procurement@acme.example",
    ) -> Quote:
        quote = Quote(
            id=quote_id,
            quote_number=f"QT-{quote_id.upper()}",
            buyer_id=buyer_id,
            contact_email=contact_email,
            company_name="Acme Corp",
            seller_id=SELLER_ONE,
            status=status,
            items=[
                QuoteItem(
                    product_id="prod-p",
                    title="Engraved Desk Organiser",
                    quantity=40,
                    unit_price_cents=9000,
                ),
            ],
            total_amount_cents=360000,
            final_amount_cents=342000,
            valid_until=valid_until or datetime.now(timezone.utc) + timedelta(days=7),
        )
        async with session_factory.begin() as session:
            await QuoteRepository(session).add(quote)
        return quote

    return _make


# ============================================================================
# Collaborator Fixtures
# ============================================================================


@pytest.fixture
def gateway() -> StubGateway:
    """In-memory payment gateway."""
    return StubGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Recording notifier."""
    return RecordingNotifier()


# ============================================================================
# Client Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def client(session_factory, gateway, notifier):
    """HTTP client running the app against the test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(seed) -> dict[str, str]:
    """Bearer headers for the seeded active buyer."""
    return {"Authorization": f"Bearer {issue_buyer_token(seed.buyer.id)}"}


def bearer(buyer_id: str) -> dict[str, str]:
    """Bearer headers for any buyer ID."""
    return {"Authorization": f"Bearer {issue_buyer_token(buyer_id)}"}


@pytest.fixture
def headers_for():
    """Factory building bearer headers for any buyer ID."""
    return bearer


@pytest.fixture
def shipping_address() -> ShippingAddress:
    """Shipping address value object."""
    return make_address()


@pytest.fixture
def shipping_payload() -> dict[str, Any]:
    """Shipping address request body."""
    return address_payload()


@pytest.fixture
def failing_notifier() -> RecordingNotifier:
    """Notifier whose every delivery fails."""
    return RecordingNotifier(fail=True)
