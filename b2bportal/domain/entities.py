"""Domain entities.

Orders, quotes, buyers and the catalog read model. Entities here carry
no persistence logic: repositories load them from rows and apply state
changes through conditional updates, using the validators in
``state_machines`` to reject invalid transitions before any write.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone

from b2bportal.domain.exceptions import QuantityOutOfRangeError
from b2bportal.domain.state_machines import (
    BuyerStatus,
    OrderStatus,
    OrderType,
    PaymentStatus,
    QuoteStatus,
)
from b2bportal.domain.value_objects import ShippingAddress


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# Buyer
# ============================================================================


@dataclass
class Buyer:
    """Authenticated corporate buyer.

    Supplied by the authentication collaborator. The order workflow
    trusts this principal and only checks its lifecycle status.
    """

    id: str
    email: str
    company_name: str
    status: BuyerStatus = BuyerStatus.ACTIVE
    phone: str | None = None
    shipping_addresses: list[ShippingAddress] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == BuyerStatus.ACTIVE

    def default_address(self) -> ShippingAddress | None:
        """Get the default saved address, falling back to the first one.

        Returns:
            Saved address, or None when the buyer has none.
        """
        for address in self.shipping_addresses:
            if address.is_default:
                return address
        return self.shipping_addresses[0] if self.shipping_addresses else None


# ============================================================================
# Catalog Read Model
# ============================================================================


@dataclass
class CatalogProduct:
    """An active catalog entry joined with its product.

    Attributes:
        product_id: Product identifier.
        catalog_entry_id: Catalog entry identifier.
        seller_id: Seller fulfilling the product.
        title: Product title.
        base_price_cents: Product list price.
        corporate_price_cents: Negotiated price, overrides the base price when set.
        min_order_qty: Inclusive lower quantity bound.
        max_order_qty: Inclusive upper quantity bound.
        stock: Units currently in stock.
        order_count: Units sold (popularity).
        is_active: Whether the product itself is active.
    """

    product_id: str
    catalog_entry_id: str
    seller_id: str
    title: str
    base_price_cents: int
    min_order_qty: int
    max_order_qty: int
    corporate_price_cents: int | None = None
    seller_name: str | None = None
    description: str | None = None
    category: str | None = None
    sku: str = ""
    image_url: str = ""
    tags: list[str] = field(default_factory=list)
    stock: int = 0
    order_count: int = 0
    is_active: bool = True
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def effective_price_cents(self) -> int:
        """Price the buyer pays per unit."""
        if self.corporate_price_cents:
            return self.corporate_price_cents
        return self.base_price_cents

    def check_quantity(self, quantity: int) -> None:
        """Validate a requested quantity against the inclusive bounds.

        Args:
            quantity: Requested quantity.

        Raises:
            QuantityOutOfRangeError: If quantity is below min or above max.
        """
        if quantity < self.min_order_qty:
            raise QuantityOutOfRangeError(self.product_id, quantity, "min", self.min_order_qty)
        if quantity > self.max_order_qty:
            raise QuantityOutOfRangeError(self.product_id, quantity, "max", self.max_order_qty)


# ============================================================================
# Order
# ============================================================================


@dataclass
class OrderItem:
    """A line item in an order.

    Order items are immutable snapshots of the product at the time
    of order creation. ``stock_committed`` records whether payment
    confirmation actually took the units out of stock.
    """

    product_id: str
    title: str
    quantity: int
    unit_price_cents: int
    seller_id: str | None = None
    sku: str = ""
    image_url: str = ""
    id: str | None = None
    stock_committed: bool = False

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    @classmethod
    def from_catalog_product(cls, product: CatalogProduct, quantity: int) -> "OrderItem":
        """Snapshot a catalog product into an order line.

        Args:
            product: Catalog product being ordered.
            quantity: Validated quantity.

        Returns:
            OrderItem priced at the effective corporate price.
        """
        return cls(
            product_id=product.product_id,
            title=product.title,
            quantity=quantity,
            unit_price_cents=product.effective_price_cents,
            seller_id=product.seller_id,
            sku=product.sku,
            image_url=product.image_url,
        )


@dataclass(kw_only=True)
class Order:
    """One order record per (checkout, seller).

    All orders created by one checkout share ``gateway_order_id`` and
    ``payment_session_id``.
    """

    id: str
    order_number: str
    order_type: OrderType
    buyer_id: str
    customer_email: str
    customer_phone: str | None
    seller_id: str | None
    shipping_address: ShippingAddress
    items: list[OrderItem]
    item_total_cents: int
    total_cents: int
    shipping_cost_cents: int = 0
    commission_rate: int = 0
    commission_cents: int = 0
    gateway_fee_cents: int = 0
    seller_amount_cents: int = 0
    currency: str = "INR"
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    gateway_order_id: str | None = None
    payment_session_id: str | None = None
    gateway_payment_id: str | None = None
    refund_id: str | None = None
    cancel_reason: str | None = None
    notes: str | None = None
    source_quote_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def refund_reference(self) -> str:
        """Refund identifier for this order.

        Derived from the order number so that a retried cancellation or
        refund reuses the identifier and the gateway can de-duplicate it.
        """
        return f"refund_{self.order_number}"


def group_items_by_seller(items: list[OrderItem]) -> dict[str, list[OrderItem]]:
    """Partition order lines by fulfilling seller, keeping request order.

    Args:
        items: Priced order lines.

    Returns:
        Mapping of seller id to that seller's lines.
    """
    groups: dict[str, list[OrderItem]] = defaultdict(list)
    for item in items:
        groups[item.seller_id or ""].append(item)
    return dict(groups)


# ============================================================================
# Quote
# ============================================================================


@dataclass
class QuoteItem:
    """A priced line in a seller's quote."""

    product_id: str
    title: str
    quantity: int
    unit_price_cents: int
    image_url: str = ""


@dataclass(kw_only=True)
class Quote:
    """Seller-authored price proposal addressed to a corporate buyer."""

    id: str
    quote_number: str
    contact_email: str
    company_name: str
    items: list[QuoteItem]
    total_amount_cents: int
    final_amount_cents: int
    buyer_id: str | None = None
    seller_id: str | None = None
    status: QuoteStatus = QuoteStatus.SENT
    valid_until: datetime | None = None
    converted_order_id: str | None = None
    client_notes: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    def is_addressed_to(self, buyer: Buyer) -> bool:
        """Check whether the buyer may see and act on this quote."""
        if self.buyer_id and self.buyer_id == buyer.id:
            return True
        return self.contact_email.lower() == buyer.email.lower()

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check the validity deadline.

        Args:
            now: Reference time, defaults to current UTC time.

        Returns:
            True if the deadline has passed.
        """
        if self.valid_until is None:
            return False
        return (now or _utcnow()) > _as_utc(self.valid_until)
