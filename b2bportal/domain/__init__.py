"""Domain layer - Entities, value objects, state machines, exceptions.

This module exports the core domain building blocks:

- **Entities**: Order, Quote, Buyer and the CatalogProduct read model
- **Value Objects**: ShippingAddress
- **State Machines**: OrderStatus, PaymentStatus, QuoteStatus, BuyerStatus
- **Exceptions**: The error taxonomy shared by every layer

Example usage:
    from b2bportal.domain import CatalogProduct, OrderItem

    product = CatalogProduct(
        product_id="p-1",
        catalog_entry_id="c-1",
        seller_id="s-1",
        title="Desk Organiser",
        base_price_cents=12000,
        corporate_price_cents=10000,
        min_order_qty=2,
        max_order_qty=10,
    )
    product.check_quantity(5)
    item = OrderItem.from_catalog_product(product, 5)
    print(item.line_total_cents)  # 50000
"""

from b2bportal.domain.entities import (
    Buyer,
    CatalogProduct,
    Order,
    OrderItem,
    Quote,
    QuoteItem,
    group_items_by_seller,
)
from b2bportal.domain.exceptions import (
    BuyerNotActiveError,
    CatalogProductNotFoundError,
    DomainError,
    InternalError,
    InvalidStateTransitionError,
    NoMatchingOrdersError,
    NotFoundError,
    NotInCatalogError,
    OrderNotFoundError,
    PaymentGatewayUnavailableError,
    PaymentNotCompleteError,
    ProductUnavailableError,
    QuantityOutOfRangeError,
    QuoteExpiredError,
    QuoteNotFoundError,
    ShippingAddressRequiredError,
    StateConflictError,
    UpstreamError,
    ValidationError,
)
from b2bportal.domain.state_machines import (
    BuyerStatus,
    OrderStatus,
    OrderType,
    PaymentStatus,
    QuoteStatus,
    validate_order_transition,
    validate_payment_transition,
    validate_quote_transition,
)
from b2bportal.domain.value_objects import ShippingAddress

__all__ = [
    # Entities
    "Buyer",
    "CatalogProduct",
    "Order",
    "OrderItem",
    "Quote",
    "QuoteItem",
    "group_items_by_seller",
    # Value Objects
    "ShippingAddress",
    # State Machines
    "BuyerStatus",
    "OrderStatus",
    "OrderType",
    "PaymentStatus",
    "QuoteStatus",
    "validate_order_transition",
    "validate_payment_transition",
    "validate_quote_transition",
    # Exceptions
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "StateConflictError",
    "UpstreamError",
    "InternalError",
    "NotInCatalogError",
    "QuantityOutOfRangeError",
    "ProductUnavailableError",
    "ShippingAddressRequiredError",
    "OrderNotFoundError",
    "NoMatchingOrdersError",
    "QuoteNotFoundError",
    "CatalogProductNotFoundError",
    "InvalidStateTransitionError",
    "QuoteExpiredError",
    "PaymentNotCompleteError",
    "BuyerNotActiveError",
    "PaymentGatewayUnavailableError",
]
