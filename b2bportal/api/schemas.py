"""API schemas for the corporate ordering API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from b2bportal.domain.value_objects import ShippingAddress


# ============================================================================
# Common Schemas
# ============================================================================


class PriceSchema(BaseModel):
    """Price representation."""

    amount: int = Field(..., description="Amount in smallest currency unit (paise)")
    currency: str = Field(default="INR", description="Currency code")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PaginatedResponse(BaseModel):
    """Base paginated response."""

    total: int = Field(..., description="Total number of items")
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    total_pages: int = Field(..., description="Total number of pages")
    has_more: bool = Field(..., description="Whether there are more pages")


class ShippingAddressSchema(BaseModel):
    """Delivery address."""

    name: str = Field(..., min_length=1, max_length=255, description="Recipient name")
    phone: str | None = Field(default=None, max_length=50, description="Recipient phone")
    line1: str = Field(..., min_length=1, max_length=255, description="Address line 1")
    line2: str | None = Field(default=None, max_length=255, description="Address line 2")
    city: str = Field(..., min_length=1, max_length=100, description="City")
    state: str | None = Field(default=None, max_length=100, description="State/province")
    postal_code: str = Field(..., min_length=1, max_length=20, description="Postal/PIN code")
    country: str = Field(default="IN", min_length=2, max_length=2, description="ISO country code")

    def to_value_object(self) -> ShippingAddress:
        """Convert to the domain value object."""
        return ShippingAddress(
            name=self.name,
            phone=self.phone,
            line1=self.line1,
            line2=self.line2,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country=self.country.upper(),
        )

    @classmethod
    def from_value_object(cls, address: ShippingAddress) -> "ShippingAddressSchema":
        """Build from the domain value object."""
        return cls(
            name=address.name,
            phone=address.phone,
            line1=address.line1,
            line2=address.line2,
            city=address.city,
            state=address.state,
            postal_code=address.postal_code,
            country=address.country,
        )


# ============================================================================
# Catalog Schemas
# ============================================================================


class CatalogProductSchema(BaseModel):
    """Product as seen in the corporate catalog."""

    product_id: str = Field(..., description="Product ID")
    catalog_entry_id: str = Field(..., description="Catalog entry ID")
    title: str = Field(..., description="Product title")
    description: str | None = Field(default=None, description="Product description")
    category: str | None = Field(default=None, description="Category slug")
    seller_id: str = Field(..., description="Fulfilling seller")
    seller_name: str | None = Field(default=None, description="Seller display name")
    sku: str = Field(default="", description="Stock keeping unit")
    image_url: str = Field(default="", description="Primary image URL")
    price: PriceSchema = Field(..., description="Effective corporate unit price")
    base_price: PriceSchema = Field(..., description="Regular unit price")
    min_order_qty: int = Field(..., description="Minimum quantity per order")
    max_order_qty: int = Field(..., description="Maximum quantity per order")
    tags: list[str] = Field(default_factory=list, description="Catalog tags")
    stock: int = Field(..., description="Units in stock")


class CatalogListResponse(PaginatedResponse):
    """Paginated corporate catalog."""

    items: list[CatalogProductSchema] = Field(..., description="Catalog products")
    tags: list[str] = Field(default_factory=list, description="All tags in the catalog")


# ============================================================================
# Order Schemas
# ============================================================================


class OrderLineSchema(BaseModel):
    """A requested catalog line."""

    product_id: str = Field(..., min_length=1, description="Product ID")
    quantity: int = Field(..., ge=1, description="Units requested")


class OrderCreateRequest(BaseModel):
    """Request to place a corporate order."""

    items: list[OrderLineSchema] = Field(..., min_length=1, description="Requested lines")
    shipping_address: ShippingAddressSchema = Field(..., description="Delivery address")


class VerifyPaymentRequest(BaseModel):
    """Request to verify a checkout's payment."""

    gateway_order_id: str = Field(
        ..., min_length=1, max_length=64, description="Gateway order ID returned at checkout"
    )


class OrderCancelRequest(BaseModel):
    """Request to cancel an order."""

    reason: str | None = Field(
        default=None, max_length=500, description="Reason for cancellation"
    )


class OrderItemSchema(BaseModel):
    """Item in an order."""

    product_id: str = Field(..., description="Product ID")
    seller_id: str | None = Field(default=None, description="Fulfilling seller")
    sku: str = Field(default="", description="Stock keeping unit")
    title: str = Field(..., description="Product title")
    image_url: str = Field(default="", description="Product image URL")
    quantity: int = Field(..., description="Quantity ordered")
    unit_price: PriceSchema = Field(..., description="Unit price")
    line_total: PriceSchema = Field(..., description="Line total")


class OrderResponse(BaseModel):
    """Order details response."""

    id: str = Field(..., description="Order ID")
    order_number: str = Field(..., description="Human-readable order number")
    order_type: str = Field(..., description="b2b_direct or b2b_quote")
    status: str = Field(..., description="Order status")
    payment_status: str = Field(..., description="Payment status")
    seller_id: str | None = Field(default=None, description="Fulfilling seller")
    customer_email: str = Field(..., description="Buyer email")
    customer_phone: str | None = Field(default=None, description="Buyer phone")
    shipping_address: ShippingAddressSchema = Field(..., description="Shipping address")
    items: list[OrderItemSchema] = Field(..., description="Order items")
    item_count: int = Field(..., description="Total units")
    item_total: PriceSchema = Field(..., description="Items subtotal")
    shipping: PriceSchema = Field(..., description="Shipping cost")
    total: PriceSchema = Field(..., description="Order total")
    gateway_order_id: str | None = Field(default=None, description="Shared gateway order ID")
    payment_session_id: str | None = Field(default=None, description="Payment session ID")
    gateway_payment_id: str | None = Field(default=None, description="Gateway payment ID")
    refund_id: str | None = Field(default=None, description="Refund ID")
    cancel_reason: str | None = Field(default=None, description="Cancellation reason")
    notes: str | None = Field(default=None, description="Order notes")
    source_quote_id: str | None = Field(default=None, description="Quote this order came from")
    created_at: datetime = Field(..., description="When the order was created")
    updated_at: datetime = Field(..., description="When the order was last updated")
    paid_at: datetime | None = Field(default=None, description="When payment was verified")
    cancelled_at: datetime | None = Field(default=None, description="When cancelled")
    refunded_at: datetime | None = Field(default=None, description="When refunded")


class OrdersListResponse(PaginatedResponse):
    """Paginated list of orders."""

    items: list[OrderResponse] = Field(..., description="List of orders")


class PaymentSessionSchema(BaseModel):
    """Payment session the client completes with the gateway."""

    gateway_order_id: str = Field(..., description="Gateway order ID")
    payment_session_id: str = Field(..., description="Payment session ID")
    amount: PriceSchema = Field(..., description="Amount to pay")


class CheckoutResponse(BaseModel):
    """Orders created by a checkout plus its payment session."""

    orders: list[OrderResponse] = Field(..., description="One order per seller")
    payment: PaymentSessionSchema = Field(..., description="Payment session")
    app_id: str = Field(..., description="Gateway app ID for the client SDK")
    env: str = Field(..., description="Gateway environment")


class StockShortfallSchema(BaseModel):
    """Line whose stock could not be committed."""

    order_id: str
    product_id: str
    quantity: int
    reason: str


class VerifyPaymentResponse(BaseModel):
    """Result of a payment verification."""

    gateway_order_id: str = Field(..., description="Gateway order ID")
    orders: list[OrderResponse] = Field(..., description="Orders covered by the payment")
    confirmed_order_ids: list[str] = Field(
        default_factory=list, description="Orders confirmed by this call"
    )
    stock_shortfalls: list[StockShortfallSchema] = Field(
        default_factory=list, description="Lines whose stock was not committed"
    )
    refund_order_ids: list[str] = Field(
        default_factory=list,
        description="Cancelled orders whose captured payment is being refunded",
    )


class CancelOrderResponse(BaseModel):
    """Result of a cancellation."""

    order: OrderResponse = Field(..., description="Cancelled order")
    refund_attempted: bool = Field(..., description="Whether a refund was requested")
    refunded: bool = Field(..., description="Whether the gateway accepted the refund")
    message: str = Field(..., description="Outcome summary")


# ============================================================================
# Quote Schemas
# ============================================================================


class QuoteItemSchema(BaseModel):
    """Line in a quote."""

    product_id: str
    title: str
    image_url: str = ""
    quantity: int
    unit_price: PriceSchema


class QuoteResponse(BaseModel):
    """Quote details."""

    id: str = Field(..., description="Quote ID")
    quote_number: str = Field(..., description="Human-readable quote number")
    status: str = Field(..., description="Quote status")
    company_name: str = Field(..., description="Company the quote is for")
    contact_email: str = Field(..., description="Contact email")
    items: list[QuoteItemSchema] = Field(..., description="Quoted lines")
    total_amount: PriceSchema = Field(..., description="Sum of quoted lines")
    final_amount: PriceSchema = Field(..., description="Amount payable")
    valid_until: datetime | None = Field(default=None, description="Validity deadline")
    converted_order_id: str | None = Field(default=None, description="Order created on approval")
    client_notes: str | None = Field(default=None, description="Buyer's note")
    created_at: datetime = Field(..., description="When the quote was created")


class QuotesListResponse(BaseModel):
    """Quotes addressed to the buyer."""

    items: list[QuoteResponse] = Field(..., description="Quotes, newest first")
    total: int = Field(..., description="Number of quotes")


class QuoteApproveRequest(BaseModel):
    """Request to approve a quote."""

    shipping_address: ShippingAddressSchema | None = Field(
        default=None, description="Delivery address, defaults to the saved default address"
    )


class QuoteRejectRequest(BaseModel):
    """Request to reject a quote."""

    reason: str | None = Field(default=None, max_length=1000, description="Reason for rejection")
