"""Corporate order API endpoints.

Provides endpoints for the corporate order lifecycle:
- POST /corporate/orders - place an order (one per seller) and open payment
- POST /corporate/orders/verify-payment - confirm a completed payment
- GET /corporate/orders - list the buyer's orders (paginated)
- GET /corporate/orders/{id} - order details
- POST /corporate/orders/{id}/cancel - cancel and refund
- POST /corporate/orders/{id}/retry-refund - retry a pending refund
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from b2bportal.api.dependencies import (
    CurrentBuyer,
    get_cancellation_service,
    get_order_service,
    get_payment_service,
)
from b2bportal.api.schemas import (
    CancelOrderResponse,
    CheckoutResponse,
    ErrorResponse,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderItemSchema,
    OrderResponse,
    OrdersListResponse,
    PaymentSessionSchema,
    PriceSchema,
    ShippingAddressSchema,
    StockShortfallSchema,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from b2bportal.application.cancellation_service import CancellationService
from b2bportal.application.order_service import CheckoutResult, OrderLineRequest, OrderService
from b2bportal.application.payment_service import PaymentService
from b2bportal.domain.entities import Order
from b2bportal.domain.state_machines import OrderStatus

router = APIRouter(prefix="/corporate/orders", tags=["Orders"])


# ============================================================================
# Converters
# ============================================================================


def order_to_response(order: Order) -> OrderResponse:
    """Convert an Order entity to OrderResponse."""
    currency = order.currency

    items = [
        OrderItemSchema(
            product_id=item.product_id,
            seller_id=item.seller_id,
            sku=item.sku,
            title=item.title,
            image_url=item.image_url,
            quantity=item.quantity,
            unit_price=PriceSchema(amount=item.unit_price_cents, currency=currency),
            line_total=PriceSchema(amount=item.line_total_cents, currency=currency),
        )
        for item in order.items
    ]

    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        order_type=order.order_type.value,
        status=order.status.value,
        payment_status=order.payment_status.value,
        seller_id=order.seller_id,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        shipping_address=ShippingAddressSchema.from_value_object(order.shipping_address),
        items=items,
        item_count=order.item_count,
        item_total=PriceSchema(amount=order.item_total_cents, currency=currency),
        shipping=PriceSchema(amount=order.shipping_cost_cents, currency=currency),
        total=PriceSchema(amount=order.total_cents, currency=currency),
        gateway_order_id=order.gateway_order_id,
        payment_session_id=order.payment_session_id,
        gateway_payment_id=order.gateway_payment_id,
        refund_id=order.refund_id,
        cancel_reason=order.cancel_reason,
        notes=order.notes,
        source_quote_id=order.source_quote_id,
        created_at=order.created_at,
        updated_at=order.updated_at,
        paid_at=order.paid_at,
        cancelled_at=order.cancelled_at,
        refunded_at=order.refunded_at,
    )


def checkout_to_response(result: CheckoutResult, currency: str) -> CheckoutResponse:
    """Convert a CheckoutResult to CheckoutResponse."""
    return CheckoutResponse(
        orders=[order_to_response(o) for o in result.orders],
        payment=PaymentSessionSchema(
            gateway_order_id=result.gateway_order_id,
            payment_session_id=result.payment_session_id,
            amount=PriceSchema(amount=result.amount_cents, currency=currency),
        ),
        app_id=result.app_id,
        env=result.env,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Place corporate order",
    description="Create one order per seller and a single payment session for the total.",
)
async def create_order(
    request: OrderCreateRequest,
    buyer: CurrentBuyer,
    service: Annotated[OrderService, Depends(get_order_service)],
) -> CheckoutResponse:
    """Place a corporate order.

    Args:
        request: Requested lines and shipping address.
        buyer: Authenticated buyer.
        service: Order service.

    Returns:
        Created orders and the payment session.
    """
    result = await service.place_order(
        buyer,
        [OrderLineRequest(product_id=i.product_id, quantity=i.quantity) for i in request.items],
        request.shipping_address.to_value_object(),
    )
    return checkout_to_response(result, service.config.currency)


@router.post(
    "/verify-payment",
    response_model=VerifyPaymentResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Verify payment",
    description="Confirm the checkout's orders once the gateway reports them paid.",
)
async def verify_payment(
    request: VerifyPaymentRequest,
    buyer: CurrentBuyer,
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> VerifyPaymentResponse:
    """Verify a payment.

    Safe to repeat: orders already confirmed are left alone.
    """
    result = await service.verify_payment(buyer, request.gateway_order_id)
    return VerifyPaymentResponse(
        gateway_order_id=result.gateway_order_id,
        orders=[order_to_response(o) for o in result.orders],
        confirmed_order_ids=result.confirmed_order_ids,
        stock_shortfalls=[
            StockShortfallSchema(
                order_id=s.order_id,
                product_id=s.product_id,
                quantity=s.quantity,
                reason=s.reason.value,
            )
            for s in result.shortfalls
        ],
        refund_order_ids=result.refund_order_ids,
    )


@router.get(
    "",
    response_model=OrdersListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List orders",
    description="Get a paginated list of the buyer's orders, newest first.",
)
async def list_orders(
    buyer: CurrentBuyer,
    service: Annotated[OrderService, Depends(get_order_service)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
    order_status: OrderStatus | None = Query(
        default=None, alias="status", description="Filter by status"
    ),
) -> OrdersListResponse:
    """List the buyer's orders with pagination."""
    result = await service.list_orders(buyer, page=page, page_size=page_size, status=order_status)
    return OrdersListResponse(
        items=[order_to_response(o) for o in result.orders],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        has_more=(result.page * result.page_size) < result.total,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get order details",
)
async def get_order(
    order_id: str,
    buyer: CurrentBuyer,
    service: Annotated[OrderService, Depends(get_order_service)],
) -> OrderResponse:
    """Get one of the buyer's orders."""
    return order_to_response(await service.get_order(buyer, order_id))


@router.post(
    "/{order_id}/cancel",
    response_model=CancelOrderResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Cancel order",
    description="Cancel a pending or confirmed order. Paid orders are refunded.",
)
async def cancel_order(
    order_id: str,
    buyer: CurrentBuyer,
    service: Annotated[CancellationService, Depends(get_cancellation_service)],
    request: OrderCancelRequest | None = None,
) -> CancelOrderResponse:
    """Cancel an order.

    A refund the gateway rejects leaves the order in refund_pending;
    the cancellation still succeeds.

    Args:
        order_id: Order identifier.
        buyer: Authenticated buyer.
        service: Cancellation service.
        request: Optional cancellation reason.

    Returns:
        Cancelled order and refund outcome.
    """
    result = await service.cancel_order(buyer, order_id, request.reason if request else None)

    if not result.refund_attempted:
        message = "Order cancelled"
    elif result.refunded:
        message = "Order cancelled and refund initiated"
    else:
        message = "Order cancelled. Refund is pending and will be processed manually."

    return CancelOrderResponse(
        order=order_to_response(result.order),
        refund_attempted=result.refund_attempted,
        refunded=result.refunded,
        message=message,
    )


@router.post(
    "/{order_id}/retry-refund",
    response_model=OrderResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Retry refund",
    description="Re-attempt the refund of a cancelled order whose refund is pending.",
)
async def retry_refund(
    order_id: str,
    buyer: CurrentBuyer,
    service: Annotated[CancellationService, Depends(get_cancellation_service)],
) -> OrderResponse:
    """Retry a pending refund."""
    return order_to_response(await service.retry_refund(buyer, order_id))
