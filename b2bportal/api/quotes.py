"""Corporate quote API endpoints.

- GET /corporate/quotes - quotes addressed to the buyer
- GET /corporate/quotes/{id} - quote details
- POST /corporate/quotes/{id}/approve - convert to an order and open payment
- POST /corporate/quotes/{id}/reject - decline the quote
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from b2bportal.api.dependencies import CurrentBuyer, get_quote_service
from b2bportal.api.orders import checkout_to_response
from b2bportal.api.schemas import (
    CheckoutResponse,
    ErrorResponse,
    PriceSchema,
    QuoteApproveRequest,
    QuoteItemSchema,
    QuoteRejectRequest,
    QuoteResponse,
    QuotesListResponse,
)
from b2bportal.application.quote_service import QuoteService
from b2bportal.domain.entities import Quote

router = APIRouter(prefix="/corporate/quotes", tags=["Quotes"])


def quote_to_response(quote: Quote, currency: str) -> QuoteResponse:
    """Convert a Quote entity to QuoteResponse."""
    return QuoteResponse(
        id=quote.id,
        quote_number=quote.quote_number,
        status=quote.status.value,
        company_name=quote.company_name,
        contact_email=quote.contact_email,
        items=[
            QuoteItemSchema(
                product_id=item.product_id,
                title=item.title,
                image_url=item.image_url,
                quantity=item.quantity,
                unit_price=PriceSchema(amount=item.unit_price_cents, currency=currency),
            )
            for item in quote.items
        ],
        total_amount=PriceSchema(amount=quote.total_amount_cents, currency=currency),
        final_amount=PriceSchema(amount=quote.final_amount_cents, currency=currency),
        valid_until=quote.valid_until,
        converted_order_id=quote.converted_order_id,
        client_notes=quote.client_notes,
        created_at=quote.created_at,
    )


@router.get(
    "",
    response_model=QuotesListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List quotes",
)
async def list_quotes(
    buyer: CurrentBuyer,
    service: Annotated[QuoteService, Depends(get_quote_service)],
) -> QuotesListResponse:
    """List quotes addressed to the buyer, newest first."""
    quotes = await service.list_quotes(buyer)
    currency = service.config.currency
    return QuotesListResponse(
        items=[quote_to_response(q, currency) for q in quotes],
        total=len(quotes),
    )


@router.get(
    "/{quote_id}",
    response_model=QuoteResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get quote details",
)
async def get_quote(
    quote_id: str,
    buyer: CurrentBuyer,
    service: Annotated[QuoteService, Depends(get_quote_service)],
) -> QuoteResponse:
    """Get a quote addressed to the buyer."""
    quote = await service.get_quote(buyer, quote_id)
    return quote_to_response(quote, service.config.currency)


@router.post(
    "/{quote_id}/approve",
    response_model=CheckoutResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Approve quote",
    description="Convert a sent quote into an order and open a payment session.",
)
async def approve_quote(
    quote_id: str,
    buyer: CurrentBuyer,
    service: Annotated[QuoteService, Depends(get_quote_service)],
    request: QuoteApproveRequest | None = None,
) -> CheckoutResponse:
    """Approve a quote.

    Args:
        quote_id: Quote identifier.
        buyer: Authenticated buyer.
        service: Quote service.
        request: Optional shipping address override.

    Returns:
        The created order and its payment session.
    """
    address = None
    if request is not None and request.shipping_address is not None:
        address = request.shipping_address.to_value_object()
    result = await service.approve_quote(buyer, quote_id, address)
    return checkout_to_response(result, service.config.currency)


@router.post(
    "/{quote_id}/reject",
    response_model=QuoteResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Reject quote",
)
async def reject_quote(
    quote_id: str,
    buyer: CurrentBuyer,
    service: Annotated[QuoteService, Depends(get_quote_service)],
    request: QuoteRejectRequest | None = None,
) -> QuoteResponse:
    """Reject a sent quote."""
    quote = await service.reject_quote(buyer, quote_id, request.reason if request else None)
    return quote_to_response(quote, service.config.currency)
