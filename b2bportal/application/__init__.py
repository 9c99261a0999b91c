"""Application layer - Use cases and orchestration.

This module contains application services that orchestrate
domain logic and infrastructure to implement use cases.
"""

from b2bportal.application.cancellation_service import CancellationResult, CancellationService
from b2bportal.application.order_service import (
    CheckoutResult,
    OrderLineRequest,
    OrderPage,
    OrderService,
)
from b2bportal.application.payment_service import (
    PaymentService,
    StockShortfall,
    VerificationResult,
)
from b2bportal.application.quote_service import QuoteService

__all__ = [
    "CancellationResult",
    "CancellationService",
    "CheckoutResult",
    "OrderLineRequest",
    "OrderPage",
    "OrderService",
    "PaymentService",
    "QuoteService",
    "StockShortfall",
    "VerificationResult",
]
