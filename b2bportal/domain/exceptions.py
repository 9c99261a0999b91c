"""Domain exceptions.

All domain-level errors that represent business rule violations or
failures of collaborators. Each error class carries a machine-readable
``error_code`` and the HTTP status the API layer reports it with.

Taxonomy:
    ValidationError     - request is well-formed but violates catalog rules.
    NotFoundError       - entity absent or not owned by the caller.
    StateConflictError  - operation invalid for the current lifecycle status.
    UpstreamError       - payment gateway call failed.
    InternalError       - persistence failure or unexpected exception.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Taxonomy
# ============================================================================


class ValidationError(DomainError):
    """Request violates a catalog or ordering rule."""

    error_code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(DomainError):
    """Entity does not exist or does not belong to the caller."""

    error_code = "NOT_FOUND"
    http_status = 404


class StateConflictError(DomainError):
    """Operation is not valid for the entity's current status."""

    error_code = "STATE_CONFLICT"
    http_status = 409


class UpstreamError(DomainError):
    """The payment gateway failed or returned an unexpected response."""

    error_code = "UPSTREAM_ERROR"
    http_status = 502


class InternalError(DomainError):
    """Persistence failure or other unexpected condition."""

    error_code = "INTERNAL_ERROR"
    http_status = 500


# ============================================================================
# Validation Errors
# ============================================================================


class NotInCatalogError(ValidationError):
    """Raised when a product has no active corporate catalog entry."""

    error_code = "NOT_IN_CATALOG"

    def __init__(self, product_id: str) -> None:
        super().__init__(
            f"Product {product_id} is not in the corporate catalog",
            details={"product_id": product_id},
        )


class QuantityOutOfRangeError(ValidationError):
    """Raised when a requested quantity breaches the catalog entry's bounds."""

    error_code = "QUANTITY_OUT_OF_RANGE"

    def __init__(self, product_id: str, quantity: int, bound: str, limit: int) -> None:
        """Initialize quantity out of range error.

        Args:
            product_id: Product the quantity was requested for.
            quantity: Requested quantity.
            bound: Which bound was breached ("min" or "max").
            limit: Value of the breached bound.
        """
        label = "Minimum" if bound == "min" else "Maximum"
        super().__init__(
            f"{label} order quantity for this product is {limit}",
            details={
                "product_id": product_id,
                "quantity": quantity,
                "bound": bound,
                "limit": limit,
            },
        )
        self.bound = bound
        self.limit = limit


class ProductUnavailableError(ValidationError):
    """Raised when the underlying product is missing or inactive."""

    error_code = "PRODUCT_UNAVAILABLE"

    def __init__(self, product_id: str) -> None:
        super().__init__(
            f'Product "{product_id}" is unavailable',
            details={"product_id": product_id},
        )


class ShippingAddressRequiredError(ValidationError):
    """Raised when no shipping address is given and none is saved."""

    error_code = "SHIPPING_ADDRESS_REQUIRED"

    def __init__(self) -> None:
        super().__init__("Shipping address required")


# ============================================================================
# Not Found Errors
# ============================================================================


class OrderNotFoundError(NotFoundError):
    """Raised when an order does not exist for the requesting buyer."""

    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order not found: {order_id}", details={"order_id": order_id})


class NoMatchingOrdersError(NotFoundError):
    """Raised when no local orders share a gateway order identifier."""

    error_code = "NO_MATCHING_ORDERS"

    def __init__(self, gateway_order_id: str) -> None:
        super().__init__(
            "No matching orders found",
            details={"gateway_order_id": gateway_order_id},
        )


class QuoteNotFoundError(NotFoundError):
    """Raised when a quote is absent, foreign, or not in the required status."""

    error_code = "QUOTE_NOT_FOUND"

    def __init__(self, quote_id: str, reason: str = "Quote not found") -> None:
        super().__init__(reason, details={"quote_id": quote_id})


class CatalogProductNotFoundError(NotFoundError):
    """Raised when a catalog detail lookup finds nothing."""

    error_code = "CATALOG_PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str) -> None:
        super().__init__(
            "Product not found in corporate catalog",
            details={"product_id": product_id},
        )


# ============================================================================
# State Conflict Errors
# ============================================================================


class InvalidStateTransitionError(StateConflictError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Order", "Quote").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f'Cannot move {entity_type} {entity_id} with status "{current_state}" '
            f'to "{target_state}"'
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )
        self.current_state = current_state


class QuoteExpiredError(StateConflictError):
    """Raised when a quote's validity deadline has passed."""

    error_code = "QUOTE_EXPIRED"

    def __init__(self, quote_id: str) -> None:
        super().__init__(
            "This quote has expired. Please request a new one.",
            details={"quote_id": quote_id},
        )


class PaymentNotCompleteError(StateConflictError):
    """Raised when the gateway does not report the order as paid."""

    error_code = "PAYMENT_NOT_COMPLETE"

    def __init__(self, gateway_order_id: str, gateway_status: str) -> None:
        super().__init__(
            f"Payment not completed. Status: {gateway_status}",
            details={
                "gateway_order_id": gateway_order_id,
                "gateway_status": gateway_status,
            },
        )
        self.gateway_status = gateway_status


class BuyerNotActiveError(StateConflictError):
    """Raised when a buyer whose account is not active calls the workflow."""

    error_code = "BUYER_NOT_ACTIVE"
    http_status = 403

    def __init__(self, buyer_id: str, status: str) -> None:
        if status == "suspended":
            message = "Corporate account suspended. Contact support."
        else:
            message = (
                "Your corporate account is pending approval. "
                "An admin will review and activate it shortly."
            )
        super().__init__(message, details={"buyer_id": buyer_id, "status": status})


# ============================================================================
# Upstream Errors
# ============================================================================


class PaymentGatewayUnavailableError(UpstreamError):
    """Raised when a payment gateway call fails mid-workflow."""

    error_code = "PAYMENT_GATEWAY_ERROR"

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Payment gateway {operation} failed: {reason}",
            details={"operation": operation, "reason": reason},
        )
