"""State machines for domain entities.

Deterministic state machines that define valid state transitions
for orders, order payments, quotes and buyer accounts. State machines
enforce business rules about what operations are valid in each state.
"""

from enum import Enum

from b2bportal.domain.exceptions import InvalidStateTransitionError


# ============================================================================
# Order State Machine
# ============================================================================


class OrderType(str, Enum):
    """How an order entered the system."""

    DIRECT = "b2b_direct"
    QUOTE = "b2b_quote"


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram:
        PENDING ───────────────┐
          │                    │ cancel
          │ payment verified   ▼
          ▼                CANCELLED
        CONFIRMED ─────────────┘
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states.

        Returns:
            List of states that can be transitioned to.
        """
        return sorted(_ORDER_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_cancellable(self) -> bool:
        """Check if order can be cancelled.

        Returns:
            True if order can be cancelled.
        """
        return self in {OrderStatus.PENDING, OrderStatus.CONFIRMED}

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state.

        Returns:
            True if no further transitions are possible.
        """
        return len(_ORDER_TRANSITIONS.get(self, set())) == 0


# Order state transitions
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.CANCELLED},
    OrderStatus.CANCELLED: set(),  # Terminal state
}


# ============================================================================
# Payment State Machine
# ============================================================================


class PaymentStatus(str, Enum):
    """Payment state of a single order.

    State diagram:
        UNPAID ──► PAID ──► REFUNDED
                     │          ▲
                     ▼          │ retry refund
                REFUND_PENDING ─┘
    """

    UNPAID = "unpaid"
    PAID = "paid"
    REFUND_PENDING = "refund_pending"
    REFUNDED = "refunded"

    def can_transition_to(self, target: "PaymentStatus") -> bool:
        return target in _PAYMENT_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["PaymentStatus"]:
        return sorted(_PAYMENT_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_terminal(self) -> bool:
        return len(_PAYMENT_TRANSITIONS.get(self, set())) == 0


_PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.UNPAID: {PaymentStatus.PAID},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED, PaymentStatus.REFUND_PENDING},
    PaymentStatus.REFUND_PENDING: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal state
}


# ============================================================================
# Quote State Machine
# ============================================================================


class QuoteStatus(str, Enum):
    """Seller-authored quote lifecycle states.

    State diagram:
        SENT ──────────────────────────► EXPIRED
          │           │
          │ approve   │ reject
          ▼           ▼
        APPROVED    REJECTED

    CONVERTED is set by back-office tooling and is only ever read here.
    """

    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"

    def can_transition_to(self, target: "QuoteStatus") -> bool:
        return target in _QUOTE_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["QuoteStatus"]:
        return sorted(_QUOTE_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state.

        Returns:
            True if no further transitions are possible.
        """
        return self != QuoteStatus.SENT

    def is_actionable(self) -> bool:
        """Check if the buyer can still approve or reject the quote.

        Returns:
            True if quote is awaiting the buyer's decision.
        """
        return self == QuoteStatus.SENT


_QUOTE_TRANSITIONS: dict[QuoteStatus, set[QuoteStatus]] = {
    QuoteStatus.SENT: {QuoteStatus.APPROVED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED},
    QuoteStatus.APPROVED: set(),  # Terminal state
    QuoteStatus.REJECTED: set(),  # Terminal state
    QuoteStatus.EXPIRED: set(),  # Terminal state
    QuoteStatus.CONVERTED: set(),  # Terminal state
}

# Statuses a buyer is allowed to see
BUYER_VISIBLE_QUOTE_STATUSES: frozenset[QuoteStatus] = frozenset(
    {
        QuoteStatus.SENT,
        QuoteStatus.APPROVED,
        QuoteStatus.REJECTED,
        QuoteStatus.EXPIRED,
        QuoteStatus.CONVERTED,
    }
)


# ============================================================================
# Buyer Account Status
# ============================================================================


class BuyerStatus(str, Enum):
    """Corporate buyer account lifecycle, owned by the authentication side."""

    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"


# ============================================================================
# Transition Validators
# ============================================================================


def validate_order_transition(
    order_id: str,
    current_status: OrderStatus,
    target_status: OrderStatus,
) -> None:
    """Validate and raise if order state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_status: Current order status.
        target_status: Target order status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Order",
            entity_id=order_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


def validate_payment_transition(
    order_id: str,
    current_status: PaymentStatus,
    target_status: PaymentStatus,
) -> None:
    """Validate and raise if an order's payment transition is invalid.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Payment",
            entity_id=order_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


def validate_quote_transition(
    quote_id: str,
    current_status: QuoteStatus,
    target_status: QuoteStatus,
) -> None:
    """Validate and raise if quote state transition is invalid.

    Args:
        quote_id: Quote identifier for error message.
        current_status: Current quote status.
        target_status: Target quote status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Quote",
            entity_id=quote_id,
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )
