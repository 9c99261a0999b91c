"""Payment gateway adapter.

Defines the gateway contract used by the order workflow and an HTTP
implementation for the Cashfree PG REST API. Amounts cross this boundary
in minor units; the adapter converts to the gateway's decimal amounts.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx
import structlog

from b2bportal.infrastructure.config import Settings, settings

logger = structlog.get_logger()

PLACEHOLDER_PHONE = "9999999999"


def normalize_phone(phone: str | None) -> str:
    """Reduce a phone number to the 10 digits the gateway accepts.

    Args:
        phone: Free-form phone number.

    Returns:
        Last 10 digits, or a placeholder when fewer are present.
    """
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) >= 10:
        return digits[-10:]
    return PLACEHOLDER_PHONE


def to_gateway_amount(amount_cents: int) -> float:
    """Convert minor units to the gateway's decimal amount."""
    return float((Decimal(amount_cents) / 100).quantize(Decimal("0.01")))


def from_gateway_amount(value: Any) -> int:
    """Convert a gateway decimal amount to minor units."""
    if value is None:
        return 0
    amount = Decimal(str(value)) * 100
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ============================================================================
# Gateway Data Types
# ============================================================================


@dataclass
class GatewayCustomer:
    """Customer details sent with a payment session request."""

    customer_id: str
    email: str
    phone: str
    name: str


@dataclass
class GatewaySession:
    """Payment session created for a gateway order."""

    gateway_order_id: str
    payment_session_id: str
    amount_cents: int
    order_status: str = "ACTIVE"

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "GatewaySession":
        """Create from gateway API response data."""
        return cls(
            gateway_order_id=data["order_id"],
            payment_session_id=data["payment_session_id"],
            amount_cents=from_gateway_amount(data.get("order_amount")),
            order_status=data.get("order_status", "ACTIVE"),
        )


@dataclass
class GatewayOrder:
    """Gateway view of an order."""

    gateway_order_id: str
    order_status: str
    amount_cents: int

    @property
    def is_paid(self) -> bool:
        return self.order_status == "PAID"

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "GatewayOrder":
        """Create from gateway API response data."""
        return cls(
            gateway_order_id=data["order_id"],
            order_status=data.get("order_status", "UNKNOWN"),
            amount_cents=from_gateway_amount(data.get("order_amount")),
        )


@dataclass
class GatewayPayment:
    """One payment attempt against a gateway order."""

    payment_id: str
    payment_status: str
    amount_cents: int

    @property
    def is_successful(self) -> bool:
        return self.payment_status == "SUCCESS"

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "GatewayPayment":
        """Create from gateway API response data."""
        return cls(
            payment_id=str(data.get("cf_payment_id", "")),
            payment_status=data.get("payment_status", "UNKNOWN"),
            amount_cents=from_gateway_amount(data.get("payment_amount")),
        )


@dataclass
class GatewayRefund:
    """Refund registered with the gateway."""

    refund_id: str
    refund_status: str
    amount_cents: int

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "GatewayRefund":
        """Create from gateway API response data."""
        return cls(
            refund_id=data.get("refund_id", ""),
            refund_status=data.get("refund_status", "PENDING"),
            amount_cents=from_gateway_amount(data.get("refund_amount")),
        )


def find_successful_payment(payments: list[GatewayPayment]) -> GatewayPayment | None:
    """Pick the authoritative successful payment from a payment list."""
    for payment in payments:
        if payment.is_successful:
            return payment
    return None


class PaymentGatewayError(Exception):
    """Error from a payment gateway call."""

    def __init__(
        self, operation: str, message: str, status_code: int | None = None
    ) -> None:
        self.operation = operation
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{operation}] {message}")


# ============================================================================
# Gateway Contract
# ============================================================================


class PaymentGateway(ABC):
    """Remote payment authority.

    Treated as at-least-once and eventually consistent. ``create_refund``
    must be idempotent for a repeated ``refund_id``.
    """

    @abstractmethod
    async def create_session(
        self,
        gateway_order_id: str,
        amount_cents: int,
        customer: GatewayCustomer,
        return_url: str,
    ) -> GatewaySession:
        """Create a payment session for an amount."""

    @abstractmethod
    async def get_order(self, gateway_order_id: str) -> GatewayOrder:
        """Fetch the gateway's order status."""

    @abstractmethod
    async def list_payments(self, gateway_order_id: str) -> list[GatewayPayment]:
        """List payment attempts for a gateway order."""

    @abstractmethod
    async def create_refund(
        self,
        gateway_order_id: str,
        amount_cents: int,
        refund_id: str,
    ) -> GatewayRefund:
        """Refund an amount against a paid gateway order."""

    async def close(self) -> None:
        """Release any held connections."""


# ============================================================================
# Cashfree Implementation
# ============================================================================


class CashfreeGateway(PaymentGateway):
    """HTTP client for the Cashfree PG orders API."""

    def __init__(
        self,
        config: Settings | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize gateway client.

        Args:
            config: Settings carrying credentials and base URL.
            request_id: Optional request ID for correlation.
        """
        self.config = config or settings
        self.request_id = request_id
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "x-client-id": self.config.cashfree_app_id,
                "x-client-secret": self.config.cashfree_secret_key,
                "x-api-version": self.config.cashfree_api_version,
                "Accept": "application/json",
            }
            if self.request_id:
                headers["x-request-id"] = self.request_id
            self._client = httpx.AsyncClient(
                base_url=self.config.cashfree_base_url,
                timeout=self.config.gateway_timeout_seconds,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            client = await self._get_client()
            return await client.request(method, path, json=json)
        except httpx.RequestError as e:
            logger.error(
                "Payment gateway request failed",
                operation=operation,
                path=path,
                error=str(e),
            )
            raise PaymentGatewayError(operation, f"Request failed: {str(e)}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message", response.text)
        except ValueError:
            return response.text

    async def create_session(
        self,
        gateway_order_id: str,
        amount_cents: int,
        customer: GatewayCustomer,
        return_url: str,
    ) -> GatewaySession:
        """Create a gateway order and payment session.

        Args:
            gateway_order_id: Identifier shared by the checkout's orders.
            amount_cents: Combined amount in minor units.
            customer: Buyer details.
            return_url: Where the hosted checkout sends the buyer back.

        Returns:
            Created session.

        Raises:
            PaymentGatewayError: On transport failure or non-2xx response.
        """
        payload = {
            "order_id": gateway_order_id,
            "order_amount": to_gateway_amount(amount_cents),
            "order_currency": self.config.currency,
            "customer_details": {
                "customer_id": customer.customer_id,
                "customer_email": customer.email,
                "customer_phone": customer.phone,
                "customer_name": customer.name,
            },
            "order_meta": {"return_url": return_url},
        }
        response = await self._request("create_session", "POST", "/orders", json=payload)
        if response.status_code not in (200, 201):
            raise PaymentGatewayError(
                "create_session",
                f"Failed to create order: {self._error_message(response)}",
                response.status_code,
            )
        session = GatewaySession.from_api_response(response.json())
        logger.info(
            "Payment session created",
            gateway_order_id=session.gateway_order_id,
            amount_cents=amount_cents,
        )
        return session

    async def get_order(self, gateway_order_id: str) -> GatewayOrder:
        """Fetch order status from the gateway.

        Raises:
            PaymentGatewayError: On transport failure or non-200 response.
        """
        response = await self._request("get_order", "GET", f"/orders/{gateway_order_id}")
        if response.status_code != 200:
            raise PaymentGatewayError(
                "get_order",
                f"Failed to get order: {self._error_message(response)}",
                response.status_code,
            )
        return GatewayOrder.from_api_response(response.json())

    async def list_payments(self, gateway_order_id: str) -> list[GatewayPayment]:
        """List payments for a gateway order.

        Raises:
            PaymentGatewayError: On transport failure or non-200 response.
        """
        response = await self._request(
            "list_payments", "GET", f"/orders/{gateway_order_id}/payments"
        )
        if response.status_code != 200:
            raise PaymentGatewayError(
                "list_payments",
                f"Failed to list payments: {self._error_message(response)}",
                response.status_code,
            )
        return [GatewayPayment.from_api_response(p) for p in response.json() or []]

    async def create_refund(
        self,
        gateway_order_id: str,
        amount_cents: int,
        refund_id: str,
    ) -> GatewayRefund:
        """Refund an amount.

        A 409 for an already registered ``refund_id`` is resolved by
        fetching the existing refund, so repeating a refund is safe.

        Args:
            gateway_order_id: Paid gateway order.
            amount_cents: Amount to refund in minor units.
            refund_id: Caller-supplied refund identifier.

        Returns:
            New or existing refund.

        Raises:
            PaymentGatewayError: On transport failure or rejection.
        """
        payload = {
            "refund_id": refund_id,
            "refund_amount": to_gateway_amount(amount_cents),
        }
        response = await self._request(
            "create_refund", "POST", f"/orders/{gateway_order_id}/refunds", json=payload
        )

        if response.status_code == 409:
            existing = await self._request(
                "create_refund", "GET", f"/orders/{gateway_order_id}/refunds/{refund_id}"
            )
            if existing.status_code == 200:
                logger.info(
                    "Refund already registered",
                    gateway_order_id=gateway_order_id,
                    refund_id=refund_id,
                )
                return GatewayRefund.from_api_response(existing.json())
            raise PaymentGatewayError(
                "create_refund",
                f"Refund conflict: {self._error_message(response)}",
                409,
            )

        if response.status_code not in (200, 201):
            raise PaymentGatewayError(
                "create_refund",
                f"Failed to create refund: {self._error_message(response)}",
                response.status_code,
            )
        return GatewayRefund.from_api_response(response.json())
