"""Order status notifications.

Notifications are sent after order state is durable. Senders never
raise: delivery failures are logged and dropped.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from b2bportal.domain.entities import Buyer, Order
from b2bportal.infrastructure.config import settings

logger = structlog.get_logger()


def notification_payload(buyer: Buyer, order: Order, event: str) -> dict[str, Any]:
    """Build the JSON body describing an order event."""
    return {
        "event": event,
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "total_cents": order.total_cents,
        "currency": order.currency,
        "buyer_id": buyer.id,
        "email": buyer.email,
        "company_name": buyer.company_name,
    }


class Notifier(ABC):
    """Best-effort delivery of order status changes to the buyer."""

    async def send_order_status(self, buyer: Buyer, order: Order, event: str) -> None:
        """Send a notification, logging instead of raising on failure.

        Args:
            buyer: Buyer to notify.
            order: Order in its new state.
            event: Event name, e.g. ``order.cancelled``.
        """
        try:
            await self._deliver(buyer, order, event)
        except Exception as e:
            logger.warning(
                "Order notification failed",
                order_id=order.id,
                notification_event=event,
                error=str(e),
            )

    @abstractmethod
    async def _deliver(self, buyer: Buyer, order: Order, event: str) -> None:
        """Deliver the notification."""


class LoggingNotifier(Notifier):
    """Records notifications in the application log."""

    async def _deliver(self, buyer: Buyer, order: Order, event: str) -> None:
        logger.info(
            "Order notification",
            notification_event=event,
            order_id=order.id,
            order_number=order.order_number,
            email=buyer.email,
        )


class WebhookNotifier(Notifier):
    """POSTs notifications as JSON to a configured URL."""

    def __init__(self, url: str, timeout: float = 5.0) -> None:
        """Initialize notifier.

        Args:
            url: Endpoint receiving notification bodies.
            timeout: Request timeout in seconds.
        """
        self.url = url
        self.timeout = timeout

    async def _deliver(self, buyer: Buyer, order: Order, event: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=notification_payload(buyer, order, event))
            response.raise_for_status()
        logger.info(
            "Order notification delivered",
            notification_event=event,
            order_id=order.id,
        )


def build_notifier() -> Notifier:
    """Create the notifier selected by settings."""
    if settings.notification_webhook_url:
        return WebhookNotifier(settings.notification_webhook_url)
    return LoggingNotifier()
