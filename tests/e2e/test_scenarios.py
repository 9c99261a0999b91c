"""End-to-end corporate ordering scenarios.

Each scenario drives the HTTP API from checkout through payment
verification and cancellation, checking stock and gateway side effects.
"""

from datetime import datetime, timedelta, timezone

import pytest

from b2bportal.catalog.models import Product


async def _stock(session_factory, product_id: str) -> tuple[int, int]:
    async with session_factory() as session:
        product = await session.get(Product, product_id)
        return product.stock, product.order_count


@pytest.fixture
def place_order(client, auth_headers, seed, shipping_payload):
    """Place 5 x P and 3 x Q and return the checkout body."""

    async def _place() -> dict:
        response = await client.post(
            "/corporate/orders",
            json={
                "items": [
                    {"product_id": seed.product_p, "quantity": 5},
                    {"product_id": seed.product_q, "quantity": 3},
                ],
                "shipping_address": shipping_payload,
            },
            headers=auth_headers,
        )
        assert response.status_code == 201
        return response.json()

    return _place


class TestDirectOrderLifecycle:
    """Checkout, payment and cancellation of a two-seller order."""

    @pytest.mark.asyncio
    async def test_checkout_pay_and_reverify(
        self, client, auth_headers, gateway, session_factory, seed, place_order
    ) -> None:
        """Orders split by seller, confirm on payment and stay confirmed on repeat."""
        checkout = await place_order()

        by_seller = {o["seller_id"]: o["total"]["amount"] for o in checkout["orders"]}
        assert by_seller == {"seller-s1": 50000, "seller-s2": 15000}
        assert checkout["payment"]["amount"]["amount"] == 65000
        assert gateway.sessions[0]["amount_cents"] == 65000
        # Nothing is reserved before payment
        assert await _stock(session_factory, seed.product_p) == (20, 0)

        body = {"gateway_order_id": checkout["payment"]["gateway_order_id"]}
        first = await client.post("/corporate/orders/verify-payment", json=body, headers=auth_headers)
        second = await client.post("/corporate/orders/verify-payment", json=body, headers=auth_headers)

        assert first.status_code == 200
        assert len(first.json()["confirmed_order_ids"]) == 2
        assert second.status_code == 200
        assert second.json()["confirmed_order_ids"] == []
        assert {o["status"] for o in second.json()["orders"]} == {"confirmed"}
        assert await _stock(session_factory, seed.product_p) == (15, 5)
        assert await _stock(session_factory, seed.product_q) == (7, 3)

    @pytest.mark.asyncio
    async def test_cancel_paid_order_refunds_and_restores_stock(
        self, client, auth_headers, gateway, notifier, session_factory, seed, place_order
    ) -> None:
        """Cancelling a paid order returns its stock and refunds the total."""
        checkout = await place_order()
        await client.post(
            "/corporate/orders/verify-payment",
            json={"gateway_order_id": checkout["payment"]["gateway_order_id"]},
            headers=auth_headers,
        )
        order = next(o for o in checkout["orders"] if o["seller_id"] == "seller-s1")

        response = await client.post(
            f"/corporate/orders/{order['id']}/cancel",
            json={"reason": "Budget withdrawn"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["refunded"] is True
        assert data["message"] == "Order cancelled and refund initiated"
        assert data["order"]["payment_status"] == "refunded"
        assert data["order"]["refund_id"] == f"refund_{order['order_number']}"
        assert gateway.refunds == [
            {
                "gateway_order_id": checkout["payment"]["gateway_order_id"],
                "amount_cents": 50000,
                "refund_id": f"refund_{order['order_number']}",
            }
        ]
        assert await _stock(session_factory, seed.product_p) == (20, 0)
        # The other seller's order is untouched
        assert await _stock(session_factory, seed.product_q) == (7, 3)
        assert notifier.events == [(order["id"], "order.cancelled")]

    @pytest.mark.asyncio
    async def test_refund_failure_then_retry(
        self, client, auth_headers, gateway, session_factory, seed, place_order
    ) -> None:
        """A rejected refund leaves the order pending a refund until retried."""
        checkout = await place_order()
        await client.post(
            "/corporate/orders/verify-payment",
            json={"gateway_order_id": checkout["payment"]["gateway_order_id"]},
            headers=auth_headers,
        )
        order = next(o for o in checkout["orders"] if o["seller_id"] == "seller-s2")
        gateway.fail_refund = True

        cancelled = await client.post(
            f"/corporate/orders/{order['id']}/cancel", headers=auth_headers
        )

        assert cancelled.status_code == 200
        assert cancelled.json()["refunded"] is False
        assert cancelled.json()["order"]["status"] == "cancelled"
        assert cancelled.json()["order"]["payment_status"] == "refund_pending"
        assert await _stock(session_factory, seed.product_q) == (10, 0)

        gateway.fail_refund = False
        retried = await client.post(
            f"/corporate/orders/{order['id']}/retry-refund", headers=auth_headers
        )

        assert retried.status_code == 200
        assert retried.json()["payment_status"] == "refunded"
        assert len(gateway.refunds) == 1
        # Stock is not restored twice
        assert await _stock(session_factory, seed.product_q) == (10, 0)


class TestQuoteLifecycle:
    """Approval of negotiated quotes."""

    @pytest.mark.asyncio
    async def test_approved_quote_is_paid_at_quoted_price(
        self, client, auth_headers, make_quote, session_factory, seed
    ) -> None:
        """The order carries the quoted amount and confirms like a direct order."""
        await make_quote()

        approved = await client.post("/corporate/quotes/quote-1/approve", headers=auth_headers)
        assert approved.status_code == 200
        payment = approved.json()["payment"]
        assert payment["amount"]["amount"] == 342000

        verified = await client.post(
            "/corporate/orders/verify-payment",
            json={"gateway_order_id": payment["gateway_order_id"]},
            headers=auth_headers,
        )

        assert verified.status_code == 200
        assert verified.json()["orders"][0]["total"]["amount"] == 342000
        assert verified.json()["orders"][0]["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_expired_quote_cannot_be_approved(
        self, client, auth_headers, gateway, make_quote
    ) -> None:
        """An expired quote is marked expired and opens no payment."""
        await make_quote(valid_until=datetime.now(timezone.utc) - timedelta(minutes=5))

        first = await client.post("/corporate/quotes/quote-1/approve", headers=auth_headers)
        second = await client.post("/corporate/quotes/quote-1/approve", headers=auth_headers)

        assert first.status_code == 409
        assert first.json()["error_code"] == "QUOTE_EXPIRED"
        assert second.status_code == 404
        assert gateway.sessions == []
