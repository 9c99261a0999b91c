"""Tests for corporate quote endpoints."""

from datetime import datetime, timedelta, timezone

import pytest

from b2bportal.domain.state_machines import QuoteStatus


class TestQuoteReads:
    """Tests for quote listing and details."""

    @pytest.mark.asyncio
    async def test_list_quotes(self, client, auth_headers, make_quote) -> None:
        """Only the buyer's quotes are listed."""
        await make_quote("quote-1")
        await make_quote("quote-2", status=QuoteStatus.EXPIRED)
        await make_quote("quote-3", buyer_id="buyer-2", contact_email="buyer@globex.example")

        response = await client.get("/corporate/quotes", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {q["id"] for q in data["items"]} == {"quote-1", "quote-2"}

    @pytest.mark.asyncio
    async def test_get_quote(self, client, auth_headers, make_quote) -> None:
        """Quote details include priced items."""
        await make_quote()

        response = await client.get("/corporate/quotes/quote-1", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "sent"
        assert data["final_amount"]["amount"] == 342000
        assert data["items"][0]["unit_price"]["amount"] == 9000

    @pytest.mark.asyncio
    async def test_missing_quote(self, client, auth_headers, seed) -> None:
        """Unknown quotes are a 404."""
        response = await client.get("/corporate/quotes/nope", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error_code"] == "QUOTE_NOT_FOUND"


class TestQuoteDecisions:
    """Tests for approving and rejecting quotes."""

    @pytest.mark.asyncio
    async def test_approve_with_saved_address(self, client, auth_headers, make_quote) -> None:
        """Approval without a body falls back to the saved address."""
        await make_quote()

        response = await client.post("/corporate/quotes/quote-1/approve", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data["orders"]) == 1
        assert data["orders"][0]["order_type"] == "b2b_quote"
        assert data["orders"][0]["source_quote_id"] == "quote-1"
        assert data["payment"]["amount"]["amount"] == 342000

        quote = (await client.get("/corporate/quotes/quote-1", headers=auth_headers)).json()
        assert quote["status"] == "approved"
        assert quote["converted_order_id"] == data["orders"][0]["id"]

    @pytest.mark.asyncio
    async def test_approve_with_address(
        self, client, auth_headers, make_quote, shipping_payload
    ) -> None:
        """A supplied address is used for the order."""
        await make_quote()

        response = await client.post(
            "/corporate/quotes/quote-1/approve",
            json={"shipping_address": shipping_payload},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["orders"][0]["shipping_address"]["name"] == "Priya Raman"

    @pytest.mark.asyncio
    async def test_approve_expired_quote(self, client, auth_headers, make_quote) -> None:
        """An expired quote is a 409 and becomes expired."""
        await make_quote(valid_until=datetime.now(timezone.utc) - timedelta(days=1))

        response = await client.post("/corporate/quotes/quote-1/approve", headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["error_code"] == "QUOTE_EXPIRED"
        quote = (await client.get("/corporate/quotes/quote-1", headers=auth_headers)).json()
        assert quote["status"] == "expired"

    @pytest.mark.asyncio
    async def test_reject_quote(self, client, auth_headers, make_quote) -> None:
        """Rejection stores the note."""
        await make_quote()

        response = await client.post(
            "/corporate/quotes/quote-1/reject",
            json={"reason": "Over budget"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "rejected"
        assert data["client_notes"] == "Over budget"

    @pytest.mark.asyncio
    async def test_reject_reason_is_validated(self, client, auth_headers, make_quote) -> None:
        """An overlong rejection reason is refused and the quote stays sent."""
        await make_quote()

        response = await client.post(
            "/corporate/quotes/quote-1/reject",
            json={"reason": "x" * 1001},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert response.json()["details"][0]["loc"] == ["body", "reason"]
        quote = (await client.get("/corporate/quotes/quote-1", headers=auth_headers)).json()
        assert quote["status"] == "sent"

    @pytest.mark.asyncio
    async def test_reject_foreign_quote(self, client, auth_headers, make_quote) -> None:
        """Rejecting another buyer's quote is a 404."""
        await make_quote("quote-9", buyer_id="buyer-2", contact_email="buyer@globex.example")

        response = await client.post("/corporate/quotes/quote-9/reject", headers=auth_headers)

        assert response.status_code == 404
