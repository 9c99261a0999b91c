"""Tests for order identifier generation."""

import re

from b2bportal.infrastructure.identifiers import OrderNumberGenerator


class TestOrderNumberGenerator:
    """Tests for OrderNumberGenerator."""

    def test_format(self) -> None:
        """Identifiers are prefix, date and an upper-case hex suffix."""
        number = OrderNumberGenerator("GFT-B2B").next_order_number()
        assert re.fullmatch(r"GFT-B2B-\d{8}-[0-9A-F]{10}", number)

    def test_identifiers_are_unique(self) -> None:
        """Many identifiers never collide."""
        generator = OrderNumberGenerator("GFT-B2B")
        minted = {generator.next_order_number() for _ in range(500)}
        minted |= {generator.next_gateway_order_id() for _ in range(500)}
        assert len(minted) == 1000

    def test_prefix_defaults_to_settings(self) -> None:
        """The configured prefix is used when none is given."""
        assert OrderNumberGenerator().next_gateway_order_id().startswith("GFT-B2B-")
