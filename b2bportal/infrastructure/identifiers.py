"""Order number and gateway order identifier generation."""

from datetime import datetime, timezone
from typing import Protocol
from uuid import uuid4

from b2bportal.infrastructure.config import settings


class IdentifierGenerator(Protocol):
    """Source of unique human-readable identifiers."""

    def next_order_number(self) -> str:
        """Mint an order number."""
        ...

    def next_gateway_order_id(self) -> str:
        """Mint the identifier shared by one checkout's orders."""
        ...


class OrderNumberGenerator:
    """Date-stamped identifiers with a UUID-derived suffix.

    Format: ``<prefix>-<YYYYMMDD>-<10 hex chars>``, e.g.
    ``GFT-B2B-20261018-3F9A0C21BE``.
    """

    def __init__(self, prefix: str | None = None, suffix_length: int = 10) -> None:
        self.prefix = prefix or settings.order_number_prefix
        self.suffix_length = suffix_length

    def _mint(self) -> str:
        date = datetime.now(timezone.utc).strftime("%Y%m%d")
        suffix = uuid4().hex[: self.suffix_length].upper()
        return f"{self.prefix}-{date}-{suffix}"

    def next_order_number(self) -> str:
        return self._mint()

    def next_gateway_order_id(self) -> str:
        return self._mint()
