"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

from dataclasses import dataclass
from typing import Any, Self


@dataclass(frozen=True)
class ShippingAddress:
    """Delivery address for an order or one of a buyer's saved addresses.

    Attributes:
        name: Recipient name.
        phone: Recipient phone number.
        line1: Street address line 1.
        line2: Street address line 2.
        city: City name.
        state: State/province.
        postal_code: Postal/PIN code.
        country: ISO 3166-1 alpha-2 country code.
        is_default: Marks the buyer's default saved address.
    """

    name: str
    line1: str
    city: str
    postal_code: str
    phone: str | None = None
    line2: str | None = None
    state: str | None = None
    country: str = "IN"
    is_default: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON storage."""
        return {
            "name": self.name,
            "phone": self.phone,
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "is_default": self.is_default,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create from a stored dictionary.

        Args:
            data: Dictionary produced by ``to_dict``.

        Returns:
            ShippingAddress instance.
        """
        return cls(
            name=data.get("name", ""),
            phone=data.get("phone"),
            line1=data.get("line1", ""),
            line2=data.get("line2"),
            city=data.get("city", ""),
            state=data.get("state"),
            postal_code=data.get("postal_code", ""),
            country=data.get("country", "IN"),
            is_default=bool(data.get("is_default", False)),
        )

    def format_single_line(self) -> str:
        """Format address as single line.

        Returns:
            Comma-separated address string.
        """
        parts = [self.line1]
        if self.line2:
            parts.append(self.line2)
        parts.append(self.city)
        if self.state:
            parts.append(self.state)
        parts.append(self.postal_code)
        parts.append(self.country)
        return ", ".join(parts)
