"""Card Form Data Models"""

from dataclasses import dataclass, field, replace
from enum import Enum


class CardField(str, Enum):
    """Editable fields of the card form"""
    CARD_NUMBER = "card_number"
    CARD_NAME = "card_name"
    EXPIRY = "expiry"
    CVC = "cvc"


@dataclass(frozen=True)
class CardInput:
    """Raw card form values as the user typed them (after formatting)"""
    card_number: str = ""  # Display form, e.g. "4111 1111 1111 1111"
    card_name: str = ""
    expiry: str = ""  # MM/YY
    cvc: str = ""

    @property
    def digits(self) -> str:
        """Card number without separators"""
        return "".join(ch for ch in self.card_number if ch.isdigit())

    @property
    def last4(self) -> str:
        return self.digits[-4:]

    def with_field(self, card_field: CardField, value: str) -> "CardInput":
        """Return a copy with one field replaced"""
        return replace(self, **{CardField(card_field).value: value})


@dataclass(frozen=True)
class CardSummary:
    """Masked card details that may leave the process"""
    last4: str
    brand: str
    exp: str

    def to_payload(self) -> dict[str, str]:
        """Convert to the storefront's cardInfo shape"""
        return {
            "last4": self.last4,
            "brand": self.brand,
            "exp": self.exp,
        }


@dataclass(frozen=True)
class CardValidity:
    """Result of validating a CardInput"""
    valid: bool
    errors: dict[str, str] = field(default_factory=dict)

    def error_for(self, card_field: CardField) -> str:
        """Error message for a field, empty when the field is valid"""
        return self.errors.get(CardField(card_field).value, "")
