# Card form validation and as-you-type formatting

from .models import CardField, CardInput, CardSummary, CardValidity
from .validator import (
    apply_change,
    detect_brand,
    format_card_number,
    format_expiry,
    is_luhn_valid,
    luhn_checksum,
    sanitize_cvc,
    summarize,
    validate_card,
)

__all__ = [
    "CardField",
    "CardInput",
    "CardSummary",
    "CardValidity",
    "apply_change",
    "detect_brand",
    "format_card_number",
    "format_expiry",
    "is_luhn_valid",
    "luhn_checksum",
    "sanitize_cvc",
    "summarize",
    "validate_card",
]
