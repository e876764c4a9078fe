"""
Card Form Validator

Stateless validation and as-you-type formatting for credit card input.
Every function is pure so the checkout session can re-run it on each
keystroke and tests can call it without any UI.
"""

import re
from datetime import datetime
from typing import Optional

from .models import CardField, CardInput, CardSummary, CardValidity

MIN_CARD_DIGITS = 12
MAX_CARD_DIGITS = 19
MIN_NAME_LENGTH = 3

EXPIRY_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/(\d{2})$")
CVC_PATTERN = re.compile(r"^\d{3,4}$")

ERROR_CARD_NUMBER = "Invalid card number"
ERROR_CARD_NAME = "Please enter the name on the card"
ERROR_EXPIRY_FORMAT = "Invalid expiry date (MM/YY)"
ERROR_EXPIRED = "This card has expired"
ERROR_CVC = "Invalid CVC"

# (prefixes, brand) checked in order; longest prefixes first
_BRAND_PREFIXES = [
    (("34", "37"), "AMEX"),
    (("35",), "JCB"),
    (tuple(str(p) for p in range(2221, 2721)), "MASTERCARD"),
    (("51", "52", "53", "54", "55"), "MASTERCARD"),
    (("4",), "VISA"),
]


def _digits_only(value: str) -> str:
    return re.sub(r"\D", "", value or "")


# ==================== Luhn ====================

def luhn_checksum(digits: str) -> int:
    """
    Compute the Luhn sum of a digit string.

    Every second digit counting from the rightmost is doubled, and 9 is
    subtracted when the doubled value exceeds 9.
    """
    total = 0
    should_double = False
    for ch in reversed(digits):
        digit = int(ch)
        if should_double:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
        should_double = not should_double
    return total


def is_luhn_valid(number: str) -> bool:
    """Check length (12-19 digits) and Luhn checksum of a card number"""
    digits = _digits_only(number)
    if not MIN_CARD_DIGITS <= len(digits) <= MAX_CARD_DIGITS:
        return False
    return luhn_checksum(digits) % 10 == 0


def detect_brand(number: str) -> str:
    """Guess the card network from the leading digits"""
    digits = _digits_only(number)
    for prefixes, brand in _BRAND_PREFIXES:
        if digits.startswith(prefixes):
            return brand
    return "UNKNOWN"


# ==================== Formatting ====================

def format_card_number(value: str) -> str:
    """Group digits in runs of 4 separated by a single space"""
    digits = _digits_only(value)[:MAX_CARD_DIGITS]
    return " ".join(digits[i:i + 4] for i in range(0, len(digits), 4))


def format_expiry(value: str) -> str:
    """Keep up to 4 digits and insert the slash once the year starts"""
    digits = _digits_only(value)[:4]
    if len(digits) > 2:
        return f"{digits[:2]}/{digits[2:]}"
    return digits


def sanitize_cvc(value: str) -> str:
    return _digits_only(value)[:4]


_FORMATTERS = {
    CardField.CARD_NUMBER: format_card_number,
    CardField.EXPIRY: format_expiry,
    CardField.CVC: sanitize_cvc,
}


# ==================== Field checks ====================

def validate_card_number(number: str) -> Optional[str]:
    if not is_luhn_valid(number):
        return ERROR_CARD_NUMBER
    return None


def validate_card_name(name: str) -> Optional[str]:
    if len((name or "").strip()) < MIN_NAME_LENGTH:
        return ERROR_CARD_NAME
    return None


def expiry_boundary(expiry: str) -> Optional[datetime]:
    """
    First moment after the card's expiry month.

    Returns None when the value does not match MM/YY.
    """
    match = EXPIRY_PATTERN.match(expiry or "")
    if not match:
        return None
    month = int(match.group(1))
    year = 2000 + int(match.group(2))
    if month == 12:
        return datetime(year + 1, 1, 1)
    return datetime(year, month + 1, 1)


def validate_expiry(expiry: str, now: Optional[datetime] = None) -> Optional[str]:
    """
    Validate an MM/YY expiry against the current month.

    A card stays usable until the first day of the month after its
    expiry month.
    """
    boundary = expiry_boundary(expiry)
    if boundary is None:
        return ERROR_EXPIRY_FORMAT
    now = now or datetime.now()
    if boundary <= now:
        return ERROR_EXPIRED
    return None


def validate_cvc(cvc: str) -> Optional[str]:
    if not CVC_PATTERN.match(cvc or ""):
        return ERROR_CVC
    return None


# ==================== Aggregate ====================

def validate_card(card: CardInput, now: Optional[datetime] = None) -> CardValidity:
    """
    Validate every field of a card form.

    Args:
        card: Current form values
        now: Reference time for the expiry check (defaults to now)

    Returns:
        CardValidity with per-field errors; valid only when all fields pass
    """
    checks = {
        CardField.CARD_NUMBER: validate_card_number(card.card_number),
        CardField.CARD_NAME: validate_card_name(card.card_name),
        CardField.EXPIRY: validate_expiry(card.expiry, now=now),
        CardField.CVC: validate_cvc(card.cvc),
    }
    errors = {field.value: message for field, message in checks.items() if message}
    return CardValidity(valid=not errors, errors=errors)


def apply_change(
    card: CardInput,
    card_field: CardField,
    value: str,
    now: Optional[datetime] = None,
) -> tuple[CardInput, CardValidity]:
    """Format one changed field and revalidate the whole form"""
    card_field = CardField(card_field)
    formatter = _FORMATTERS.get(card_field)
    if formatter:
        value = formatter(value)
    updated = card.with_field(card_field, value)
    return updated, validate_card(updated, now=now)


def summarize(card: CardInput) -> CardSummary:
    """Masked summary of a card: last 4 digits, brand and expiry only"""
    return CardSummary(
        last4=card.last4,
        brand=detect_brand(card.digits),
        exp=card.expiry,
    )
