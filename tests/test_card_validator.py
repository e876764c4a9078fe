from datetime import datetime

import pytest

from cardform import (
    CardField,
    CardInput,
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
from cardform.validator import (
    ERROR_CARD_NAME,
    ERROR_CARD_NUMBER,
    ERROR_CVC,
    ERROR_EXPIRED,
    ERROR_EXPIRY_FORMAT,
    validate_expiry,
)

DEC_2024 = datetime(2024, 12, 15)
VALID_CARD = CardInput(
    card_number="4111 1111 1111 1111",
    card_name="Somchai Jaidee",
    expiry="12/30",
    cvc="123",
)


def test_luhn_checksum_known_value():
    assert luhn_checksum("79927398713") == 70


@pytest.mark.parametrize(
    "number,expected",
    [
        ("4111111111111111", True),
        ("4111 1111 1111 1111", True),
        ("4111111111111112", False),
        ("41111111111", False),  # 11 digits
        ("0" * 12, True),
        ("0" * 19, True),
        ("0" * 20, False),
        ("", False),
    ],
)
def test_is_luhn_valid(number, expected):
    assert is_luhn_valid(number) is expected


@pytest.mark.parametrize(
    "number,brand",
    [
        ("4111 1111 1111 1111", "VISA"),
        ("5500000000000004", "MASTERCARD"),
        ("2221000000000009", "MASTERCARD"),
        ("378282246310005", "AMEX"),
        ("3530111333300000", "JCB"),
        ("6011111111111117", "UNKNOWN"),
    ],
)
def test_detect_brand(number, brand):
    assert detect_brand(number) == brand


def test_format_card_number_groups_by_four():
    assert format_card_number("4111111111111111") == "4111 1111 1111 1111"
    assert format_card_number("41x1-11") == "4111 1"


def test_format_card_number_is_idempotent():
    once = format_card_number("4111111111111111")
    assert format_card_number(once) == once


def test_format_card_number_truncates_to_nineteen_digits():
    assert format_card_number("1" * 25) == "1111 1111 1111 1111 111"


@pytest.mark.parametrize(
    "raw,formatted",
    [
        ("1", "1"),
        ("12", "12"),
        ("122", "12/2"),
        ("1225", "12/25"),
        ("12/25", "12/25"),
        ("12/255", "12/25"),
    ],
)
def test_format_expiry(raw, formatted):
    assert format_expiry(raw) == formatted


def test_sanitize_cvc_keeps_four_digits():
    assert sanitize_cvc("12a34 5") == "1234"


def test_expiry_valid_through_end_of_month():
    assert validate_expiry("01/25", now=DEC_2024) is None
    assert validate_expiry("01/25", now=datetime(2025, 1, 31, 23, 59)) is None


def test_expiry_rejected_from_following_month():
    assert validate_expiry("01/25", now=datetime(2025, 2, 1)) == ERROR_EXPIRED
    assert validate_expiry("12/24", now=datetime(2025, 1, 1)) == ERROR_EXPIRED


@pytest.mark.parametrize("expiry", ["13/25", "1/25", "0125", "00/25", ""])
def test_expiry_format_errors(expiry):
    assert validate_expiry(expiry, now=DEC_2024) == ERROR_EXPIRY_FORMAT


def test_validate_card_accepts_complete_card():
    validity = validate_card(VALID_CARD, now=DEC_2024)
    assert validity.valid
    assert validity.errors == {}


def test_validate_card_reports_every_field():
    validity = validate_card(CardInput(cvc="12"), now=DEC_2024)
    assert not validity.valid
    assert validity.error_for(CardField.CARD_NUMBER) == ERROR_CARD_NUMBER
    assert validity.error_for(CardField.CARD_NAME) == ERROR_CARD_NAME
    assert validity.error_for(CardField.EXPIRY) == ERROR_EXPIRY_FORMAT
    assert validity.error_for(CardField.CVC) == ERROR_CVC


def test_name_needs_three_characters():
    card = CardInput(card_number=VALID_CARD.card_number, card_name="  Al ", expiry="12/30", cvc="123")
    validity = validate_card(card, now=DEC_2024)
    assert validity.errors == {"card_name": ERROR_CARD_NAME}


def test_apply_change_formats_and_revalidates():
    card, validity = apply_change(CardInput(), CardField.CARD_NUMBER, "4111111111111111", now=DEC_2024)
    assert card.card_number == "4111 1111 1111 1111"
    assert validity.error_for(CardField.CARD_NUMBER) == ""
    assert not validity.valid

    card, validity = apply_change(card, CardField.CARD_NAME, "Somchai Jaidee", now=DEC_2024)
    card, validity = apply_change(card, CardField.EXPIRY, "1230", now=DEC_2024)
    card, validity = apply_change(card, CardField.CVC, "123", now=DEC_2024)
    assert card.expiry == "12/30"
    assert validity.valid


def test_apply_change_leaves_name_unformatted():
    card, _ = apply_change(CardInput(), "card_name", "Ann 2", now=DEC_2024)
    assert card.card_name == "Ann 2"


def test_summarize_masks_card():
    summary = summarize(VALID_CARD)
    assert summary.to_payload() == {"last4": "1111", "brand": "VISA", "exp": "12/30"}
