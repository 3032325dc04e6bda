from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.utils.timestamps import format_timestamp, parse_timestamp
from app.utils.validators import (
    parse_quantity,
    require_text,
    validate_card_number,
    validate_duration,
    validate_iban,
    validate_phone_number,
)


def test_iban_normalized_to_upper_case():
    assert validate_iban(" ir" + "1" * 24) == "IR" + "1" * 24


@pytest.mark.parametrize("iban", ["IR123", "DE" + "1" * 24, "IR" + "1" * 23 + "X"])
def test_iban_rejected(iban):
    with pytest.raises(ValidationError) as exc:
        validate_iban(iban)
    assert exc.value.detail["field"] == "iban"


def test_empty_bank_fields_allowed():
    assert validate_iban("") == ""
    assert validate_card_number(None) == ""
    assert validate_phone_number("") == ""


def test_card_number_separators_stripped():
    assert validate_card_number("6037-9911 2233 4455") == "6037991122334455"


def test_card_number_wrong_length():
    with pytest.raises(ValidationError):
        validate_card_number("1234 5678")


def test_phone_number():
    assert validate_phone_number("+98 912 345 6789") == "+989123456789"
    with pytest.raises(ValidationError):
        validate_phone_number("12345")


def test_duration_required_and_bounded():
    assert validate_duration(" 1-2 days ") == "1-2 days"
    with pytest.raises(ValidationError):
        validate_duration("")
    with pytest.raises(ValidationError):
        validate_duration("x" * 65)


def test_duration_with_absurd_count_rejected():
    with pytest.raises(ValidationError):
        validate_duration("99999999999 years")


def test_require_text():
    assert require_text("  WoW ", "game") == "WoW"
    with pytest.raises(ValidationError, match="game is required"):
        require_text("  ", "game")


class TestParseQuantity:
    def test_accepts_thousands_separators(self):
        assert parse_quantity("1,250.5", "amount") == Decimal("1250.5")

    def test_accepts_numbers(self):
        assert parse_quantity(3, "price") == Decimal(3)

    @pytest.mark.parametrize("value", [None, "", "abc", "0", "-5", "NaN"])
    def test_rejects(self, value):
        with pytest.raises(ValidationError):
            parse_quantity(value, "amount")


class TestTimestamps:
    def test_format_has_milliseconds_and_z(self):
        value = parse_timestamp("2025-03-01T10:00:00.123456+00:00")
        assert format_timestamp(value) == "2025-03-01T10:00:00.123Z"

    def test_parse_z_suffix_and_naive(self):
        assert parse_timestamp("2025-03-01T10:00:00.000Z") == parse_timestamp("2025-03-01T10:00:00")

    def test_parse_invalid(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None
