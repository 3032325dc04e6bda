"""
Write-side field validation. Every check raises ValidationError before the
store is touched.
"""
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from app.core.exceptions import ValidationError
from app.utils.due_date import derive_due_date

IBAN_RE = re.compile(r"^IR\d{24}$")
CARD_NUMBER_RE = re.compile(r"^\d{16}$")
PHONE_RE = re.compile(r"^\+?\d{10,15}$")

MAX_DURATION_LENGTH = 64

_SEPARATORS = re.compile(r"[\s-]")


def validate_iban(value: str | None) -> str:
    """IR followed by 24 digits. Empty is allowed (field is optional)."""
    iban = (value or "").strip().upper()
    if iban and not IBAN_RE.match(iban):
        raise ValidationError(
            "IBAN must be in the format of IR followed by 24 digits",
            detail={"field": "iban"},
        )
    return iban


def validate_card_number(value: str | None) -> str:
    card = _SEPARATORS.sub("", value or "")
    if card and not CARD_NUMBER_RE.match(card):
        raise ValidationError("Card number must be 16 digits", detail={"field": "cardNumber"})
    return card


def validate_phone_number(value: str | None) -> str:
    phone = _SEPARATORS.sub("", value or "")
    if phone and not PHONE_RE.match(phone):
        raise ValidationError("Phone number must be 10-15 digits", detail={"field": "phoneNumber"})
    return phone


def validate_duration(value: str | None) -> str:
    duration = (value or "").strip()
    if not duration:
        raise ValidationError("paymentDuration is required", detail={"field": "paymentDuration"})
    if len(duration) > MAX_DURATION_LENGTH:
        raise ValidationError("paymentDuration is too long", detail={"field": "paymentDuration"})
    try:
        derive_due_date(datetime(2000, 1, 1, tzinfo=timezone.utc), duration)
    except (OverflowError, ValueError) as e:
        raise ValidationError(f"Invalid paymentDuration: {duration}", detail={"field": "paymentDuration"}) from e
    return duration


def require_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", detail={"field": field})
    return text


def parse_quantity(value: Decimal | str | int | float | None, field: str) -> Decimal:
    """Positive decimal; accepts thousands separators in strings."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required", detail={"field": field})
    try:
        number = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation as e:
        raise ValidationError(f"{field} must be a number", detail={"field": field}) from e
    if not number.is_finite() or number <= 0:
        raise ValidationError(f"{field} must be a positive number", detail={"field": field})
    return number
