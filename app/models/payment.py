"""
Payment records as they leave the record store adapter.
Status is always canonical here; sheet spellings are normalized on read.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    CANCELLED = "Cancelled"


_PAID_WORDS = frozenset({"paid", "yes", "true", "completed"})
_CANCELLED_WORDS = frozenset({"cancelled", "canceled", "cancel"})


def normalize_status(value: str | None) -> PaymentStatus:
    """Map a free-text sheet cell to the canonical status. Unknown -> Pending."""
    word = (value or "").strip().lower()
    if word in _PAID_WORDS:
        return PaymentStatus.PAID
    if word in _CANCELLED_WORDS:
        return PaymentStatus.CANCELLED
    return PaymentStatus.PENDING


def parse_status(value: str | PaymentStatus) -> PaymentStatus | None:
    """Strict parse for API input: only the three canonical names (any case)."""
    if isinstance(value, PaymentStatus):
        return value
    word = (value or "").strip().lower()
    for status in PaymentStatus:
        if status.value.lower() == word:
            return status
    return None


class LedgerModel(BaseModel):
    """camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Payment(LedgerModel):
    id: str
    amount: Decimal | None = None
    price: Decimal | None = None
    total_rial: Decimal | None = None
    user: str = ""  # staff handle that recorded the payment
    timestamp: datetime | None = None
    discord_id: str = ""
    card_number: str = ""
    iban: str = ""
    name_on_card: str = ""
    phone_number: str = ""
    payment_duration: str = ""
    game: str = ""
    note: str = ""
    status: PaymentStatus = PaymentStatus.PENDING
    changed_by: str = ""
    due_date: datetime | None = None

    @computed_field
    @property
    def paid(self) -> bool:
        return self.status == PaymentStatus.PAID


class PaymentPatch(LedgerModel):
    """
    Partial update of a payment. None = field absent, keep the stored value.
    No timestamp field: creation time is immutable.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    amount: Decimal | None = None
    price: Decimal | None = None
    user: str | None = None
    discord_id: str | None = None
    card_number: str | None = None
    iban: str | None = None
    name_on_card: str | None = None
    phone_number: str | None = None
    payment_duration: str | None = None
    game: str | None = None
    note: str | None = None
    status: str | None = None

    def present_fields(self) -> set[str]:
        return {name for name, value in self if value is not None}

    def is_status_only(self) -> bool:
        return self.present_fields() == {"status"}
