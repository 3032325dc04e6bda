from decimal import Decimal

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.payment import LedgerModel, Payment, PaymentPatch
from app.models.seller_info import SellerInfo


class PaymentCreateIn(LedgerModel):
    # client may send totalRial/status/user from the old form; all server-derived
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str | None = None
    amount: Decimal | None = None
    price: Decimal | None = None
    discord_id: str = ""
    card_number: str = ""
    iban: str = ""
    name_on_card: str = ""
    phone_number: str = ""
    payment_duration: str = ""
    game: str = ""
    note: str = ""


class PaymentUpdateIn(PaymentPatch):
    pass


class BatchStatusIn(LedgerModel):
    payment_ids: list[str] = Field(default_factory=list)
    status: str = ""


class BatchItemOut(LedgerModel):
    payment_id: str
    success: bool
    error: str | None = None
    result: Payment | None = None


class BatchStatusOut(LedgerModel):
    message: str
    outcome: str
    results: list[BatchItemOut]
    failures: list[BatchItemOut] = Field(default_factory=list)


class GoldStatusIn(LedgerModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    status: str = ""


class GoldStatusOut(LedgerModel):
    success: bool = True
    message: str
    status: str
    updated_rows: int


class SellerInfoIn(LedgerModel):
    discord_id: str = ""
    card_number: str = ""
    iban: str = ""
    name_on_card: str = ""
    phone_number: str = ""

    def to_model(self) -> SellerInfo:
        return SellerInfo(**self.model_dump())


class SellerInfoOut(LedgerModel):
    success: bool = True
    message: str
    data: SellerInfo


class DeleteOut(LedgerModel):
    success: bool = True
    payment: Payment
