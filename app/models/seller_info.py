from app.models.payment import LedgerModel


class SellerInfo(LedgerModel):
    """Payout profile; at most one row per Discord ID."""

    discord_id: str
    card_number: str = ""
    iban: str = ""
    name_on_card: str = ""
    phone_number: str = ""
