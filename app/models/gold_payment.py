"""
Gold (in-game currency) payment rows.

The gold sheet has no key column by default, so `id` is synthetic:
gold-{discordId}-{rowIndex}-{captureMillis}. Such IDs change on every cache
refresh; a client holding an old ID may address a different row afterwards.
When the sheet carries an explicit ID column that value is used instead.
A blank date cell reads back as the capture time of the fetch.
"""
import re

from app.models.payment import LedgerModel, PaymentStatus


SYNTHETIC_ID_PREFIX = "gold-"
_SYNTHETIC_ID_RE = re.compile(r"^gold-([^-]+)-(\d+)-(\d+)$")


def build_synthetic_id(discord_id: str, row_index: int, captured_at_ms: int) -> str:
    return f"{SYNTHETIC_ID_PREFIX}{discord_id}-{row_index}-{captured_at_ms}"


def parse_synthetic_id(payment_id: str) -> str | None:
    """Discord ID embedded in a synthetic gold ID, or None if not synthetic."""
    match = _SYNTHETIC_ID_RE.match(payment_id or "")
    return match.group(1) if match else None


class GoldPayment(LedgerModel):
    id: str
    date: str = ""
    discord_id: str = ""
    name_realm: str = ""
    amount: str = ""
    category: str = ""
    status: PaymentStatus = PaymentStatus.PENDING
    paid_by: str = ""
    synthetic_id: bool = True
