import logging

from app.access import ViewerContext
from app.core.exceptions import Forbidden, NotFound
from app.models.seller_info import SellerInfo
from app.services.records.service import RecordStoreAdapter
from app.utils.validators import (
    require_text,
    validate_card_number,
    validate_iban,
    validate_phone_number,
)

logger = logging.getLogger(__name__)


class SellerInfoService:
    """Payout profiles keyed by Discord ID. Staff see all, members only their own."""

    def __init__(self, adapter: RecordStoreAdapter) -> None:
        self.adapter = adapter

    @staticmethod
    def _check_owner(discord_id: str, viewer: ViewerContext) -> None:
        if not viewer.is_privileged and discord_id != viewer.external_id:
            raise Forbidden("Forbidden: seller information belongs to another member")

    async def get(self, discord_id: str, viewer: ViewerContext) -> SellerInfo:
        discord_id = require_text(discord_id, "discordId")
        self._check_owner(discord_id, viewer)
        return await self.adapter.get_seller_info(discord_id)

    async def lookup(self, discord_id: str) -> SellerInfo | None:
        """Profile or None; no access check (used by payment creation)."""
        try:
            return await self.adapter.get_seller_info(discord_id)
        except NotFound:
            return None

    def validate(self, info: SellerInfo) -> SellerInfo:
        return SellerInfo(
            discord_id=require_text(info.discord_id, "discordId"),
            card_number=validate_card_number(info.card_number),
            iban=validate_iban(info.iban),
            name_on_card=(info.name_on_card or "").strip(),
            phone_number=validate_phone_number(info.phone_number),
        )

    async def upsert(self, info: SellerInfo, viewer: ViewerContext) -> tuple[str, SellerInfo]:
        clean = self.validate(info)
        self._check_owner(clean.discord_id, viewer)
        result = await self.adapter.upsert_seller_info(clean)
        return result["action"], clean
