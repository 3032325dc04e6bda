"""
PaymentService — the ledger operations behind the payments API.

Responsibilities:
- Role-filtered reads through the reconciliation cache
- Payment creation (validation, seller-profile auto-fill, derived totals/due date)
- Full edits (merge against the stored row) and delete-as-cancel
- Cache invalidation and notification after every successful write
"""
import logging
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from app.access import ViewerContext, can_view, filter_for_viewer, require_privileged
from app.core.exceptions import LedgerError, NotFound, ValidationError
from app.models.gold_payment import GoldPayment
from app.models.payment import Payment, PaymentPatch, PaymentStatus
from app.models.seller_info import SellerInfo
from app.schemas.payments import PaymentCreateIn
from app.services.cache.service import CacheRegistry
from app.services.notifications.service import NotificationDispatcher, RecordEvent
from app.services.records.service import RecordStoreAdapter, compute_total_rial
from app.services.sellers.service import SellerInfoService
from app.services.status.service import StatusTransitionService, coerce_status
from app.utils.due_date import derive_due_date
from app.utils.timestamps import utcnow
from app.utils.validators import (
    parse_quantity,
    require_text,
    validate_card_number,
    validate_duration,
    validate_iban,
    validate_phone_number,
)

logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def sort_payments_by_due_date(payments: list[Payment]) -> list[Payment]:
    """Unpaid first, then by due date (earliest first); undated last."""
    return sorted(payments, key=lambda p: (p.paid, p.due_date or _FAR_FUTURE))


class PaymentService:
    def __init__(
        self,
        adapter: RecordStoreAdapter,
        caches: CacheRegistry,
        dispatcher: NotificationDispatcher,
        transitions: StatusTransitionService,
        sellers: SellerInfoService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.adapter = adapter
        self.caches = caches
        self.dispatcher = dispatcher
        self.transitions = transitions
        self.sellers = sellers
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_payments(self, viewer: ViewerContext) -> list[Payment]:
        payments = await self.caches.payments.get()
        visible = filter_for_viewer(payments, viewer)
        logger.info(
            "payments_listed",
            extra={"discord_id": viewer.external_id, "count": len(visible), "rows": len(payments)},
        )
        return sort_payments_by_due_date(visible)

    async def get_payment(self, payment_id: str, viewer: ViewerContext) -> Payment:
        payments = await self.caches.payments.get()
        payment = next((p for p in payments if p.id == payment_id), None)
        # members get 404, not 403, for other members' payments
        if payment is None or not can_view(payment, viewer):
            raise NotFound("Payment not found", detail={"payment_id": payment_id})
        return payment

    async def list_gold_payments(self, viewer: ViewerContext) -> list[GoldPayment]:
        gold = await self.caches.gold_payments.get()
        return filter_for_viewer(gold, viewer)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        now = self._clock()
        # the sheet keeps millisecond precision
        return now.replace(microsecond=now.microsecond // 1000 * 1000)

    async def _resolve_bank_details(self, data: PaymentCreateIn, discord_id: str) -> dict[str, str]:
        """
        Bank fields from the request, with blanks filled from the member's
        seller profile. A member without a profile gets one created when the
        request carries card, IBAN and name; failure there is not fatal.
        """
        details = {
            "card_number": validate_card_number(data.card_number),
            "iban": validate_iban(data.iban),
            "name_on_card": (data.name_on_card or "").strip(),
            "phone_number": validate_phone_number(data.phone_number),
        }
        seller = await self.sellers.lookup(discord_id)
        if seller is not None:
            for name in details:
                if not details[name]:
                    details[name] = getattr(seller, name)
            return details

        if details["card_number"] and details["iban"] and details["name_on_card"]:
            try:
                await self.adapter.upsert_seller_info(SellerInfo(discord_id=discord_id, **details))
                logger.info("seller_info_created_from_payment", extra={"discord_id": discord_id})
            except LedgerError as e:
                logger.warning("seller_info_create_failed", extra={"discord_id": discord_id, "error": e.message})
        return details

    async def create_payment(self, data: PaymentCreateIn, viewer: ViewerContext) -> Payment:
        require_privileged(viewer, "create payments")
        discord_id = require_text(data.discord_id, "discordId")
        amount = parse_quantity(data.amount, "amount")
        price = parse_quantity(data.price, "price")
        duration = validate_duration(data.payment_duration)
        game = require_text(data.game, "game")
        # IBAN/card/phone are checked here, before any store call
        validate_iban(data.iban)
        validate_card_number(data.card_number)
        validate_phone_number(data.phone_number)

        payment_id = (data.id or "").strip()
        if payment_id:
            existing = await self.caches.payments.get()
            if any(p.id == payment_id for p in existing):
                raise ValidationError(f"Payment with ID {payment_id} already exists", detail={"field": "id"})
        else:
            payment_id = str(uuid4())

        bank = await self._resolve_bank_details(data, discord_id)
        created_at = self._now()
        payment = Payment(
            id=payment_id,
            amount=amount,
            price=price,
            total_rial=compute_total_rial(amount, price),
            user=viewer.label,
            timestamp=created_at,
            discord_id=discord_id,
            payment_duration=duration,
            game=game,
            note=(data.note or "").strip(),
            status=PaymentStatus.PENDING,
            due_date=derive_due_date(created_at, duration),
            **bank,
        )
        await self.adapter.append_payment(payment)
        self.caches.payments.invalidate()
        self.dispatcher.notify(RecordEvent(action="created", actor=viewer.label, record=payment))
        logger.info(
            "payment_created",
            extra={"payment_id": payment.id, "discord_id": discord_id, "actor": viewer.label},
        )
        return payment

    def _validate_patch(self, patch: PaymentPatch) -> PaymentPatch:
        present = patch.present_fields()
        updates: dict = {}
        if "discord_id" in present:
            updates["discord_id"] = require_text(patch.discord_id, "discordId")
        if "amount" in present:
            updates["amount"] = parse_quantity(patch.amount, "amount")
        if "price" in present:
            updates["price"] = parse_quantity(patch.price, "price")
        if "payment_duration" in present:
            updates["payment_duration"] = validate_duration(patch.payment_duration)
        if "game" in present:
            updates["game"] = require_text(patch.game, "game")
        if "iban" in present:
            updates["iban"] = validate_iban(patch.iban)
        if "card_number" in present:
            updates["card_number"] = validate_card_number(patch.card_number)
        if "phone_number" in present:
            updates["phone_number"] = validate_phone_number(patch.phone_number)
        if "status" in present:
            updates["status"] = coerce_status(patch.status)
        return patch.model_copy(update=updates)

    async def update_payment(self, payment_id: str, patch: PaymentPatch, viewer: ViewerContext) -> Payment:
        """
        Full edit by staff. A patch carrying only a status is a transition and
        takes the status-only write path.
        """
        require_privileged(viewer, "update payments")
        patch = self._validate_patch(patch)
        if not patch.present_fields():
            raise ValidationError("No fields to update")
        if patch.is_status_only():
            return await self.transitions.transition(payment_id, patch.status, viewer)

        payment = await self.adapter.update_payment(payment_id, patch, actor=viewer.label)
        self.caches.payments.invalidate()
        action = patch.status.value.lower() if patch.status is not None else "updated"
        self.dispatcher.notify(RecordEvent(action=action, actor=viewer.label, record=payment))
        logger.info(
            "payment_edited",
            extra={"payment_id": payment_id, "actor": viewer.label, "action": sorted(patch.present_fields())},
        )
        return payment

    async def cancel_payment(self, payment_id: str, viewer: ViewerContext) -> Payment:
        """Payments are never deleted; delete means Cancelled."""
        return await self.transitions.transition(payment_id, PaymentStatus.CANCELLED, viewer)
