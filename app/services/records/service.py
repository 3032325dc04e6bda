"""
RecordStoreAdapter — typed records over positional spreadsheet rows.

Responsibilities:
- Row <-> record mapping through the column maps in schema.py
- Default-value backfill (short rows are padded, legacy rows get a derived due date)
- Identity lookup by linear scan (first match wins) and row mutation
- Status normalization on read

No caching and no retries here: both belong to the reconciliation cache.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable

from app.core.config import settings
from app.core.exceptions import NotFound, ValidationError
from app.models.gold_payment import GoldPayment, build_synthetic_id, parse_synthetic_id
from app.models.payment import Payment, PaymentPatch, PaymentStatus, normalize_status
from app.models.seller_info import SellerInfo
from app.services.records.schema import (
    SheetLayout,
    gold_payment_layout,
    payment_layout,
    seller_info_layout,
)
from app.storage.base import RecordStore, Row
from app.utils.due_date import derive_due_date
from app.utils.timestamps import format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

# Rial = Toman x 10
CURRENCY_MULTIPLIER = Decimal(10)

# Vocabulary of the gold sheet's "Paid?" column
GOLD_STATUS_CELLS = {
    PaymentStatus.PAID: "yes",
    PaymentStatus.CANCELLED: "cancelled",
    PaymentStatus.PENDING: "pending",
}


def compute_total_rial(amount: Decimal, price: Decimal) -> Decimal:
    return amount * price * CURRENCY_MULTIPLIER


def format_decimal(value: Decimal | None) -> str:
    if value is None:
        return ""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def parse_decimal(cell: str) -> Decimal | None:
    raw = (cell or "").replace(",", "").strip()
    if not raw:
        return None
    try:
        value = Decimal(raw)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


@dataclass
class GoldStatusUpdate:
    discord_id: str
    updated_rows: int


@dataclass
class _Located:
    row_number: int  # 1-based sheet row
    row: Row  # padded


class RecordStoreAdapter:
    def __init__(self, store: RecordStore, clock: Callable[[], datetime] | None = None) -> None:
        self.store = store
        self.payments = payment_layout(settings.payments_sheet)
        self.gold = gold_payment_layout(settings.gold_payments_sheet)
        self.sellers = seller_info_layout(settings.seller_info_sheet)
        self._clock = clock or utcnow

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    async def _load(self, layout: SheetLayout) -> tuple[list[Row], int]:
        """All rows of the tab and the index of the first data row."""
        rows = await self.store.read_rows(layout.full_range)
        return rows, (1 if layout.has_header(rows) else 0)

    @staticmethod
    def _data_rows(layout: SheetLayout, rows: list[Row], start: int):
        """Yield (sheet_row_number, padded_row) for non-blank data rows."""
        for i in range(start, len(rows)):
            row = rows[i]
            if not any((cell or "").strip() for cell in row):
                continue
            yield i + 1, layout.pad(row)

    def _find(self, layout: SheetLayout, rows: list[Row], start: int, key_field: str, key: str) -> _Located | None:
        for row_number, row in self._data_rows(layout, rows, start):
            if layout.get(row, key_field) == key:
                return _Located(row_number=row_number, row=row)
        return None

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def _payment_from_row(self, row: Row) -> Payment:
        get = lambda name: self.payments.get(row, name)  # noqa: E731
        timestamp = parse_timestamp(get("timestamp"))
        due_date = parse_timestamp(get("due_date"))
        if due_date is None and timestamp is not None:
            # legacy rows written before the due date column existed
            try:
                due_date = derive_due_date(timestamp, get("payment_duration"))
            except (OverflowError, ValueError):
                logger.warning(
                    "payment_due_date_underivable",
                    extra={"payment_id": get("id"), "error": get("payment_duration")},
                )
        return Payment(
            id=get("id"),
            amount=parse_decimal(get("amount")),
            price=parse_decimal(get("price")),
            total_rial=parse_decimal(get("total_rial")),
            user=get("user"),
            timestamp=timestamp,
            discord_id=get("discord_id"),
            card_number=get("card_number"),
            iban=get("iban"),
            name_on_card=get("name_on_card"),
            phone_number=get("phone_number"),
            payment_duration=get("payment_duration"),
            game=get("game"),
            note=get("note"),
            status=normalize_status(get("status")),
            changed_by=get("changed_by"),
            due_date=due_date,
        )

    def _payment_to_row(self, payment: Payment) -> Row:
        return self.payments.to_row({
            "id": payment.id,
            "amount": format_decimal(payment.amount),
            "price": format_decimal(payment.price),
            "total_rial": format_decimal(payment.total_rial),
            "user": payment.user,
            "timestamp": format_timestamp(payment.timestamp) if payment.timestamp else "",
            "discord_id": payment.discord_id,
            "card_number": payment.card_number,
            "iban": payment.iban,
            "name_on_card": payment.name_on_card,
            "phone_number": payment.phone_number,
            "payment_duration": payment.payment_duration,
            "game": payment.game,
            "note": payment.note,
            "status": payment.status.value,
            "changed_by": payment.changed_by,
            "due_date": format_timestamp(payment.due_date) if payment.due_date else "",
        })

    async def list_payments(self) -> list[Payment]:
        rows, start = await self._load(self.payments)
        payments = [self._payment_from_row(row) for _, row in self._data_rows(self.payments, rows, start)]
        logger.info("payments_loaded", extra={"count": len(payments), "rows": len(rows)})
        return payments

    async def append_payment(self, payment: Payment) -> Payment:
        if not payment.id:
            raise ValidationError("Payment id is required", detail={"field": "id"})
        await self.store.append_row(self.payments.full_range, self._payment_to_row(payment))
        logger.info("payment_appended", extra={"payment_id": payment.id, "discord_id": payment.discord_id})
        return payment

    async def update_payment(self, payment_id: str, patch: PaymentPatch, actor: str | None = None) -> Payment:
        """
        Merge patch over the stored row and rewrite it.

        Present fields override, absent fields keep the stored cell verbatim.
        The creation timestamp cell is never touched. total_rial follows edits
        of amount/price; due_date is re-derived only when the duration is edited.
        """
        rows, start = await self._load(self.payments)
        located = self._find(self.payments, rows, start, "id", payment_id)
        if located is None:
            raise NotFound(f"Payment with ID {payment_id} not found", detail={"payment_id": payment_id})

        layout = self.payments
        merged = list(located.row)
        present = patch.present_fields()
        for name in present:
            value = getattr(patch, name)
            if name in ("amount", "price"):
                merged[layout.columns[name]] = format_decimal(value)
            elif name == "status":
                merged[layout.columns[name]] = normalize_status(value).value
            else:
                merged[layout.columns[name]] = value

        if present & {"amount", "price"}:
            amount = parse_decimal(layout.get(merged, "amount"))
            price = parse_decimal(layout.get(merged, "price"))
            if amount is not None and price is not None:
                merged[layout.columns["total_rial"]] = format_decimal(compute_total_rial(amount, price))

        if "payment_duration" in present:
            created_at = parse_timestamp(layout.get(merged, "timestamp"))
            if created_at is not None:
                merged[layout.columns["due_date"]] = format_timestamp(
                    derive_due_date(created_at, patch.payment_duration)
                )

        if "status" in present and actor:
            merged[layout.columns["changed_by"]] = actor
        if not layout.get(merged, "status"):
            merged[layout.columns["status"]] = PaymentStatus.PENDING.value

        await self.store.write_row(layout.row_range(located.row_number), merged)
        logger.info(
            "payment_updated",
            extra={"payment_id": payment_id, "rows": located.row_number, "action": sorted(present)},
        )
        return self._payment_from_row(merged)

    async def set_payment_status(
        self, payment_id: str, status: PaymentStatus, actor: str | None = None
    ) -> Payment:
        """Fast path: write only the status cell (and the changed-by cell when actor is given)."""
        rows, start = await self._load(self.payments)
        located = self._find(self.payments, rows, start, "id", payment_id)
        if located is None:
            raise NotFound(f"Payment with ID {payment_id} not found", detail={"payment_id": payment_id})

        layout = self.payments
        row = list(located.row)
        row[layout.columns["status"]] = status.value
        if actor:
            row[layout.columns["changed_by"]] = actor
            await self.store.write_row(
                layout.cells_range("status", "changed_by", located.row_number),
                [status.value, actor],
            )
        else:
            await self.store.write_row(
                layout.cells_range("status", "status", located.row_number),
                [status.value],
            )
        logger.info(
            "payment_status_set",
            extra={"payment_id": payment_id, "status": status.value, "actor": actor},
        )
        return self._payment_from_row(row)

    # ------------------------------------------------------------------
    # Gold payments
    # ------------------------------------------------------------------

    def _gold_from_row(self, row: Row, data_index: int, captured_at: datetime) -> GoldPayment:
        get = lambda name: self.gold.get(row, name)  # noqa: E731
        explicit_id = get("id").strip()
        discord_id = get("discord_id")
        captured_at_ms = int(captured_at.timestamp() * 1000)
        return GoldPayment(
            id=explicit_id or build_synthetic_id(discord_id, data_index, captured_at_ms),
            date=get("date") or format_timestamp(captured_at),
            discord_id=discord_id,
            name_realm=get("name_realm"),
            amount=get("amount"),
            category=get("category"),
            status=normalize_status(get("status")),
            paid_by=get("paid_by"),
            synthetic_id=not explicit_id,
        )

    async def list_gold_payments(self) -> list[GoldPayment]:
        rows, start = await self._load(self.gold)
        captured_at = self._clock()
        payments = [
            self._gold_from_row(row, index, captured_at)
            for index, (_, row) in enumerate(self._data_rows(self.gold, rows, start))
        ]
        logger.info("gold_payments_loaded", extra={"count": len(payments), "rows": len(rows)})
        return payments

    async def _write_gold_status(self, row_number: int, status: PaymentStatus, actor: str | None) -> None:
        cell = GOLD_STATUS_CELLS[status]
        if actor:
            await self.store.write_row(self.gold.cells_range("status", "paid_by", row_number), [cell, actor])
        else:
            await self.store.write_row(self.gold.cells_range("status", "status", row_number), [cell])

    async def update_gold_payment_status(
        self, payment_id: str, status: PaymentStatus, actor: str | None = None
    ) -> GoldStatusUpdate:
        """
        Synthetic IDs resolve to the member they embed and update every row of
        that member (see update_gold_status_for_member). Explicit IDs update one row.
        """
        discord_id = parse_synthetic_id(payment_id)
        if discord_id is not None:
            return await self.update_gold_status_for_member(discord_id, status, actor)

        rows, start = await self._load(self.gold)
        located = self._find(self.gold, rows, start, "id", payment_id)
        if located is None:
            raise NotFound(f"Gold payment with ID {payment_id} not found", detail={"payment_id": payment_id})
        await self._write_gold_status(located.row_number, status, actor)
        logger.info("gold_payment_status_set", extra={"payment_id": payment_id, "status": status.value})
        return GoldStatusUpdate(discord_id=self.gold.get(located.row, "discord_id"), updated_rows=1)

    async def update_gold_status_for_member(
        self, discord_id: str, status: PaymentStatus, actor: str | None = None
    ) -> GoldStatusUpdate:
        """
        Set the status of ALL gold rows of one member.

        This one-to-many effect is what a status change on a synthetic gold ID
        has always done; it is kept in this single operation so it can be
        narrowed once the sheet carries a real ID column.
        """
        rows, start = await self._load(self.gold)
        targets = [
            row_number
            for row_number, row in self._data_rows(self.gold, rows, start)
            if self.gold.get(row, "discord_id") == discord_id
        ]
        if not targets:
            raise NotFound(
                f"No gold payments found for Discord ID {discord_id}",
                detail={"discord_id": discord_id},
            )
        await asyncio.gather(*(self._write_gold_status(n, status, actor) for n in targets))
        logger.info(
            "gold_payments_status_set_for_member",
            extra={"discord_id": discord_id, "status": status.value, "count": len(targets)},
        )
        return GoldStatusUpdate(discord_id=discord_id, updated_rows=len(targets))

    # ------------------------------------------------------------------
    # Seller info
    # ------------------------------------------------------------------

    def _seller_from_row(self, row: Row) -> SellerInfo:
        get = lambda name: self.sellers.get(row, name)  # noqa: E731
        return SellerInfo(
            discord_id=get("discord_id"),
            card_number=get("card_number"),
            iban=get("iban"),
            name_on_card=get("name_on_card"),
            phone_number=get("phone_number"),
        )

    def _seller_to_row(self, info: SellerInfo) -> Row:
        return self.sellers.to_row({
            "discord_id": info.discord_id,
            "card_number": info.card_number,
            "iban": info.iban,
            "name_on_card": info.name_on_card,
            "phone_number": info.phone_number,
        })

    async def get_seller_info(self, discord_id: str) -> SellerInfo:
        rows, start = await self._load(self.sellers)
        located = self._find(self.sellers, rows, start, "discord_id", discord_id)
        if located is None:
            raise NotFound(f"Seller info for Discord ID {discord_id} not found", detail={"discord_id": discord_id})
        return self._seller_from_row(located.row)

    async def upsert_seller_info(self, info: SellerInfo) -> dict[str, str]:
        """Create or update the single row keyed by Discord ID. Returns {"action": "created"|"updated"}."""
        rows, start = await self._load(self.sellers)
        located = self._find(self.sellers, rows, start, "discord_id", info.discord_id)
        if located is None:
            await self.store.append_row(self.sellers.full_range, self._seller_to_row(info))
            action = "created"
        else:
            await self.store.write_row(self.sellers.row_range(located.row_number), self._seller_to_row(info))
            action = "updated"
        logger.info("seller_info_upserted", extra={"discord_id": info.discord_id, "action": action})
        return {"action": action}
