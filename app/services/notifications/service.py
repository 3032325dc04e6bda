"""
Notification dispatcher — fire-and-forget Discord webhook events.

notify() schedules one background task per event and returns immediately.
The task POSTs once, logs the outcome and never raises; there is no retry.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

from app.core.config import settings
from app.core.exceptions import NotificationFailure
from app.models.gold_payment import GoldPayment
from app.models.payment import Payment, PaymentStatus
from app.utils.metrics import notifications_total
from app.utils.timestamps import utcnow

logger = logging.getLogger(__name__)

COLOR_DEFAULT = 3447003  # blue
COLOR_PAID = 3066993  # green
COLOR_CANCELLED = 15158332  # red


@dataclass
class RecordEvent:
    """What happened to which record, by whom."""

    action: str  # created / updated / paid / cancelled / pending
    actor: str
    record: Payment | GoldPayment
    timestamp: datetime = field(default_factory=utcnow)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> PaymentStatus:
        return self.record.status


def _fmt(value: Any) -> str:
    if value is None or value == "":
        return "N/A"
    if isinstance(value, Decimal):
        text = f"{value:,f}"
        return text.rstrip("0").rstrip(".") if "." in text else text
    if isinstance(value, (int, float)):
        return f"{value:,}"
    return str(value)


def _color(event: RecordEvent) -> int:
    if event.action == "paid" or event.status == PaymentStatus.PAID:
        return COLOR_PAID
    if event.action == "cancelled" or event.status == PaymentStatus.CANCELLED:
        return COLOR_CANCELLED
    return COLOR_DEFAULT


def _payment_fields(payment: Payment) -> list[dict[str, Any]]:
    fields = [
        {"name": "Amount", "value": _fmt(payment.amount), "inline": True},
        {"name": "Price", "value": f"{_fmt(payment.price)} Toman", "inline": True},
        {"name": "Total (Rial)", "value": f"{_fmt(payment.total_rial)} Rial", "inline": True},
        {"name": "Payment Duration", "value": payment.payment_duration or "N/A", "inline": True},
        {"name": "Game", "value": payment.game or "N/A", "inline": True},
    ]
    if payment.due_date:
        fields.append({"name": "Due", "value": payment.due_date.strftime("%Y-%m-%d %H:%M UTC"), "inline": True})
    if payment.note:
        fields.append({"name": "Note", "value": payment.note, "inline": False})
    if payment.iban:
        fields.append({"name": "Sheba", "value": payment.iban, "inline": False})
    if payment.name_on_card:
        fields.append({"name": "Name", "value": payment.name_on_card, "inline": False})
    return fields


def _gold_fields(gold: GoldPayment) -> list[dict[str, Any]]:
    return [
        {"name": "Amount", "value": _fmt(gold.amount), "inline": True},
        {"name": "Realm", "value": gold.name_realm or "N/A", "inline": True},
        {"name": "Category", "value": gold.category or "N/A", "inline": True},
        {"name": "Payment Duration", "value": "Gold Payment", "inline": True},
    ]


def build_webhook_payload(event: RecordEvent) -> dict[str, Any]:
    """Discord webhook body for one record event."""
    record = event.record
    if isinstance(record, Payment):
        fields = _payment_fields(record)
    else:
        fields = _gold_fields(record)
    fields.append({"name": "Admin", "value": event.actor or "N/A", "inline": True})
    for name, value in event.extra.items():
        fields.append({"name": name, "value": _fmt(value), "inline": True})
    fields.extend([
        {"name": "id", "value": record.discord_id or "N/A", "inline": False},
        {"name": "payment id", "value": record.id or "N/A", "inline": False},
        {"name": "action", "value": event.action, "inline": False},
        {"name": "Status", "value": event.status.value, "inline": False},
    ])
    return {
        "content": f"A payment has been processed for <@{record.discord_id}>",
        "username": settings.webhook_username,
        "avatar_url": settings.webhook_avatar_url or None,
        "embeds": [
            {
                "title": f"Payment Details for {record.discord_id}",
                "color": _color(event),
                "fields": fields,
                "footer": {"text": f"Processed on {event.timestamp.strftime('%b %d, %Y, %H:%M:%S UTC')}"},
            }
        ],
    }


class NotificationDispatcher:
    def __init__(
        self,
        webhook_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self.webhook_url = webhook_url if webhook_url is not None else settings.discord_webhook_url
        self._timeout = timeout or settings.webhook_timeout
        self._client = client
        self._tasks: set[asyncio.Task] = set()

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def notify(self, event: RecordEvent) -> None:
        """Enqueue the event and return; delivery happens in a background task."""
        if not self.webhook_url:
            notifications_total.labels(status="skipped").inc()
            logger.info("notification_skipped_no_webhook", extra={"payment_id": event.record.id})
            return
        task = asyncio.get_running_loop().create_task(self._deliver(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, event: RecordEvent) -> bool:
        try:
            await self._send(event)
        except NotificationFailure as e:
            notifications_total.labels(status="failed").inc()
            logger.error(
                "notification_failed",
                extra={"payment_id": event.record.id, "action": event.action, "error": str(e)},
            )
            return False
        except Exception:
            notifications_total.labels(status="failed").inc()
            logger.exception("notification_failed_unexpected", extra={"payment_id": event.record.id})
            return False
        notifications_total.labels(status="sent").inc()
        logger.info("notification_sent", extra={"payment_id": event.record.id, "action": event.action})
        return True

    async def _send(self, event: RecordEvent) -> None:
        payload = build_webhook_payload(event)
        try:
            resp = await self.client.post(self.webhook_url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NotificationFailure(f"Webhook returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NotificationFailure(f"Webhook request failed: {type(e).__name__}") from e

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._client is not None:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning("Failed to close webhook client", extra={"error": str(e)})
            finally:
                self._client = None
