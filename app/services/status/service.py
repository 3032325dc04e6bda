"""
StatusTransitionService — Pending / Paid / Cancelled changes.

Every transition between the three states is allowed (no terminal state), so
a cancelled payment can be reinstated. A transition writes only the status
and actor cells, invalidates the collection cache and enqueues a
notification; notification problems never fail the transition.
"""
import asyncio
import logging
from dataclasses import dataclass, field

from app.access import ViewerContext, require_privileged
from app.core.exceptions import LedgerError, ValidationError
from app.models.gold_payment import GoldPayment
from app.models.payment import Payment, PaymentStatus, parse_status
from app.services.cache.service import CacheRegistry
from app.services.notifications.service import NotificationDispatcher, RecordEvent
from app.services.records.service import GoldStatusUpdate, RecordStoreAdapter
from app.utils.metrics import status_transitions_total

logger = logging.getLogger(__name__)


def coerce_status(value: str | PaymentStatus | None) -> PaymentStatus:
    status = parse_status(value) if value is not None else None
    if status is None:
        raise ValidationError(
            "Status must be one of Pending, Paid, Cancelled",
            detail={"field": "status", "value": value},
        )
    return status


@dataclass
class BatchItemResult:
    payment_id: str
    success: bool
    error: str | None = None
    payment: Payment | None = None


@dataclass
class BatchResult:
    status: PaymentStatus
    results: list[BatchItemResult] = field(default_factory=list)

    @property
    def failures(self) -> list[BatchItemResult]:
        return [r for r in self.results if not r.success]

    @property
    def succeeded(self) -> int:
        return len(self.results) - len(self.failures)

    @property
    def outcome(self) -> str:
        """ok / partial / failed."""
        if not self.failures:
            return "ok"
        return "partial" if self.succeeded else "failed"

    @property
    def status_code(self) -> int:
        # multi-status whenever any item failed
        return 200 if not self.failures else 207


@dataclass
class GoldTransitionResult:
    status: PaymentStatus
    update: GoldStatusUpdate
    record: GoldPayment


class StatusTransitionService:
    def __init__(
        self,
        adapter: RecordStoreAdapter,
        caches: CacheRegistry,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self.adapter = adapter
        self.caches = caches
        self.dispatcher = dispatcher

    async def _apply(self, payment_id: str, status: PaymentStatus, actor: str) -> Payment:
        payment = await self.adapter.set_payment_status(payment_id, status, actor=actor)
        self.caches.payments.invalidate()
        status_transitions_total.labels(collection="payments", status=status.value).inc()
        self.dispatcher.notify(RecordEvent(action=status.value.lower(), actor=actor, record=payment))
        return payment

    async def transition(
        self, payment_id: str, target: str | PaymentStatus, viewer: ViewerContext
    ) -> Payment:
        require_privileged(viewer, "update payments")
        status = coerce_status(target)
        payment = await self._apply(payment_id, status, viewer.label)
        logger.info(
            "payment_transitioned",
            extra={"payment_id": payment_id, "status": status.value, "actor": viewer.label},
        )
        return payment

    async def transition_many(
        self, payment_ids: list[str], target: str | PaymentStatus, viewer: ViewerContext
    ) -> BatchResult:
        """
        Apply one status to many payments concurrently. Each ID settles on its
        own; one failure does not cancel or roll back the others.
        """
        require_privileged(viewer, "update payments")
        if not payment_ids or not all(isinstance(pid, str) and pid for pid in payment_ids):
            raise ValidationError("Invalid or empty payment IDs array", detail={"field": "paymentIds"})
        status = coerce_status(target)
        ids = list(dict.fromkeys(payment_ids))

        outcomes = await asyncio.gather(
            *(self._apply(pid, status, viewer.label) for pid in ids),
            return_exceptions=True,
        )

        result = BatchResult(status=status)
        for pid, outcome in zip(ids, outcomes):
            if isinstance(outcome, LedgerError):
                logger.warning("batch_item_failed", extra={"payment_id": pid, "error": outcome.message})
                result.results.append(BatchItemResult(payment_id=pid, success=False, error=outcome.message))
            elif isinstance(outcome, BaseException):
                logger.error(
                    "batch_item_failed_unexpected",
                    extra={"payment_id": pid, "error": f"{type(outcome).__name__}: {outcome}"},
                )
                result.results.append(BatchItemResult(payment_id=pid, success=False, error=str(outcome)))
            else:
                result.results.append(BatchItemResult(payment_id=pid, success=True, payment=outcome))

        # a failed item may have failed after its write landed
        self.caches.payments.invalidate()
        logger.info(
            "payments_batch_transitioned",
            extra={"status": status.value, "count": result.succeeded, "rows": len(ids), "action": result.outcome},
        )
        return result

    async def transition_gold(
        self, payment_id: str, target: str | PaymentStatus, viewer: ViewerContext
    ) -> GoldTransitionResult:
        """
        Status change of a gold payment. A synthetic ID applies to every gold
        row of the same member (see RecordStoreAdapter.update_gold_status_for_member).
        """
        require_privileged(viewer, "update gold payment status")
        status = coerce_status(target)
        snapshot = self.caches.gold_payments.peek() or []
        existing = next((g for g in snapshot if g.id == payment_id), None)

        update = await self.adapter.update_gold_payment_status(payment_id, status, actor=viewer.label)
        self.caches.gold_payments.invalidate()
        status_transitions_total.labels(collection="gold_payments", status=status.value).inc()

        if existing is not None:
            record = existing.model_copy(update={"status": status, "paid_by": viewer.label})
        else:
            record = GoldPayment(id=payment_id, discord_id=update.discord_id, status=status, paid_by=viewer.label)
        self.dispatcher.notify(
            RecordEvent(
                action=status.value.lower(),
                actor=viewer.label,
                record=record,
                extra={"Rows updated": update.updated_rows},
            )
        )
        logger.info(
            "gold_payment_transitioned",
            extra={
                "payment_id": payment_id,
                "discord_id": update.discord_id,
                "status": status.value,
                "count": update.updated_rows,
            },
        )
        return GoldTransitionResult(status=status, update=update, record=record)
