"""Tests for StatusTransitionService — single, batch and gold transitions."""
import asyncio
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import Forbidden, NotFound, StoreUnavailable, ValidationError
from app.models.payment import PaymentStatus
from app.services.cache.service import CacheRegistry
from app.services.records.service import RecordStoreAdapter
from app.services.status.service import StatusTransitionService, coerce_status


@pytest.fixture
def dispatcher():
    return MagicMock()


@pytest.fixture
def service(store, clock, dispatcher):
    adapter = RecordStoreAdapter(store, clock=clock)
    return StatusTransitionService(adapter, CacheRegistry(adapter), dispatcher)


def test_coerce_status_accepts_any_case():
    assert coerce_status("paid") == PaymentStatus.PAID
    assert coerce_status(PaymentStatus.CANCELLED) == PaymentStatus.CANCELLED


@pytest.mark.parametrize("value", ["done", "", None, "yes"])
def test_coerce_status_rejects_non_canonical(value):
    with pytest.raises(ValidationError):
        coerce_status(value)


class TestTransition:
    def test_member_is_forbidden(self, service, store, payment_row, member_viewer):
        store.sheets["Payment"].append(payment_row(id="p1"))
        with pytest.raises(Forbidden):
            asyncio.run(service.transition("p1", "Paid", member_viewer))
        assert store.count("write") == 0

    def test_invalid_status_fails_before_store(self, service, store, support_viewer):
        with pytest.raises(ValidationError):
            asyncio.run(service.transition("p1", "Refunded", support_viewer))
        assert store.calls == []

    def test_writes_status_invalidates_and_notifies(self, service, store, payment_row, support_viewer, dispatcher):
        store.sheets["Payment"].append(payment_row(id="p1"))
        asyncio.run(service.caches.payments.get())

        payment = asyncio.run(service.transition("p1", "Paid", support_viewer))

        assert payment.status == PaymentStatus.PAID
        assert payment.changed_by == "staff"
        assert service.caches.payments.peek() is None
        event = dispatcher.notify.call_args.args[0]
        assert event.action == "paid"
        assert event.record.id == "p1"

    def test_cancelled_then_paid_last_actor_wins(self, service, store, payment_row, support_viewer):
        store.sheets["Payment"].append(payment_row(id="p1"))
        other = support_viewer.model_copy(update={"username": "staff2", "external_id": "901"})

        async def scenario():
            seen = []
            await service.transition("p1", "Cancelled", support_viewer)
            seen.append((await service.caches.payments.get())[0].status)
            await service.transition("p1", "Paid", other)
            seen.append((await service.caches.payments.get())[0])
            return seen

        cancelled, final = asyncio.run(scenario())
        assert cancelled == PaymentStatus.CANCELLED
        assert final.status == PaymentStatus.PAID
        assert final.changed_by == "staff2"

    def test_cancelled_can_be_reinstated(self, service, store, payment_row, support_viewer):
        store.sheets["Payment"].append(payment_row(id="p1", status="Cancelled"))
        payment = asyncio.run(service.transition("p1", "Pending", support_viewer))
        assert payment.status == PaymentStatus.PENDING

    def test_unknown_payment(self, service, support_viewer, dispatcher):
        with pytest.raises(NotFound):
            asyncio.run(service.transition("missing", "Paid", support_viewer))
        dispatcher.notify.assert_not_called()


class TestTransitionMany:
    def _seed(self, store, payment_row):
        store.sheets["Payment"].extend([payment_row(id="A"), payment_row(id="B"), payment_row(id="C")])

    def test_all_succeed(self, service, store, payment_row, support_viewer):
        self._seed(store, payment_row)
        result = asyncio.run(service.transition_many(["A", "B", "C"], "Paid", support_viewer))
        assert result.outcome == "ok"
        assert result.status_code == 200
        assert result.succeeded == 3

    def test_one_write_fails_result_is_partial(self, service, store, payment_row, support_viewer):
        self._seed(store, payment_row)
        original = store.write_row

        async def flaky_write(range_, values):
            if range_ == "Payment!O3:P3":
                raise StoreUnavailable("Spreadsheet unavailable")
            await original(range_, values)

        store.write_row = flaky_write
        result = asyncio.run(service.transition_many(["A", "B", "C"], "Paid", support_viewer))

        by_id = {r.payment_id: r for r in result.results}
        assert by_id["A"].success and by_id["C"].success
        assert not by_id["B"].success
        assert by_id["B"].error == "Spreadsheet unavailable"
        assert result.outcome == "partial"
        assert result.status_code == 207
        assert store.sheets["Payment"][1][14] == "Paid"
        assert store.sheets["Payment"][2][14] == "Pending"
        assert store.sheets["Payment"][3][14] == "Paid"

    def test_all_fail(self, service, support_viewer):
        result = asyncio.run(service.transition_many(["X", "Y"], "Paid", support_viewer))
        assert result.outcome == "failed"
        assert result.status_code == 207
        assert [f.payment_id for f in result.failures] == ["X", "Y"]

    def test_duplicate_ids_applied_once(self, service, store, payment_row, support_viewer):
        self._seed(store, payment_row)
        result = asyncio.run(service.transition_many(["A", "A", "B"], "Cancelled", support_viewer))
        assert [r.payment_id for r in result.results] == ["A", "B"]

    @pytest.mark.parametrize("ids", [[], ["A", ""], ["A", 3]])
    def test_invalid_id_list(self, service, support_viewer, ids):
        with pytest.raises(ValidationError):
            asyncio.run(service.transition_many(ids, "Paid", support_viewer))

    def test_member_is_forbidden(self, service, member_viewer):
        with pytest.raises(Forbidden):
            asyncio.run(service.transition_many(["A"], "Paid", member_viewer))


class TestTransitionGold:
    def test_synthetic_id_updates_member_rows_and_notifies(self, service, store, support_viewer, dispatcher):
        store.sheets["Gold Payment"].extend([
            ["2025-03-01", "111", "Alice-Realm", "200k", "Raid"],
            ["2025-03-02", "111", "Alice-Realm", "10k", "Raid"],
        ])
        gold = asyncio.run(service.caches.gold_payments.get())

        result = asyncio.run(service.transition_gold(gold[0].id, "Paid", support_viewer))

        assert result.update.updated_rows == 2
        assert result.record.name_realm == "Alice-Realm"
        assert result.record.status == PaymentStatus.PAID
        assert service.caches.gold_payments.peek() is None
        event = dispatcher.notify.call_args.args[0]
        assert event.extra == {"Rows updated": 2}

    def test_member_is_forbidden(self, service, member_viewer):
        with pytest.raises(Forbidden):
            asyncio.run(service.transition_gold("gold-111-0-1", "Paid", member_viewer))
