"""Tests for PaymentService — create, edit, cancel and role-filtered reads."""
import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.core.exceptions import Forbidden, NotFound, ValidationError
from app.models.payment import Payment, PaymentPatch, PaymentStatus
from app.schemas.payments import PaymentCreateIn
from app.services.ledger import build_ledger
from app.services.payments.service import sort_payments_by_due_date

CREATED = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
IBAN = "IR" + "1" * 24


@pytest.fixture
def dispatcher():
    return MagicMock()


@pytest.fixture
def ledger(store, clock, dispatcher):
    return build_ledger(store, dispatcher=dispatcher, clock=clock)


def _create_in(**fields):
    data = {
        "amount": "2",
        "price": "150000",
        "discordId": "111",
        "paymentDuration": "1-2 days",
        "game": "WoW",
    }
    data.update(fields)
    return PaymentCreateIn.model_validate(data)


class TestCreatePayment:
    def test_derived_total_due_date_and_status(self, ledger, store, support_viewer):
        payment = asyncio.run(ledger.payments.create_payment(_create_in(), support_viewer))

        assert payment.total_rial == Decimal("3000000")
        assert payment.timestamp == CREATED
        assert payment.due_date == CREATED + timedelta(days=2)
        assert payment.status == PaymentStatus.PENDING
        assert payment.user == "staff"
        assert store.sheets["Payment"][1][3] == "3000000"

    def test_client_status_and_total_ignored(self, ledger, support_viewer):
        payment = asyncio.run(
            ledger.payments.create_payment(_create_in(status="Paid", totalRial="1"), support_viewer)
        )
        assert payment.status == PaymentStatus.PENDING
        assert payment.total_rial == Decimal("3000000")

    def test_bad_iban_rejected_before_any_store_call(self, ledger, store, support_viewer):
        with pytest.raises(ValidationError, match="IBAN"):
            asyncio.run(ledger.payments.create_payment(_create_in(iban="IR1234"), support_viewer))
        assert store.calls == []

    @pytest.mark.parametrize(
        "fields",
        [{"amount": "0"}, {"price": "-3"}, {"paymentDuration": ""}, {"game": " "}, {"discordId": ""}],
    )
    def test_invalid_fields(self, ledger, store, support_viewer, fields):
        with pytest.raises(ValidationError):
            asyncio.run(ledger.payments.create_payment(_create_in(**fields), support_viewer))
        assert store.count("append") == 0

    def test_member_cannot_create(self, ledger, store, member_viewer):
        with pytest.raises(Forbidden):
            asyncio.run(ledger.payments.create_payment(_create_in(), member_viewer))
        assert store.calls == []

    def test_generated_id_and_cache_invalidated(self, ledger, support_viewer, dispatcher):
        asyncio.run(ledger.caches.payments.get())
        payment = asyncio.run(ledger.payments.create_payment(_create_in(), support_viewer))

        assert len(payment.id) == 36
        assert ledger.caches.payments.peek() is None
        listed = asyncio.run(ledger.payments.list_payments(support_viewer))
        assert [p.id for p in listed] == [payment.id]
        assert dispatcher.notify.call_args.args[0].action == "created"

    def test_duplicate_explicit_id_rejected(self, ledger, store, payment_row, support_viewer):
        store.sheets["Payment"].append(payment_row(id="P-1"))
        with pytest.raises(ValidationError, match="already exists"):
            asyncio.run(ledger.payments.create_payment(_create_in(id="P-1"), support_viewer))

    def test_bank_fields_filled_from_seller_profile(self, ledger, store, support_viewer):
        store.sheets["Seller Info"].append(["111", "6037991122334455", IBAN, "Alice", "09123456789"])
        payment = asyncio.run(ledger.payments.create_payment(_create_in(nameOnCard="A. Smith"), support_viewer))

        assert payment.card_number == "6037991122334455"
        assert payment.iban == IBAN
        assert payment.name_on_card == "A. Smith"
        assert payment.phone_number == "09123456789"

    def test_seller_profile_created_from_full_bank_details(self, ledger, store, support_viewer):
        asyncio.run(
            ledger.payments.create_payment(
                _create_in(cardNumber="6037991122334455", iban=IBAN, nameOnCard="Alice"),
                support_viewer,
            )
        )
        assert store.sheets["Seller Info"][1][:4] == ["111", "6037991122334455", IBAN, "Alice"]

    def test_seller_profile_not_created_from_partial_details(self, ledger, store, support_viewer):
        asyncio.run(ledger.payments.create_payment(_create_in(nameOnCard="Alice"), support_viewer))
        assert len(store.sheets["Seller Info"]) == 1


class TestUpdatePayment:
    def test_status_only_patch_takes_status_path(self, ledger, store, payment_row, support_viewer):
        store.sheets["Payment"].append(payment_row(id="p1"))
        payment = asyncio.run(
            ledger.payments.update_payment("p1", PaymentPatch(status=PaymentStatus.PAID), support_viewer)
        )
        assert payment.status == PaymentStatus.PAID
        assert ("write", "Payment!O2:P2") in store.calls

    def test_status_patch_accepts_any_case(self, ledger, store, payment_row, support_viewer):
        store.sheets["Payment"].append(payment_row(id="p1"))
        payment = asyncio.run(ledger.payments.update_payment("p1", PaymentPatch(status="paid"), support_viewer))
        assert payment.status == PaymentStatus.PAID
        assert store.sheets["Payment"][1][14] == "Paid"

    def test_unknown_status_in_patch(self, ledger, store, payment_row, support_viewer):
        store.sheets["Payment"].append(payment_row(id="p1"))
        with pytest.raises(ValidationError, match="Status"):
            asyncio.run(ledger.payments.update_payment("p1", PaymentPatch(status="done"), support_viewer))
        assert store.count("write") == 0

    def test_full_edit_rewrites_row(self, ledger, store, payment_row, support_viewer, dispatcher):
        store.sheets["Payment"].append(payment_row(id="p1"))
        payment = asyncio.run(
            ledger.payments.update_payment("p1", PaymentPatch(note="paid half", price=Decimal("60000")), support_viewer)
        )
        assert payment.note == "paid half"
        assert payment.total_rial == Decimal("60000000")
        assert ("write", "Payment!A2:Q2") in store.calls
        assert dispatcher.notify.call_args.args[0].action == "updated"

    def test_invalid_iban_in_patch(self, ledger, store, payment_row, support_viewer):
        store.sheets["Payment"].append(payment_row(id="p1"))
        with pytest.raises(ValidationError):
            asyncio.run(ledger.payments.update_payment("p1", PaymentPatch(iban="IR1234"), support_viewer))
        assert store.calls == []

    def test_empty_patch(self, ledger, support_viewer):
        with pytest.raises(ValidationError):
            asyncio.run(ledger.payments.update_payment("p1", PaymentPatch(), support_viewer))

    def test_member_cannot_edit(self, ledger, member_viewer):
        with pytest.raises(Forbidden):
            asyncio.run(ledger.payments.update_payment("p1", PaymentPatch(note="x"), member_viewer))

    def test_cancel(self, ledger, store, payment_row, support_viewer):
        store.sheets["Payment"].append(payment_row(id="p1"))
        payment = asyncio.run(ledger.payments.cancel_payment("p1", support_viewer))
        assert payment.status == PaymentStatus.CANCELLED
        assert len(store.sheets["Payment"]) == 2


class TestReads:
    def _seed(self, store, payment_row):
        store.sheets["Payment"].extend([
            payment_row(id="mine-paid", discord_id="111", status="Paid", due_date="2025-03-02T00:00:00.000Z"),
            payment_row(id="mine-late", discord_id="111", due_date="2025-04-01T00:00:00.000Z"),
            payment_row(id="mine-soon", discord_id="111", due_date="2025-03-05T00:00:00.000Z"),
            payment_row(id="theirs", discord_id="222"),
        ])

    def test_member_sees_only_own_payments(self, ledger, store, payment_row, member_viewer):
        self._seed(store, payment_row)
        listed = asyncio.run(ledger.payments.list_payments(member_viewer))
        assert [p.id for p in listed] == ["mine-soon", "mine-late", "mine-paid"]

    def test_staff_sees_all(self, ledger, store, payment_row, support_viewer):
        self._seed(store, payment_row)
        listed = asyncio.run(ledger.payments.list_payments(support_viewer))
        assert len(listed) == 4

    def test_member_gets_not_found_for_foreign_payment(self, ledger, store, payment_row, member_viewer):
        self._seed(store, payment_row)
        assert asyncio.run(ledger.payments.get_payment("mine-late", member_viewer)).id == "mine-late"
        with pytest.raises(NotFound):
            asyncio.run(ledger.payments.get_payment("theirs", member_viewer))

    def test_member_gold_payments_filtered(self, ledger, store, member_viewer):
        store.sheets["Gold Payment"].extend([
            ["2025-03-01", "111", "A", "1k", "Raid"],
            ["2025-03-01", "222", "B", "2k", "Raid"],
        ])
        gold = asyncio.run(ledger.payments.list_gold_payments(member_viewer))
        assert [g.discord_id for g in gold] == ["111"]


def test_sort_puts_undated_unpaid_after_dated():
    undated = Payment(id="u")
    dated = Payment(id="d", due_date=CREATED)
    paid = Payment(id="p", status=PaymentStatus.PAID, due_date=CREATED - timedelta(days=9))
    assert [p.id for p in sort_payments_by_due_date([paid, undated, dated])] == ["d", "u", "p"]
