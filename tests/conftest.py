import os
import re
from datetime import datetime, timezone

import pytest

os.environ.setdefault("SPREADSHEET_ID", "test-spreadsheet")
os.environ.setdefault("SESSION_SECRET", "test-session-secret-0123456789")
os.environ["DISCORD_WEBHOOK_URL"] = ""

from app.access import Role, ViewerContext  # noqa: E402
from app.core.exceptions import StoreUnavailable  # noqa: E402
from app.services.notifications.service import NotificationDispatcher  # noqa: E402
from app.services.records.schema import PAYMENT_COLUMNS  # noqa: E402
from app.storage.base import RecordStore, Row  # noqa: E402

FIXED_NOW = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)

PAYMENT_HEADER = [
    "ID", "Amount", "Price", "Total (Rial)", "User", "Timestamp", "Discord ID",
    "Card Number", "IBAN", "Name On Card", "Phone Number", "Payment Duration",
    "Game", "Note", "Status", "Changed By", "Due Date",
]
GOLD_HEADER = ["Date", "Discord ID", "Name-Realm", "Amount", "Category", "Paid?", "Paid By", "ID"]
SELLER_HEADER = ["Discord ID", "Card Number", "IBAN", "Name On Card", "Phone Number"]

_RANGE_RE = re.compile(r"^(?P<sheet>.+)!(?P<c1>[A-Z]+)(?P<r1>\d*):(?P<c2>[A-Z]+)(?P<r2>\d*)$")


def _column_index(letters: str) -> int:
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


class InMemoryRecordStore(RecordStore):
    """Spreadsheet stand-in: tabs are lists of rows, ranges in A1 notation."""

    def __init__(self, sheets: dict[str, list[Row]] | None = None) -> None:
        self.sheets: dict[str, list[Row]] = {name: [list(r) for r in rows] for name, rows in (sheets or {}).items()}
        self.calls: list[tuple[str, str]] = []
        self.fail_reads = False
        self.fail_writes = False
        self.closed = False

    def _parse(self, range_: str):
        match = _RANGE_RE.match(range_)
        assert match, f"unexpected range {range_}"
        return match

    async def read_rows(self, range_: str) -> list[Row]:
        self.calls.append(("read", range_))
        if self.fail_reads:
            raise StoreUnavailable("Spreadsheet unavailable")
        sheet = self._parse(range_).group("sheet")
        return [list(r) for r in self.sheets.get(sheet, [])]

    async def append_row(self, range_: str, values: Row) -> None:
        self.calls.append(("append", range_))
        if self.fail_writes:
            raise StoreUnavailable("Spreadsheet unavailable")
        sheet = self._parse(range_).group("sheet")
        self.sheets.setdefault(sheet, []).append(list(values))

    async def write_row(self, range_: str, values: Row) -> None:
        self.calls.append(("write", range_))
        if self.fail_writes:
            raise StoreUnavailable("Spreadsheet unavailable")
        match = self._parse(range_)
        rows = self.sheets.setdefault(match.group("sheet"), [])
        row_number = int(match.group("r1"))
        while len(rows) < row_number:
            rows.append([])
        row = rows[row_number - 1]
        first = _column_index(match.group("c1"))
        last = _column_index(match.group("c2"))
        if len(row) <= last:
            row.extend([""] * (last + 1 - len(row)))
        for offset, value in enumerate(values[: last - first + 1]):
            row[first + offset] = value

    async def aclose(self) -> None:
        self.closed = True

    def count(self, op: str) -> int:
        return sum(1 for call, _ in self.calls if call == op)


def make_payment_row(**fields: str) -> Row:
    row = [""] * len(PAYMENT_COLUMNS)
    defaults = {
        "amount": "100",
        "price": "50000",
        "total_rial": "50000000",
        "user": "staff",
        "timestamp": "2025-03-01T10:00:00.000Z",
        "discord_id": "111",
        "payment_duration": "1 day",
        "game": "WoW",
        "status": "Pending",
    }
    defaults.update(fields)
    for name, value in defaults.items():
        row[PAYMENT_COLUMNS[name]] = value
    return row


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore({
        "Payment": [PAYMENT_HEADER],
        "Gold Payment": [GOLD_HEADER],
        "Seller Info": [SELLER_HEADER],
    })


@pytest.fixture
def support_viewer() -> ViewerContext:
    return ViewerContext(external_id="900", username="staff", role=Role.SUPPORT)


@pytest.fixture
def member_viewer() -> ViewerContext:
    return ViewerContext(external_id="111", username="alice", role=Role.MEMBER)


@pytest.fixture
def silent_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(webhook_url="")


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def payment_row():
    return make_payment_row


@pytest.fixture
def store_factory():
    return InMemoryRecordStore
