"""
Positional layout of the spreadsheet tabs.
The only place that knows which column holds which field; bump SCHEMA_VERSION
when a tab changes shape.
"""
from dataclasses import dataclass, field

SCHEMA_VERSION = 2


def column_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


@dataclass(frozen=True)
class SheetLayout:
    sheet: str
    header_label: str
    columns: dict[str, int] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return max(self.columns.values()) + 1

    @property
    def full_range(self) -> str:
        return f"{self.sheet}!A:{column_letter(self.width - 1)}"

    def row_range(self, row_number: int) -> str:
        return f"{self.sheet}!A{row_number}:{column_letter(self.width - 1)}{row_number}"

    def cells_range(self, first: str, last: str, row_number: int) -> str:
        """Range covering the columns of fields first..last on one row."""
        return (
            f"{self.sheet}!{column_letter(self.columns[first])}{row_number}"
            f":{column_letter(self.columns[last])}{row_number}"
        )

    def has_header(self, rows: list[list[str]]) -> bool:
        if not rows or not rows[0]:
            return False
        return rows[0][0].strip().lower() == self.header_label.lower()

    def pad(self, row: list[str]) -> list[str]:
        """Fixed width: missing trailing cells become empty strings."""
        if len(row) >= self.width:
            return list(row[: self.width])
        return list(row) + [""] * (self.width - len(row))

    def get(self, row: list[str], name: str) -> str:
        return row[self.columns[name]]

    def to_row(self, values: dict[str, str]) -> list[str]:
        row = [""] * self.width
        for name, value in values.items():
            row[self.columns[name]] = value
        return row


PAYMENT_COLUMNS = {
    "id": 0,
    "amount": 1,
    "price": 2,
    "total_rial": 3,
    "user": 4,
    "timestamp": 5,
    "discord_id": 6,
    "card_number": 7,
    "iban": 8,
    "name_on_card": 9,
    "phone_number": 10,
    "payment_duration": 11,
    "game": 12,
    "note": 13,
    "status": 14,
    "changed_by": 15,
    "due_date": 16,
}

GOLD_PAYMENT_COLUMNS = {
    "date": 0,
    "discord_id": 1,
    "name_realm": 2,
    "amount": 3,
    "category": 4,
    "status": 5,
    "paid_by": 6,
    "id": 7,  # optional explicit key column
}

SELLER_INFO_COLUMNS = {
    "discord_id": 0,
    "card_number": 1,
    "iban": 2,
    "name_on_card": 3,
    "phone_number": 4,
}


def payment_layout(sheet: str) -> SheetLayout:
    return SheetLayout(sheet=sheet, header_label="ID", columns=PAYMENT_COLUMNS)


def gold_payment_layout(sheet: str) -> SheetLayout:
    return SheetLayout(sheet=sheet, header_label="Date", columns=GOLD_PAYMENT_COLUMNS)


def seller_info_layout(sheet: str) -> SheetLayout:
    return SheetLayout(sheet=sheet, header_label="Discord ID", columns=SELLER_INFO_COLUMNS)
