from abc import ABC, abstractmethod


Row = list[str]


class RecordStore(ABC):
    """
    Row-range access to the tabular store.
    Ranges use A1 notation including the sheet name, e.g. "Payment!A:Q".
    Implementations raise app.core.exceptions.StoreUnavailable on any failure.
    """

    @abstractmethod
    async def read_rows(self, range_: str) -> list[Row]:
        """Return all rows of the range; trailing empty cells may be missing."""
        raise NotImplementedError

    @abstractmethod
    async def append_row(self, range_: str, values: Row) -> None:
        raise NotImplementedError

    @abstractmethod
    async def write_row(self, range_: str, values: Row) -> None:
        """Overwrite the cells of range_ (one row) with values."""
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
