"""
Google Sheets v4 REST store using httpx async client.
Values are written RAW so ISO timestamps and IDs stay plain strings.
"""
import logging
import time
from urllib.parse import quote

import httpx
import pybreaker

from app.core.config import settings
from app.core.exceptions import StoreUnavailable
from app.services.circuit_breaker import call_with_breaker, get_circuit_breaker
from app.storage.base import RecordStore, Row
from app.utils.metrics import store_requests_total, store_request_duration_seconds


logger = logging.getLogger(__name__)


class GoogleSheetsStore(RecordStore):
    """Spreadsheet-backed RecordStore. One instance per process."""

    def __init__(
        self,
        spreadsheet_id: str | None = None,
        access_token: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id or settings.spreadsheet_id
        self._access_token = access_token if access_token is not None else settings.google_sheets_access_token
        self._api_key = api_key if api_key is not None else settings.google_sheets_api_key
        self._timeout = timeout or settings.store_timeout_seconds
        self._base_url = f"{settings.google_sheets_api_url}/spreadsheets/{self._spreadsheet_id}/values"
        self._client = client
        self._breaker = get_circuit_breaker("sheets")

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        if self._access_token:
            return {"Authorization": f"Bearer {self._access_token}"}
        return {}

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self._api_key and not self._access_token:
            params["key"] = self._api_key
        return params

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> dict:
        async def _send() -> httpx.Response:
            response = await self.client.request(method, url, headers=self._headers(), **kwargs)
            response.raise_for_status()
            return response

        start = time.time()
        try:
            resp = await call_with_breaker(self._breaker, _send)
        except pybreaker.CircuitBreakerError as e:
            store_requests_total.labels(operation=operation, status="error").inc()
            logger.warning("store_breaker_open", extra={"range": url, "error": str(e)})
            raise StoreUnavailable("Spreadsheet temporarily unavailable") from e
        except httpx.HTTPStatusError as e:
            store_requests_total.labels(operation=operation, status="error").inc()
            logger.error(
                "store_request_failed",
                extra={"range": url, "status_code": e.response.status_code, "error": e.response.text[:500]},
            )
            raise StoreUnavailable(f"Spreadsheet {operation} failed: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            store_requests_total.labels(operation=operation, status="error").inc()
            logger.error("store_request_failed", extra={"range": url, "error": f"{type(e).__name__}: {e}"})
            raise StoreUnavailable(f"Spreadsheet {operation} failed: {type(e).__name__}") from e
        finally:
            store_request_duration_seconds.labels(operation=operation).observe(time.time() - start)
        store_requests_total.labels(operation=operation, status="success").inc()
        if not resp.content:
            return {}
        return resp.json()

    def _url(self, range_: str, suffix: str = "") -> str:
        return f"{self._base_url}/{quote(range_, safe='!:')}{suffix}"

    async def read_rows(self, range_: str) -> list[Row]:
        data = await self._request("read", "GET", self._url(range_), params=self._params())
        rows = data.get("values") or []
        return [[("" if cell is None else str(cell)) for cell in row] for row in rows]

    async def append_row(self, range_: str, values: Row) -> None:
        await self._request(
            "append",
            "POST",
            self._url(range_, ":append"),
            params=self._params(valueInputOption="RAW", insertDataOption="INSERT_ROWS"),
            json={"values": [values]},
        )

    async def write_row(self, range_: str, values: Row) -> None:
        await self._request(
            "write",
            "PUT",
            self._url(range_),
            params=self._params(valueInputOption="RAW"),
            json={"range": range_, "majorDimension": "ROWS", "values": [values]},
        )

    async def aclose(self) -> None:
        """Close httpx client."""
        if self._client is not None:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning("Failed to close store client", extra={"error": str(e)})
            finally:
                self._client = None
