"""
Error taxonomy of the ledger service.
Routes never build HTTP errors by hand: app.main maps these to status codes.
"""
from typing import Any


class LedgerError(Exception):
    """Base class; status_code is the HTTP analog used by the API layer."""

    status_code = 500

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ValidationError(LedgerError):
    """Malformed input. Raised before any store call, never retried."""

    status_code = 400


class Unauthenticated(LedgerError):
    status_code = 401


class Forbidden(LedgerError):
    """Viewer lacks the privileged role."""

    status_code = 403


class NotFound(LedgerError):
    """Identity absent in the store."""

    status_code = 404


class StoreUnavailable(LedgerError):
    """Transient spreadsheet failure (HTTP error, timeout, open breaker)."""

    status_code = 500


class NotificationFailure(LedgerError):
    """Webhook delivery failed. Logged by the dispatcher, never surfaced."""
