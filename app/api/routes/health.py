from fastapi import APIRouter, Depends, Response

from app.api.deps import get_ledger
from app.core.exceptions import StoreUnavailable
from app.services.ledger import Ledger


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
async def readiness(response: Response, ledger: Ledger = Depends(get_ledger)) -> dict:
    """Readiness probe - returns 503 if the spreadsheet is unreachable and nothing is cached."""
    try:
        await ledger.caches.payments.get()
        return {"status": "ready", "caches": ledger.caches.states()}
    except StoreUnavailable as e:
        response.status_code = 503
        return {"status": "not_ready", "error": e.message, "caches": ledger.caches.states()}
