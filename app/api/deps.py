from fastapi import Depends, Request

from app.access import ViewerContext
from app.core.config import settings
from app.services.ledger import Ledger


def get_ledger(request: Request) -> Ledger:
    return request.app.state.ledger


def get_viewer(request: Request, ledger: Ledger = Depends(get_ledger)) -> ViewerContext:
    """Viewer from the signed session token (Bearer header or session cookie)."""
    token = None
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
    if not token:
        token = request.cookies.get(settings.session_cookie_name)
    return ledger.sessions.load(token)
