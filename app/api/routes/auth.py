"""
Session routes.
The Discord OAuth exchange happens in the sign-in glue; it calls POST /auth/session
with the Discord user and gets back the signed session token.
"""
import hmac

from fastapi import APIRouter, Body, Depends, Header, Response
from pydantic import BaseModel

from app.access import ViewerContext
from app.api.deps import get_ledger, get_viewer
from app.core.config import settings
from app.core.exceptions import Forbidden, Unauthenticated
from app.services.ledger import Ledger

router = APIRouter(prefix="/auth", tags=["auth"])


class SessionRequest(BaseModel):
    discord_id: str
    username: str = ""


class SessionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: ViewerContext


def require_internal_key(x_internal_key: str = Header("", alias="X-Internal-Key")) -> None:
    if not settings.internal_api_key:
        raise Forbidden("Session issuing is disabled")
    if not hmac.compare_digest(x_internal_key, settings.internal_api_key):
        raise Unauthenticated("Unauthorized")


@router.post("/session", response_model=SessionOut, dependencies=[Depends(require_internal_key)])
async def create_session(
    response: Response,
    body: SessionRequest = Body(...),
    ledger: Ledger = Depends(get_ledger),
):
    """Resolve the member's role from the guild and sign a session for them."""
    viewer = await ledger.roles.build_viewer(body.discord_id, body.username)
    token = ledger.sessions.issue(viewer)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.app_env == "production",
    )
    return {"access_token": token, "token_type": "bearer", "user": viewer}


@router.get("/me", response_model=ViewerContext)
async def get_me(viewer: ViewerContext = Depends(get_viewer)):
    return viewer


@router.post("/logout")
async def logout(response: Response):
    """Drop the session cookie (Bearer tokens expire on their own)."""
    response.delete_cookie(settings.session_cookie_name)
    return {"message": "Successfully logged out"}
