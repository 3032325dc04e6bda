from fastapi import APIRouter, Body, Depends, Query

from app.access import ViewerContext
from app.api.deps import get_ledger, get_viewer
from app.schemas.payments import SellerInfoIn, SellerInfoOut
from app.services.ledger import Ledger

router = APIRouter(prefix="/seller-info", tags=["seller-info"])


@router.get("", response_model=SellerInfoOut)
async def get_seller_info(
    discord_id: str = Query("", alias="discordId"),
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    info = await ledger.sellers.get(discord_id, viewer)
    return SellerInfoOut(message="Seller info found", data=info)


@router.post("", response_model=SellerInfoOut)
async def upsert_seller_info(
    payload: SellerInfoIn = Body(...),
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    action, info = await ledger.sellers.upsert(payload.to_model(), viewer)
    return SellerInfoOut(message=f"Seller info {action} successfully", data=info)
