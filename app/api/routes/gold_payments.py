from fastapi import APIRouter, Body, Depends

from app.access import ViewerContext
from app.api.deps import get_ledger, get_viewer
from app.models.gold_payment import GoldPayment
from app.schemas.payments import GoldStatusIn, GoldStatusOut
from app.services.ledger import Ledger

router = APIRouter(prefix="/gold-payments", tags=["gold-payments"])


@router.get("", response_model=list[GoldPayment])
async def list_gold_payments(
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    return await ledger.payments.list_gold_payments(viewer)


@router.put("/{payment_id}", response_model=GoldStatusOut)
async def update_gold_payment(
    payment_id: str,
    payload: GoldStatusIn = Body(...),
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    """Status change only. A synthetic ID updates every gold row of that member."""
    result = await ledger.transitions.transition_gold(payment_id, payload.status, viewer)
    rows = result.update.updated_rows
    return GoldStatusOut(
        message=f"Updated {rows} gold payment{'s' if rows != 1 else ''} for {result.update.discord_id}",
        status=result.status.value,
        updated_rows=rows,
    )
