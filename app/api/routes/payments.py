"""
Payments API: role-filtered listing, create, edit, cancel and batch status.
Order: /payments/duration-options and /payments/update-status before /payments/{payment_id}.
"""
from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse

from app.access import ViewerContext
from app.api.deps import get_ledger, get_viewer
from app.models.payment import Payment
from app.schemas.payments import (
    BatchItemOut,
    BatchStatusIn,
    BatchStatusOut,
    DeleteOut,
    PaymentCreateIn,
    PaymentUpdateIn,
)
from app.services.ledger import Ledger
from app.utils.due_date import PAYMENT_DURATION_OPTIONS

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[Payment])
async def list_payments(
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    """All payments for staff, own payments for members. Unpaid first, by due date."""
    return await ledger.payments.list_payments(viewer)


@router.post("", response_model=Payment, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreateIn = Body(...),
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    return await ledger.payments.create_payment(payload, viewer)


@router.get("/duration-options")
async def duration_options(viewer: ViewerContext = Depends(get_viewer)):
    return {"options": PAYMENT_DURATION_OPTIONS}


@router.post("/update-status", response_model=BatchStatusOut)
async def update_status(
    payload: BatchStatusIn = Body(...),
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    """
    Same status for many payments. Each ID settles independently:
    200 when all succeeded, 207 with per-ID failures otherwise.
    """
    result = await ledger.transitions.transition_many(payload.payment_ids, payload.status, viewer)
    items = [
        BatchItemOut(payment_id=r.payment_id, success=r.success, error=r.error, result=r.payment)
        for r in result.results
    ]
    body = BatchStatusOut(
        message=f"Updated {result.succeeded} of {len(items)} payments to {result.status.value}",
        outcome=result.outcome,
        results=items,
        failures=[item for item in items if not item.success],
    )
    return JSONResponse(status_code=result.status_code, content=body.model_dump(mode="json", by_alias=True))


@router.get("/{payment_id}", response_model=Payment)
async def get_payment(
    payment_id: str,
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    return await ledger.payments.get_payment(payment_id, viewer)


@router.put("/{payment_id}", response_model=Payment)
async def update_payment(
    payment_id: str,
    payload: PaymentUpdateIn = Body(...),
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    return await ledger.payments.update_payment(payment_id, payload, viewer)


@router.delete("/{payment_id}", response_model=DeleteOut)
async def delete_payment(
    payment_id: str,
    ledger: Ledger = Depends(get_ledger),
    viewer: ViewerContext = Depends(get_viewer),
):
    """Payments are not removed from the sheet; delete sets Cancelled."""
    payment = await ledger.payments.cancel_payment(payment_id, viewer)
    return DeleteOut(payment=payment)
