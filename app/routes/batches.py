"""Payment batch endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.dependencies import get_api_key, get_db, get_executor
from app.schemas.batches import BatchCreate, BatchResultIn
from hivepay.services.batching import (
    batch_progress,
    build_transfer_operations,
    payable,
    to_batches,
)
from hivepay.services.entities import PaymentBatch
from hivepay.services.execution import PayoutExecutor
from hivepay.services.repository import SqlPaymentRepository

router = APIRouter(prefix="/api", tags=["batches"])


def _batch_view(batch: PaymentBatch) -> dict[str, object]:
    view: dict[str, object] = batch.to_dict()
    view["operations"] = build_transfer_operations(batch)
    return view


@router.post("/batches")
def create_batches(
    body: BatchCreate,
    db: Session = Depends(get_db),
    _key: str = Depends(get_api_key),
):
    rows = payable([p.to_calculated() for p in body.payments])
    if not rows:
        raise HTTPException(status_code=400, detail="No payment has a positive amount")
    batches = to_batches(
        rows,
        sender=body.sender,
        currency=body.currency,
        payment_type=body.payment_type,
        max_size=body.max_size,
    )
    repo = SqlPaymentRepository(db)
    for batch in batches:
        repo.save(batch)
    return {
        "batches": [_batch_view(b) for b in batches],
        "progress": batch_progress(batches),
    }


@router.get("/batches")
def list_batches(username: str, limit: int = 50, db: Session = Depends(get_db)):
    batches = list(reversed(SqlPaymentRepository(db).find_batches_by_user(username, limit)))
    return {
        "batches": [b.to_dict() for b in batches],
        "progress": batch_progress(batches),
    }


@router.get("/batches/{batch_id}")
def get_batch(batch_id: str, db: Session = Depends(get_db)):
    batch = SqlPaymentRepository(db).find_batch_by_id(batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Batch not found")
    return _batch_view(batch)


@router.post("/batches/{batch_id}/result")
def record_batch_result(
    batch_id: str,
    body: BatchResultIn,
    executor: PayoutExecutor = Depends(get_executor),
    _key: str = Depends(get_api_key),
):
    return executor.apply_batch_result(batch_id, body.to_result()).to_dict()


@router.post("/batches/{batch_id}/cancel")
def cancel_batch(
    batch_id: str,
    executor: PayoutExecutor = Depends(get_executor),
    _key: str = Depends(get_api_key),
):
    return executor.cancel_batch(batch_id).to_dict()
