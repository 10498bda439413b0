"""Payment history and single-payment lifecycle endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.dependencies import get_api_key, get_db, get_executor, get_query_service
from db.enums import Currency, PaymentStatus, PaymentType
from hivepay.services._types import PaymentHistoryDict, PaymentStatsDict
from hivepay.services.execution import PaymentQueryService, PayoutExecutor
from hivepay.services.repository import SqlPaymentRepository

router = APIRouter(prefix="/api", tags=["payments"])


@router.get("/payments")
def payment_history(
    username: str,
    status: PaymentStatus | None = Query(None),
    payment_type: PaymentType | None = Query(None, alias="type"),
    currency: Currency | None = Query(None),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    svc: PaymentQueryService = Depends(get_query_service),
) -> PaymentHistoryDict:
    return svc.history(username, status, payment_type, currency, limit, offset)


@router.get("/payments/stats")
def payment_stats(
    username: str,
    svc: PaymentQueryService = Depends(get_query_service),
) -> PaymentStatsDict:
    return svc.stats(username)


@router.get("/payments/{payment_id}")
def get_payment(payment_id: str, db: Session = Depends(get_db)):
    payment = SqlPaymentRepository(db).find_by_id(payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment.to_dict()


@router.post("/payments/{payment_id}/cancel")
def cancel_payment(
    payment_id: str,
    executor: PayoutExecutor = Depends(get_executor),
    _key: str = Depends(get_api_key),
):
    return executor.cancel_payment(payment_id).to_dict()


@router.post("/payments/{payment_id}/retry")
def retry_payment(
    payment_id: str,
    executor: PayoutExecutor = Depends(get_executor),
    _key: str = Depends(get_api_key),
):
    return executor.retry_payment(payment_id).to_dict()
