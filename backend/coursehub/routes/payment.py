"""
Payment Routes — Course purchase through the PayU hosted checkout.
Handles: initiate, gateway callback, status lookup, purchase history.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from coursehub.database import get_db
from coursehub.errors import ValidationError
from coursehub.models.user import User
from coursehub.schemas.schemas import (
    PaymentInitRequest, PaymentInitResponse, CallbackResponse, TransactionView,
)
from coursehub.services.payment_service import PaymentService, get_payment_service
from coursehub.utils.auth import get_current_user
from coursehub.utils.rate_limiter import rate_limit

router = APIRouter(prefix="/api/payment", tags=["Payment"])


@router.post("/initiate", response_model=PaymentInitResponse)
def initiate_payment(
    payload: PaymentInitRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
    _throttle: bool = Depends(rate_limit(requests=10, window=60, scope="payment")),
):
    """Start (or replay) a purchase attempt and return the signed checkout parameters."""
    result = service.initiate(
        db,
        user,
        payload.course_id,
        request_time=datetime.utcnow(),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent", ""),
    )
    return PaymentInitResponse(
        transaction_id=result.transaction.transaction_id,
        payment_url=result.payment_url,
        payment_params=result.params,
        merchant_key=result.merchant_key,
    )


@router.post("/callback", response_model=CallbackResponse)
async def payment_callback(
    request: Request,
    db: Session = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
):
    """Gateway webhook. Public; authenticity comes from the response hash."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError(
                "Malformed gateway response",
                errors=[{"field": "body", "message": "Body is not valid JSON"}],
            )
        raw = body if isinstance(body, dict) else {}
    else:
        raw = dict(await request.form())
    payload = {str(k): str(v) for k, v in raw.items() if v is not None}

    result = await run_in_threadpool(service.handle_callback, db, payload)
    return CallbackResponse(
        transaction_id=result.transaction_id,
        status=result.status,
        gateway_payment_id=result.gateway_payment_id,
    )


@router.get("/status/{transaction_id}", response_model=TransactionView)
def get_payment_status(
    transaction_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PaymentService.get_status(db, transaction_id, user.id)


@router.get("/history", response_model=list[TransactionView])
def get_payment_history(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PaymentService.history(db, user.id, limit=limit, offset=offset)
