"""
M-Pesa Routes — STK push initiation, status reconciliation, gateway callback.
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.schemas.schemas import (
    StkPushRequest, StkPushResponse, StatusRequest, StatusResponse, CallbackAck,
)
from app.services.mpesa_client import MpesaClient, MpesaError, get_mpesa_client
from app.services.payment_service import PaymentService
from app.utils.logger import log_event
from app.utils.rate_limiter import rate_limit

settings = get_settings()

router = APIRouter(prefix="/api/mpesa", tags=["M-Pesa"])


@router.post("/stk-push", response_model=StkPushResponse)
def stk_push(
    payload: StkPushRequest,
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
    client: MpesaClient = Depends(get_mpesa_client),
    _throttle: bool = Depends(rate_limit(
        requests=settings.STK_PUSH_RATE_LIMIT, window=settings.STK_PUSH_RATE_WINDOW, scope="stk-push",
    )),
):
    """Send the M-Pesa prompt to the payer's phone."""
    try:
        data = PaymentService.initiate(
            db, client, user_id,
            payload.phoneNumber, payload.amount, payload.plan, payload.interval,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MpesaError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return StkPushResponse(
        success=True,
        CheckoutRequestID=data["CheckoutRequestID"],
        MerchantRequestID=data.get("MerchantRequestID"),
        ResponseCode=str(data.get("ResponseCode", "0")),
        ResponseDescription=data.get("ResponseDescription"),
        CustomerMessage=data.get("CustomerMessage"),
    )


@router.post("/status", response_model=StatusResponse)
def check_status(
    payload: StatusRequest,
    db: Session = Depends(get_db),
    client: MpesaClient = Depends(get_mpesa_client),
):
    """Resolve the current state of a checkout."""
    if not payload.CheckoutRequestID:
        raise HTTPException(status_code=400, detail="CheckoutRequestID is required")

    result = PaymentService.reconcile(db, client, payload.CheckoutRequestID)
    return StatusResponse(
        status=result.status,
        message=result.message,
        resultCode=result.result_code,
        resultDesc=result.result_desc,
    )


@router.post("/callback", response_model=CallbackAck)
async def mpesa_callback(request: Request, db: Session = Depends(get_db)):
    """Gateway webhook. Always answers 200 so the gateway does not retry."""
    try:
        payload = await request.json()
    except ValueError:
        log_event("mpesa", "Callback with non-JSON body")
        return CallbackAck(success=False, message="Invalid JSON body")

    log_event("mpesa", f"Callback received: {payload}")
    try:
        record = PaymentService.record_callback(db, payload)
    except ValueError as e:
        return CallbackAck(success=False, message=str(e))
    except Exception as e:
        db.rollback()
        log_event("mpesa", f"Callback processing error: {e}")
        return CallbackAck(success=False, message="Callback could not be processed")

    status = "completed" if record.result_code == 0 else "failed"
    return CallbackAck(
        success=True,
        message=f"Callback processed - {status}",
        checkoutRequestId=record.checkout_request_id,
    )
