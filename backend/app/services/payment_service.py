"""
Payment Service — STK push initiation, status reconciliation, callback intake.

Status sources are consulted in a fixed order: the callback log, then the
payment row, then a direct query to the gateway. A callback always wins.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, NamedTuple, Optional

from sqlalchemy.orm import Session

from app.models.payment import MpesaPayment, MpesaCallback
from app.services.mpesa_client import MpesaClient, MpesaError
from app.utils.hashing import generate_hash
from app.utils.logger import log_event
from app.utils.validators import normalize_phone, validate_amount, validate_plan

PENDING = "PENDING"
COMPLETED = "COMPLETED"
FAILED = "FAILED"

PROCESSING_MESSAGE = "Payment is being processed"

# Daraja result codes
RESULT_SUCCESS = 0
RESULT_CANCELLED_BY_USER = 1032
ERROR_REQUEST_EXPIRED = "500.001.1001"


class StatusResult(NamedTuple):
    status: str
    message: str
    result_code: Optional[int] = None
    result_desc: Optional[str] = None


def _to_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class PaymentService:
    """M-Pesa checkout lifecycle backed by the mpesa_payments / mpesa_callbacks tables."""

    @staticmethod
    def initiate(
        db: Session,
        client: MpesaClient,
        user_id: str,
        phone_number: str,
        amount,
        plan: str,
        interval: str,
    ) -> Dict[str, Any]:
        """Validate the request, send the STK push and persist the charge.

        Raises:
            ValueError: Bad phone, amount or plan. Nothing is persisted and
                the gateway is not contacted.
            MpesaError: The gateway refused. The pending row is marked failed.
        """
        phone = normalize_phone(phone_number)
        whole_amount = validate_amount(amount)
        ok, reason = validate_plan(plan, interval, whole_amount)
        if not ok:
            raise ValueError(reason)

        # Held under a temporary key until the gateway assigns the real one
        payment = MpesaPayment(
            checkout_request_id=f"temp_{uuid.uuid4().hex}",
            user_id=user_id,
            phone_number=phone,
            amount=whole_amount,
            plan=plan,
            interval=interval,
            status="pending",
        )
        db.add(payment)
        db.commit()

        log_event("mpesa", f"STK push for {phone} amount={whole_amount} plan={plan}/{interval}")

        try:
            data = client.stk_push(phone, whole_amount, f"Subscription - {plan} ({interval}ly)")
        except MpesaError as e:
            payment.status = "failed"
            payment.result_desc = str(e)[:512]
            db.commit()
            log_event("mpesa", f"STK push failed for payment {payment.id}: {e}")
            raise

        payment.checkout_request_id = data["CheckoutRequestID"]
        payment.merchant_request_id = data.get("MerchantRequestID")
        db.commit()

        log_event("mpesa", f"STK push accepted: {payment.checkout_request_id}")
        return data

    @staticmethod
    def latest_callback(db: Session, checkout_request_id: str) -> Optional[MpesaCallback]:
        return (
            db.query(MpesaCallback)
            .filter(MpesaCallback.checkout_request_id == checkout_request_id)
            .order_by(MpesaCallback.created_at.desc(), MpesaCallback.id.desc())
            .first()
        )

    @staticmethod
    def stored_status(db: Session, checkout_request_id: str) -> Optional[StatusResult]:
        """Resolve from the store alone: callback log first, then the payment row."""
        callback = PaymentService.latest_callback(db, checkout_request_id)
        if callback is not None:
            if callback.result_code == RESULT_SUCCESS:
                return StatusResult(COMPLETED, "Payment completed successfully", callback.result_code, callback.result_desc)
            return StatusResult(FAILED, callback.result_desc or "Payment failed", callback.result_code, callback.result_desc)

        payment = (
            db.query(MpesaPayment)
            .filter(MpesaPayment.checkout_request_id == checkout_request_id)
            .first()
        )
        if payment is not None and payment.status != "pending":
            if payment.status == "completed":
                return StatusResult(COMPLETED, "Payment completed successfully", payment.result_code, payment.result_desc)
            return StatusResult(FAILED, payment.result_desc or "Payment failed", payment.result_code, payment.result_desc)

        return None

    @staticmethod
    def interpret_query(ok: bool, data: Optional[Dict[str, Any]]) -> StatusResult:
        """Map an STK push query answer onto PENDING / COMPLETED / FAILED."""
        if not ok or not isinstance(data, dict):
            return StatusResult(PENDING, PROCESSING_MESSAGE)

        code = _to_int(data.get("ResultCode"))
        desc = data.get("ResultDesc")

        if code == RESULT_SUCCESS:
            return StatusResult(COMPLETED, desc or "Payment completed successfully", code, desc)
        if code == RESULT_CANCELLED_BY_USER:
            return StatusResult(FAILED, "Request cancelled by user", code, desc)
        if data.get("errorCode") == ERROR_REQUEST_EXPIRED:
            return StatusResult(FAILED, "Payment request has expired", code, desc)
        if code is not None:
            return StatusResult(FAILED, desc or "Payment failed", code, desc)

        error_message = data.get("errorMessage")
        if error_message:
            if "Invalid Access Token" in error_message:
                return StatusResult(PENDING, "Verifying payment status")
            return StatusResult(FAILED, error_message)

        return StatusResult(PENDING, PROCESSING_MESSAGE)

    @staticmethod
    def reconcile(db: Session, client: MpesaClient, checkout_request_id: str) -> StatusResult:
        """Current status of a charge, asking the gateway only when the store is undecided."""
        stored = PaymentService.stored_status(db, checkout_request_id)
        if stored is not None:
            return stored

        try:
            ok, data = client.stk_query(checkout_request_id)
        except Exception as e:
            log_event("mpesa", f"Status query failed for {checkout_request_id}: {e}")
            return StatusResult(PENDING, "Payment status check is in progress")

        result = PaymentService.interpret_query(ok, data)

        if result.status != PENDING:
            payment = (
                db.query(MpesaPayment)
                .filter(MpesaPayment.checkout_request_id == checkout_request_id)
                .first()
            )
            # Only resolve a row nobody else resolved in the meantime
            if payment is not None and payment.status == "pending":
                payment.status = "completed" if result.status == COMPLETED else "failed"
                payment.result_code = result.result_code
                payment.result_desc = (result.result_desc or result.message)[:512]
                payment.updated_at = datetime.utcnow()
                db.commit()

        return result

    @staticmethod
    def record_callback(db: Session, payload: Dict[str, Any]) -> MpesaCallback:
        """Append a gateway notification to the log and apply it to the payment row.

        Raises:
            ValueError: The payload has no Body.stkCallback with a
                CheckoutRequestID and ResultCode.
        """
        try:
            callback = payload["Body"]["stkCallback"]
            checkout_request_id = callback["CheckoutRequestID"]
            result_code = _to_int(callback["ResultCode"])
        except (KeyError, TypeError):
            raise ValueError("Malformed callback payload")
        if not checkout_request_id or result_code is None:
            raise ValueError("Malformed callback payload")

        merchant_request_id = callback.get("MerchantRequestID")
        result_desc = callback.get("ResultDesc")

        record = MpesaCallback(
            checkout_request_id=checkout_request_id,
            merchant_request_id=merchant_request_id,
            result_code=result_code,
            result_desc=result_desc,
            raw_response=payload,
            payload_hash=generate_hash(payload),
        )
        db.add(record)

        payment = (
            db.query(MpesaPayment)
            .filter(MpesaPayment.checkout_request_id == checkout_request_id)
            .first()
        )
        if payment is not None:
            payment.status = "completed" if result_code == RESULT_SUCCESS else "failed"
            payment.result_code = result_code
            payment.result_desc = result_desc
            payment.merchant_request_id = merchant_request_id or payment.merchant_request_id
            receipt = _metadata_value(callback.get("CallbackMetadata"), "MpesaReceiptNumber")
            if receipt:
                payment.mpesa_receipt_number = str(receipt)
            payment.updated_at = datetime.utcnow()
        else:
            log_event("mpesa", f"Callback for unknown checkout {checkout_request_id}")

        db.commit()
        db.refresh(record)
        return record


def _metadata_value(metadata: Optional[Dict[str, Any]], name: str):
    """Pull a named value out of CallbackMetadata.Item[]."""
    if not isinstance(metadata, dict):
        return None
    for item in metadata.get("Item") or []:
        if isinstance(item, dict) and item.get("Name") == name:
            return item.get("Value")
    return None
