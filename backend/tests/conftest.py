"""
Shared fixtures: a throwaway SQLite database and a fake M-Pesa gateway.

Environment variables are set before the app is imported so the cached
Settings and the SQLAlchemy engine pick them up.
"""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="peoplemetrics-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["GEMINI_API_KEY"] = ""
os.environ["MPESA_CONSUMER_KEY"] = "test-key"
os.environ["MPESA_CONSUMER_SECRET"] = "test-secret"
os.environ["MPESA_CALLBACK_URL"] = "https://example.test/api/mpesa/callback"

import pytest
from fastapi.testclient import TestClient

from app.database import Base, SessionLocal, engine, init_db
from app.main import app
from app.models.payment import MpesaPayment
from app.services.mpesa_client import get_mpesa_client
from app.utils.rate_limiter import reset_rate_limits

USER_ID = "user-123"


class FakeMpesaClient:
    """Stands in for MpesaClient; records every gateway call."""

    def __init__(self):
        self.push_calls = []
        self.query_calls = []
        self.push_error = None
        self.push_response = {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": "ws_CO_191220191020363925",
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
            "CustomerMessage": "Success. Request accepted for processing",
        }
        self.query_response = (True, {"ResponseCode": "0"})
        self.query_error = None

    def stk_push(self, phone_number, amount, description):
        self.push_calls.append((phone_number, amount, description))
        if self.push_error is not None:
            raise self.push_error
        return dict(self.push_response)

    def stk_query(self, checkout_request_id):
        self.query_calls.append(checkout_request_id)
        if self.query_error is not None:
            raise self.query_error
        return self.query_response


@pytest.fixture
def db():
    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeMpesaClient()


@pytest.fixture
def client(db, gateway):
    reset_rate_limits()
    app.dependency_overrides[get_mpesa_client] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"user-id": USER_ID}


def make_payment(db, checkout_request_id="ws_CO_TEST0001", status="pending", user_id=USER_ID, **fields):
    payment = MpesaPayment(
        checkout_request_id=checkout_request_id,
        user_id=user_id,
        phone_number="254712345678",
        amount=fields.pop("amount", 20),
        plan=fields.pop("plan", "Basic"),
        interval=fields.pop("interval", "month"),
        status=status,
        **fields,
    )
    db.add(payment)
    db.commit()
    return payment


def callback_payload(checkout_request_id, result_code=0, result_desc=None, receipt="NLJ7RT61SV"):
    callback = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": result_desc or (
            "The service request is processed successfully." if result_code == 0
            else "Request cancelled by user"
        ),
    }
    if result_code == 0:
        callback["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": 20},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "TransactionDate", "Value": 20191219102115},
                {"Name": "PhoneNumber", "Value": 254712345678},
            ]
        }
    return {"Body": {"stkCallback": callback}}


