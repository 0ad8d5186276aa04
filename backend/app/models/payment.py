"""
M-Pesa Payment Models — STK push requests and the raw callback log.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON

from app.database import Base


class MpesaPayment(Base):
    """One STK push charge. Kept forever as the audit record of the attempt."""

    __tablename__ = "mpesa_payments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    checkout_request_id = Column(String(64), unique=True, nullable=False, index=True)
    merchant_request_id = Column(String(64))

    user_id = Column(String(64), index=True)
    phone_number = Column(String(12), nullable=False)   # 254XXXXXXXXX
    amount = Column(Integer, nullable=False)             # Whole KES
    plan = Column(String(32))
    interval = Column(String(8))                         # month | year

    status = Column(String(16), default="pending")       # pending | completed | failed
    result_code = Column(Integer, nullable=True)
    result_desc = Column(String(512))
    mpesa_receipt_number = Column(String(32))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class MpesaCallback(Base):
    """Append-only log of gateway notifications, duplicates included."""

    __tablename__ = "mpesa_callbacks"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    checkout_request_id = Column(String(64), nullable=False, index=True)
    merchant_request_id = Column(String(64))

    result_code = Column(Integer, nullable=False)
    result_desc = Column(String(512))

    raw_response = Column(JSON, default=dict)
    payload_hash = Column(String(64))   # SHA-256 of the canonical payload

    created_at = Column(DateTime, default=datetime.utcnow)
