"""
Pydantic Schemas — Request & Response models for API validation.

M-Pesa payloads keep the gateway's field names (CheckoutRequestID, ...)
so the frontend can pass them through unchanged.
"""
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


# ──────────────── M-Pesa ────────────────

class StkPushRequest(BaseModel):
    phoneNumber: str = Field(..., description="0XXXXXXXXX or 254XXXXXXXXX")
    amount: float = Field(..., description="Plan price in KES")
    plan: str = Field(..., description="Basic | Pro | Enterprise")
    interval: str = Field(..., description="month | year")


class StkPushResponse(BaseModel):
    success: bool = True
    CheckoutRequestID: str
    MerchantRequestID: Optional[str] = None
    ResponseCode: Optional[str] = None
    ResponseDescription: Optional[str] = None
    CustomerMessage: Optional[str] = None


class StatusRequest(BaseModel):
    CheckoutRequestID: Optional[str] = None


class StatusResponse(BaseModel):
    status: str  # PENDING | COMPLETED | FAILED
    message: str
    resultCode: Optional[int] = None
    resultDesc: Optional[str] = None


class CallbackAck(BaseModel):
    success: bool
    message: str
    checkoutRequestId: Optional[str] = None


# ──────────────── Subscriptions ────────────────

class SubscriptionActivateRequest(BaseModel):
    CheckoutRequestID: str
    # Checked against the payment, never trusted for the subscription itself
    plan: Optional[str] = None
    interval: Optional[str] = Field(None, description="month | year")


class SubscriptionResponse(BaseModel):
    id: int
    user_id: str
    plan: str
    interval: str
    status: str
    checkout_request_id: Optional[str] = None
    current_period_end: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SubscriptionActivateResponse(BaseModel):
    success: bool = True
    created: bool
    subscription: SubscriptionResponse


class SubscriptionStatusResponse(BaseModel):
    has_access: bool
    is_admin: bool = False
    subscription: Optional[SubscriptionResponse] = None


# ──────────────── Reports ────────────────

class ReportCreateRequest(BaseModel):
    title: str = Field(..., max_length=256)
    content: str = Field(..., min_length=1, description="Extracted document text")


class ReportResponse(BaseModel):
    id: int
    title: str
    analysis: Optional[str] = None
    status: str
    error: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ──────────────── Generic ────────────────

class HealthResponse(BaseModel):
    status: str
    database: str
    ai_analysis: str
    uptime_seconds: float
    version: str
    details: Optional[Dict[str, Any]] = None
