"""
Subscription Models — Paywall state per user.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Boolean

from app.database import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    plan = Column(String(32), nullable=False)
    interval = Column(String(8), nullable=False)     # month | year
    status = Column(String(16), default="pending")   # pending | active | cancelled | failed

    # Links back to mpesa_payments; one subscription per checkout
    checkout_request_id = Column(String(64), nullable=True, index=True)
    current_period_end = Column(DateTime, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class UserProfile(Base):
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(256))
    is_admin = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
