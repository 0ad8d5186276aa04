"""
Subscription Service — Activation after a confirmed payment and the paywall check.
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.models.payment import MpesaPayment
from app.models.subscription import Subscription, UserProfile
from app.services.payment_service import PaymentService, COMPLETED
from app.utils.logger import log_event
from app.utils.validators import period_days


class PaymentNotConfirmed(Exception):
    """Activation was requested for a checkout the store has not seen complete."""


class ActivationForbidden(Exception):
    """The caller did not make the payment behind this checkout."""


class ActivationMismatch(Exception):
    """The requested plan or interval differs from what was paid for."""


class SubscriptionService:

    @staticmethod
    def compute_period_end(interval: str, now: Optional[datetime] = None) -> datetime:
        now = now or datetime.utcnow()
        return now + timedelta(days=period_days(interval))

    @staticmethod
    def activate(
        db: Session,
        user_id: str,
        checkout_request_id: str,
        plan: Optional[str] = None,
        interval: Optional[str] = None,
    ) -> tuple[Subscription, bool]:
        """Create the active subscription bought by a completed checkout.

        Plan, interval and owner come from the payment row recorded at
        initiation. A plan or interval sent by the caller is only checked
        against it. Idempotent per checkout: a repeat call by the payer
        returns the existing row.

        Returns:
            (subscription, created)

        Raises:
            PaymentNotConfirmed: No payment row for the checkout, or neither
                the callback log nor the payment row shows it completed.
            ActivationForbidden: The payment belongs to another user.
            ActivationMismatch: Requested plan or interval differs from the payment.
            ValueError: Unknown billing interval.
        """
        payment = (
            db.query(MpesaPayment)
            .filter(MpesaPayment.checkout_request_id == checkout_request_id)
            .first()
        )
        if payment is None:
            raise PaymentNotConfirmed(f"Payment {checkout_request_id} is not confirmed")
        if payment.user_id != user_id:
            log_event("server", f"Activation of {checkout_request_id} refused for {user_id}: paid by another user")
            raise ActivationForbidden(f"Payment {checkout_request_id} was made by another user")
        if (plan is not None and plan != payment.plan) or (
            interval is not None and interval != payment.interval
        ):
            raise ActivationMismatch(
                f"Payment {checkout_request_id} was for {payment.plan}/{payment.interval}"
            )

        existing = (
            db.query(Subscription)
            .filter(Subscription.checkout_request_id == checkout_request_id)
            .first()
        )
        if existing is not None:
            return existing, False

        stored = PaymentService.stored_status(db, checkout_request_id)
        if stored is None or stored.status != COMPLETED:
            raise PaymentNotConfirmed(f"Payment {checkout_request_id} is not confirmed")

        subscription = Subscription(
            user_id=payment.user_id,
            plan=payment.plan,
            interval=payment.interval,
            status="active",
            checkout_request_id=checkout_request_id,
            current_period_end=SubscriptionService.compute_period_end(payment.interval),
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)

        log_event("server", f"Subscription {subscription.id} active for {user_id} until {subscription.current_period_end.isoformat()}")
        return subscription, True

    @staticmethod
    def get_active(db: Session, user_id: str) -> Optional[Subscription]:
        """Latest active subscription whose period has not ended."""
        return (
            db.query(Subscription)
            .filter(
                Subscription.user_id == user_id,
                Subscription.status == "active",
                Subscription.current_period_end > datetime.utcnow(),
            )
            .order_by(Subscription.current_period_end.desc())
            .first()
        )

    @staticmethod
    def is_admin(db: Session, user_id: str) -> bool:
        profile = db.query(UserProfile).filter(UserProfile.id == user_id).first()
        return bool(profile and profile.is_admin)

    @staticmethod
    def has_access(db: Session, user_id: str) -> bool:
        """Admins always pass the paywall; everyone else needs a live subscription."""
        if SubscriptionService.is_admin(db, user_id):
            return True
        return SubscriptionService.get_active(db, user_id) is not None

    @staticmethod
    def cancel(db: Session, user_id: str, subscription_id: int) -> Optional[Subscription]:
        subscription = (
            db.query(Subscription)
            .filter(Subscription.id == subscription_id, Subscription.user_id == user_id)
            .first()
        )
        if subscription is None:
            return None
        subscription.status = "cancelled"
        subscription.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(subscription)
        return subscription
