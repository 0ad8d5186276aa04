"""
Subscription Routes — Activation after payment and the paywall check.
"""
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.schemas import (
    SubscriptionActivateRequest, SubscriptionActivateResponse,
    SubscriptionResponse, SubscriptionStatusResponse,
)
from app.services.subscription_service import (
    SubscriptionService, PaymentNotConfirmed, ActivationForbidden, ActivationMismatch,
)

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])


@router.post("/activate", response_model=SubscriptionActivateResponse)
def activate_subscription(
    payload: SubscriptionActivateRequest,
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
):
    """Activate the subscription bought by a completed checkout (idempotent)."""
    try:
        subscription, created = SubscriptionService.activate(
            db, user_id, payload.CheckoutRequestID, payload.plan, payload.interval,
        )
    except ActivationForbidden as e:
        raise HTTPException(status_code=403, detail=str(e))
    except (PaymentNotConfirmed, ActivationMismatch) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SubscriptionActivateResponse(
        created=created,
        subscription=SubscriptionResponse.model_validate(subscription),
    )


@router.get("/current", response_model=SubscriptionStatusResponse)
def current_subscription(
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
):
    """Does this user get past the paywall?"""
    is_admin = SubscriptionService.is_admin(db, user_id)
    subscription = SubscriptionService.get_active(db, user_id)
    return SubscriptionStatusResponse(
        has_access=is_admin or subscription is not None,
        is_admin=is_admin,
        subscription=SubscriptionResponse.model_validate(subscription) if subscription else None,
    )


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
def cancel_subscription(
    subscription_id: int,
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
):
    subscription = SubscriptionService.cancel(db, user_id, subscription_id)
    if not subscription:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return SubscriptionResponse.model_validate(subscription)
