from app.models.payment import MpesaPayment, MpesaCallback
from app.models.subscription import Subscription, UserProfile
from app.models.report import Report

__all__ = ["MpesaPayment", "MpesaCallback", "Subscription", "UserProfile", "Report"]
