from app.services.mpesa_client import MpesaClient, MpesaError, MpesaAuthError, MpesaRequestError
from app.services.payment_service import PaymentService
from app.services.subscription_service import SubscriptionService
from app.services.analysis_service import AnalysisService

__all__ = [
    "MpesaClient", "MpesaError", "MpesaAuthError", "MpesaRequestError",
    "PaymentService", "SubscriptionService", "AnalysisService",
]
