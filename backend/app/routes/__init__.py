from app.routes.mpesa import router as mpesa_router
from app.routes.subscription import router as subscription_router
from app.routes.report import router as report_router

__all__ = ["mpesa_router", "subscription_router", "report_router"]
