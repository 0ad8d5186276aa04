from app.utils.hashing import generate_hash
from app.utils.logger import log_event
from app.utils.validators import normalize_phone, validate_amount, validate_plan, period_days

__all__ = [
    "generate_hash", "log_event",
    "normalize_phone", "validate_amount", "validate_plan", "period_days",
]
