"""
Validators — Phone, amount and plan checks for M-Pesa checkout.
"""
import re

from app.config import get_settings

PHONE_PATTERN = re.compile(r"^254[0-9]{9}$")

PERIOD_DAYS = {"month": 30, "year": 365}


def normalize_phone(raw: str | None) -> str:
    """Normalize a Kenyan mobile number to 254XXXXXXXXX.

    Accepts national (0712345678), international (254712345678 / +254...)
    and bare 9-digit (712345678) forms. Raises ValueError otherwise.
    """
    if raw is None:
        raise ValueError("Phone number is required")

    phone = re.sub(r"\s+", "", str(raw))
    if phone.startswith("+"):
        phone = phone[1:]
    if not phone:
        raise ValueError("Phone number is required")

    if phone.startswith("0"):
        phone = "254" + phone[1:]
    elif not phone.startswith("254") and len(phone) == 9:
        phone = "254" + phone

    if not PHONE_PATTERN.match(phone):
        raise ValueError("Invalid phone number format. Use: 254XXXXXXXXX")
    return phone


def validate_amount(amount) -> int:
    """Amounts are charged in whole shillings and must be positive."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValueError("Valid amount is required")
    if amount <= 0:
        raise ValueError("Valid amount is required")
    return int(round(amount))


def validate_plan(plan: str | None, interval: str | None, amount: int) -> tuple[bool, str]:
    """Check the plan/interval pair against the price catalogue."""
    if interval not in PERIOD_DAYS:
        return False, "Billing interval must be 'month' or 'year'"

    prices = get_settings().PLAN_PRICES
    if plan not in prices:
        return False, f"Unknown plan: {plan}"

    expected = prices[plan][interval]
    if amount != expected:
        return False, f"Amount does not match the {plan} {interval}ly price ({expected})"
    return True, "Valid"


def period_days(interval: str) -> int:
    """Days of access bought by one payment: 30 monthly, 365 yearly."""
    try:
        return PERIOD_DAYS[interval]
    except KeyError:
        raise ValueError(f"Unknown billing interval: {interval}")
