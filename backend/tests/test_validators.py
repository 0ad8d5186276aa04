import pytest

from app.utils.validators import normalize_phone, validate_amount, validate_plan, period_days


@pytest.mark.parametrize("raw", [
    "0712345678",
    "254712345678",
    "+254712345678",
    "+254 712 345 678",
    " 0712 345 678 ",
    "712345678",
])
def test_normalize_phone_accepts_national_and_international(raw):
    assert normalize_phone(raw) == "254712345678"


def test_normalize_phone_handles_01_prefix():
    assert normalize_phone("0112345678") == "254112345678"


@pytest.mark.parametrize("raw", [
    None,
    "",
    "   ",
    "12345",
    "0712",
    "07123456789",
    "2547123456789",
    "255712345678",
    "07abc45678",
    "phone",
])
def test_normalize_phone_rejects_invalid(raw):
    with pytest.raises(ValueError):
        normalize_phone(raw)


@pytest.mark.parametrize("amount", [0, -1, -20.5, "20", None, True])
def test_validate_amount_rejects_non_positive_or_non_numeric(amount):
    with pytest.raises(ValueError):
        validate_amount(amount)


def test_validate_amount_rounds_to_whole_shillings():
    assert validate_amount(20) == 20
    assert validate_amount(19.6) == 20


def test_validate_plan():
    assert validate_plan("Basic", "month", 20) == (True, "Valid")
    assert validate_plan("Enterprise", "year", 700)[0] is True

    ok, reason = validate_plan("Basic", "week", 20)
    assert not ok and "interval" in reason
    ok, reason = validate_plan("Gold", "month", 20)
    assert not ok and "Unknown plan" in reason
    ok, reason = validate_plan("Pro", "year", 50)
    assert not ok and "500" in reason


def test_period_days():
    assert period_days("month") == 30
    assert period_days("year") == 365
    with pytest.raises(ValueError):
        period_days("week")
