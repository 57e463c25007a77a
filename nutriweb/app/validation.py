"""Field validation shared by the login, registration and booking forms."""
from __future__ import annotations

import re
from datetime import date, datetime

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOBILE_LENGTH = 10
OTP_LENGTH = 4

_NON_DIGITS = re.compile(r"\D")


def clean_digits(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def normalize_mobile(value: str | None) -> str | None:
    """Return the digits of ``value``, or ``None`` when there are more than ten."""

    digits = clean_digits(value)
    if len(digits) > MOBILE_LENGTH:
        return None
    return digits


def validate_mobile(value: str | None) -> str | None:
    """Return an error message unless ``value`` holds exactly ten digits."""

    if not (value or "").strip():
        return "Phone number is required"
    digits = normalize_mobile(value)
    if digits is None or len(digits) != MOBILE_LENGTH:
        return "Mobile number must be 10 digits"
    return None


def is_valid_email(value: str | None) -> bool:
    return bool(EMAIL_PATTERN.match((value or "").strip()))


def validate_email(value: str | None) -> str | None:
    if not (value or "").strip():
        return "Email is required"
    if not is_valid_email(value):
        return "Invalid email format"
    return None


def validate_otp(value: str | None) -> str | None:
    otp = (value or "").strip()
    if not otp:
        return "OTP is required"
    if len(otp) != OTP_LENGTH or not otp.isdigit():
        return f"OTP must be {OTP_LENGTH} digits"
    return None


def calc_age_from_dob(dob: str | date | None, today: date | None = None) -> int | None:
    """Whole years between ``dob`` (``YYYY-MM-DD``) and ``today``."""

    if not dob:
        return None
    if isinstance(dob, str):
        try:
            dob = datetime.strptime(dob, "%Y-%m-%d").date()
        except ValueError:
            return None
    today = today or date.today()
    if dob > today:
        return None
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age
