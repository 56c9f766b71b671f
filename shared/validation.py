"""
Input validation helpers shared by the ERP services.

All predicates treat ``None`` as invalid so callers can pass optional form
fields straight through.
"""

import re
from typing import Optional, Union

Number = Union[int, float]

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9_+&*-]+(?:\.[a-zA-Z0-9_+&*-]+)*@(?:[a-zA-Z0-9-]+\.)+[a-zA-Z]{2,7}$"
)
PHONE_PATTERN = re.compile(r"^[+]?[1-9]?[0-9]{7,15}$")
EMPLOYEE_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{3,20}$")

_PHONE_SEPARATORS = re.compile(r"[\s()-]")
_SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_HTML_TAG = re.compile(r"<[^>]*>")

PASSWORD_SPECIAL_CHARACTERS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
PASSWORD_MIN_LENGTH = 8


def is_valid_email(email: Optional[str]) -> bool:
    return email is not None and EMAIL_PATTERN.fullmatch(email) is not None


def is_valid_phone_number(phone: Optional[str]) -> bool:
    """Validate a phone number after dropping spaces, parentheses and dashes."""
    if phone is None:
        return False
    return PHONE_PATTERN.fullmatch(_PHONE_SEPARATORS.sub("", phone)) is not None


def is_valid_employee_id(employee_id: Optional[str]) -> bool:
    """Employee IDs are 3 to 20 ASCII letters or digits."""
    return employee_id is not None and EMPLOYEE_ID_PATTERN.fullmatch(employee_id) is not None


def is_not_empty(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def is_empty(value: Optional[str]) -> bool:
    return not is_not_empty(value)


def is_valid_length(value: Optional[str], min_length: int, max_length: int) -> bool:
    if value is None:
        return False
    return min_length <= len(value) <= max_length


def sanitize_input(value: Optional[str]) -> Optional[str]:
    """Strip script blocks and HTML tags, then surrounding whitespace."""
    if value is None:
        return None
    # Script bodies first, otherwise tag stripping would leave their contents behind
    without_scripts = _SCRIPT_BLOCK.sub("", value)
    return _HTML_TAG.sub("", without_scripts).strip()


def is_in_range(value: Optional[Number], minimum: Optional[Number], maximum: Optional[Number]) -> bool:
    if value is None or minimum is None or maximum is None:
        return False
    return float(minimum) <= float(value) <= float(maximum)


def is_positive(value: Optional[Number]) -> bool:
    return value is not None and value > 0


def is_non_negative(value: Optional[Number]) -> bool:
    return value is not None and value >= 0


def is_alphanumeric(value: Optional[str]) -> bool:
    return value is not None and re.fullmatch(r"[a-zA-Z0-9]+", value) is not None


def is_alphabetic(value: Optional[str]) -> bool:
    return value is not None and re.fullmatch(r"[a-zA-Z]+", value) is not None


def is_numeric(value: Optional[str]) -> bool:
    return value is not None and re.fullmatch(r"[0-9]+", value) is not None


def is_strong_password(password: Optional[str]) -> bool:
    """Check password strength.

    A strong password has at least eight characters and mixes upper case,
    lower case, a digit and one of ``PASSWORD_SPECIAL_CHARACTERS``.
    """
    if password is None or len(password) < PASSWORD_MIN_LENGTH:
        return False

    has_upper = any(ch.isupper() for ch in password)
    has_lower = any(ch.islower() for ch in password)
    has_digit = any(ch.isdigit() for ch in password)
    has_special = any(ch in PASSWORD_SPECIAL_CHARACTERS for ch in password)

    return has_upper and has_lower and has_digit and has_special
