"""
Input normalization for referral and profile data.

Every helper is pure and total: bad input yields None / False / an empty
string, never an exception.
"""

import re
from typing import Any, Optional

MAX_EMAIL_LENGTH = 254
PE_MOBILE_LENGTH = 9
PE_DNI_LENGTH = 8

# local@domain.tld (tld >= 2); format only, deliverability is not checked
EMAIL_PATTERN = re.compile(
    r"[a-z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,}",
    re.IGNORECASE | re.ASCII,
)
NON_DIGITS = re.compile(r"[^0-9]")


def normalize_email(value: Any) -> Optional[str]:
    if value is None:
        return None
    email = str(value).strip().lower()
    return email or None


def is_email_format(email: Optional[str]) -> bool:
    if not email or not isinstance(email, str):
        return False
    if len(email) > MAX_EMAIL_LENGTH:
        return False
    if ".." in email:
        return False
    return EMAIL_PATTERN.fullmatch(email) is not None


def _digits(value: Any, length: int) -> str:
    if value is None:
        return ""
    return NON_DIGITS.sub("", str(value))[:length]


def normalize_phone(value: Any) -> str:
    """Peruvian mobile numbers: digits only, at most 9."""
    return _digits(value, PE_MOBILE_LENGTH)


def is_pe_mobile(value: Any) -> bool:
    return len(normalize_phone(value)) == PE_MOBILE_LENGTH


def normalize_dni(value: Any) -> str:
    """Peruvian national ID (DNI): digits only, at most 8."""
    return _digits(value, PE_DNI_LENGTH)


def is_pe_dni8(value: Any) -> bool:
    return len(normalize_dni(value)) == PE_DNI_LENGTH


def clean_tracking_field(value: Any, max_len: int = 120) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    return value[:max_len]
