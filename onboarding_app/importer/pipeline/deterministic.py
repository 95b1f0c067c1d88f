"""
Deterministic phone/email normalization used for guardian dedupe.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

DEFAULT_COUNTRY_CODE = "234"
NATIONAL_NUMBER_LENGTH = 10
# E.164 numbers carry at most 15 digits including the country code
MAX_PHONE_DIGITS = 15

_SCIENTIFIC_REGEX = re.compile(r"^\+?[0-9]+(\.[0-9]+)?e\+?[0-9]+$", re.IGNORECASE)
_NON_DIGIT = re.compile(r"\D")


class InvalidPhoneNumber(ValueError):
    """Raised when a phone cell holds more digits than any dialable number."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Phone number is too long: {value[:32]}")
        self.value = value


def normalize_email(value: object | None) -> str | None:
    """Trim and lower-case an email address. Blank input yields ``None``."""

    if value is None:
        return None
    token = str(value).strip().lower()
    return token or None


def _expand_scientific(token: str) -> str:
    # Spreadsheets turn long phone numbers into values like 8.03E+09
    try:
        number = Decimal(token.lstrip("+"))
    except InvalidOperation:
        return token
    if number.adjusted() >= MAX_PHONE_DIGITS:
        raise InvalidPhoneNumber(token)
    return format(number.to_integral_value(), "f")


def normalize_phone(value: object | None, *, default_country_code: str = DEFAULT_COUNTRY_CODE) -> str | None:
    """
    Normalize a phone number to ``+<country><number>``.

    - Scientific notation from spreadsheet exports is expanded first
    - Formatting characters are dropped
    - A ``00`` international prefix is treated like ``+``
    - A leading trunk ``0`` is replaced by ``default_country_code``
    - A bare national number (10 digits) gets ``default_country_code`` prepended

    ``08031234567`` and ``+2348031234567`` both normalize to ``+2348031234567``.
    Raises :class:`InvalidPhoneNumber` when the result exceeds ``MAX_PHONE_DIGITS``.
    """

    if value is None:
        return None
    token = str(value).strip()
    if not token:
        return None

    if _SCIENTIFIC_REGEX.match(token):
        token = _expand_scientific(token)

    international = token.startswith("+")
    digits = _NON_DIGIT.sub("", token)
    if not digits:
        return None

    country_code = _NON_DIGIT.sub("", str(default_country_code or "")) or DEFAULT_COUNTRY_CODE
    if not international:
        if digits.startswith("00"):
            digits = digits[2:]
        elif digits.startswith("0"):
            digits = f"{country_code}{digits[1:]}"
        elif len(digits) == NATIONAL_NUMBER_LENGTH:
            digits = f"{country_code}{digits}"

    if not digits:
        return None
    if len(digits) > MAX_PHONE_DIGITS:
        raise InvalidPhoneNumber(token)
    return f"+{digits}"


__all__ = ["DEFAULT_COUNTRY_CODE", "InvalidPhoneNumber", "MAX_PHONE_DIGITS", "normalize_email", "normalize_phone"]
