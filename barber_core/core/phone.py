"""Phone number normalization.

Every phone number that enters the system goes through :func:`normalize_phone`
before it touches the user store or the OTP provider, so lookups and uniqueness
checks always compare canonical E.164 strings (``+61412345678``).
"""
import re
from typing import Optional

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat, ValidationResult

from ..exceptions import InvalidPhoneNumber

MISSING = "missing"
TOO_SHORT = "too_short"
TOO_LONG = "too_long"
INVALID_CHARACTERS = "invalid_characters"
UNPARSABLE = "unparsable"

_ALLOWED_CHARS = re.compile(r"^[0-9+\s().\-]+$")

_REASONS = {
    MISSING: "Please enter your phone number",
    TOO_SHORT: "Phone number is too short. Please enter a valid mobile number (e.g., 0412 345 678)",
    TOO_LONG: "Phone number is too long. Please check and try again",
    INVALID_CHARACTERS: "Phone number contains invalid characters. Please use only numbers",
    UNPARSABLE: "Please enter a valid mobile number (e.g., 0412 345 678 or +61 412 345 678)",
}

_PARSE_ERRORS = {
    NumberParseException.TOO_SHORT_NSN: TOO_SHORT,
    NumberParseException.TOO_SHORT_AFTER_IDD: TOO_SHORT,
    NumberParseException.TOO_LONG: TOO_LONG,
}

_POSSIBILITY_ERRORS = {
    ValidationResult.TOO_SHORT: TOO_SHORT,
    ValidationResult.TOO_LONG: TOO_LONG,
}


def _invalid(category: str) -> InvalidPhoneNumber:
    return InvalidPhoneNumber(category, _REASONS[category])


def normalize_phone(raw: Optional[str], default_region: str = "AU") -> str:
    """Return ``raw`` in E.164 form or raise :class:`InvalidPhoneNumber`.

    Numbers without a country code are read as local numbers of
    ``default_region``.
    """
    if raw is None or not raw.strip():
        raise _invalid(MISSING)

    value = raw.strip()
    if not _ALLOWED_CHARS.match(value):
        raise _invalid(INVALID_CHARACTERS)

    try:
        parsed = phonenumbers.parse(value, default_region)
    except NumberParseException as e:
        raise _invalid(_PARSE_ERRORS.get(e.error_type, UNPARSABLE)) from None

    possibility = phonenumbers.is_possible_number_with_reason(parsed)
    if possibility not in (ValidationResult.IS_POSSIBLE, ValidationResult.IS_POSSIBLE_LOCAL_ONLY):
        raise _invalid(_POSSIBILITY_ERRORS.get(possibility, UNPARSABLE))

    if not phonenumbers.is_valid_number(parsed):
        raise _invalid(UNPARSABLE)

    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)


def is_email(identifier: str) -> bool:
    return "@" in identifier
