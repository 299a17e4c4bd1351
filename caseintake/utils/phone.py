"""
Phone number normalization - E.164 format.
Handles parentheses, dashes, dots, spaces, missing country code.

Known limitation: anything that is not a 10-digit or 1-prefixed 11-digit
number is returned as "+<digits>" without validation, so some international
inputs come out as invalid E.164.
"""
import re
from typing import Optional

_DIGITS_ONLY = re.compile(r"\D")
_SIP_URI_NUMBER = re.compile(r"sip:([+\d]+)@")
_DIGIT_RUN = re.compile(r"([+]?\d{10,15})")


def normalize_e164(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164 format.

    - (850) 555-1234  → +18505551234
    - 850.555.1234    → +18505551234
    - 18505551234     → +18505551234
    - +18505551234    → +18505551234
    - 442071234567    → +442071234567

    Returns None when there are no digits at all.
    """
    if not phone:
        return None

    digits = _DIGITS_ONLY.sub("", str(phone))
    if not digits:
        return None

    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def mask_phone(phone: Optional[str]) -> str:
    """Mask a phone number for logs, keeping only the last 4 digits."""
    if not phone:
        return "null"
    if len(phone) <= 4:
        return "****"
    return f"****{phone[-4:]}"


def extract_phone_from_sip_header(value: str) -> str:
    """Pull the caller/callee number out of a SIP From/To header value."""
    match = _SIP_URI_NUMBER.search(value)
    if match:
        return match.group(1)
    match = _DIGIT_RUN.search(value)
    return match.group(1) if match else value
