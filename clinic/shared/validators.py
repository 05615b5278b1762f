"""Shared validation utilities"""

import re
from typing import Optional

from ..config import SMS_DEFAULT_COUNTRY_CODE


def normalize_phone(phone: Optional[str], country_code: str = SMS_DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """
    Normalize a phone number to E.164 format.

    Args:
        phone: Phone number string in various formats
        country_code: Calling code applied to numbers without a "+" prefix

    Returns:
        Normalized phone number (+CCXXXXXXXXX), or None when empty

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return None

    has_plus = phone.strip().startswith("+")
    digits = re.sub(r"\D", "", phone)

    if not has_plus:
        # Local numbers are written with a trunk prefix (0771234567)
        digits = country_code + digits.lstrip("0")

    # E.164 allows at most 15 digits
    if len(digits) < 8 or len(digits) > 15:
        raise ValueError("Phone number must have between 8 and 15 digits")

    return f"+{digits}"
