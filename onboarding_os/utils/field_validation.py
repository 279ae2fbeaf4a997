"""
Backend validation for client-submitted form values.
Runs regardless of what the portal already checked in the browser.
"""

import re
from typing import Any, Optional, Tuple

# Same pattern the portal form uses: something@something.tld, no whitespace
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAX_VALUE_LENGTH = 10_000


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """
    Validate email format.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(email) > 254:
        return False, "Email is too long"

    if not EMAIL_PATTERN.match(email):
        return False, "Please enter a valid email"

    return True, None


def coerce_form_value(value: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    Normalize a submitted form value to a string.

    Returns:
        Tuple of (value, error_message). None means "no value".
    """
    if value is None:
        return None, None

    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None, "Value must be text"

    text = str(value)
    if len(text) > MAX_VALUE_LENGTH:
        return None, f"Value is too long (max {MAX_VALUE_LENGTH} characters)"

    return text, None


def is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()
