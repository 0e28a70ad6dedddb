"""Field format rules for users and addresses.

Each validator returns the normalized value or raises ValidationError
naming the offending field.
"""

import re

from marketplace.domain.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MOBILE_PATTERN = re.compile(r"^[0-9][0-9 +()-]*$")

NAME_MAX_LENGTH = 50
USERNAME_MAX_LENGTH = 50
EMAIL_MAX_LENGTH = 256
MOBILE_MAX_LENGTH = 15
ZIP_MIN_LENGTH = 5
ZIP_MAX_LENGTH = 9


def require_text(field: str, value: str | None, max_length: int) -> str:
    """Validate a required, length-limited string.

    Args:
        field: Field name for the error.
        value: Raw value.
        max_length: Maximum allowed length after stripping.

    Returns:
        The stripped value.

    Raises:
        ValidationError: If the value is empty or too long.
    """
    text = (value or "").strip()
    if not text:
        raise ValidationError(field, "must not be empty", value)
    if len(text) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters", value)
    return text


def validate_email(value: str) -> str:
    """Check that value looks like local@domain.tld."""
    email = require_text("email", value, EMAIL_MAX_LENGTH)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email", "must look like local@domain.tld", value)
    return email


def validate_mobile_number(value: str | None) -> str | None:
    """Check that a mobile number, when given, starts with a digit."""
    if value is None or not value.strip():
        return None
    mobile = value.strip()
    if len(mobile) > MOBILE_MAX_LENGTH:
        raise ValidationError(
            "mobile_number", f"must be at most {MOBILE_MAX_LENGTH} characters", value
        )
    if not MOBILE_PATTERN.match(mobile):
        raise ValidationError("mobile_number", "must start with a digit", value)
    return mobile


def validate_zip_code(value: str) -> str:
    """Check that a zip code is 5 to 9 characters long."""
    zip_code = (value or "").strip()
    if not ZIP_MIN_LENGTH <= len(zip_code) <= ZIP_MAX_LENGTH:
        raise ValidationError(
            "zip_code",
            f"must be between {ZIP_MIN_LENGTH} and {ZIP_MAX_LENGTH} characters",
            value,
        )
    return zip_code
