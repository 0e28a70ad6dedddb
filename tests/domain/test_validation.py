"""Tests for user and address field validation."""

import pytest

from marketplace.domain.exceptions import ValidationError
from marketplace.domain.validation import (
    require_text,
    validate_email,
    validate_mobile_number,
    validate_zip_code,
)


class TestRequireText:
    """Tests for require_text."""

    def test_strips_whitespace(self) -> None:
        assert require_text("first_name", "  Ada ", 50) == "Ada"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_rejected(self, value: str | None) -> None:
        """Blank values are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            require_text("first_name", value, 50)
        assert exc_info.value.field == "first_name"

    def test_too_long_rejected(self) -> None:
        with pytest.raises(ValidationError):
            require_text("username", "x" * 51, 50)


class TestEmail:
    """Tests for validate_email."""

    def test_valid(self) -> None:
        assert validate_email("ada@example.com") == "ada@example.com"

    @pytest.mark.parametrize("value", ["ada", "ada@example", "@example.com", "a da@example.com"])
    def test_invalid(self, value: str) -> None:
        """Addresses must look like local@domain.tld."""
        with pytest.raises(ValidationError) as exc_info:
            validate_email(value)
        assert exc_info.value.field == "email"


class TestMobileNumber:
    """Tests for validate_mobile_number."""

    def test_optional(self) -> None:
        """Missing or blank numbers are stored as None."""
        assert validate_mobile_number(None) is None
        assert validate_mobile_number("  ") is None

    def test_valid(self) -> None:
        assert validate_mobile_number("0612 345 678") == "0612 345 678"

    def test_must_start_with_digit(self) -> None:
        with pytest.raises(ValidationError):
            validate_mobile_number("+31612345678")

    def test_too_long(self) -> None:
        with pytest.raises(ValidationError):
            validate_mobile_number("1" * 16)


class TestZipCode:
    """Tests for validate_zip_code."""

    @pytest.mark.parametrize("value", ["12345", "123456789", "SW1A 1AA"])
    def test_valid_lengths(self, value: str) -> None:
        """Five to nine characters are accepted."""
        assert validate_zip_code(value) == value

    @pytest.mark.parametrize("value", ["1234", "1234567890", ""])
    def test_invalid_lengths(self, value: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_zip_code(value)
        assert exc_info.value.field == "zip_code"
