"""Shared validation utilities"""

import re
from typing import Optional

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s]*$")


def validate_length(
    value: str,
    label: str,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
    min_message: Optional[str] = None,
) -> str:
    """
    Check string length bounds.

    Args:
        value: Already-trimmed string
        label: Human-readable field label used in messages
        min_length: Minimum number of characters (inclusive)
        max_length: Maximum number of characters (inclusive)
        min_message: Override for the too-short message

    Returns:
        The value unchanged

    Raises:
        ValueError: If the value is outside the bounds
    """
    if min_length is not None and len(value) < min_length:
        raise ValueError(min_message or f"{label} must be at least {min_length} characters")
    if max_length is not None and len(value) > max_length:
        raise ValueError(f"{label} must not exceed {max_length} characters")
    return value


def validate_name(value: str, label: str = "Name") -> str:
    """Letters and whitespace only, at least two characters"""
    validate_length(value, label, min_length=2)
    if not NAME_PATTERN.match(value):
        raise ValueError(f"{label} must contain only letters")
    return value


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if email is None:
        return email

    email = email.strip().lower()

    if not EMAIL_PATTERN.match(email):
        raise ValueError("Please enter a valid email address")

    # Reject bare hosts like "user@localhost"
    if "." not in email.rsplit("@", 1)[1]:
        raise ValueError("Invalid email format")

    return email


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate an international phone number (E.164-like, optional leading +).

    Spaces, dashes, dots and parentheses are accepted as separators and
    stripped before matching.

    Raises:
        ValueError: If phone number is invalid
    """
    if phone is None:
        return phone

    compact = re.sub(r"[\s\-().]", "", phone)
    if not PHONE_PATTERN.match(compact):
        raise ValueError("Invalid phone number")

    return compact
