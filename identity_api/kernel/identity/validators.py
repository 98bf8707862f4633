"""
Structural validation of registration and login input.

Every rule is checked and every violation reported, so a client can fix
all of its fields in one round trip.
"""

import re
from typing import List

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel

FULL_NAME_MIN_LENGTH = 3
FULL_NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH = 8

_UPPERCASE = re.compile(r"[A-Z]")
_LOWERCASE = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
# Symbols and punctuation; letters in any script, digits and whitespace do not count
_SPECIAL = re.compile(r"[^\w\s]|_")


class RegisterCommand(BaseModel):
    """Registration input."""

    full_name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""


class LoginCommand(BaseModel):
    """Login input."""

    email: str = ""
    password: str = ""
    remember_me: bool = False


def normalize_email(email: str) -> str:
    """Canonical form used for storage and lookups."""
    return email.strip().lower()


def _is_valid_email(email: str) -> bool:
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _email_errors(email: str, check_length: bool) -> List[str]:
    candidate = email.strip()
    if not candidate:
        return ["Email is required"]
    errors = []
    if not _is_valid_email(candidate):
        errors.append("Invalid email format")
    if check_length and len(candidate) > EMAIL_MAX_LENGTH:
        errors.append(f"Email cannot exceed {EMAIL_MAX_LENGTH} characters")
    return errors


def _password_strength_errors(password: str) -> List[str]:
    if not password:
        return ["Password is required"]
    errors = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if not _UPPERCASE.search(password):
        errors.append("Password must contain at least one uppercase letter")
    if not _LOWERCASE.search(password):
        errors.append("Password must contain at least one lowercase letter")
    if not _DIGIT.search(password):
        errors.append("Password must contain at least one number")
    if not _SPECIAL.search(password):
        errors.append("Password must contain at least one special character")
    return errors


def validate_registration(command: RegisterCommand) -> List[str]:
    """Return every rule the registration input violates (empty when valid)."""
    errors: List[str] = []

    full_name = command.full_name.strip()
    if not full_name:
        errors.append("Full name is required")
    elif not FULL_NAME_MIN_LENGTH <= len(full_name) <= FULL_NAME_MAX_LENGTH:
        errors.append(
            f"Full name must be between {FULL_NAME_MIN_LENGTH} and "
            f"{FULL_NAME_MAX_LENGTH} characters"
        )

    errors.extend(_email_errors(command.email, check_length=True))
    errors.extend(_password_strength_errors(command.password))

    if not command.confirm_password:
        errors.append("Password confirmation is required")
    elif command.confirm_password != command.password:
        errors.append("Passwords do not match")

    return errors


def validate_login(command: LoginCommand) -> List[str]:
    """Return every rule the login input violates (empty when valid)."""
    errors = _email_errors(command.email, check_length=False)
    if not command.password:
        errors.append("Password is required")
    return errors
