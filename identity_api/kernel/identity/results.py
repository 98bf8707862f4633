"""
Result types returned by the identity flows.

Business-rule outcomes are values, never exceptions: callers branch on
``succeeded``. Infrastructure failures are raised instead.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class AuthErrorCode(str, Enum):
    """Business-rule failure categories."""
    VALIDATION_FAILED = "validation_failed"
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DISABLED = "account_disabled"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"


class AuthResult(BaseModel, Generic[T]):
    """Success with data, or failure with a code and every error message."""

    succeeded: bool
    data: Optional[T] = None
    errors: List[str] = []
    error_code: Optional[AuthErrorCode] = None

    @property
    def failed(self) -> bool:
        return not self.succeeded

    @classmethod
    def success(cls, data: Any) -> "AuthResult[T]":
        return cls(succeeded=True, data=data)

    @classmethod
    def failure(cls, code: AuthErrorCode, errors: List[str]) -> "AuthResult[T]":
        return cls(succeeded=False, error_code=code, errors=list(errors))


class RegistrationResponse(BaseModel):
    """Payload of a successful registration."""

    subject_id: int
    email: str
    token: str
    message: str


class LoginResponse(BaseModel):
    """Payload of a successful login."""

    subject_id: int
    email: str
    display_name: str
    token: str
    expires_at: datetime
