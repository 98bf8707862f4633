"""
Authentication schemas.

Request bodies take plain strings: the identity kernel validates them and
reports every broken rule at once, so pydantic must not reject early.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from identity_api.kernel.identity.results import LoginResponse, RegistrationResponse
from identity_api.kernel.identity.validators import LoginCommand, RegisterCommand


class RegisterRequest(BaseModel):
    """User registration request."""

    full_name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""

    def to_command(self) -> RegisterCommand:
        return RegisterCommand(**self.model_dump())


class LoginRequest(BaseModel):
    """User login request."""

    email: str = ""
    password: str = ""
    remember_me: bool = False

    def to_command(self) -> LoginCommand:
        return LoginCommand(**self.model_dump())


class AuthErrorResponse(BaseModel):
    """Business-rule failure returned by /register and /login."""

    detail: str
    code: str
    errors: List[str]


class CurrentUserResponse(BaseModel):
    """Identity asserted by the presented bearer token."""

    subject_id: str
    email: str
    name: Optional[str] = None
    expires_at: datetime
    claims: Dict[str, str] = {}


__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "AuthErrorResponse",
    "CurrentUserResponse",
    "RegistrationResponse",
    "LoginResponse",
]
