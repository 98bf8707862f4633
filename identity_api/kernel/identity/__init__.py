"""
Identity Core - credential hashing, tokens, registration and login.
"""

from identity_api.kernel.identity.password import PasswordHasher, verify_password, hash_password
from identity_api.kernel.identity.jwt import (
    IssuedToken,
    TokenClaims,
    TokenConfig,
    TokenService,
)
from identity_api.kernel.identity.results import (
    AuthErrorCode,
    AuthResult,
    LoginResponse,
    RegistrationResponse,
)
from identity_api.kernel.identity.validators import LoginCommand, RegisterCommand, normalize_email
from identity_api.kernel.identity.ports import Account, AccountStore, NewAccount, NotificationSender
from identity_api.kernel.identity.errors import EmailAlreadyRegisteredError, IdentityError
from identity_api.kernel.identity.notifications import (
    LoggingNotificationSender,
    NotificationDispatcher,
    SmtpConfig,
    SmtpNotificationSender,
)
from identity_api.kernel.identity.identity_service import IdentityService, LoginPolicy

__all__ = [
    "PasswordHasher",
    "verify_password",
    "hash_password",
    "IssuedToken",
    "TokenClaims",
    "TokenConfig",
    "TokenService",
    "AuthErrorCode",
    "AuthResult",
    "LoginResponse",
    "RegistrationResponse",
    "LoginCommand",
    "RegisterCommand",
    "normalize_email",
    "Account",
    "AccountStore",
    "NewAccount",
    "NotificationSender",
    "EmailAlreadyRegisteredError",
    "IdentityError",
    "LoggingNotificationSender",
    "NotificationDispatcher",
    "SmtpConfig",
    "SmtpNotificationSender",
    "IdentityService",
    "LoginPolicy",
]
