"""
Identity service: account registration and authentication.

Steps inside each flow run in a fixed order (validate, look up, hash or
verify, gate checks, persist, issue token). No token is issued before
every check has passed.
"""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict

from identity_api.kernel.identity.errors import EmailAlreadyRegisteredError
from identity_api.kernel.identity.jwt import TokenService
from identity_api.kernel.identity.notifications import NotificationDispatcher
from identity_api.kernel.identity.password import PasswordHasher
from identity_api.kernel.identity.ports import AccountStore, NewAccount
from identity_api.kernel.identity.results import (
    AuthErrorCode,
    AuthResult,
    LoginResponse,
    RegistrationResponse,
)
from identity_api.kernel.identity.validators import (
    LoginCommand,
    RegisterCommand,
    normalize_email,
    validate_login,
    validate_registration,
)
from identity_api.logging_config import get_logger

logger = get_logger(__name__)

DUPLICATE_EMAIL_MESSAGE = "Email is already registered"
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
ACCOUNT_DISABLED_MESSAGE = "Account is disabled. Please contact support."
EMAIL_NOT_CONFIRMED_MESSAGE = "Email not confirmed. Please check your inbox."
REGISTERED_MESSAGE = "User registered successfully! Please check your email to confirm your account."

DISPLAY_NAME_CLAIM = "name"


class LoginPolicy(BaseModel):
    """Token lifetimes and links used by the flows."""

    model_config = ConfigDict(frozen=True)

    standard_expiry_hours: int = 24
    extended_expiry_hours: int = 720
    confirmation_url: str = "https://api.example.com/auth/confirm-email"

    def token_ttl(self, remember_me: bool) -> timedelta:
        hours = self.extended_expiry_hours if remember_me else self.standard_expiry_hours
        return timedelta(hours=hours)

    def confirmation_link(self, token: str) -> str:
        return f"{self.confirmation_url}?token={token}"


class IdentityService:
    """
    Registration and login flows.

    Handles credential creation, password verification, account gating
    and token issuance. Collaborators are injected; the service keeps no
    state between calls.
    """

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        notifications: NotificationDispatcher,
        policy: LoginPolicy | None = None,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.notifications = notifications
        self.policy = policy or LoginPolicy()

    async def register(self, command: RegisterCommand) -> AuthResult[RegistrationResponse]:
        """
        Register a new account.

        Returns:
            Success with subject id, email, token and message, or a
            VALIDATION_FAILED / DUPLICATE_EMAIL failure

        Raises:
            Any store or hashing error other than a uniqueness violation
        """
        errors = validate_registration(command)
        if errors:
            return AuthResult.failure(AuthErrorCode.VALIDATION_FAILED, errors)

        email = normalize_email(command.email)
        if await self.store.exists_by_normalized_email(email):
            logger.info("Registration rejected: email in use", extra={"email": email})
            return AuthResult.failure(AuthErrorCode.DUPLICATE_EMAIL, [DUPLICATE_EMAIL_MESSAGE])

        password_hash = await self.hasher.hash_async(command.password)

        try:
            account_id = await self.store.insert(
                NewAccount(
                    full_name=command.full_name.strip(),
                    email=email,
                    password_hash=password_hash,
                )
            )
        except EmailAlreadyRegisteredError:
            # Lost the race against a concurrent registration
            logger.info("Registration rejected by unique constraint", extra={"email": email})
            return AuthResult.failure(AuthErrorCode.DUPLICATE_EMAIL, [DUPLICATE_EMAIL_MESSAGE])

        token = self.tokens.issue(account_id, email)

        self.notifications.dispatch_confirmation(email, self.policy.confirmation_link(token))

        logger.info("User registered", extra={"user_id": account_id})
        return AuthResult.success(
            RegistrationResponse(
                subject_id=account_id,
                email=email,
                token=token,
                message=REGISTERED_MESSAGE,
            )
        )

    async def authenticate(self, command: LoginCommand) -> AuthResult[LoginResponse]:
        """
        Authenticate by email and password.

        Unknown, soft-deleted and wrong-password attempts all return the
        same INVALID_CREDENTIALS failure. The disabled and unconfirmed gates
        are only reported after the password has been proven.
        """
        errors = validate_login(command)
        if errors:
            return AuthResult.failure(AuthErrorCode.VALIDATION_FAILED, errors)

        email = normalize_email(command.email)
        account = await self.store.find_by_normalized_email(email)

        if account is None or account.is_deleted:
            await self.hasher.simulate_verify_async(command.password)
            return self._invalid_credentials()

        if not await self.hasher.verify_async(command.password, account.password_hash):
            return self._invalid_credentials()

        if not account.is_active:
            logger.info("Login rejected: account disabled", extra={"user_id": account.id})
            return AuthResult.failure(AuthErrorCode.ACCOUNT_DISABLED, [ACCOUNT_DISABLED_MESSAGE])

        if not account.email_confirmed:
            logger.info("Login rejected: email not confirmed", extra={"user_id": account.id})
            return AuthResult.failure(
                AuthErrorCode.EMAIL_NOT_CONFIRMED, [EMAIL_NOT_CONFIRMED_MESSAGE]
            )

        now = datetime.now(timezone.utc)
        try:
            await self.store.update_last_login(account.id, now)
        except Exception:
            logger.warning(
                "Failed to record last login",
                extra={"user_id": account.id},
                exc_info=True,
            )

        issued = self.tokens.create_token(
            account.id,
            account.email,
            extra_claims={DISPLAY_NAME_CLAIM: account.full_name},
            ttl=self.policy.token_ttl(command.remember_me),
        )

        logger.info("User logged in", extra={"user_id": account.id})
        return AuthResult.success(
            LoginResponse(
                subject_id=account.id,
                email=account.email,
                display_name=account.full_name,
                token=issued.token,
                expires_at=issued.expires_at,
            )
        )

    @staticmethod
    def _invalid_credentials() -> AuthResult[LoginResponse]:
        return AuthResult.failure(AuthErrorCode.INVALID_CREDENTIALS, [INVALID_CREDENTIALS_MESSAGE])
