"""
JWT token management for authentication.

Tokens are stateless: integrity and expiry are checked on every use and
expiry is the only way a token stops being valid.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from identity_api.logging_config import get_logger

logger = get_logger(__name__)

# HMAC-SHA256 keys shorter than the digest size weaken the signature
MIN_SECRET_KEY_BYTES = 32

REGISTERED_CLAIMS = frozenset({"sub", "email", "jti", "iat", "exp", "nbf", "iss", "aud"})


class TokenConfig(BaseModel):
    """Signing and validation parameters for a TokenService."""

    model_config = ConfigDict(frozen=True)

    secret_key: str
    issuer: str
    audience: str
    default_expiry_minutes: int = 60
    algorithm: str = "HS256"

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if len(v.encode("utf-8")) < MIN_SECRET_KEY_BYTES:
            raise ValueError(
                f"Token secret must be at least {MIN_SECRET_KEY_BYTES} bytes (256 bits)"
            )
        return v


class TokenClaims(BaseModel):
    """Decoded claim set of a valid token."""

    model_config = ConfigDict(frozen=True)

    sub: str  # Subject (account) ID
    email: str
    jti: str  # Unique token ID
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str
    extra_claims: dict[str, str] = {}


class IssuedToken(BaseModel):
    """A freshly signed token and its metadata."""

    token: str
    expires_at: datetime
    jti: str


class TokenService:
    """
    JWT creation and verification.

    Signs with HMAC using the configured secret and validates signature,
    issuer, audience and expiry with no clock-skew allowance.
    """

    def __init__(self, config: TokenConfig):
        self.config = config

    def create_token(
        self,
        subject_id: Any,
        email: str,
        extra_claims: Optional[Mapping[str, str]] = None,
        ttl: Optional[timedelta] = None,
    ) -> IssuedToken:
        """
        Create a signed token.

        Args:
            subject_id: Account identifier, stored as a string in ``sub``
            email: Account email
            extra_claims: Additional string claims (e.g. display name)
            ttl: Lifetime; defaults to the configured expiry

        Returns:
            IssuedToken with the encoded token, its expiry and token id

        Raises:
            ValueError: If an extra claim would overwrite a registered claim
        """
        extra = dict(extra_claims or {})
        clashing = REGISTERED_CLAIMS.intersection(extra)
        if clashing:
            raise ValueError(f"Extra claims cannot override registered claims: {sorted(clashing)}")

        now = datetime.now(timezone.utc)
        lifetime = ttl if ttl is not None else timedelta(minutes=self.config.default_expiry_minutes)
        issued_at = int(now.timestamp())
        expires_at = int((now + lifetime).timestamp())
        jti = str(uuid.uuid4())

        payload: dict[str, Any] = {
            "sub": str(subject_id),
            "email": email,
            "jti": jti,
            "iat": issued_at,
            "exp": expires_at,
            "iss": self.config.issuer,
            "aud": self.config.audience,
        }
        payload.update(extra)

        token = jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)
        return IssuedToken(
            token=token,
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
            jti=jti,
        )

    def issue(
        self,
        subject_id: Any,
        email: str,
        extra_claims: Optional[Mapping[str, str]] = None,
        ttl: Optional[timedelta] = None,
    ) -> str:
        """Create a token and return only the encoded string."""
        return self.create_token(subject_id, email, extra_claims, ttl).token

    def validate(self, token: str) -> Optional[TokenClaims]:
        """
        Verify and decode a token.

        Returns:
            TokenClaims if valid, None for any failure
        """
        try:
            payload = jwt.decode(
                token,
                self.config.secret_key,
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                issuer=self.config.issuer,
                options={
                    "leeway": 0,
                    "require_exp": True,
                    "require_iat": True,
                    "require_sub": True,
                    "require_jti": True,
                    "require_iss": True,
                    "require_aud": True,
                },
            )
            extra = {
                key: value
                for key, value in payload.items()
                if key not in REGISTERED_CLAIMS and isinstance(value, str)
            }
            return TokenClaims(
                sub=payload["sub"],
                email=payload["email"],
                jti=payload["jti"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                issuer=payload["iss"],
                audience=payload["aud"],
                extra_claims=extra,
            )
        except (JWTError, KeyError, TypeError, ValueError, ValidationError) as e:
            logger.debug("Token validation failed: %s", type(e).__name__)
            return None

    def extract_subject_id(self, token: str) -> Optional[str]:
        """Return the subject of a valid token, None otherwise."""
        claims = self.validate(token)
        return claims.sub if claims else None
