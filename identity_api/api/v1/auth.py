"""
Authentication endpoints.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from identity_api.api.deps import CurrentClaims, Identity
from identity_api.kernel.identity.identity_service import DISPLAY_NAME_CLAIM
from identity_api.kernel.identity.results import AuthErrorCode, AuthResult
from identity_api.logging_config import get_logger
from identity_api.schemas.auth import (
    AuthErrorResponse,
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegistrationResponse,
)
from identity_api.schemas.common import SuccessResponse

logger = get_logger(__name__)

router = APIRouter()

_FAILURE_STATUS = {
    AuthErrorCode.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    AuthErrorCode.DUPLICATE_EMAIL: status.HTTP_400_BAD_REQUEST,
    AuthErrorCode.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.ACCOUNT_DISABLED: status.HTTP_403_FORBIDDEN,
    AuthErrorCode.EMAIL_NOT_CONFIRMED: status.HTTP_403_FORBIDDEN,
}


def _failure_response(result: AuthResult, title: str) -> JSONResponse:
    code = result.error_code or AuthErrorCode.VALIDATION_FAILED
    body = AuthErrorResponse(detail=title, code=code.value, errors=result.errors)
    return JSONResponse(
        status_code=_FAILURE_STATUS[code],
        content=body.model_dump(),
    )


@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": AuthErrorResponse}},
)
async def register(data: RegisterRequest, identity: Identity):
    """
    Register a new user account.

    Returns a token for the new account. A confirmation email is sent in
    the background.
    """
    result = await identity.register(data.to_command())
    if result.failed:
        return _failure_response(result, "Registration failed")
    return result.data


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        400: {"model": AuthErrorResponse},
        401: {"model": AuthErrorResponse},
        403: {"model": AuthErrorResponse},
    },
)
async def login(data: LoginRequest, identity: Identity):
    """
    Authenticate user and return a token.

    remember_me selects the extended token lifetime.
    """
    result = await identity.authenticate(data.to_command())
    if result.failed:
        return _failure_response(result, "Login failed")
    return result.data


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(claims: CurrentClaims):
    """Identity carried by the presented token."""
    return CurrentUserResponse(
        subject_id=claims.sub,
        email=claims.email,
        name=claims.extra_claims.get(DISPLAY_NAME_CLAIM),
        expires_at=claims.expires_at,
        claims=claims.extra_claims,
    )


@router.post("/logout", response_model=SuccessResponse)
async def logout(claims: CurrentClaims):
    """
    Log out.

    Tokens are stateless and stay valid until they expire; the client is
    expected to discard its copy.
    """
    logger.info("User logged out", extra={"user_id": claims.sub})
    return SuccessResponse(message="Logged out. Delete the token on the client.")
