"""
FastAPI dependencies for database sessions, identity services and the
authenticated principal.

Long-lived components (hasher, token service, notification dispatcher) are
created once in the application lifespan and read from app.state.
"""

from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from identity_api.kernel.identity.account_store import SqlAlchemyAccountStore
from identity_api.kernel.identity.identity_service import IdentityService
from identity_api.kernel.identity.jwt import TokenClaims, TokenService


# Security scheme
security = HTTPBearer(auto_error=False)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Session per request: commit on success, roll back on error."""
    async with request.app.state.session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


Tokens = Annotated[TokenService, Depends(get_token_service)]


def get_identity_service(request: Request, db: DbSession) -> IdentityService:
    """Identity flows bound to this request's session."""
    state = request.app.state
    return IdentityService(
        store=SqlAlchemyAccountStore(db),
        hasher=state.hasher,
        tokens=state.tokens,
        notifications=state.notifications,
        policy=state.login_policy,
    )


Identity = Annotated[IdentityService, Depends(get_identity_service)]


async def get_current_claims(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    tokens: Tokens,
) -> TokenClaims:
    """Validate the bearer token or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = tokens.validate(credentials.credentials)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return claims


CurrentClaims = Annotated[TokenClaims, Depends(get_current_claims)]

