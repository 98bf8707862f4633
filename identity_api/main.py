"""
Identity API

FastAPI application factory.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from identity_api.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from identity_api.api.v1 import router as api_v1_router
from identity_api.config import Settings, get_settings
from identity_api.database import close_db, create_engine, create_session_maker, init_db
from identity_api.kernel.identity.jwt import TokenService
from identity_api.kernel.identity.notifications import NotificationDispatcher, build_sender
from identity_api.kernel.identity.password import PasswordHasher
from identity_api.logging_config import configure_logging, get_logger
from identity_api.schemas.common import HealthResponse

logger = get_logger(__name__)


def _request_id_headers(request: Request) -> dict:
    req_id = getattr(request.state, "request_id", None)
    return {REQUEST_ID_HEADER: req_id} if req_id else {}


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application.

    Components are created here from explicit settings and stored on
    app.state; the lifespan only configures logging, creates tables and
    tears down.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        configure_logging(
            log_level=settings.log_level,
            environment=settings.environment,
            debug=settings.debug,
        )

        logger.info("Starting %s v%s", settings.project_name, settings.version)
        await init_db(app.state.engine)
        logger.info("Database initialized")

        yield

        logger.info("Shutting down...")
        await app.state.notifications.drain()
        await close_db(app.state.engine)
        logger.info("Database connections closed")

    app = FastAPI(
        title=settings.project_name,
        description="Credential registration, login and JWT issuance.",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    engine = create_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_maker = create_session_maker(engine)
    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenService(settings.token_config())
    app.state.notifications = NotificationDispatcher(build_sender(settings.smtp_config()))
    app.state.login_policy = settings.login_policy()

    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        headers = dict(exc.headers or {})
        headers.update(_request_id_headers(request))
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies (wrong JSON types), not business-rule violations."""
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append({
                "field": field,
                "message": error["msg"],
                "type": error["type"],
            })
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": errors},
            headers=_request_id_headers(request),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Infrastructure failures surface as a generic 500."""
        logger.exception("Unhandled exception: %s", type(exc).__name__)
        req_id = getattr(request.state, "request_id", None)
        if settings.debug:
            content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
        else:
            content = {"detail": "Internal server error", "request_id": req_id}
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
            headers=_request_id_headers(request),
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Check application health."""
        return HealthResponse(status="ok", version=settings.version)

    app.include_router(api_v1_router, prefix=settings.api_v1_prefix)

    return app


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "identity_api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
