"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The session token
service and the identity providers are built once here from settings and
kept on app.state; route dependencies read them from there.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from instaflix import __version__
from instaflix.api import api_router
from instaflix.auth.errors import IdentityError
from instaflix.auth.jwt import SessionTokenService
from instaflix.auth.providers import get_provider, list_providers
from instaflix.config import Settings, settings as default_settings
from instaflix.logging_config import configure_logging
from instaflix.middleware.request_id import RequestIdMiddleware
from instaflix.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "instaflix.starting",
        version=__version__,
        environment=app.state.settings.environment,
    )

    yield

    logger.info("instaflix.shutdown")

    from instaflix.db.engine import engine
    await engine.dispose()


async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    """Render identity failures as {"detail": ...} with their status code."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=headers,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings
    configure_logging()

    app = FastAPI(
        title="Instaflix Identity",
        description="Registration, login and session tokens for Instaflix",
        version=__version__,
        lifespan=lifespan,
    )

    # Process-wide, immutable after startup
    app.state.settings = settings
    app.state.token_service = SessionTokenService.from_settings(settings)
    app.state.providers = {name: get_provider(name, settings) for name in list_providers()}

    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → handler
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(IdentityError, identity_error_handler)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: instaflix.main:app)
app = create_app()
