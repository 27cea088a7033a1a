"""FastAPI application for the storyboard pipeline."""

from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from previz import __version__
from previz.api.deps import limiter
from previz.api.routers import storyboards
from previz.core.exceptions import (
    ConfigurationError,
    CreditsExhaustedError,
    InputError,
    PlanValidationError,
    PrevizError,
    ProjectNotFoundError,
    RateLimitError,
    ShotNotFoundError,
    StateConsistencyError,
    UpstreamServiceError,
)
from previz.core.logging_config import get_logger
from previz.core.settings import get_settings
from previz.services import PrevizServices, build_services

logger = get_logger("api.main")

# Checked in order; first match wins
ERROR_STATUS = [
    (InputError, 400),
    (ProjectNotFoundError, 404),
    (ShotNotFoundError, 404),
    (StateConsistencyError, 409),
    (RateLimitError, 429),
    (CreditsExhaustedError, 402),
    (PlanValidationError, 502),
    (UpstreamServiceError, 502),
    (ConfigurationError, 500),
]


def status_for(error: PrevizError) -> int:
    # a render that failed on a rate limit or exhausted credits keeps that status
    if isinstance(error, UpstreamServiceError) and error.status_code in (402, 429):
        return error.status_code
    for error_cls, status in ERROR_STATUS:
        if isinstance(error, error_cls):
            return status
    return 500


async def previz_error_handler(request: Request, exc: PrevizError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status,
        content={"error": exc.message, "type": type(exc).__name__, "details": exc.details},
    )


def create_app(services: Optional[PrevizServices] = None) -> FastAPI:
    """Build the app; services are created from settings when not supplied."""
    settings = get_settings()

    app = FastAPI(
        title="Previz API",
        description="Script to storyboard: shot planning and frame rendering",
        version=__version__,
    )
    app.state.services = services or build_services(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(PrevizError, previz_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(storyboards.router, prefix="/api/storyboards", tags=["storyboards"])

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    return app


def start_server(host: str = None, port: int = None, reload: bool = False):
    """Start the API server."""
    settings = get_settings()
    uvicorn.run(
        "previz.api.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",
    )
