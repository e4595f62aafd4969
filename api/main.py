#!/usr/bin/env python3
"""
CampWise Scheduling API - HTTP layer over the scheduling core.

Every endpoint takes a full snapshot in the request body and returns a full
next-state; persistence stays with the caller. It exposes:
- Grid building and solver runs
- Conflict detection and feasibility pre-checks
- Weather impact and substitution apply
- Analytics and grid views
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scheduling.config import ConfigError, ConfigLoader
from scheduling.errors import InfeasibleGridError, SubstitutionApplyError, ValidationError
from scheduling.logging_config import TRACE, configure_logging, get_logger

from .settings import get_settings

# Configure unified logging format
# Format: 2026-01-06T14:05:52Z [api] LEVEL message
_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}
configure_logging(source="api", level=_LEVELS.get(get_settings().log_level, logging.INFO))
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle - startup and shutdown."""
    # Fail fast on bad CONFIG_* overrides
    ConfigLoader.initialize(validate_on_init=True)
    logger.info("Scheduling config initialized")

    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="CampWise Scheduling API", description="Camp schedule builder API", lifespan=lifespan)

    # Add exception handlers
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(InfeasibleGridError)
    async def infeasible_grid_handler(request: Request, exc: InfeasibleGridError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc), "reasons": exc.reasons})

    @app.exception_handler(SubstitutionApplyError)
    async def substitution_apply_handler(request: Request, exc: SubstitutionApplyError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "failures": [f.model_dump() for f in exc.failures]},
        )

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError) -> JSONResponse:
        logger.error(f"Configuration error: {exc}")
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    # Load settings
    settings = get_settings()

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Register routers
    from .routers import schedule, weather

    app.include_router(schedule.router)
    app.include_router(weather.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "campwise-scheduling"}

    return app


# Create app instance for uvicorn
app = create_app()
