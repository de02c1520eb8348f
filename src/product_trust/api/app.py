"""
FastAPI Application Factory
===========================

Creates and configures the FastAPI application with routers, middleware
and the mapping of engine errors to HTTP responses.
"""

from __future__ import annotations

import logging
import secrets

import yaml
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse, Response
from fastapi.security import APIKeyHeader

from product_trust.api.routes import fraud, health, trust
from product_trust.domain.errors import (
    InsufficientSignalsError,
    InvalidInputError,
    SourceUnavailableError,
)
from product_trust.infrastructure.config import get_settings
from product_trust.infrastructure.dependencies import lifespan_manager
from product_trust.infrastructure.logging import configure_logging

logger = logging.getLogger(__name__)

# API Key header
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str | None = Depends(api_key_header)) -> bool:
    """Verify API key if authentication is enabled."""
    settings = get_settings()

    # If no API key configured, skip auth
    if not settings.api.api_key:
        return True

    if not api_key or not secrets.compare_digest(api_key, settings.api.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "X-API-Key"},
        )
    return True


async def _invalid_input_handler(request: Request, exc: Exception) -> ORJSONResponse:
    assert isinstance(exc, InvalidInputError)
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "field": exc.field},
    )


async def _insufficient_signals_handler(request: Request, exc: Exception) -> ORJSONResponse:
    assert isinstance(exc, InsufficientSignalsError)
    logger.warning(f"No trust signals for {exc.product_id}: {exc.reasons}")
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "reasons": exc.reasons},
    )


async def _source_unavailable_handler(request: Request, exc: Exception) -> ORJSONResponse:
    assert isinstance(exc, SourceUnavailableError)
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


def create_app(*, enable_lifespan: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.api.title,
        version=settings.api.version,
        description=(
            "Composite trust scores for scanned physical products. Combines "
            "authenticity verification, packaging tamper analysis, freshness and "
            "social proof into one explainable score, and flags serial cloning, "
            "custody anomalies and review fraud."
        ),
        debug=settings.api.debug,
        lifespan=lifespan_manager if enable_lifespan else None,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(InvalidInputError, _invalid_input_handler)
    app.add_exception_handler(InsufficientSignalsError, _insufficient_signals_handler)
    app.add_exception_handler(SourceUnavailableError, _source_unavailable_handler)

    # Include routers
    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(
        trust.router,
        prefix="/api/v1",
        tags=["Trust"],
        dependencies=[Depends(verify_api_key)],
    )
    app.include_router(
        fraud.router,
        prefix="/api/v1",
        tags=["Fraud"],
        dependencies=[Depends(verify_api_key)],
    )

    @app.get("/openapi.yaml", include_in_schema=False)
    def openapi_yaml() -> Response:
        schema = app.openapi()
        content = yaml.safe_dump(schema, sort_keys=False, allow_unicode=True)
        return Response(content=content, media_type="application/yaml")

    return app
