"""
Health Check Endpoints
======================

Liveness and readiness probes for Kubernetes/container orchestration.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, Literal

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from product_trust.infrastructure.config import get_settings
from product_trust.infrastructure.dependencies import (
    get_alert_dispatcher,
    get_cache,
    get_scan_history,
    get_source_adapters,
    get_trust_service,
)

router = APIRouter()


class HealthStatus(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "degraded", "unhealthy"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    version: str
    environment: str
    checks: dict[str, bool] = Field(default_factory=dict)


class ReadinessStatus(BaseModel):
    """Readiness check response with service details."""

    ready: bool
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    services: dict[str, dict[str, bool | str]] = Field(default_factory=dict)
    sources: dict[str, dict[str, bool | str]] = Field(
        default_factory=dict,
        description="Signal collaborators. Informational: a down source only removes a signal.",
    )
    alerts: dict[str, Any] = Field(default_factory=dict)


async def check_service(
    getter: Callable[[], Awaitable[Any]],
    *,
    enabled: bool = True,
) -> tuple[dict[str, bool | str], bool]:
    if not enabled:
        return {"connected": False, "status": "disabled"}, True

    try:
        instance = await getter()
    except Exception:
        return {"connected": False, "status": "not_initialized"}, False

    if instance is None:
        return {"connected": False, "status": "not_initialized"}, False

    return await probe(instance)


async def probe(instance: Any) -> tuple[dict[str, bool | str], bool]:
    try:
        is_healthy = await instance.health_check()
        return (
            {"connected": bool(is_healthy), "status": "healthy" if is_healthy else "unhealthy"},
            bool(is_healthy),
        )
    except Exception:
        return {"connected": False, "status": "error"}, False


@router.get(
    "/live",
    response_model=HealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Check if the API is alive and responding.",
)
async def liveness() -> HealthStatus:
    """
    Liveness probe for container orchestration.

    Always returns healthy if the service is running.
    """
    settings = get_settings()
    return HealthStatus(
        status="healthy",
        version=settings.api.version,
        environment=settings.environment,
    )


@router.get(
    "/ready",
    response_model=ReadinessStatus,
    status_code=status.HTTP_200_OK,
    summary="Readiness probe",
    description="Check if the engine is wired and its stores are reachable.",
)
async def readiness() -> ReadinessStatus:
    """
    Readiness probe checking the engine's own dependencies.

    Signal collaborators are reported but never block readiness: the
    engine degrades to fewer signals instead of failing.
    """
    services: dict[str, dict[str, bool | str]] = {}
    ready = True

    try:
        await get_trust_service()
        services["engine"] = {"connected": True, "status": "healthy"}
    except RuntimeError:
        services["engine"] = {"connected": False, "status": "not_initialized"}
        ready = False

    cache_status, cache_ready = await check_service(get_cache)
    services["cache"] = cache_status
    ready = ready and cache_ready

    history_status, history_ready = await check_service(get_scan_history)
    services["scan_history"] = history_status
    ready = ready and history_ready

    sources: dict[str, dict[str, bool | str]] = {}
    for adapter in await get_source_adapters():
        if not adapter.is_configured:
            sources[adapter.source_name] = {"connected": False, "status": "not_configured"}
            continue
        sources[adapter.source_name], _ = await probe(adapter)

    alerts: dict[str, Any] = {}
    try:
        alerts = (await get_alert_dispatcher()).get_stats()
    except RuntimeError:
        alerts = {"running": False}

    return ReadinessStatus(ready=ready, services=services, sources=sources, alerts=alerts)


@router.get(
    "",
    response_model=HealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Simple health check endpoint.",
)
async def health() -> HealthStatus:
    """Basic health check - alias for liveness."""
    return await liveness()
