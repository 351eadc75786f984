"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (is the configuration complete?)

The distinction matters in orchestration systems where liveness and
readiness failures trigger different behaviors.
"""

import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ... import __version__
from ..dependencies import SessionManagerDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(
    settings: SettingsDep,
    sessions: SessionManagerDep,
) -> HealthResponse:
    """
    Liveness check - is the process alive?

    This endpoint should be very fast and not touch the bucket.
    """
    return HealthResponse(
        status="ok",
        version=__version__,
        details={
            "mock_mode": {"r2": settings.r2_mock_mode},
            "active_sessions": sessions.active_count,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    settings: SettingsDep,
    response: Response,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Without ADMIN_PASSWORD nobody can log in, and without R2 credentials
    no file endpoint works, so either makes the service not ready.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    auth_missing = [f for f in missing_fields if f == "ADMIN_PASSWORD"]
    storage_missing = [f for f in missing_fields if f.startswith("R2_")]

    if auth_missing:
        checks.append(ReadinessCheck(
            name="authentication",
            status="error",
            error="ADMIN_PASSWORD not configured"
        ))
    else:
        checks.append(ReadinessCheck(name="authentication", status="ok"))

    if settings.r2_mock_mode:
        checks.append(ReadinessCheck(
            name="storage",
            status="ok",
            error="mock mode"
        ))
    elif storage_missing:
        checks.append(ReadinessCheck(
            name="storage",
            status="error",
            error=f"Missing required fields: {', '.join(storage_missing)}"
        ))
    else:
        checks.append(ReadinessCheck(name="storage", status="ok"))

    all_ok = all(check.status == "ok" for check in checks)

    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )
