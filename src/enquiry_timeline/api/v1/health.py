"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). Readiness only
checks that the CRM client is configured; it does not call the backend.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.enquiry_timeline.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 once the CRM client exists, 503 otherwise."""
    settings = get_settings()
    checks: dict = {"crm_client": "ok", "crm_api_base_url": settings.CRM_API_BASE_URL}
    if getattr(request.app.state, "crm_client", None) is None:
        checks["crm_client"] = "missing"

    ready = checks["crm_client"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
