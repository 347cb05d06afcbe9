# impactlens/routes/health.py
"""
Health check endpoints.

Readiness only fails on the project store. GitHub and the ML provider are
reported too, but analytics degrade around them, so they only mark the
service as degraded.
"""

import time

from fastapi import APIRouter, Depends

from impactlens.models.api.project_response import ServiceBannerResponse
from impactlens.routes.dependencies import get_project_service
from impactlens.services.project_service import ProjectService

SERVICE_NAME = "impactlens-api"
SERVICE_VERSION = "0.1.0"

router = APIRouter(tags=["health"])


@router.get("/", response_model=ServiceBannerResponse)
async def root(service: ProjectService = Depends(get_project_service)):
    return ServiceBannerResponse(
        status="ImpactLens API is online",
        version=SERVICE_VERSION,
        storage_mode=service.store.mode.value,
    )


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/readyz")
async def readyz(service: ProjectService = Depends(get_project_service)):
    """
    Readiness check covering storage and the external providers.
    """
    checks = {}

    # 1) Project store
    t0 = time.time()
    try:
        store_ok = await service.store.ping()
        checks["storage"] = {
            "ok": bool(store_ok),
            "mode": service.store.mode.value,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
    except Exception as e:
        checks["storage"] = {
            "ok": False,
            "mode": service.store.mode.value,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }

    # 2) GitHub REST API
    t0 = time.time()
    github = await service.github.probe()
    github["latency_ms"] = round((time.time() - t0) * 1000, 1)
    github["token_configured"] = bool(service.settings.GITHUB_TOKEN)
    checks["github"] = github

    # 3) ML prediction provider
    t0 = time.time()
    ml = await service.impact.predictions.probe()
    ml["latency_ms"] = round((time.time() - t0) * 1000, 1)
    ml["score_scale"] = service.settings.ML_SCORE_SCALE
    checks["ml"] = ml

    # 4) Text generation is optional; report whether it is configured
    checks["summaries"] = {"ok": True, "model_configured": bool(service.settings.OPENAI_API_KEY)}

    overall_ok = checks["storage"]["ok"]
    degraded = not (checks["github"]["ok"] and checks["ml"]["ok"])

    return {
        "overall_ok": overall_ok,
        "degraded": degraded,
        "checks": checks,
        "environment": service.settings.environment,
        "timestamp": time.time(),
    }
