"""
Health and probe endpoints.

``/live`` only proves the process answers. ``/ready`` additionally touches
the identity store, which for the Supabase backend is a real round trip.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from config.settings import get_settings
from core.logging import SERVICE_NAME, get_logger
from services.providers import get_coordinator
from services.reinforcement import ReinforcementCoordinator


logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/health/detailed")
async def detailed_health_check(
    coordinator: ReinforcementCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    """Configuration summary plus identity/pending/event store stats."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "checks": {
            "storage": coordinator.identities.get_stats(),
            "pending": coordinator.pending.get_stats(),
            "events": coordinator.events.get_stats(),
            "anchor_hold_days": coordinator.service.config.hold_days,
            "advisory_level": settings.advisory_level,
        },
    }


@router.get("/ready")
async def readiness_check(
    coordinator: ReinforcementCoordinator = Depends(get_coordinator),
):
    try:
        coordinator.identities.ping()
    except Exception as e:
        logger.warning("Readiness check failed", error=str(e))
        return JSONResponse(status_code=503, content={"status": "not_ready", "reason": str(e)})
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    return {"status": "alive"}
