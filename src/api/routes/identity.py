"""
Identity Routes.

Bootstrap an identity for a device, lazily finalize anchor holds, and
score a candidate embedding against the identity.

Every call after bootstrap carries ``device_install_id``; it must match
the identity's owning device or the request is denied.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from engines.embedding import EMBEDDING_DIM, StyleEmbedding
from scoring.scorer import EvaluationContext, score_embedding
from services.providers import get_coordinator
from services.reinforcement import ReinforcementCoordinator


router = APIRouter(prefix="/api/identity", tags=["Identity"])


# =============================================================================
# Request Models
# =============================================================================

class BootstrapRequest(BaseModel):
    device_install_id: str = Field(..., min_length=1, description="Stable per-install device id")


class FinalizeRequest(BaseModel):
    device_install_id: str = Field(..., min_length=1)
    identity_id: str = Field(..., min_length=1)


class ScoreRequest(BaseModel):
    device_install_id: str = Field(..., min_length=1)
    identity_id: str = Field(..., min_length=1)
    object_embedding: Optional[List[Any]] = Field(
        default=None,
        description=f"{EMBEDDING_DIM} floats; anything else scores as the zero vector"
    )
    context: Optional[Dict[str, Any]] = Field(default=None, description="Budget and footprint")


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/bootstrap", summary="Get or create the identity for a device")
async def bootstrap(
    request: BootstrapRequest,
    coordinator: ReinforcementCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    identity = coordinator.bootstrap(request.device_install_id)
    return {"identity": identity.to_public_dict()}


@router.post("/finalize", summary="Apply anchor holds whose window has passed")
async def finalize(
    request: FinalizeRequest,
    coordinator: ReinforcementCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    """
    Safe to call on every app launch. Holds that are not ready yet stay
    pending; calling twice in a row finalizes nothing the second time.
    """
    outcome = coordinator.finalize_ready(request.device_install_id, request.identity_id)
    if outcome.http_status != 200:
        raise HTTPException(status_code=outcome.http_status, detail=outcome.message)
    return {
        "identity": outcome.identity.to_public_dict() if outcome.identity else None,
        "finalized": outcome.finalized,
        "still_pending": outcome.still_pending,
    }


@router.post("/score", summary="Score a candidate embedding against the identity")
async def score(
    request: ScoreRequest,
    coordinator: ReinforcementCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    identity = coordinator.owned(request.device_install_id, request.identity_id)
    if identity is None:
        raise HTTPException(status_code=403, detail="Identity not found or access denied")

    result = score_embedding(
        StyleEmbedding.from_wire(request.object_embedding, EMBEDDING_DIM),
        identity.embedding,
        identity.anti_embedding,
        total_decisions=identity.total_decisions,
        stability=identity.stability,
        context=EvaluationContext.from_dict(request.context),
    )
    return {"identity_version": identity.version, "score": result.to_dict()}
