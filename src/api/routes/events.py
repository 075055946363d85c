"""
Event Routes.

Votes come in one at a time. A malformed event is rejected on its own
(400) without touching the identity; an identity/device mismatch is 403;
a write that keeps losing the version race is 409.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from services.providers import get_coordinator
from services.reinforcement import ReinforcementCoordinator


router = APIRouter(prefix="/api/events", tags=["Events"])


class EventRequest(BaseModel):
    """
    Fields are optional at the schema level so that a missing vote or
    category becomes a structured rejection instead of a validation error.
    """
    device_install_id: Optional[str] = None
    identity_id: Optional[str] = None
    vote: Optional[str] = Field(default=None, description="me, notMe, maybe or returned")
    return_reason: Optional[str] = None
    category: Optional[str] = None
    object_embedding: Optional[List[Any]] = Field(default=None, description="64 floats")
    evaluation_id: Optional[str] = Field(default=None, description="Client id for the evaluation")
    context: Optional[Dict[str, Any]] = None
    scores: Optional[Dict[str, Any]] = None


@router.post("", summary="Submit a vote")
async def submit_event(
    request: EventRequest,
    coordinator: ReinforcementCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    outcome = coordinator.submit_event(
        device_install_id=request.device_install_id,
        identity_id=request.identity_id,
        vote=request.vote,
        category=request.category,
        object_embedding=request.object_embedding,
        return_reason=request.return_reason,
        context=request.context,
        scores=request.scores,
        evaluation_id=request.evaluation_id,
    )
    if not outcome.ok:
        raise HTTPException(status_code=outcome.http_status, detail=outcome.message)
    return outcome.to_dict()


@router.get("", summary="List events for an identity, newest first")
async def list_events(
    device_install_id: str = Query(..., min_length=1),
    identity_id: str = Query(..., min_length=1),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    coordinator: ReinforcementCoordinator = Depends(get_coordinator),
) -> Dict[str, Any]:
    outcome = coordinator.list_events(device_install_id, identity_id, offset=offset, limit=limit)
    if outcome.http_status != 200:
        raise HTTPException(status_code=outcome.http_status, detail=outcome.message)
    return {
        "events": [event.to_dict() for event in outcome.events],
        "offset": outcome.offset,
        "limit": outcome.limit,
        "has_more": outcome.has_more,
    }
