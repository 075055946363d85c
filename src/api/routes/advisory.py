"""
Advisory Routes.

``/decide`` evaluates an item against the user's axis scores and returns a
green/yellow/red verdict using the device's current tolerance.
``/signals`` records what the user did with a verdict and runs the daily
tolerance adjustment. An ``intentionalShift`` carrying the current taste
and the item axes also returns the taste nudged toward the item.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from config.settings import get_settings
from engines.domains import get_profile
from engines.taste_vector import TasteVector
from scoring.advisory import AdvisoryLevel, AdvisoryVerdict, decide
from scoring.conflict import evaluate_conflict
from services.advisory_signals import (
    GLOBAL_SCOPE,
    AdvisorySignal,
    AdvisorySignalStore,
    SignalAction,
    apply_intentional_shift,
)
from services.providers import get_signal_store, get_tolerance_store
from services.tolerance import ToleranceStore


router = APIRouter(prefix="/api/advisory", tags=["Advisory"])


class DecideRequest(BaseModel):
    domain: str = Field(default="space", description="space, objects or art")
    item_axes: Dict[str, float] = Field(..., description="Item weights per domain axis")
    axis_scores: Optional[Dict[str, float]] = Field(
        default=None, description="User scores per domain axis"
    )
    taste: Optional[Dict[str, float]] = Field(
        default=None, description="Raw tag weights; converted to axis scores when axis_scores is absent"
    )
    level: Optional[str] = Field(default=None, description="soft, standard or strict")
    device_install_id: Optional[str] = Field(default=None, description="Tolerance scope")


class SignalRequest(BaseModel):
    action: str = Field(..., description="shown, proceeded, saved or intentionalShift")
    verdict: str = Field(..., description="green, yellow or red")
    item_id: str = Field(..., min_length=1)
    device_install_id: Optional[str] = Field(default=None, description="Tolerance scope")
    timestamp: Optional[datetime] = None
    taste: Optional[Dict[str, float]] = Field(
        default=None, description="Current weights; returned nudged toward the item on intentionalShift"
    )
    item_axes: Optional[Dict[str, float]] = None


def _level(value: Optional[str]) -> AdvisoryLevel:
    try:
        return AdvisoryLevel(value or get_settings().advisory_level)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown advisory level: {value}")


@router.post("/decide", summary="Verdict for an item against the user's taste")
async def decide_item(
    request: DecideRequest,
    tolerance: ToleranceStore = Depends(get_tolerance_store),
) -> Dict[str, Any]:
    profile = get_profile(request.domain)
    level = _level(request.level)

    if request.axis_scores is not None:
        user_scores = request.axis_scores
    else:
        user_scores = profile.axis_scores(TasteVector(request.taste or {}))

    conflict = evaluate_conflict(user_scores, request.item_axes, profile.axes)
    current = tolerance.value(request.device_install_id or GLOBAL_SCOPE)
    decision = decide(level, conflict, tolerance=current)
    return {"domain": profile.domain.value, **decision.to_dict()}


@router.post("/signals", summary="Record what the user did with a verdict")
async def record_signal(
    request: SignalRequest,
    signals: AdvisorySignalStore = Depends(get_signal_store),
    tolerance: ToleranceStore = Depends(get_tolerance_store),
) -> Dict[str, Any]:
    try:
        action = SignalAction(request.action)
        verdict = AdvisoryVerdict(request.verdict)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    scope = request.device_install_id or GLOBAL_SCOPE
    now = datetime.now(timezone.utc)
    timestamp = request.timestamp or now
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    signal = signals.record(
        AdvisorySignal(timestamp=timestamp, action=action, verdict=verdict, item_id=request.item_id),
        scope=scope,
    )
    stats = signals.weekly_stats(scope, now=now)
    state = tolerance.adjust_if_needed(stats, scope=scope, today=now.date())

    response = {
        "signal": signal.to_dict(),
        "weekly_stats": stats.to_dict(),
        "tolerance": state.to_dict(),
    }
    if action == SignalAction.INTENTIONAL_SHIFT and request.taste is not None and request.item_axes:
        shifted = apply_intentional_shift(TasteVector(request.taste), request.item_axes)
        response["taste"] = shifted.to_dict()
    return response
