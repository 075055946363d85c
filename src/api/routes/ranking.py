"""
Ranking and Profile Routes.

``/api/rank`` scores a caller-supplied catalog slice, spreads categories
out, and returns one page. Ranking is deterministic, so paging through the
same request with increasing offsets never repeats or skips an item.

``/api/profile/name`` resolves the profile's display name.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from engines.domains import get_profile
from engines.naming_engine import ProfileName, resolve
from engines.ranking_engine import (
    AffinitySignals,
    CatalogItem,
    RankFilters,
    diversify,
    page,
    rank,
)
from engines.taste_vector import TasteVector
from services.identity import parse_timestamp


router = APIRouter(tags=["Ranking"])


class CatalogItemModel(BaseModel):
    id: str
    category: str = ""
    title: str = ""
    axis_weights: Dict[str, float] = Field(default_factory=dict)
    clusters: List[str] = Field(default_factory=list)
    rarity_tier: Optional[str] = None
    year_range: Optional[str] = None
    material: Optional[str] = None


class FiltersModel(BaseModel):
    category: Optional[str] = None
    material: Optional[str] = None


class SignalsModel(BaseModel):
    saved: List[str] = Field(default_factory=list)
    viewed: List[str] = Field(default_factory=list)
    dismissed: List[str] = Field(default_factory=list)


class RankRequest(BaseModel):
    domain: str = Field(default="space", description="space, objects or art")
    taste: Dict[str, float] = Field(default_factory=dict, description="Tag weights")
    axis_scores: Optional[Dict[str, float]] = Field(
        default=None, description="Precomputed domain axis scores; used instead of taste when set"
    )
    swipe_count: int = Field(default=0, ge=0)
    items: List[CatalogItemModel] = Field(default_factory=list)
    filters: Optional[FiltersModel] = None
    signals: Optional[SignalsModel] = None
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=20, ge=1, le=200)
    max_consecutive: int = Field(default=4, ge=1, description="Longest same-category run")


class ExistingNameModel(BaseModel):
    name: str = ""
    version: int = 0
    basis_hash: str = ""
    previous_names: List[str] = Field(default_factory=list)
    updated_at: Optional[datetime] = None


class NameRequest(BaseModel):
    domain: str = "space"
    taste: Dict[str, float] = Field(default_factory=dict)
    swipe_count: int = Field(default=0, ge=0)
    existing: Optional[ExistingNameModel] = None


@router.post("/api/rank", summary="Rank, diversify and page catalog items")
async def rank_items(request: RankRequest) -> Dict[str, Any]:
    items = [CatalogItem.from_dict(item.model_dump()) for item in request.items]
    filters = RankFilters(**request.filters.model_dump()) if request.filters else None
    signals = None
    if request.signals:
        signals = AffinitySignals(
            saved_ids=frozenset(request.signals.saved),
            viewed_ids=frozenset(request.signals.viewed),
            dismissed_ids=frozenset(request.signals.dismissed),
        )

    if request.axis_scores is not None:
        taste = request.axis_scores
    else:
        taste = TasteVector(request.taste)

    ranked = rank(
        items,
        taste,
        request.swipe_count,
        domain=request.domain,
        filters=filters,
        signals=signals,
    )
    result = page(diversify(ranked, request.max_consecutive), request.offset, request.limit)

    return {
        "domain": get_profile(request.domain).domain.value,
        "items": [entry.to_dict() for entry in result.items],
        "offset": result.offset,
        "limit": result.limit,
        "total": result.total,
        "has_more": result.has_more,
    }


@router.post("/api/profile/name", summary="Resolve the profile display name")
async def profile_name(request: NameRequest) -> Dict[str, Any]:
    existing = None
    if request.existing is not None:
        existing = ProfileName(
            name=request.existing.name,
            version=request.existing.version,
            basis_hash=request.existing.basis_hash,
            previous_names=tuple(request.existing.previous_names),
            updated_at=parse_timestamp(request.existing.updated_at),
        )
    result = resolve(
        TasteVector(request.taste),
        request.swipe_count,
        existing=existing,
        domain=get_profile(request.domain).domain,
    )
    return result.to_dict()
