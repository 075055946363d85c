"""
Deterministic Catalog Ranking Engine

Scores every catalog item against a user's taste and returns a total
order. One algorithm serves all three domains; the DomainProfile supplies
the axes, clusters and term weights.

Per-item score:
    w.alignment * cosine(user axes, item axes) mapped to [0, 1]
  + w.rarity    * RARITY_MATRIX[item tier][user stability mode]
  + w.cluster   * (1 if the user's nearest cluster is one of the item's)
  + w.freshness * freshness(item year range)
  + w.affinity  * saved / viewed / dismissed signal

Ties are broken by item id, so shuffling the input never changes the
output. There is no hidden state: the same inputs always produce the
same ranking.

Pagination and diversification operate on the precomputed ranking.
"""

import re
from dataclasses import dataclass, field
from typing import (
    Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Union,
)

import numpy as np

from core.logging import get_logger
from engines.domains import (
    Domain,
    DomainProfile,
    RARITY_MATRIX,
    RarityTier,
    StabilityMode,
    get_profile,
)
from engines.taste_vector import (
    DEVELOPING_SWIPE_COUNT,
    STRONG_SEPARATION,
    STRONG_SWIPE_COUNT,
    TasteVector,
)


logger = get_logger(__name__)

VOLATILE_SEPARATION = 0.10
MISSING_TIER_BOOST = 0.5
DEFAULT_MAX_CONSECUTIVE = 4


# =============================================================================
# Items
# =============================================================================

@dataclass(frozen=True)
class CatalogItem:
    id: str
    category: str = ""
    title: str = ""
    axis_weights: Dict[str, float] = field(default_factory=dict)
    clusters: FrozenSet[str] = frozenset()
    rarity_tier: Optional[RarityTier] = None
    year_range: Optional[str] = None
    material: Optional[str] = None

    __hash__ = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CatalogItem":
        tier = data.get("rarity_tier")
        try:
            rarity_tier = RarityTier(tier) if tier else None
        except ValueError:
            rarity_tier = None
        return cls(
            id=str(data["id"]),
            category=str(data.get("category") or ""),
            title=str(data.get("title") or ""),
            axis_weights={str(k): float(v) for k, v in (data.get("axis_weights") or {}).items()},
            clusters=frozenset(data.get("clusters") or ()),
            rarity_tier=rarity_tier,
            year_range=data.get("year_range"),
            material=data.get("material"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "title": self.title,
            "axis_weights": dict(self.axis_weights),
            "clusters": sorted(self.clusters),
            "rarity_tier": self.rarity_tier.value if self.rarity_tier else None,
            "year_range": self.year_range,
            "material": self.material,
        }


@dataclass(frozen=True)
class RankFilters:
    """Applied before scoring. Every filter only ever narrows the result."""
    category: Optional[str] = None
    material: Optional[str] = None     # case-insensitive substring

    def matches(self, item: CatalogItem) -> bool:
        if self.category and item.category.lower() != self.category.lower():
            return False
        if self.material:
            if not item.material or self.material.lower() not in item.material.lower():
                return False
        return True


@dataclass(frozen=True)
class AffinitySignals:
    saved_ids: FrozenSet[str] = frozenset()
    viewed_ids: FrozenSet[str] = frozenset()
    dismissed_ids: FrozenSet[str] = frozenset()

    def affinity(self, item_id: str) -> float:
        if item_id in self.dismissed_ids:
            return -1.0
        if item_id in self.saved_ids:
            return 1.0
        if item_id in self.viewed_ids:
            return 0.3
        return 0.5


@dataclass(frozen=True)
class RankedItem:
    item: CatalogItem
    score: float
    alignment: float
    rarity: float
    cluster_match: float
    freshness: float
    affinity: float

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def category(self) -> str:
        return self.item.category

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.item.to_dict(),
            "score": round(self.score, 6),
            "components": {
                "alignment": round(self.alignment, 6),
                "rarity": self.rarity,
                "cluster_match": self.cluster_match,
                "freshness": self.freshness,
                "affinity": self.affinity,
            },
        }


@dataclass(frozen=True)
class Page:
    items: List[Any]
    has_more: bool
    offset: int
    limit: int
    total: int


# =============================================================================
# Scoring terms
# =============================================================================

def detect_stability(vector: TasteVector, swipe_count: int) -> StabilityMode:
    """
    Stable needs both many swipes and a clear leader; volatile needs either
    few swipes or no clear leader.
    """
    separation = vector.separation
    if swipe_count >= STRONG_SWIPE_COUNT and separation >= STRONG_SEPARATION:
        return StabilityMode.STABLE
    if separation < VOLATILE_SEPARATION or swipe_count < DEVELOPING_SWIPE_COUNT:
        return StabilityMode.VOLATILE
    return StabilityMode.NEUTRAL


def rarity_boost(tier: Optional[RarityTier], mode: StabilityMode) -> float:
    if tier is None:
        return MISSING_TIER_BOOST
    return RARITY_MATRIX[tier][mode]


def vector_alignment(
    axis_scores: Mapping[str, float],
    item_weights: Mapping[str, float],
    axes: Sequence[str],
) -> float:
    """Cosine over ``axes`` mapped to [0, 1]. 0.5 when either side is all zero."""
    a = np.array([axis_scores.get(axis, 0.0) for axis in axes], dtype=np.float64)
    b = np.array([item_weights.get(axis, 0.0) for axis in axes], dtype=np.float64)
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.5
    cosine = float(np.clip(np.dot(a, b) / denom, -1.0, 1.0))
    return (cosine + 1.0) / 2.0


_YEAR_PATTERN = re.compile(r"\d+")


def freshness(year_range: Optional[str]) -> float:
    """Latest plausible year in a range string like ``"2019-2023"``."""
    if not year_range:
        return 0.5
    years = [int(y) for y in _YEAR_PATTERN.findall(year_range) if 1900 <= int(y) <= 2100]
    if not years:
        return 0.5
    latest = max(years)
    if latest >= 2020:
        return 1.0
    if latest >= 2000:
        return 0.7
    if latest >= 1980:
        return 0.5
    return 0.3


# =============================================================================
# Rank / page / diversify
# =============================================================================

def rank(
    items: Iterable[CatalogItem],
    taste: Union[TasteVector, Mapping[str, float]],
    swipe_count: int,
    domain: Union[Domain, str] = Domain.SPACE,
    filters: Optional[RankFilters] = None,
    signals: Optional[AffinitySignals] = None,
) -> List[RankedItem]:
    """
    Rank catalog items for a user.

    Args:
        items: Candidate items (any order).
        taste: The user's TasteVector, or precomputed axis scores.
        swipe_count: Swipes so far; drives the stability mode.
        domain: Which scoring tables to use.
        filters: Narrowing filters, applied before scoring.
        signals: Optional saved/viewed/dismissed history.

    Returns:
        Every matching item, best first, ties broken by item id.
    """
    profile: DomainProfile = get_profile(domain)

    if isinstance(taste, TasteVector):
        vector = taste
        axis_scores = profile.axis_scores(taste)
    else:
        axis_scores = {axis: float(taste.get(axis, 0.0)) for axis in profile.axes}
        vector = TasteVector(axis_scores)

    mode = detect_stability(vector, swipe_count)
    dominant_cluster = profile.identify_cluster(axis_scores)
    weights = profile.weights
    signals = signals or AffinitySignals()

    candidates = [item for item in items if filters is None or filters.matches(item)]

    ranked = []
    for item in candidates:
        alignment = vector_alignment(axis_scores, item.axis_weights, profile.axes)
        rarity = rarity_boost(item.rarity_tier, mode)
        cluster_match = 1.0 if dominant_cluster in item.clusters else 0.0
        fresh = freshness(item.year_range)
        affinity = signals.affinity(item.id) if weights.affinity else 0.0

        score = (
            weights.alignment * alignment
            + weights.rarity * rarity
            + weights.cluster * cluster_match
            + weights.freshness * fresh
            + weights.affinity * affinity
        )
        ranked.append(RankedItem(
            item=item,
            score=score,
            alignment=alignment,
            rarity=rarity,
            cluster_match=cluster_match,
            freshness=fresh,
            affinity=affinity,
        ))

    ranked.sort(key=lambda r: (-r.score, r.item.id))

    logger.debug(
        "Catalog ranked",
        domain=profile.domain.value,
        stability_mode=mode.value,
        dominant_cluster=dominant_cluster,
        candidates=len(candidates),
    )
    return ranked


def page(ranked: Sequence[Any], offset: int, limit: int) -> Page:
    """Slice a precomputed ranking. Consecutive pages are disjoint."""
    offset = max(0, int(offset))
    limit = max(0, int(limit))
    items = list(ranked[offset:offset + limit])
    return Page(
        items=items,
        has_more=offset + limit < len(ranked),
        offset=offset,
        limit=limit,
        total=len(ranked),
    )


def _category_of(entry: Any) -> str:
    return entry.category


def diversify(
    items: Sequence[Any],
    max_consecutive: int = DEFAULT_MAX_CONSECUTIVE,
    key: Callable[[Any], Any] = _category_of,
) -> List[Any]:
    """
    Reorder so no more than ``max_consecutive`` neighbours share a key.

    Greedy: once the current run is full, take the highest-ranked remaining
    item with a different key. When only same-key items remain the run is
    allowed to continue. Never drops or duplicates an item.
    """
    max_consecutive = max(1, max_consecutive)
    remaining = list(items)
    result: List[Any] = []
    run_key = None
    run_length = 0

    while remaining:
        index = 0
        if result and run_length >= max_consecutive:
            for i, candidate in enumerate(remaining):
                if key(candidate) != run_key:
                    index = i
                    break

        chosen = remaining.pop(index)
        chosen_key = key(chosen)
        if result and chosen_key == run_key:
            run_length += 1
        else:
            run_key = chosen_key
            run_length = 1
        result.append(chosen)

    return result
