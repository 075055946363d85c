"""
Taste Domains

Three domains share one ranking algorithm but differ in their scoring
tables:

- space:   10 style tags projected onto 7 interior axes
- objects: 9 object axes learned directly (no tag projection)
- art:     the 7 interior axes with art-specific clusters

A DomainProfile bundles everything the ranking and naming engines need
to know about a domain. Callers pick one with ``get_profile(domain)``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

import numpy as np

from core.utils import clamp
from engines.taste_vector import STYLE_TAGS, TasteVector, tag_label


class Domain(str, Enum):
    SPACE = "space"
    OBJECTS = "objects"
    ART = "art"


def normalize_domain(value: Optional[str]) -> Domain:
    """Parse a domain name leniently; unknown or empty values mean ``space``."""
    if isinstance(value, Domain):
        return value
    try:
        return Domain(str(value or "").strip().lower())
    except ValueError:
        return Domain.SPACE


# =============================================================================
# Axes
# =============================================================================

SPACE_AXES: Tuple[str, ...] = (
    "minimal_ornate",       # -1 minimal, +1 ornate
    "warm_cool",            # -1 cool, +1 warm
    "soft_structured",      # -1 soft, +1 structured
    "organic_industrial",   # -1 organic, +1 industrial
    "light_dark",           # -1 light, +1 dark
    "neutral_saturated",    # -1 neutral, +1 saturated
    "sparse_layered",       # -1 sparse, +1 layered
)

OBJECT_AXES: Tuple[str, ...] = (
    "precision",
    "patina",
    "utility",
    "formality",
    "subculture",
    "ornament",
    "heritage",
    "technicality",
    "minimalism",
)


def axis_label(axis: str) -> str:
    """``organic_industrial`` -> ``Organic Industrial``."""
    return tag_label(axis)


def _axes(*values: float) -> Dict[str, float]:
    return dict(zip(SPACE_AXES, values))


# Each style tag's contribution to the 7 interior axes.
# Order: minimal_ornate, warm_cool, soft_structured, organic_industrial,
#        light_dark, neutral_saturated, sparse_layered
TAG_AXIS_CONTRIBUTIONS: Dict[str, Dict[str, float]] = {
    "mid_century_modern": _axes(-0.3, 0.7, 0.2, -0.4, 0.0, 0.0, -0.1),
    "scandinavian":       _axes(-0.8, -0.4, -0.3, -0.3, -0.7, -0.5, -0.6),
    "industrial":         _axes(-0.2, -0.5, 0.8, 0.9, 0.7, -0.3, 0.3),
    "bohemian":           _axes(0.8, 0.8, -0.6, -0.7, 0.0, 0.6, 0.9),
    "minimalist":         _axes(-0.9, 0.0, 0.3, 0.0, -0.5, -0.6, -0.8),
    "traditional":        _axes(0.6, 0.7, 0.4, -0.3, 0.1, 0.2, 0.5),
    "coastal":            _axes(-0.4, -0.3, -0.5, -0.4, -0.6, -0.2, -0.3),
    "rustic":             _axes(0.3, 0.8, 0.5, -0.5, 0.6, -0.3, 0.4),
    "art_deco":           _axes(0.9, 0.4, 0.7, 0.3, 0.2, 0.8, 0.7),
    "japandi":            _axes(-0.7, 0.2, -0.2, -0.3, -0.6, -0.5, -0.7),
}


# =============================================================================
# Stability / rarity
# =============================================================================

class StabilityMode(str, Enum):
    STABLE = "stable"
    NEUTRAL = "neutral"
    VOLATILE = "volatile"


class RarityTier(str, Enum):
    ARCHIVE = "archive"
    CONTEMPORARY = "contemporary"
    EMERGENT = "emergent"


# Settled users lean archival, restless users lean emergent; neutral is flat
NEUTRAL_RARITY_BOOST = 0.7

RARITY_MATRIX: Dict[RarityTier, Dict[StabilityMode, float]] = {
    RarityTier.ARCHIVE: {
        StabilityMode.STABLE: 1.0, StabilityMode.NEUTRAL: NEUTRAL_RARITY_BOOST, StabilityMode.VOLATILE: 0.3,
    },
    RarityTier.CONTEMPORARY: {
        StabilityMode.STABLE: 0.6, StabilityMode.NEUTRAL: NEUTRAL_RARITY_BOOST, StabilityMode.VOLATILE: 0.6,
    },
    RarityTier.EMERGENT: {
        StabilityMode.STABLE: 0.3, StabilityMode.NEUTRAL: NEUTRAL_RARITY_BOOST, StabilityMode.VOLATILE: 1.0,
    },
}


# =============================================================================
# Profiles
# =============================================================================

@dataclass(frozen=True)
class RankingWeights:
    """Per-domain blend of the ranking terms. Should sum to 1.0."""
    alignment: float = 0.60
    rarity: float = 0.15
    cluster: float = 0.15
    freshness: float = 0.10
    affinity: float = 0.0


@dataclass(frozen=True)
class DomainProfile:
    domain: Domain
    axes: Tuple[str, ...]
    # name -> axis coefficients; nearest centroid wins
    clusters: Tuple[Tuple[str, Dict[str, float]], ...]
    weights: RankingWeights
    # tag -> axis contributions; None means the vector is keyed by axis already
    tag_contributions: Optional[Dict[str, Dict[str, float]]] = None
    vocabulary: Tuple[str, ...] = field(default=())

    def zero_vector(self) -> TasteVector:
        return TasteVector.zero(self.vocabulary or self.axes)

    def axis_scores(self, vector: TasteVector) -> Dict[str, float]:
        """
        Project a taste vector onto this domain's axes, each in [-1, 1].

        Tag domains average each tag's contributions weighted by the tag's
        weight, divided by total absolute weight. An all-zero vector maps to
        all-zero axes.
        """
        if self.tag_contributions is None:
            return {axis: clamp(vector.get(axis)) for axis in self.axes}

        total = sum(abs(w) for w in vector.weights.values())
        if total <= 0:
            return {axis: 0.0 for axis in self.axes}

        sums = {axis: 0.0 for axis in self.axes}
        for tag, weight in vector.weights.items():
            contribution = self.tag_contributions.get(tag)
            if contribution is None:
                continue
            for axis in self.axes:
                sums[axis] += weight * contribution.get(axis, 0.0)
        return {axis: clamp(sums[axis] / total) for axis in self.axes}

    def identify_cluster(self, axis_scores: Mapping[str, float]) -> str:
        """
        Nearest-centroid cluster for a set of axis scores.

        Centroids are unit-normalized so a cluster defined over more axes
        isn't favored just for having more terms. Ties go to the cluster
        declared first.
        """
        user = np.array([axis_scores.get(axis, 0.0) for axis in self.axes], dtype=np.float64)
        best_name = self.clusters[0][0]
        best_score = -np.inf
        for name, coefficients in self.clusters:
            centroid = np.array([coefficients.get(axis, 0.0) for axis in self.axes])
            norm = np.linalg.norm(centroid)
            if norm > 0:
                centroid = centroid / norm
            score = float(np.dot(user, centroid))
            if score > best_score:
                best_name, best_score = name, score
        return best_name


SPACE_PROFILE = DomainProfile(
    domain=Domain.SPACE,
    axes=SPACE_AXES,
    clusters=(
        ("industrial_dark", {"organic_industrial": 1.0, "light_dark": 1.0}),
        ("warm_organic", {"warm_cool": 1.0, "organic_industrial": -1.0}),
        ("minimal_neutral", {"minimal_ornate": -1.0, "neutral_saturated": -1.0}),
        ("layered_saturated", {"sparse_layered": 1.0, "neutral_saturated": 1.0}),
    ),
    weights=RankingWeights(alignment=0.55, rarity=0.10, cluster=0.20, freshness=0.05, affinity=0.10),
    tag_contributions=TAG_AXIS_CONTRIBUTIONS,
    vocabulary=STYLE_TAGS,
)

OBJECTS_PROFILE = DomainProfile(
    domain=Domain.OBJECTS,
    axes=OBJECT_AXES,
    clusters=(
        ("precision", {"precision": 1.0, "technicality": 1.0}),
        ("heritage_craft", {"heritage": 1.0, "patina": 1.0, "technicality": -1.0}),
        ("technical_luxury", {"technicality": 1.0, "formality": 1.0, "precision": 1.0}),
        ("minimal_utility", {"minimalism": 1.0, "utility": 1.0, "ornament": -1.0}),
    ),
    weights=RankingWeights(alignment=0.60, rarity=0.20, cluster=0.10, freshness=0.10),
    tag_contributions=None,
    vocabulary=OBJECT_AXES,
)

ART_PROFILE = DomainProfile(
    domain=Domain.ART,
    axes=SPACE_AXES,
    clusters=(
        ("archive_canon", {"warm_cool": 1.0, "sparse_layered": 1.0, "minimal_ornate": 1.0}),
        ("post_monochrome", {"neutral_saturated": -1.0, "minimal_ornate": -1.0, "light_dark": 1.0}),
        ("brutal_gesture", {"organic_industrial": 1.0, "light_dark": 1.0, "soft_structured": 1.0}),
        ("afro_futurism", {"neutral_saturated": 1.0, "warm_cool": 1.0, "light_dark": -1.0}),
        ("conceptual_archive", {"sparse_layered": -1.0, "warm_cool": -1.0, "soft_structured": 1.0}),
    ),
    weights=RankingWeights(alignment=0.60, rarity=0.15, cluster=0.15, freshness=0.10),
    tag_contributions=TAG_AXIS_CONTRIBUTIONS,
    vocabulary=STYLE_TAGS,
)

PROFILES: Dict[Domain, DomainProfile] = {
    Domain.SPACE: SPACE_PROFILE,
    Domain.OBJECTS: OBJECTS_PROFILE,
    Domain.ART: ART_PROFILE,
}


def get_profile(domain) -> DomainProfile:
    return PROFILES[normalize_domain(domain)]
