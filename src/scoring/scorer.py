"""
Taste Scorer -- how well does a candidate fit an identity?

Two entry points:

``score(candidate, identity)``
    TasteVector vs TasteVector. Alignment is cosine mapped to 0-100, minus a
    fixed penalty for every tension flag (an axis the identity avoids that
    the candidate leans into). All outputs are pure functions of the two
    vectors.

``score_embedding(candidate, embedding, anti_embedding, ...)``
    64-d candidate embedding vs the reinforced identity. Alignment comes
    from the primary embedding, tension from the anti-embedding, confidence
    from how many decisions the identity has seen.

Usage::

    from scoring.scorer import score

    result = score(candidate_vector, identity_vector)
    result.alignment_score   # 0..100
    result.tension_flags     # ["industrial", ...]
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from core.utils import clamp01
from engines.embedding import StyleEmbedding
from engines.taste_vector import (
    AVOID_THRESHOLD,
    INFLUENCE_THRESHOLD,
    SIGNIFICANT_WEIGHT,
    TasteVector,
)


# =============================================================================
# Config
# =============================================================================

@dataclass(frozen=True)
class ScoringConfig:
    """Penalties and blend weights for candidate scoring."""

    # Alignment points lost per tension flag
    tension_flag_penalty: float = 12.0

    # Risk = 1 - (alignment_weight * alignment + confidence_weight * confidence)
    risk_alignment_weight: float = 0.7
    risk_confidence_weight: float = 0.3
    tension_risk_penalty: float = 0.15

    # Embedding path
    tension_divisor: int = 3
    tension_risk_threshold: int = 50
    confidence_slope: float = 0.3
    confidence_midpoint: int = 5

    # Purchase confidence blend (embedding path)
    purchase_alignment_weight: float = 0.40
    purchase_scale_weight: float = 0.25
    purchase_budget_weight: float = 0.25
    purchase_stability_weight: float = 0.10


DEFAULT_SCORING_CONFIG = ScoringConfig()


# =============================================================================
# Labels
# =============================================================================

def alignment_label(score: float) -> str:
    if score >= 70:
        return "ALIGNED"
    if score >= 40:
        return "MODERATE"
    return "TENSION"


def confidence_label(confidence: float) -> str:
    if confidence >= 0.65:
        return "High"
    if confidence >= 0.35:
        return "Moderate"
    return "Low"


def risk_label(risk: float) -> str:
    if risk >= 0.5:
        return "High"
    if risk >= 0.25:
        return "Moderate"
    return "Low"


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class ScoreResult:
    alignment_score: float          # 0..100
    confidence: float               # 0..1
    tension_flags: List[str] = field(default_factory=list)
    risk_of_regret: float = 0.0     # 0..1

    __hash__ = None

    @property
    def alignment_label(self) -> str:
        return alignment_label(self.alignment_score)

    @property
    def confidence_label(self) -> str:
        return confidence_label(self.confidence)

    @property
    def risk_label(self) -> str:
        return risk_label(self.risk_of_regret)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alignment_score": self.alignment_score,
            "alignment_label": self.alignment_label,
            "confidence": self.confidence,
            "confidence_label": self.confidence_label,
            "tension_flags": list(self.tension_flags),
            "risk_of_regret": self.risk_of_regret,
            "risk_label": self.risk_label,
        }


@dataclass(frozen=True)
class EvaluationContext:
    """Optional purchase context: budget and room/item footprint (feet)."""
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    room_width: Optional[float] = None
    room_length: Optional[float] = None
    item_width: Optional[float] = None
    item_depth: Optional[float] = None
    item_price: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["EvaluationContext"]:
        if not data:
            return None

        def _num(key: str) -> Optional[float]:
            value = data.get(key)
            if value is None:
                return None
            try:
                return float(value)
            except (TypeError, ValueError):
                return None

        return cls(**{name: _num(name) for name in cls.__dataclass_fields__})

    def budget_stress(self) -> float:
        """0 = comfortably in budget, 1 = over budget, 0.5 = unknown."""
        price = self.item_price
        if price is None:
            return 0.5
        if self.budget_max is not None and self.budget_max > 0:
            if price > self.budget_max:
                return 1.0
            comfort = self.budget_max * 0.70
            if price <= comfort:
                return 0.0
            return (price - comfort) / (self.budget_max - comfort)
        if self.budget_min is not None and price < self.budget_min:
            return 0.1
        return 0.5

    def scale_fit(self) -> float:
        """Footprint share of the room: 10-25% is ideal, 0.5 when unknown."""
        dims = (self.item_width, self.item_depth, self.room_width, self.room_length)
        if any(d is None for d in dims) or self.room_width <= 0 or self.room_length <= 0:
            return 0.5
        ratio = (self.item_width * self.item_depth) / (self.room_width * self.room_length)
        if ratio < 0.05:
            return 0.3
        if ratio < 0.10:
            return 0.6
        if ratio < 0.25:
            return 1.0
        if ratio < 0.35:
            return 0.7
        return 0.2


@dataclass(frozen=True)
class EmbeddingScore(ScoreResult):
    tension_score: int = 0
    purchase_confidence: float = 0.0
    budget_stress: float = 0.5
    scale_fit: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            **super().to_dict(),
            "tension_score": self.tension_score,
            "purchase_confidence": self.purchase_confidence,
            "budget_stress": self.budget_stress,
            "scale_fit": self.scale_fit,
        }


# =============================================================================
# TasteVector scoring
# =============================================================================

def tension_flags(candidate: TasteVector, identity: TasteVector) -> List[str]:
    """Axes the identity avoids (< -0.2) that the candidate leans into (> +0.3)."""
    cand = candidate.normalized()
    ident = identity.normalized()
    return sorted(
        key for key in ident.weights
        if ident.get(key) < AVOID_THRESHOLD and cand.get(key) > INFLUENCE_THRESHOLD
    )


def _cosine(a: TasteVector, b: TasteVector) -> float:
    keys = sorted(set(a.weights) | set(b.weights))
    if not keys:
        return 0.0
    va = np.array([a.get(k) for k in keys], dtype=np.float64)
    vb = np.array([b.get(k) for k in keys], dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def _vector_confidence(candidate: TasteVector, identity: TasteVector) -> float:
    """
    How much the identity actually knows about what the candidate is made of.

    Half from how developed the identity is overall, half from how many of
    the candidate's significant axes the identity has an opinion on.
    """
    cand = candidate.normalized()
    ident = identity.normalized()
    significant = [k for k, v in cand.weights.items() if abs(v) > SIGNIFICANT_WEIGHT]
    if significant:
        covered = sum(1 for k in significant if abs(ident.get(k)) > SIGNIFICANT_WEIGHT)
        overlap = covered / len(significant)
    else:
        overlap = 0.0
    return clamp01(0.5 * ident.confidence + 0.5 * overlap)


def score(
    candidate: TasteVector,
    identity: TasteVector,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> ScoreResult:
    """
    Score a candidate vector against an identity vector.

    Identical non-zero vectors land at 100; opposite vectors at 0. No clock,
    no randomness: identical inputs always give identical results.
    """
    cand = candidate.normalized()
    ident = identity.normalized()

    flags = tension_flags(cand, ident)
    base = (_cosine(cand, ident) + 1.0) / 2.0 * 100.0
    alignment = max(0.0, min(100.0, base - config.tension_flag_penalty * len(flags)))
    confidence = _vector_confidence(cand, ident)

    risk = 1.0 - (
        config.risk_alignment_weight * alignment / 100.0
        + config.risk_confidence_weight * confidence
    )
    if flags:
        risk += config.tension_risk_penalty

    return ScoreResult(
        alignment_score=round(alignment, 4),
        confidence=round(confidence, 6),
        tension_flags=flags,
        risk_of_regret=round(clamp01(risk), 6),
    )


# =============================================================================
# Embedding scoring
# =============================================================================

def decision_confidence(total_decisions: int, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
    """Logistic curve over decisions: ~0.18 at zero, 0.5 at five, ~0.95 at fifteen."""
    exponent = -config.confidence_slope * (total_decisions - config.confidence_midpoint)
    return 1.0 / (1.0 + math.exp(exponent))


def score_embedding(
    candidate: StyleEmbedding,
    embedding: StyleEmbedding,
    anti_embedding: StyleEmbedding,
    total_decisions: int = 0,
    stability: float = 1.0,
    context: Optional[EvaluationContext] = None,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> EmbeddingScore:
    """Score a 64-d candidate against an identity's embedding pair."""
    cand = candidate.normalized()

    alignment = int((cand.cosine(embedding.normalized()) + 1.0) / 2.0 * 100.0)

    anti = anti_embedding.normalized()
    if anti.is_zero:
        tension = 0
    else:
        tension = int((cand.cosine(anti) + 1.0) / 2.0 * 100.0)

    alignment = max(0, min(100, alignment - tension // config.tension_divisor))

    confidence = decision_confidence(total_decisions, config)

    budget_stress = context.budget_stress() if context else 0.5
    scale_fit = context.scale_fit() if context else 0.5
    purchase = clamp01(
        alignment / 100.0 * config.purchase_alignment_weight
        + scale_fit * config.purchase_scale_weight
        + (1.0 - budget_stress) * config.purchase_budget_weight
        + stability * config.purchase_stability_weight
    )

    risk = 1.0 - purchase
    flags: List[str] = []
    if tension > config.tension_risk_threshold:
        risk += config.tension_risk_penalty
        flags.append("anti_embedding_overlap")

    return EmbeddingScore(
        alignment_score=float(alignment),
        confidence=confidence,
        tension_flags=flags,
        risk_of_regret=clamp01(risk),
        tension_score=tension,
        purchase_confidence=purchase,
        budget_stress=budget_stress,
        scale_fit=scale_fit,
    )
