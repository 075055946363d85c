"""
Scoring Module.

Pure functions that judge a candidate against a user's taste.

Quick start::

    from scoring import score, evaluate_conflict, decide, AdvisoryLevel

    result = score(candidate_vector, identity_vector)

    conflict = evaluate_conflict(user_axis_scores, item_axes, axes)
    decision = decide(AdvisoryLevel.STANDARD, conflict, tolerance=0.03)
"""

from scoring.scorer import (
    EmbeddingScore,
    EvaluationContext,
    ScoreResult,
    ScoringConfig,
    score,
    score_embedding,
)
from scoring.conflict import ConflictResult, evaluate_conflict
from scoring.advisory import (
    AdvisoryDecision,
    AdvisoryLevel,
    AdvisoryThresholds,
    AdvisoryVerdict,
    decide,
)

__all__ = [
    "EmbeddingScore",
    "EvaluationContext",
    "ScoreResult",
    "ScoringConfig",
    "score",
    "score_embedding",
    "ConflictResult",
    "evaluate_conflict",
    "AdvisoryDecision",
    "AdvisoryLevel",
    "AdvisoryThresholds",
    "AdvisoryVerdict",
    "decide",
]
