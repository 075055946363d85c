"""
Tests for candidate scoring, conflict evaluation and the advisory policy.
"""

import numpy as np
import pytest

from engines.domains import SPACE_AXES
from engines.embedding import StyleEmbedding
from engines.taste_vector import TasteVector
from scoring.advisory import (
    ADVISORY_THRESHOLDS,
    AdvisoryLevel,
    AdvisoryVerdict,
    decide,
)
from scoring.conflict import ConflictResult, evaluate_conflict
from scoring.scorer import (
    EvaluationContext,
    alignment_label,
    confidence_label,
    decision_confidence,
    risk_label,
    score,
    score_embedding,
    tension_flags,
)


class TestVectorScore:

    def test_identical_vectors_fully_aligned(self):
        vector = TasteVector({"scandinavian": 0.8, "japandi": 0.4})
        result = score(vector, vector)
        assert result.alignment_score == pytest.approx(100.0)
        assert result.tension_flags == []
        assert result.alignment_label == "ALIGNED"

    def test_opposite_vectors(self):
        identity = TasteVector({"coastal": 0.6})
        candidate = TasteVector({"coastal": -0.6})
        assert score(candidate, identity).alignment_score == pytest.approx(0.0)

    def test_tension_flag_penalty(self):
        identity = TasteVector({"scandinavian": 0.9, "industrial": -0.7})
        candidate = TasteVector({"scandinavian": 0.9, "industrial": 0.5})

        flags = tension_flags(candidate, identity)
        assert flags == ["industrial"]

        result = score(candidate, identity)
        keys = ["industrial", "scandinavian"]
        a = np.array([candidate.get(k) for k in keys])
        b = np.array([identity.get(k) for k in keys])
        base = (np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b)) + 1) / 2 * 100
        assert result.alignment_score == pytest.approx(base - 12.0, abs=1e-3)
        assert result.risk_of_regret >= 0.15

    def test_deterministic(self):
        identity = TasteVector({"rustic": 0.3, "coastal": -0.4})
        candidate = TasteVector({"rustic": 0.5, "coastal": 0.6})
        assert score(candidate, identity) == score(candidate, identity)

    def test_outputs_in_range(self):
        identity = TasteVector({"rustic": 3.0, "coastal": -4.0})
        candidate = TasteVector({"rustic": -2.0, "coastal": 5.0})
        result = score(candidate, identity)
        assert 0.0 <= result.alignment_score <= 100.0
        assert 0.0 <= result.confidence <= 1.0
        assert 0.0 <= result.risk_of_regret <= 1.0


class TestLabels:

    @pytest.mark.parametrize("value,expected", [(70, "ALIGNED"), (69.9, "MODERATE"), (40, "MODERATE"), (10, "TENSION")])
    def test_alignment_label(self, value, expected):
        assert alignment_label(value) == expected

    def test_confidence_and_risk_labels(self):
        assert confidence_label(0.65) == "High"
        assert confidence_label(0.35) == "Moderate"
        assert confidence_label(0.1) == "Low"
        assert risk_label(0.5) == "High"
        assert risk_label(0.25) == "Moderate"
        assert risk_label(0.0) == "Low"


class TestEmbeddingScore:

    def test_logistic_confidence(self):
        assert decision_confidence(5) == pytest.approx(0.5)
        assert decision_confidence(0) == pytest.approx(1 / (1 + np.exp(1.5)))
        assert decision_confidence(30) > 0.99

    def test_fresh_identity_is_neutral(self, candidate_embedding):
        result = score_embedding(candidate_embedding, StyleEmbedding.zero(), StyleEmbedding.zero())
        assert result.alignment_score == 50.0
        assert result.tension_score == 0
        assert result.tension_flags == []

    def test_anti_embedding_overlap_penalizes(self, candidate_embedding):
        result = score_embedding(candidate_embedding, candidate_embedding, candidate_embedding)
        # alignment and tension both near 100; alignment loses a third of tension
        assert result.tension_score >= 99
        assert result.alignment_score <= 67.0
        assert result.tension_flags == ["anti_embedding_overlap"]

    def test_context_terms(self, candidate_embedding):
        context = EvaluationContext.from_dict({
            "budget_max": 1000, "item_price": 500,
            "room_width": 10, "room_length": 10, "item_width": 4, "item_depth": 4,
        })
        assert context.budget_stress() == 0.0
        assert context.scale_fit() == 1.0

        result = score_embedding(
            candidate_embedding, candidate_embedding, StyleEmbedding.zero(),
            stability=1.0, context=context,
        )
        assert result.purchase_confidence == pytest.approx(1.0, abs=0.01)
        assert result.risk_of_regret == pytest.approx(0.0, abs=0.01)

    def test_context_over_budget(self):
        context = EvaluationContext(budget_max=100, item_price=150)
        assert context.budget_stress() == 1.0

    def test_context_from_empty(self):
        assert EvaluationContext.from_dict(None) is None


class TestConflict:

    def test_identical_scores(self):
        scores = {"warm_cool": 0.6, "light_dark": -0.4}
        result = evaluate_conflict(scores, scores, SPACE_AXES)
        assert result.alignment == pytest.approx(1.0)
        assert result.drift == pytest.approx(0.0)

    def test_empty_side_is_neutral(self):
        result = evaluate_conflict({}, {"warm_cool": 1.0}, SPACE_AXES)
        assert result.alignment == 0.5

    def test_conflict_axes_worst_first(self):
        user = {"warm_cool": 1.0, "organic_industrial": -1.0}
        item = {"warm_cool": -1.0, "organic_industrial": -1.0}
        result = evaluate_conflict(user, item, SPACE_AXES)
        assert result.conflict_axes[0] == "Warm Cool"
        assert len(result.conflict_axes) == 2
        assert 0.0 <= result.drift <= 1.0


class TestAdvisoryPolicy:

    def test_tolerance_lifts_alignment_out_of_red(self):
        conflict = ConflictResult(alignment=0.48, drift=0.1)
        assert decide(AdvisoryLevel.STANDARD, conflict).verdict == AdvisoryVerdict.RED
        decision = decide(AdvisoryLevel.STANDARD, conflict, tolerance=0.05)
        assert decision.verdict != AdvisoryVerdict.RED

    def test_tolerance_never_relaxes_drift(self):
        conflict = ConflictResult(alignment=0.9, drift=0.35)
        decision = decide(AdvisoryLevel.STANDARD, conflict, tolerance=0.15)
        assert decision.verdict == AdvisoryVerdict.RED
        assert decision.should_intercept

    def test_green(self):
        decision = decide("standard", ConflictResult(alignment=0.9, drift=0.05))
        assert decision.verdict == AdvisoryVerdict.GREEN
        assert decision.should_intercept is False
        assert decision.headline == "Aligned."

    def test_soft_yellow_does_not_intercept(self):
        conflict = ConflictResult(alignment=0.5, drift=0.1)
        soft = decide(AdvisoryLevel.SOFT, conflict)
        standard = decide(AdvisoryLevel.STANDARD, conflict)
        assert soft.verdict == AdvisoryVerdict.YELLOW
        assert soft.should_intercept is False
        assert standard.should_intercept is True

    def test_strict_is_stricter(self):
        soft = ADVISORY_THRESHOLDS[AdvisoryLevel.SOFT]
        strict = ADVISORY_THRESHOLDS[AdvisoryLevel.STRICT]
        assert strict.red_drift < soft.red_drift
        assert strict.red_alignment > soft.red_alignment

    def test_to_dict(self):
        decision = decide("strict", ConflictResult(alignment=0.3, drift=0.5, conflict_axes=("Light Dark",)))
        data = decision.to_dict()
        assert data["verdict"] == "red"
        assert data["conflict"]["conflict_axes"] == ["Light Dark"]
