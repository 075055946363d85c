"""
Tests for vote reinforcement, anchor holds and the request coordinator.
"""

from datetime import timedelta

import numpy as np
import pytest

from engines.embedding import StyleEmbedding
from services.identity import Identity
from services.identity_store import InMemoryIdentityStore
from services.models import ReturnReason, Vote
from services.reinforcement import (
    EventStatus,
    ReinforcementCoordinator,
    ReinforcementService,
    is_anchor,
    updated_stability,
)


DEVICE = "device-1"


@pytest.fixture
def service() -> ReinforcementService:
    return ReinforcementService()


@pytest.fixture
def identity(now) -> Identity:
    return Identity.bootstrap(DEVICE, identity_id="identity-1")


class RacingIdentityStore(InMemoryIdentityStore):
    """Lets another writer win the version race ``races`` times."""

    def __init__(self, races: int):
        super().__init__()
        self.races = races

    def save(self, identity, expected_version):
        if self.races > 0:
            self.races -= 1
            current = self.get(identity.id)
            super().save(current.evolve(), expected_version=current.version)
        return super().save(identity, expected_version)


# =============================================================================
# Pure service
# =============================================================================

class TestAnchorCategories:

    @pytest.mark.parametrize("category", ["sofa", "Sectional", "  SOFA "])
    def test_anchor(self, category):
        assert is_anchor(category)

    @pytest.mark.parametrize("category", ["lamp", "", None, "sofa table"])
    def test_not_anchor(self, category):
        assert not is_anchor(category)


class TestApplyVote:

    def test_me_moves_embedding(self, service, identity, candidate_embedding, now):
        result = service.apply_vote(identity, Vote.ME, candidate_embedding, "lamp", now=now)
        updated = result.identity

        assert not result.is_pending
        assert updated.embedding != identity.embedding
        assert updated.embedding.values[0] == pytest.approx(0.18 * 0.8)
        assert updated.embedding.values[3] == 0.0          # low-signal dim untouched
        assert updated.anti_embedding.is_zero
        assert updated.version == identity.version + 1
        assert updated.count_me == 1

    def test_maybe_uses_small_rate(self, service, identity, candidate_embedding, now):
        updated = service.apply_vote(identity, "maybe", candidate_embedding, "rug", now=now).identity
        assert updated.embedding.values[0] == pytest.approx(0.05 * 0.8)
        assert updated.count_maybe == 1

    def test_not_me_moves_anti_embedding(self, service, identity, candidate_embedding, now):
        updated = service.apply_vote(identity, Vote.NOT_ME, candidate_embedding, "lamp", now=now).identity
        assert updated.embedding.is_zero
        assert updated.anti_embedding.values[0] == pytest.approx(0.14 * 0.8)
        assert updated.count_not_me == 1

    def test_style_return_moves_anti_embedding(self, service, identity, candidate_embedding, now):
        updated = service.apply_vote(
            identity, Vote.RETURNED, candidate_embedding, "lamp",
            return_reason=ReturnReason.COLOR_MISMATCH, now=now,
        ).identity
        assert not updated.anti_embedding.is_zero
        assert updated.count_not_me == 1

    @pytest.mark.parametrize("reason", [ReturnReason.TOO_LARGE, ReturnReason.PRICE_DISCOMFORT, None])
    def test_non_style_return_keeps_embeddings(self, service, identity, candidate_embedding, now, reason):
        updated = service.apply_vote(
            identity, Vote.RETURNED, candidate_embedding, "lamp", return_reason=reason, now=now,
        ).identity
        assert updated.anti_embedding.is_zero
        assert updated.embedding.is_zero
        assert updated.count_not_me == 1
        assert updated.version == identity.version + 1

    def test_anchor_vote_is_held(self, service, identity, candidate_embedding, now):
        result = service.apply_vote(
            identity, Vote.ME, candidate_embedding, "Sofa", evaluation_id="eval-1", now=now,
        )
        held = result.identity

        assert result.is_pending
        assert held.embedding == identity.embedding
        assert held.stability == identity.stability
        assert held.version == identity.version + 1
        assert held.count_me == 1

        record = result.pending
        assert record.evaluation_id == "eval-1"
        assert record.category == "sofa"
        assert abs((record.unlock_at - record.created_at) - timedelta(days=14)) <= timedelta(seconds=1)
        assert record.is_ready(now) is False
        assert record.is_ready(now + timedelta(days=14)) is True

    def test_maybe_on_anchor_applies_immediately(self, service, identity, candidate_embedding, now):
        result = service.apply_vote(identity, Vote.MAYBE, candidate_embedding, "sofa", now=now)
        assert not result.is_pending
        assert not result.identity.embedding.is_zero

    def test_finalize_beats_immediate_vote(self, service, identity, candidate_embedding, now):
        immediate = service.apply_vote(identity, Vote.ME, candidate_embedding, "lamp", now=now).identity

        held = service.apply_vote(identity, Vote.ME, candidate_embedding, "sofa", now=now)
        finalized = service.finalize_pending(held.pending, held.identity, now=now + timedelta(days=14))

        target = candidate_embedding.values
        assert np.linalg.norm(finalized.embedding.values - target) < np.linalg.norm(immediate.embedding.values - target)
        assert finalized.embedding.values[0] == pytest.approx(0.18 * 1.8 * 0.8)
        assert finalized.count_me == 1
        assert finalized.version == held.identity.version + 1

    def test_finalize_not_me(self, service, identity, candidate_embedding, now):
        held = service.apply_vote(identity, Vote.NOT_ME, candidate_embedding, "sectional", now=now)
        finalized = service.finalize_pending(held.pending, held.identity, now=now)
        assert finalized.anti_embedding.values[0] == pytest.approx(0.14 * 1.8 * 0.8)
        assert finalized.embedding.is_zero

    def test_stability_smoothing(self, candidate_embedding):
        before = StyleEmbedding.zero()
        assert updated_stability(before, before, 1.0) == pytest.approx(1.0)
        after = before.blend(candidate_embedding, 1.0, candidate_embedding.low_signal_mask())
        stability = updated_stability(before, after, 1.0)
        assert 0.9 <= stability < 1.0


# =============================================================================
# Coordinator
# =============================================================================

class TestSubmitEvent:

    def test_applied(self, coordinator, candidate_wire):
        identity = coordinator.bootstrap(DEVICE)
        outcome = coordinator.submit_event(DEVICE, identity.id, "me", "lamp", candidate_wire)

        assert outcome.status == EventStatus.APPLIED
        assert outcome.http_status == 200
        assert outcome.identity.version == 2
        assert coordinator.identities.get(identity.id).version == 2
        assert coordinator.events.count(identity.id) == 1

    def test_anchor_pending(self, coordinator, candidate_wire, now):
        identity = coordinator.bootstrap(DEVICE)
        outcome = coordinator.submit_event(
            DEVICE, identity.id, "me", "sofa", candidate_wire, evaluation_id="eval-1", now=now,
        )

        assert outcome.status == EventStatus.PENDING
        assert outcome.pending is True
        assert outcome.identity.embedding.is_zero
        data = outcome.to_dict()
        assert data["pending"] is True
        assert data["identity"]["version"] == 2
        assert "device_install_id" not in data["identity"]
        assert coordinator.pending.get(identity.id, "eval-1") is not None

    def test_replayed_anchor_vote_counted_once(self, coordinator, candidate_wire, now):
        identity = coordinator.bootstrap(DEVICE)
        first = coordinator.submit_event(
            DEVICE, identity.id, "me", "sofa", candidate_wire, evaluation_id="dup", now=now,
        )
        again = coordinator.submit_event(
            DEVICE, identity.id, "me", "sofa", candidate_wire, evaluation_id="dup", now=now,
        )

        assert again.status == EventStatus.PENDING
        assert again.pending_record.unlock_at == first.pending_record.unlock_at
        stored = coordinator.identities.get(identity.id)
        assert stored.count_me == 1
        assert stored.version == 2
        assert len(coordinator.pending.for_identity(identity.id)) == 1
        assert coordinator.events.count(identity.id) == 1

    @pytest.mark.parametrize("vote,category,embedding", [
        (None, "lamp", [0.0] * 64),
        ("me", "", [0.0] * 64),
        ("me", "lamp", None),
        ("love", "lamp", [0.0] * 64),
    ])
    def test_rejected(self, coordinator, vote, category, embedding):
        identity = coordinator.bootstrap(DEVICE)
        outcome = coordinator.submit_event(DEVICE, identity.id, vote, category, embedding)
        assert outcome.status == EventStatus.REJECTED
        assert outcome.http_status == 400
        assert coordinator.identities.get(identity.id).version == 1
        assert coordinator.events.count(identity.id) == 0

    def test_unknown_return_reason_rejected(self, coordinator, candidate_wire):
        identity = coordinator.bootstrap(DEVICE)
        outcome = coordinator.submit_event(
            DEVICE, identity.id, "returned", "lamp", candidate_wire, return_reason="meh",
        )
        assert outcome.status == EventStatus.REJECTED

    def test_wrong_size_embedding_is_zero_not_fatal(self, coordinator):
        identity = coordinator.bootstrap(DEVICE)
        outcome = coordinator.submit_event(DEVICE, identity.id, "me", "lamp", [0.9] * 10)
        assert outcome.status == EventStatus.APPLIED
        assert outcome.identity.embedding.is_zero

    def test_wrong_device_denied(self, coordinator, candidate_wire):
        identity = coordinator.bootstrap(DEVICE)
        outcome = coordinator.submit_event("someone-else", identity.id, "me", "lamp", candidate_wire)
        assert outcome.status == EventStatus.DENIED
        assert outcome.http_status == 403
        assert outcome.to_dict() == {"status": "denied", "error": outcome.message}
        assert coordinator.identities.get(identity.id).version == 1

    def test_unknown_identity_denied(self, coordinator, candidate_wire):
        outcome = coordinator.submit_event(DEVICE, "missing", "me", "lamp", candidate_wire)
        assert outcome.status == EventStatus.DENIED

    def test_stale_version_retries_against_fresh_identity(self, candidate_wire):
        store = RacingIdentityStore(races=1)
        coordinator = ReinforcementCoordinator(identities=store)
        identity = coordinator.bootstrap(DEVICE)

        outcome = coordinator.submit_event(DEVICE, identity.id, "me", "lamp", candidate_wire)

        assert outcome.status == EventStatus.APPLIED
        # bootstrap v1 -> rival write v2 -> our retried write v3
        assert outcome.identity.version == 3
        assert outcome.identity.count_me == 1

    def test_conflict_after_retries(self, candidate_wire):
        store = RacingIdentityStore(races=10)
        coordinator = ReinforcementCoordinator(identities=store, max_write_attempts=3)
        identity = coordinator.bootstrap(DEVICE)

        outcome = coordinator.submit_event(DEVICE, identity.id, "me", "lamp", candidate_wire)

        assert outcome.status == EventStatus.CONFLICT
        assert outcome.http_status == 409
        assert coordinator.events.count(identity.id) == 0


class TestListEvents:

    def test_newest_first_with_paging(self, coordinator, candidate_wire, now):
        identity = coordinator.bootstrap(DEVICE)
        for i in range(5):
            coordinator.submit_event(
                DEVICE, identity.id, "maybe", f"cat-{i}", candidate_wire, now=now + timedelta(minutes=i),
            )

        first = coordinator.list_events(DEVICE, identity.id, offset=0, limit=2)
        assert [e.category for e in first.events] == ["cat-4", "cat-3"]
        assert first.has_more is True

        last = coordinator.list_events(DEVICE, identity.id, offset=4, limit=2)
        assert [e.category for e in last.events] == ["cat-0"]
        assert last.has_more is False

    def test_ownership_required(self, coordinator):
        identity = coordinator.bootstrap(DEVICE)
        outcome = coordinator.list_events("someone-else", identity.id)
        assert outcome.status == EventStatus.DENIED
        assert outcome.events == []


class TestFinalizeReady:

    def test_lazy_and_idempotent(self, coordinator, candidate_wire, now):
        identity = coordinator.bootstrap(DEVICE)
        coordinator.submit_event(DEVICE, identity.id, "me", "sofa", candidate_wire, evaluation_id="e1", now=now)

        early = coordinator.finalize_ready(DEVICE, identity.id, now=now + timedelta(days=13))
        assert early.finalized == []
        assert early.still_pending == 1
        assert early.identity.embedding.is_zero

        ready = coordinator.finalize_ready(DEVICE, identity.id, now=now + timedelta(days=14))
        assert ready.status == EventStatus.APPLIED
        assert ready.finalized == ["e1"]
        assert ready.still_pending == 0
        assert not ready.identity.embedding.is_zero
        assert ready.identity.version == 3

        again = coordinator.finalize_ready(DEVICE, identity.id, now=now + timedelta(days=15))
        assert again.finalized == []
        assert again.identity.version == 3

    def test_ownership_required(self, coordinator):
        identity = coordinator.bootstrap(DEVICE)
        outcome = coordinator.finalize_ready("someone-else", identity.id)
        assert outcome.status == EventStatus.DENIED

    def test_conflict_puts_hold_back(self, candidate_wire, now):
        store = RacingIdentityStore(races=0)
        coordinator = ReinforcementCoordinator(identities=store, max_write_attempts=2)
        identity = coordinator.bootstrap(DEVICE)
        coordinator.submit_event(DEVICE, identity.id, "me", "sofa", candidate_wire, evaluation_id="e1", now=now)

        store.races = 10
        outcome = coordinator.finalize_ready(DEVICE, identity.id, now=now + timedelta(days=14))

        assert outcome.status == EventStatus.CONFLICT
        assert coordinator.pending.get(identity.id, "e1") is not None
