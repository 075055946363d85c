"""
Reinforcement -- turning votes into identity updates.

State machine per vote:

    Unvoted --vote--> Applied                      (everything else)
    Unvoted --vote--> Pending --finalize--> Applied (anchor category, me/notMe)

Immediate votes blend the candidate embedding into the identity:

    me        embedding      toward candidate, alpha = 0.18
    maybe     embedding      toward candidate, alpha = 0.05
    notMe     anti-embedding toward candidate, gamma = 0.14
    returned  anti-embedding toward candidate, gamma = 0.14, style reasons only

Anchor categories (sofa, sectional) hold me/notMe votes for 14 days. The
identity only gets a version and counter bump at vote time; when the hold
is finalized the blend applies at ``rate * 1.8``.

Candidate dims with |v| <= 0.1 never move the identity. Every accepted
transition bumps ``version`` by exactly one and re-smooths ``stability``.

ReinforcementService is pure. ReinforcementCoordinator adds ownership
checks, persistence, the event log and optimistic-concurrency retries.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from core.logging import LoggerMixin, identity_context
from core.utils import clamp01
from engines.embedding import EMBEDDING_DIM, StyleEmbedding
from services.event_store import InMemoryEventStore
from services.identity import Identity
from services.identity_store import IdentityNotFound, InMemoryIdentityStore, StaleIdentityVersion
from services.models import (
    EventRecord,
    PendingReinforcement,
    ReturnReason,
    Vote,
)
from services.pending_store import InMemoryPendingStore


ANCHOR_CATEGORIES = frozenset({"sofa", "sectional"})


def normalize_category(category: Optional[str]) -> str:
    return str(category or "").strip().lower()


def is_anchor(category: Optional[str]) -> bool:
    return normalize_category(category) in ANCHOR_CATEGORIES


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Config
# =============================================================================

@dataclass(frozen=True)
class ReinforcementConfig:
    alpha: float = 0.18             # me
    alpha_maybe: float = 0.05       # maybe
    gamma: float = 0.14             # notMe / style-affecting return
    anchor_multiplier: float = 1.8
    hold_days: int = 14

    # stability = prior_weight * prior + (1 - prior_weight) * clamp(1 - delta_scale * mean|delta|)
    stability_prior_weight: float = 0.9
    stability_delta_scale: float = 10.0

    @property
    def hold(self) -> timedelta:
        return timedelta(days=self.hold_days)


DEFAULT_REINFORCEMENT_CONFIG = ReinforcementConfig()


def updated_stability(
    before: StyleEmbedding,
    after: StyleEmbedding,
    prior: float,
    config: ReinforcementConfig = DEFAULT_REINFORCEMENT_CONFIG,
) -> float:
    raw = clamp01(1.0 - before.mean_abs_delta(after) * config.stability_delta_scale)
    w = config.stability_prior_weight
    return clamp01(w * prior + (1.0 - w) * raw)


# =============================================================================
# Pure service
# =============================================================================

@dataclass(frozen=True)
class VoteResult:
    identity: Identity
    pending: Optional[PendingReinforcement] = None

    @property
    def is_pending(self) -> bool:
        return self.pending is not None


class ReinforcementService:
    """Pure identity transitions. No I/O, no clock unless ``now`` is omitted."""

    def __init__(self, config: ReinforcementConfig = DEFAULT_REINFORCEMENT_CONFIG):
        self.config = config

    def apply_vote(
        self,
        identity: Identity,
        vote: Vote,
        candidate: StyleEmbedding,
        category: str,
        return_reason: Optional[ReturnReason] = None,
        evaluation_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> VoteResult:
        vote = Vote(vote)
        cfg = self.config

        if is_anchor(category) and vote in (Vote.ME, Vote.NOT_ME):
            now = now or _utcnow()
            counter = "count_me" if vote == Vote.ME else "count_not_me"
            held = identity.evolve(
                **{counter: getattr(identity, counter) + 1},
                updated_at=now,
            )
            record = PendingReinforcement.create(
                identity_id=identity.id,
                evaluation_id=evaluation_id or str(uuid.uuid4()),
                identity_version=identity.version,
                candidate_embedding=candidate,
                category=normalize_category(category),
                vote=vote,
                hold=cfg.hold,
                now=now,
            )
            return VoteResult(identity=held, pending=record)

        mask = candidate.low_signal_mask()
        embedding = identity.embedding
        anti = identity.anti_embedding
        counts = {}

        if vote == Vote.ME:
            embedding = embedding.blend(candidate, cfg.alpha, mask)
            counts["count_me"] = identity.count_me + 1
        elif vote == Vote.MAYBE:
            embedding = embedding.blend(candidate, cfg.alpha_maybe, mask)
            counts["count_maybe"] = identity.count_maybe + 1
        elif vote == Vote.NOT_ME:
            anti = anti.blend(candidate, cfg.gamma, mask)
            counts["count_not_me"] = identity.count_not_me + 1
        else:
            if return_reason is not None and ReturnReason(return_reason).affects_style:
                anti = anti.blend(candidate, cfg.gamma, mask)
            counts["count_not_me"] = identity.count_not_me + 1

        updated = identity.evolve(
            embedding=embedding,
            anti_embedding=anti,
            stability=updated_stability(identity.embedding, embedding, identity.stability, cfg),
            updated_at=now or _utcnow(),
            **counts,
        )
        return VoteResult(identity=updated)

    def finalize_pending(
        self,
        record: PendingReinforcement,
        identity: Identity,
        now: Optional[datetime] = None,
    ) -> Identity:
        """
        Apply a held vote at the anchor-boosted rate. Counters were already
        bumped when the vote was held, so only the embeddings move.
        """
        cfg = self.config
        candidate = record.candidate_embedding
        mask = candidate.low_signal_mask()
        embedding = identity.embedding
        anti = identity.anti_embedding

        if record.vote == Vote.ME:
            embedding = embedding.blend(candidate, cfg.alpha * cfg.anchor_multiplier, mask)
        else:
            anti = anti.blend(candidate, cfg.gamma * cfg.anchor_multiplier, mask)

        return identity.evolve(
            embedding=embedding,
            anti_embedding=anti,
            stability=updated_stability(identity.embedding, embedding, identity.stability, cfg),
            updated_at=now or _utcnow(),
        )


# =============================================================================
# Outcomes
# =============================================================================

class EventStatus(str, Enum):
    APPLIED = "applied"
    PENDING = "pending"
    REJECTED = "rejected"
    DENIED = "denied"
    CONFLICT = "conflict"


HTTP_STATUS: Dict[EventStatus, int] = {
    EventStatus.APPLIED: 200,
    EventStatus.PENDING: 200,
    EventStatus.REJECTED: 400,
    EventStatus.DENIED: 403,
    EventStatus.CONFLICT: 409,
}


@dataclass(frozen=True)
class EventOutcome:
    status: EventStatus
    identity: Optional[Identity] = None
    message: str = ""
    event_id: Optional[str] = None
    pending_record: Optional[PendingReinforcement] = None

    @property
    def pending(self) -> bool:
        return self.status == EventStatus.PENDING

    @property
    def ok(self) -> bool:
        return self.status in (EventStatus.APPLIED, EventStatus.PENDING)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.status]

    def to_dict(self) -> Dict[str, Any]:
        if not self.ok:
            return {"status": self.status.value, "error": self.message}
        data = {
            "status": self.status.value,
            "identity": self.identity.to_public_dict() if self.identity else None,
            "pending": self.pending,
            "event_id": self.event_id,
        }
        if self.pending_record is not None:
            data["unlock_at"] = self.pending_record.unlock_at.isoformat()
            data["evaluation_id"] = self.pending_record.evaluation_id
        return data


@dataclass(frozen=True)
class EventListOutcome:
    status: EventStatus
    events: List[EventRecord] = field(default_factory=list)
    offset: int = 0
    limit: int = 0
    has_more: bool = False
    message: str = ""

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.status]


@dataclass(frozen=True)
class FinalizeOutcome:
    status: EventStatus
    identity: Optional[Identity] = None
    finalized: List[str] = field(default_factory=list)
    still_pending: int = 0
    message: str = ""

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.status]


# =============================================================================
# Coordinator
# =============================================================================

class ReinforcementCoordinator(LoggerMixin):
    """
    Request-level orchestration around ReinforcementService.

    Writes go through the identity store's compare-and-set. On a stale
    version the coordinator reloads and recomputes, up to
    ``max_write_attempts`` times, then reports a conflict. Nothing here
    raises for a bad request; every failure is a structured outcome.
    """

    def __init__(
        self,
        identities=None,
        pending=None,
        events=None,
        service: Optional[ReinforcementService] = None,
        max_write_attempts: int = 3,
    ):
        self.identities = identities if identities is not None else InMemoryIdentityStore()
        self.pending = pending if pending is not None else InMemoryPendingStore()
        self.events = events if events is not None else InMemoryEventStore()
        self.service = service or ReinforcementService()
        self.max_write_attempts = max(1, max_write_attempts)

    # -------------------------------------------------------------------------
    # Bootstrap / ownership
    # -------------------------------------------------------------------------

    def bootstrap(self, device_install_id: str) -> Identity:
        return self.identities.get_or_create(device_install_id)

    def owned(self, device_install_id: str, identity_id: str) -> Optional[Identity]:
        identity = self.identities.get(identity_id)
        if identity is None or identity.device_install_id != device_install_id:
            self.logger.warning("Identity ownership check failed", identity_id=identity_id)
            return None
        return identity

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def submit_event(
        self,
        device_install_id: str,
        identity_id: str,
        vote: Any,
        category: str,
        object_embedding: Any,
        return_reason: Any = None,
        context: Optional[Dict[str, Any]] = None,
        scores: Optional[Dict[str, Any]] = None,
        evaluation_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> EventOutcome:
        if not device_install_id or not identity_id or not vote or not category or object_embedding is None:
            self.logger.warning("Event rejected", reason="missing_fields")
            return EventOutcome(EventStatus.REJECTED, message="Missing required fields")

        try:
            vote = Vote(vote)
        except ValueError:
            self.logger.warning("Event rejected", reason="unknown_vote", vote=str(vote))
            return EventOutcome(EventStatus.REJECTED, message=f"Unknown vote: {vote}")

        reason = None
        if return_reason:
            try:
                reason = ReturnReason(return_reason)
            except ValueError:
                self.logger.warning("Event rejected", reason="unknown_return_reason")
                return EventOutcome(EventStatus.REJECTED, message=f"Unknown return reason: {return_reason}")

        candidate = StyleEmbedding.from_wire(object_embedding, EMBEDDING_DIM)
        category = normalize_category(category)

        with identity_context(identity_id):
            identity = self.owned(device_install_id, identity_id)
            if identity is None:
                return EventOutcome(EventStatus.DENIED, message="Identity not found or access denied")

            # A replayed evaluation must not count the held vote twice
            existing = self.pending.get(identity_id, evaluation_id) if evaluation_id else None
            if existing is not None:
                self.logger.info("Pending hold already exists", evaluation_id=evaluation_id)
                return EventOutcome(EventStatus.PENDING, identity=identity, pending_record=existing)

            for attempt in range(1, self.max_write_attempts + 1):
                result = self.service.apply_vote(
                    identity, vote, candidate, category,
                    return_reason=reason, evaluation_id=evaluation_id, now=now,
                )
                try:
                    saved = self.identities.save(result.identity, expected_version=identity.version)
                    break
                except IdentityNotFound:
                    return EventOutcome(EventStatus.DENIED, message="Identity not found or access denied")
                except StaleIdentityVersion as e:
                    self.logger.info(
                        "Stale identity version, retrying",
                        attempt=attempt,
                        expected=e.expected_version,
                        actual=e.actual_version,
                    )
                    identity = self.owned(device_install_id, identity_id)
                    if identity is None:
                        return EventOutcome(EventStatus.DENIED, message="Identity not found or access denied")
            else:
                self.logger.warning("Event write gave up after retries", attempts=self.max_write_attempts)
                return EventOutcome(EventStatus.CONFLICT, message="Identity changed concurrently; retry")

            event = self.events.append(EventRecord(
                identity_id=identity_id,
                vote=vote,
                category=category,
                object_embedding=candidate,
                return_reason=reason,
                context=context,
                scores=scores,
                pending=result.is_pending,
                created_at=now or _utcnow(),
            ))

            if result.is_pending:
                self.pending.add(result.pending)
                return EventOutcome(
                    EventStatus.PENDING,
                    identity=saved,
                    event_id=event.id,
                    pending_record=result.pending,
                )

            self.logger.info("Vote applied", vote=vote.value, category=category, version=saved.version)
            return EventOutcome(EventStatus.APPLIED, identity=saved, event_id=event.id)

    def list_events(
        self,
        device_install_id: str,
        identity_id: str,
        offset: int = 0,
        limit: int = 50,
    ) -> EventListOutcome:
        if self.owned(device_install_id, identity_id) is None:
            return EventListOutcome(EventStatus.DENIED, message="Identity not found or access denied")

        offset = max(0, offset)
        limit = max(0, limit)
        # One extra row tells us whether another page exists
        rows = self.events.list(identity_id, offset=offset, limit=limit + 1)
        return EventListOutcome(
            EventStatus.APPLIED,
            events=rows[:limit],
            offset=offset,
            limit=limit,
            has_more=len(rows) > limit,
        )

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def finalize_ready(
        self,
        device_install_id: str,
        identity_id: str,
        now: Optional[datetime] = None,
    ) -> FinalizeOutcome:
        """
        Apply every hold whose dwell window has passed.

        Idempotent: a record someone else already finalized is skipped, and
        calling this again right away finalizes nothing.
        """
        now = now or _utcnow()
        identity = self.owned(device_install_id, identity_id)
        if identity is None:
            return FinalizeOutcome(EventStatus.DENIED, message="Identity not found or access denied")

        finalized: List[str] = []
        with identity_context(identity_id):
            for ready in self.pending.ready(identity_id, now):
                record = self.pending.take(identity_id, ready.evaluation_id)
                if record is None:
                    continue

                for attempt in range(1, self.max_write_attempts + 1):
                    updated = self.service.finalize_pending(record, identity, now=now)
                    try:
                        identity = self.identities.save(updated, expected_version=identity.version)
                        break
                    except IdentityNotFound:
                        self.pending.add(record)
                        return FinalizeOutcome(EventStatus.DENIED, message="Identity disappeared")
                    except StaleIdentityVersion:
                        self.logger.info("Stale identity version during finalize, retrying", attempt=attempt)
                        identity = self.identities.get(identity_id)
                        if identity is None:
                            self.pending.add(record)
                            return FinalizeOutcome(EventStatus.DENIED, message="Identity disappeared")
                else:
                    # Put the hold back so a later call can finish it
                    self.pending.add(record)
                    return FinalizeOutcome(
                        EventStatus.CONFLICT,
                        identity=identity,
                        finalized=finalized,
                        message="Identity changed concurrently; retry",
                    )

                finalized.append(record.evaluation_id)
                self.logger.info(
                    "Pending hold finalized",
                    evaluation_id=record.evaluation_id,
                    vote=record.vote.value,
                    version=identity.version,
                )

        return FinalizeOutcome(
            EventStatus.APPLIED,
            identity=identity,
            finalized=finalized,
            still_pending=len(self.pending.for_identity(identity_id)),
        )
