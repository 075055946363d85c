"""
Records for the reinforcement pipeline.

- Vote / ReturnReason enums
- PendingReinforcement: a held vote waiting out its dwell window
- EventRecord: one row of the append-only event log
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from engines.embedding import StyleEmbedding
from services.identity import parse_timestamp


# =============================================================================
# Enums
# =============================================================================

class Vote(str, Enum):
    ME = "me"
    NOT_ME = "notMe"
    MAYBE = "maybe"
    RETURNED = "returned"


class ReturnReason(str, Enum):
    COLOR_MISMATCH = "colorMismatch"
    MATERIAL_MISMATCH = "materialMismatch"
    QUALITY_DISAPPOINTMENT = "qualityDisappointment"
    SPACE_CONFLICT = "spaceConflict"
    TOO_LARGE = "tooLarge"
    TOO_SMALL = "tooSmall"
    PRICE_DISCOMFORT = "priceDiscomfort"
    OTHER = "other"

    @property
    def affects_style(self) -> bool:
        """Size, price and 'other' returns say nothing about taste."""
        return self in STYLE_RETURN_REASONS


STYLE_RETURN_REASONS = frozenset({
    ReturnReason.COLOR_MISMATCH,
    ReturnReason.MATERIAL_MISMATCH,
    ReturnReason.QUALITY_DISAPPOINTMENT,
    ReturnReason.SPACE_CONFLICT,
})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Pending reinforcement
# =============================================================================

DEFAULT_HOLD = timedelta(days=14)


@dataclass(frozen=True)
class PendingReinforcement:
    """
    A vote that is known but not yet applied.

    Keyed by ``(identity_id, evaluation_id)``. Ready once ``now >= unlock_at``;
    deleted when finalized.
    """
    identity_id: str
    evaluation_id: str
    identity_version: int
    candidate_embedding: StyleEmbedding
    category: str
    vote: Vote
    created_at: datetime
    unlock_at: datetime
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    __hash__ = None

    @classmethod
    def create(
        cls,
        identity_id: str,
        evaluation_id: str,
        identity_version: int,
        candidate_embedding: StyleEmbedding,
        category: str,
        vote: Vote,
        hold: timedelta = DEFAULT_HOLD,
        now: Optional[datetime] = None,
    ) -> "PendingReinforcement":
        now = now or _utcnow()
        return cls(
            identity_id=identity_id,
            evaluation_id=evaluation_id,
            identity_version=identity_version,
            candidate_embedding=candidate_embedding,
            category=category,
            vote=Vote(vote),
            created_at=now,
            unlock_at=now + hold,
        )

    @property
    def key(self):
        return (self.identity_id, self.evaluation_id)

    def is_ready(self, now: Optional[datetime] = None) -> bool:
        return (now or _utcnow()) >= self.unlock_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "identity_id": self.identity_id,
            "evaluation_id": self.evaluation_id,
            "identity_version": self.identity_version,
            "object_embedding": self.candidate_embedding.to_wire(),
            "category": self.category,
            "vote": self.vote.value,
            "created_at": self.created_at.isoformat(),
            "unlock_at": self.unlock_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PendingReinforcement":
        created_at = parse_timestamp(data.get("created_at")) or _utcnow()
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            identity_id=str(data["identity_id"]),
            evaluation_id=str(data.get("evaluation_id") or data.get("id")),
            identity_version=int(data.get("identity_version") or 1),
            candidate_embedding=StyleEmbedding.from_wire(data.get("object_embedding")),
            category=str(data.get("category") or ""),
            vote=Vote(data["vote"]),
            created_at=created_at,
            unlock_at=parse_timestamp(data.get("unlock_at")) or created_at + DEFAULT_HOLD,
        )


# =============================================================================
# Event log
# =============================================================================

@dataclass(frozen=True)
class EventRecord:
    identity_id: str
    vote: Vote
    category: str
    object_embedding: StyleEmbedding
    return_reason: Optional[ReturnReason] = None
    context: Optional[Dict[str, Any]] = None
    scores: Optional[Dict[str, Any]] = None
    pending: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)

    __hash__ = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "identity_id": self.identity_id,
            "vote": self.vote.value,
            "return_reason": self.return_reason.value if self.return_reason else None,
            "category": self.category,
            "object_embedding": self.object_embedding.to_wire(),
            "context": self.context,
            "scores": self.scores,
            "pending": self.pending,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EventRecord":
        reason = data.get("return_reason")
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            identity_id=str(data["identity_id"]),
            vote=Vote(data["vote"]),
            category=str(data.get("category") or ""),
            object_embedding=StyleEmbedding.from_wire(data.get("object_embedding")),
            return_reason=ReturnReason(reason) if reason else None,
            context=data.get("context"),
            scores=data.get("scores"),
            pending=bool(data.get("pending", False)),
            created_at=parse_timestamp(data.get("created_at")) or _utcnow(),
        )
