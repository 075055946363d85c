"""
Reinforced taste identity.

One identity per device install. Every accepted change produces a new
Identity value with ``version + 1``; instances are never edited in place.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from core.utils import clamp01
from engines.embedding import StyleEmbedding


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string (with or without ``Z``) or datetime -> aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Identity:
    """
    The reinforced persona.

    ``embedding`` is what the user is drawn to; ``anti_embedding``
    accumulates what they reject. ``stability`` is exponentially smoothed
    and always in [0, 1].
    """
    id: str
    device_install_id: str
    version: int = 1
    embedding: StyleEmbedding = field(default_factory=StyleEmbedding.zero)
    anti_embedding: StyleEmbedding = field(default_factory=StyleEmbedding.zero)
    stability: float = 1.0
    count_me: int = 0
    count_not_me: int = 0
    count_maybe: int = 0
    updated_at: datetime = field(default_factory=_utcnow)

    __hash__ = None

    @classmethod
    def bootstrap(cls, device_install_id: str, identity_id: Optional[str] = None) -> "Identity":
        """Fresh identity: zero embeddings, version 1, stability 1.0, no counts."""
        return cls(
            id=identity_id or str(uuid.uuid4()),
            device_install_id=device_install_id,
        )

    @property
    def total_decisions(self) -> int:
        return self.count_me + self.count_not_me + self.count_maybe

    def evolve(self, **changes: Any) -> "Identity":
        """Copy with ``changes`` applied, version bumped by one."""
        changes.setdefault("updated_at", _utcnow())
        return replace(self, version=self.version + 1, **changes)

    # -------------------------------------------------------------------------
    # Wire format
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "device_install_id": self.device_install_id,
            "version": self.version,
            "embedding": self.embedding.to_wire(),
            "anti_embedding": self.anti_embedding.to_wire(),
            "stability": self.stability,
            "count_me": self.count_me,
            "count_not_me": self.count_not_me,
            "count_maybe": self.count_maybe,
            "updated_at": self.updated_at.isoformat(),
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Wire shape returned to clients (no device id)."""
        data = self.to_dict()
        data.pop("device_install_id")
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Identity":
        """
        Decode a stored row.

        Bad embeddings fall back to zero vectors; counters and version are
        floored at their minimums, a missing or null stability reads as 1.0
        and any other value is clamped.
        """
        stability = data.get("stability")
        return cls(
            id=str(data["id"]),
            device_install_id=str(data.get("device_install_id") or ""),
            version=max(1, int(data.get("version") or 1)),
            embedding=StyleEmbedding.from_wire(data.get("embedding")),
            anti_embedding=StyleEmbedding.from_wire(data.get("anti_embedding")),
            stability=clamp01(float(stability if stability is not None else 1.0)),
            count_me=max(0, int(data.get("count_me") or 0)),
            count_not_me=max(0, int(data.get("count_not_me") or 0)),
            count_maybe=max(0, int(data.get("count_maybe") or 0)),
            updated_at=parse_timestamp(data.get("updated_at")) or _utcnow(),
        )
