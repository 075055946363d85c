"""
Pending reinforcement storage.

Records are keyed by ``(identity_id, evaluation_id)``. ``take`` removes and
returns a record atomically, so when two finalizers race only one of them
gets the record; the other sees None and does nothing.
"""

from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple

from core.logging import LoggerMixin
from services.models import PendingReinforcement


PENDING_TABLE = "pending_reinforcements"

Key = Tuple[str, str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryPendingStore(LoggerMixin):

    def __init__(self):
        self._records: Dict[Key, PendingReinforcement] = {}
        self._lock = Lock()

    def add(self, record: PendingReinforcement) -> PendingReinforcement:
        """Store a hold. Re-adding the same key replaces the earlier record."""
        with self._lock:
            self._records[record.key] = record
        self.logger.info(
            "Pending hold stored",
            identity_id=record.identity_id,
            evaluation_id=record.evaluation_id,
            category=record.category,
            unlock_at=record.unlock_at.isoformat(),
        )
        return record

    def get(self, identity_id: str, evaluation_id: str) -> Optional[PendingReinforcement]:
        with self._lock:
            return self._records.get((identity_id, evaluation_id))

    def take(self, identity_id: str, evaluation_id: str) -> Optional[PendingReinforcement]:
        with self._lock:
            return self._records.pop((identity_id, evaluation_id), None)

    def remove(self, identity_id: str, evaluation_id: str) -> bool:
        """False (not an error) when the record is already gone."""
        return self.take(identity_id, evaluation_id) is not None

    def for_identity(self, identity_id: str) -> List[PendingReinforcement]:
        with self._lock:
            records = [r for r in self._records.values() if r.identity_id == identity_id]
        return sorted(records, key=lambda r: (r.unlock_at, r.evaluation_id))

    def ready(self, identity_id: str, now: Optional[datetime] = None) -> List[PendingReinforcement]:
        now = now or _utcnow()
        return [r for r in self.for_identity(identity_id) if r.is_ready(now)]

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {"backend": "in_memory", "pending": len(self._records)}


class SupabasePendingStore(LoggerMixin):
    """``pending_reinforcements`` rows, unique on (identity_id, evaluation_id)."""

    def __init__(self, client):
        self._client = client

    def add(self, record: PendingReinforcement) -> PendingReinforcement:
        self._client.table(PENDING_TABLE).upsert(
            record.to_dict(), on_conflict="identity_id,evaluation_id"
        ).execute()
        self.logger.info(
            "Pending hold stored",
            identity_id=record.identity_id,
            evaluation_id=record.evaluation_id,
            category=record.category,
            unlock_at=record.unlock_at.isoformat(),
        )
        return record

    def get(self, identity_id: str, evaluation_id: str) -> Optional[PendingReinforcement]:
        result = (
            self._client.table(PENDING_TABLE)
            .select("*")
            .eq("identity_id", identity_id)
            .eq("evaluation_id", evaluation_id)
            .limit(1)
            .execute()
        )
        rows = result.data or []
        return PendingReinforcement.from_dict(rows[0]) if rows else None

    def take(self, identity_id: str, evaluation_id: str) -> Optional[PendingReinforcement]:
        # DELETE ... RETURNING: only the caller that actually deleted the row gets it back
        result = (
            self._client.table(PENDING_TABLE)
            .delete()
            .eq("identity_id", identity_id)
            .eq("evaluation_id", evaluation_id)
            .execute()
        )
        rows = result.data or []
        return PendingReinforcement.from_dict(rows[0]) if rows else None

    def remove(self, identity_id: str, evaluation_id: str) -> bool:
        return self.take(identity_id, evaluation_id) is not None

    def for_identity(self, identity_id: str) -> List[PendingReinforcement]:
        result = (
            self._client.table(PENDING_TABLE)
            .select("*")
            .eq("identity_id", identity_id)
            .order("unlock_at")
            .execute()
        )
        return [PendingReinforcement.from_dict(row) for row in (result.data or [])]

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "supabase", "table": PENDING_TABLE}

    def ready(self, identity_id: str, now: Optional[datetime] = None) -> List[PendingReinforcement]:
        now = now or _utcnow()
        result = (
            self._client.table(PENDING_TABLE)
            .select("*")
            .eq("identity_id", identity_id)
            .lte("unlock_at", now.isoformat())
            .order("unlock_at")
            .execute()
        )
        return [PendingReinforcement.from_dict(row) for row in (result.data or [])]
