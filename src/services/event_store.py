"""
Append-only event log.

Events are never edited or deleted. Listing is newest first, one identity
at a time, paged with offset/limit.
"""

from threading import Lock
from typing import Any, Dict, List

from core.logging import LoggerMixin
from services.models import EventRecord


EVENTS_TABLE = "events"


class InMemoryEventStore(LoggerMixin):

    def __init__(self):
        self._events: Dict[str, List[EventRecord]] = {}
        self._lock = Lock()

    def append(self, event: EventRecord) -> EventRecord:
        with self._lock:
            self._events.setdefault(event.identity_id, []).append(event)
        return event

    def list(self, identity_id: str, offset: int = 0, limit: int = 50) -> List[EventRecord]:
        with self._lock:
            events = list(self._events.get(identity_id, []))
        # Stable sort keeps insertion order for equal timestamps; reverse for newest first
        events.sort(key=lambda e: e.created_at)
        events.reverse()
        return events[max(0, offset):max(0, offset) + max(0, limit)]

    def count(self, identity_id: str) -> int:
        with self._lock:
            return len(self._events.get(identity_id, []))

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {"backend": "in_memory", "events": sum(len(v) for v in self._events.values())}


class SupabaseEventStore(LoggerMixin):

    def __init__(self, client):
        self._client = client

    def append(self, event: EventRecord) -> EventRecord:
        self._client.table(EVENTS_TABLE).insert(event.to_dict()).execute()
        return event

    def list(self, identity_id: str, offset: int = 0, limit: int = 50) -> List[EventRecord]:
        if limit <= 0:
            return []
        offset = max(0, offset)
        result = (
            self._client.table(EVENTS_TABLE)
            .select("*")
            .eq("identity_id", identity_id)
            .order("created_at", desc=True)
            .order("id", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [EventRecord.from_dict(row) for row in (result.data or [])]

    def count(self, identity_id: str) -> int:
        result = (
            self._client.table(EVENTS_TABLE)
            .select("id", count="exact")
            .eq("identity_id", identity_id)
            .execute()
        )
        return result.count or 0

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "supabase", "table": EVENTS_TABLE}
