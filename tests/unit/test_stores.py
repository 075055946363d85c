"""
Tests for identity, pending and event storage backends.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from engines.embedding import StyleEmbedding
from services.event_store import InMemoryEventStore, SupabaseEventStore
from services.identity import Identity
from services.identity_store import (
    IdentityNotFound,
    InMemoryIdentityStore,
    StaleIdentityVersion,
    SupabaseIdentityStore,
)
from services.models import EventRecord, PendingReinforcement, Vote
from services.pending_store import InMemoryPendingStore, SupabasePendingStore


def _record(now, evaluation_id="eval-1", identity_id="identity-1", days=14):
    return PendingReinforcement.create(
        identity_id=identity_id,
        evaluation_id=evaluation_id,
        identity_version=1,
        candidate_embedding=StyleEmbedding.zero(),
        category="sofa",
        vote=Vote.ME,
        hold=timedelta(days=days),
        now=now,
    )


# =============================================================================
# Identity
# =============================================================================

class TestIdentityWireFormat:

    def test_bootstrap_defaults(self):
        identity = Identity.bootstrap("device-1")
        assert identity.version == 1
        assert identity.stability == 1.0
        assert identity.embedding.is_zero and identity.anti_embedding.is_zero
        assert identity.total_decisions == 0

    def test_wire_fields(self):
        data = Identity.bootstrap("device-1").to_public_dict()
        assert set(data) == {
            "id", "version", "embedding", "anti_embedding", "stability",
            "count_me", "count_not_me", "count_maybe", "updated_at",
        }
        assert len(data["embedding"]) == 64

    def test_from_dict_falls_back_and_clamps(self):
        identity = Identity.from_dict({
            "id": "x",
            "device_install_id": "d",
            "version": 0,
            "embedding": [0.5] * 12,
            "anti_embedding": None,
            "stability": 3.0,
            "count_me": -4,
        })
        assert identity.version == 1
        assert identity.embedding.is_zero
        assert identity.anti_embedding.is_zero
        assert identity.stability == 1.0
        assert identity.count_me == 0

    def test_from_dict_null_columns(self):
        identity = Identity.from_dict({
            "id": "x", "version": None, "stability": None, "count_maybe": None, "updated_at": None,
        })
        assert identity.version == 1
        assert identity.stability == 1.0
        assert identity.count_maybe == 0

    def test_from_dict_keeps_zero_stability(self):
        assert Identity.from_dict({"id": "x", "stability": 0.0}).stability == 0.0


class TestInMemoryIdentityStore:

    def test_get_or_create_is_stable_per_device(self):
        store = InMemoryIdentityStore()
        first = store.get_or_create("device-1")
        assert store.get_or_create("device-1").id == first.id
        assert store.get_or_create("device-2").id != first.id
        assert store.get_by_device("device-1") == first

    def test_compare_and_set(self):
        store = InMemoryIdentityStore()
        identity = store.get_or_create("device-1")
        updated = store.save(identity.evolve(count_me=1), expected_version=1)
        assert updated.version == 2

        with pytest.raises(StaleIdentityVersion) as exc:
            store.save(identity.evolve(count_me=5), expected_version=1)
        assert exc.value.actual_version == 2
        assert store.get(identity.id).count_me == 1

    def test_save_unknown(self):
        with pytest.raises(IdentityNotFound):
            InMemoryIdentityStore().save(Identity.bootstrap("d"), expected_version=1)


class TestSupabaseIdentityStore:

    def test_bootstrap_returns_existing_row(self, mock_supabase_client):
        row = Identity.bootstrap("device-1").to_dict()
        table = mock_supabase_client.table.return_value
        table.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = [row]

        identity = SupabaseIdentityStore(mock_supabase_client).get_or_create("device-1")

        assert identity.id == row["id"]
        table.insert.assert_not_called()

    def test_bootstrap_inserts(self, mock_supabase_client):
        table = mock_supabase_client.table.return_value
        table.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = []
        table.insert.return_value.execute.return_value.data = []

        identity = SupabaseIdentityStore(mock_supabase_client).get_or_create("device-1")

        assert identity.device_install_id == "device-1"
        assert identity.version == 1
        mock_supabase_client.table.assert_called_with("identities")
        inserted = table.insert.call_args[0][0]
        assert inserted["device_install_id"] == "device-1"

    def test_bootstrap_race_rereads_winner(self, mock_supabase_client):
        winner = Identity.bootstrap("device-1").to_dict()
        table = mock_supabase_client.table.return_value
        select = table.select.return_value.eq.return_value.limit.return_value.execute
        select.side_effect = [MagicMock(data=[]), MagicMock(data=[winner])]
        table.insert.return_value.execute.side_effect = APIError({"message": "duplicate key", "code": "23505"})

        identity = SupabaseIdentityStore(mock_supabase_client).get_or_create("device-1")

        assert identity.id == winner["id"]

    def test_save_filters_on_version(self, mock_supabase_client):
        identity = Identity.bootstrap("device-1")
        evolved = identity.evolve(count_me=1)
        table = mock_supabase_client.table.return_value
        table.update.return_value.eq.return_value.eq.return_value.execute.return_value.data = [evolved.to_dict()]

        saved = SupabaseIdentityStore(mock_supabase_client).save(evolved, expected_version=1)

        assert saved.version == 2
        table.update.return_value.eq.assert_called_with("id", identity.id)
        table.update.return_value.eq.return_value.eq.assert_called_with("version", 1)

    def test_save_stale(self, mock_supabase_client):
        identity = Identity.bootstrap("device-1")
        current = identity.evolve().evolve()
        table = mock_supabase_client.table.return_value
        table.update.return_value.eq.return_value.eq.return_value.execute.return_value.data = []
        table.select.return_value.eq.return_value.limit.return_value.execute.return_value.data = [current.to_dict()]

        with pytest.raises(StaleIdentityVersion) as exc:
            SupabaseIdentityStore(mock_supabase_client).save(identity.evolve(), expected_version=1)
        assert exc.value.actual_version == 3

    def test_ping_selects_one_row(self, mock_supabase_client):
        SupabaseIdentityStore(mock_supabase_client).ping()

        mock_supabase_client.table.assert_called_with("identities")
        mock_supabase_client.table.return_value.select.assert_called_with("id")

    def test_ping_propagates_failure(self, mock_supabase_client):
        table = mock_supabase_client.table.return_value
        table.select.return_value.limit.return_value.execute.side_effect = APIError({"message": "down"})

        with pytest.raises(APIError):
            SupabaseIdentityStore(mock_supabase_client).ping()


# =============================================================================
# Pending
# =============================================================================

class TestInMemoryPendingStore:

    def test_add_get_take(self, now):
        store = InMemoryPendingStore()
        record = store.add(_record(now))
        assert store.get("identity-1", "eval-1") == record
        assert store.take("identity-1", "eval-1") == record
        assert store.take("identity-1", "eval-1") is None

    def test_remove_missing_is_noop(self):
        assert InMemoryPendingStore().remove("identity-1", "nope") is False

    def test_readd_replaces(self, now):
        store = InMemoryPendingStore()
        store.add(_record(now))
        store.add(_record(now, days=1))
        assert len(store.for_identity("identity-1")) == 1

    def test_ready(self, now):
        store = InMemoryPendingStore()
        store.add(_record(now, "soon", days=1))
        store.add(_record(now, "later", days=14))
        store.add(_record(now, "other", identity_id="identity-2", days=0))

        assert store.ready("identity-1", now) == []
        assert [r.evaluation_id for r in store.ready("identity-1", now + timedelta(days=2))] == ["soon"]
        assert len(store.ready("identity-1", now + timedelta(days=14))) == 2
        assert [r.evaluation_id for r in store.for_identity("identity-1")] == ["soon", "later"]


class TestSupabasePendingStore:

    def test_add_upserts_on_key(self, mock_supabase_client, now):
        SupabasePendingStore(mock_supabase_client).add(_record(now))
        table = mock_supabase_client.table.return_value
        kwargs = table.upsert.call_args.kwargs
        assert kwargs["on_conflict"] == "identity_id,evaluation_id"
        assert table.upsert.call_args[0][0]["unlock_at"] == (now + timedelta(days=14)).isoformat()

    def test_take_returns_deleted_row(self, mock_supabase_client, now):
        record = _record(now)
        table = mock_supabase_client.table.return_value
        table.delete.return_value.eq.return_value.eq.return_value.execute.return_value.data = [record.to_dict()]

        taken = SupabasePendingStore(mock_supabase_client).take("identity-1", "eval-1")

        assert taken.evaluation_id == "eval-1"
        assert taken.unlock_at == record.unlock_at

    def test_take_missing(self, mock_supabase_client):
        table = mock_supabase_client.table.return_value
        table.delete.return_value.eq.return_value.eq.return_value.execute.return_value.data = []
        assert SupabasePendingStore(mock_supabase_client).remove("identity-1", "eval-1") is False


# =============================================================================
# Events
# =============================================================================

class TestEventStores:

    def test_in_memory_newest_first(self, now):
        store = InMemoryEventStore()
        for i in range(3):
            store.append(EventRecord(
                identity_id="identity-1", vote=Vote.ME, category=f"c{i}",
                object_embedding=StyleEmbedding.zero(), created_at=now + timedelta(seconds=i),
            ))
        store.append(EventRecord(
            identity_id="identity-2", vote=Vote.ME, category="other",
            object_embedding=StyleEmbedding.zero(), created_at=now,
        ))

        assert [e.category for e in store.list("identity-1")] == ["c2", "c1", "c0"]
        assert [e.category for e in store.list("identity-1", offset=1, limit=1)] == ["c1"]
        assert store.count("identity-1") == 3
        assert store.get_stats()["events"] == 4

    def test_event_record_decodes_bad_embedding(self, now):
        data = EventRecord(
            identity_id="identity-1", vote=Vote.NOT_ME, category="lamp",
            object_embedding=StyleEmbedding.zero(), created_at=now,
        ).to_dict()
        data["object_embedding"] = [1.0, 2.0]
        assert EventRecord.from_dict(data).object_embedding.is_zero

    def test_supabase_list_uses_range(self, mock_supabase_client, now):
        row = EventRecord(
            identity_id="identity-1", vote=Vote.ME, category="lamp",
            object_embedding=StyleEmbedding.zero(), created_at=now,
        ).to_dict()
        by_time = mock_supabase_client.table.return_value.select.return_value.eq.return_value.order
        by_id = by_time.return_value.order
        by_id.return_value.range.return_value.execute.return_value.data = [row]

        events = SupabaseEventStore(mock_supabase_client).list("identity-1", offset=10, limit=5)

        assert [e.id for e in events] == [row["id"]]
        # Same-timestamp rows keep one order across pages
        by_time.assert_called_with("created_at", desc=True)
        by_id.assert_called_with("id", desc=True)
        by_id.return_value.range.assert_called_with(10, 14)
