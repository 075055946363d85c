"""
Identity storage backends.

Saves are a compare-and-set on ``version``: a writer that loaded version N
may only replace the row while it is still at version N. Anyone else gets
StaleIdentityVersion and must reload.

Backends:
- InMemoryIdentityStore: thread-safe dict, used for development and tests
- SupabaseIdentityStore: ``identities`` table
"""

from threading import Lock
from typing import Any, Dict, Optional

from postgrest.exceptions import APIError

from core.logging import LoggerMixin
from services.identity import Identity


IDENTITIES_TABLE = "identities"


class IdentityNotFound(Exception):
    """No identity with that id (or not owned by the caller)."""

    def __init__(self, identity_id: str):
        self.identity_id = identity_id
        super().__init__(f"Identity not found: {identity_id}")


class StaleIdentityVersion(Exception):
    """The stored identity moved on since the caller loaded it."""

    def __init__(self, identity_id: str, expected_version: int, actual_version: Optional[int] = None):
        self.identity_id = identity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Identity {identity_id} is no longer at version {expected_version}"
            + (f" (now {actual_version})" if actual_version is not None else "")
        )


# =============================================================================
# In-Memory Backend (Default)
# =============================================================================

class InMemoryIdentityStore(LoggerMixin):
    """Identities keyed by id, with a device index. Lost on restart."""

    def __init__(self):
        self._identities: Dict[str, Identity] = {}
        self._by_device: Dict[str, str] = {}
        self._lock = Lock()

    def get(self, identity_id: str) -> Optional[Identity]:
        with self._lock:
            return self._identities.get(identity_id)

    def get_by_device(self, device_install_id: str) -> Optional[Identity]:
        with self._lock:
            identity_id = self._by_device.get(device_install_id)
            return self._identities.get(identity_id) if identity_id else None

    def get_or_create(self, device_install_id: str) -> Identity:
        """Existing identity for this device, or a freshly bootstrapped one."""
        with self._lock:
            identity_id = self._by_device.get(device_install_id)
            if identity_id:
                return self._identities[identity_id]
            identity = Identity.bootstrap(device_install_id)
            self._identities[identity.id] = identity
            self._by_device[device_install_id] = identity.id
        self.logger.info("Identity bootstrapped", identity_id=identity.id)
        return identity

    def save(self, identity: Identity, expected_version: int) -> Identity:
        with self._lock:
            current = self._identities.get(identity.id)
            if current is None:
                raise IdentityNotFound(identity.id)
            if current.version != expected_version:
                raise StaleIdentityVersion(identity.id, expected_version, current.version)
            self._identities[identity.id] = identity
            return identity

    def ping(self) -> None:
        pass

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "in_memory", "identities": len(self._identities)}


# =============================================================================
# Supabase Backend
# =============================================================================

class SupabaseIdentityStore(LoggerMixin):
    """
    ``identities`` rows. ``device_install_id`` is unique in the table, so a
    racing bootstrap insert fails and the loser re-reads the winner's row.
    """

    def __init__(self, client):
        self._client = client

    def _first(self, result) -> Optional[Identity]:
        rows = result.data or []
        return Identity.from_dict(rows[0]) if rows else None

    def get(self, identity_id: str) -> Optional[Identity]:
        result = (
            self._client.table(IDENTITIES_TABLE)
            .select("*")
            .eq("id", identity_id)
            .limit(1)
            .execute()
        )
        return self._first(result)

    def get_by_device(self, device_install_id: str) -> Optional[Identity]:
        result = (
            self._client.table(IDENTITIES_TABLE)
            .select("*")
            .eq("device_install_id", device_install_id)
            .limit(1)
            .execute()
        )
        return self._first(result)

    def get_or_create(self, device_install_id: str) -> Identity:
        existing = self.get_by_device(device_install_id)
        if existing is not None:
            return existing

        identity = Identity.bootstrap(device_install_id)
        try:
            result = self._client.table(IDENTITIES_TABLE).insert(identity.to_dict()).execute()
        except APIError as e:
            self.logger.warning("Bootstrap insert lost a race, re-reading", error=str(e))
            winner = self.get_by_device(device_install_id)
            if winner is None:
                raise
            return winner

        self.logger.info("Identity bootstrapped", identity_id=identity.id)
        return self._first(result) or identity

    def save(self, identity: Identity, expected_version: int) -> Identity:
        payload = identity.to_dict()
        payload.pop("id")
        result = (
            self._client.table(IDENTITIES_TABLE)
            .update(payload)
            .eq("id", identity.id)
            .eq("version", expected_version)
            .execute()
        )
        saved = self._first(result)
        if saved is not None:
            return saved

        current = self.get(identity.id)
        if current is None:
            raise IdentityNotFound(identity.id)
        raise StaleIdentityVersion(identity.id, expected_version, current.version)

    def ping(self) -> None:
        """Cheapest round trip that proves the table is reachable. Raises on failure."""
        self._client.table(IDENTITIES_TABLE).select("id").limit(1).execute()

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": "supabase", "table": IDENTITIES_TABLE}
