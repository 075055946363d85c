"""
Service singletons for the HTTP layer.

The storage backend is picked once from settings:

    memory    in-process stores (lost on restart)
    supabase  identities / events / pending_reinforcements tables
    auto      supabase when credentials are configured and the client
              can be built, otherwise memory
"""

from typing import Optional

from config.database import SupabaseClientError, get_supabase_client, reset_supabase_client
from config.settings import Settings, get_settings
from core.logging import get_logger
from services.advisory_signals import AdvisorySignalStore
from services.event_store import InMemoryEventStore, SupabaseEventStore
from services.identity_store import InMemoryIdentityStore, SupabaseIdentityStore
from services.pending_store import InMemoryPendingStore, SupabasePendingStore
from services.reinforcement import (
    ReinforcementConfig,
    ReinforcementCoordinator,
    ReinforcementService,
)
from services.tolerance import ToleranceStore


logger = get_logger(__name__)


def build_coordinator(settings: Optional[Settings] = None) -> ReinforcementCoordinator:
    settings = settings or get_settings()
    service = ReinforcementService(ReinforcementConfig(hold_days=settings.anchor_hold_days))

    client = None
    if settings.use_supabase:
        try:
            client = get_supabase_client()
        except SupabaseClientError as e:
            if settings.storage_backend == "supabase":
                raise
            logger.warning("Supabase unavailable, using in-memory stores", error=str(e))

    if client is not None:
        logger.info("Using Supabase identity stores")
        return ReinforcementCoordinator(
            identities=SupabaseIdentityStore(client),
            pending=SupabasePendingStore(client),
            events=SupabaseEventStore(client),
            service=service,
            max_write_attempts=settings.max_write_attempts,
        )

    logger.info("Using in-memory identity stores")
    return ReinforcementCoordinator(
        identities=InMemoryIdentityStore(),
        pending=InMemoryPendingStore(),
        events=InMemoryEventStore(),
        service=service,
        max_write_attempts=settings.max_write_attempts,
    )


_coordinator: Optional[ReinforcementCoordinator] = None
_signal_store: Optional[AdvisorySignalStore] = None
_tolerance_store: Optional[ToleranceStore] = None


def get_coordinator() -> ReinforcementCoordinator:
    """Get the reinforcement coordinator singleton."""
    global _coordinator
    if _coordinator is None:
        _coordinator = build_coordinator()
    return _coordinator


def get_signal_store() -> AdvisorySignalStore:
    """Get the advisory signal log singleton."""
    global _signal_store
    if _signal_store is None:
        _signal_store = AdvisorySignalStore()
    return _signal_store


def get_tolerance_store() -> ToleranceStore:
    """Get the advisory tolerance singleton."""
    global _tolerance_store
    if _tolerance_store is None:
        _tolerance_store = ToleranceStore()
    return _tolerance_store


def reset_services() -> None:
    """Drop all singletons. Used by tests and on shutdown."""
    global _coordinator, _signal_store, _tolerance_store
    _coordinator = None
    _signal_store = None
    _tolerance_store = None
    reset_supabase_client()
