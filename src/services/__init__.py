"""
Services module for identity state.

Identity storage, vote reinforcement with anchor holds, the event log,
advisory signals and the self-tuning advisory tolerance.
"""

from services.advisory_signals import (
    AdvisorySignal,
    AdvisorySignalStore,
    SignalAction,
    WeeklyStats,
    apply_intentional_shift,
)
from services.identity import Identity
from services.identity_store import (
    IdentityNotFound,
    InMemoryIdentityStore,
    StaleIdentityVersion,
    SupabaseIdentityStore,
)
from services.models import EventRecord, PendingReinforcement, ReturnReason, Vote
from services.providers import (
    get_coordinator,
    get_signal_store,
    get_tolerance_store,
    reset_services,
)
from services.reinforcement import (
    EventOutcome,
    EventStatus,
    ReinforcementCoordinator,
    ReinforcementService,
)
from services.tolerance import ToleranceState, ToleranceStore

__all__ = [
    "AdvisorySignal",
    "AdvisorySignalStore",
    "SignalAction",
    "WeeklyStats",
    "apply_intentional_shift",
    "Identity",
    "IdentityNotFound",
    "InMemoryIdentityStore",
    "StaleIdentityVersion",
    "SupabaseIdentityStore",
    "EventRecord",
    "PendingReinforcement",
    "ReturnReason",
    "Vote",
    "get_coordinator",
    "get_signal_store",
    "get_tolerance_store",
    "reset_services",
    "EventOutcome",
    "EventStatus",
    "ReinforcementCoordinator",
    "ReinforcementService",
    "ToleranceState",
    "ToleranceStore",
]
