"""
Advisory signal log and weekly aggregation.

Every time an advisory verdict is shown, acted on, or used to shift taste
on purpose, a signal is appended. Weekly stats look at the trailing seven
days only; older signals stay in the log but fall out of the query.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Mapping, Optional

from core.logging import LoggerMixin
from engines.taste_vector import TasteVector
from scoring.advisory import AdvisoryVerdict


WEEK = timedelta(days=7)
GLOBAL_SCOPE = "global"


class SignalAction(str, Enum):
    SHOWN = "shown"
    PROCEEDED = "proceeded"
    SAVED = "saved"
    INTENTIONAL_SHIFT = "intentionalShift"


@dataclass(frozen=True)
class AdvisorySignal:
    timestamp: datetime
    action: SignalAction
    verdict: AdvisoryVerdict
    item_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "action": self.action.value,
            "verdict": self.verdict.value,
            "item_id": self.item_id,
        }


@dataclass(frozen=True)
class WeeklyStats:
    overrides: int = 0              # red proceeded
    near_misses: int = 0            # red shown, not proceeded
    intentional_shifts: int = 0
    non_proceeds: int = 0           # yellow/red shown minus yellow/red proceeded

    def to_dict(self) -> Dict[str, int]:
        return {
            "overrides": self.overrides,
            "near_misses": self.near_misses,
            "intentional_shifts": self.intentional_shifts,
            "non_proceeds": self.non_proceeds,
        }


def weekly_stats(signals: List[AdvisorySignal], now: Optional[datetime] = None) -> WeeklyStats:
    """Aggregate signals newer than ``now - 7 days``."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - WEEK
    recent = [s for s in signals if s.timestamp > cutoff]

    def count(action: SignalAction, *verdicts: AdvisoryVerdict) -> int:
        return sum(1 for s in recent if s.action == action and (not verdicts or s.verdict in verdicts))

    red = AdvisoryVerdict.RED
    yellow = AdvisoryVerdict.YELLOW
    shown_red = count(SignalAction.SHOWN, red)
    proceeded_red = count(SignalAction.PROCEEDED, red)
    shown_flagged = count(SignalAction.SHOWN, red, yellow)
    proceeded_flagged = count(SignalAction.PROCEEDED, red, yellow)

    return WeeklyStats(
        overrides=proceeded_red,
        near_misses=max(0, shown_red - proceeded_red),
        intentional_shifts=count(SignalAction.INTENTIONAL_SHIFT),
        non_proceeds=max(0, shown_flagged - proceeded_flagged),
    )


class AdvisorySignalStore(LoggerMixin):
    """Append-only, thread-safe, partitioned by scope (usually a device id)."""

    def __init__(self):
        self._signals: Dict[str, List[AdvisorySignal]] = {}
        self._lock = Lock()

    def record(self, signal: AdvisorySignal, scope: str = GLOBAL_SCOPE) -> AdvisorySignal:
        with self._lock:
            self._signals.setdefault(scope, []).append(signal)
        self.logger.debug(
            "Advisory signal recorded",
            action=signal.action.value,
            verdict=signal.verdict.value,
            item_id=signal.item_id,
        )
        return signal

    def all(self, scope: str = GLOBAL_SCOPE) -> List[AdvisorySignal]:
        with self._lock:
            return list(self._signals.get(scope, []))

    def weekly_stats(self, scope: str = GLOBAL_SCOPE, now: Optional[datetime] = None) -> WeeklyStats:
        return weekly_stats(self.all(scope), now)


def apply_intentional_shift(
    vector: TasteVector,
    item_axes: Mapping[str, float],
    alpha: float = 0.10,
) -> TasteVector:
    """Nudge a vector toward an item the user chose on purpose despite the warning."""
    keys = list(vector.weights.keys())
    keys += [k for k in item_axes if k not in vector.weights]
    return TasteVector({
        key: vector.get(key) * (1.0 - alpha) + float(item_axes.get(key, 0.0)) * alpha
        for key in keys
    }).normalized()
