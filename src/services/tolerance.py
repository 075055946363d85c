"""
Advisory tolerance self-tuning.

A slow integral loop: once per calendar day, look at the trailing week of
advisory signals and nudge the tolerance.

    3+ red overrides     -> +0.03  (user keeps proceeding, loosen up)
    5+ non-proceeds      -> -0.03  (user keeps backing off, tighten)

Both together cancel out. The running value is clamped to [-0.15, 0.15].
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from threading import Lock
from typing import Dict, Optional, Tuple

from core.logging import LoggerMixin
from services.advisory_signals import GLOBAL_SCOPE, WeeklyStats


@dataclass(frozen=True)
class ToleranceConfig:
    bound: float = 0.15
    override_threshold: int = 3
    override_step: float = 0.03
    non_proceed_threshold: int = 5
    non_proceed_step: float = 0.03


DEFAULT_TOLERANCE_CONFIG = ToleranceConfig()


@dataclass(frozen=True)
class ToleranceState:
    value: float = 0.0
    last_adjusted_date: Optional[date] = None

    def to_dict(self) -> Dict:
        return {
            "value": self.value,
            "last_adjusted_date": self.last_adjusted_date.isoformat() if self.last_adjusted_date else None,
        }


def tolerance_delta(stats: WeeklyStats, config: ToleranceConfig = DEFAULT_TOLERANCE_CONFIG) -> float:
    delta = 0.0
    if stats.overrides >= config.override_threshold:
        delta += config.override_step
    if stats.non_proceeds >= config.non_proceed_threshold:
        delta -= config.non_proceed_step
    return delta


def adjust(
    state: ToleranceState,
    stats: WeeklyStats,
    today: date,
    config: ToleranceConfig = DEFAULT_TOLERANCE_CONFIG,
) -> Tuple[ToleranceState, bool]:
    """
    Returns ``(new_state, ran)``. ``ran`` is False when an adjustment
    already happened on ``today``; the state is returned untouched.
    """
    if state.last_adjusted_date == today:
        return state, False
    value = state.value + tolerance_delta(stats, config)
    value = max(-config.bound, min(config.bound, value))
    # Round away float noise so repeated +0.03/-0.03 steps stay exact
    return replace(state, value=round(value, 6), last_adjusted_date=today), True


class ToleranceStore(LoggerMixin):
    """
    Tolerance state per scope. ``adjust_if_needed`` reads, decides and
    writes under one lock, so concurrent calls on the same day produce
    exactly one update.
    """

    def __init__(self, config: ToleranceConfig = DEFAULT_TOLERANCE_CONFIG):
        self.config = config
        self._states: Dict[str, ToleranceState] = {}
        self._lock = Lock()

    def get(self, scope: str = GLOBAL_SCOPE) -> ToleranceState:
        with self._lock:
            return self._states.get(scope, ToleranceState())

    def value(self, scope: str = GLOBAL_SCOPE) -> float:
        return self.get(scope).value

    def adjust_if_needed(
        self,
        stats: WeeklyStats,
        scope: str = GLOBAL_SCOPE,
        today: Optional[date] = None,
    ) -> ToleranceState:
        today = today or datetime.now(timezone.utc).date()
        with self._lock:
            current = self._states.get(scope, ToleranceState())
            updated, ran = adjust(current, stats, today, self.config)
            self._states[scope] = updated

        if ran and updated.value != current.value:
            self.logger.info(
                "Advisory tolerance adjusted",
                previous=current.value,
                tolerance=updated.value,
                overrides=stats.overrides,
                non_proceeds=stats.non_proceeds,
            )
        return updated

    def reset(self, scope: str = GLOBAL_SCOPE) -> None:
        with self._lock:
            self._states.pop(scope, None)
